"""Appointment DTOs."""

from datetime import datetime
from typing import Optional

from pydantic import Field

from practice_crm.application.dtos.base import DTO
from practice_crm.application.dtos.contact import ContactSummary
from practice_crm.application.dtos.notification import NotificationOutcome
from practice_crm.domain.entities.contact import AppointmentStatus, Contact


class AppointmentFilter(DTO):
    """Filter for listing appointments."""

    status: Optional[AppointmentStatus] = None
    upcoming_only: bool = False
    limit: int = Field(default=50, ge=1)


class AppointmentSummary(DTO):
    """One appointment, projected from its owning contact."""

    contact_id: str
    contact_uuid: str
    name: str
    email: str
    scheduled_at: Optional[datetime] = None
    time_zone: Optional[str] = None
    status: Optional[AppointmentStatus] = None
    notes: Optional[str] = None

    @classmethod
    def from_entity(cls, contact: Contact) -> "AppointmentSummary":
        """Project a contact's appointment fields."""
        return cls(
            contact_id=contact.id,
            contact_uuid=contact.uuid,
            name=contact.name,
            email=contact.email,
            scheduled_at=contact.scheduled_appointment_at,
            time_zone=contact.time_zone,
            status=contact.appointment_status,
            notes=contact.appointment_notes,
        )


class AppointmentChange(DTO):
    """Result of a mutating appointment operation."""

    contact: ContactSummary
    changed: bool = True
    notifications: list[NotificationOutcome] = Field(default_factory=list)

    @property
    def partial_success(self) -> bool:
        """True when the write committed but a notification failed."""
        return any(not outcome.success for outcome in self.notifications)

"""Contact DTOs."""

from datetime import datetime
from typing import Optional

from pydantic import ConfigDict, Field

from practice_crm.application.dtos.base import DTO
from practice_crm.application.dtos.notification import NotificationOutcome
from practice_crm.domain.entities.contact import AppointmentStatus, Contact, ContactStatus


class ContactSummary(DTO):
    """Contact as returned to callers."""

    id: str
    uuid: str
    name: str
    email: str
    phone: Optional[str] = None
    contact_status: ContactStatus
    scheduled_appointment_at: Optional[datetime] = None
    time_zone: Optional[str] = None
    appointment_status: Optional[AppointmentStatus] = None
    appointment_notes: Optional[str] = None
    last_appointment_update: Optional[datetime] = None
    last_auto_reminder_sent: Optional[datetime] = None
    auto_reminder_count: int = 0

    @classmethod
    def from_entity(cls, contact: Contact) -> "ContactSummary":
        """
        Build summary from a Contact entity.

        Args:
            contact: Contact entity

        Returns:
            ContactSummary DTO
        """
        return cls(
            id=contact.id,
            uuid=contact.uuid,
            name=contact.name,
            email=contact.email,
            phone=contact.phone,
            contact_status=contact.contact_status,
            scheduled_appointment_at=contact.scheduled_appointment_at,
            time_zone=contact.time_zone,
            appointment_status=contact.appointment_status,
            appointment_notes=contact.appointment_notes,
            last_appointment_update=contact.last_appointment_update,
            last_auto_reminder_sent=contact.last_auto_reminder_sent,
            auto_reminder_count=contact.auto_reminder_count,
        )


class BookingRequest(DTO):
    """Booking or contact form submission."""

    name: str
    email: str
    phone: str
    scheduled_at: Optional[datetime] = None
    time_zone: Optional[str] = None
    notes: Optional[str] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "Jordan Rivera",
                "email": "jordan@example.com",
                "phone": "404-555-0134",
                "scheduledAt": "2026-11-02T15:00:00Z",
                "timeZone": "America/New_York",
            }
        }
    )


class CaptureResult(DTO):
    """Result of a booking or contact form submission."""

    contact: ContactSummary
    created: bool
    notifications: list[NotificationOutcome] = Field(default_factory=list)

"""Contact entity."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from practice_crm.domain.entities.conversation_response import ConversationResponse
from practice_crm.domain.errors import InvalidInputError


class ContactStatus(str, Enum):
    """Lead lifecycle status, in normal-flow order."""

    NEW = "new"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    SCHEDULED = "scheduled"
    CONVERTED = "converted"
    LOST = "lost"


_CONTACT_STATUS_ORDER = [
    ContactStatus.NEW,
    ContactStatus.CONTACTED,
    ContactStatus.QUALIFIED,
    ContactStatus.SCHEDULED,
    ContactStatus.CONVERTED,
]


class AppointmentStatus(str, Enum):
    """Appointment state stored on the contact."""

    PENDING = "PENDING"
    SCHEDULED = "SCHEDULED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"

    @property
    def label(self) -> str:
        """Lower-case label used in messages (e.g. 'no-show')."""
        return self.value.lower().replace("_", "-")

    @property
    def is_terminal(self) -> bool:
        """Whether no automatic transition leaves this state."""
        return self in (
            AppointmentStatus.COMPLETED,
            AppointmentStatus.CANCELLED,
            AppointmentStatus.NO_SHOW,
        )

    @classmethod
    def parse(
        cls, raw: str, allowed: Optional[tuple["AppointmentStatus", ...]] = None
    ) -> "AppointmentStatus":
        """
        Parse a case-insensitive status string.

        Accepts 'no-show', 'no_show' and 'NO SHOW' spellings.

        Args:
            raw: Status as received from a caller
            allowed: Statuses the caller may set (all when omitted)

        Returns:
            Matching AppointmentStatus

        Raises:
            InvalidInputError: If the value is not one of the defined statuses
        """
        choices = allowed or tuple(cls)
        normalized = (raw or "").strip().upper().replace("-", "_").replace(" ", "_")
        for status in choices:
            if status.value == normalized:
                return status
        valid = ", ".join(status.label for status in choices)
        raise InvalidInputError(f"Invalid status. Must be one of: {valid}")


# Statuses an operator may set directly; PENDING is only assigned by the system.
ADMIN_SETTABLE_STATUSES = (
    AppointmentStatus.SCHEDULED,
    AppointmentStatus.COMPLETED,
    AppointmentStatus.CANCELLED,
    AppointmentStatus.NO_SHOW,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Contact:
    """A person who has expressed interest through a booking or contact form."""

    id: str
    name: str
    email: str
    uuid: str = field(default_factory=lambda: str(uuid4()))
    phone: Optional[str] = None
    contact_status: ContactStatus = ContactStatus.NEW
    # Appointment fields
    scheduled_appointment_at: Optional[datetime] = None
    time_zone: Optional[str] = None  # IANA zone, display only
    appointment_status: Optional[AppointmentStatus] = None
    appointment_notes: Optional[str] = None
    last_appointment_update: Optional[datetime] = None
    # Automation bookkeeping
    last_auto_reminder_sent: Optional[datetime] = None
    auto_reminder_count: int = 0
    workflow_markers: dict[str, datetime] = field(default_factory=dict)
    # Conversation answers keyed by question id
    conversation_responses: dict[str, ConversationResponse] = field(default_factory=dict)
    conversation_complete: bool = False  # the script reached an end state
    custom_fields: dict[str, Any] = field(default_factory=dict)
    crm_notes: Optional[str] = None
    version: int = 1
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def touch(self) -> None:
        """Update the updated_at timestamp."""
        self.updated_at = _utcnow()

    def check_invariants(self) -> None:
        """
        Validate cross-field invariants.

        Raises:
            InvalidInputError: If the appointment fields are inconsistent
        """
        if (
            self.scheduled_appointment_at is None
            and self.appointment_status == AppointmentStatus.SCHEDULED
        ):
            raise InvalidInputError(
                "Appointment cannot be SCHEDULED without a scheduled time"
            )
        if self.auto_reminder_count < 0:
            raise InvalidInputError("auto_reminder_count must be >= 0")

    def advanced_status(self, target: ContactStatus) -> ContactStatus:
        """
        Compute the status after a normal-flow advance towards target.

        Status never moves backwards in normal flow, and 'lost' is left alone.

        Args:
            target: Status the flow wants to reach

        Returns:
            The resulting status (target or the current one)
        """
        if self.contact_status == ContactStatus.LOST:
            return self.contact_status
        if target not in _CONTACT_STATUS_ORDER:
            return self.contact_status
        if _CONTACT_STATUS_ORDER.index(target) > _CONTACT_STATUS_ORDER.index(self.contact_status):
            return target
        return self.contact_status

    def has_active_appointment(self) -> bool:
        """Check whether the contact holds a scheduled, non-terminal appointment."""
        return (
            self.appointment_status == AppointmentStatus.SCHEDULED
            and self.scheduled_appointment_at is not None
        )

    def latest_response_at(self) -> Optional[datetime]:
        """Timestamp of the most recent conversation answer, if any."""
        if not self.conversation_responses:
            return None
        return max(response.timestamp for response in self.conversation_responses.values())

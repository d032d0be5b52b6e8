"""Contact repository port."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from practice_crm.domain.entities.contact import AppointmentStatus, Contact
from practice_crm.domain.errors import InvalidInputError
from practice_crm.domain.value_objects.contact_identifier import ContactIdentifier
from practice_crm.domain.value_objects.email_address import normalize_email
from practice_crm.domain.value_objects.phone_number import to_e164

# Fields a partial update may touch. id, uuid and created_at are immutable.
UPDATABLE_FIELDS = frozenset(
    {
        "name",
        "email",
        "phone",
        "contact_status",
        "scheduled_appointment_at",
        "time_zone",
        "appointment_status",
        "appointment_notes",
        "last_appointment_update",
        "last_auto_reminder_sent",
        "auto_reminder_count",
        "workflow_markers",
        "conversation_responses",
        "conversation_complete",
        "custom_fields",
        "crm_notes",
    }
)


def check_update_fields(fields: dict[str, Any]) -> dict[str, Any]:
    """
    Validate field names of a partial update and normalize the email and phone.

    Args:
        fields: Requested changes

    Returns:
        Changes ready to apply

    Raises:
        InvalidInputError: If a field is unknown or immutable
    """
    unknown = sorted(set(fields) - UPDATABLE_FIELDS)
    if unknown:
        raise InvalidInputError(f"Fields cannot be updated: {', '.join(unknown)}")
    changes = dict(fields)
    if "email" in changes:
        changes["email"] = normalize_email(changes["email"])
    if changes.get("phone"):
        changes["phone"] = to_e164(changes["phone"])
    return changes


ORDER_BY_APPOINTMENT = "appointment"
ORDER_BY_LAST_RESPONSE = "last_response"


@dataclass(frozen=True)
class ContactQuery:
    """Filter for querying contacts.

    Results are ordered by scheduled_appointment_at ascending (contacts without
    an appointment last), or by the latest conversation answer ascending when
    order_by is ORDER_BY_LAST_RESPONSE. Ties are broken by id so offset paging
    is stable.
    """

    appointment_status: Optional[AppointmentStatus] = None
    scheduled_from: Optional[datetime] = None  # inclusive
    scheduled_until: Optional[datetime] = None  # inclusive
    has_appointment: Optional[bool] = None  # appointment_status set
    has_phone: Optional[bool] = None
    has_conversation: Optional[bool] = None
    conversation_complete: Optional[bool] = None
    last_response_before: Optional[datetime] = None  # inclusive
    order_by: str = ORDER_BY_APPOINTMENT
    offset: int = 0
    limit: Optional[int] = None

    def matches(self, contact: Contact) -> bool:
        """
        Check a contact against the filter.

        Args:
            contact: Contact to check

        Returns:
            True if every set criterion holds
        """
        if (
            self.appointment_status is not None
            and contact.appointment_status != self.appointment_status
        ):
            return False
        scheduled = contact.scheduled_appointment_at
        if self.scheduled_from is not None and (
            scheduled is None or scheduled < self.scheduled_from
        ):
            return False
        if self.scheduled_until is not None and (
            scheduled is None or scheduled > self.scheduled_until
        ):
            return False
        if (
            self.has_appointment is not None
            and (contact.appointment_status is not None) != self.has_appointment
        ):
            return False
        if self.has_phone is not None and bool(contact.phone) != self.has_phone:
            return False
        if (
            self.has_conversation is not None
            and bool(contact.conversation_responses) != self.has_conversation
        ):
            return False
        if (
            self.conversation_complete is not None
            and contact.conversation_complete != self.conversation_complete
        ):
            return False
        if self.last_response_before is not None:
            latest = contact.latest_response_at()
            if latest is None or latest > self.last_response_before:
                return False
        return True


class ContactRepository(ABC):
    """Port interface for the contact store.

    Every write is a single-row atomic update. Implementations raise
    StorageError when the backing store fails.
    """

    @abstractmethod
    async def get(self, identifier: ContactIdentifier) -> Contact:
        """
        Get a contact by id or uuid.

        Args:
            identifier: Contact identifier

        Returns:
            Contact entity

        Raises:
            NotFoundError: If no contact matches
        """
        pass

    @abstractmethod
    async def get_by_email(self, email: str) -> Optional[Contact]:
        """
        Get a contact by email (matched lower-cased and trimmed).

        Args:
            email: Email address

        Returns:
            Contact entity, or None if not found
        """
        pass

    @abstractmethod
    async def get_by_phone(self, phone: str) -> Optional[Contact]:
        """
        Get a contact by phone number (matched in E.164 form).

        Args:
            phone: Phone number in any accepted format

        Returns:
            Most recently updated matching contact, or None
        """
        pass

    @abstractmethod
    async def insert(self, contact: Contact) -> Contact:
        """
        Insert a new contact.

        Args:
            contact: Contact to insert

        Returns:
            Stored contact

        Raises:
            ConflictError: If the id, uuid or email is already taken
        """
        pass

    @abstractmethod
    async def update(
        self,
        identifier: ContactIdentifier,
        fields: dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> Contact:
        """
        Apply a partial update.

        Args:
            identifier: Contact identifier
            fields: Field name to new value; names must be in UPDATABLE_FIELDS
            expected_version: If set, the write only applies when the stored
                version still matches

        Returns:
            Updated contact (version incremented)

        Raises:
            NotFoundError: If no contact matches
            ConflictError: On version mismatch or email uniqueness violation
            InvalidInputError: On unknown field names or broken invariants
        """
        pass

    @abstractmethod
    async def query(self, contact_query: ContactQuery) -> list[Contact]:
        """
        Query contacts.

        Args:
            contact_query: Filter, ordering, offset and limit

        Returns:
            Matching contacts
        """
        pass

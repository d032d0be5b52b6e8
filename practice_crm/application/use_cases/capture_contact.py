"""Booking and contact form capture use case."""

from typing import Optional
from uuid import uuid4

from practice_crm.application.dtos.contact import BookingRequest, CaptureResult, ContactSummary
from practice_crm.application.ports.contact_repository import ContactRepository
from practice_crm.application.use_cases.manage_appointment import ManageAppointment
from practice_crm.domain.entities.contact import Contact
from practice_crm.domain.errors import InvalidInputError
from practice_crm.domain.value_objects.contact_identifier import ContactIdentifier
from practice_crm.domain.value_objects.email_address import (
    is_valid_email,
    is_valid_name,
    normalize_email,
)
from practice_crm.domain.value_objects.phone_number import (
    INVALID_COUNTRY_CODE,
    format_phone_number,
    is_valid_phone_number,
    to_e164,
)
from practice_crm.infrastructure.logging.logger import log_event


def validate_booking(request: BookingRequest) -> None:
    """
    Validate a booking form before anything is written.

    Args:
        request: Booking form data

    Raises:
        InvalidInputError: On the first invalid field
    """
    if not is_valid_name(request.name):
        raise InvalidInputError("Name must be between 2 and 100 characters")
    if not is_valid_email(request.email):
        raise InvalidInputError("Please enter a valid email address")
    if format_phone_number(request.phone) == INVALID_COUNTRY_CODE:
        raise InvalidInputError("Only US phone numbers are supported")
    if not is_valid_phone_number(format_phone_number(request.phone)):
        raise InvalidInputError("Please enter a valid 10-digit phone number")


class CaptureContact:
    """Creates or refreshes a contact from a form, and books the slot if one was chosen."""

    def __init__(
        self,
        repository: ContactRepository,
        appointments: Optional[ManageAppointment] = None,
    ) -> None:
        """
        Initialize use case.

        Args:
            repository: Contact store
            appointments: Appointment use case, required to book a slot
        """
        self._repository = repository
        self._appointments = appointments

    async def execute(self, request: BookingRequest) -> CaptureResult:
        """
        Capture a form submission.

        A contact is matched by email; an existing one gets its name and phone
        refreshed.

        Args:
            request: Booking form data

        Returns:
            CaptureResult with the contact and any booking notifications

        Raises:
            InvalidInputError: If a field is invalid or the slot is in the past
        """
        validate_booking(request)
        if request.scheduled_at is not None and self._appointments is not None:
            self._appointments.validate_slot(request.scheduled_at)
        phone = to_e164(format_phone_number(request.phone))
        name = request.name.strip()

        existing = await self._repository.get_by_email(request.email)
        if existing is None:
            custom_fields = {"message": request.notes} if request.notes else {}
            contact = await self._repository.insert(
                Contact(
                    # No hyphen, so untagged ids resolve to the primary key
                    id=uuid4().hex,
                    name=name,
                    email=normalize_email(request.email),
                    phone=phone,
                    custom_fields=custom_fields,
                )
            )
            created = True
        else:
            fields = {"name": name, "phone": phone}
            if request.notes:
                fields["custom_fields"] = {**existing.custom_fields, "message": request.notes}
            contact = await self._repository.update(
                ContactIdentifier.by_id(existing.id), fields
            )
            created = False
        log_event("capture", contact_id=contact.id, created=created)

        if request.scheduled_at is not None and self._appointments is not None:
            change = await self._appointments.schedule(
                ContactIdentifier.by_id(contact.id), request.scheduled_at, request.time_zone
            )
            return CaptureResult(
                contact=change.contact, created=created, notifications=change.notifications
            )
        return CaptureResult(contact=ContactSummary.from_entity(contact), created=created)

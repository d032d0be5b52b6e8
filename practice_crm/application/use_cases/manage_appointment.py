"""Appointment lifecycle use case."""

from datetime import datetime, timezone
from typing import Callable, Optional, Union

from practice_crm.application.dtos.appointment import (
    AppointmentChange,
    AppointmentFilter,
    AppointmentSummary,
)
from practice_crm.application.dtos.contact import ContactSummary
from practice_crm.application.ports.contact_repository import ContactQuery, ContactRepository
from practice_crm.application.use_cases.check_availability import CheckAvailability
from practice_crm.application.use_cases.contact_notifier import ContactNotifier
from practice_crm.domain.entities.contact import (
    ADMIN_SETTABLE_STATUSES,
    AppointmentStatus,
    ContactStatus,
)
from practice_crm.domain.errors import InvalidInputError
from practice_crm.domain.value_objects.contact_identifier import ContactIdentifier
from practice_crm.infrastructure.logging.logger import log_appointment_transition

CANCELLED_BY_USER_NOTE = "Appointment cancelled by user"
COMPLETED_BY_ADMIN_NOTE = "Appointment completed - marked by admin"
DEFAULT_LIST_LIMIT = 50


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and normalize aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class ManageAppointment:
    """Schedules, cancels and transitions the appointment held on a contact.

    Every mutation is validated before the single write to the store. Outbound
    notifications run after the write; their failures are reported on the
    result, never rolled back.
    """

    def __init__(
        self,
        repository: ContactRepository,
        notifier: Optional[ContactNotifier] = None,
        max_list_limit: int = 200,
        availability: Optional[CheckAvailability] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """
        Initialize use case.

        Args:
            repository: Contact store
            notifier: Optional notifier for confirmation and cancellation messages
            max_list_limit: Upper bound for list_appointments
            availability: Optional double-booking check for schedule
            clock: Returns the current UTC time
        """
        self._repository = repository
        self._notifier = notifier
        self._max_list_limit = max_list_limit
        self._availability = availability
        self._clock = clock

    def validate_slot(self, when: datetime) -> datetime:
        """
        Check that an appointment time lies in the future.

        Args:
            when: Requested time (naive values are taken as UTC)

        Returns:
            The time normalized to UTC

        Raises:
            InvalidInputError: If the time is not in the future
        """
        when = _as_utc(when)
        if when <= self._clock():
            raise InvalidInputError("Appointment time must be in the future")
        return when

    async def schedule(
        self,
        identifier: ContactIdentifier,
        when: datetime,
        time_zone: Optional[str] = None,
    ) -> AppointmentChange:
        """
        Schedule or reschedule the contact's appointment.

        Args:
            identifier: Contact identifier
            when: Appointment time; must be in the future
            time_zone: IANA zone used to display the time to the contact

        Returns:
            AppointmentChange with the updated contact and notification outcomes

        Raises:
            InvalidInputError: If the time is not in the future
            NotFoundError: If the contact does not exist
            ConflictError: If another appointment already holds the time
        """
        now = self._clock()
        when = self.validate_slot(when)

        contact = await self._repository.get(identifier)
        if self._availability is not None:
            await self._availability.ensure_free(when, contact.id)
        updated = await self._repository.update(
            identifier,
            {
                "scheduled_appointment_at": when,
                "time_zone": time_zone or contact.time_zone,
                "appointment_status": AppointmentStatus.SCHEDULED,
                "appointment_notes": None,
                "last_appointment_update": now,
                "contact_status": contact.advanced_status(ContactStatus.SCHEDULED),
            },
            expected_version=contact.version,
        )
        log_appointment_transition(
            updated.id,
            contact.appointment_status.value if contact.appointment_status else None,
            AppointmentStatus.SCHEDULED.value,
            scheduled_at=when.isoformat(),
        )

        notifications = []
        if self._notifier is not None:
            notifications = await self._notifier.booking_confirmation(updated)
        return AppointmentChange(
            contact=ContactSummary.from_entity(updated),
            changed=True,
            notifications=notifications,
        )

    async def cancel(
        self, identifier: ContactIdentifier, reason: Optional[str] = None
    ) -> AppointmentChange:
        """
        Cancel the contact's appointment.

        Cancelling an already cancelled appointment changes nothing and sends
        nothing.

        Args:
            identifier: Contact identifier
            reason: Optional operator-supplied note

        Returns:
            AppointmentChange (changed=False when already cancelled)

        Raises:
            NotFoundError: If the contact does not exist
        """
        contact = await self._repository.get(identifier)
        if contact.appointment_status == AppointmentStatus.CANCELLED:
            return AppointmentChange(contact=ContactSummary.from_entity(contact), changed=False)

        updated = await self._repository.update(
            identifier,
            {
                "scheduled_appointment_at": None,
                "appointment_status": AppointmentStatus.CANCELLED,
                "appointment_notes": (reason or "").strip() or CANCELLED_BY_USER_NOTE,
                "last_appointment_update": self._clock(),
            },
            expected_version=contact.version,
        )
        log_appointment_transition(
            updated.id,
            contact.appointment_status.value if contact.appointment_status else None,
            AppointmentStatus.CANCELLED.value,
        )

        notifications = []
        if self._notifier is not None and contact.scheduled_appointment_at is not None:
            notifications = await self._notifier.cancellation(updated, contact)
        return AppointmentChange(
            contact=ContactSummary.from_entity(updated),
            changed=True,
            notifications=notifications,
        )

    async def set_status(
        self,
        identifier: ContactIdentifier,
        status: Union[str, AppointmentStatus],
        notes: Optional[str] = None,
    ) -> AppointmentChange:
        """
        Set the appointment status (administrative transition).

        Args:
            identifier: Contact identifier
            status: Case-insensitive status ('scheduled', 'completed',
                'cancelled', 'no-show')
            notes: Optional notes replacing the automatic completion note

        Returns:
            AppointmentChange with the updated contact

        Raises:
            InvalidInputError: If the status is unknown, or SCHEDULED is requested
                for a contact without an appointment time
            NotFoundError: If the contact does not exist
        """
        if not isinstance(status, AppointmentStatus):
            status = AppointmentStatus.parse(status, allowed=ADMIN_SETTABLE_STATUSES)
        elif status not in ADMIN_SETTABLE_STATUSES:
            status = AppointmentStatus.parse(status.value, allowed=ADMIN_SETTABLE_STATUSES)

        contact = await self._repository.get(identifier)
        if status == AppointmentStatus.SCHEDULED and contact.scheduled_appointment_at is None:
            raise InvalidInputError("Cannot mark as scheduled without an appointment time")

        fields = {
            "appointment_status": status,
            "last_appointment_update": self._clock(),
        }
        if notes and notes.strip():
            fields["appointment_notes"] = notes.strip()
        elif status == AppointmentStatus.COMPLETED:
            existing = contact.appointment_notes
            fields["appointment_notes"] = (
                f"{existing}\n{COMPLETED_BY_ADMIN_NOTE}" if existing else COMPLETED_BY_ADMIN_NOTE
            )
        if status == AppointmentStatus.COMPLETED:
            fields["contact_status"] = contact.advanced_status(ContactStatus.CONVERTED)

        updated = await self._repository.update(
            identifier, fields, expected_version=contact.version
        )
        log_appointment_transition(
            updated.id,
            contact.appointment_status.value if contact.appointment_status else None,
            status.value,
            source="admin",
        )
        return AppointmentChange(contact=ContactSummary.from_entity(updated), changed=True)

    async def list_appointments(
        self, appointment_filter: Optional[AppointmentFilter] = None
    ) -> list[AppointmentSummary]:
        """
        List appointments ordered by time.

        Args:
            appointment_filter: Status, upcoming-only and limit (default 50)

        Returns:
            Appointment summaries, earliest first
        """
        appointment_filter = appointment_filter or AppointmentFilter()
        limit = min(appointment_filter.limit or DEFAULT_LIST_LIMIT, self._max_list_limit)
        contacts = await self._repository.query(
            ContactQuery(
                appointment_status=appointment_filter.status,
                has_appointment=True,
                scheduled_from=self._clock() if appointment_filter.upcoming_only else None,
                limit=limit,
            )
        )
        return [AppointmentSummary.from_entity(contact) for contact in contacts]

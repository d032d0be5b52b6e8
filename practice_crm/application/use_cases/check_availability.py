"""Appointment availability use case."""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from practice_crm.application.dtos.availability import (
    AvailableSlot,
    BookedSlot,
    PullForwardSlots,
)
from practice_crm.application.ports.contact_repository import ContactQuery, ContactRepository
from practice_crm.application.use_cases.user_messages_en import format_appointment_time
from practice_crm.domain.availability import BusinessHours, Slot, earliest_open_slot
from practice_crm.domain.entities.contact import AppointmentStatus, Contact
from practice_crm.domain.errors import ConflictError, InvalidInputError
from practice_crm.infrastructure.logging.logger import log_event


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class CheckAvailability:
    """Answers which session times are taken and which are still open.

    Only SCHEDULED appointments hold time; each holds one session from its
    start.
    """

    def __init__(
        self,
        repository: ContactRepository,
        hours: Optional[BusinessHours] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """
        Initialize use case.

        Args:
            repository: Contact store
            hours: Business hours (defaults to 9-17 Eastern, 50 minute sessions)
            clock: Returns the current UTC time
        """
        self._repository = repository
        self._hours = hours or BusinessHours()
        self._clock = clock

    @property
    def hours(self) -> BusinessHours:
        return self._hours

    async def _scheduled(self, start: datetime, end: datetime) -> list[Contact]:
        return await self._repository.query(
            ContactQuery(
                appointment_status=AppointmentStatus.SCHEDULED,
                scheduled_from=start,
                scheduled_until=end,
            )
        )

    async def booked_slots(self, start: datetime, end: datetime) -> list[BookedSlot]:
        """
        List the time taken by appointments starting inside a window.

        Args:
            start: Window start, inclusive (naive values are taken as UTC)
            end: Window end, inclusive

        Returns:
            Booked slots, earliest first

        Raises:
            InvalidInputError: If the window ends before it starts
        """
        start, end = _as_utc(start), _as_utc(end)
        if end < start:
            raise InvalidInputError("End of the window must not be before its start")
        contacts = await self._scheduled(start, end)
        return [
            BookedSlot(
                start_time=contact.scheduled_appointment_at,
                end_time=contact.scheduled_appointment_at + self._hours.session,
            )
            for contact in contacts
        ]

    def _offer(self, slot: Optional[Slot]) -> Optional[AvailableSlot]:
        if slot is None:
            return None
        _, time_text = format_appointment_time(slot.start, self._hours.time_zone)
        return AvailableSlot(start_time=slot.start, end_time=slot.end, display_time=time_text)

    async def pull_forward_slots(self) -> PullForwardSlots:
        """
        Find the earliest open session today and tomorrow.

        Returns:
            PullForwardSlots; a day without an open session is None
        """
        now = self._clock()
        today = self._hours.local_date(now)
        tomorrow = today + timedelta(days=1)
        window_start, _ = self._hours.day_bounds(today)
        _, window_end = self._hours.day_bounds(tomorrow)
        booked = [
            self._hours.booking(contact.scheduled_appointment_at)
            for contact in await self._scheduled(window_start, window_end)
        ]
        slots = PullForwardSlots(
            today=self._offer(earliest_open_slot(today, booked, now, self._hours)),
            tomorrow=self._offer(earliest_open_slot(tomorrow, booked, now, self._hours)),
        )
        log_event(
            "availability",
            today=slots.today.display_time if slots.today else None,
            tomorrow=slots.tomorrow.display_time if slots.tomorrow else None,
        )
        return slots

    async def ensure_free(self, when: datetime, contact_id: Optional[str] = None) -> None:
        """
        Check that a session starting at `when` overlaps no other booking.

        Args:
            when: Requested start (UTC)
            contact_id: Contact being scheduled; its own booking is ignored

        Raises:
            ConflictError: If another scheduled appointment overlaps
        """
        when = _as_utc(when)
        wanted = self._hours.booking(when)
        nearby = await self._scheduled(when - self._hours.session, when + self._hours.session)
        for contact in nearby:
            if contact.id == contact_id:
                continue
            if wanted.overlaps(self._hours.booking(contact.scheduled_appointment_at)):
                raise ConflictError("That time is already booked")

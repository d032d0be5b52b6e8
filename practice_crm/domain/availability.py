"""Business hours and the earliest-open-slot search."""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, Optional
from zoneinfo import ZoneInfo


@dataclass(frozen=True)
class Slot:
    """A half-open [start, end) interval of appointment time."""

    start: datetime
    end: datetime

    def overlaps(self, other: "Slot") -> bool:
        return self.start < other.end and self.end > other.start


@dataclass(frozen=True)
class BusinessHours:
    """Bookable hours of the practice, in its local time zone."""

    time_zone: str = "America/New_York"
    start_hour: int = 9
    end_hour: int = 17
    session: timedelta = timedelta(minutes=50)
    step: timedelta = timedelta(minutes=30)
    lead_time: timedelta = timedelta(minutes=30)  # minimum notice for a same-day slot

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.time_zone)

    def local_date(self, when: datetime) -> date:
        """Calendar date of an instant in the practice's zone."""
        return when.astimezone(self.zone).date()

    def opening(self, day: date) -> datetime:
        return datetime.combine(day, time(self.start_hour), tzinfo=self.zone)

    def closing(self, day: date) -> datetime:
        return datetime.combine(day, time(self.end_hour), tzinfo=self.zone)

    def day_bounds(self, day: date) -> tuple[datetime, datetime]:
        """UTC instants of local midnight at the start and end of a day."""
        start = datetime.combine(day, time(0), tzinfo=self.zone)
        end = datetime.combine(day + timedelta(days=1), time(0), tzinfo=self.zone)
        return start.astimezone(timezone.utc), end.astimezone(timezone.utc)

    def booking(self, start: datetime) -> Slot:
        """The slot an appointment starting at `start` occupies."""
        return Slot(start, start + self.session)


def _first_candidate(day: date, now: datetime, hours: BusinessHours) -> Optional[datetime]:
    opening = hours.opening(day)
    local_now = now.astimezone(hours.zone)
    if day < local_now.date():
        return None
    if day > local_now.date() or local_now.hour < hours.start_hour:
        return opening
    if local_now.hour >= hours.end_hour:
        return None
    # Next half hour after the current minute, plus the notice period
    step_minutes = int(hours.step.total_seconds() // 60)
    minutes = -(-local_now.minute // step_minutes) * step_minutes
    rounded = local_now.replace(minute=0, second=0, microsecond=0) + timedelta(minutes=minutes)
    return rounded + hours.lead_time


def earliest_open_slot(
    day: date,
    booked: Iterable[Slot],
    now: datetime,
    hours: Optional[BusinessHours] = None,
) -> Optional[Slot]:
    """
    Find the earliest free session on a local calendar day.

    Candidates start at opening time (or, for today, the next half hour plus
    the notice period) and advance in steps; a candidate fits when it ends no
    later than closing time and overlaps no booked slot.

    Args:
        day: Local calendar date to search
        booked: Slots already taken
        now: Current time
        hours: Business hours (defaults to 9-17 Eastern, 50 minute sessions)

    Returns:
        The earliest free slot in UTC, or None when the day is full or over
    """
    hours = hours or BusinessHours()
    candidate = _first_candidate(day, now, hours)
    if candidate is None:
        return None
    taken = list(booked)
    closing = hours.closing(day)
    while candidate + hours.session <= closing:
        slot = hours.booking(candidate)
        if not any(slot.overlaps(other) for other in taken):
            return Slot(slot.start.astimezone(timezone.utc), slot.end.astimezone(timezone.utc))
        candidate += hours.step
    return None

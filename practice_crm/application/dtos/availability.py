"""Availability DTOs."""

from datetime import datetime
from typing import Optional

from practice_crm.application.dtos.base import DTO


class BookedSlot(DTO):
    """Time taken by a scheduled appointment."""

    start_time: datetime
    end_time: datetime


class AvailableSlot(DTO):
    """A free session offered to a contact."""

    start_time: datetime
    end_time: datetime
    display_time: str  # e.g. '10:30 AM EST'


class PullForwardSlots(DTO):
    """Earliest free session today and tomorrow, in the practice's zone."""

    today: Optional[AvailableSlot] = None
    tomorrow: Optional[AvailableSlot] = None

    def for_choice(self, choice: Optional[str]) -> Optional[AvailableSlot]:
        """Slot matching a 'today' or 'tomorrow' answer, if one is open."""
        if choice == "today":
            return self.today
        if choice == "tomorrow":
            return self.tomorrow
        return None

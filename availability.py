from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Set

from models import Booking, DateRange
from repository import BookingRepository

logger = logging.getLogger(__name__)


class AvailabilityEngine:
    """
    Decides whether a date range can be reserved against a room.

    Every check goes through DateRange.overlaps so creation, update and room
    filtering agree on what a conflict is. Checks always look at all of a
    room's bookings; bookings can be created in any temporal order.
    """

    def __init__(self, bookings: BookingRepository) -> None:
        self._bookings = bookings

    def overlapping(
        self,
        existing: Iterable[Booking],
        candidate: DateRange,
        exclude_booking_id: Optional[int] = None,
    ) -> List[Booking]:
        """Bookings from `existing` that overlap `candidate`, minus the excluded id."""
        return [
            b
            for b in existing
            if (exclude_booking_id is None or b.id != exclude_booking_id)
            and b.date_range.overlaps(candidate)
        ]

    def has_conflict(
        self,
        existing: Iterable[Booking],
        candidate: DateRange,
        exclude_booking_id: Optional[int] = None,
    ) -> bool:
        return bool(self.overlapping(existing, candidate, exclude_booking_id))

    def unavailable_room_ids(self, room_ids: Iterable[int], date_range: DateRange) -> Set[int]:
        """Ids among `room_ids` with at least one booking overlapping `date_range`."""
        wanted = set(room_ids)
        if not wanted:
            return set()

        booked = {
            b.room_id
            for b in self._bookings.find_all_by_room_ids(wanted)
            if b.date_range.overlaps(date_range)
        }
        logger.debug("Rooms unavailable in %s: %s", date_range, sorted(booked))
        return booked

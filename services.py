from __future__ import annotations

import logging
import re
from dataclasses import replace
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Optional

from availability import AvailabilityEngine
from errors import (
    ConflictError,
    NotFoundError,
    PastDateError,
    TemporalOrderError,
    ValidationError,
)
from models import (
    Booking,
    BookingOut,
    CreateRoomIn,
    DateRange,
    Room,
    RoomOut,
    RoomSize,
    UpdateRoomIn,
    booking_to_out,
    room_to_out,
)
from notifications import BookingEventPublisher
from repository import BookingRepository, RoomCriteria, RoomLocks, RoomRepository

logger = logging.getLogger(__name__)

ROOM_NAME_PATTERN = re.compile(r"[a-zA-Z]*")
ROOM_NAME_MIN_LENGTH = 4
ROOM_NAME_MAX_LENGTH = 20


class BookingService:
    """
    Creates, updates and deletes bookings.

    Writes for one room run under that room's lock from the first read to the
    final save, so no other writer can slip a conflicting booking in between
    the availability check and the insert.
    """

    def __init__(
        self,
        bookings: BookingRepository,
        rooms: RoomRepository,
        availability: AvailabilityEngine,
        locks: RoomLocks,
        publisher: Optional[BookingEventPublisher] = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._bookings = bookings
        self._rooms = rooms
        self._availability = availability
        self._locks = locks
        self._publisher = publisher
        self._today = today

    def _check_dates(self, candidate: DateRange) -> None:
        today = self._today()

        # Rule: neither date may be in the past; checked before ordering
        if candidate.start < today or candidate.end < today:
            raise PastDateError(candidate.start, candidate.end)

        # Rule: end may equal start (single day) but not precede it
        if candidate.end < candidate.start:
            raise TemporalOrderError(candidate.start, candidate.end)

    def create_booking(self, room_id: int, candidate: DateRange) -> BookingOut:
        self._check_dates(candidate)
        self._require_room(room_id)

        with self._locks.for_room(room_id):
            self._require_room(room_id, forget_lock=True)

            existing = self._bookings.find_all_by_room_id(room_id)
            if self._availability.has_conflict(existing, candidate):
                raise ConflictError(room_id, candidate.start, candidate.end)

            booking = self._bookings.save(
                Booking(room_id=room_id, start_date=candidate.start, end_date=candidate.end)
            )

        logger.info("Created booking %s for room %s (%s)", booking.id, room_id, candidate)
        out = booking_to_out(booking)
        self._publish(out)
        return out

    def _publish(self, booking: BookingOut) -> None:
        if self._publisher is None:
            return
        # the booking is committed at this point
        try:
            self._publisher.publish(booking)
        except Exception:
            logger.exception("Could not hand off booking-created event for booking %s", booking.id)

    def _require_room(self, room_id: int, forget_lock: bool = False) -> None:
        if self._rooms.find_by_id(room_id) is None:
            # a lock taken for a room deleted meanwhile must not linger
            if forget_lock:
                self._locks.discard(room_id)
            raise NotFoundError("Room", room_id)

    def update_booking(self, booking_id: int, candidate: DateRange) -> BookingOut:
        booking = self._bookings.find_by_id(booking_id)
        if booking is None:
            raise NotFoundError("Booking", booking_id)

        self._check_dates(candidate)

        with self._locks.for_room(booking.room_id):
            # re-read under the lock: a concurrent delete may have won
            booking = self._bookings.find_by_id(booking_id)
            if booking is None:
                raise NotFoundError("Booking", booking_id)

            room = self._rooms.find_by_id(booking.room_id)
            if room is None:
                self._locks.discard(booking.room_id)
                raise NotFoundError("Room", booking.room_id)

            # the booking's own stored range never blocks it
            conflicts = self._availability.overlapping(
                room.bookings, candidate, exclude_booking_id=booking_id
            )
            if conflicts:
                logger.info(
                    "Booking %s cannot move to %s, overlaps %s",
                    booking_id,
                    candidate,
                    [b.id for b in conflicts],
                )
                raise ConflictError(booking.room_id, candidate.start, candidate.end)

            updated = self._bookings.save(
                replace(booking, start_date=candidate.start, end_date=candidate.end)
            )

        logger.info("Updated booking %s to %s", booking_id, candidate)
        return booking_to_out(updated)

    def delete_booking(self, booking_id: int) -> None:
        # Cancellation is a hard delete.
        booking = self._bookings.find_by_id(booking_id)
        if booking is None:
            raise NotFoundError("Booking", booking_id)

        with self._locks.for_room(booking.room_id):
            self._bookings.delete(booking)
            if self._rooms.find_by_id(booking.room_id) is None:
                self._locks.discard(booking.room_id)
        logger.info("Deleted booking %s of room %s", booking_id, booking.room_id)

    def get_booking(self, booking_id: int) -> BookingOut:
        booking = self._bookings.find_by_id(booking_id)
        if booking is None:
            raise NotFoundError("Booking", booking_id)
        return booking_to_out(booking)

    def list_bookings_for_room(self, room_id: int) -> List[BookingOut]:
        items = self._bookings.find_all_by_room_id(room_id)
        items.sort(key=lambda b: (b.start_date, b.id))
        return [booking_to_out(b) for b in items]


def validate_room_name(name: Optional[str]) -> List[Dict[str, Any]]:
    entries: List[Dict[str, Any]] = []
    if name is None:
        entries.append({"field_name": "name", "message": "must not be null", "invalid_value": None})
        return entries
    if not ROOM_NAME_MIN_LENGTH <= len(name) <= ROOM_NAME_MAX_LENGTH:
        entries.append(
            {
                "field_name": "name",
                "message": f"size must be between {ROOM_NAME_MIN_LENGTH} and {ROOM_NAME_MAX_LENGTH}",
                "invalid_value": name,
            }
        )
    if ROOM_NAME_PATTERN.fullmatch(name) is None:
        entries.append(
            {
                "field_name": "name",
                "message": f'must match "{ROOM_NAME_PATTERN.pattern}"',
                "invalid_value": name,
            }
        )
    return entries


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    return value


class RoomService:
    """Room CRUD plus the filter used by GET /rooms/filter."""

    def __init__(
        self,
        rooms: RoomRepository,
        availability: AvailabilityEngine,
        locks: RoomLocks,
    ) -> None:
        self._rooms = rooms
        self._availability = availability
        self._locks = locks

    def create_room(self, payload: CreateRoomIn) -> RoomOut:
        entries = validate_room_name(payload.name)
        if entries:
            raise ValidationError(entries)

        room = self._rooms.save(
            Room(
                name=payload.name,
                description=payload.description,
                has_minibar=payload.has_minibar,
                room_size=payload.room_size,
            )
        )
        logger.info("Created room %s (%s)", room.id, room.name)
        return room_to_out(room)

    def get_room(self, room_id: int) -> RoomOut:
        room = self._rooms.find_by_id(room_id)
        if room is None:
            raise NotFoundError("Room", room_id)
        return room_to_out(room)

    def list_rooms(self) -> List[RoomOut]:
        return [room_to_out(r) for r in self._rooms.find_all()]

    def update_room(self, payload: UpdateRoomIn) -> RoomOut:
        logger.debug("Edit room with id %s", payload.id)

        if self._rooms.find_by_id(payload.id) is None:
            raise NotFoundError("Room", payload.id)

        with self._locks.for_room(payload.id):
            room = self._rooms.find_by_id(payload.id)
            if room is None:
                self._locks.discard(payload.id)
                raise NotFoundError("Room", payload.id)

            # Only supplied fields overwrite the stored ones.
            changes: Dict[str, Any] = {}
            if payload.name is not None:
                entries = validate_room_name(payload.name)
                if entries:
                    raise ValidationError(entries)
                changes["name"] = payload.name
            if payload.description is not None:
                changes["description"] = payload.description
            if payload.room_size is not None:
                changes["room_size"] = payload.room_size
            if payload.has_minibar is not None:
                changes["has_minibar"] = payload.has_minibar

            updated = self._rooms.save(replace(room, **changes))

        logger.debug("Updated room: %s", updated)
        return room_to_out(updated)

    def delete_room(self, room_id: int) -> None:
        if self._rooms.find_by_id(room_id) is None:
            raise NotFoundError("Room", room_id)

        with self._locks.for_room(room_id):
            if self._rooms.find_by_id(room_id) is None:
                self._locks.discard(room_id)
                raise NotFoundError("Room", room_id)
            # removes the room's bookings too
            self._rooms.delete_by_id(room_id)
            self._locks.discard(room_id)
        logger.info("Deleted room %s", room_id)

    def filter_rooms(
        self,
        ids: Optional[Iterable[int]] = None,
        name: Optional[str] = None,
        description: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        has_minibar: Optional[bool] = None,
        room_size: Optional[RoomSize] = None,
    ) -> List[RoomOut]:
        criteria = RoomCriteria(
            ids=frozenset(ids) if ids is not None else None,
            name_like=_blank_to_none(name),
            description_like=_blank_to_none(description),
            has_minibar=has_minibar,
            room_size=room_size,
        )
        logger.debug("Room criteria: %s", criteria)

        rooms = self._rooms.find_all(criteria)
        logger.debug("Filtered size after store lookup: %s", len(rooms))

        rooms = self._apply_date_range(rooms, start_date, end_date)
        logger.debug("Filtered size after date range: %s", len(rooms))

        return [room_to_out(r) for r in rooms]

    def _apply_date_range(
        self, rooms: List[Room], start_date: Optional[date], end_date: Optional[date]
    ) -> List[Room]:
        # a one-sided range is no date filter at all
        if start_date is None or end_date is None:
            logger.debug("Start and/or end date missing, skipping availability filter")
            return rooms

        unavailable = self._availability.unavailable_room_ids(
            [r.id for r in rooms], DateRange(start_date, end_date)
        )
        return [r for r in rooms if r.id not in unavailable]

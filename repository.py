from __future__ import annotations

import itertools
from collections import defaultdict
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from threading import Lock
from typing import Dict, FrozenSet, Iterable, List, Optional, Protocol

from models import Booking, Room, RoomSize


def _now() -> datetime:
    return datetime.now(timezone.utc)


# -----------------------------
# Store contracts
# -----------------------------
class BookingRepository(Protocol):
    def find_by_id(self, booking_id: int) -> Optional[Booking]: ...

    def find_all_by_room_id(self, room_id: int) -> List[Booking]: ...

    def find_all_by_room_ids(self, room_ids: Iterable[int]) -> List[Booking]: ...

    def save(self, booking: Booking) -> Booking: ...

    def delete(self, booking: Booking) -> None: ...

    def delete_all_by_room_id(self, room_id: int) -> int: ...


@dataclass(frozen=True)
class RoomCriteria:
    """Conjunctive store-level filter. A None field does not narrow the result."""

    ids: Optional[FrozenSet[int]] = None
    name_like: Optional[str] = None
    description_like: Optional[str] = None
    has_minibar: Optional[bool] = None
    room_size: Optional[RoomSize] = None

    def matches(self, room: Room) -> bool:
        if self.ids is not None and room.id not in self.ids:
            return False
        if self.name_like is not None and self.name_like not in room.name:
            return False
        if self.description_like is not None and (
            room.description is None or self.description_like not in room.description
        ):
            return False
        if self.has_minibar is not None and room.has_minibar != self.has_minibar:
            return False
        if self.room_size is not None and room.room_size != self.room_size:
            return False
        return True


class RoomRepository(Protocol):
    def find_by_id(self, room_id: int) -> Optional[Room]: ...

    def find_all(self, criteria: Optional[RoomCriteria] = None) -> List[Room]: ...

    def save(self, room: Room) -> Room: ...

    def delete_by_id(self, room_id: int) -> None: ...


# -----------------------------
# In-memory stores (storage + locking)
# -----------------------------
class InMemoryBookingRepository:
    """
    Bookings keyed by id. Callers always get copies, so nothing outside the
    store changes a persisted row without going through save().
    """

    def __init__(self) -> None:
        self._items: Dict[int, Booking] = {}
        self._ids = itertools.count(1)
        self._lock = Lock()

    def find_by_id(self, booking_id: int) -> Optional[Booking]:
        with self._lock:
            booking = self._items.get(booking_id)
            return replace(booking) if booking is not None else None

    def find_all_by_room_id(self, room_id: int) -> List[Booking]:
        with self._lock:
            return [replace(b) for b in self._items.values() if b.room_id == room_id]

    def find_all_by_room_ids(self, room_ids: Iterable[int]) -> List[Booking]:
        wanted = set(room_ids)
        if not wanted:
            return []
        with self._lock:
            return [replace(b) for b in self._items.values() if b.room_id in wanted]

    def save(self, booking: Booking) -> Booking:
        with self._lock:
            now = _now()
            if booking.id is None:
                stored = replace(booking, id=next(self._ids), created_at=now, updated_at=now)
            else:
                previous = self._items.get(booking.id)
                created_at = previous.created_at if previous is not None else now
                stored = replace(booking, created_at=created_at, updated_at=now)
            self._items[stored.id] = stored
            return replace(stored)

    def delete(self, booking: Booking) -> None:
        with self._lock:
            self._items.pop(booking.id, None)

    def delete_all_by_room_id(self, room_id: int) -> int:
        with self._lock:
            doomed = [bid for bid, b in self._items.items() if b.room_id == room_id]
            for booking_id in doomed:
                del self._items[booking_id]
            return len(doomed)


class InMemoryRoomRepository:
    """
    Rooms keyed by id. A room owns its bookings: reads embed the room's
    current bookings and delete_by_id removes them along with the room.
    """

    def __init__(self, bookings: BookingRepository) -> None:
        self._items: Dict[int, Room] = {}
        self._ids = itertools.count(1)
        self._lock = Lock()
        self._bookings = bookings

    def _with_bookings(self, room: Room) -> Room:
        return replace(room, bookings=self._bookings.find_all_by_room_id(room.id))

    def find_by_id(self, room_id: int) -> Optional[Room]:
        with self._lock:
            room = self._items.get(room_id)
        return self._with_bookings(room) if room is not None else None

    def find_all(self, criteria: Optional[RoomCriteria] = None) -> List[Room]:
        with self._lock:
            rooms = list(self._items.values())
        if criteria is not None:
            rooms = [r for r in rooms if criteria.matches(r)]
        return [self._with_bookings(r) for r in rooms]

    def save(self, room: Room) -> Room:
        with self._lock:
            now = _now()
            if room.id is None:
                stored = replace(room, id=next(self._ids), bookings=[], created_at=now, updated_at=now)
            else:
                previous = self._items.get(room.id)
                created_at = previous.created_at if previous is not None else now
                stored = replace(room, bookings=[], created_at=created_at, updated_at=now)
            self._items[stored.id] = stored
        return self._with_bookings(stored)

    def delete_by_id(self, room_id: int) -> None:
        with self._lock:
            self._items.pop(room_id, None)
        self._bookings.delete_all_by_room_id(room_id)


class RoomLocks:
    """
    One mutex per room id. Booking writes hold their room's lock across the
    whole read-check-write, which serializes them per room while different
    rooms proceed in parallel.
    """

    def __init__(self) -> None:
        self._locks: Dict[int, Lock] = defaultdict(Lock)
        self._guard = Lock()

    def for_room(self, room_id: int) -> Lock:
        with self._guard:
            return self._locks[room_id]

    def discard(self, room_id: int) -> None:
        """Forget the lock of a room that no longer exists. Room ids are never reused."""
        with self._guard:
            self._locks.pop(room_id, None)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# -----------------------------
# Shared date helpers
# -----------------------------
def ranges_overlap(a_start: date, a_end: date, b_start: date, b_end: date) -> bool:
    """
    Closed interval overlap: [start, end]
    Overlap iff a_start <= b_end AND a_end >= b_start.
    Touching days count (end == other.start IS overlap).
    """
    return a_start <= b_end and a_end >= b_start


@dataclass(frozen=True)
class DateRange:
    """Inclusive start/end pair. Ordering is checked by the booking service, not here."""

    start: date
    end: date

    @classmethod
    def of(cls, booking: Booking) -> DateRange:
        return cls(booking.start_date, booking.end_date)

    def overlaps(self, other: DateRange) -> bool:
        return ranges_overlap(self.start, self.end, other.start, other.end)

    def __str__(self) -> str:
        return f"{self.start.isoformat()}..{self.end.isoformat()}"


# -----------------------------
# Domain model
# -----------------------------
class RoomSize(str, Enum):
    SINGLE = "SINGLE"
    DOUBLE = "DOUBLE"
    SUITE = "SUITE"


@dataclass
class Booking:
    room_id: int
    start_date: date
    end_date: date
    id: Optional[int] = None  # assigned by the store
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def date_range(self) -> DateRange:
        return DateRange.of(self)


@dataclass
class Room:
    name: str
    room_size: RoomSize
    has_minibar: bool
    description: Optional[str] = None
    id: Optional[int] = None  # assigned by the store
    # owned bookings, kept in sync by the room repository
    bookings: List[Booking] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# -----------------------------
# API models (transport layer)
# -----------------------------
class CamelModel(BaseModel):
    # camelCase on the wire (startDate, hasMinibar, ...), snake_case in Python
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateBookingIn(CamelModel):
    start_date: date
    end_date: date


class UpdateBookingIn(CamelModel):
    id: int
    start_date: date
    end_date: date


class BookingOut(CamelModel):
    id: int
    start_date: date
    end_date: date


class CreateRoomIn(CamelModel):
    name: str
    description: Optional[str] = None
    has_minibar: bool
    room_size: RoomSize


class UpdateRoomIn(CamelModel):
    id: int
    name: Optional[str] = None
    description: Optional[str] = None
    has_minibar: Optional[bool] = None
    room_size: Optional[RoomSize] = None


class RoomOut(CamelModel):
    id: int
    name: str
    description: Optional[str] = None
    has_minibar: bool
    room_size: RoomSize
    bookings: List[BookingOut] = Field(default_factory=list)


class ApiErrorEntry(CamelModel):
    field_name: Optional[str] = None
    message: str
    invalid_value: Any = None


class ApiError(CamelModel):
    path: str
    message: str
    status_code: int
    timestamp: datetime
    entries: List[ApiErrorEntry] = Field(default_factory=list)


def booking_to_out(booking: Booking) -> BookingOut:
    return BookingOut(id=booking.id, start_date=booking.start_date, end_date=booking.end_date)


def room_to_out(room: Room) -> RoomOut:
    return RoomOut(
        id=room.id,
        name=room.name,
        description=room.description,
        has_minibar=room.has_minibar,
        room_size=room.room_size,
        bookings=[booking_to_out(b) for b in room.bookings],
    )

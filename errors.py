from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional


class HotelError(Exception):
    """Base class for domain/service errors."""


class PastDateError(HotelError):
    def __init__(self, start: date, end: date) -> None:
        super().__init__(f"Start date {start} or end date {end} is before now.")
        self.start = start
        self.end = end


class TemporalOrderError(HotelError):
    def __init__(self, start: date, end: date) -> None:
        super().__init__(f"End date {end} is before start date {start}.")
        self.start = start
        self.end = end


class ConflictError(HotelError):
    """The room is already booked for (part of) the requested range."""

    def __init__(self, room_id: int, start: date, end: date) -> None:
        super().__init__(
            f"Room with id {room_id} is booked out of start date {start} and end date {end}."
        )
        self.room_id = room_id
        self.start = start
        self.end = end


class NotFoundError(HotelError):
    def __init__(self, entity: str, entity_id: Any) -> None:
        super().__init__(f"{entity} with id {entity_id} not found.")
        self.entity = entity
        self.entity_id = entity_id


class ValidationError(HotelError):
    """
    Room field constraints violated.
    `entries` carries one dict per offending field: field_name, message, invalid_value.
    """

    def __init__(self, entries: List[Dict[str, Any]], message: Optional[str] = None) -> None:
        super().__init__(message or "Violation against constraints")
        self.entries = entries

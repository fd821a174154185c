from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, FastAPI, Path, Query, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from errors import (
    ConflictError,
    HotelError,
    NotFoundError,
    PastDateError,
    TemporalOrderError,
    ValidationError,
)
from models import (
    ApiError,
    ApiErrorEntry,
    BookingOut,
    CreateBookingIn,
    CreateRoomIn,
    DateRange,
    RoomOut,
    RoomSize,
    UpdateBookingIn,
    UpdateRoomIn,
)
from services import BookingService, RoomService

logger = logging.getLogger(__name__)


def create_room_router(service: RoomService) -> APIRouter:
    router = APIRouter(prefix="/rooms", tags=["rooms"])

    @router.post("", response_model=RoomOut, status_code=status.HTTP_201_CREATED)
    def create_room(payload: CreateRoomIn) -> RoomOut:
        return service.create_room(payload)

    @router.get("", response_model=List[RoomOut])
    def get_all_rooms() -> List[RoomOut]:
        return service.list_rooms()

    # declared before /{room_id} so "filter" is not read as an id
    @router.get("/filter", response_model=List[RoomOut])
    def get_filtered_rooms(
        ids: Optional[List[int]] = Query(None),
        name: Optional[str] = Query(None),
        description: Optional[str] = Query(None),
        start_date: Optional[date] = Query(None, alias="startDate"),
        end_date: Optional[date] = Query(None, alias="endDate"),
        has_minibar: Optional[bool] = Query(None, alias="hasMinibar"),
        room_size: Optional[RoomSize] = Query(None, alias="roomSize"),
    ) -> List[RoomOut]:
        return service.filter_rooms(
            ids=ids,
            name=name,
            description=description,
            start_date=start_date,
            end_date=end_date,
            has_minibar=has_minibar,
            room_size=room_size,
        )

    @router.get("/{room_id}", response_model=RoomOut)
    def get_room(room_id: int = Path(...)) -> RoomOut:
        return service.get_room(room_id)

    @router.put("", response_model=RoomOut)
    def update_room(payload: UpdateRoomIn) -> RoomOut:
        return service.update_room(payload)

    @router.delete("/{room_id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_room(room_id: int = Path(...)) -> None:
        service.delete_room(room_id)
        return None

    return router


def create_booking_router(service: BookingService) -> APIRouter:
    router = APIRouter(prefix="/bookings", tags=["bookings"])

    @router.post("/{room_id}", response_model=BookingOut, status_code=status.HTTP_201_CREATED)
    def create_booking(payload: CreateBookingIn, room_id: int = Path(...)) -> BookingOut:
        return service.create_booking(room_id, DateRange(payload.start_date, payload.end_date))

    @router.get("", response_model=List[BookingOut])
    def get_bookings_by_room_id(room_id: int = Query(..., alias="roomId")) -> List[BookingOut]:
        return service.list_bookings_for_room(room_id)

    @router.get("/{booking_id}", response_model=BookingOut)
    def get_booking(booking_id: int = Path(...)) -> BookingOut:
        return service.get_booking(booking_id)

    @router.put("", response_model=BookingOut)
    def update_booking(payload: UpdateBookingIn) -> BookingOut:
        return service.update_booking(payload.id, DateRange(payload.start_date, payload.end_date))

    @router.delete("/{booking_id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_booking(booking_id: int = Path(...)) -> None:
        service.delete_booking(booking_id)
        return None

    return router


# -----------------------------
# Error mapping
# -----------------------------
_STATUS_BY_ERROR = {
    PastDateError: status.HTTP_400_BAD_REQUEST,
    TemporalOrderError: status.HTTP_400_BAD_REQUEST,
    ValidationError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
}


def _error_response(
    request: Request,
    status_code: int,
    message: str,
    entries: Optional[List[Dict[str, Any]]] = None,
) -> JSONResponse:
    body = ApiError(
        path=request.url.path,
        message=message,
        status_code=status_code,
        timestamp=datetime.now(timezone.utc),
        entries=[ApiErrorEntry(**e) for e in entries or []],
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(by_alias=True, mode="json"))


async def handle_hotel_error(request: Request, exc: HotelError) -> JSONResponse:
    status_code = _STATUS_BY_ERROR.get(type(exc), status.HTTP_400_BAD_REQUEST)
    logger.warning("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc)
    entries = exc.entries if isinstance(exc, ValidationError) else None
    return _error_response(request, status_code, str(exc), entries)


def _echo_value(value: Any) -> Any:
    # request bodies arrive as raw bytes when they are not valid JSON
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    try:
        return jsonable_encoder(value)
    except (TypeError, ValueError):
        return repr(value)


async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    entries = []
    for error in exc.errors():
        # drop the leading "body"/"query"/"path" marker
        loc = [str(part) for part in error.get("loc", ())[1:]]
        entries.append(
            {
                "field_name": ".".join(loc) or None,
                "message": error.get("msg", ""),
                "invalid_value": _echo_value(error.get("input")),
            }
        )
    logger.warning("Rejected request to %s %s: %s", request.method, request.url.path, entries)
    return _error_response(
        request,
        status.HTTP_400_BAD_REQUEST,
        "Malformed JSON request or wrong object type or object value.",
        entries,
    )


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(HotelError, handle_hotel_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)

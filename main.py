from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import create_booking_router, create_room_router, install_error_handlers
from availability import AvailabilityEngine
from housekeeping import DailyTrigger, HousekeepingService
from notifications import BookingEventPublisher, BoundedDispatcher, Notifier, SmsNotificationListener
from repository import InMemoryBookingRepository, InMemoryRoomRepository, RoomLocks
from services import BookingService, RoomService
from settings import Settings, configure_logging, load_settings


@dataclass
class Services:
    bookings: InMemoryBookingRepository
    rooms: InMemoryRoomRepository
    locks: RoomLocks
    availability: AvailabilityEngine
    booking_service: BookingService
    room_service: RoomService
    housekeeping: HousekeepingService
    notifier_pool: BoundedDispatcher
    housekeeper_pool: BoundedDispatcher
    housekeeping_trigger: DailyTrigger

    def shutdown(self) -> None:
        self.housekeeping_trigger.cancel()
        self.notifier_pool.shutdown(wait=False)
        self.housekeeper_pool.shutdown(wait=False)


def build_services(
    settings: Settings,
    notifier: Optional[Notifier] = None,
    today: Callable[[], date] = date.today,
) -> Services:
    # stores and the availability engine first, then everything that uses them
    bookings = InMemoryBookingRepository()
    rooms = InMemoryRoomRepository(bookings)
    locks = RoomLocks()
    availability = AvailabilityEngine(bookings)

    notifier_pool = BoundedDispatcher(
        "Notifier",
        max_workers=settings.notifier_max_workers,
        queue_size=settings.notifier_queue_size,
    )
    publisher = BookingEventPublisher(notifier or SmsNotificationListener(), notifier_pool)

    housekeeper_pool = BoundedDispatcher(
        "Housekeeper",
        max_workers=settings.housekeeping_max_workers,
        queue_size=1,
    )

    housekeeping = HousekeepingService(rooms, housekeeper_pool, settings.housekeeping_duration_seconds)

    return Services(
        bookings=bookings,
        rooms=rooms,
        locks=locks,
        availability=availability,
        booking_service=BookingService(bookings, rooms, availability, locks, publisher, today),
        room_service=RoomService(rooms, availability, locks),
        housekeeping=housekeeping,
        notifier_pool=notifier_pool,
        housekeeper_pool=housekeeper_pool,
        housekeeping_trigger=DailyTrigger(settings.housekeeping_at, housekeeping.tidy_all),
    )


def create_app(settings: Optional[Settings] = None, services: Optional[Services] = None) -> FastAPI:
    settings = settings or Settings()
    services = services or build_services(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        services.housekeeping_trigger.start()
        yield
        services.shutdown()

    app = FastAPI(title="Hotel Manager API", version="1.0.0", lifespan=lifespan)
    app.state.services = services

    app.include_router(create_room_router(services.room_service), prefix=settings.api_prefix)
    app.include_router(create_booking_router(services.booking_service), prefix=settings.api_prefix)
    install_error_handlers(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_allow_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )
    return app


_settings = load_settings()
configure_logging(_settings.log_level)
app = create_app(_settings)


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)

from datetime import date, timedelta
from threading import Event
from typing import List

import pytest
from fastapi.testclient import TestClient

from main import build_services, create_app
from models import BookingOut, CreateRoomIn, RoomSize
from settings import Settings

TODAY = date(2030, 1, 10)


def days(n: int) -> date:
    """TODAY shifted by n days."""
    return TODAY + timedelta(days=n)


class RecordingNotifier:
    def __init__(self) -> None:
        self.received: List[BookingOut] = []
        self.called = Event()

    def notify(self, booking: BookingOut) -> None:
        self.received.append(booking)
        self.called.set()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def services(notifier):
    built = build_services(Settings(), notifier=notifier, today=lambda: TODAY)
    yield built
    built.shutdown()


@pytest.fixture
def booking_service(services):
    return services.booking_service


@pytest.fixture
def room_service(services):
    return services.room_service


@pytest.fixture
def room(room_service):
    return room_service.create_room(
        CreateRoomIn(name="Seaview", description="Top floor", has_minibar=True, room_size=RoomSize.DOUBLE)
    )


@pytest.fixture
def client(services):
    return TestClient(create_app(Settings(), services))

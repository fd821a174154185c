from datetime import date

import pytest

from availability import AvailabilityEngine
from models import Booking, DateRange
from repository import InMemoryBookingRepository


def book(repo, room_id, start, end):
    return repo.save(Booking(room_id=room_id, start_date=start, end_date=end))


@pytest.fixture
def repo():
    return InMemoryBookingRepository()


@pytest.fixture
def engine(repo):
    return AvailabilityEngine(repo)


def test_no_conflict_on_empty_room(engine):
    assert not engine.has_conflict([], DateRange(date(2030, 1, 1), date(2030, 1, 2)))


def test_conflict_found_regardless_of_booking_order(repo, engine):
    # later booking stored first
    book(repo, 1, date(2030, 3, 1), date(2030, 3, 5))
    book(repo, 1, date(2030, 1, 1), date(2030, 1, 5))

    existing = repo.find_all_by_room_id(1)
    assert engine.has_conflict(existing, DateRange(date(2030, 1, 5), date(2030, 1, 6)))
    assert engine.has_conflict(existing, DateRange(date(2030, 2, 20), date(2030, 3, 1)))
    assert not engine.has_conflict(existing, DateRange(date(2030, 1, 6), date(2030, 2, 28)))


def test_excluded_booking_is_ignored(repo, engine):
    own = book(repo, 1, date(2030, 1, 1), date(2030, 1, 5))
    other = book(repo, 1, date(2030, 1, 10), date(2030, 1, 12))
    existing = repo.find_all_by_room_id(1)

    candidate = DateRange(date(2030, 1, 2), date(2030, 1, 4))
    assert engine.has_conflict(existing, candidate)
    assert not engine.has_conflict(existing, candidate, exclude_booking_id=own.id)

    wider = DateRange(date(2030, 1, 2), date(2030, 1, 10))
    assert [b.id for b in engine.overlapping(existing, wider, exclude_booking_id=own.id)] == [other.id]


def test_unavailable_room_ids(repo, engine):
    book(repo, 1, date(2030, 1, 1), date(2030, 1, 5))
    book(repo, 2, date(2030, 1, 10), date(2030, 1, 12))
    book(repo, 3, date(2030, 1, 4), date(2030, 1, 4))

    assert engine.unavailable_room_ids({1, 2, 3, 4}, DateRange(date(2030, 1, 4), date(2030, 1, 9))) == {1, 3}


def test_unavailable_room_ids_only_looks_at_requested_rooms(repo, engine):
    book(repo, 1, date(2030, 1, 1), date(2030, 1, 5))
    book(repo, 2, date(2030, 1, 1), date(2030, 1, 5))

    assert engine.unavailable_room_ids([2], DateRange(date(2030, 1, 1), date(2030, 1, 1))) == {2}


def test_unavailable_room_ids_empty_input_skips_store():
    class ExplodingRepository:
        def find_all_by_room_ids(self, room_ids):
            raise AssertionError("store must not be queried for an empty id set")

    engine = AvailabilityEngine(ExplodingRepository())
    assert engine.unavailable_room_ids([], DateRange(date(2030, 1, 1), date(2030, 1, 2))) == set()

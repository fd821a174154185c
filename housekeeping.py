from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timedelta
from datetime import time as time_of_day
from typing import Callable, NamedTuple, Optional

from models import Room
from notifications import BoundedDispatcher
from repository import RoomRepository

logger = logging.getLogger(__name__)


class HousekeepingRun(NamedTuple):
    accepted: int
    dropped: int


class HousekeepingService:
    """
    Daily room tidying. DailyTrigger calls tidy_all() once a day; every room
    is handed to the housekeeper pool and tidied off the caller's thread.
    Booking state is never touched.

    The pool is bounded: with N workers and a one-slot queue at most N + 1
    rooms are accepted per run while earlier rooms are still being tidied.
    The rest are dropped for that day and reported in the returned run.
    """

    def __init__(
        self,
        rooms: RoomRepository,
        dispatcher: BoundedDispatcher,
        duration_seconds: float = 10.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._rooms = rooms
        self._dispatcher = dispatcher
        self._duration = duration_seconds
        self._sleep = sleep

    def tidy_room(self, room: Room) -> None:
        worker = threading.current_thread().name
        logger.debug("%s is cleaning the room with id %s, name %s", worker, room.id, room.name)
        self._sleep(self._duration)
        logger.debug("%s has finished cleaning the room with id %s, name %s", worker, room.id, room.name)

    def tidy_all(self) -> HousekeepingRun:
        """Queue every room for tidying and report how many the pool took."""
        logger.debug("Housekeeping run started on %s", threading.current_thread().name)
        accepted = dropped = 0
        for room in self._rooms.find_all():
            if self._dispatcher.submit(self.tidy_room, room):
                accepted += 1
            else:
                dropped += 1
        if dropped:
            logger.warning("Housekeeping run skipped %s of %s rooms", dropped, accepted + dropped)
        return HousekeepingRun(accepted, dropped)


class DailyTrigger:
    """Runs an action every day at a fixed local time on a daemon timer thread."""

    def __init__(
        self,
        at: time_of_day,
        action: Callable[[], object],
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.at = at
        self._action = action
        self._now = now
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()
        self._cancelled = False

    def next_run(self) -> datetime:
        current = self._now()
        candidate = datetime.combine(current.date(), self.at)
        if candidate <= current:
            candidate += timedelta(days=1)
        return candidate

    def start(self) -> None:
        with self._lock:
            self._cancelled = False
            self._schedule()

    def cancel(self) -> None:
        with self._lock:
            self._cancelled = True
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _schedule(self) -> None:
        when = self.next_run()
        delay = (when - self._now()).total_seconds()
        self._timer = threading.Timer(max(delay, 0.0), self._fire)
        self._timer.name = "DailyTrigger"
        self._timer.daemon = True
        self._timer.start()
        logger.info("Next housekeeping run at %s", when.isoformat(timespec="minutes"))

    def _fire(self) -> None:
        try:
            self._action()
        except Exception:
            logger.exception("Scheduled housekeeping run failed")
        with self._lock:
            if not self._cancelled:
                self._schedule()

from __future__ import annotations

import logging
import queue
from threading import Event, Thread
from typing import Any, Callable, List, Protocol

from models import BookingOut

logger = logging.getLogger(__name__)

_STOP = object()


class Notifier(Protocol):
    def notify(self, booking: BookingOut) -> None: ...


class SmsNotificationListener:
    """Stand-in for an SMS gateway: logs the booking that would be confirmed."""

    def notify(self, booking: BookingOut) -> None:
        logger.info(
            "A booking has been created! Booking: %s - Send SMS as verification to user.",
            booking.model_dump(by_alias=True, mode="json"),
        )


class BoundedDispatcher:
    """
    Small fixed pool of worker threads fed through a bounded queue.

    submit() never blocks: when every worker is busy and the queue is full the
    task is dropped and submit() returns False. Exceptions raised by a task are
    logged and do not reach the submitter.
    """

    def __init__(self, name: str, max_workers: int = 3, queue_size: int = 1) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        if queue_size < 1:
            raise ValueError("queue_size must be at least 1")
        self.name = name
        self._queue: "queue.Queue[Any]" = queue.Queue(maxsize=queue_size)
        self._workers: List[Thread] = []
        self._closed = False
        self._abandon = Event()
        for i in range(max_workers):
            worker = Thread(target=self._run, name=f"{name}-{i + 1}", daemon=True)
            worker.start()
            self._workers.append(worker)

    def submit(self, fn: Callable[..., Any], *args: Any) -> bool:
        if self._closed:
            logger.warning("%s is shut down, dropping %s", self.name, getattr(fn, "__qualname__", fn))
            return False
        try:
            self._queue.put_nowait((fn, args))
        except queue.Full:
            logger.warning("%s is saturated, dropping %s", self.name, getattr(fn, "__qualname__", fn))
            return False
        return True

    def join(self) -> None:
        """Block until every accepted task has finished."""
        self._queue.join()

    def shutdown(self, wait: bool = True) -> None:
        """
        Stop the workers. With wait=True queued tasks are drained first and
        the call returns once every worker has exited. With wait=False the
        call returns at once; busy workers exit after their current task and
        tasks still queued are abandoned.
        """
        if self._closed:
            return
        self._closed = True
        if wait:
            for _ in self._workers:
                self._queue.put(_STOP)
            for worker in self._workers:
                worker.join()
            return

        self._abandon.set()
        for _ in self._workers:
            if not self._offer_stop():
                break

    def _offer_stop(self) -> bool:
        try:
            self._queue.put_nowait(_STOP)
        except queue.Full:
            return False
        return True

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    break
                fn, args = item
                try:
                    fn(*args)
                except Exception:
                    logger.exception("Task %s failed on %s", getattr(fn, "__qualname__", fn), self.name)
            finally:
                self._queue.task_done()
            if self._abandon.is_set():
                break
        # wake the next idle worker that never got its own stop marker
        if self._abandon.is_set():
            self._offer_stop()


class BookingEventPublisher:
    """Hands booking-created events to the notifier without waiting for it."""

    def __init__(self, notifier: Notifier, dispatcher: BoundedDispatcher) -> None:
        self._notifier = notifier
        self._dispatcher = dispatcher

    def publish(self, booking: BookingOut) -> bool:
        accepted = self._dispatcher.submit(self._notifier.notify, booking)
        if not accepted:
            logger.warning("Booking-created event for booking %s was dropped", booking.id)
        return accepted

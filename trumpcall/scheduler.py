"""Deferred callbacks for time-driven room transitions."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, List

logger = logging.getLogger(__name__)

Callback = Callable[[], None]


class Scheduler:
    """Run a callback after a delay without blocking the caller."""

    def call_later(self, delay: float, callback: Callback) -> "ScheduledCall":
        raise NotImplementedError

    def shutdown(self) -> None:
        return None


@dataclass
class ScheduledCall:
    delay: float
    callback: Callback
    cancelled: bool = False
    _timer: object = field(default=None, repr=False)

    def cancel(self) -> None:
        self.cancelled = True
        if isinstance(self._timer, threading.Timer):
            self._timer.cancel()


class ThreadingScheduler(Scheduler):
    """Fire callbacks on daemon ``threading.Timer`` threads."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._calls: List[ScheduledCall] = []

    def call_later(self, delay: float, callback: Callback) -> ScheduledCall:
        call = ScheduledCall(delay=delay, callback=callback)

        def run() -> None:
            with self._lock:
                if call in self._calls:
                    self._calls.remove(call)
            if not call.cancelled:
                callback()

        timer = threading.Timer(delay, run)
        timer.daemon = True
        call._timer = timer
        with self._lock:
            self._calls.append(call)
        timer.start()
        return call

    def shutdown(self) -> None:
        with self._lock:
            calls, self._calls = self._calls, []
        for call in calls:
            call.cancel()


class ManualScheduler(Scheduler):
    """Queue callbacks until the owner fires them; used by simulations and tests."""

    def __init__(self) -> None:
        self.pending: List[ScheduledCall] = []

    def call_later(self, delay: float, callback: Callback) -> ScheduledCall:
        call = ScheduledCall(delay=delay, callback=callback)
        self.pending.append(call)
        return call

    def run_next(self) -> bool:
        while self.pending:
            call = self.pending.pop(0)
            if not call.cancelled:
                call.callback()
                return True
        return False

    def run_all(self, limit: int = 1000) -> int:
        fired = 0
        while fired < limit and self.run_next():
            fired += 1
        return fired

    def shutdown(self) -> None:
        for call in self.pending:
            call.cancel()
        self.pending = []

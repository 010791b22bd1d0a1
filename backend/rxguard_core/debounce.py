from __future__ import annotations

import threading
from typing import Callable, Protocol

from .models import drug_key

DEFAULT_COOLDOWN_SECONDS = 8.0


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


# Schedulers must not invoke the callback synchronously.
Scheduler = Callable[[float, Callable[[], None]], TimerHandle]


def thread_timer_scheduler(delay: float, callback: Callable[[], None]) -> TimerHandle:
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    timer.start()
    return timer


class PrescriptionDebouncer:
    """Single-slot cooldown for spoken drug names.

    States are Idle (no key) and Cooling(key). Only an exact repeat of the key
    currently cooling down is suppressed; any other name fires and takes over
    the slot. One expiry timer is pending at most.
    """

    def __init__(
        self,
        *,
        cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
        scheduler: Scheduler | None = None,
    ) -> None:
        self.cooldown_seconds = cooldown_seconds
        self._scheduler = scheduler or thread_timer_scheduler
        self._lock = threading.Lock()
        self._active_key: str | None = None
        self._timer: TimerHandle | None = None
        self._generation = 0

    @property
    def active_key(self) -> str | None:
        return self._active_key

    @property
    def cooling_down(self) -> bool:
        return self._active_key is not None

    def offer(self, drug: str) -> bool:
        """Return True when `drug` should be notified, False when suppressed."""
        key = drug_key(drug)
        if not key:
            return False
        with self._lock:
            if self._active_key == key:
                return False
            previous = self._timer
            self._generation += 1
            generation = self._generation
            self._active_key = key
            self._timer = self._scheduler(self.cooldown_seconds, lambda: self._expire(generation))
        if previous is not None:
            previous.cancel()
        return True

    def reset(self) -> None:
        with self._lock:
            timer = self._timer
            self._timer = None
            self._active_key = None
            self._generation += 1
        if timer is not None:
            timer.cancel()

    def _expire(self, generation: int) -> None:
        with self._lock:
            # A cancelled timer that already started must not clear its successor.
            if generation != self._generation:
                return
            self._active_key = None
            self._timer = None

from __future__ import annotations

import threading
import time
from typing import Callable

Clock = Callable[[], int]


def system_clock() -> int:
    """Wall-clock seconds; the ledger's accrual time base."""
    return int(time.time())


class ManualClock:
    """
    Deterministic clock for tests and local simulations.

    - Starts at `start` seconds
    - Only moves when advance()/set() is called
    - Refuses to go backwards (accrual timestamps are monotonic)
    """

    def __init__(self, start: int = 1_700_000_000) -> None:
        self._now = int(start)
        self._lock = threading.Lock()

    def __call__(self) -> int:
        with self._lock:
            return self._now

    def advance(self, seconds: int) -> int:
        s = int(seconds)
        if s < 0:
            raise ValueError("clock cannot move backwards")
        with self._lock:
            self._now += s
            return self._now

    def set(self, now: int) -> int:
        n = int(now)
        with self._lock:
            if n < self._now:
                raise ValueError("clock cannot move backwards")
            self._now = n
            return self._now

"""Clock sources providing "now" in integer seconds."""

import time
from typing import Protocol


class Clock(Protocol):
    def now(self) -> int: ...


class SystemClock:
    """Wall-clock UNIX time, truncated to whole seconds."""

    def now(self) -> int:
        return int(time.time())


class ManualClock:
    """Settable clock for simulations and tests."""

    def __init__(self, start: int = 0) -> None:
        self._now = start

    def now(self) -> int:
        return self._now

    def set(self, timestamp: int) -> None:
        if timestamp < self._now:
            raise ValueError(f"clock cannot move backwards ({timestamp} < {self._now})")
        self._now = timestamp

    def advance(self, seconds: int) -> int:
        self.set(self._now + seconds)
        return self._now

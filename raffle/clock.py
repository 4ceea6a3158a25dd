from __future__ import annotations

import time
from typing import Callable

Clock = Callable[[], int]


def system_clock() -> int:
    """Current UNIX time in whole seconds."""
    return int(time.time())


class ManualClock:
    """Clock that only moves when told to; used by tests and local tooling."""

    def __init__(self, start: int = 1_700_000_000) -> None:
        self._now = int(start)

    def __call__(self) -> int:
        return self._now

    def advance(self, seconds: int) -> int:
        self._now += int(seconds)
        return self._now

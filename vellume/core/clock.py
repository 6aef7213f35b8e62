import time


class Clock:
    """Source of the current time in epoch milliseconds."""

    def now_ms(self) -> int:
        raise NotImplementedError


class SystemClock(Clock):
    def now_ms(self) -> int:
        return int(time.time() * 1000)


class FixedClock(Clock):
    """Clock pinned to a settable instant. Used by tests and backfill scripts."""

    def __init__(self, now_ms: int):
        self._now_ms = now_ms

    def now_ms(self) -> int:
        return self._now_ms

    def set(self, now_ms: int):
        self._now_ms = now_ms

    def advance(self, delta_ms: int):
        self._now_ms += delta_ms


def get_clock() -> Clock:
    """Dependency to get the clock used for quota windows and timestamps"""
    return SystemClock()

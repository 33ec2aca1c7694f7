"""
Time sources for the MechScholar engine.

Every component that needs "now" takes a clock in its constructor so that
cooldowns, expiry windows and daily streaks can be driven deterministically.
"""

import time
from datetime import date, datetime, timedelta
from typing import Optional, Union


class Clock:
    """Base clock interface"""

    def now_ms(self) -> int:
        raise NotImplementedError

    def now(self) -> datetime:
        """Local wall-clock time"""
        return datetime.fromtimestamp(self.now_ms() / 1000.0)

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    """Clock backed by the operating system time"""

    def now_ms(self) -> int:
        return int(time.time() * 1000)


class ManualClock(Clock):
    """
    Clock that only moves when told to.

    Accepts either epoch milliseconds or a naive datetime as the start point.
    """

    def __init__(self, start: Optional[Union[int, datetime]] = None):
        self._now_ms = 0
        self.set(start if start is not None else datetime(2024, 1, 1, 12, 0, 0))

    def now_ms(self) -> int:
        return self._now_ms

    def set(self, value: Union[int, datetime]):
        if isinstance(value, datetime):
            self._now_ms = int(value.timestamp() * 1000)
        else:
            self._now_ms = int(value)

    def advance(self, ms: int = 0, days: int = 0):
        self._now_ms += int(ms) + int(timedelta(days=days).total_seconds() * 1000)


def ensure_clock(clock: Optional[Clock]) -> Clock:
    return clock if clock is not None else SystemClock()

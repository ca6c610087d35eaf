"""
Injectable time source.

Every scheduling entry point takes ``now`` explicitly; services obtain it from a
Clock so tests and the debug day offset never touch global state.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone, tzinfo


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime:
        """Return the current timezone-aware time."""
        pass

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    """
    Wall clock in the local timezone, optionally shifted by whole days.

    The day offset simulates studying on a future day.
    """

    def __init__(self, day_offset: int = 0, tz: tzinfo | None = None):
        self.day_offset = day_offset
        self.tz = tz

    def now(self) -> datetime:
        current = datetime.now(self.tz).astimezone(self.tz)
        return current + timedelta(days=self.day_offset)


class FixedClock(Clock):
    def __init__(self, instant: datetime):
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        self.instant = instant

    def now(self) -> datetime:
        return self.instant

    def advance(self, delta: timedelta) -> None:
        self.instant = self.instant + delta


def to_millis(value: datetime | None) -> int | None:
    if value is None:
        return None
    return round(value.timestamp() * 1000)


def from_millis(value: int | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)

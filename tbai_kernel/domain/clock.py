"""
Injectable time source.

Document assembly takes its issue time and signing its XAdES signing time
from a Clock, never from ``datetime.now()`` directly.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime:
        """Current time, timezone-aware."""

    def now_utc(self) -> datetime:
        return self.now().astimezone(timezone.utc)


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """Always reports the instant it was built with."""

    def __init__(self, fixed_time: datetime):
        if fixed_time.tzinfo is None:
            raise ValueError("DeterministicClock needs a timezone-aware datetime")
        self._fixed_time = fixed_time

    def now(self) -> datetime:
        return self._fixed_time

"""Clock abstraction so that time-driven code can be tested."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime


class Clock(ABC):
    """Source of the current time and of delays."""

    @abstractmethod
    def now(self) -> datetime:
        """Return the current time."""

    @abstractmethod
    async def sleep(self, seconds: float) -> None:
        """Return after the given number of seconds."""


class RealClock(Clock):
    """Clock backed by the system time and the running event loop."""

    def now(self) -> datetime:
        return datetime.now()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)
"""Agent events and the identify/critical state they drive."""

from __future__ import annotations

import asyncio
import threading
from enum import IntEnum


class Event(IntEnum):
    """Events handled by the agent."""

    NOOP = 0
    IDENTIFY = 1
    IDENTIFY_CONFIRM = 2
    CRITICAL = 3
    CRITICAL_RESET = 4
    EDGE_BUTTON = 5

    def __str__(self) -> str:
        return self.name.lower()


class ComputeBladeState:
    """Tracks whether the blade is in identify or critical mode."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._identify_active = False
        self._critical_active = False
        self._identify_confirmed = asyncio.Event()
        self._critical_cleared = asyncio.Event()

    def register_event(self, event: Event) -> None:
        """Update the state for an event and wake waiters it concerns."""
        with self._lock:
            if event is Event.IDENTIFY:
                self._identify_active = True
            elif event is Event.IDENTIFY_CONFIRM:
                self._identify_active = False
                confirmed, self._identify_confirmed = (
                    self._identify_confirmed,
                    asyncio.Event(),
                )
                confirmed.set()
            elif event is Event.CRITICAL:
                self._critical_active = True
                self._identify_active = False
            elif event is Event.CRITICAL_RESET:
                self._critical_active = False
                cleared, self._critical_cleared = (
                    self._critical_cleared,
                    asyncio.Event(),
                )
                cleared.set()

    def identify_active(self) -> bool:
        return self._identify_active

    def critical_active(self) -> bool:
        return self._critical_active

    async def wait_for_identify_confirm(self) -> None:
        """Return once the next identify confirmation is registered."""
        await self._identify_confirmed.wait()

    async def wait_for_critical_clear(self) -> None:
        """Return once the next critical reset is registered."""
        await self._critical_cleared.wait()
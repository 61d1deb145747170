"""Blink patterns for the blade's RGB LEDs."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Protocol

from bladeagent.clock import Clock, RealClock
from bladeagent.hal import Color


class _LedSink(Protocol):
    def set_led(self, idx: int, color: Color, /) -> None: ...


def _brightness(brightness: float) -> int:
    return int(255.0 * brightness)


def led_color_purple(brightness: float) -> Color:
    value = _brightness(brightness)
    return Color(red=value, green=0, blue=value)


def led_color_red(brightness: float) -> Color:
    return Color(red=_brightness(brightness), green=0, blue=0)


def led_color_green(brightness: float) -> Color:
    return Color(red=0, green=_brightness(brightness), blue=0)


@dataclass(frozen=True)
class BlinkPattern:
    """Alternates between two colours with the given delays in seconds.

    The base colour is shown first; after each delay the LED switches to the
    other colour, starting with the active colour.
    """

    base_color: Color = field(default_factory=Color)
    active_color: Color = field(default_factory=Color)
    delays: tuple[float, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "delays", tuple(self.delays))


def static_pattern(color: Color) -> BlinkPattern:
    """A pattern that shows one colour without changes."""
    return BlinkPattern(base_color=color, active_color=color, delays=(3600.0,))


def burst_pattern(base_color: Color, burst_color: Color) -> BlinkPattern:
    """A ~1s cycle: a pause followed by three short bursts."""
    return BlinkPattern(
        base_color=base_color,
        active_color=burst_color,
        delays=(0.5, 0.1, 0.1, 0.1, 0.1, 0.1),
    )


def slow_blink_pattern(base_color: Color, active_color: Color) -> BlinkPattern:
    """A ~2s cycle: one second off, one second on."""
    return BlinkPattern(
        base_color=base_color, active_color=active_color, delays=(1.0, 1.0)
    )


class LedEngine:
    """Plays a blink pattern on one LED until cancelled."""

    def __init__(self, hal: _LedSink, led_idx: int, clock: Clock | None = None) -> None:
        self._hal = hal
        self._led_idx = led_idx
        self._clock = clock or RealClock()
        self._pattern = static_pattern(Color())
        self._restart = asyncio.Event()

    @property
    def pattern(self) -> BlinkPattern:
        return self._pattern

    def set_pattern(self, pattern: BlinkPattern) -> None:
        """Replace the pattern and restart it from the beginning."""
        if not pattern.delays:
            raise ValueError("pattern must have at least one delay")
        self._pattern = pattern
        previous, self._restart = self._restart, asyncio.Event()
        previous.set()

    async def run(self) -> None:
        """Play the current pattern forever; errors from the LED propagate."""
        while True:
            pattern, restart = self._pattern, self._restart
            self._hal.set_led(self._led_idx, pattern.base_color)
            for idx, delay in enumerate(pattern.delays):
                if not await self._sleep_unless_restarted(delay, restart):
                    break
                color = pattern.active_color if idx % 2 == 0 else pattern.base_color
                self._hal.set_led(self._led_idx, color)

    async def _sleep_unless_restarted(self, delay: float, restart: asyncio.Event) -> bool:
        if restart.is_set():
            return False
        sleeper = asyncio.ensure_future(self._clock.sleep(delay))
        waiter = asyncio.ensure_future(restart.wait())
        try:
            done, _ = await asyncio.wait(
                {sleeper, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            sleeper.cancel()
            waiter.cancel()
        if waiter in done:
            return False
        sleeper.result()
        return True
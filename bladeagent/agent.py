"""The agent core: reacts to events and drives LEDs and fan of one blade."""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from bladeagent.clock import Clock, RealClock
from bladeagent.fancontroller import (
    FanControllerConfig,
    FanOverrideOpts,
    LinearFanController,
)
from bladeagent.hal import Color, ComputeBladeHal, ComputeBladeHalOpts, LedIndex
from bladeagent.ledengine import (
    LedEngine,
    burst_pattern,
    slow_blink_pattern,
    static_pattern,
)
from bladeagent.state import ComputeBladeState, Event

_EVENT_BACKLOG = 10  # events should be handled fast, but button presses must not be lost
_FALLBACK_TEMPERATURE = 100.0  # pushes the fan curve to its maximum
_SAFE_FAN_SPEED = 100

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ComputeBladeAgentConfig:
    """Settings of the agent."""

    idle_led_color: Color = field(default_factory=Color)
    identify_led_color: Color = field(default_factory=Color)
    # Colour of the top LED in critical mode.
    critical_led_color: Color = field(default_factory=Color)
    stealth_mode_enabled: bool = False
    critical_temperature_threshold: int = 0
    fan_speed: FanOverrideOpts | None = None
    fan_controller: FanControllerConfig = field(default_factory=FanControllerConfig)
    hal_opts: ComputeBladeHalOpts = field(default_factory=ComputeBladeHalOpts)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> ComputeBladeAgentConfig:
        """Build a configuration from the keys used in the config file."""
        data = data or {}
        return cls(
            idle_led_color=Color.from_dict(data.get("idle_led_color")),
            identify_led_color=Color.from_dict(data.get("identify_led_color")),
            critical_led_color=Color.from_dict(data.get("critical_led_color")),
            stealth_mode_enabled=bool(data.get("stealth_mode", False)),
            critical_temperature_threshold=int(
                data.get("critical_temperature_threshold", 0)
            ),
            fan_speed=FanOverrideOpts.from_dict(data.get("fan_speed")),
            fan_controller=FanControllerConfig.from_dict(data.get("fan_controller")),
            hal_opts=ComputeBladeHalOpts.from_dict(data.get("hal")),
        )


class ComputeBladeAgent:
    """Handles events and interfaces with the blade's hardware."""

    def __init__(
        self,
        config: ComputeBladeAgentConfig,
        hal: ComputeBladeHal,
        clock: Clock | None = None,
        fan_update_interval: float = 5.0,
    ) -> None:
        self.config = config
        self._hal = hal
        self._clock = clock or RealClock()
        self._fan_update_interval = fan_update_interval
        self.fan_controller = LinearFanController(config.fan_controller)
        self.state = ComputeBladeState()
        self._edge_led = LedEngine(hal, LedIndex.EDGE, self._clock)
        self._top_led = LedEngine(hal, LedIndex.TOP, self._clock)
        self._events: asyncio.Queue[Event] = asyncio.Queue(maxsize=_EVENT_BACKLOG)
        self.events_handled: Counter[str] = Counter()
        self.events_dropped: Counter[str] = Counter()

    async def run(self) -> None:
        """Run until cancelled or until a component fails.

        Safe settings are restored on the way out in either case.
        """
        _logger.info("Starting ComputeBlade agent")
        self.state.register_event(Event.NOOP)
        try:
            self._hal.set_stealth_mode(self.config.stealth_mode_enabled)
            tasks = [
                asyncio.create_task(self._hal.run()),
                asyncio.create_task(self._edge_button_loop()),
                asyncio.create_task(self._run_top_led_engine()),
                asyncio.create_task(self._run_edge_led_engine()),
                asyncio.create_task(self._fan_controller_loop()),
                asyncio.create_task(self._event_loop()),
            ]
            try:
                done, _ = await asyncio.wait(
                    tasks, return_when=asyncio.FIRST_EXCEPTION
                )
                for task in done:
                    task.result()
            finally:
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
        finally:
            self._cleanup()

    def _cleanup(self) -> None:
        _logger.info("Exiting, restoring safe settings")
        try:
            self._hal.set_fan_speed(_SAFE_FAN_SPEED)
        except Exception:
            _logger.exception("Failed to set fan speed to 100%")
        for idx in (LedIndex.EDGE, LedIndex.TOP):
            try:
                self._hal.set_led(idx, Color())
            except Exception:
                _logger.exception("Failed to turn off LED %s", idx.name.lower())
        try:
            self.close()
        except Exception:
            _logger.exception("Failed to close blade")

    def _enqueue_nowait(self, event: Event) -> None:
        try:
            self._events.put_nowait(event)
        except asyncio.QueueFull:
            _logger.warning("Event %s dropped due to backlog", event)
            self.events_dropped[str(event)] += 1

    async def _edge_button_loop(self) -> None:
        while True:
            await self._hal.wait_for_edge_button_press()
            self._enqueue_nowait(Event.EDGE_BUTTON)

    async def _event_loop(self) -> None:
        while True:
            event = await self._events.get()
            self._handle_event(event)

    def _handle_event(self, event: Event) -> None:
        _logger.info("Handling event %s", event)
        self.events_handled[str(event)] += 1
        self.state.register_event(event)

        if event is Event.CRITICAL:
            self._handle_critical_active()
        elif event is Event.CRITICAL_RESET:
            self._handle_critical_reset()
        elif event is Event.IDENTIFY:
            _logger.info("Identify active")
            self._edge_led.set_pattern(
                burst_pattern(Color(), self.config.identify_led_color)
            )
        elif event is Event.IDENTIFY_CONFIRM:
            _logger.info("Identify confirmed/cleared")
            self._edge_led.set_pattern(static_pattern(self.config.idle_led_color))
        elif event is Event.EDGE_BUTTON:
            self._enqueue_nowait(
                Event.IDENTIFY_CONFIRM
                if self.state.identify_active()
                else Event.IDENTIFY
            )

    def _handle_critical_active(self) -> None:
        _logger.warning(
            "Blade in critical state, setting fan speed to 100% and turning on LEDs"
        )
        self.fan_controller.override(FanOverrideOpts(percent=_SAFE_FAN_SPEED))
        errors: list[Exception] = []
        try:
            self._hal.set_stealth_mode(False)
        except Exception as exc:
            errors.append(exc)
        try:
            self._top_led.set_pattern(
                slow_blink_pattern(Color(), self.config.critical_led_color)
            )
        except Exception as exc:
            errors.append(exc)
        if len(errors) == 1:
            raise errors[0]
        if errors:
            raise ExceptionGroup("failed to enter critical state", errors)

    def _handle_critical_reset(self) -> None:
        _logger.info(
            "Critical state cleared, restoring fan speed and LEDs to defaults"
        )
        self.fan_controller.override(None)
        self._hal.set_stealth_mode(self.config.stealth_mode_enabled)
        self._top_led.set_pattern(static_pattern(Color()))

    async def _run_top_led_engine(self) -> None:
        # The top LED only signals critical situations.
        self._top_led.set_pattern(static_pattern(Color()))
        await self._top_led.run()

    async def _run_edge_led_engine(self) -> None:
        self._edge_led.set_pattern(static_pattern(self.config.idle_led_color))
        await self._edge_led.run()

    async def _fan_controller_loop(self) -> None:
        while True:
            await self._clock.sleep(self._fan_update_interval)
            try:
                temperature = self._hal.get_temperature()
            except Exception:
                _logger.exception("Failed to get temperature")
                temperature = _FALLBACK_TEMPERATURE
            speed = self.fan_controller.get_fan_speed(temperature)
            try:
                self._hal.set_fan_speed(speed)
            except Exception:
                _logger.exception("Failed to set fan speed")

    async def emit_event(self, event: Event) -> None:
        """Queue an event for the handler, waiting while the backlog is full."""
        await self._events.put(event)

    def set_fan_speed(self, speed: int) -> None:
        """Fix the fan speed in percent."""
        if self.state.critical_active():
            raise RuntimeError(
                "cannot set fan speed while the blade is in a critical state"
            )
        self.fan_controller.override(FanOverrideOpts(percent=speed))

    def set_stealth_mode(self, enabled: bool) -> None:
        """Turn stealth mode on or off."""
        if self.state.critical_active():
            raise RuntimeError(
                "cannot set stealth mode while the blade is in a critical state"
            )
        self._hal.set_stealth_mode(enabled)

    async def wait_for_identify_confirm(self) -> None:
        """Return once identify mode has been confirmed."""
        await self.state.wait_for_identify_confirm()

    def close(self) -> None:
        """Release the hardware."""
        self._hal.close()
"""A simulated compute blade for running the agent without hardware."""

from __future__ import annotations

import asyncio
import logging

from bladeagent.hal import (
    Color,
    ComputeBladeHal,
    ComputeBladeHalOpts,
    LedIndex,
    PowerStatus,
)

_SIMULATED_FAN_RPM = 1337.0
_SIMULATED_TEMPERATURE = 42.0


class SimulatedHal(ComputeBladeHal):
    """Logs hardware calls and reports fixed sensor values."""

    def __init__(
        self,
        opts: ComputeBladeHalOpts | None = None,
        button_interval: float = 5.0,
    ) -> None:
        self.opts = opts or ComputeBladeHalOpts()
        self.button_interval = button_interval
        self.fan_speed_percent: int | None = None
        self.stealth_mode = False
        self.leds: dict[int, Color] = {}
        self.led_changes = 0
        self.edge_button_presses = 0
        self._logger = logging.getLogger("bladeagent.hal.simulated")
        self._logger.warning("Using simulated hal")

    async def run(self) -> None:
        await asyncio.get_running_loop().create_future()

    def close(self) -> None:
        self._logger.debug("Close")

    def set_fan_speed(self, percent: int) -> None:
        self._logger.info("SetFanSpeed percent=%d", percent)
        self.fan_speed_percent = percent

    def get_fan_rpm(self) -> float:
        return _SIMULATED_FAN_RPM

    def set_stealth_mode(self, enabled: bool) -> None:
        self._logger.info("SetStealthMode enabled=%s", enabled)
        self.stealth_mode = enabled

    def get_power_status(self) -> PowerStatus:
        self._logger.info("GetPowerStatus")
        return PowerStatus.POE_802AT

    async def wait_for_edge_button_press(self) -> None:
        self._logger.info("WaitForEdgeButtonPress")
        await asyncio.sleep(self.button_interval)
        self.edge_button_presses += 1

    def set_led(self, idx: LedIndex | int, color: Color) -> None:
        self.led_changes += 1
        self._logger.info("SetLed idx=%d color=%s", int(idx), color)
        self.leds[int(idx)] = color

    def get_temperature(self) -> float:
        self._logger.info("GetTemperature")
        return _SIMULATED_TEMPERATURE
"""Hardware abstraction for the compute blade and its fan unit."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from enum import IntEnum
from typing import Any


@dataclass(frozen=True)
class Color:
    """An RGB colour with 8-bit channels."""

    red: int = 0
    green: int = 0
    blue: int = 0

    def __post_init__(self) -> None:
        for name in ("red", "green", "blue"):
            value = getattr(self, name)
            if not 0 <= value <= 0xFF:
                raise ValueError(f"{name} must be between 0 and 255, got {value}")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> Color:
        data = data or {}
        return cls(
            red=int(data.get("red", 0)),
            green=int(data.get("green", 0)),
            blue=int(data.get("blue", 0)),
        )


class FanUnitKind(IntEnum):
    STANDARD = 0
    STANDARD_NO_RPM = 1
    SMART = 2


class PowerStatus(IntEnum):
    POE_OR_USBC = 0
    POE_802AT = 1

    def __str__(self) -> str:
        if self is PowerStatus.POE_802AT:
            return "poe+"
        return "poeOrUsbC"


class LedIndex(IntEnum):
    TOP = 0
    EDGE = 1


@dataclass(frozen=True)
class ComputeBladeHalOpts:
    rpm_reporting_standard_fan_unit: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> ComputeBladeHalOpts:
        data = data or {}
        return cls(
            rpm_reporting_standard_fan_unit=bool(
                data.get("rpm_reporting_standard_fan_unit", False)
            )
        )


class ComputeBladeHal(ABC):
    """Hardware features of a compute blade."""

    @abstractmethod
    async def run(self) -> None:
        """Run background tasks until cancelled or failing."""

    @abstractmethod
    def close(self) -> None:
        """Release the hardware."""

    @abstractmethod
    def set_fan_speed(self, percent: int) -> None:
        """Set the fan speed in percent."""

    @abstractmethod
    def get_fan_rpm(self) -> float:
        """Return the current fan speed in RPM."""

    @abstractmethod
    def set_stealth_mode(self, enabled: bool) -> None:
        """Turn stealth mode (LEDs off) on or off."""

    @abstractmethod
    def set_led(self, idx: LedIndex, color: Color) -> None:
        """Set the colour of one LED."""

    @abstractmethod
    def get_power_status(self) -> PowerStatus:
        """Return how the blade is powered."""

    @abstractmethod
    def get_temperature(self) -> float:
        """Return the SoC temperature in degrees Celsius."""

    @abstractmethod
    async def wait_for_edge_button_press(self) -> None:
        """Return once the edge button has been pressed."""


class FanUnit(ABC):
    """The fan unit attached to a blade."""

    @abstractmethod
    def kind(self) -> FanUnitKind:
        """Return the kind of fan unit."""

    @abstractmethod
    async def run(self) -> None:
        """Run the fan unit's event loop."""

    @abstractmethod
    def set_fan_speed_percent(self, percent: int) -> None:
        """Set the fan speed in percent."""

    @abstractmethod
    def set_led(self, color: Color) -> None:
        """Set the LED colour; does nothing without an LED."""

    @abstractmethod
    def fan_speed_rpm(self) -> float:
        """Return the fan speed in RPM."""

    @abstractmethod
    async def wait_for_button_press(self) -> None:
        """Return once the button has been pressed."""

    @abstractmethod
    def air_flow_temperature(self) -> float:
        """Return the air flow temperature."""

    @abstractmethod
    def close(self) -> None:
        """Release the fan unit."""
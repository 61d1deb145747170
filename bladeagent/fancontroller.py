"""Temperature driven fan speed control."""

from __future__ import annotations

import threading
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class FanOverrideOpts:
    """A fixed fan speed that takes precedence over the fan curve."""

    percent: int = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> FanOverrideOpts | None:
        if data is None:
            return None
        return cls(percent=int(data.get("speed", 0)))


@dataclass(frozen=True)
class FanControllerStep:
    """A point of the fan curve: a temperature and the speed to run at."""

    temperature: float
    percent: int


@dataclass(frozen=True)
class FanControllerConfig:
    """The temperature/speed steps of a fan controller."""

    steps: tuple[FanControllerStep, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "steps", tuple(self.steps))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> FanControllerConfig:
        data = data or {}
        raw_steps: Sequence[Mapping[str, Any]] = data.get("steps") or ()
        return cls(
            steps=tuple(
                FanControllerStep(
                    temperature=float(step.get("temperature", 0.0)),
                    percent=int(step.get("percent", 0)),
                )
                for step in raw_steps
            )
        )


class LinearFanController:
    """Interpolates the fan speed linearly between two temperature steps."""

    def __init__(self, config: FanControllerConfig) -> None:
        if len(config.steps) != 2:
            raise ValueError("exactly two steps must be defined")
        low, high = config.steps
        if low.temperature > high.temperature:
            raise ValueError("step 1 temperature must be lower than step 2 temperature")
        if low.percent > high.percent:
            raise ValueError("step 1 speed must be lower than step 2 speed")
        if low.percent > 100 or high.percent > 100:
            raise ValueError("speed must be between 0 and 100")
        self._low = low
        self._high = high
        self._override: FanOverrideOpts | None = None
        self._lock = threading.Lock()

    def override(self, opts: FanOverrideOpts | None) -> None:
        """Fix the fan speed, or return to the curve when given None."""
        with self._lock:
            self._override = opts

    def get_fan_speed(self, temperature: float) -> int:
        """Return the fan speed in percent for the given temperature."""
        with self._lock:
            if self._override is not None:
                return self._override.percent

            low, high = self._low, self._high
            if temperature <= low.temperature:
                return low.percent
            if temperature >= high.temperature:
                return high.percent

            slope = (high.percent - low.percent) / (high.temperature - low.temperature)
            return int(low.percent + slope * (temperature - low.temperature))
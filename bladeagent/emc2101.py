"""Driver for the EMC2101 fan controller on an I2C bus."""

from __future__ import annotations

import math
from typing import Protocol

ADDRESS = 0x4C  # default I2C address
CONFIG_REG = 0x03
FAN_CONFIG_REG = 0x4A
FAN_SPIN_UP_REG = 0x4B
FAN_SETTING_REG = 0x4C
FAN_TACH_READING_LOW_REG = 0x46
FAN_TACH_READING_HIGH_REG = 0x47
EXTERNAL_TEMP_REG = 0x01
INTERNAL_TEMP_REG = 0x00

_MAX_FAN_SETTING = 63
_TACH_CONSTANT = 5400000


class I2CBus(Protocol):
    """An I2C bus: writes bytes to a device, then reads read_size bytes."""

    def tx(self, address: int, write: bytes, read_size: int = 0) -> bytes: ...


class EMC2101:
    """An EMC2101 fan controller."""

    def __init__(self, bus: I2CBus, address: int = ADDRESS) -> None:
        self._bus = bus
        self.address = address

    def _read(self, register: int) -> int:
        data = self._bus.tx(self.address, bytes([register]), 1)
        if len(data) < 1:
            raise OSError(f"short read from register 0x{register:02x}")
        return data[0]

    def _write(self, register: int, value: int) -> None:
        self._bus.tx(self.address, bytes([register, value]), 0)

    def _update_reg(self, register: int, set_mask: int, clear_mask: int) -> None:
        current = self._read(register)
        value = (current | set_mask) & ~clear_mask & 0xFF
        if value != current:
            self._write(register, value)

    def initialize(self) -> None:
        """Configure PWM output, tach input and spin-up behaviour."""
        # bit 4 cleared: PWM mode; bit 2 set: tach input
        self._update_reg(CONFIG_REG, 1 << 2, 1 << 4)
        self._update_reg(FAN_CONFIG_REG, 1 << 5, 0)
        # bit 5 cleared: spin-up does not wait for the tach input
        self._update_reg(FAN_SPIN_UP_REG, 0, 1 << 5)

    def internal_temperature(self) -> float:
        return float(self._read(INTERNAL_TEMP_REG))

    def external_temperature(self) -> float:
        return float(self._read(EXTERNAL_TEMP_REG))

    def set_fan_percent(self, percent: int) -> None:
        """Set the fan speed in percent; values above 100 are capped."""
        if percent < 0:
            raise ValueError(f"fan percent must not be negative, got {percent}")
        percent = min(percent, 100)
        self._write(FAN_SETTING_REG, percent * _MAX_FAN_SETTING // 100)

    def fan_rpm(self) -> float:
        """Return the fan speed in RPM, infinite when the tach count is zero."""
        high = self._read(FAN_TACH_READING_HIGH_REG)
        low = self._read(FAN_TACH_READING_LOW_REG)
        tach_count = (high << 8) | low
        if tach_count == 0:
            return math.inf
        return _TACH_CONSTANT / tach_count
import math

import pytest

from bladeagent.emc2101 import (
    ADDRESS,
    CONFIG_REG,
    EMC2101,
    EXTERNAL_TEMP_REG,
    FAN_CONFIG_REG,
    FAN_SETTING_REG,
    FAN_SPIN_UP_REG,
    FAN_TACH_READING_HIGH_REG,
    FAN_TACH_READING_LOW_REG,
    INTERNAL_TEMP_REG,
)


class FakeBus:
    def __init__(self, registers=None, fail=False):
        self.registers = dict(registers or {})
        self.writes = []
        self.addresses = []
        self.fail = fail

    def tx(self, address, write, read_size=0):
        if self.fail:
            raise OSError("bus error")
        self.addresses.append(address)
        register, *payload = write
        if payload:
            self.registers[register] = payload[0]
            self.writes.append((register, payload[0]))
        return bytes(self.registers.get(register, 0) for _ in range(read_size))


def test_initialize_sets_configuration_bits():
    bus = FakeBus({CONFIG_REG: 1 << 4, FAN_CONFIG_REG: 0, FAN_SPIN_UP_REG: 0xFF})
    EMC2101(bus).initialize()
    assert bus.registers[CONFIG_REG] & (1 << 2)
    assert not bus.registers[CONFIG_REG] & (1 << 4)
    assert bus.registers[FAN_CONFIG_REG] & (1 << 5)
    assert not bus.registers[FAN_SPIN_UP_REG] & (1 << 5)
    assert set(bus.addresses) == {ADDRESS}


def test_initialize_preserves_other_bits():
    bus = FakeBus({FAN_SPIN_UP_REG: 0xFF})
    EMC2101(bus).initialize()
    assert bus.registers[FAN_SPIN_UP_REG] | (1 << 5) == 0xFF


def test_initialize_skips_writes_when_configured():
    bus = FakeBus({CONFIG_REG: 1 << 2, FAN_CONFIG_REG: 1 << 5, FAN_SPIN_UP_REG: 0})
    EMC2101(bus).initialize()
    assert bus.writes == []


def test_temperatures_read_registers():
    bus = FakeBus({INTERNAL_TEMP_REG: 42, EXTERNAL_TEMP_REG: 37})
    emc = EMC2101(bus)
    assert emc.internal_temperature() == 42.0
    assert emc.external_temperature() == 37.0


def test_set_fan_percent_full_speed():
    bus = FakeBus()
    EMC2101(bus).set_fan_percent(100)
    assert bus.writes == [(FAN_SETTING_REG, 63)]


def test_set_fan_percent_caps_at_100():
    capped, full = FakeBus(), FakeBus()
    EMC2101(capped).set_fan_percent(150)
    EMC2101(full).set_fan_percent(100)
    assert capped.writes == full.writes


def test_set_fan_percent_is_monotonic():
    bus = FakeBus()
    emc = EMC2101(bus)
    for percent in range(101):
        emc.set_fan_percent(percent)
    values = [value for _, value in bus.writes]
    assert values == sorted(values)
    assert values[0] == 0
    assert max(values) == 63


def test_set_fan_percent_rejects_negative():
    with pytest.raises(ValueError):
        EMC2101(FakeBus()).set_fan_percent(-1)


def test_fan_rpm_from_tach_count():
    bus = FakeBus({FAN_TACH_READING_HIGH_REG: 0, FAN_TACH_READING_LOW_REG: 1})
    assert EMC2101(bus).fan_rpm() == 5400000.0


def test_fan_rpm_decreases_with_tach_count():
    slow = FakeBus({FAN_TACH_READING_HIGH_REG: 1, FAN_TACH_READING_LOW_REG: 0})
    fast = FakeBus({FAN_TACH_READING_HIGH_REG: 0, FAN_TACH_READING_LOW_REG: 0xFF})
    assert EMC2101(slow).fan_rpm() < EMC2101(fast).fan_rpm()


def test_fan_rpm_zero_tach_is_infinite():
    rpm = EMC2101(FakeBus()).fan_rpm()
    assert rpm == math.inf


def test_bus_errors_propagate():
    emc = EMC2101(FakeBus(fail=True))
    with pytest.raises(OSError, match="bus error"):
        emc.internal_temperature()
    with pytest.raises(OSError, match="bus error"):
        emc.initialize()
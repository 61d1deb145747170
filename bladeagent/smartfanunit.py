"""Commands exchanged with the smart fan unit and their packet encodings."""

from __future__ import annotations

import math
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from bladeagent.hal import Color
from bladeagent.proto import Packet

BAUDRATE = 115200

# Blade -> fan unit
CMD_SET_FAN_SPEED_PERCENT = 0x01
CMD_SET_LED = 0x02

# Fan unit -> blade, sent at regular intervals
NOTIFY_BUTTON_PRESS = 0xA1
NOTIFY_AIR_FLOW_TEMPERATURE = 0xA2
NOTIFY_FAN_SPEED_RPM = 0xA3

_MAX_24BIT = 0xFFFFFF


class InvalidCommandError(ValueError):
    """A packet carries a different command than the one expected."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(
            f"invalid command: expected 0x{expected:02x}, got 0x{actual:02x}"
        )
        self.expected = expected
        self.actual = actual


def _check_command(packet: Packet, expected: int) -> None:
    if packet.command != expected:
        raise InvalidCommandError(expected, packet.command)


def float32_to_24bit(value: float) -> tuple[int, int, int]:
    """Encode a value with 0.1 precision into three big-endian bytes."""
    if not value > 0:
        scaled = 0
    elif math.isinf(value):
        scaled = _MAX_24BIT
    else:
        scaled = min(int(value * 10), _MAX_24BIT)
    return ((scaled >> 16) & 0xFF, (scaled >> 8) & 0xFF, scaled & 0xFF)


def float32_from_24bit(data: tuple[int, int, int]) -> float:
    """Decode three big-endian bytes written by float32_to_24bit."""
    high, mid, low = data
    return ((high << 16) | (mid << 8) | low) / 10


@dataclass(frozen=True)
class SetFanSpeedPercentPacket:
    """Sent by the blade to set the fan speed in percent."""

    percent: int = 0

    def packet(self) -> Packet:
        return Packet(CMD_SET_FAN_SPEED_PERCENT, (self.percent, 0, 0))

    @classmethod
    def from_packet(cls, packet: Packet) -> SetFanSpeedPercentPacket:
        _check_command(packet, CMD_SET_FAN_SPEED_PERCENT)
        return cls(percent=packet.data[0])


@dataclass(frozen=True)
class SetLEDPacket:
    """Sent by the blade to set the fan unit LED colour."""

    color: Color = field(default_factory=Color)

    def packet(self) -> Packet:
        return Packet(CMD_SET_LED, (self.color.blue, self.color.green, self.color.red))

    @classmethod
    def from_packet(cls, packet: Packet) -> SetLEDPacket:
        _check_command(packet, CMD_SET_LED)
        blue, green, red = packet.data
        return cls(color=Color(red=red, green=green, blue=blue))


@dataclass(frozen=True)
class ButtonPressPacket:
    """Sent by the fan unit when its button is pressed."""

    def packet(self) -> Packet:
        return Packet(NOTIFY_BUTTON_PRESS, (0, 0, 0))

    @classmethod
    def from_packet(cls, packet: Packet) -> ButtonPressPacket:
        _check_command(packet, NOTIFY_BUTTON_PRESS)
        return cls()


@dataclass(frozen=True)
class AirFlowTemperaturePacket:
    """Sent by the fan unit to report the air flow temperature."""

    temperature: float = 0.0

    def packet(self) -> Packet:
        return Packet(NOTIFY_AIR_FLOW_TEMPERATURE, float32_to_24bit(self.temperature))

    @classmethod
    def from_packet(cls, packet: Packet) -> AirFlowTemperaturePacket:
        _check_command(packet, NOTIFY_AIR_FLOW_TEMPERATURE)
        return cls(temperature=float32_from_24bit(packet.data))


@dataclass(frozen=True)
class FanSpeedRPMPacket:
    """Sent by the fan unit to report the fan speed in RPM."""

    rpm: float = 0.0

    def packet(self) -> Packet:
        return Packet(NOTIFY_FAN_SPEED_RPM, float32_to_24bit(self.rpm))

    @classmethod
    def from_packet(cls, packet: Packet) -> FanSpeedRPMPacket:
        _check_command(packet, NOTIFY_FAN_SPEED_RPM)
        return cls(rpm=float32_from_24bit(packet.data))


def match_cmd(command: int) -> Callable[[Any], bool]:
    """Return a filter accepting only packets with the given command."""

    def matches(message: Any) -> bool:
        return isinstance(message, Packet) and message.command == command

    return matches
"""Client for the smart fan unit attached to a blade over a serial port."""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections.abc import Callable
from typing import Protocol

import serial

from bladeagent.eventbus import EventBus, Subscriber
from bladeagent.hal import Color, FanUnit, FanUnitKind
from bladeagent.proto import SOF, Packet, ProtocolError, read_packet, write_packet
from bladeagent.smartfanunit import (
    BAUDRATE,
    NOTIFY_AIR_FLOW_TEMPERATURE,
    NOTIFY_BUTTON_PRESS,
    NOTIFY_FAN_SPEED_RPM,
    AirFlowTemperaturePacket,
    FanSpeedRPMPacket,
    SetFanSpeedPercentPacket,
    SetLEDPacket,
    match_cmd,
)

INBOUND_TOPIC = "smartfanunit:inbound"

_POLL_INTERVAL = 0.1

_logger = logging.getLogger(__name__)


class _Port(Protocol):
    def read(self, size: int, /) -> bytes: ...

    def write(self, data: bytes, /) -> object: ...

    def close(self) -> None: ...


class CommunicationError(Exception):
    """Communication with the smart fan unit failed."""


class SmartFanUnit(FanUnit):
    """A fan unit that reports sensors and accepts commands over serial."""

    def __init__(self, port: _Port) -> None:
        self._port = port
        self._bus = EventBus()
        self._write_lock = threading.Lock()
        self._rpm = 0.0
        self._air_flow_temperature = 0.0

    def kind(self) -> FanUnitKind:
        return FanUnitKind.SMART

    async def run(self) -> None:
        """Read packets and track reported sensor values until failing."""
        speed_sub = self._bus.subscribe(
            INBOUND_TOPIC, 1, match_cmd(NOTIFY_FAN_SPEED_RPM)
        )
        airflow_sub = self._bus.subscribe(
            INBOUND_TOPIC, 1, match_cmd(NOTIFY_AIR_FLOW_TEMPERATURE)
        )
        tasks = [
            asyncio.create_task(self._read_loop()),
            asyncio.create_task(self._watch(speed_sub, self._on_fan_speed)),
            asyncio.create_task(self._watch(airflow_sub, self._on_air_flow)),
        ]
        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
            for task in done:
                task.result()
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            speed_sub.unsubscribe()
            airflow_sub.unsubscribe()

    async def _read_loop(self) -> None:
        while True:
            try:
                packet = await asyncio.to_thread(read_packet, self._port)
            except ProtocolError as exc:
                _logger.error("Failed to read packet from serial port: %s", exc)
                continue
            except (EOFError, OSError) as exc:
                raise CommunicationError("communication failed") from exc
            self._bus.publish(INBOUND_TOPIC, packet)

    @staticmethod
    async def _watch(
        subscriber: Subscriber, handle: Callable[[Packet], None]
    ) -> None:
        while True:
            handle(await subscriber.receive())

    def _on_fan_speed(self, packet: Packet) -> None:
        self._rpm = FanSpeedRPMPacket.from_packet(packet).rpm

    def _on_air_flow(self, packet: Packet) -> None:
        self._air_flow_temperature = AirFlowTemperaturePacket.from_packet(
            packet
        ).temperature

    def _write(self, packet: Packet) -> None:
        with self._write_lock:
            write_packet(self._port, packet)

    def set_fan_speed_percent(self, percent: int) -> None:
        self._write(SetFanSpeedPercentPacket(percent=percent).packet())

    def set_led(self, color: Color) -> None:
        self._write(SetLEDPacket(color=color).packet())

    def fan_speed_rpm(self) -> float:
        return self._rpm

    async def wait_for_button_press(self) -> None:
        with self._bus.subscribe(
            INBOUND_TOPIC, 1, match_cmd(NOTIFY_BUTTON_PRESS)
        ) as subscriber:
            packet = await subscriber.receive()
        if packet.command != NOTIFY_BUTTON_PRESS:
            raise CommunicationError("unexpected packet")

    def air_flow_temperature(self) -> float:
        return self._air_flow_temperature

    def close(self) -> None:
        self._port.close()


def smart_fan_unit_present(port_name: str, timeout: float = 3.0) -> bool:
    """Return whether a start-of-frame byte arrives on the port in time.

    The smart fan unit reports its sensors every two seconds, so a frame
    marker shows up quickly when one is connected.
    """
    deadline = time.monotonic() + timeout
    with serial.Serial(port_name, baudrate=BAUDRATE, timeout=_POLL_INTERVAL) as port:
        while time.monotonic() < deadline:
            chunk = port.read(1)
            if chunk and chunk[0] == SOF:
                return True
    return False


def open_smart_fan_unit(port_name: str) -> SmartFanUnit:
    """Open the serial port and return a client for the fan unit on it."""
    return SmartFanUnit(serial.Serial(port_name, baudrate=BAUDRATE))
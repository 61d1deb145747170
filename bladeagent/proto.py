"""Framed serial protocol spoken between a blade and its smart fan unit.

Every packet carries one command byte and three data bytes. On the wire a
packet is framed by SOF/EOF and followed by an XOR checksum; bytes that
collide with the framing bytes are escaped.
"""

from __future__ import annotations

import functools
import operator
from dataclasses import dataclass
from typing import Protocol

SOF = 0x7E  # start of frame
ESC = 0x7D  # escape character
XOR = 0x20  # value escaped bytes are XORed with
EOF = 0x7F  # end of frame

_FRAME_LENGTH = 7  # SOF, command, three data bytes, checksum, EOF
_RESERVED = frozenset((SOF, EOF, ESC))


class _Reader(Protocol):
    def read(self, size: int, /) -> bytes: ...


class _Writer(Protocol):
    def write(self, data: bytes, /) -> object: ...


class ProtocolError(Exception):
    """Base class for errors in received frames."""


class ChecksumMismatchError(ProtocolError):
    """The checksum of a received frame does not match its content."""

    def __init__(self) -> None:
        super().__init__("checksum mismatch")


class InvalidFramingByteError(ProtocolError):
    """A received frame does not start with SOF or end with EOF."""

    def __init__(self) -> None:
        super().__init__("invalid framing byte")


@dataclass(frozen=True)
class Packet:
    """A command byte with three bytes of payload."""

    command: int
    data: tuple[int, int, int] = (0, 0, 0)

    def __post_init__(self) -> None:
        data = tuple(self.data)
        if len(data) != 3:
            raise ValueError(f"packet data must be exactly 3 bytes, got {len(data)}")
        for value in (self.command, *data):
            if not 0 <= value <= 0xFF:
                raise ValueError(f"byte value out of range: {value}")
        object.__setattr__(self, "data", data)

    def checksum(self) -> int:
        """Return the XOR of the command and data bytes."""
        return functools.reduce(operator.xor, self.data, self.command)


def _encode(packet: Packet) -> bytes:
    frame = bytearray([SOF])
    for byte in (packet.command, *packet.data, packet.checksum()):
        if byte in _RESERVED:
            frame += bytes((ESC, byte ^ XOR))
        else:
            frame.append(byte)
    frame.append(EOF)
    return bytes(frame)


def write_packet(stream: _Writer, packet: Packet) -> None:
    """Write one framed, escaped packet to a binary stream."""
    stream.write(_encode(packet))


def read_packet(stream: _Reader) -> Packet:
    """Read the next packet from a binary stream.

    Bytes before the first SOF and frames of the wrong length are dropped.
    Raises EOFError when the stream ends, ChecksumMismatchError or
    InvalidFramingByteError when a complete frame is invalid.
    """
    buffer = bytearray()
    started = False
    escaped = False

    while True:
        chunk = stream.read(1)
        if not chunk:
            raise EOFError("stream ended before a complete packet was read")
        byte = chunk[0]

        if not started:
            if byte != SOF:
                continue
            started = True

        if escaped:
            buffer.append(byte ^ XOR)
            escaped = False
        elif byte == ESC:
            escaped = True
        else:
            buffer.append(byte)

        if byte == EOF and not escaped:
            if len(buffer) == _FRAME_LENGTH:
                break
            buffer.clear()

    if buffer[0] != SOF or buffer[-1] != EOF:
        raise InvalidFramingByteError()

    packet = Packet(buffer[1], (buffer[2], buffer[3], buffer[4]))
    if buffer[5] != packet.checksum():
        raise ChecksumMismatchError()
    return packet
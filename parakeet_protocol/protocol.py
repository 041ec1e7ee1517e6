# SPDX-License-Identifier: MIT
# Copyright (c) 2026 ADNT Sarl <info@adnt.io>

"""
Parakeet upgrade protocol definitions and serialization.

Every datagram is a frame:

    [preamble:u16][command:u16][sequence:u16][length:u16]
    [payload: length bytes, zero-padded to a multiple of 4]
    [crc:u32]

All integers are little-endian. The CRC covers the header and the padded
payload. The command field is the same for every message; the payload shape
is selected by the sentinel value in its first word.
"""

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Tuple

from .crc32 import crc32_bytes

PACK_PREAMBLE = 0x484C
F_PACK = 0x0046

HEADER = struct.Struct("<HHHH")
HEADER_SIZE = HEADER.size
CHECKSUM_SIZE = 4

# Largest datagram either side sends or accepts.
MAX_DATAGRAM_SIZE = 1024
MAX_PAYLOAD_SIZE = MAX_DATAGRAM_SIZE - HEADER_SIZE - CHECKSUM_SIZE

BLOCK_SIZE = 512
BLOCK_WORDS = BLOCK_SIZE // 4

OP_FLASH_ERASE = 0xFE00EEEE
OP_WRITE_IAP = 0xFE00AAAA
OP_FIRMWARE_RESET = 0xFE00BBBB

CRC_INIT = 0xFFFFFFFF
RESET_SIGNATURE = 0xABCD1234

PART_HEADER = struct.Struct("<II")
PART_SIZE = PART_HEADER.size + BLOCK_SIZE

RESPONSE_HEADER = struct.Struct("<Ii")
RESPONSE_MESSAGE_SIZE = 128
RESPONSE_SIZE = RESPONSE_HEADER.size + RESPONSE_MESSAGE_SIZE


class DecodeError(ValueError):
    """Inbound datagram is not a valid frame."""
    pass


class BadPreamble(DecodeError):
    pass


class LengthMismatch(DecodeError):
    pass


class ChecksumMismatch(DecodeError):
    pass


@dataclass(frozen=True)
class WireHeader:
    """Fixed 8-byte frame prefix."""
    preamble: int
    command: int
    sequence: int
    length: int

    def to_bytes(self) -> bytes:
        return HEADER.pack(self.preamble, self.command, self.sequence, self.length)

    @classmethod
    def from_bytes(cls, data: bytes) -> "WireHeader":
        return cls(*HEADER.unpack_from(data))


def padded_length(length: int) -> int:
    """Round a payload length up to a whole number of words."""
    return (length + 3) & ~3


def encode_frame(payload: bytes, sequence: int) -> bytes:
    """
    Wrap a payload in a frame.

    Args:
        payload: Message body (at most MAX_PAYLOAD_SIZE bytes)
        sequence: 16-bit correlation number

    Returns:
        Encoded frame, 8 + padded payload + 4 bytes long

    Raises:
        ValueError: If the payload does not fit in one datagram
    """
    if len(payload) > MAX_PAYLOAD_SIZE:
        raise ValueError(
            f"Payload too large: {len(payload)} > {MAX_PAYLOAD_SIZE}"
        )

    header = WireHeader(PACK_PREAMBLE, F_PACK, sequence & 0xFFFF, len(payload))
    padding = b"\x00" * (padded_length(len(payload)) - len(payload))
    body = header.to_bytes() + payload + padding
    return body + struct.pack("<I", crc32_bytes(body))


def decode_frame(data: bytes) -> Tuple[WireHeader, bytes]:
    """
    Validate a received frame.

    Args:
        data: Raw datagram

    Returns:
        Tuple of (header, payload of header.length bytes)

    Raises:
        BadPreamble: If the preamble is wrong
        LengthMismatch: If the declared length disagrees with the datagram size
        ChecksumMismatch: If the CRC trailer is wrong
    """
    if len(data) < HEADER_SIZE + CHECKSUM_SIZE:
        raise LengthMismatch(f"Datagram too short: {len(data)} bytes")

    header = WireHeader.from_bytes(data)
    if header.preamble != PACK_PREAMBLE:
        raise BadPreamble(f"Bad preamble 0x{header.preamble:04x}")

    if header.length + HEADER_SIZE + CHECKSUM_SIZE != len(data):
        raise LengthMismatch(
            f"Header length {header.length} does not match datagram size {len(data)}"
        )

    (expected,) = struct.unpack_from("<I", data, HEADER_SIZE + header.length)
    covered = HEADER_SIZE + (header.length // 4) * 4
    actual = crc32_bytes(bytes(data[:covered]))
    if expected != actual:
        raise ChecksumMismatch(f"CRC 0x{expected:08x} != 0x{actual:08x}")

    return header, bytes(data[HEADER_SIZE:HEADER_SIZE + header.length])


class CommandKind(IntEnum):
    """Payload shapes carried inside a frame."""
    ERASE = 0
    WRITE_BLOCK = 1
    FINALIZE = 2
    RESET = 3

    def __str__(self) -> str:
        return self.name

    @classmethod
    def from_offset(cls, offset: int) -> "CommandKind":
        """Classify a payload by the sentinel in its offset word."""
        return _OPCODE_KINDS.get(offset, cls.WRITE_BLOCK)


_OPCODE_KINDS = {
    OP_FLASH_ERASE: CommandKind.ERASE,
    OP_WRITE_IAP: CommandKind.FINALIZE,
    OP_FIRMWARE_RESET: CommandKind.RESET,
}


@dataclass(frozen=True)
class FirmwarePart:
    """One command payload: offset word, CRC word and a 512-byte data area."""
    kind: CommandKind
    offset: int
    crc: int
    data: bytes

    def to_bytes(self) -> bytes:
        return PART_HEADER.pack(self.offset, self.crc) + self.data

    @classmethod
    def from_bytes(cls, payload: bytes) -> "FirmwarePart":
        if len(payload) < PART_SIZE:
            raise ValueError(f"Truncated command: {len(payload)} bytes")
        offset, crc = PART_HEADER.unpack_from(payload)
        data = bytes(payload[PART_HEADER.size:PART_SIZE])
        return cls(CommandKind.from_offset(offset), offset, crc, data)

    @property
    def first_word(self) -> int:
        return struct.unpack_from("<I", self.data)[0]


def _control(kind: CommandKind, opcode: int, value: int) -> FirmwarePart:
    data = struct.pack("<I", value) + b"\x00" * (BLOCK_SIZE - 4)
    return FirmwarePart(kind, opcode, CRC_INIT, data)


class Command:
    """Command builder for the upgrade protocol."""

    @staticmethod
    def erase(length: int) -> FirmwarePart:
        """Create an Erase command for an image of `length` bytes."""
        return _control(CommandKind.ERASE, OP_FLASH_ERASE, length)

    @staticmethod
    def write_block(offset: int, block: bytes) -> FirmwarePart:
        """Create a BlockWrite command for one 512-byte block."""
        if len(block) != BLOCK_SIZE:
            raise ValueError(f"Block must be {BLOCK_SIZE} bytes, got {len(block)}")
        return FirmwarePart(
            CommandKind.WRITE_BLOCK, offset, crc32_bytes(block), bytes(block)
        )

    @staticmethod
    def finalize(length: int) -> FirmwarePart:
        """Create a Finalize (IAP commit) command."""
        return _control(CommandKind.FINALIZE, OP_WRITE_IAP, length)

    @staticmethod
    def reset() -> FirmwarePart:
        """Create a Reset command."""
        return _control(CommandKind.RESET, OP_FIRMWARE_RESET, RESET_SIGNATURE)


@dataclass(frozen=True)
class DeviceResponse:
    """Reply to any command."""
    offset: int
    result: int
    message: str = ""

    @property
    def is_ok(self) -> bool:
        return self.result == 0

    def to_bytes(self) -> bytes:
        msg = self.message.encode("ascii", errors="replace")[:RESPONSE_MESSAGE_SIZE - 1]
        return RESPONSE_HEADER.pack(self.offset, self.result) + msg.ljust(
            RESPONSE_MESSAGE_SIZE, b"\x00"
        )


def decode_response(payload: bytes) -> DeviceResponse:
    """
    Decode a response payload.

    Raises:
        ValueError: If the payload is shorter than a response
    """
    if len(payload) < RESPONSE_SIZE:
        raise ValueError(f"Truncated response: {len(payload)} < {RESPONSE_SIZE}")

    offset, result = RESPONSE_HEADER.unpack_from(payload)
    raw = payload[RESPONSE_HEADER.size:RESPONSE_SIZE]
    message = bytes(raw).split(b"\x00", 1)[0].decode("ascii", errors="replace")
    return DeviceResponse(offset=offset, result=result, message=message)

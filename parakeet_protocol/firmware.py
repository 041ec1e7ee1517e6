# SPDX-License-Identifier: MIT
# Copyright (c) 2026 ADNT Sarl <info@adnt.io>

"""
Firmware image (.lhl) loading and validation.

Layout, little-endian:

    [magic:u32][length:u32][sent:u32][crc:u32][date:4 bytes]
    [reserved:120 bytes][description:512 bytes, NUL-terminated]
    [payload: length bytes]
"""

import struct
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple, Union

from .crc32 import crc32_bytes
from .protocol import BLOCK_SIZE

FIRMWARE_MAGIC = 0xB18E03EA

IMAGE_HEADER = struct.Struct("<IIII4s120s512s")
HEADER_SIZE = IMAGE_HEADER.size


class FirmwareError(Exception):
    """Base exception for image validation errors."""
    code = 0


class FirmwareNotFound(FirmwareError):
    code = -1


class FirmwareOpenFailed(FirmwareError):
    code = -2


class BadMagic(FirmwareError):
    code = -3


class MisalignedLength(FirmwareError):
    code = -4


class SizeMismatch(FirmwareError):
    code = -5


class ImageChecksumMismatch(FirmwareError):
    code = -6


@dataclass(frozen=True)
class FirmwareImage:
    """A validated firmware image."""
    magic: int
    length: int
    checksum: int
    date: Tuple[int, int, int, int]
    description: str
    payload: bytes

    @property
    def build_date(self) -> str:
        year, month, day, hour = self.date
        return f"20{year:02d}/{month:02d}/{day:02d} - {hour:02d}:00"

    @property
    def block_count(self) -> int:
        return self.length // BLOCK_SIZE


def parse_firmware(data: bytes) -> FirmwareImage:
    """
    Validate an image held in memory.

    Raises:
        BadMagic: If the header code is wrong
        MisalignedLength: If the payload length is not a multiple of 512
        SizeMismatch: If header + payload length differs from len(data)
        ImageChecksumMismatch: If the payload CRC is wrong
    """
    if len(data) < 4:
        raise BadMagic(f"File too short for a header ({len(data)} bytes)")
    (magic,) = struct.unpack_from("<I", data)
    if magic != FIRMWARE_MAGIC:
        raise BadMagic(f"File header code {magic:x}")

    if len(data) < HEADER_SIZE:
        raise SizeMismatch(f"Truncated header: {len(data)} < {HEADER_SIZE}")
    magic, length, _sent, checksum, date, _reserved, describe = IMAGE_HEADER.unpack_from(data)

    if length % BLOCK_SIZE:
        raise MisalignedLength(f"Length {length} is not a multiple of {BLOCK_SIZE}")

    if HEADER_SIZE + length != len(data):
        raise SizeMismatch(f"Length error {HEADER_SIZE + length} != {len(data)}")

    payload = bytes(data[HEADER_SIZE:])
    actual = crc32_bytes(payload)
    if actual != checksum:
        raise ImageChecksumMismatch(f"CRC error 0x{checksum:08x} != 0x{actual:08x}")

    return FirmwareImage(
        magic=magic,
        length=length,
        checksum=checksum,
        date=tuple(date),
        description=describe.split(b"\x00", 1)[0].decode("latin-1"),
        payload=payload,
    )


def load_firmware(path: Union[str, Path]) -> FirmwareImage:
    """
    Read and validate a firmware image file.

    Raises:
        FirmwareNotFound: If the file cannot be stat'ed
        FirmwareOpenFailed: If the file cannot be read
        FirmwareError: Any of the parse_firmware errors
    """
    path = Path(path)
    try:
        size = path.stat().st_size
    except OSError as e:
        raise FirmwareNotFound(f"Can not read {path} info: {e}") from e

    try:
        with open(path, "rb") as f:
            data = f.read()
    except OSError as e:
        raise FirmwareOpenFailed(f"Can not open file {path}: {e}") from e

    if len(data) != size:
        raise SizeMismatch(f"Read {len(data)} bytes, expected {size}")
    return parse_firmware(data)

# SPDX-License-Identifier: MIT
# Copyright (c) 2026 ADNT Sarl <info@adnt.io>

"""
CRC-32 as computed by the STM32 CRC peripheral.

Polynomial 0x04C11DB7, initial value 0xFFFFFFFF, no final XOR. Input is a
sequence of 32-bit words, each fed most significant bit first. The sensor
uses this for both packet trailers and firmware image integrity.
"""

import struct
from typing import Iterable

POLYNOMIAL = 0x04C11DB7
INITIAL = 0xFFFFFFFF

# Pre-computed CRC-32 lookup table (MSB first)
_CRC32_TABLE = []


def _init_table():
    """Initialize the CRC-32 lookup table."""
    global _CRC32_TABLE
    for i in range(256):
        crc = i << 24
        for _ in range(8):
            if crc & 0x80000000:
                crc = ((crc << 1) ^ POLYNOMIAL) & 0xFFFFFFFF
            else:
                crc = (crc << 1) & 0xFFFFFFFF
        _CRC32_TABLE.append(crc)


_init_table()


def crc32(words: Iterable[int]) -> int:
    """
    Compute the STM32 CRC-32 of a sequence of 32-bit words.

    Args:
        words: Unsigned 32-bit integers

    Returns:
        32-bit CRC value
    """
    crc = INITIAL
    for word in words:
        for shift in (24, 16, 8, 0):
            index = ((crc >> 24) ^ (word >> shift)) & 0xFF
            crc = ((crc << 8) & 0xFFFFFFFF) ^ _CRC32_TABLE[index]
    return crc


def crc32_bytes(data: bytes) -> int:
    """
    Compute the CRC of word-aligned bytes read as little-endian words.

    Raises:
        ValueError: If len(data) is not a multiple of 4
    """
    if len(data) % 4:
        raise ValueError(f"Data length {len(data)} is not a multiple of 4")
    return crc32(struct.unpack(f"<{len(data) // 4}I", data))

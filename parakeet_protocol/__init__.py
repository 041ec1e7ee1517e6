# SPDX-License-Identifier: MIT
# Copyright (c) 2026 ADNT Sarl <info@adnt.io>

"""
Parakeet Upgrade Protocol - Python client library.

This package pushes firmware to a Parakeet ProE lidar sensor over UDP.

Example usage:
    from parakeet_protocol import Transport, Upgrader, load_firmware

    image = load_firmware("Parakeet.lhl")
    print(f"Built {image.build_date}: {image.description}")

    with Transport("192.168.0.5", 6543) as transport:
        Upgrader(
            transport,
            progress_callback=lambda sent, total: print(f"{sent}/{total}"),
        ).run(image.payload)
"""

from .crc32 import crc32, crc32_bytes
from .firmware import (
    FirmwareImage,
    FirmwareError,
    FirmwareNotFound,
    FirmwareOpenFailed,
    BadMagic,
    MisalignedLength,
    SizeMismatch,
    ImageChecksumMismatch,
    load_firmware,
    parse_firmware,
)
from .protocol import (
    Command,
    CommandKind,
    FirmwarePart,
    DeviceResponse,
    WireHeader,
    DecodeError,
    BadPreamble,
    LengthMismatch,
    ChecksumMismatch,
    encode_frame,
    decode_frame,
    decode_response,
)
from .transport import (
    Transport,
    TransportError,
    TransportTimeout,
    ProtocolError,
    DeviceError,
)
from .upgrade import (
    RetryPolicy,
    Upgrader,
    UpgradeError,
    UpgradeState,
    upgrade,
)

__version__ = "0.1.0"

__all__ = [
    # CRC
    "crc32",
    "crc32_bytes",
    # Firmware image
    "FirmwareImage",
    "FirmwareError",
    "FirmwareNotFound",
    "FirmwareOpenFailed",
    "BadMagic",
    "MisalignedLength",
    "SizeMismatch",
    "ImageChecksumMismatch",
    "load_firmware",
    "parse_firmware",
    # Protocol types
    "Command",
    "CommandKind",
    "FirmwarePart",
    "DeviceResponse",
    "WireHeader",
    "DecodeError",
    "BadPreamble",
    "LengthMismatch",
    "ChecksumMismatch",
    # Protocol encoding
    "encode_frame",
    "decode_frame",
    "decode_response",
    # Transport
    "Transport",
    "TransportError",
    "TransportTimeout",
    "ProtocolError",
    "DeviceError",
    # Upgrade
    "RetryPolicy",
    "Upgrader",
    "UpgradeError",
    "UpgradeState",
    "upgrade",
]

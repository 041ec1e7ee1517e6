#!/usr/bin/env python3
# SPDX-License-Identifier: MIT
# Copyright (c) 2026 ADNT Sarl <info@adnt.io>

"""
Firmware upgrade tool for the Parakeet ProE lidar over UDP.

Usage:
    python parakeet_upgrade.py -d 192.168.0.5 -p 6543 -f Parakeet.lhl

Exit status:
    0           upgrade complete
    -1          bad arguments
    -11 .. -16  firmware file rejected (not found, open failed, bad magic,
                misaligned length, size mismatch, checksum mismatch)
    -3          upgrade sequence failed
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from parakeet_protocol import (
    FirmwareError,
    RetryPolicy,
    TransportError,
    load_firmware,
    upgrade,
)
from parakeet_protocol.transport import DEFAULT_POLL_INTERVAL

EXIT_OK = 0
EXIT_BAD_ARGS = -1
EXIT_LOAD_FAILED = -10
EXIT_UPGRADE_FAILED = -3


class UsageError(Exception):
    pass


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message):
        raise UsageError(message)


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        description="Firmware upgrade tool for the Parakeet ProE lidar"
    )
    parser.add_argument("-d", dest="device", required=True,
                        help="Lidar IP address (e.g., 192.168.0.5)")
    parser.add_argument("-p", dest="port", type=int, required=True,
                        help="Destination UDP port (e.g., 6543)")
    parser.add_argument("-f", dest="file", type=Path, required=True,
                        help="Firmware file (e.g., Parakeet.lhl)")
    parser.add_argument("--max-retries", type=int, default=None,
                        help="Give up on a block after N attempts (default: never)")
    parser.add_argument("--retry-delay", type=float, default=0.0,
                        help="Seconds to wait between block attempts")
    parser.add_argument("--timeout", type=float, default=DEFAULT_POLL_INTERVAL,
                        help="Seconds per response polling slot")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Show per-packet debug output")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except UsageError as e:
        parser.print_usage()
        print(f"Error: {e}")
        return EXIT_BAD_ARGS

    if not 0 < args.port <= 65535:
        parser.print_usage()
        return EXIT_BAD_ARGS

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    try:
        image = load_firmware(args.file)
    except FirmwareError as e:
        print(f"Load firmware {args.file} fail: {e}")
        return EXIT_LOAD_FAILED + e.code

    print(f"Firmware date {image.build_date}   {image.description}")
    print(f"Target:   {args.device}:{args.port} ({image.length} bytes, "
          f"{image.block_count} blocks)")

    def progress(sent: int, total: int):
        pct = sent * 100 // total
        print(f"\rUploading: {pct:3d}% ({sent}/{total} bytes)", end="", flush=True)

    try:
        upgrade(
            args.device,
            args.port,
            image.payload,
            retry_policy=RetryPolicy(args.max_retries, args.retry_delay),
            progress_callback=progress,
            poll_interval=args.timeout,
        )
    except TransportError as e:
        print(f"\nUpgrade failed: {e}")
        return EXIT_UPGRADE_FAILED

    print("\nFirmware upgraded successfully!")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())

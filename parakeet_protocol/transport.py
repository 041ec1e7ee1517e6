# SPDX-License-Identifier: MIT
# Copyright (c) 2026 ADNT Sarl <info@adnt.io>

"""
Transport layer for Parakeet sensor communication.

Sends one framed request per call over UDP and waits for the response that
carries the same sequence number. Retries are the caller's business.
"""

import logging
import random
import socket
from typing import Optional

from .protocol import (
    MAX_DATAGRAM_SIZE,
    Command,
    DecodeError,
    DeviceResponse,
    FirmwarePart,
    decode_frame,
    decode_response,
    encode_frame,
)

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 1.0
DEFAULT_POLL_ATTEMPTS = 3


class TransportError(Exception):
    """Base exception for transport errors."""
    pass


class TransportTimeout(TransportError):
    """No correlated response within the polling budget."""
    pass


class ProtocolError(TransportError):
    """Protocol-level error (short response, offset mismatch, etc.)."""
    pass


class DeviceError(TransportError):
    """Device answered with a non-zero result code."""

    def __init__(self, response: DeviceResponse):
        super().__init__(
            f"Device returned {response.result} at offset "
            f"0x{response.offset:x}: {response.message}"
        )
        self.response = response


class Transport:
    """
    UDP transport to one sensor.

    Can be used as a context manager:
        with Transport("192.168.0.5", 6543) as t:
            resp = t.erase(len(image))
    """

    def __init__(
        self,
        host: str,
        port: int,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        poll_attempts: int = DEFAULT_POLL_ATTEMPTS,
        rng: Optional[random.Random] = None,
    ):
        """
        Open a datagram socket towards the sensor.

        Args:
            host: Sensor IP address (e.g., "192.168.0.5")
            port: Sensor UDP port (e.g., 6543)
            poll_interval: Seconds per receive slot (default 1.0)
            poll_attempts: Receive slots per request (default 3)
            rng: Source of sequence numbers; seed it for reproducible runs
        """
        self._address = (host, port)
        self._poll_attempts = poll_attempts
        self._rng = rng if rng is not None else random.Random()
        self._sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
        self._sock.settimeout(poll_interval)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def close(self):
        """Close the socket."""
        if self._sock is not None:
            self._sock.close()
            self._sock = None

    @property
    def address(self):
        """Return the (host, port) of the sensor."""
        return self._address

    def request(self, payload: bytes) -> bytes:
        """
        Send a payload and wait for the correlated response payload.

        Datagrams that fail to decode or carry another sequence number are
        dropped; each one uses up the receive slot it arrived in.

        Raises:
            TransportError: If the datagram cannot be sent
            TransportTimeout: If no valid response arrives in time
        """
        sequence = self._rng.randrange(0x10000)
        try:
            self._sock.sendto(encode_frame(payload, sequence), self._address)
        except OSError as e:
            raise TransportError(
                f"Send to {self._address[0]}:{self._address[1]} failed: {e}"
            ) from e

        for _ in range(self._poll_attempts):
            try:
                data, _ = self._sock.recvfrom(MAX_DATAGRAM_SIZE)
            except socket.timeout:
                continue
            except OSError as e:
                # e.g. ICMP port unreachable reported on the next receive
                logger.debug("Receive failed: %s", e)
                continue

            try:
                header, body = decode_frame(data)
            except DecodeError as e:
                logger.debug("Dropping datagram (%d bytes): %s", len(data), e)
                continue

            if header.sequence != sequence:
                logger.debug(
                    "Unknown pack %x len %d (sequence %d, expected %d)",
                    header.command, header.length, header.sequence, sequence,
                )
                continue

            return body

        raise TransportTimeout(
            f"No response from {self._address[0]}:{self._address[1]}"
        )

    def send_command(self, part: FirmwarePart) -> DeviceResponse:
        """
        Send a command and decode the device's reply.

        Raises:
            TransportTimeout: If the device does not answer
            ProtocolError: If the reply is short or echoes another offset
        """
        try:
            resp = decode_response(self.request(part.to_bytes()))
        except ValueError as e:
            raise ProtocolError(str(e)) from e

        if resp.offset != part.offset:
            raise ProtocolError(f"Offset {resp.offset:x} != {part.offset:x}")
        return resp

    def erase(self, length: int) -> DeviceResponse:
        """Ask the sensor to erase flash for an image of `length` bytes."""
        return self.send_command(Command.erase(length))

    def write_block(self, offset: int, block: bytes) -> DeviceResponse:
        """Send one 512-byte block at `offset`."""
        return self.send_command(Command.write_block(offset, block))

    def finalize(self, length: int) -> DeviceResponse:
        """Commit the transferred image."""
        return self.send_command(Command.finalize(length))

    def reset(self) -> DeviceResponse:
        """
        Restart the sensor firmware.

        The sensor usually resets before answering, so a TransportTimeout
        here is expected.
        """
        return self.send_command(Command.reset())

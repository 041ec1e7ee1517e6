# SPDX-License-Identifier: MIT
# Copyright (c) 2026 ADNT Sarl <info@adnt.io>

"""Pytest configuration, sensor simulator and image builders."""

import socket
from collections import deque
from typing import Callable, List, Optional

import pytest

from parakeet_protocol.crc32 import crc32_bytes
from parakeet_protocol.firmware import FIRMWARE_MAGIC, IMAGE_HEADER
from parakeet_protocol.protocol import (
    CommandKind,
    DeviceResponse,
    FirmwarePart,
    decode_frame,
    encode_frame,
)


def pytest_addoption(parser):
    """Add custom command-line options."""
    parser.addoption(
        "--device",
        action="store",
        default=None,
        help="Sensor IP address for hardware tests (e.g., 192.168.0.5)",
    )
    parser.addoption(
        "--port",
        action="store",
        type=int,
        default=6543,
        help="Sensor UDP port for hardware tests",
    )
    parser.addoption(
        "--firmware",
        action="store",
        default=None,
        help="Firmware image (.lhl) to upload in hardware tests",
    )


def build_image(
    payload: bytes,
    magic: int = FIRMWARE_MAGIC,
    length: Optional[int] = None,
    checksum: Optional[int] = None,
    date: bytes = bytes([22, 11, 30, 14]),
    description: bytes = b"Parakeet ProE test build",
) -> bytes:
    """Assemble a firmware image file; any header field can be overridden."""
    if length is None:
        length = len(payload)
    if checksum is None:
        checksum = crc32_bytes(payload)
    header = IMAGE_HEADER.pack(
        magic, length, 0, checksum, date, b"\x00" * 120, description
    )
    return header + payload


@pytest.fixture
def payload_1k():
    """Two distinct 512-byte blocks."""
    return bytes(range(256)) * 2 + bytes(reversed(range(256))) * 2


@pytest.fixture
def image_file(tmp_path, payload_1k):
    """A well-formed firmware image on disk."""
    path = tmp_path / "Parakeet.lhl"
    path.write_bytes(build_image(payload_1k))
    return path


class MockSocket:
    """
    Datagram socket double.

    `responder(frame)` is called for every sent datagram and returns the list
    of datagrams to queue for recvfrom. An empty queue behaves like a receive
    timeout.
    """

    def __init__(self, responder: Optional[Callable[[bytes], List[bytes]]] = None):
        self.responder = responder
        self.inbox = deque()
        self.sent = []
        self.timeout = None
        self.recv_calls = 0
        self.closed = False

    def settimeout(self, value):
        self.timeout = value

    def sendto(self, data: bytes, address) -> int:
        self.sent.append((bytes(data), address))
        if self.responder:
            self.inbox.extend(self.responder(bytes(data)))
        return len(data)

    def recvfrom(self, bufsize: int):
        self.recv_calls += 1
        if not self.inbox:
            raise socket.timeout("timed out")
        return self.inbox.popleft()[:bufsize], ("192.168.0.5", 6543)

    def close(self):
        self.closed = True


def reply(request: bytes, result: int = 0, message: str = "ok",
          offset: Optional[int] = None, sequence: Optional[int] = None) -> bytes:
    """Build the sensor's framed answer to a framed request."""
    header, payload = decode_frame(request)
    part = FirmwarePart.from_bytes(payload)
    resp = DeviceResponse(
        offset=part.offset if offset is None else offset,
        result=result,
        message=message,
    )
    seq = header.sequence if sequence is None else sequence
    return encode_frame(resp.to_bytes(), seq)


class FakeDevice:
    """
    Simulated sensor.

    Records every command it receives. `script` maps a call index to a
    callable(request) -> list of datagrams overriding the default success
    reply. Reset commands go unanswered unless answer_reset is set.
    """

    def __init__(self, script=None, answer_reset: bool = False):
        self.commands: List[FirmwarePart] = []
        self.script = script or {}
        self.answer_reset = answer_reset

    def __call__(self, request: bytes) -> List[bytes]:
        _, payload = decode_frame(request)
        part = FirmwarePart.from_bytes(payload)
        index = len(self.commands)
        self.commands.append(part)

        if index in self.script:
            return self.script[index](request)
        if part.kind == CommandKind.RESET and not self.answer_reset:
            return []
        return [reply(request)]

    @property
    def offsets(self) -> List[int]:
        return [part.offset for part in self.commands]

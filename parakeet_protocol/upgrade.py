# SPDX-License-Identifier: MIT
# Copyright (c) 2026 ADNT Sarl <info@adnt.io>

"""
Firmware upgrade sequence.

Erase flash, stream the image in 512-byte blocks, commit it, then reset the
sensor. Blocks are resent until the sensor accepts them; with the default
RetryPolicy that means forever.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from .protocol import BLOCK_SIZE, Command, FirmwarePart
from .transport import DeviceError, Transport, TransportError

logger = logging.getLogger(__name__)


class UpgradeState(Enum):
    """Stage of the upgrade sequence."""
    IDLE = "idle"
    ERASING = "erasing"
    STREAMING = "streaming"
    FINALIZING = "finalizing"
    RESETTING = "resetting"
    DONE = "done"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value


class UpgradeError(TransportError):
    """Upgrade aborted; `stage` is the state that failed."""

    def __init__(self, stage: UpgradeState, message: str):
        super().__init__(f"{stage}: {message}")
        self.stage = stage


@dataclass(frozen=True)
class RetryPolicy:
    """
    How often a rejected block is resent.

    max_attempts=None retries without limit. backoff is the pause in seconds
    between attempts.
    """
    max_attempts: Optional[int] = None
    backoff: float = 0.0

    def should_retry(self, attempt: int) -> bool:
        """Return True if another attempt may follow attempt number `attempt`."""
        return self.max_attempts is None or attempt < self.max_attempts

    def wait(self) -> None:
        """Pause for the backoff interval, if any."""
        if self.backoff > 0:
            time.sleep(self.backoff)


class Upgrader:
    """Drives one firmware upgrade over an open Transport."""

    def __init__(
        self,
        transport: Transport,
        retry_policy: Optional[RetryPolicy] = None,
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ):
        self._transport = transport
        self._retry = retry_policy or RetryPolicy()
        self._progress = progress_callback
        self._state = UpgradeState.IDLE

    @property
    def state(self) -> UpgradeState:
        """Current stage of the sequence."""
        return self._state

    def run(self, firmware: bytes) -> None:
        """
        Upload and activate a firmware payload.

        Args:
            firmware: Image payload, normally a multiple of 512 bytes

        Raises:
            UpgradeError: If erase or finalize fails, or a bounded retry
                policy gives up on a block
        """
        length = len(firmware)

        logger.info("Send erase length %d", length)
        self._control(UpgradeState.ERASING, Command.erase(length))

        self._state = UpgradeState.STREAMING
        offset = 0
        while offset < length:
            block = firmware[offset:offset + BLOCK_SIZE].ljust(BLOCK_SIZE, b"\x00")
            self._send_block(Command.write_block(offset, block))
            offset += BLOCK_SIZE
            if self._progress:
                self._progress(min(offset, length), length)

        logger.info("Sending iap length %d", length)
        self._control(UpgradeState.FINALIZING, Command.finalize(length))

        self._state = UpgradeState.RESETTING
        logger.info("Sending reset")
        try:
            self._transport.send_command(Command.reset())
        except TransportError as e:
            logger.debug("No reset acknowledgement: %s", e)

        self._state = UpgradeState.DONE

    def _control(self, state: UpgradeState, part: FirmwarePart) -> None:
        """Send a one-shot command; any failure aborts the upgrade."""
        self._state = state
        try:
            resp = self._transport.send_command(part)
            if not resp.is_ok:
                raise DeviceError(resp)
        except TransportError as e:
            self._state = UpgradeState.FAILED
            raise UpgradeError(state, str(e)) from e
        logger.info("%s return %d : %s", state, resp.result, resp.message)

    def _send_block(self, part: FirmwarePart) -> None:
        attempt = 0
        while True:
            attempt += 1
            try:
                resp = self._transport.send_command(part)
            except TransportError as e:
                logger.warning("Send part offset %x failed: %s", part.offset, e)
            else:
                logger.info(
                    "Offset %x return %d : %s", part.offset, resp.result, resp.message
                )
                if resp.is_ok:
                    return

            if not self._retry.should_retry(attempt):
                self._state = UpgradeState.FAILED
                raise UpgradeError(
                    UpgradeState.STREAMING,
                    f"Block at offset 0x{part.offset:x} rejected after {attempt} attempts",
                )
            self._retry.wait()


def upgrade(
    host: str,
    port: int,
    firmware: bytes,
    retry_policy: Optional[RetryPolicy] = None,
    progress_callback: Optional[Callable[[int, int], None]] = None,
    **transport_kwargs,
) -> None:
    """
    Open a Transport to the sensor and run a full upgrade.

    Extra keyword arguments go to Transport (poll_interval, poll_attempts,
    rng).
    """
    with Transport(host, port, **transport_kwargs) as transport:
        Upgrader(transport, retry_policy, progress_callback).run(firmware)

"""Resilient byte-stream connection to a single printer."""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Awaitable, Callable

from thermalctl.core.errors import (
    ConnectionLostError,
    NotConnectedError,
    TransportError,
    TransportSendError,
)
from thermalctl.core.model import DetectedDevice, PrinterProfile
from thermalctl.transports.base import Connector, Link

LOGGER = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class ConnectionState(enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


class PrinterConnection:
    """Owns at most one link to a printer and writes bytes to it reliably.

    Writes are split into ``profile.transport.chunk_size`` byte chunks. Each
    chunk is retried with a linear backoff, and a chunk failing with
    ``ConnectionLostError`` triggers a reconnect on the same device before the
    next attempt.

    Not safe for concurrent writers: callers serialize print jobs.
    """

    def __init__(
        self,
        connector: Connector,
        profile: PrinterProfile,
        *,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._connector = connector
        self.profile = profile
        self.sleep = sleep
        self._link: Link | None = None
        self.device: DetectedDevice | None = None
        self.state = ConnectionState.DISCONNECTED

    def is_connected(self) -> bool:
        return (
            self.state is ConnectionState.CONNECTED
            and self._link is not None
            and self._link.is_open()
        )

    async def connect(self, device: DetectedDevice) -> bool:
        if self._link is not None:
            await self.disconnect()

        self.state = ConnectionState.CONNECTING
        try:
            link = await self._connector.open(
                device,
                self.profile,
                on_disconnect=self._handle_remote_disconnect,
            )
        except TransportError as exc:
            LOGGER.error("Failed to connect to printer %s: %s", device.mac, exc)
            self.state = ConnectionState.DISCONNECTED
            return False

        self._link = link
        self.device = device
        self.state = ConnectionState.CONNECTED
        LOGGER.info("Connected to printer %s (%s)", device.mac, device.name)
        return True

    async def disconnect(self) -> None:
        link = self._link
        self._link = None
        self.device = None
        self.state = ConnectionState.DISCONNECTED
        if link is not None:
            await link.close()

    def _handle_remote_disconnect(self) -> None:
        LOGGER.warning("Printer %s disconnected", self.device.mac if self.device else "<unknown>")
        self._link = None
        self.device = None
        self.state = ConnectionState.DISCONNECTED

    def _require_link(self) -> Link:
        if self._link is None:
            raise NotConnectedError("Printer not connected")
        return self._link

    async def write(self, data: bytes) -> None:
        size = self.profile.transport.chunk_size
        for offset in range(0, len(data), size):
            await self._write_chunk(data[offset : offset + size])
        await self.sleep(self.profile.pacing.flush_delay_s)

    async def _write_chunk(self, chunk: bytes) -> None:
        attempts = self.profile.transport.write_attempts
        pacing = self.profile.pacing
        last_error: TransportError | None = None

        for attempt in range(1, attempts + 1):
            link = self._require_link()
            device = self.device
            try:
                await link.write(chunk)
            except ConnectionLostError as exc:
                last_error = exc
                LOGGER.debug("Chunk write attempt %d/%d lost link: %s", attempt, attempts, exc)
                if attempt < attempts:
                    await self.sleep(pacing.retry_backoff_s * attempt)
                    await self._reconnect(link, device)
                continue
            except TransportSendError as exc:
                last_error = exc
                LOGGER.debug("Chunk write attempt %d/%d failed: %s", attempt, attempts, exc)
                if attempt < attempts:
                    await self.sleep(pacing.retry_backoff_s * attempt)
                continue
            await self.sleep(pacing.chunk_delay_s)
            return

        raise TransportSendError(f"Chunk write failed after {attempts} attempts") from last_error

    async def _reconnect(self, link: Link, device: DetectedDevice | None) -> None:
        LOGGER.warning("Printer link lost mid-write, reconnecting")
        self.state = ConnectionState.RECONNECTING
        try:
            await link.reacquire()
        except TransportError as exc:
            LOGGER.error("Printer reconnect failed: %s", exc)
            self._link = None
            self.device = None
            self.state = ConnectionState.DISCONNECTED
            await link.close()
            raise
        # The remote disconnect callback may already have cleared the handles.
        self._link = link
        self.device = device
        self.state = ConnectionState.CONNECTED

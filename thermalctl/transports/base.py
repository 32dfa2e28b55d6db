"""Transport interfaces."""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

from thermalctl.core.model import DetectedDevice, PrinterProfile


class Link(Protocol):
    """An open byte pipe to one printer."""

    async def write(self, data: bytes) -> None:
        """Write one chunk.

        Raises ConnectionLostError when the link is down and TransportSendError
        for failures on a live link.
        """

    def is_open(self) -> bool:
        ...

    async def reacquire(self) -> None:
        """Re-resolve the write characteristic on the same device."""

    async def close(self) -> None:
        """Detach the disconnect callback and release the device. Idempotent."""


class Connector(Protocol):
    async def discover(self, service_uuid: str, *, timeout_s: float) -> list[DetectedDevice]:
        """Return printers advertising ``service_uuid``."""

    async def open(
        self,
        device: DetectedDevice,
        profile: PrinterProfile,
        *,
        on_disconnect: Callable[[], None],
    ) -> Link:
        """Connect to ``device`` and return a ready link."""

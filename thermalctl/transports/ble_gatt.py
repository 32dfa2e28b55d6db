"""BLE GATT transport implementation."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from thermalctl.core.errors import (
    ConnectionLostError,
    DeviceDiscoveryError,
    TransportConnectError,
    TransportSendError,
)
from thermalctl.core.model import DetectedDevice, PrinterProfile

LOGGER = logging.getLogger(__name__)


def _import_bleak() -> Any:
    try:
        import bleak  # type: ignore
    except Exception as exc:  # pragma: no cover - import failure path
        raise TransportConnectError(
            "BLE transport requires 'bleak'. Install dependency and retry."
        ) from exc
    return bleak


class BLEGATTLink:
    def __init__(
        self,
        client: Any,
        profile: PrinterProfile,
        *,
        on_disconnect: Callable[[], None] | None = None,
    ) -> None:
        self._client = client
        self._profile = profile
        self._characteristic: Any | None = None
        self._on_disconnect = on_disconnect

    def handle_disconnect(self, _client: Any = None) -> None:
        self._characteristic = None
        callback = self._on_disconnect
        if callback is not None:
            callback()

    def is_open(self) -> bool:
        return self._characteristic is not None and bool(self._client.is_connected)

    def resolve_characteristic(self) -> None:
        spec = self._profile.transport
        service = self._client.services.get_service(spec.service_uuid)
        if service is None:
            raise TransportConnectError(f"Printer does not expose service {spec.service_uuid}")
        characteristic = service.get_characteristic(spec.write_char_uuid)
        if characteristic is None:
            raise TransportConnectError(
                f"Printer service {spec.service_uuid} has no characteristic {spec.write_char_uuid}"
            )
        self._characteristic = characteristic

    async def write(self, data: bytes) -> None:
        if self._characteristic is None or not self._client.is_connected:
            raise ConnectionLostError("BLE link is not connected")
        try:
            await self._client.write_gatt_char(
                self._characteristic,
                data,
                response=self._profile.transport.write_with_response,
            )
        except Exception as exc:
            if not self._client.is_connected:
                raise ConnectionLostError(f"BLE link dropped during write: {exc}") from exc
            raise TransportSendError(f"BLE GATT write failed: {exc}") from exc

    async def reacquire(self) -> None:
        try:
            if not self._client.is_connected:
                await self._client.connect()
            self.resolve_characteristic()
        except TransportConnectError:
            raise
        except Exception as exc:
            raise TransportConnectError(f"BLE reconnect failed: {exc}") from exc

    async def close(self) -> None:
        self._on_disconnect = None
        self._characteristic = None
        if not self._client.is_connected:
            return
        try:
            await self._client.disconnect()
        except Exception as exc:
            LOGGER.warning("BLE disconnect failed: %s", exc)


class BLEGATTConnector:
    async def discover(self, service_uuid: str, *, timeout_s: float = 5.0) -> list[DetectedDevice]:
        bleak = _import_bleak()
        try:
            found = await bleak.BleakScanner.discover(
                timeout=timeout_s,
                service_uuids=[service_uuid],
            )
        except Exception as exc:
            raise DeviceDiscoveryError(
                f"BLE scan failed. Ensure Bluetooth is powered on. Details: {exc}"
            ) from exc
        return [
            DetectedDevice(
                mac=device.address.upper(),
                name=device.name or "<unknown-device>",
                service_uuids=(service_uuid,),
            )
            for device in found
        ]

    async def open(
        self,
        device: DetectedDevice,
        profile: PrinterProfile,
        *,
        on_disconnect: Callable[[], None],
    ) -> BLEGATTLink:
        bleak = _import_bleak()
        link: BLEGATTLink | None = None

        def _disconnected(client: Any) -> None:
            if link is not None:
                link.handle_disconnect(client)

        client = bleak.BleakClient(
            device.mac,
            disconnected_callback=_disconnected,
            timeout=profile.transport.timeout_s,
        )
        link = BLEGATTLink(client, profile, on_disconnect=on_disconnect)
        try:
            await client.connect()
            link.resolve_characteristic()
        except Exception as exc:
            await link.close()
            if isinstance(exc, TransportConnectError):
                raise
            raise TransportConnectError(f"BLE connect failed for {device.mac}: {exc}") from exc
        return link

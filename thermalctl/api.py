"""Stable public API for building tooling on top of thermalctl.

This module is the supported integration surface for third-party callers such
as POS front ends. Avoid importing from private/internal modules unless
intentionally depending on non-stable internals.

All printer operations are coroutines and share one connection per `Client`.
`connect()` and `print_receipt()` never raise: no printer in range, an
ambiguous match, a failed scan or a failed GATT connection all make them return
`False`, with the cause logged under the `thermalctl` logger.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from pathlib import Path

from thermalctl.core.connection import Sleep
from thermalctl.core.errors import (
    ConfigLoadError,
    ConfigValidationError,
    ConnectionLostError,
    DeviceDiscoveryError,
    DeviceSelectionError,
    NotConnectedError,
    ThermalctlError,
    TransportConnectError,
    TransportError,
    TransportSendError,
)
from thermalctl.core.model import (
    DetectedDevice,
    Layout,
    Order,
    OrderLine,
    PrinterProfile,
    ReceiptData,
    ReceiptItem,
    ResolvedTarget,
    StoreSettings,
)
from thermalctl.core.profile_loader import load_order
from thermalctl.core.receipt import Segment, compile_receipt, receipt_bytes, render_preview
from thermalctl.core.service import DEFAULT_SCAN_TIMEOUT_S, ThermalService
from thermalctl.transports.base import Connector, Link
from thermalctl.transports.ble_gatt import BLEGATTConnector

__all__ = [
    "ThermalctlError",
    "ConfigLoadError",
    "ConfigValidationError",
    "DeviceDiscoveryError",
    "DeviceSelectionError",
    "TransportError",
    "TransportConnectError",
    "TransportSendError",
    "ConnectionLostError",
    "NotConnectedError",
    "DetectedDevice",
    "Order",
    "OrderLine",
    "PrinterProfile",
    "ReceiptData",
    "ReceiptItem",
    "ResolvedTarget",
    "StoreSettings",
    "Connector",
    "Link",
    "BLEGATTConnector",
    "Client",
]


class Client:
    """Public client for discovering printers and printing receipts."""

    def __init__(
        self,
        *,
        connector: Connector | None = None,
        settings: StoreSettings | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._service = ThermalService(connector=connector, settings=settings, sleep=sleep)

    @property
    def load_warnings(self) -> tuple[str, ...]:
        return self._service.load_warnings

    @property
    def settings(self) -> StoreSettings:
        return self._service.settings

    def list_profiles(self) -> list[PrinterProfile]:
        return self._service.list_profiles()

    async def list_devices(
        self,
        *,
        profile_id: str | None = None,
        timeout_s: float = DEFAULT_SCAN_TIMEOUT_S,
    ) -> list[DetectedDevice]:
        return await self._service.list_devices(profile_id=profile_id, timeout_s=timeout_s)

    async def connect(
        self,
        *,
        profile_id: str | None = None,
        device_hint: str | None = None,
        timeout_s: float = DEFAULT_SCAN_TIMEOUT_S,
    ) -> bool:
        return await self._service.connect(
            profile_id=profile_id,
            device_hint=device_hint,
            timeout_s=timeout_s,
        )

    def is_connected(self) -> bool:
        return self._service.is_connected()

    async def disconnect(self) -> None:
        await self._service.disconnect()

    async def print_receipt(self, data: ReceiptData) -> bool:
        return await self._service.print_receipt(data)

    def build_receipt(self, order: Order | Path, *, now: datetime | None = None) -> ReceiptData:
        if isinstance(order, Path):
            order = load_order(order)
        return self._service.build_receipt(order, now=now)

    def preview(self, data: ReceiptData, *, profile_id: str | None = None) -> str:
        return render_preview(self._compile(data, profile_id))

    def render(self, data: ReceiptData, *, profile_id: str | None = None) -> bytes:
        return receipt_bytes(self._compile(data, profile_id))

    def _compile(self, data: ReceiptData, profile_id: str | None) -> list[Segment]:
        layout = self._service.get_profile(profile_id).layout if profile_id else Layout()
        return compile_receipt(data, layout=layout)

"""Service layer used by the CLI and the public API."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from thermalctl.core.connection import PrinterConnection, Sleep
from thermalctl.core.device_match import best_profile_for_device
from thermalctl.core.errors import DeviceSelectionError, ThermalctlError
from thermalctl.core.model import (
    DetectedDevice,
    Order,
    PrinterProfile,
    ReceiptData,
    ResolvedTarget,
    StoreSettings,
)
from thermalctl.core.printer import ReceiptPrinter
from thermalctl.core.profile_loader import load_profiles, load_settings
from thermalctl.core.receipt import build_receipt
from thermalctl.transports.base import Connector
from thermalctl.transports.ble_gatt import BLEGATTConnector

DEFAULT_SCAN_TIMEOUT_S = 5.0
LOGGER = logging.getLogger(__name__)


class ThermalService:
    """Owns the single printer connection of a process.

    Print jobs must be serialized by the caller; the connection does not guard
    against interleaved writes.
    """

    def __init__(
        self,
        *,
        connector: Connector | None = None,
        settings: StoreSettings | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        loaded = load_profiles()
        self.profiles = loaded.profiles
        self.load_warnings = loaded.warnings
        self.settings = settings or load_settings()
        self.connector = connector or BLEGATTConnector()
        self._sleep = sleep
        self.connection: PrinterConnection | None = None

    def list_profiles(self) -> list[PrinterProfile]:
        return sorted(self.profiles.values(), key=lambda p: p.id)

    def get_profile(self, profile_id: str) -> PrinterProfile:
        profile = self.profiles.get(profile_id)
        if profile is None:
            raise DeviceSelectionError(
                f"Unknown profile '{profile_id}'. Use 'thermalctl profiles' to inspect available profiles."
            )
        return profile

    async def list_devices(
        self,
        profile_id: str | None = None,
        timeout_s: float = DEFAULT_SCAN_TIMEOUT_S,
    ) -> list[DetectedDevice]:
        profiles = [self.get_profile(profile_id)] if profile_id else self.list_profiles()
        service_uuids = sorted({p.transport.service_uuid for p in profiles})

        merged: dict[str, DetectedDevice] = {}
        for service_uuid in service_uuids:
            for device in await self.connector.discover(service_uuid, timeout_s=timeout_s):
                seen = merged.get(device.mac)
                if seen is None:
                    merged[device.mac] = device
                    continue
                uuids = tuple(dict.fromkeys(seen.service_uuids + device.service_uuids))
                merged[device.mac] = DetectedDevice(mac=seen.mac, name=seen.name, service_uuids=uuids)
        return list(merged.values())

    async def resolve_target(
        self,
        profile_id: str | None,
        device_hint: str | None,
        timeout_s: float = DEFAULT_SCAN_TIMEOUT_S,
    ) -> ResolvedTarget:
        profile_override = self.get_profile(profile_id) if profile_id else None
        devices = await self.list_devices(profile_id=profile_id, timeout_s=timeout_s)

        if not devices:
            raise DeviceSelectionError("No Bluetooth printers found. Ensure the printer is on and in range.")

        candidates: list[ResolvedTarget] = []
        for device in devices:
            if profile_override:
                profile = profile_override
                if best_profile_for_device(device, {profile.id: profile}) is None:
                    continue
            else:
                profile = best_profile_for_device(device, self.profiles)
                if profile is None:
                    continue
            candidates.append(ResolvedTarget(device=device, profile=profile))

        if device_hint:
            hint = device_hint.lower()
            hinted = [
                c
                for c in candidates
                if c.device.mac.lower() == hint
                or hint in c.device.mac.lower()
                or hint in c.device.name.lower()
                or hint in c.profile.id.lower()
            ]
            if not hinted:
                raise DeviceSelectionError(f"No printer found matching '{device_hint}'")
            candidates = hinted

        if not candidates:
            if profile_id:
                raise DeviceSelectionError(f"No printer in range matched profile '{profile_id}'.")
            raise DeviceSelectionError(
                "No printer in range matched any profile. Use --profile to target explicitly or add a profile."
            )

        if len(candidates) > 1:
            candidate_desc = ", ".join(f"{c.device.mac} ({c.device.name})" for c in candidates)
            raise DeviceSelectionError(
                f"Multiple printers found: {candidate_desc}. Use --device to choose one."
            )

        return candidates[0]

    async def connect(
        self,
        profile_id: str | None = None,
        device_hint: str | None = None,
        timeout_s: float = DEFAULT_SCAN_TIMEOUT_S,
    ) -> bool:
        """Scan, pick a printer and connect to it.

        Returns False instead of raising when no printer can be selected or the
        scan itself fails; call ``resolve_target`` directly to get the reason.
        """
        try:
            target = await self.resolve_target(profile_id, device_hint, timeout_s=timeout_s)
        except ThermalctlError as exc:
            LOGGER.error("Failed to connect to printer: %s", exc)
            return False
        return await self.connect_target(target)

    async def connect_target(self, target: ResolvedTarget) -> bool:
        await self.disconnect()
        self.connection = PrinterConnection(self.connector, target.profile, sleep=self._sleep)
        return await self.connection.connect(target.device)

    def is_connected(self) -> bool:
        return self.connection is not None and self.connection.is_connected()

    async def disconnect(self) -> None:
        if self.connection is not None:
            await self.connection.disconnect()

    async def print_receipt(self, data: ReceiptData) -> bool:
        if self.connection is None:
            LOGGER.error("Failed to print receipt %s: no printer connected", data.receipt_number)
            return False
        return await ReceiptPrinter(self.connection).print_receipt(data)

    def build_receipt(self, order: Order, *, now: datetime | None = None) -> ReceiptData:
        return build_receipt(order, self.settings, now=now or datetime.now())

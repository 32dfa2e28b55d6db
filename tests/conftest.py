from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from pathlib import Path

import pytest

from thermalctl.core.errors import DeviceDiscoveryError, TransportConnectError, TransportError
from thermalctl.core.model import (
    DetectedDevice,
    MatchRules,
    PrinterProfile,
    ReceiptData,
    ReceiptItem,
    SERVICE_UUID,
)


class FakeLink:
    """In-memory link; ``script`` holds the outcome of successive writes."""

    def __init__(
        self,
        script: list[Exception | None] | None = None,
        *,
        open_: bool = True,
        drop_after: int | None = None,
    ) -> None:
        self.script = list(script or [])
        self.open = open_
        self.drop_after = drop_after
        self.writes: list[bytes] = []
        self.attempts = 0
        self.reacquired = 0
        self.reacquire_error: TransportError | None = None
        self.closed = False
        self.on_disconnect: Callable[[], None] | None = None

    async def write(self, data: bytes) -> None:
        self.attempts += 1
        if self.script:
            outcome = self.script.pop(0)
            if outcome is not None:
                raise outcome
        self.writes.append(bytes(data))
        if self.drop_after is not None and len(self.writes) == self.drop_after:
            self.drop()

    def is_open(self) -> bool:
        return self.open and not self.closed

    async def reacquire(self) -> None:
        self.reacquired += 1
        if self.reacquire_error is not None:
            raise self.reacquire_error
        self.open = True

    async def close(self) -> None:
        self.on_disconnect = None
        self.closed = True

    def drop(self) -> None:
        """Simulate a remote GATT disconnect."""
        self.open = False
        callback = self.on_disconnect
        if callback is not None:
            callback()

    @property
    def data(self) -> bytes:
        return b"".join(self.writes)


class FakeConnector:
    def __init__(
        self,
        devices: list[DetectedDevice] | None = None,
        *,
        link: FakeLink | None = None,
        fail: bool = False,
        scan_fail: bool = False,
    ) -> None:
        self.devices = list(devices or [])
        self.link = link
        self.fail = fail
        self.scan_fail = scan_fail
        self.scans: list[tuple[str, float]] = []
        self.opened: list[DetectedDevice] = []

    async def discover(self, service_uuid: str, *, timeout_s: float) -> list[DetectedDevice]:
        self.scans.append((service_uuid, timeout_s))
        if self.scan_fail:
            raise DeviceDiscoveryError("BLE scan failed. Ensure Bluetooth is powered on.")
        return [d for d in self.devices if not d.service_uuids or service_uuid in d.service_uuids]

    async def open(
        self,
        device: DetectedDevice,
        profile: PrinterProfile,
        *,
        on_disconnect: Callable[[], None],
    ) -> FakeLink:
        if self.fail:
            raise TransportConnectError(f"BLE connect failed for {device.mac}")
        if self.link is None:
            self.link = FakeLink()
        self.link.closed = False
        self.link.on_disconnect = on_disconnect
        self.opened.append(device)
        return self.link


class SleepRecorder:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    return tmp_path


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def profile() -> PrinterProfile:
    return PrinterProfile(
        id="test_printer",
        name="Test Printer",
        match=MatchRules(name_contains=("MTP",), mac_prefix=()),
    )


@pytest.fixture
def printer_device() -> DetectedDevice:
    return DetectedDevice(mac="66:22:B3:00:11:22", name="MTP-II", service_uuids=(SERVICE_UUID,))


@pytest.fixture
def receipt() -> ReceiptData:
    return ReceiptData(
        receipt_number="INV-1760000000000",
        order_date=datetime(2026, 10, 19, 14, 5),
        items=(
            ReceiptItem(name="Nasi Goreng", quantity=2, price=15000, total=30000),
            ReceiptItem(name="Es Teh", quantity=1, price=5000, total=5000),
        ),
        subtotal=35000,
        tax=3500,
        total=38500,
        payment_method="Tunai",
        customer_name="Budi",
        table_number="7",
        cashier="Sari",
        restaurant_name="Warung Makan Meninting",
        restaurant_address="Jl. Raya Meninting No. 123",
        restaurant_phone="0812-3456-7890",
        footer_message=None,
        tax_rate=10,
    )

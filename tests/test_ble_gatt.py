from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest

from conftest import SleepRecorder
from thermalctl.core.connection import ConnectionState, PrinterConnection
from thermalctl.core.errors import (
    ConnectionLostError,
    DeviceDiscoveryError,
    TransportConnectError,
    TransportSendError,
)
from thermalctl.core.model import SERVICE_UUID, WRITE_CHAR_UUID, DetectedDevice, MatchRules, PrinterProfile
from thermalctl.transports import ble_gatt
from thermalctl.transports.ble_gatt import BLEGATTConnector, BLEGATTLink


class FakeService:
    def __init__(self, chars: dict[str, object]) -> None:
        self.chars = chars

    def get_characteristic(self, uuid: str) -> object | None:
        return self.chars.get(uuid)


class FakeServices:
    def __init__(self, services: dict[str, FakeService]) -> None:
        self.services = services

    def get_service(self, uuid: str) -> FakeService | None:
        return self.services.get(uuid)


class FakeBleakClient:
    def __init__(self, *, with_char: bool = True) -> None:
        chars = {WRITE_CHAR_UUID: "char-2af1"} if with_char else {}
        self.services = FakeServices({SERVICE_UUID: FakeService(chars)})
        self.is_connected = True
        self.calls: list[tuple[object, bytes, bool]] = []
        self.fail_with: Exception | None = None
        self.drop_on_fail = False
        self.connects = 0
        self.disconnects = 0

    async def write_gatt_char(self, char: object, data: bytes, response: bool) -> None:
        if self.fail_with is not None:
            if self.drop_on_fail:
                self.is_connected = False
            raise self.fail_with
        self.calls.append((char, data, response))

    async def connect(self) -> None:
        self.connects += 1
        self.is_connected = True

    async def disconnect(self) -> None:
        self.disconnects += 1
        self.is_connected = False


def _profile() -> PrinterProfile:
    return PrinterProfile(id="p", name="p", match=MatchRules(name_contains=(), mac_prefix=()))


def _link(client: FakeBleakClient, **kwargs) -> BLEGATTLink:
    link = BLEGATTLink(client, _profile(), **kwargs)
    link.resolve_characteristic()
    return link


def test_write_uses_resolved_characteristic() -> None:
    client = FakeBleakClient()
    link = _link(client)

    assert link.is_open()
    asyncio.run(link.write(b"\x1b@"))
    assert client.calls == [("char-2af1", b"\x1b@", True)]


def test_missing_characteristic_rejected() -> None:
    link = BLEGATTLink(FakeBleakClient(with_char=False), _profile())
    with pytest.raises(TransportConnectError, match="no characteristic"):
        link.resolve_characteristic()
    assert link.is_open() is False


def test_failure_on_live_link_is_send_error() -> None:
    client = FakeBleakClient()
    client.fail_with = RuntimeError("busy")
    link = _link(client)

    with pytest.raises(TransportSendError):
        asyncio.run(link.write(b"abc"))


def test_failure_after_drop_is_connection_lost() -> None:
    client = FakeBleakClient()
    client.fail_with = RuntimeError("Not connected")
    client.drop_on_fail = True
    link = _link(client)

    with pytest.raises(ConnectionLostError):
        asyncio.run(link.write(b"abc"))


def test_reacquire_reconnects_same_client() -> None:
    client = FakeBleakClient()
    link = _link(client)
    client.is_connected = False

    asyncio.run(link.reacquire())
    assert client.connects == 1
    assert link.is_open()


def test_disconnect_callback_detached_on_close() -> None:
    events: list[str] = []
    client = FakeBleakClient()
    link = _link(client, on_disconnect=lambda: events.append("gone"))

    link.handle_disconnect()
    assert events == ["gone"]
    assert link.is_open() is False

    asyncio.run(link.close())
    link.handle_disconnect()
    assert events == ["gone"]
    assert client.disconnects == 1

    asyncio.run(link.close())
    assert client.disconnects == 1


class FakeScanner:
    found: list[SimpleNamespace] = []
    error: Exception | None = None
    calls: list[dict[str, object]] = []

    @classmethod
    async def discover(cls, **kwargs: object) -> list[SimpleNamespace]:
        cls.calls.append(kwargs)
        if cls.error is not None:
            raise cls.error
        return cls.found


class FakeGattClient(FakeBleakClient):
    with_char = True
    connect_error: Exception | None = None
    instances: list["FakeGattClient"] = []

    def __init__(self, address: str, *, disconnected_callback, timeout: float) -> None:
        super().__init__(with_char=type(self).with_char)
        self.address = address
        self.disconnected_callback = disconnected_callback
        self.timeout = timeout
        self.is_connected = False
        type(self).instances.append(self)

    async def connect(self) -> None:
        if type(self).connect_error is not None:
            raise type(self).connect_error
        await super().connect()

    def drop(self) -> None:
        self.is_connected = False
        self.disconnected_callback(self)


@pytest.fixture
def fake_bleak(monkeypatch: pytest.MonkeyPatch) -> SimpleNamespace:
    scanner = type("Scanner", (FakeScanner,), {"found": [], "error": None, "calls": []})
    client = type("Client", (FakeGattClient,), {"with_char": True, "connect_error": None, "instances": []})
    module = SimpleNamespace(BleakScanner=scanner, BleakClient=client)
    monkeypatch.setattr(ble_gatt, "_import_bleak", lambda: module)
    return module


def test_discover_maps_scan_results(fake_bleak: SimpleNamespace) -> None:
    fake_bleak.BleakScanner.found = [
        SimpleNamespace(address="66:22:b3:00:11:22", name="MTP-II"),
        SimpleNamespace(address="aa:bb:cc:dd:ee:ff", name=None),
    ]

    devices = asyncio.run(BLEGATTConnector().discover(SERVICE_UUID, timeout_s=2.5))

    assert fake_bleak.BleakScanner.calls == [{"timeout": 2.5, "service_uuids": [SERVICE_UUID]}]
    assert devices == [
        DetectedDevice(mac="66:22:B3:00:11:22", name="MTP-II", service_uuids=(SERVICE_UUID,)),
        DetectedDevice(mac="AA:BB:CC:DD:EE:FF", name="<unknown-device>", service_uuids=(SERVICE_UUID,)),
    ]


def test_discover_failure_is_wrapped(fake_bleak: SimpleNamespace) -> None:
    fake_bleak.BleakScanner.error = OSError("adapter powered off")

    with pytest.raises(DeviceDiscoveryError, match="adapter powered off") as exc:
        asyncio.run(BLEGATTConnector().discover(SERVICE_UUID, timeout_s=1.0))
    assert isinstance(exc.value.__cause__, OSError)


def test_open_builds_client_from_profile(fake_bleak: SimpleNamespace) -> None:
    profile = _profile()
    device = DetectedDevice(mac="66:22:B3:00:11:22", name="MTP-II")

    link = asyncio.run(BLEGATTConnector().open(device, profile, on_disconnect=lambda: None))

    (client,) = fake_bleak.BleakClient.instances
    assert client.address == device.mac
    assert client.timeout == profile.transport.timeout_s
    assert link.is_open()


def test_remote_disconnect_reaches_connection(fake_bleak: SimpleNamespace) -> None:
    device = DetectedDevice(mac="66:22:B3:00:11:22", name="MTP-II")
    connection = PrinterConnection(BLEGATTConnector(), _profile(), sleep=SleepRecorder())
    assert asyncio.run(connection.connect(device)) is True

    (client,) = fake_bleak.BleakClient.instances
    client.drop()

    assert connection.is_connected() is False
    assert connection.state is ConnectionState.DISCONNECTED
    assert connection.device is None


def test_open_closes_client_when_characteristic_missing(fake_bleak: SimpleNamespace) -> None:
    fake_bleak.BleakClient.with_char = False
    device = DetectedDevice(mac="66:22:B3:00:11:22", name="MTP-II")

    with pytest.raises(TransportConnectError, match="no characteristic"):
        asyncio.run(BLEGATTConnector().open(device, _profile(), on_disconnect=lambda: None))

    (client,) = fake_bleak.BleakClient.instances
    assert client.disconnects == 1
    assert client.is_connected is False


def test_open_wraps_connect_failure(fake_bleak: SimpleNamespace) -> None:
    fake_bleak.BleakClient.connect_error = TimeoutError("timed out")
    device = DetectedDevice(mac="66:22:B3:00:11:22", name="MTP-II")

    with pytest.raises(TransportConnectError, match="BLE connect failed for 66:22:B3:00:11:22") as exc:
        asyncio.run(BLEGATTConnector().open(device, _profile(), on_disconnect=lambda: None))
    assert isinstance(exc.value.__cause__, TimeoutError)


def test_connection_connect_returns_false_on_open_failure(fake_bleak: SimpleNamespace) -> None:
    fake_bleak.BleakClient.connect_error = TimeoutError("timed out")
    connection = PrinterConnection(BLEGATTConnector(), _profile(), sleep=SleepRecorder())

    assert asyncio.run(connection.connect(DetectedDevice(mac="66:22:B3:00:11:22", name="MTP-II"))) is False

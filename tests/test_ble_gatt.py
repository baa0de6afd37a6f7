from __future__ import annotations

import asyncio
from types import SimpleNamespace

import bleak
import pytest
from bleak.exc import BleakError

from blesend.core.errors import (
    DeviceUnreachableError,
    RadioUnavailableError,
    ServiceDiscoveryError,
    WriteFailedError,
)
from blesend.core.model import WritableCharacteristic, WriteMode
from blesend.transports.ble_gatt import BleakRadio


class FakeScanner:
    instances: list[FakeScanner] = []

    def __init__(self, detection_callback, scanning_mode: str = "active") -> None:
        self.detection_callback = detection_callback
        self.scanning_mode = scanning_mode
        self.stopped = False
        FakeScanner.instances.append(self)

    async def start(self) -> None:
        self.detection_callback(
            SimpleNamespace(address="00:11:22:33:44:55"),
            SimpleNamespace(local_name="Tag1"),
        )
        self.detection_callback(
            SimpleNamespace(address="6E8B2F1C-3B0A-4F8E-9C41-2A5D7E1F0B33"),
            SimpleNamespace(local_name="Mac only"),
        )

    async def stop(self) -> None:
        self.stopped = True


class FakeClient:
    def __init__(self, address: str, disconnected_callback=None, timeout: float = 10.0) -> None:
        self.address = address
        self.timeout = timeout
        self.is_connected = False
        self.writes: list[tuple[object, bytes, bool]] = []

    async def connect(self) -> None:
        raise BleakError(f"Device with address {self.address} was not found")


def test_scan_converts_mac_addresses_and_skips_others(monkeypatch: pytest.MonkeyPatch) -> None:
    FakeScanner.instances = []
    monkeypatch.setattr(bleak, "BleakScanner", FakeScanner)
    seen = []

    async def scenario() -> None:
        radio = BleakRadio()
        await radio.start_scan(seen.append, scanning_mode="active")
        await radio.stop_scan()
        await radio.stop_scan()

    asyncio.run(scenario())
    assert [(a.local_name, a.address) for a in seen] == [("Tag1", 0x1122334455)]
    assert FakeScanner.instances[0].scanning_mode == "active"
    assert FakeScanner.instances[0].stopped


def test_scan_start_failure_is_radio_unavailable(monkeypatch: pytest.MonkeyPatch) -> None:
    class DeadScanner(FakeScanner):
        async def start(self) -> None:
            raise BleakError("Bluetooth adapter is powered off")

    monkeypatch.setattr(bleak, "BleakScanner", DeadScanner)

    with pytest.raises(RadioUnavailableError) as exc:
        asyncio.run(BleakRadio().start_scan(lambda adv: None))
    assert "powered off" in str(exc.value)


def test_connect_failure_is_device_unreachable(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(bleak, "BleakClient", FakeClient)

    with pytest.raises(DeviceUnreachableError) as exc:
        asyncio.run(BleakRadio().connect(0x1122334455, timeout_s=1.0))
    assert "00:11:22:33:44:55" in str(exc.value)


def test_service_enumeration_failure_during_connect_is_device_unreachable(monkeypatch: pytest.MonkeyPatch) -> None:
    class DiscoveryFailingClient(FakeClient):
        async def connect(self) -> None:
            raise BleakError("failed to discover services, device disconnected")

    monkeypatch.setattr(bleak, "BleakClient", DiscoveryFailingClient)

    with pytest.raises(DeviceUnreachableError) as exc:
        asyncio.run(BleakRadio().connect(0x1122334455, timeout_s=1.0))
    assert "failed to discover services" in str(exc.value)


def test_get_services_normalizes_uuids() -> None:
    native = SimpleNamespace(uuid="6E400002-B5A3-F393-E0A9-E50E24DCCA9E", properties=["write", "write-without-response"])
    link = SimpleNamespace(
        services=[SimpleNamespace(uuid="6E400001-B5A3-F393-E0A9-E50E24DCCA9E", characteristics=[native])]
    )

    services = asyncio.run(BleakRadio().get_services(link))

    assert services[0].uuid == "6e400001-b5a3-f393-e0a9-e50e24dcca9e"
    char = services[0].characteristics[0]
    assert char.uuid == "6e400002-b5a3-f393-e0a9-e50e24dcca9e"
    assert char.properties == frozenset({"write", "write-without-response"})
    assert char.native is native


def test_get_services_failure_carries_status() -> None:
    class Link:
        @property
        def services(self):
            raise BleakError("Service Discovery has not been performed yet")

    with pytest.raises(ServiceDiscoveryError) as exc:
        asyncio.run(BleakRadio().get_services(Link()))
    assert exc.value.status == "Service Discovery has not been performed yet"


def test_write_targets_native_characteristic_and_maps_errors() -> None:
    calls = []

    class Link:
        async def write_gatt_char(self, target, payload, response):
            calls.append((target, payload, response))
            if payload == b"boom":
                raise BleakError("Not connected")

    native = object()
    characteristic = WritableCharacteristic(
        uuid="6e400002-b5a3-f393-e0a9-e50e24dcca9e",
        write_mode=WriteMode.WITHOUT_RESPONSE,
        native=native,
    )
    radio = BleakRadio()
    asyncio.run(radio.write(Link(), characteristic, b"ok", response=False))
    with pytest.raises(WriteFailedError):
        asyncio.run(radio.write(Link(), characteristic, b"boom", response=False))

    assert calls == [(native, b"ok", False), (native, b"boom", False)]

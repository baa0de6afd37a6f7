from __future__ import annotations

import asyncio
from typing import Any

import pytest

from blesend.core.model import (
    NORDIC_UART_RX_UUID,
    Advertisement,
    GattCharacteristic,
    GattService,
    WritableCharacteristic,
)


class FakeLink:
    def __init__(self, address: int, on_disconnect: Any) -> None:
        self.address = address
        self.on_disconnect = on_disconnect

    def drop(self) -> None:
        if self.on_disconnect is not None:
            self.on_disconnect(self)


class FakeRadio:
    def __init__(self) -> None:
        self.advertisements: list[Advertisement] = []
        self.services: list[GattService] = [uart_service()]
        self.scan_error: Exception | None = None
        self.connect_error: Exception | None = None
        self.services_error: Exception | None = None
        self.write_error: Exception | None = None
        self.connect_gate: asyncio.Event | None = None
        self.write_gate: asyncio.Event | None = None
        self.scanning = False
        self.scanning_mode: str | None = None
        self.scan_starts = 0
        self.scan_stops = 0
        self.links: list[FakeLink] = []
        self.disconnected: list[FakeLink] = []
        self.writes: list[tuple[FakeLink, str, bytes, bool]] = []

    async def start_scan(self, callback, *, scanning_mode: str = "active") -> None:
        if self.scan_error is not None:
            raise self.scan_error
        self.scanning = True
        self.scanning_mode = scanning_mode
        self.scan_starts += 1
        for advertisement in self.advertisements:
            callback(advertisement)

    async def stop_scan(self) -> None:
        self.scanning = False
        self.scan_stops += 1

    async def connect(self, address: int, *, timeout_s: float, on_disconnect=None) -> FakeLink:
        if self.connect_gate is not None:
            await self.connect_gate.wait()
        if self.connect_error is not None:
            raise self.connect_error
        link = FakeLink(address, on_disconnect)
        self.links.append(link)
        return link

    async def get_services(self, link: FakeLink) -> list[GattService]:
        if self.services_error is not None:
            raise self.services_error
        return list(self.services)

    async def write(
        self,
        link: FakeLink,
        characteristic: WritableCharacteristic,
        payload: bytes,
        *,
        response: bool,
    ) -> None:
        if self.write_gate is not None:
            await self.write_gate.wait()
        if self.write_error is not None:
            raise self.write_error
        self.writes.append((link, characteristic.uuid, payload, response))

    async def disconnect(self, link: FakeLink) -> None:
        self.disconnected.append(link)


def uart_service(
    properties: tuple[str, ...] = ("write", "write-without-response"),
    *,
    uuid: str = NORDIC_UART_RX_UUID,
    native: Any = None,
) -> GattService:
    return GattService(
        uuid="6e400001-b5a3-f393-e0a9-e50e24dcca9e",
        characteristics=(
            GattCharacteristic(
                uuid="6e400003-b5a3-f393-e0a9-e50e24dcca9e",
                properties=frozenset({"notify"}),
            ),
            GattCharacteristic(uuid=uuid, properties=frozenset(properties), native=native),
        ),
    )


@pytest.fixture
def radio() -> FakeRadio:
    return FakeRadio()


@pytest.fixture
def make_service():
    return uart_service

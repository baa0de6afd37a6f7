"""BLE radio implementation backed by bleak."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from typing import Any

from blesend.core.address import format_address, parse_address
from blesend.core.errors import (
    BlesendError,
    DeviceUnreachableError,
    RadioUnavailableError,
    ServiceDiscoveryError,
    WriteFailedError,
)
from blesend.core.model import Advertisement, GattCharacteristic, GattService, WritableCharacteristic

LOGGER = logging.getLogger(__name__)


def _import_bleak(error_cls: type[BlesendError]) -> Any:
    try:
        import bleak  # type: ignore
    except Exception as exc:  # pragma: no cover - import failure path
        raise error_cls("BLE support requires 'bleak'. Install dependency and retry.") from exc
    return bleak


class BleakRadio:
    def __init__(self) -> None:
        self._scanner: Any | None = None

    async def start_scan(
        self,
        callback: Callable[[Advertisement], None],
        *,
        scanning_mode: str = "active",
    ) -> None:
        bleak = _import_bleak(RadioUnavailableError)

        def _detection(device: Any, adv_data: Any) -> None:
            address = parse_address(device.address)
            if address is None:
                LOGGER.debug("Skipping advert from non-MAC identifier %s", device.address)
                return
            callback(Advertisement(local_name=adv_data.local_name, address=address))

        if self._scanner is not None:
            await self.stop_scan()

        try:
            scanner = bleak.BleakScanner(detection_callback=_detection, scanning_mode=scanning_mode)
            await scanner.start()
        except (bleak.exc.BleakError, OSError) as exc:
            raise RadioUnavailableError(str(exc) or type(exc).__name__) from exc
        self._scanner = scanner
        LOGGER.debug("Advertisement observation started (%s)", scanning_mode)

    async def stop_scan(self) -> None:
        scanner, self._scanner = self._scanner, None
        if scanner is None:
            return
        bleak = _import_bleak(RadioUnavailableError)
        try:
            await scanner.stop()
        except (bleak.exc.BleakError, OSError) as exc:
            LOGGER.warning("Stopping advertisement observation failed: %s", exc)
        else:
            LOGGER.debug("Advertisement observation stopped")

    async def connect(
        self,
        address: int,
        *,
        timeout_s: float,
        on_disconnect: Callable[[Any], None] | None = None,
    ) -> Any:
        """Open a link to `address`.

        bleak enumerates services inside `BleakClient.connect`, so a failed
        enumeration surfaces here as DeviceUnreachableError.
        """
        bleak = _import_bleak(DeviceUnreachableError)
        mac = format_address(address)
        client = bleak.BleakClient(mac, disconnected_callback=on_disconnect, timeout=timeout_s)
        try:
            await client.connect()
        except (bleak.exc.BleakError, asyncio.TimeoutError, OSError) as exc:
            raise DeviceUnreachableError(f"BLE connect failed for {mac}: {exc}") from exc
        if not client.is_connected:
            raise DeviceUnreachableError(f"BLE connect failed for {mac}")
        LOGGER.debug("Connected to %s", mac)
        return client

    async def get_services(self, link: Any) -> Sequence[GattService]:
        """Return the services bleak cached while connecting.

        No GATT traffic happens here. Enumeration already ran inside `connect`,
        and its failures are reported there as DeviceUnreachableError. This
        only raises ServiceDiscoveryError when the cache is missing.
        """
        bleak = _import_bleak(ServiceDiscoveryError)
        try:
            collection = link.services
        except bleak.exc.BleakError as exc:
            raise ServiceDiscoveryError(f"Service discovery failed: {exc}", status=str(exc)) from exc
        if collection is None:
            raise ServiceDiscoveryError("Service discovery failed: no services", status="unavailable")

        services: list[GattService] = []
        for service in collection:
            characteristics = tuple(
                GattCharacteristic(
                    uuid=str(char.uuid).lower(),
                    properties=frozenset(char.properties),
                    native=char,
                )
                for char in service.characteristics
            )
            services.append(GattService(uuid=str(service.uuid).lower(), characteristics=characteristics))
        return services

    async def write(
        self,
        link: Any,
        characteristic: WritableCharacteristic,
        payload: bytes,
        *,
        response: bool,
    ) -> None:
        bleak = _import_bleak(WriteFailedError)
        target = characteristic.native if characteristic.native is not None else characteristic.uuid
        try:
            await link.write_gatt_char(target, payload, response=response)
        except (bleak.exc.BleakError, asyncio.TimeoutError, OSError, EOFError) as exc:
            raise WriteFailedError(f"BLE GATT write failed: {exc}") from exc

    async def disconnect(self, link: Any) -> None:
        bleak = _import_bleak(DeviceUnreachableError)
        try:
            await link.disconnect()
        except (bleak.exc.BleakError, asyncio.TimeoutError, OSError) as exc:
            LOGGER.warning("BLE disconnect failed: %s", exc)

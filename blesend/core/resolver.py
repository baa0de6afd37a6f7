"""Connect to a device and resolve its writable target characteristic."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Any

from blesend.core.address import format_address
from blesend.core.errors import CharacteristicNotFoundError
from blesend.core.model import (
    ConnectionHandle,
    GattCharacteristic,
    GattService,
    WritableCharacteristic,
    WriteMode,
    WritePolicy,
)
from blesend.transports.base import Radio

_WRITE = "write"
_WRITE_WITHOUT_RESPONSE = "write-without-response"
LOGGER = logging.getLogger(__name__)


def select_write_mode(properties: frozenset[str], policy: WritePolicy) -> WriteMode:
    can_ack = _WRITE in properties
    can_unack = _WRITE_WITHOUT_RESPONSE in properties
    if policy is WritePolicy.PREFER_ACKNOWLEDGED:
        return WriteMode.WITH_RESPONSE if can_ack else WriteMode.WITHOUT_RESPONSE
    return WriteMode.WITHOUT_RESPONSE if can_unack else WriteMode.WITH_RESPONSE


def find_writable(
    services: Sequence[GattService],
    target_uuid: str,
    policy: WritePolicy = WritePolicy.PREFER_UNACKNOWLEDGED,
) -> WritableCharacteristic:
    """Return the first characteristic matching target_uuid that can be written.

    Platform enumeration order decides between duplicates.
    """
    wanted = target_uuid.lower()
    for service in services:
        for char in service.characteristics:
            if char.uuid.lower() == wanted and _is_writable(char):
                return WritableCharacteristic(
                    uuid=wanted,
                    write_mode=select_write_mode(char.properties, policy),
                    native=char.native,
                )
    raise CharacteristicNotFoundError(
        f"No service exposes writable characteristic {wanted}"
    )


def _is_writable(char: GattCharacteristic) -> bool:
    return _WRITE in char.properties or _WRITE_WITHOUT_RESPONSE in char.properties


class GattResolver:
    def __init__(
        self,
        radio: Radio,
        *,
        target_uuid: str,
        write_policy: WritePolicy = WritePolicy.PREFER_UNACKNOWLEDGED,
        timeout_s: float = 10.0,
    ) -> None:
        self.radio = radio
        self.target_uuid = target_uuid
        self.write_policy = write_policy
        self.timeout_s = timeout_s

    async def connect(
        self,
        address: int,
        *,
        on_disconnect: Callable[[Any], None] | None = None,
    ) -> ConnectionHandle:
        """Open a link and resolve the target characteristic.

        Raises DeviceUnreachableError, ServiceDiscoveryError or
        CharacteristicNotFoundError. The link is released on any failure after it
        opens.
        """
        link = await self.radio.connect(address, timeout_s=self.timeout_s, on_disconnect=on_disconnect)
        try:
            services = await self.radio.get_services(link)
            characteristic = find_writable(services, self.target_uuid, self.write_policy)
        except Exception:
            await self.radio.disconnect(link)
            raise

        LOGGER.debug(
            "Resolved %s on %s (%s)",
            characteristic.uuid,
            format_address(address),
            characteristic.write_mode.value,
        )
        return ConnectionHandle(address=address, link=link, characteristic=characteristic)

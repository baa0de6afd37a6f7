"""Radio interfaces."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any, Protocol

from blesend.core.model import Advertisement, GattService, WritableCharacteristic


class Radio(Protocol):
    async def start_scan(
        self,
        callback: Callable[[Advertisement], None],
        *,
        scanning_mode: str = "active",
    ) -> None:
        """Begin advertisement observation, invoking callback per advert."""

    async def stop_scan(self) -> None:
        """Stop advertisement observation."""

    async def connect(
        self,
        address: int,
        *,
        timeout_s: float,
        on_disconnect: Callable[[Any], None] | None = None,
    ) -> Any:
        """Open a link to a device and return an opaque link object."""

    async def get_services(self, link: Any) -> Sequence[GattService]:
        """Enumerate GATT services and their characteristics on a link."""

    async def write(
        self,
        link: Any,
        characteristic: WritableCharacteristic,
        payload: bytes,
        *,
        response: bool,
    ) -> None:
        """Write payload to a characteristic."""

    async def disconnect(self, link: Any) -> None:
        """Close a link."""

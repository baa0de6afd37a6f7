"""Advertisement scanning with display-name deduplication and a bounded window."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from blesend.core.address import display_name
from blesend.core.model import Advertisement, DiscoveredDevice
from blesend.transports.base import Radio

LOGGER = logging.getLogger(__name__)


class AdvertisementScanner:
    """Owns the discovered-device set of the current scan window.

    `begin`, `observe` and `finish` mutate state and must be called from the
    session's state-owner task. `start_radio` and `stop_radio` await the radio
    and are serialized among themselves so a stop issued while a start is in
    flight still lands after it.
    """

    def __init__(
        self,
        radio: Radio,
        *,
        on_advertisement: Callable[[Advertisement], None],
        on_expired: Callable[[int], None],
        duration_s: float = 5.0,
        scanning_mode: str = "active",
    ) -> None:
        self.radio = radio
        self.duration_s = duration_s
        self.scanning_mode = scanning_mode
        self.devices: dict[str, DiscoveredDevice] = {}
        self.scan_id = 0
        self._on_advertisement = on_advertisement
        self._on_expired = on_expired
        self._timeout: asyncio.TimerHandle | None = None
        self._radio_lock = asyncio.Lock()
        self._radio_running = False

    @property
    def active(self) -> bool:
        return self._timeout is not None

    def begin(self) -> int:
        self.finish()
        self.devices = {}
        self.scan_id += 1
        loop = asyncio.get_running_loop()
        self._timeout = loop.call_later(self.duration_s, self._on_expired, self.scan_id)
        LOGGER.debug("Scan %d armed for %.1fs", self.scan_id, self.duration_s)
        return self.scan_id

    def finish(self, scan_id: int | None = None) -> bool:
        """Disarm the scan window. Returns False if it was already over or stale."""
        if self._timeout is None:
            return False
        if scan_id is not None and scan_id != self.scan_id:
            return False
        self._timeout.cancel()
        self._timeout = None
        return True

    def observe(self, advertisement: Advertisement) -> DiscoveredDevice | None:
        if not self.active or not advertisement.local_name:
            return None
        display = display_name(advertisement.local_name, advertisement.address)
        if display in self.devices:
            return None
        device = DiscoveredDevice(display_name=display, address=advertisement.address)
        self.devices[display] = device
        return device

    def lookup(self, display: str) -> DiscoveredDevice | None:
        return self.devices.get(display)

    async def start_radio(self) -> None:
        async with self._radio_lock:
            if self._radio_running:
                await self.radio.stop_scan()
                self._radio_running = False
            await self.radio.start_scan(self._on_advertisement, scanning_mode=self.scanning_mode)
            self._radio_running = True

    async def stop_radio(self) -> None:
        async with self._radio_lock:
            if not self._radio_running:
                return
            await self.radio.stop_scan()
            self._radio_running = False

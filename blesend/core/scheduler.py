"""Timed transmission scheduler toggled between automatic and manual modes."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from blesend.core.model import TransmissionMode

LOGGER = logging.getLogger(__name__)


class TransmissionScheduler:
    def __init__(self, *, on_tick: Callable[[], None], interval_s: float = 1.0) -> None:
        self.interval_s = interval_s
        self.mode: TransmissionMode | None = None
        self._on_tick = on_tick
        self._timer: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def set_mode(self, mode: TransmissionMode) -> bool:
        if mode is self.mode:
            return False
        self.mode = mode
        if mode is TransmissionMode.AUTOMATIC:
            self._timer = asyncio.get_running_loop().create_task(self._run())
        else:
            self._cancel_timer()
        LOGGER.debug("Transmission mode set to %s", mode.value)
        return True

    def stop(self) -> None:
        self.mode = None
        self._cancel_timer()

    def _cancel_timer(self) -> None:
        timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_s)
            self._on_tick()

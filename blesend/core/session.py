"""Single-owner BLE session used by the CLI and other frontends.

All state (discovered devices, the active connection, the transmission mode)
is mutated only by handlers running inside `Session.run`, one message at a
time. Radio callbacks, timers and completed radio work never touch that state
directly; they post messages onto the session inbox instead.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from typing import Any

from blesend.core.address import format_address
from blesend.core.errors import (
    CharacteristicNotFoundError,
    ConnectError,
    DeviceUnreachableError,
    EmptyPayloadError,
    RadioUnavailableError,
    ServiceDiscoveryError,
    TransmitError,
    WriteFailedError,
)
from blesend.core.model import (
    Advertisement,
    ConnectionHandle,
    DeviceDiscovered,
    DiscoveredDevice,
    ScanCompleted,
    SessionConfig,
    SessionEvent,
    StatusChanged,
    TransmissionMode,
)
from blesend.core.resolver import GattResolver
from blesend.core.scanner import AdvertisementScanner
from blesend.core.scheduler import TransmissionScheduler
from blesend.core.transmitter import Transmitter, encode, random_token, status_echo
from blesend.transports.base import Radio
from blesend.transports.ble_gatt import BleakRadio

LOGGER = logging.getLogger(__name__)

Listener = Callable[[SessionEvent], None]


@dataclass(frozen=True)
class _StartScan:
    done: asyncio.Future[tuple[DiscoveredDevice, ...]]


@dataclass(frozen=True)
class _StopScan:
    pass


@dataclass(frozen=True)
class _ScanExpired:
    scan_id: int


@dataclass(frozen=True)
class _ScanFailed:
    scan_id: int
    error: RadioUnavailableError


@dataclass(frozen=True)
class _AdvertisementReceived:
    advertisement: Advertisement


@dataclass(frozen=True)
class _Connect:
    display: str | None
    done: asyncio.Future[bool]


@dataclass(frozen=True)
class _ConnectFinished:
    generation: int
    connection: ConnectionHandle | None
    error: ConnectError | None
    done: asyncio.Future[bool]


@dataclass(frozen=True)
class _LinkLost:
    link: Any


@dataclass(frozen=True)
class _SetMode:
    mode: TransmissionMode
    done: asyncio.Future[None]


@dataclass(frozen=True)
class _SendManual:
    text: str
    done: asyncio.Future[bool]


@dataclass(frozen=True)
class _Tick:
    pass


@dataclass(frozen=True)
class _WriteFinished:
    generation: int
    text: str
    error: TransmitError | None
    done: asyncio.Future[bool] | None


def _resolve(future: asyncio.Future[Any] | None, value: Any) -> None:
    if future is not None and not future.done():
        future.set_result(value)


def _connect_status(error: ConnectError) -> str:
    if isinstance(error, ServiceDiscoveryError):
        return "Service discovery failed."
    if isinstance(error, CharacteristicNotFoundError):
        return "Write characteristic not found."
    return "Device connection failed."


class Session:
    """Scan, connect and transmit against one peripheral at a time.

    Entry points (`start_scan`, `connect`, `set_mode`, `send_manual`) return
    immediately with a future that resolves once the operation has finished.
    Those futures never raise; failures are reported as `StatusChanged`
    events to subscribed listeners.
    """

    def __init__(
        self,
        radio: Radio | None = None,
        *,
        config: SessionConfig | None = None,
        token_factory: Callable[[int], str] = random_token,
    ) -> None:
        self.config = config or SessionConfig()
        self.radio = radio if radio is not None else BleakRadio()
        self.scanner = AdvertisementScanner(
            self.radio,
            on_advertisement=self._advertisement_callback,
            on_expired=lambda scan_id: self._post(_ScanExpired(scan_id)),
            duration_s=self.config.scan_duration_s,
            scanning_mode=self.config.scanning_mode,
        )
        self.resolver = GattResolver(
            self.radio,
            target_uuid=self.config.target_char_uuid,
            write_policy=self.config.write_policy,
            timeout_s=self.config.connect_timeout_s,
        )
        self.transmitter = Transmitter(self.radio)
        self.scheduler = TransmissionScheduler(
            on_tick=lambda: self._post(_Tick()),
            interval_s=self.config.tick_interval_s,
        )
        self.status = "Not connected"
        self.connection: ConnectionHandle | None = None
        self._token_factory = token_factory
        self._generation = 0
        self._lost_links: list[Any] = []
        self._listeners: list[Listener] = []
        self._scan_waiters: list[asyncio.Future[tuple[DiscoveredDevice, ...]]] = []
        self._pending: set[asyncio.Future[Any]] = set()
        self._tasks: set[asyncio.Task[Any]] = set()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._inbox: asyncio.Queue[Any] | None = None
        self._runner: asyncio.Task[None] | None = None
        self._handlers: dict[type, Callable[[Any], None]] = {
            _StartScan: self._on_start_scan,
            _StopScan: self._on_stop_scan,
            _ScanExpired: self._on_scan_expired,
            _ScanFailed: self._on_scan_failed,
            _AdvertisementReceived: self._on_advertisement,
            _Connect: self._on_connect,
            _ConnectFinished: self._on_connect_finished,
            _LinkLost: self._on_link_lost,
            _SetMode: self._on_set_mode,
            _SendManual: self._on_send_manual,
            _Tick: self._on_tick,
            _WriteFinished: self._on_write_finished,
        }

    async def __aenter__(self) -> Session:
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    @property
    def devices(self) -> tuple[DiscoveredDevice, ...]:
        return tuple(self.scanner.devices.values())

    @property
    def mode(self) -> TransmissionMode | None:
        return self.scheduler.mode

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def start(self) -> None:
        if self._runner is not None:
            return
        self._loop = asyncio.get_running_loop()
        self._inbox = asyncio.Queue()
        self._runner = self._loop.create_task(self.run())

    async def run(self) -> None:
        if self._inbox is None:
            raise RuntimeError("Session is not running; call start() instead of awaiting run() directly")
        while True:
            message = await self._inbox.get()
            try:
                self._handlers[type(message)](message)
            except Exception:
                LOGGER.exception("Session failed to handle %s", type(message).__name__)
            finally:
                self._inbox.task_done()

    async def settle(self) -> None:
        """Wait until queued messages and in-flight radio work have been processed."""
        if self._inbox is None:
            return
        while True:
            await self._inbox.join()
            pending = [task for task in self._tasks if not task.done()]
            if not pending and self._inbox.empty():
                return
            if pending:
                await asyncio.wait(pending)

    async def close(self) -> None:
        """Stop scanning and ticking, release every link and stop the runner.

        In-flight connects and writes are awaited, not cancelled, so a link
        that opens late comes back as a stale result and is disconnected.
        """
        self.scheduler.stop()
        self.scanner.finish()
        if self._runner is not None:
            self._invalidate_connection()
            await self.settle()
        await self.scanner.stop_radio()

        runner, self._runner = self._runner, None
        if runner is not None:
            runner.cancel()
            await asyncio.gather(runner, return_exceptions=True)
        for future in list(self._pending):
            future.cancel()

    def start_scan(self) -> asyncio.Future[tuple[DiscoveredDevice, ...]]:
        return self._command(_StartScan)

    def stop_scan(self) -> None:
        self._post(_StopScan())

    def connect(self, display: str | None) -> asyncio.Future[bool]:
        return self._command(lambda done: _Connect(display, done))

    def set_mode(self, mode: TransmissionMode) -> asyncio.Future[None]:
        return self._command(lambda done: _SetMode(mode, done))

    def send_manual(self, text: str) -> asyncio.Future[bool]:
        return self._command(lambda done: _SendManual(text, done))

    def _command(self, factory: Callable[[asyncio.Future[Any]], Any]) -> asyncio.Future[Any]:
        if self._loop is None:
            raise RuntimeError("Session is not running; use 'async with Session()' or call start()")
        done = self._loop.create_future()
        self._pending.add(done)
        done.add_done_callback(self._pending.discard)
        self._post(factory(done))
        return done

    def _post(self, message: object) -> None:
        if self._loop is None or self._inbox is None:
            LOGGER.debug("Dropping %s posted to a stopped session", type(message).__name__)
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            self._inbox.put_nowait(message)
        else:
            self._loop.call_soon_threadsafe(self._inbox.put_nowait, message)

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        if self._loop is None:
            raise RuntimeError("Session is not running; call start() first")
        task = self._loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            LOGGER.error("Background radio task failed", exc_info=task.exception())

    def _emit(self, event: SessionEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                LOGGER.exception("Session listener failed on %s", type(event).__name__)

    def _emit_status(self, message: str) -> None:
        self.status = message
        self._emit(StatusChanged(message))

    def _advertisement_callback(self, advertisement: Advertisement) -> None:
        self._post(_AdvertisementReceived(advertisement))

    def _link_lost_callback(self, link: Any) -> None:
        self._post(_LinkLost(link))

    # Scanning

    def _on_start_scan(self, message: _StartScan) -> None:
        if self.scanner.active:
            self._end_scan()
        scan_id = self.scanner.begin()
        self._scan_waiters.append(message.done)
        self._emit_status("Scanning...")
        self._spawn(self._start_radio(scan_id))

    async def _start_radio(self, scan_id: int) -> None:
        try:
            await self.scanner.start_radio()
        except RadioUnavailableError as exc:
            self._post(_ScanFailed(scan_id, exc))

    def _on_stop_scan(self, message: _StopScan) -> None:
        self._end_scan()

    def _on_scan_expired(self, message: _ScanExpired) -> None:
        self._end_scan(message.scan_id)

    def _on_scan_failed(self, message: _ScanFailed) -> None:
        LOGGER.warning("Scan %d failed: %s", message.scan_id, message.error)
        self._end_scan(message.scan_id, status=f"Bluetooth unavailable: {message.error}")

    def _end_scan(self, scan_id: int | None = None, *, status: str = "Scan complete") -> None:
        if not self.scanner.finish(scan_id):
            return
        self._spawn(self.scanner.stop_radio())
        devices = self.devices
        self._emit_status(status)
        self._emit(ScanCompleted(devices))
        waiters, self._scan_waiters = self._scan_waiters, []
        for waiter in waiters:
            _resolve(waiter, devices)

    def _on_advertisement(self, message: _AdvertisementReceived) -> None:
        device = self.scanner.observe(message.advertisement)
        if device is not None:
            LOGGER.debug("Discovered %s", device.display_name)
            self._emit(DeviceDiscovered(device))

    # Connection

    def _on_connect(self, message: _Connect) -> None:
        device = self.scanner.lookup(message.display) if message.display else None
        if device is None:
            self._emit_status("Select a device first.")
            _resolve(message.done, False)
            return
        self._invalidate_connection()
        self._emit_status("Connecting...")
        self._spawn(self._connect(self._generation, device, message.done))

    async def _connect(self, generation: int, device: DiscoveredDevice, done: asyncio.Future[bool]) -> None:
        try:
            connection = await self.resolver.connect(device.address, on_disconnect=self._link_lost_callback)
        except ConnectError as exc:
            self._post(_ConnectFinished(generation, None, exc, done))
        except Exception as exc:
            LOGGER.exception("Unexpected error connecting to %s", device.display_name)
            error = DeviceUnreachableError(str(exc) or type(exc).__name__)
            self._post(_ConnectFinished(generation, None, error, done))
        else:
            self._post(_ConnectFinished(generation, connection, None, done))

    def _invalidate_connection(self) -> None:
        self._generation += 1
        self._lost_links = []
        connection, self.connection = self.connection, None
        if connection is not None:
            self._spawn(self.radio.disconnect(connection.link))

    def _on_connect_finished(self, message: _ConnectFinished) -> None:
        if message.generation != self._generation:
            LOGGER.debug("Discarding connect result superseded by a newer connection")
            if message.connection is not None:
                self._spawn(self.radio.disconnect(message.connection.link))
            _resolve(message.done, False)
            return
        if message.error is not None:
            LOGGER.warning("Connect failed: %s", message.error)
            self._emit_status(_connect_status(message.error))
            _resolve(message.done, False)
            return
        link = message.connection.link
        if any(lost is link for lost in self._lost_links):
            LOGGER.warning("Link dropped before the connection was ready")
            self._lost_links = []
            self._spawn(self.radio.disconnect(link))
            self._emit_status("Disconnected.")
            _resolve(message.done, False)
            return

        self.connection = message.connection
        self._emit_status("Connected and ready!")
        if self.scheduler.mode is None:
            self.scheduler.set_mode(self.config.initial_mode)
        _resolve(message.done, True)

    def _on_link_lost(self, message: _LinkLost) -> None:
        if self.connection is None or self.connection.link is not message.link:
            # May belong to a connect still in flight; checked when its result lands.
            self._lost_links.append(message.link)
            return
        self._generation += 1
        self.connection = None
        self._emit_status("Disconnected.")

    # Transmission

    def _on_set_mode(self, message: _SetMode) -> None:
        self.scheduler.set_mode(message.mode)
        _resolve(message.done, None)

    def _on_tick(self, message: _Tick) -> None:
        if self.scheduler.mode is not TransmissionMode.AUTOMATIC or self.connection is None:
            return
        token = self._token_factory(self.config.token_length)
        self._spawn(self._write(self._generation, self.connection, token, None))

    def _on_send_manual(self, message: _SendManual) -> None:
        if self.connection is None:
            self._emit_status("Not connected.")
            _resolve(message.done, False)
            return
        if self.scheduler.mode is not TransmissionMode.MANUAL:
            self._emit_status("Switch to manual mode to send text.")
            _resolve(message.done, False)
            return
        try:
            encode(message.text)
        except EmptyPayloadError:
            self._emit_status("No text to send.")
            _resolve(message.done, False)
            return
        self._spawn(self._write(self._generation, self.connection, message.text, message.done))

    async def _write(
        self,
        generation: int,
        connection: ConnectionHandle,
        text: str,
        done: asyncio.Future[bool] | None,
    ) -> None:
        try:
            sent = await self.transmitter.send(connection, text)
        except TransmitError as exc:
            self._post(_WriteFinished(generation, text, exc, done))
        except Exception as exc:
            LOGGER.exception("Unexpected error writing to %s", format_address(connection.address))
            error = WriteFailedError(f"BLE GATT write failed: {str(exc) or type(exc).__name__}")
            self._post(_WriteFinished(generation, text, error, done))
        else:
            self._post(_WriteFinished(generation, sent, None, done))

    def _on_write_finished(self, message: _WriteFinished) -> None:
        if message.generation != self._generation:
            LOGGER.debug(
                "Discarding write result from superseded connection: %s",
                message.error or "ok",
            )
            _resolve(message.done, False)
            return
        if message.error is not None:
            LOGGER.warning("Send failed: %s", message.error)
            self._emit_status(f"Send failed: {message.error}")
            _resolve(message.done, False)
            return
        self._emit_status(f"Sent: {status_echo(message.text)}")
        _resolve(message.done, True)

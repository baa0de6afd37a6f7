"""Typer CLI entrypoint."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from pathlib import Path

import typer

from blesend.core.config import load_config
from blesend.core.device_match import select_device
from blesend.core.errors import BlesendError
from blesend.core.model import (
    DeviceDiscovered,
    DiscoveredDevice,
    SessionConfig,
    SessionEvent,
    StatusChanged,
    TransmissionMode,
)
from blesend.core.session import Session
from blesend.transports.ble_gatt import BleakRadio

app = typer.Typer(help="Stream text to a BLE peripheral's writable characteristic")


@app.callback()
def main(
    ctx: typer.Context,
    config: Path | None = typer.Option(None, "--config", help="Path to a YAML config file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
    ctx.obj = config


def _load(ctx: typer.Context, scan_seconds: float | None) -> SessionConfig:
    config = load_config(ctx.obj)
    if scan_seconds is not None:
        config = dataclasses.replace(config, scan_duration_s=scan_seconds)
    return config


def _echo_event(event: SessionEvent) -> None:
    if isinstance(event, StatusChanged):
        typer.echo(event.message)
    elif isinstance(event, DeviceDiscovered):
        typer.echo(f"Found: {event.device.display_name}")


def _build_session(config: SessionConfig) -> Session:
    session = Session(BleakRadio(), config=config)
    session.subscribe(_echo_event)
    return session


async def _open(session: Session, device_hint: str) -> bool:
    devices = await session.start_scan()
    target = select_device(devices, device_hint)
    return await session.connect(target.display_name)


async def _scan(config: SessionConfig) -> tuple[DiscoveredDevice, ...]:
    async with _build_session(config) as session:
        return await session.start_scan()


async def _send(config: SessionConfig, device_hint: str, text: str) -> bool:
    async with _build_session(config) as session:
        await session.set_mode(TransmissionMode.MANUAL)
        if not await _open(session, device_hint):
            return False
        return await session.send_manual(text)


async def _stream(config: SessionConfig, device_hint: str, seconds: float) -> bool:
    async with _build_session(config) as session:
        await session.set_mode(TransmissionMode.AUTOMATIC)
        if not await _open(session, device_hint):
            return False
        await asyncio.sleep(seconds)
        return True


@app.command("scan")
def scan(
    ctx: typer.Context,
    seconds: float | None = typer.Option(None, "--seconds", min=0.1, help="Scan window length"),
) -> None:
    """Scan for advertising BLE peripherals that carry a local name."""
    try:
        devices = asyncio.run(_scan(_load(ctx, seconds)))
        if not devices:
            typer.echo("No BLE devices found")
    except BlesendError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("send")
def send(
    ctx: typer.Context,
    text: str,
    device: str = typer.Option(..., "--device", help="Display name, partial name, or hex address"),
    scan_seconds: float | None = typer.Option(None, "--scan-seconds", min=0.1, help="Scan window length"),
) -> None:
    """Connect to a device and write TEXT once to the target characteristic."""
    try:
        ok = asyncio.run(_send(_load(ctx, scan_seconds), device, text))
    except BlesendError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None
    if not ok:
        raise typer.Exit(code=1)


@app.command("stream")
def stream(
    ctx: typer.Context,
    device: str = typer.Option(..., "--device", help="Display name, partial name, or hex address"),
    seconds: float = typer.Option(10.0, "--seconds", min=0.0, help="How long to keep sending"),
    scan_seconds: float | None = typer.Option(None, "--scan-seconds", min=0.1, help="Scan window length"),
) -> None:
    """Connect to a device and send a random token every tick interval."""
    try:
        ok = asyncio.run(_stream(_load(ctx, scan_seconds), device, seconds))
    except BlesendError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None
    except KeyboardInterrupt:
        typer.echo("Stopped")
        return
    if not ok:
        raise typer.Exit(code=1)


def run() -> None:
    app()


if __name__ == "__main__":
    run()

"""Stable public API for building frontends on top of blesend.

This module is the supported integration surface for third-party callers
(GUI/TUI shells, scripts). Avoid importing from internal modules unless
intentionally depending on non-stable internals.
"""

from __future__ import annotations

from pathlib import Path

from blesend.core.config import load_config
from blesend.core.errors import (
    BlesendError,
    CharacteristicNotFoundError,
    ConfigLoadError,
    ConfigValidationError,
    ConnectError,
    DeviceSelectionError,
    DeviceUnreachableError,
    EmptyPayloadError,
    RadioUnavailableError,
    ServiceDiscoveryError,
    TransmitError,
    WriteFailedError,
)
from blesend.core.model import (
    NORDIC_UART_RX_UUID,
    DeviceDiscovered,
    DiscoveredDevice,
    ScanCompleted,
    SessionConfig,
    SessionEvent,
    StatusChanged,
    TransmissionMode,
    WritableCharacteristic,
    WriteMode,
    WritePolicy,
)
from blesend.core.session import Listener, Session
from blesend.transports.base import Radio
from blesend.transports.ble_gatt import BleakRadio

__all__ = [
    "BlesendError",
    "CharacteristicNotFoundError",
    "ConfigLoadError",
    "ConfigValidationError",
    "ConnectError",
    "DeviceSelectionError",
    "DeviceUnreachableError",
    "EmptyPayloadError",
    "RadioUnavailableError",
    "ServiceDiscoveryError",
    "TransmitError",
    "WriteFailedError",
    "NORDIC_UART_RX_UUID",
    "DeviceDiscovered",
    "DiscoveredDevice",
    "ScanCompleted",
    "SessionConfig",
    "SessionEvent",
    "StatusChanged",
    "TransmissionMode",
    "WritableCharacteristic",
    "WriteMode",
    "WritePolicy",
    "BleakRadio",
    "Radio",
    "Session",
    "create_session",
]


def create_session(
    *,
    config_path: Path | None = None,
    radio: Radio | None = None,
    listener: Listener | None = None,
) -> Session:
    """Build a session from the user's config file.

    The session still has to be entered (`async with`) before use.
    """
    session = Session(radio, config=load_config(config_path))
    if listener is not None:
        session.subscribe(listener)
    return session

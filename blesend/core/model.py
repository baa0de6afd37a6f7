"""Core data models used across scanner, resolver, session, and CLI."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

NORDIC_UART_RX_UUID = "6e400002-b5a3-f393-e0a9-e50e24dcca9e"


class WriteMode(Enum):
    WITH_RESPONSE = "with-response"
    WITHOUT_RESPONSE = "without-response"


class WritePolicy(Enum):
    PREFER_UNACKNOWLEDGED = "prefer_unacknowledged"
    PREFER_ACKNOWLEDGED = "prefer_acknowledged"


class TransmissionMode(Enum):
    AUTOMATIC = "automatic"
    MANUAL = "manual"


@dataclass(frozen=True)
class Advertisement:
    local_name: str | None
    address: int


@dataclass(frozen=True)
class DiscoveredDevice:
    display_name: str
    address: int


@dataclass(frozen=True)
class GattCharacteristic:
    uuid: str
    properties: frozenset[str]
    native: Any = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class GattService:
    uuid: str
    characteristics: tuple[GattCharacteristic, ...]


@dataclass(frozen=True)
class WritableCharacteristic:
    uuid: str
    write_mode: WriteMode
    native: Any = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class ConnectionHandle:
    address: int
    link: Any = field(compare=False, repr=False)
    characteristic: WritableCharacteristic


@dataclass(frozen=True)
class SessionConfig:
    target_char_uuid: str = NORDIC_UART_RX_UUID
    scan_duration_s: float = 5.0
    scanning_mode: str = "active"
    connect_timeout_s: float = 10.0
    tick_interval_s: float = 1.0
    token_length: int = 8
    write_policy: WritePolicy = WritePolicy.PREFER_UNACKNOWLEDGED
    initial_mode: TransmissionMode = TransmissionMode.AUTOMATIC


@dataclass(frozen=True)
class StatusChanged:
    message: str


@dataclass(frozen=True)
class DeviceDiscovered:
    device: DiscoveredDevice


@dataclass(frozen=True)
class ScanCompleted:
    devices: tuple[DiscoveredDevice, ...]


SessionEvent = StatusChanged | DeviceDiscovered | ScanCompleted

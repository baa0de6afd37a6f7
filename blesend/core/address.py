"""Bluetooth address conversions and device display names."""

from __future__ import annotations

import re

_MAC_RE = re.compile(r"^[0-9A-F]{2}(?::[0-9A-F]{2}){5}$", re.IGNORECASE)
_MAX_ADDRESS = (1 << 48) - 1


def parse_address(value: str) -> int | None:
    """Return the 48-bit integer for a colon-separated MAC, or None.

    Platform identifiers that are not MACs (CoreBluetooth UUIDs) yield None.
    """
    normalized = value.strip()
    if not _MAC_RE.match(normalized):
        return None
    return int(normalized.replace(":", ""), 16)


def format_address(address: int) -> str:
    if not 0 <= address <= _MAX_ADDRESS:
        raise ValueError(f"Bluetooth address out of range: {address:#x}")
    return ":".join(f"{octet:02X}" for octet in address.to_bytes(6, "big"))


def display_name(local_name: str, address: int) -> str:
    return f"{local_name} ({address:X})"

"""Resolve a user-supplied device hint against discovered devices."""

from __future__ import annotations

from collections.abc import Sequence

from blesend.core.errors import DeviceSelectionError
from blesend.core.model import DiscoveredDevice


def select_device(devices: Sequence[DiscoveredDevice], hint: str) -> DiscoveredDevice:
    if not devices:
        raise DeviceSelectionError("No BLE devices found. Ensure the peripheral is advertising.")

    for device in devices:
        if device.display_name == hint:
            return device

    lowered = hint.strip().lower()
    candidates = [d for d in devices if lowered and lowered in d.display_name.lower()]
    if not candidates:
        raise DeviceSelectionError(f"No device found matching '{hint}'")
    if len(candidates) > 1:
        candidate_desc = ", ".join(d.display_name for d in candidates)
        raise DeviceSelectionError(
            f"Multiple candidate devices found: {candidate_desc}. Use a more specific --device."
        )
    return candidates[0]

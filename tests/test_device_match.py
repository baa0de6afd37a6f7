import pytest

from blesend.core.device_match import select_device
from blesend.core.errors import DeviceSelectionError
from blesend.core.model import DiscoveredDevice

TAG1 = DiscoveredDevice(display_name="Tag1 (1122334455)", address=0x1122334455)
TAG10 = DiscoveredDevice(display_name="Tag10 (AABBCC)", address=0xAABBCC)


def test_exact_display_name_wins_over_substring() -> None:
    assert select_device([TAG10, TAG1], "Tag1 (1122334455)") is TAG1


def test_substring_match_is_case_insensitive() -> None:
    assert select_device([TAG1, TAG10], "aabbcc") is TAG10


def test_ambiguous_hint_lists_candidates() -> None:
    with pytest.raises(DeviceSelectionError) as exc:
        select_device([TAG1, TAG10], "tag1")
    assert "Tag1 (1122334455)" in str(exc.value)
    assert "Tag10 (AABBCC)" in str(exc.value)


def test_no_match_raises() -> None:
    with pytest.raises(DeviceSelectionError):
        select_device([TAG1], "watch")


def test_no_devices_raises() -> None:
    with pytest.raises(DeviceSelectionError):
        select_device([], "tag1")

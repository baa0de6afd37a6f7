"""Single characteristic writes of UTF-8 text."""

from __future__ import annotations

import uuid

from blesend.core.errors import EmptyPayloadError
from blesend.core.model import ConnectionHandle, WriteMode
from blesend.transports.base import Radio


def encode(text: str) -> tuple[str, bytes]:
    trimmed = text.strip()
    if not trimmed:
        raise EmptyPayloadError("No text to send")
    return trimmed, trimmed.encode("utf-8")


def status_echo(text: str) -> str:
    return text.replace("\n", " ").replace("\r", "")


def random_token(length: int = 8) -> str:
    return uuid.uuid4().hex[:length]


class Transmitter:
    def __init__(self, radio: Radio) -> None:
        self.radio = radio

    async def send(self, connection: ConnectionHandle, text: str) -> str:
        """Write trimmed text to the connection's characteristic and return it."""
        trimmed, payload = encode(text)
        characteristic = connection.characteristic
        await self.radio.write(
            connection.link,
            characteristic,
            payload,
            response=characteristic.write_mode is WriteMode.WITH_RESPONSE,
        )
        return trimmed

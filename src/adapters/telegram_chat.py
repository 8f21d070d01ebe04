"""Telegram chat adapter.

Implements the core ChatPort with a Telethon client: admin notices are sent
as HTML, files are uploaded from memory.
"""

from __future__ import annotations

import io
import logging
from typing import Optional

from adapters.telegram_mapper import build_message_event
from core.models import RoomEvent
from core.ports import Room

LOGGER = logging.getLogger(__name__)

# Telegram rejects longer text messages.
MAX_MESSAGE_CHARS = 4096


class TelegramChat:
    """ChatPort adapter posting into the reporting and admin chats."""

    def __init__(self, client, rooms: dict[Room, object]) -> None:
        self._client = client
        self._rooms = rooms

    async def post_text(self, room: Room, text: str, html: bool = False) -> None:
        """Send a text message, splitting it when it exceeds Telegram's limit."""

        entity = self._rooms[room]
        parse_mode = "html" if html else None
        for chunk in split_message(text):
            await self._client.send_message(entity, chunk, parse_mode=parse_mode, link_preview=False)

    async def post_file(self, room: Room, filename: str, data: bytes) -> None:
        handle = io.BytesIO(data)
        # Telethon uses the name attribute as the uploaded file name.
        handle.name = filename
        await self._client.send_file(self._rooms[room], handle, force_document=True)
        LOGGER.info("Uploaded %s (%s bytes) to the %s room", filename, len(data), room.value)

    async def fetch_message(self, room: Room, message_id: str) -> Optional[RoomEvent]:
        if not message_id.isdigit():
            return None
        message = await self._client.get_messages(self._rooms[room], ids=int(message_id))
        if message is None:
            LOGGER.debug("Message %s is gone from the %s room", message_id, room.value)
            return None
        return await build_message_event(message)


def split_message(text: str, limit: int = MAX_MESSAGE_CHARS) -> list[str]:
    """Split on line boundaries so HTML tags spanning a line stay intact."""

    if len(text) <= limit:
        return [text]

    chunks: list[str] = []
    current = ""
    for line in text.split("\n"):
        candidate = f"{current}\n{line}" if current else line
        if len(candidate) <= limit:
            current = candidate
            continue
        if current:
            chunks.append(current)
        while len(line) > limit:
            chunks.append(line[:limit])
            line = line[limit:]
        current = line
    if current:
        chunks.append(current)
    return chunks

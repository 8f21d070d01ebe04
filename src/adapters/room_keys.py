"""Helpers for working with Telegram room keys.

A room key is either "@username" or "chat_id:<id>". Raw updates only carry
peers, so the adapters always emit the chat_id form and configured rooms are
resolved to it (plus its equivalent spellings) at startup.
"""

from __future__ import annotations

from typing import Any, Optional

from telethon import utils

CHAT_ID_PREFIX = "chat_id:"


def room_key_for_chat_id(chat_id: int) -> str:
    return f"{CHAT_ID_PREFIX}{chat_id}"


def parse_chat_id(room_key: str) -> Optional[int]:
    """Return the chat id of a chat_id room key, or None for usernames."""

    if not room_key.startswith(CHAT_ID_PREFIX):
        return None
    try:
        return int(room_key[len(CHAT_ID_PREFIX):])
    except ValueError:
        return None


def _expand_chat_id_variants(raw_chat_id: int) -> set[int]:
    """Return equivalent chat id variants (peer id, chat id, channel id)."""

    variants: set[int] = {raw_chat_id}
    if raw_chat_id < 0:
        raw_text = str(raw_chat_id)
        if raw_text.startswith("-100"):
            # Channel/supergroup peer id: -100<channel_id>
            channel_part = raw_text[4:]
            if channel_part.isdigit():
                variants.add(int(channel_part))
        else:
            variants.add(abs(raw_chat_id))
        return variants

    # raw_chat_id is positive: add PeerChat and PeerChannel-style ids.
    variants.add(-raw_chat_id)
    variants.add(-1000000000000 - raw_chat_id)
    return variants


def expand_room_key_variants(room_key: str) -> set[str]:
    """Expand a room key to include equivalent chat_id variants."""

    chat_id = parse_chat_id(room_key)
    if chat_id is None:
        return {room_key}
    return {room_key_for_chat_id(variant) for variant in _expand_chat_id_variants(chat_id)}


async def resolve_room_key(client: Any, room_key: str) -> str:
    """Resolve an "@username" room key to its chat_id form."""

    if parse_chat_id(room_key) is not None:
        return room_key
    entity = await client.get_entity(room_key)
    return room_key_for_chat_id(utils.get_peer_id(entity))

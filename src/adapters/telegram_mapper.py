"""Telegram-to-core event mapping adapter.

This keeps Telethon-specific details out of the core pipeline: messages,
edits, deletions and reaction updates all become transport-neutral
RoomEvents.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Iterable, Optional

from telethon import utils
from telethon.tl import types
from telethon.tl.custom import Message
from telethon.tl.types import PeerChannel, PeerChat

from adapters.room_keys import parse_chat_id, room_key_for_chat_id
from core.models import RoomEvent, RoomEventKind

LOGGER = logging.getLogger(__name__)


def build_permalink(message: Message) -> Optional[str]:
    """Return a t.me link for the message, if the chat type allows one."""

    chat = getattr(message, "chat", None)
    username = getattr(chat, "username", None)
    # Prefer public usernames for permalinks when available.
    if isinstance(username, str) and username:
        return f"https://t.me/{username}/{message.id}"

    peer_id = getattr(message, "peer_id", None)
    # Private groups/supergroups/channels can use the /c/ links.
    if isinstance(peer_id, PeerChannel):
        return f"https://t.me/c/{peer_id.channel_id}/{message.id}"
    if isinstance(peer_id, PeerChat):
        return f"https://t.me/c/{peer_id.chat_id}/{message.id}"
    # PeerUser has no chat/channel id; no permalink is possible.
    return None


def media_mimetype(message: Message) -> Optional[str]:
    if getattr(message, "photo", None):
        return "image/jpeg"
    document = getattr(message, "document", None)
    if document is not None:
        return getattr(document, "mime_type", None)
    return None


def _reply_to_id(message: Message) -> Optional[str]:
    reply_to = getattr(message, "reply_to", None)
    msg_id = getattr(reply_to, "reply_to_msg_id", None)
    return str(msg_id) if msg_id else None


async def _sender_name(message: Message) -> str:
    sender = getattr(message, "sender", None)
    if sender is None and hasattr(message, "get_sender"):
        try:
            sender = await message.get_sender()
        except Exception:
            LOGGER.debug("Unable to resolve sender of message %s", message.id)
            sender = None
    if sender is None:
        return ""
    return utils.get_display_name(sender)


async def build_message_event(message: Message, edited: bool = False) -> RoomEvent:
    """Build a core RoomEvent from a new or edited Telethon Message."""

    event_id = str(message.id)
    permalink = build_permalink(message)
    mimetype = media_mimetype(message)
    media_url = None
    if mimetype:
        media_url = permalink or f"tg://privatepost?chat={message.chat_id}&post={message.id}"

    return RoomEvent(
        kind=RoomEventKind.EDIT if edited else RoomEventKind.MESSAGE,
        room_key=room_key_for_chat_id(message.chat_id),
        event_id=event_id,
        sender_id=str(message.sender_id or ""),
        sender_name=await _sender_name(message),
        timestamp=message.date,
        text=message.raw_text or "",
        reply_to_id=_reply_to_id(message),
        target_id=event_id if edited else None,
        media_url=media_url,
        media_mimetype=mimetype,
        permalink=permalink,
    )


def deletion_fallback_room(room_key: str) -> Optional[str]:
    """Return the room that may receive deletions Telegram reports without a chat.

    Such updates come from private chats and basic groups, which share one
    message id sequence per account. Channels and supergroups (-100 ids)
    number their messages per chat, so a chat-less id never refers to them.
    """

    chat_id = parse_chat_id(room_key)
    if chat_id is None or str(chat_id).startswith("-100"):
        return None
    return room_key


def build_deleted_events(
    deleted_ids: Iterable[int],
    chat_id: Optional[int],
    fallback_room_key: Optional[str],
) -> list[RoomEvent]:
    """Build delete events; Telegram omits the chat for non-channel deletions."""

    room_key = room_key_for_chat_id(chat_id) if chat_id is not None else fallback_room_key
    if room_key is None:
        LOGGER.debug("Ignoring deletion of %s, the chat is unknown", list(deleted_ids))
        return []
    now = datetime.now(timezone.utc)
    return [
        RoomEvent(
            kind=RoomEventKind.DELETE,
            room_key=room_key,
            event_id=str(deleted_id),
            sender_id="",
            timestamp=now,
        )
        for deleted_id in deleted_ids
    ]


def reaction_key(reaction) -> Optional[str]:
    if isinstance(reaction, types.ReactionEmoji):
        return reaction.emoticon
    if isinstance(reaction, types.ReactionCustomEmoji):
        return f"custom:{reaction.document_id}"
    return None


def _reaction_totals(reactions) -> dict[str, int]:
    totals: dict[str, int] = {}
    for result in getattr(reactions, "results", None) or []:
        key = reaction_key(result.reaction)
        if key:
            totals[key] = totals.get(key, 0) + result.count
    return totals


class ReactionTracker:
    """Turn Telegram reaction updates into added/removed reaction events.

    Bot accounts receive per-actor old/new reaction lists. User accounts only
    receive the current "recent reactions" of a message, so the tracker keeps
    the last seen (actor, emoji) set per message and emits the difference.
    The first update seen for a message reports all its reactions as added;
    the registry ignores repeated reactions.

    "recent reactions" is a capped window: a reactor can drop out of it
    without removing anything. A vanished entry is only reported as removed
    when the total count of its emoji went down.

    Only messages of `room_keys` are tracked (all when None), and at most
    `max_messages` of them are remembered, least recently updated first out.
    """

    def __init__(self, room_keys: Optional[set[str]] = None, max_messages: int = 2048) -> None:
        self._room_keys = room_keys
        self._max_messages = max_messages
        self._seen: OrderedDict[tuple[str, int], tuple[set[tuple[str, str]], dict[str, int]]] = OrderedDict()

    def tracks(self, room_key: str) -> bool:
        return self._room_keys is None or room_key in self._room_keys

    def from_bot_update(self, update: types.UpdateBotMessageReaction) -> list[RoomEvent]:
        room_key = room_key_for_chat_id(utils.get_peer_id(update.peer))
        if not self.tracks(room_key):
            return []
        actor_id = str(utils.get_peer_id(update.actor))
        old = {key for key in map(reaction_key, update.old_reactions or []) if key}
        new = {key for key in map(reaction_key, update.new_reactions or []) if key}
        date = update.date or datetime.now(timezone.utc)

        events = [
            self._event(RoomEventKind.REACTION_REMOVED, room_key, update.msg_id, actor_id, key, date)
            for key in sorted(old - new)
        ]
        events.extend(
            self._event(RoomEventKind.REACTION_ADDED, room_key, update.msg_id, actor_id, key, date)
            for key in sorted(new - old)
        )
        return events

    def from_reactions_update(self, update: types.UpdateMessageReactions) -> list[RoomEvent]:
        room_key = room_key_for_chat_id(utils.get_peer_id(update.peer))
        if not self.tracks(room_key):
            return []
        recent = getattr(update.reactions, "recent_reactions", None) or []

        current: set[tuple[str, str]] = set()
        for peer_reaction in recent:
            key = reaction_key(peer_reaction.reaction)
            if key:
                current.add((str(utils.get_peer_id(peer_reaction.peer_id)), key))
        totals = _reaction_totals(update.reactions)

        message_key = (room_key, update.msg_id)
        previous, previous_totals = self._seen.pop(message_key, (set(), {}))
        drops = {key: count - totals.get(key, 0) for key, count in previous_totals.items()}

        removed: list[tuple[str, str]] = []
        kept = set(current)
        for actor_id, key in sorted(previous - current):
            if drops.get(key, 0) > 0:
                drops[key] -= 1
                removed.append((actor_id, key))
            else:
                # Still counted, only pushed out of the recent window.
                kept.add((actor_id, key))

        self._seen[message_key] = (kept, totals)
        while len(self._seen) > self._max_messages:
            self._seen.popitem(last=False)

        date = datetime.now(timezone.utc)
        events = [
            self._event(RoomEventKind.REACTION_REMOVED, room_key, update.msg_id, actor_id, key, date)
            for actor_id, key in removed
        ]
        events.extend(
            self._event(RoomEventKind.REACTION_ADDED, room_key, update.msg_id, actor_id, key, date)
            for actor_id, key in sorted(current - previous)
        )
        return events

    @staticmethod
    def _event(
        kind: RoomEventKind,
        room_key: str,
        msg_id: int,
        actor_id: str,
        key: str,
        date: datetime,
    ) -> RoomEvent:
        return RoomEvent(
            kind=kind,
            room_key=room_key,
            event_id=f"{msg_id}:{actor_id}:{key}",
            sender_id=actor_id,
            timestamp=date,
            target_id=str(msg_id),
            reaction_key=key,
        )

"""Room event normalization (core domain).

Turns transport-neutral RoomEvents into the small closed set of domain
events. Nothing here raises: every event is either classified or dropped.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from core.config import BotConfig
from core.emoji import normalize_emoji
from core.events import (
    AdminCommand,
    DomainEvent,
    MediaPosted,
    MessageEdited,
    MessageRetracted,
    ReactionAdded,
    ReactionRemoved,
    Submission,
)
from core.models import MediaKind, RoomEvent, RoomEventKind

LOGGER = logging.getLogger(__name__)

COMMAND_PREFIX = "!"


def build_address_patterns(tokens: tuple[str, ...]) -> list[re.Pattern]:
    """Compile one prefix pattern per address token.

    A token matches case-insensitively at the start of the text, with or
    without a leading "@", optionally followed by punctuation.
    """

    patterns: list[re.Pattern] = []
    for token in tokens:
        bare = token.strip().lstrip("@")
        if not bare:
            continue
        patterns.append(re.compile(rf"^\s*@?{re.escape(bare)}(?!\w)[:,.!]?\s*", re.IGNORECASE))
    return patterns


def media_kind_for(mimetype: Optional[str]) -> Optional[MediaKind]:
    if not mimetype:
        return None
    if mimetype.startswith("image/"):
        return MediaKind.IMAGE
    if mimetype.startswith("video/"):
        return MediaKind.VIDEO
    return None


class EventNormalizer:
    """Classify-or-drop raw room events into domain events."""

    def __init__(self, config: BotConfig, room_keys: Optional[dict[str, set[str]]] = None) -> None:
        self._config = config
        self._patterns = build_address_patterns(config.address_tokens)
        # Room keys may have several equivalent spellings (see adapters.room_keys).
        room_keys = room_keys or {}
        self._reporting_keys = room_keys.get("reporting") or {config.reporting_room}
        self._admin_keys = room_keys.get("admin") or {config.admin_room}

    def strip_address(self, text: str) -> Optional[str]:
        """Return the text without its address prefix, or None if not addressed."""

        for pattern in self._patterns:
            match = pattern.match(text)
            if match:
                return text[match.end():].strip()
        return None

    def normalize(self, event: RoomEvent) -> Optional[DomainEvent]:
        if event.sender_id and event.sender_id == self._config.bot_user_id:
            return None

        if event.room_key in self._admin_keys:
            return self._normalize_admin(event)
        if event.room_key in self._reporting_keys:
            return self._normalize_reporting(event)
        return None

    def _normalize_admin(self, event: RoomEvent) -> Optional[DomainEvent]:
        if event.kind is not RoomEventKind.MESSAGE:
            return None
        text = event.text.strip()
        if not text.startswith(COMMAND_PREFIX):
            return None
        return AdminCommand(raw=text, actor_id=event.sender_id, actor_name=event.sender_name)

    def _normalize_reporting(self, event: RoomEvent) -> Optional[DomainEvent]:
        if event.kind is RoomEventKind.MESSAGE:
            return self._normalize_message(event)

        if event.kind is RoomEventKind.EDIT:
            if not event.target_id:
                return None
            stripped = self.strip_address(event.text)
            return MessageEdited(
                target_id=event.target_id,
                text=stripped if stripped is not None else event.text.strip(),
            )

        if event.kind is RoomEventKind.DELETE:
            return MessageRetracted(id=event.event_id, actor_id=event.sender_id)

        if event.kind in {RoomEventKind.REACTION_ADDED, RoomEventKind.REACTION_REMOVED}:
            return self._normalize_reaction(event)

        return None

    def reacted_submission(self, event: RoomEvent) -> Optional[Submission]:
        """Build a submission for a text message submitted by reaction.

        The address token is optional here and stripped when present.
        """

        if event.kind is not RoomEventKind.MESSAGE or event.media_mimetype:
            return None
        if event.sender_id and event.sender_id == self._config.bot_user_id:
            return None
        text = event.text.strip()
        if not text:
            return None
        stripped = self.strip_address(text)
        return self._submission(event, stripped if stripped is not None else text)

    def _submission(self, event: RoomEvent, text: str) -> Submission:
        return Submission(
            id=event.event_id,
            reporter_id=event.sender_id,
            reporter_display_name=event.sender_name or event.sender_id,
            text=text,
            timestamp=event.timestamp,
            link=event.permalink,
        )

    def _normalize_message(self, event: RoomEvent) -> Optional[DomainEvent]:
        stripped = self.strip_address(event.text) if event.text else None
        if stripped is not None:
            return self._submission(event, stripped)

        kind = media_kind_for(event.media_mimetype)
        if event.media_url and kind is not None:
            return MediaPosted(
                id=event.event_id,
                parent_id=event.reply_to_id,
                url=event.media_url,
                kind=kind,
                sender_id=event.sender_id,
                timestamp=event.timestamp,
            )
        return None

    def _normalize_reaction(self, event: RoomEvent) -> Optional[DomainEvent]:
        if not event.target_id or not event.reaction_key:
            return None
        emoji = normalize_emoji(event.reaction_key)
        if self._config.action_for_emoji(emoji) is None:
            LOGGER.debug("Ignoring reaction %r, it doesn't match any known emoji", event.reaction_key)
            return None
        if event.kind is RoomEventKind.REACTION_ADDED:
            return ReactionAdded(target_id=event.target_id, emoji_key=emoji, actor_id=event.sender_id)
        return ReactionRemoved(target_id=event.target_id, emoji_key=emoji, actor_id=event.sender_id)

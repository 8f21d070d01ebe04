"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any integration-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from core.actions import Action


class RoomEventKind(str, Enum):
    MESSAGE = "message"
    EDIT = "edit"
    DELETE = "delete"
    REACTION_ADDED = "reaction-added"
    REACTION_REMOVED = "reaction-removed"


class MediaKind(str, Enum):
    IMAGE = "image"
    VIDEO = "video"


@dataclass(frozen=True)
class RoomEvent:
    """Transport-neutral inbound event, as produced by a chat adapter.

    For reactions `target_id` is the reacted-to message; for edits it is the
    edited message. `media_url` is only set when the message carries media.
    """

    kind: RoomEventKind
    room_key: str
    event_id: str
    sender_id: str
    timestamp: datetime
    sender_name: str = ""
    text: str = ""
    reply_to_id: Optional[str] = None
    target_id: Optional[str] = None
    reaction_key: Optional[str] = None
    media_url: Optional[str] = None
    media_mimetype: Optional[str] = None
    permalink: Optional[str] = None


@dataclass(frozen=True)
class MediaAttachment:
    """One attached image or video, keyed by the id of the media message."""

    event_id: str
    url: str


@dataclass(frozen=True)
class NewsItem:
    """One reported submission.

    `id` never changes; the registry replaces the whole value on every field
    update so snapshots can share items without copying.
    """

    id: str
    reporter_id: str
    reporter_display_name: str
    message: str
    timestamp: datetime
    link: Optional[str] = None
    approved: bool = False
    section_key: Optional[str] = None
    project_key: Optional[str] = None
    third_party: bool = False
    images: tuple[MediaAttachment, ...] = ()
    videos: tuple[MediaAttachment, ...] = ()

    @property
    def is_classified(self) -> bool:
        return bool(self.section_key or self.project_key or self.third_party)

    def summary(self) -> str:
        if len(self.message) > 60:
            return f"{self.message[:50]} …"
        return self.message


@dataclass(frozen=True)
class ActiveReaction:
    """A currently present, authorized reaction on some target id."""

    actor_id: str
    emoji: str
    action: Action


@dataclass(frozen=True)
class PostedMedia:
    """A media message seen in the reporting room."""

    id: str
    parent_id: Optional[str]
    url: str
    kind: MediaKind
    sender_id: str
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class RegistrySnapshot:
    """Consistent point-in-time copy of the registry.

    `items` keep submission order. `reactions` and `media` hold every
    reference the registry still tracks, including ones whose target is not
    (yet) a news item.
    """

    items: tuple[NewsItem, ...] = ()
    reactions: dict[str, tuple[ActiveReaction, ...]] = field(default_factory=dict)
    media: tuple[PostedMedia, ...] = ()

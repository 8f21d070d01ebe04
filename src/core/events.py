"""Domain events produced by the normalizer (core domain)."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

from core.models import MediaKind


@dataclass(frozen=True)
class Submission:
    id: str
    reporter_id: str
    reporter_display_name: str
    text: str
    timestamp: datetime
    link: Optional[str] = None


@dataclass(frozen=True)
class ReactionAdded:
    target_id: str
    emoji_key: str
    actor_id: str


@dataclass(frozen=True)
class ReactionRemoved:
    target_id: str
    emoji_key: str
    actor_id: str


@dataclass(frozen=True)
class MediaPosted:
    id: str
    parent_id: Optional[str]
    url: str
    kind: MediaKind
    sender_id: str
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class AdminCommand:
    raw: str
    actor_id: str
    actor_name: str = ""


@dataclass(frozen=True)
class MessageEdited:
    target_id: str
    text: str


@dataclass(frozen=True)
class MessageRetracted:
    id: str
    actor_id: str = ""


DomainEvent = Union[
    Submission,
    ReactionAdded,
    ReactionRemoved,
    MediaPosted,
    AdminCommand,
    MessageEdited,
    MessageRetracted,
]

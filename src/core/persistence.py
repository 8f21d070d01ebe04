"""Registry persistence (core domain).

The snapshot codec and an ordered background writer. Actual file IO lives in
a SnapshotStore adapter so the core stays storage-agnostic.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, Optional

from core.actions import Action
from core.models import (
    ActiveReaction,
    MediaAttachment,
    MediaKind,
    NewsItem,
    PostedMedia,
    RegistrySnapshot,
)
from core.ports import SnapshotStore

LOGGER = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1


class SnapshotCorruptedError(RuntimeError):
    """Raised when a persisted snapshot exists but cannot be decoded."""


def _attachments_to_dict(attachments: tuple[MediaAttachment, ...]) -> dict[str, str]:
    # JSON objects keep insertion order, which is the render order.
    return {attachment.event_id: attachment.url for attachment in attachments}


def _attachments_from_dict(raw: dict) -> tuple[MediaAttachment, ...]:
    return tuple(MediaAttachment(event_id=key, url=url) for key, url in raw.items())


def _optional_datetime(raw: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(raw) if raw else None


def snapshot_to_dict(snapshot: RegistrySnapshot) -> dict:
    """Encode a snapshot into a JSON-friendly dict."""

    return {
        "version": SNAPSHOT_VERSION,
        "items": [
            {
                "id": item.id,
                "reporter_id": item.reporter_id,
                "reporter_display_name": item.reporter_display_name,
                "message": item.message,
                "timestamp": item.timestamp.isoformat(),
                "link": item.link,
                "approved": item.approved,
                "section_key": item.section_key,
                "project_key": item.project_key,
                "third_party": item.third_party,
                "images": _attachments_to_dict(item.images),
                "videos": _attachments_to_dict(item.videos),
            }
            for item in snapshot.items
        ],
        "reactions": {
            target: [
                {"actor_id": r.actor_id, "emoji": r.emoji, "action": r.action.label()}
                for r in active
            ]
            for target, active in snapshot.reactions.items()
        },
        "media": [
            {
                "id": media.id,
                "parent_id": media.parent_id,
                "url": media.url,
                "kind": media.kind.value,
                "sender_id": media.sender_id,
                "timestamp": media.timestamp.isoformat() if media.timestamp else None,
            }
            for media in snapshot.media
        ],
    }


def snapshot_from_dict(data: dict) -> RegistrySnapshot:
    """Decode a snapshot, raising SnapshotCorruptedError on any malformed field."""

    try:
        if data.get("version") != SNAPSHOT_VERSION:
            raise ValueError(f"unsupported snapshot version {data.get('version')!r}")

        items = tuple(
            NewsItem(
                id=entry["id"],
                reporter_id=entry["reporter_id"],
                reporter_display_name=entry["reporter_display_name"],
                message=entry["message"],
                timestamp=datetime.fromisoformat(entry["timestamp"]),
                link=entry.get("link"),
                approved=bool(entry.get("approved", False)),
                section_key=entry.get("section_key"),
                project_key=entry.get("project_key"),
                third_party=bool(entry.get("third_party", False)),
                images=_attachments_from_dict(entry.get("images", {})),
                videos=_attachments_from_dict(entry.get("videos", {})),
            )
            for entry in data["items"]
        )
        reactions = {
            target: tuple(
                ActiveReaction(
                    actor_id=r["actor_id"],
                    emoji=r["emoji"],
                    action=Action.from_label(r["action"]),
                )
                for r in active
            )
            for target, active in data.get("reactions", {}).items()
        }
        media = tuple(
            PostedMedia(
                id=entry["id"],
                parent_id=entry.get("parent_id"),
                url=entry["url"],
                kind=MediaKind(entry["kind"]),
                sender_id=entry.get("sender_id", ""),
                timestamp=_optional_datetime(entry.get("timestamp")),
            )
            for entry in data.get("media", [])
        )
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        raise SnapshotCorruptedError(f"Unable to decode news snapshot: {exc}") from exc

    return RegistrySnapshot(items=items, reactions=reactions, media=media)


class PersistenceManager:
    """Writes registry snapshots in order without blocking the event stream.

    Only one write runs at a time. A snapshot scheduled while a write is in
    flight replaces any older pending one, so write N either completes or is
    superseded by N+1 before N+1 starts.
    """

    def __init__(
        self,
        store: SnapshotStore,
        on_error: Optional[Callable[[Exception], Awaitable[None]]] = None,
    ) -> None:
        self._store = store
        self._on_error = on_error
        self._pending: Optional[RegistrySnapshot] = None
        self._task: Optional[asyncio.Task] = None

    def load(self) -> Optional[RegistrySnapshot]:
        """Load the persisted snapshot; None when nothing was persisted yet."""

        data = self._store.load()
        if data is None:
            return None
        if not isinstance(data, dict):
            raise SnapshotCorruptedError("News snapshot root must be an object")
        return snapshot_from_dict(data)

    def schedule(self, snapshot: RegistrySnapshot) -> None:
        self._pending = snapshot
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._drain())

    async def flush(self) -> None:
        """Wait until every scheduled snapshot is written (or superseded)."""

        while self._task is not None and not self._task.done():
            await self._task

    async def _drain(self) -> None:
        while self._pending is not None:
            snapshot, self._pending = self._pending, None
            try:
                await asyncio.to_thread(self._store.save, snapshot_to_dict(snapshot))
            except Exception as exc:
                LOGGER.exception("Failed to persist news snapshot")
                if self._on_error is not None:
                    await self._on_error(exc)

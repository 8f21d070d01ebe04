"""News registry (core domain).

The registry is the single-writer owner of every news item. Classification
is never stored as a bare field: each target id keeps the ordered list of
active (actor, emoji, action) reactions, and the item's approved/section/
project/third-party/media fields are folded from that list. Applying and
revoking a reaction therefore stay symmetric, and a revoked assignment falls
back to the next most recent one still present.

References that cannot be resolved yet (a reaction on a message that is not
a news item, media replying to an unknown parent) stay in the ledger and are
re-resolved whenever an event touches the same id. At most
`max_pending_references` of each kind are kept, oldest dropped first.

Media posted without a reply belongs to the closest-in-time news item of
its author, decided once the media gets attached.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable, Optional

from core.actions import Action, ActionKind
from core.config import BotConfig
from core.events import MediaPosted, Submission
from core.models import (
    ActiveReaction,
    MediaAttachment,
    MediaKind,
    NewsItem,
    PostedMedia,
    RegistrySnapshot,
)

LOGGER = logging.getLogger(__name__)


def fold_classification(
    reactions: Iterable[ActiveReaction],
    config: BotConfig,
) -> tuple[bool, bool, Optional[str], Optional[str]]:
    """Return (approved, third_party, section_key, project_key) for a reaction list.

    Assignments are replayed oldest first:
    - a section assignment clears a project that does not belong to it
    - a project assignment moves the section to the project's owner unless
      the current section already contains the project
    Assignments naming keys that are no longer configured are skipped.
    """

    approved = False
    third_party = False
    section_key: Optional[str] = None
    project_key: Optional[str] = None

    for reaction in reactions:
        action = reaction.action
        if action.kind is ActionKind.APPROVE:
            approved = True
        elif action.kind is ActionKind.MARK_THIRD_PARTY:
            third_party = True
        elif action.kind is ActionKind.ASSIGN_SECTION:
            if config.section(action.key) is None:
                continue
            section_key = action.key
            if project_key and not config.project_in_section(project_key, section_key):
                project_key = None
        elif action.kind is ActionKind.ASSIGN_PROJECT:
            project = config.project(action.key)
            if project is None:
                continue
            project_key = project.key
            if section_key is None or not config.project_in_section(project_key, section_key):
                section_key = project.section or None

    return approved, third_party, section_key, project_key


class NewsRegistry:
    """Authoritative in-memory map of news items."""

    def __init__(self, config: BotConfig) -> None:
        self._config = config
        self._items: dict[str, NewsItem] = {}
        self._reactions: dict[str, list[ActiveReaction]] = {}
        self._media: dict[str, PostedMedia] = {}

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item_id: str) -> bool:
        return item_id in self._items

    def knows(self, target_id: str) -> bool:
        """True for news items and media messages seen in the reporting room."""

        return target_id in self._items or target_id in self._media

    def get(self, item_id: str) -> Optional[NewsItem]:
        return self._items.get(item_id)

    def items(self) -> list[NewsItem]:
        return list(self._items.values())

    def submit(self, event: Submission) -> Optional[NewsItem]:
        """Create a news item; returns None for a duplicate submission."""

        if event.id in self._items:
            LOGGER.debug("Ignoring duplicate submission %s", event.id)
            return None

        self._items[event.id] = NewsItem(
            id=event.id,
            reporter_id=event.reporter_id,
            reporter_display_name=event.reporter_display_name,
            message=event.text,
            timestamp=event.timestamp,
            link=event.link,
        )
        # Reactions or media may have arrived before the submission itself.
        for media in list(self._media.values()):
            if media.parent_id is None and media.sender_id == event.reporter_id:
                self._resolve_parent(media.id)
        self._reconcile(event.id)
        return self._items[event.id]

    def apply(self, action: Action, target_id: str, actor_id: str = "", emoji: str = "") -> Optional[NewsItem]:
        """Record an active reaction; returns the news item it changed, if any."""

        reaction = ActiveReaction(actor_id=actor_id, emoji=emoji, action=action)
        active = self._reactions.setdefault(target_id, [])
        if reaction in active:
            return None
        active.append(reaction)
        changed = self._refresh(target_id)
        if not self._resolves(target_id):
            self._trim_pending()
        return changed

    def revoke(self, action: Action, target_id: str, actor_id: str = "", emoji: str = "") -> Optional[NewsItem]:
        """Drop an active reaction; returns the news item it changed, if any."""

        reaction = ActiveReaction(actor_id=actor_id, emoji=emoji, action=action)
        active = self._reactions.get(target_id)
        if not active or reaction not in active:
            return None
        active.remove(reaction)
        if not active:
            del self._reactions[target_id]
        return self._refresh(target_id)

    def record_media(self, event: MediaPosted) -> Optional[NewsItem]:
        """Remember a media message; returns the news item it got attached to, if any."""

        if event.id in self._media:
            return None
        self._media[event.id] = PostedMedia(
            id=event.id,
            parent_id=event.parent_id,
            url=event.url,
            kind=event.kind,
            sender_id=event.sender_id,
            timestamp=event.timestamp,
        )
        changed = self._refresh(event.id)
        self._trim_pending()
        return changed

    def edit(self, item_id: str, text: str) -> Optional[NewsItem]:
        item = self._items.get(item_id)
        if item is None:
            return None
        updated = replace(item, message=text)
        self._items[item_id] = updated
        return updated

    def retract(self, event_id: str) -> tuple[Optional[NewsItem], Optional[PostedMedia]]:
        """Forget a deleted message.

        Returns the removed news item, or the removed media message together
        with the item it was attached to.
        """

        item = self._items.pop(event_id, None)
        if item is not None:
            self._reactions.pop(event_id, None)
            return item, None

        media = self._media.pop(event_id, None)
        if media is not None:
            self._reactions.pop(event_id, None)
            parent = self._items.get(media.parent_id) if media.parent_id else None
            attached = parent is not None and any(
                attachment.event_id == event_id for attachment in (*parent.images, *parent.videos)
            )
            if parent is not None:
                self._reconcile(parent.id)
            return (self._items.get(parent.id) if attached else None), media

        return None, None

    def clear(self) -> int:
        """Empty the registry entirely; returns the number of dropped items."""

        count = len(self._items)
        self._items.clear()
        self._reactions.clear()
        self._media.clear()
        return count

    def snapshot(self) -> RegistrySnapshot:
        # Items are frozen, so sharing them is safe; the containers are copied.
        return RegistrySnapshot(
            items=tuple(self._items.values()),
            reactions={target: tuple(active) for target, active in self._reactions.items()},
            media=tuple(self._media.values()),
        )

    def restore(self, snapshot: RegistrySnapshot) -> None:
        """Replace the whole state with a snapshot (startup only)."""

        self._items = {item.id: item for item in snapshot.items}
        self._reactions = {target: list(active) for target, active in snapshot.reactions.items()}
        self._media = {media.id: media for media in snapshot.media}
        for item_id in list(self._items):
            self._reconcile(item_id)

    def _refresh(self, target_id: str) -> Optional[NewsItem]:
        if target_id in self._items:
            return self._reconcile(target_id)

        media = self._resolve_parent(target_id)
        if media is not None and media.parent_id in self._items:
            return self._reconcile(media.parent_id)

        LOGGER.debug("Reference %s doesn't resolve to a news item yet", target_id)
        return None

    def _reconcile(self, item_id: str) -> Optional[NewsItem]:
        """Refold an item from its reactions and media; returns it if it changed."""

        item = self._items[item_id]
        approved, third_party, section_key, project_key = fold_classification(
            self._reactions.get(item_id, ()), self._config
        )

        images: list[MediaAttachment] = []
        videos: list[MediaAttachment] = []
        for media in self._media.values():
            if media.parent_id != item_id or not self._is_attached(media):
                continue
            attachment = MediaAttachment(event_id=media.id, url=media.url)
            if media.kind is MediaKind.VIDEO:
                videos.append(attachment)
            else:
                images.append(attachment)

        updated = replace(
            item,
            approved=approved,
            third_party=third_party,
            section_key=section_key,
            project_key=project_key,
            images=tuple(images),
            videos=tuple(videos),
        )
        if updated == item:
            return None
        self._items[item_id] = updated
        return updated

    def _is_attached(self, media: PostedMedia) -> bool:
        for reaction in self._reactions.get(media.id, ()):
            if reaction.action.kind is not ActionKind.ATTACH_MEDIA:
                continue
            if not self._config.restrict_media:
                return True
            if self._config.is_editor(reaction.actor_id) or reaction.actor_id == media.sender_id:
                return True
        return False

    def _resolve_parent(self, media_id: str) -> Optional[PostedMedia]:
        """Pin attached media posted without a reply to its author's closest news item."""

        media = self._media.get(media_id)
        if media is None or media.parent_id is not None or not self._is_attached(media):
            return media
        item = self._related_item(media)
        if item is None:
            return media
        media = replace(media, parent_id=item.id)
        self._media[media_id] = media
        LOGGER.debug("Media %s belongs to news entry %s of the same reporter", media_id, item.id)
        return media

    def _related_item(self, media: PostedMedia) -> Optional[NewsItem]:
        if media.timestamp is None:
            return None
        closest: Optional[NewsItem] = None
        for item in self._items.values():
            if item.reporter_id != media.sender_id:
                continue
            if closest is None or abs(item.timestamp - media.timestamp) < abs(closest.timestamp - media.timestamp):
                closest = item
        return closest

    def _trim_pending(self) -> None:
        """Forget the oldest references that still don't resolve to a news item."""

        limit = self._config.max_pending_references
        pending_reactions = [target for target in self._reactions if not self._resolves(target)]
        for target in pending_reactions[: max(len(pending_reactions) - limit, 0)]:
            del self._reactions[target]
        pending_media = [media.id for media in self._media.values() if media.parent_id not in self._items]
        for media_id in pending_media[: max(len(pending_media) - limit, 0)]:
            del self._media[media_id]

    def _resolves(self, target_id: str) -> bool:
        if target_id in self._items:
            return True
        media = self._media.get(target_id)
        return media is not None and media.parent_id in self._items

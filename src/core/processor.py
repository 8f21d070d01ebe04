"""Core event processing pipeline.

This module is integration-agnostic. It only relies on ports for chat and
storage, enabling other transports without changes here.

Every inbound event runs to completion under one lock before the next one is
accepted: normalize -> classify -> registry mutation -> schedule persistence.
Admin commands share the same serialization point, so they always observe a
settled registry.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from core import notices
from core.actions import Action, ActionKind
from core.classifier import ReactionClassifier
from core.commands import CommandDispatcher
from core.config import BotConfig
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
from core.models import RoomEvent
from core.normalizer import EventNormalizer
from core.persistence import PersistenceManager
from core.ports import ChatPort, Room
from core.registry import NewsRegistry

LOGGER = logging.getLogger(__name__)

_ATTACH = Action.attach_media()


class NewsProcessor:
    """Orchestrates normalizing, classification, registry updates and notices."""

    def __init__(
        self,
        config: BotConfig,
        normalizer: EventNormalizer,
        classifier: ReactionClassifier,
        registry: NewsRegistry,
        persistence: PersistenceManager,
        dispatcher: CommandDispatcher,
        chat: ChatPort,
    ) -> None:
        self._config = config
        self._normalizer = normalizer
        self._classifier = classifier
        self._registry = registry
        self._persistence = persistence
        self._dispatcher = dispatcher
        self._chat = chat
        self._lock = asyncio.Lock()

    async def handle(self, event: RoomEvent) -> None:
        """Process one raw room event through the core pipeline."""

        domain_event = self._normalizer.normalize(event)
        if domain_event is None:
            return

        async with self._lock:
            await self._handle_domain_event(domain_event)

    async def _handle_domain_event(self, event: DomainEvent) -> None:
        if isinstance(event, AdminCommand):
            await self._dispatcher.dispatch(event)
        elif isinstance(event, Submission):
            await self._on_submission(event)
        elif isinstance(event, ReactionAdded):
            await self._on_reaction(event, added=True)
        elif isinstance(event, ReactionRemoved):
            await self._on_reaction(event, added=False)
        elif isinstance(event, MediaPosted):
            await self._on_media(event)
        elif isinstance(event, MessageEdited):
            await self._on_edit(event)
        elif isinstance(event, MessageRetracted):
            await self._on_retraction(event)

    def _persist(self) -> None:
        self._persistence.schedule(self._registry.snapshot())

    async def _admin(self, text: str) -> None:
        await self._chat.post_text(Room.ADMIN, text, html=True)

    async def _on_submission(self, event: Submission, acknowledge: bool = True) -> None:
        existing = self._registry.get(event.id)
        if existing is not None:
            await self._admin(notices.duplicate(existing))
            return

        if len(event.text) <= self._config.min_length:
            LOGGER.info("Rejected short submission %s by %s", event.id, event.reporter_id)
            await self._chat.post_text(Room.REPORTING, notices.too_short(event.reporter_display_name))
            return

        item = self._registry.submit(event)
        if item is None:
            return
        self._persist()
        LOGGER.info("Stored news entry %s by %s", item.id, item.reporter_id)

        if acknowledge and self._config.ack_text:
            ack = notices.acknowledgement(self._config.ack_text, item.reporter_display_name)
            await self._chat.post_text(Room.REPORTING, ack)
        await self._admin(notices.submitted(item))

    async def _on_reaction(self, event: ReactionAdded | ReactionRemoved, added: bool) -> None:
        action = self._classifier.classify(event.emoji_key, event.actor_id, event.target_id)
        if action is None:
            return

        # The media emoji on a plain text message submits it as news.
        if added and action.kind is ActionKind.ATTACH_MEDIA and not self._registry.knows(event.target_id):
            if await self._submit_reacted_message(event):
                return

        if added:
            changed = self._registry.apply(action, event.target_id, event.actor_id, event.emoji_key)
        else:
            changed = self._registry.revoke(action, event.target_id, event.actor_id, event.emoji_key)
        # The reaction ledger is persisted even when no item changed yet, so
        # pending references survive a restart.
        self._persist()

        if changed is None:
            return
        LOGGER.info("%s %s on %s by %s", "Applied" if added else "Revoked", action.label(), changed.id, event.actor_id)

        message: Optional[str]
        if added:
            message = notices.classified(event.actor_id, action, changed, self._config)
        else:
            message = notices.unclassified(event.actor_id, action, changed)
        if message:
            await self._admin(message)

    async def _submit_reacted_message(self, event: ReactionAdded) -> bool:
        """Submit the text message a reaction points at.

        Returns False when the target isn't a text message, so the reaction
        stays a pending media reference.
        """

        message = await self._chat.fetch_message(Room.REPORTING, event.target_id)
        submission = self._normalizer.reacted_submission(message) if message is not None else None
        if submission is None:
            return False

        if (
            self._config.restrict_notice
            and not self._config.is_editor(event.actor_id)
            and event.actor_id != submission.reporter_id
        ):
            LOGGER.info("Ignoring %s's submission of message %s, they are not its author", event.actor_id, submission.id)
            return True

        await self._on_submission(submission, acknowledge=False)
        return True

    async def _on_media(self, event: MediaPosted) -> None:
        attached_to = self._registry.record_media(event)
        self._persist()
        if attached_to is not None:
            await self._admin(notices.classified(event.sender_id, _ATTACH, attached_to, self._config))

    async def _on_edit(self, event: MessageEdited) -> None:
        item = self._registry.edit(event.target_id, event.text)
        if item is None:
            return
        self._persist()
        LOGGER.info("News entry %s got edited", item.id)
        if item.is_classified:
            await self._admin(notices.edited(item))

    async def _on_retraction(self, event: MessageRetracted) -> None:
        item, media = self._registry.retract(event.id)
        if item is None and media is None:
            return
        self._persist()

        if media is None and item is not None:
            LOGGER.info("News entry %s got deleted", item.id)
            await self._admin(notices.deleted(item, event.actor_id))
        elif item is not None:
            await self._admin(notices.media_deleted(item))

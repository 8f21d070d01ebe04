"""Reaction classification (core domain)."""

from __future__ import annotations

import logging
from typing import Optional

from core.actions import Action
from core.config import BotConfig

LOGGER = logging.getLogger(__name__)


class ReactionClassifier:
    """Map an emoji reaction to a classification action.

    Editor-only actions from other actors are dropped without any feedback to
    the actor, so editor membership is not leaked into the reporting room.
    They are still logged for operators.
    """

    def __init__(self, config: BotConfig) -> None:
        self._config = config

    def classify(self, emoji_key: str, actor_id: str, target_id: str) -> Optional[Action]:
        action = self._config.action_for_emoji(emoji_key)
        if action is None:
            return None

        if action.requires_editor and not self._config.is_editor(actor_id):
            LOGGER.info(
                "Ignoring %s reaction by non-editor %s on %s",
                action.label(),
                actor_id,
                target_id,
            )
            return None

        return action

"""Emoji normalization helpers (core domain)."""

from __future__ import annotations

VARIATION_SELECTOR = "\ufe0f"
SUGGESTION_SUFFIX = " ?"


def normalize_emoji(emoji: str) -> str:
    """Normalize an emoji key for deterministic table lookups.

    Clients disagree on whether to send the emoji presentation selector, and
    suggested reactions carry a trailing " ?" marker; both are dropped.
    """

    value = (emoji or "").strip()
    if value.endswith(SUGGESTION_SUFFIX):
        value = value[: -len(SUGGESTION_SUFFIX)]
    return value.replace(VARIATION_SELECTOR, "").strip()

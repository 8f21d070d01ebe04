"""Classification actions produced by reactions (core domain)."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ActionKind(str, Enum):
    APPROVE = "approve"
    ASSIGN_SECTION = "assign-section"
    ASSIGN_PROJECT = "assign-project"
    MARK_THIRD_PARTY = "third-party"
    ATTACH_MEDIA = "attach-media"


# Kinds that only editors may apply.
EDITOR_ONLY = frozenset(
    {
        ActionKind.APPROVE,
        ActionKind.ASSIGN_SECTION,
        ActionKind.ASSIGN_PROJECT,
        ActionKind.MARK_THIRD_PARTY,
    }
)


@dataclass(frozen=True)
class Action:
    """A tagged classification action; `key` is set for assignments only."""

    kind: ActionKind
    key: Optional[str] = None

    @classmethod
    def approve(cls) -> "Action":
        return cls(ActionKind.APPROVE)

    @classmethod
    def assign_section(cls, key: str) -> "Action":
        return cls(ActionKind.ASSIGN_SECTION, key)

    @classmethod
    def assign_project(cls, key: str) -> "Action":
        return cls(ActionKind.ASSIGN_PROJECT, key)

    @classmethod
    def mark_third_party(cls) -> "Action":
        return cls(ActionKind.MARK_THIRD_PARTY)

    @classmethod
    def attach_media(cls) -> "Action":
        return cls(ActionKind.ATTACH_MEDIA)

    @property
    def requires_editor(self) -> bool:
        return self.kind in EDITOR_ONLY

    def label(self) -> str:
        if self.key is None:
            return self.kind.value
        return f"{self.kind.value}:{self.key}"

    @classmethod
    def from_label(cls, label: str) -> "Action":
        kind, _, key = label.partition(":")
        return cls(ActionKind(kind), key or None)

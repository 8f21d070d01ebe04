"""Ports (interfaces) used by the core.

Ports define the minimal contracts for chat, storage, templating and process
adapters so that the core can be reused with different backends.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional, Protocol

from core.models import RoomEvent


class Room(str, Enum):
    REPORTING = "reporting"
    ADMIN = "admin"


class ChatPort(Protocol):
    """Chat operations required by the core."""

    async def post_text(self, room: Room, text: str, html: bool = False) -> None:
        ...

    async def post_file(self, room: Room, filename: str, data: bytes) -> None:
        ...

    async def fetch_message(self, room: Room, message_id: str) -> Optional[RoomEvent]:
        """Return a message previously posted in `room`, if it still exists."""
        ...


class SnapshotStore(Protocol):
    """Durable storage of one serialized registry snapshot."""

    def load(self) -> Optional[dict]:
        ...

    def save(self, data: dict) -> None:
        ...


class TemplatePort(Protocol):
    """External templating engine turning a render context into a document."""

    def render(self, context: dict) -> str:
        ...


class ProcessPort(Protocol):
    """Process-level collaborators used by admin commands."""

    async def run_shell(self, command: str, stdin: Optional[bytes] = None) -> tuple[int, str, str]:
        ...

    def restart(self) -> None:
        ...

from __future__ import annotations

from typing import Optional

import pytest

from core.config import BotConfig, build_config
from core.models import RoomEvent
from core.ports import Room

RAW_CONFIG = {
    "bot_user_id": "bot",
    "reporting_room": "chat_id:100",
    "admin_room": "chat_id:200",
    "editors": ["ed1", "ed2"],
    "address_tokens": ["TWIC", "newsdesk"],
    "min_length": 10,
    "ack_text": "Thanks {{user}}!",
    "verbs": ["reports", "says"],
    "reactions": {"approve": ["⭕"], "third_party": ["🎉"], "media": ["📷"]},
    "sections": [
        {"key": "apps", "emoji": "📱", "title": "Circle Apps"},
        {"key": "core", "emoji": "⚙️", "title": "Core"},
        {"key": "misc", "emoji": "📝", "title": "Miscellaneous"},
    ],
    "projects": [
        {
            "key": "fractal",
            "emoji": "🧩",
            "title": "Fractal",
            "website": "https://example.org/fractal",
            "description": "Messaging app",
            "section": "apps",
        },
        {
            "key": "gtk",
            "emoji": "🧱",
            "title": "GTK",
            "website": "https://gtk.org",
            "description": "Widget toolkit",
            "section": "core",
        },
    ],
}


class FakeChat:
    def __init__(self) -> None:
        self.texts: list[tuple[Room, str, bool]] = []
        self.files: list[tuple[Room, str, bytes]] = []
        self.messages: dict[str, RoomEvent] = {}
        self.fetched: list[tuple[Room, str]] = []

    async def post_text(self, room: Room, text: str, html: bool = False) -> None:
        self.texts.append((room, text, html))

    async def post_file(self, room: Room, filename: str, data: bytes) -> None:
        self.files.append((room, filename, data))

    async def fetch_message(self, room: Room, message_id: str) -> Optional[RoomEvent]:
        self.fetched.append((room, message_id))
        return self.messages.get(message_id)

    def in_room(self, room: Room) -> list[str]:
        return [text for posted_room, text, _ in self.texts if posted_room is room]


class FakeStore:
    def __init__(self, data: Optional[dict] = None) -> None:
        self.data = data
        self.saves: list[dict] = []

    def load(self) -> Optional[dict]:
        return self.data

    def save(self, data: dict) -> None:
        self.data = data
        self.saves.append(data)


class FakeProcess:
    def __init__(self, result: tuple[int, str, str] = (0, "", "")) -> None:
        self.result = result
        self.commands: list[tuple[str, Optional[bytes]]] = []
        self.restarts = 0

    async def run_shell(self, command: str, stdin: Optional[bytes] = None) -> tuple[int, str, str]:
        self.commands.append((command, stdin))
        return self.result

    def restart(self) -> None:
        self.restarts += 1


class FakeTemplate:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.contexts: list[dict] = []

    def render(self, context: dict) -> str:
        if self.fail:
            raise ValueError("unexpected end of template")
        self.contexts.append(context)
        sections = ",".join(section["key"] for section in context["sections"])
        return f"# Week {context['weeknumber']} by {context['editor']}: {sections}\n"


def make_config(**overrides) -> BotConfig:
    return build_config({**RAW_CONFIG, **overrides})


@pytest.fixture
def config() -> BotConfig:
    return make_config()


@pytest.fixture
def chat() -> FakeChat:
    return FakeChat()


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def process() -> FakeProcess:
    return FakeProcess()


@pytest.fixture
def template() -> FakeTemplate:
    return FakeTemplate()


@pytest.fixture
def config_factory():
    return make_config

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest
from telethon.tl.types import PeerChannel

import client
from adapters.process_control import LocalProcess
from adapters.telegram_chat import TelegramChat, split_message
from core.ports import Room


class DummyMessage:
    def __init__(self) -> None:
        self.id = 5
        self.chat_id = -100123
        self.chat = None
        self.peer_id = PeerChannel(channel_id=123)
        self.reply_to = None
        self.photo = None
        self.document = None
        self.sender_id = 7
        self.sender = None
        self.date = datetime(2024, 1, 1, tzinfo=timezone.utc)
        self.raw_text = "the build is green again"


class DummyClient:
    def __init__(self) -> None:
        self.messages: list[tuple[object, str, object]] = []
        self.files: list[tuple[object, str, bytes]] = []
        self.requested: list[tuple[object, int]] = []

    async def send_message(self, entity, text, parse_mode=None, link_preview=True):
        self.messages.append((entity, text, parse_mode))

    async def send_file(self, entity, handle, force_document=False):
        self.files.append((entity, handle.name, handle.getvalue()))

    async def get_messages(self, entity, ids=None):
        self.requested.append((entity, ids))
        return DummyMessage() if ids == 5 else None


def test_split_message_respects_line_boundaries() -> None:
    text = "\n".join(["a" * 6, "b" * 6, "c" * 6])
    assert split_message(text, limit=13) == ["aaaaaa\nbbbbbb", "cccccc"]
    assert split_message("x" * 10, limit=4) == ["xxxx", "xxxx", "xx"]
    assert split_message("short") == ["short"]


def test_chat_posts_to_configured_rooms() -> None:
    client = DummyClient()
    chat = TelegramChat(client, {Room.REPORTING: "reporting-entity", Room.ADMIN: "admin-entity"})

    async def run() -> None:
        await chat.post_text(Room.ADMIN, "<b>hi</b>", html=True)
        await chat.post_text(Room.REPORTING, "plain")
        await chat.post_file(Room.ADMIN, "rendered.md", b"# Report\n")

    asyncio.run(run())

    assert client.messages == [("admin-entity", "<b>hi</b>", "html"), ("reporting-entity", "plain", None)]
    assert client.files == [("admin-entity", "rendered.md", b"# Report\n")]


def test_chat_fetches_messages_back_as_room_events() -> None:
    client = DummyClient()
    chat = TelegramChat(client, {Room.REPORTING: "reporting-entity", Room.ADMIN: "admin-entity"})

    found = asyncio.run(chat.fetch_message(Room.REPORTING, "5"))
    gone = asyncio.run(chat.fetch_message(Room.REPORTING, "6"))
    invalid = asyncio.run(chat.fetch_message(Room.REPORTING, "p1"))

    assert (found.event_id, found.sender_id, found.text) == ("5", "7", "the build is green again")
    assert found.room_key == "chat_id:-100123"
    assert gone is None
    assert invalid is None
    assert client.requested == [("reporting-entity", 5), ("reporting-entity", 6)]

def test_local_process_pipes_stdin_and_reports_exit_code() -> None:
    process = LocalProcess(timeout=10)

    code, stdout, _ = asyncio.run(process.run_shell("cat", stdin=b"report body"))
    failed, _, stderr = asyncio.run(process.run_shell("echo broken >&2; exit 3"))

    assert (code, stdout) == (0, "report body")
    assert failed == 3
    assert stderr.strip() == "broken"


def test_build_client_requires_credentials(monkeypatch) -> None:
    monkeypatch.setattr(client, "load_dotenv", lambda: None)
    monkeypatch.delenv("API_ID", raising=False)
    monkeypatch.setenv("API_HASH", "hash")

    with pytest.raises(RuntimeError, match="API_ID or API_HASH"):
        client.build_client()

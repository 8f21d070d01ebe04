from __future__ import annotations

import asyncio
from datetime import datetime, timezone

from core import notices
from core.classifier import ReactionClassifier
from core.commands import CommandDispatcher
from core.models import RoomEvent, RoomEventKind
from core.normalizer import EventNormalizer
from core.persistence import PersistenceManager
from core.ports import Room
from core.processor import NewsProcessor
from core.registry import NewsRegistry
from core.render import RenderCoordinator

REPORTING = "chat_id:100"
ADMIN = "chat_id:200"


def _event(kind: RoomEventKind, event_id: str, sender_id: str = "alice", room_key: str = REPORTING, **fields):
    return RoomEvent(
        kind=kind,
        room_key=room_key,
        event_id=event_id,
        sender_id=sender_id,
        sender_name=sender_id.title(),
        timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
        **fields,
    )


def _message(event_id: str, text: str, **fields) -> RoomEvent:
    return _event(RoomEventKind.MESSAGE, event_id, text=text, permalink=f"https://t.me/c/100/{event_id}", **fields)


def _reaction(target_id: str, emoji: str, actor_id: str = "ed1", added: bool = True) -> RoomEvent:
    kind = RoomEventKind.REACTION_ADDED if added else RoomEventKind.REACTION_REMOVED
    return _event(kind, f"{target_id}:{actor_id}:{emoji}", sender_id=actor_id, target_id=target_id, reaction_key=emoji)


def _image(event_id: str, parent_id: str) -> RoomEvent:
    return _event(
        RoomEventKind.MESSAGE,
        event_id,
        reply_to_id=parent_id,
        media_url=f"https://t.me/c/100/{event_id}",
        media_mimetype="image/jpeg",
    )


class Harness:
    def __init__(self, config, chat, store, process, template) -> None:
        self.chat = chat
        self.store = store
        self.registry = NewsRegistry(config)
        self.persistence = PersistenceManager(store)
        dispatcher = CommandDispatcher(
            config=config,
            registry=self.registry,
            persistence=self.persistence,
            chat=chat,
            renderer=RenderCoordinator(config, template),
            process=process,
            version="1.2.3",
        )
        self.processor = NewsProcessor(
            config=config,
            normalizer=EventNormalizer(config),
            classifier=ReactionClassifier(config),
            registry=self.registry,
            persistence=self.persistence,
            dispatcher=dispatcher,
            chat=chat,
        )

    def feed(self, *room_events: RoomEvent) -> None:
        async def run() -> None:
            for room_event in room_events:
                await self.processor.handle(room_event)
            await self.persistence.flush()

        asyncio.run(run())


def _harness(config, chat, store, process, template) -> Harness:
    return Harness(config, chat, store, process, template)


def test_submission_is_stored_acknowledged_and_announced(config, chat, store, process, template) -> None:
    harness = _harness(config, chat, store, process, template)

    harness.feed(_message("m1", "TWIC: the build is broken again"))

    item = harness.registry.get("m1")
    assert item.message == "the build is broken again"
    assert item.reporter_display_name == "Alice"
    assert chat.in_room(Room.REPORTING) == ["Thanks Alice!"]
    assert chat.in_room(Room.ADMIN) == [notices.submitted(item)]
    assert [entry["id"] for entry in store.data["items"]] == ["m1"]


def test_short_submission_is_rejected(config, chat, store, process, template) -> None:
    harness = _harness(config, chat, store, process, template)

    harness.feed(_message("m1", "TWIC: tiny"))

    assert "m1" not in harness.registry
    (notice,) = chat.in_room(Room.REPORTING)
    assert "Your update is too short" in notice
    assert store.saves == []


def test_duplicate_submission_is_reported_once(config, chat, store, process, template) -> None:
    harness = _harness(config, chat, store, process, template)

    harness.feed(_message("m1", "TWIC: the build is broken again"), _message("m1", "TWIC: the build is broken again"))

    assert len(harness.registry) == 1
    assert chat.in_room(Room.ADMIN)[-1].startswith("⚠️ Cannot resubmit")


def test_editor_classification_is_announced_and_persisted(config, chat, store, process, template) -> None:
    harness = _harness(config, chat, store, process, template)

    harness.feed(
        _message("m1", "TWIC: the build is broken again"),
        _reaction("m1", "⭕"),
        _reaction("m1", "📱"),
        _reaction("m1", "🧱"),
    )

    item = harness.registry.get("m1")
    assert item.approved
    assert (item.section_key, item.project_key) == ("core", "gtk")
    assert any("to the “Circle Apps” section" in text for text in chat.in_room(Room.ADMIN))
    assert any("project description “GTK”" in text for text in chat.in_room(Room.ADMIN))
    assert store.data["items"][0]["project_key"] == "gtk"


def test_reaction_removal_restores_state(config, chat, store, process, template) -> None:
    harness = _harness(config, chat, store, process, template)
    harness.feed(_message("m1", "TWIC: the build is broken again"))
    before = harness.registry.get("m1")

    harness.feed(_reaction("m1", "📝"), _reaction("m1", "📝", added=False))

    assert harness.registry.get("m1") == before
    assert "removed their assign-section reaction" in chat.in_room(Room.ADMIN)[-1]


def test_non_editor_reaction_changes_nothing(config, chat, store, process, template) -> None:
    harness = _harness(config, chat, store, process, template)
    harness.feed(_message("m1", "TWIC: the build is broken again"))
    before = harness.registry.snapshot()
    posted = len(chat.texts)

    harness.feed(_reaction("m1", "⭕", actor_id="mallory"))

    assert harness.registry.snapshot() == before
    assert len(chat.texts) == posted


def test_media_attachment_in_either_order(config, chat, store, process, template) -> None:
    harness = _harness(config, chat, store, process, template)

    harness.feed(
        _message("m1", "TWIC: the build is broken again"),
        _image("p1", "m1"),
        _reaction("p1", "📷"),
        # Reaction arrives before the media message is seen.
        _reaction("p2", "📷"),
        _image("p2", "m1"),
    )

    images = harness.registry.get("m1").images
    assert [(media.event_id, media.url) for media in images] == [
        ("p1", "https://t.me/c/100/p1"),
        ("p2", "https://t.me/c/100/p2"),
    ]
    assert sum("Added media" in text for text in chat.in_room(Room.ADMIN)) == 2


def test_edit_of_classified_item_asks_for_review(config, chat, store, process, template) -> None:
    harness = _harness(config, chat, store, process, template)
    harness.feed(_message("m1", "TWIC: the build is broken again"), _reaction("m1", "🧩"))

    harness.feed(_event(RoomEventKind.EDIT, "m1", target_id="m1", text="TWIC: the build works again"))

    assert harness.registry.get("m1").message == "the build works again"
    assert "got edited" in chat.in_room(Room.ADMIN)[-1]


def test_deleted_submission_is_removed(config, chat, store, process, template) -> None:
    harness = _harness(config, chat, store, process, template)
    harness.feed(_message("m1", "TWIC: the build is broken again"))

    harness.feed(_event(RoomEventKind.DELETE, "m1", sender_id=""))

    assert "m1" not in harness.registry
    assert "got deleted" in chat.in_room(Room.ADMIN)[-1]
    assert store.data["items"] == []


def test_admin_commands_flow_through_the_processor(config, chat, store, process, template) -> None:
    harness = _harness(config, chat, store, process, template)
    harness.feed(_message("m1", "TWIC: the build is broken again"))

    harness.feed(_event(RoomEventKind.MESSAGE, "c1", sender_id="ed1", room_key=ADMIN, text="!status"))

    assert chat.in_room(Room.ADMIN)[-1].startswith("1 news entries in total")


def test_events_from_other_rooms_are_ignored(config, chat, store, process, template) -> None:
    harness = _harness(config, chat, store, process, template)

    harness.feed(_event(RoomEventKind.MESSAGE, "x1", room_key="chat_id:999", text="TWIC: the build is broken again"))

    assert len(harness.registry) == 0
    assert chat.texts == []


def test_media_emoji_on_plain_message_submits_it(config, chat, store, process, template) -> None:
    harness = _harness(config, chat, store, process, template)
    chat.messages["m5"] = _message("m5", "the build is green again")

    harness.feed(_reaction("m5", "📷", actor_id="ed1"))

    item = harness.registry.get("m5")
    assert item.message == "the build is green again"
    assert item.images == ()
    assert chat.fetched == [(Room.REPORTING, "m5")]
    # No acknowledgement for a message the reporter didn't address to the bot.
    assert chat.in_room(Room.REPORTING) == []
    assert chat.in_room(Room.ADMIN) == [notices.submitted(item)]
    assert "m5" not in harness.registry.snapshot().reactions


def test_reaction_submission_needs_editor_or_author(config, chat, store, process, template) -> None:
    harness = _harness(config, chat, store, process, template)
    chat.messages["m5"] = _message("m5", "the build is green again")

    harness.feed(_reaction("m5", "📷", actor_id="mallory"))
    assert "m5" not in harness.registry
    assert harness.registry.snapshot().reactions == {}

    harness.feed(_reaction("m5", "📷", actor_id="alice"))
    assert "m5" in harness.registry


def test_unrestricted_reaction_submission_accepts_anyone(config_factory, chat, store, process, template) -> None:
    config = config_factory(restrict_notice=False)
    harness = _harness(config, chat, store, process, template)
    chat.messages["m5"] = _message("m5", "the build is green again")

    harness.feed(_reaction("m5", "📷", actor_id="mallory"))

    assert "m5" in harness.registry


def test_reaction_on_known_news_does_not_fetch(config, chat, store, process, template) -> None:
    harness = _harness(config, chat, store, process, template)

    harness.feed(_message("m1", "TWIC: the build is broken again"), _reaction("m1", "📷"))

    assert chat.fetched == []
    assert len(harness.registry) == 1

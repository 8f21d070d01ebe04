"""Application entry point for the newsdesk bot."""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import html
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Any, Optional

from art import tprint
from dotenv import load_dotenv
from telethon import events
from telethon.tl import types

import settings
from adapters.jinja_renderer import JinjaTemplateRenderer
from adapters.json_store import JsonSnapshotStore
from adapters.process_control import LocalProcess
from adapters.room_keys import expand_room_key_variants, parse_chat_id, resolve_room_key
from adapters.telegram_chat import TelegramChat
from adapters.telegram_mapper import (
    ReactionTracker,
    build_deleted_events,
    build_message_event,
    deletion_fallback_room,
)
import get_session
from client import build_client
from core import notices
from core.classifier import ReactionClassifier
from core.commands import CommandDispatcher
from core.config import BotConfig, build_config, validate_config
from core.models import RegistrySnapshot
from core.normalizer import EventNormalizer
from core.persistence import PersistenceManager
from core.ports import Room
from core.processor import NewsProcessor
from core.registry import NewsRegistry
from core.render import RenderCoordinator

NAME = "NEWSDESK"
FONT = "tarty-1"

LOGGER = logging.getLogger(__name__)


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    """Mask secret values (tokens, hashes) in every formatted record."""

    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict) -> list[str]:
    redact_cfg = config.get("redact", {}) if config else {}
    if not redact_cfg.get("enabled", False):
        return []
    values = {os.getenv(name) for name in redact_cfg.get("patterns", ["API_HASH", "BOT_TOKEN", "2FA"])}
    # Longest first so a secret containing another one is masked whole.
    return sorted((value for value in values if value), key=len, reverse=True)


def _configure_logging() -> None:
    config = settings.LOGGING or {}
    if not config.get("enabled", True):
        return

    load_dotenv()
    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    formatter = _RedactingFormatter(_collect_redaction_values(config), fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/newsdesk.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        file_handler = RotatingFileHandler(
            path,
            maxBytes=int(file_cfg.get("max_bytes", 5 * 1024 * 1024)),
            backupCount=int(file_cfg.get("backup_count", 5)),
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)
    # Telethon logs every reconnect at INFO; keep our own records readable.
    logging.getLogger("telethon").setLevel(max(level, logging.WARNING))


def _load_snapshot(store: JsonSnapshotStore) -> Optional[RegistrySnapshot]:
    """Load the stored registry. A corrupted store aborts startup."""

    snapshot = PersistenceManager(store).load()
    if snapshot is None:
        LOGGER.info("No news store found at %s, starting with an empty registry", store.path)
    else:
        LOGGER.info("Restored %s news entries from %s", len(snapshot.items), store.path)
    return snapshot


def _entity_ref(room_key: str) -> Any:
    chat_id = parse_chat_id(room_key)
    return chat_id if chat_id is not None else room_key


async def _resolve_rooms(
    client, config: BotConfig
) -> tuple[dict[str, set[str]], dict[Room, Any], dict[Room, str]]:
    """Resolve configured rooms to entities, their chat_id key and every chat_id spelling."""

    room_keys: dict[str, set[str]] = {}
    entities: dict[Room, Any] = {}
    resolved_keys: dict[Room, str] = {}
    for room, configured in ((Room.REPORTING, config.reporting_room), (Room.ADMIN, config.admin_room)):
        if not configured:
            raise RuntimeError(f"{room.value}_room is required in the config file")
        entities[room] = await client.get_entity(_entity_ref(configured))
        resolved = await resolve_room_key(client, configured)
        resolved_keys[room] = resolved
        room_keys[room.value] = {configured, *expand_room_key_variants(resolved)}
        LOGGER.info("Resolved %s room %s to %s", room.value, configured, resolved)
    return room_keys, entities, resolved_keys


async def _announce_startup(chat: TelegramChat, report) -> None:
    await chat.post_text(Room.ADMIN, f"Started newsdesk version {html.escape(settings.VERSION)}!", html=True)
    if report.warnings:
        await chat.post_text(Room.ADMIN, notices.format_messages(True, report.warnings), html=True)
    if report.notes:
        await chat.post_text(Room.ADMIN, notices.format_messages(False, report.notes), html=True)


def _run() -> None:
    _print_banner()
    _configure_logging()

    LOGGER.info("Starting newsdesk %s", settings.VERSION)

    config = build_config(settings.CONFIG)
    report = validate_config(config)
    for warning in report.warnings:
        LOGGER.warning("Config: %s", warning)
    for note in report.notes:
        LOGGER.info("Config: %s", note)
    LOGGER.info("%s sections and %s projects are loaded", len(config.sections), len(config.projects))

    store = JsonSnapshotStore(settings.STORE_PATH)
    snapshot = _load_snapshot(store)

    client = build_client()
    client.loop.run_until_complete(client.connect())
    client.loop.run_until_complete(get_session.authorize(client))

    me = client.loop.run_until_complete(client.get_me())
    if not config.bot_user_id:
        config = dataclasses.replace(config, bot_user_id=str(me.id))
    LOGGER.info("Logged in as %s", me.id)

    room_keys, entities, resolved_keys = client.loop.run_until_complete(_resolve_rooms(client, config))
    chat = TelegramChat(client, entities)

    async def report_persistence_error(exc: Exception) -> None:
        await chat.post_text(Room.ADMIN, f"❌ Unable to save news entries: {html.escape(str(exc))}", html=True)

    registry = NewsRegistry(config)
    if snapshot is not None:
        registry.restore(snapshot)
    persistence = PersistenceManager(store, on_error=report_persistence_error)
    dispatcher = CommandDispatcher(
        config=config,
        registry=registry,
        persistence=persistence,
        chat=chat,
        renderer=RenderCoordinator(config, JinjaTemplateRenderer(settings.TEMPLATE_PATH)),
        process=LocalProcess(),
        version=settings.VERSION,
    )
    processor = NewsProcessor(
        config=config,
        normalizer=EventNormalizer(config, room_keys),
        classifier=ReactionClassifier(config),
        registry=registry,
        persistence=persistence,
        dispatcher=dispatcher,
        chat=chat,
    )
    # Reactions only classify messages of the reporting room.
    tracker = ReactionTracker(room_keys=room_keys[Room.REPORTING.value])
    deletion_room = deletion_fallback_room(resolved_keys[Room.REPORTING])

    # Handlers only translate Telethon objects; classification happens in the
    # core so it stays transport independent and testable.
    @client.on(events.NewMessage())
    async def on_message(event) -> None:
        try:
            await processor.handle(await build_message_event(event.message))
        except Exception:
            LOGGER.exception("Error while processing message")

    @client.on(events.MessageEdited())
    async def on_edit(event) -> None:
        try:
            await processor.handle(await build_message_event(event.message, edited=True))
        except Exception:
            LOGGER.exception("Error while processing edit")

    @client.on(events.MessageDeleted())
    async def on_delete(event) -> None:
        try:
            for room_event in build_deleted_events(event.deleted_ids, event.chat_id, deletion_room):
                await processor.handle(room_event)
        except Exception:
            LOGGER.exception("Error while processing deletion")

    @client.on(events.Raw(types=[types.UpdateBotMessageReaction, types.UpdateMessageReactions]))
    async def on_reaction(update) -> None:
        try:
            if isinstance(update, types.UpdateBotMessageReaction):
                room_events = tracker.from_bot_update(update)
            else:
                room_events = tracker.from_reactions_update(update)
            for room_event in room_events:
                await processor.handle(room_event)
        except Exception:
            LOGGER.exception("Error while processing reaction")

    client.start()
    client.loop.run_until_complete(_announce_startup(chat, report))
    LOGGER.info("Client connected. Listening for news submissions...")
    try:
        client.run_until_disconnected()
    finally:
        client.loop.run_until_complete(persistence.flush())


def _check_config() -> None:
    """Print config warnings and notes without connecting to Telegram."""

    config = build_config(settings.CONFIG)
    report = validate_config(config)
    print(f"Config: {settings.CONFIG_PATH}")
    print(f"{len(config.sections)} sections, {len(config.projects)} projects, {len(config.editors)} editors")
    for warning in report.warnings:
        print(f"WARNING: {warning}")
    for note in report.notes:
        print(f"NOTE: {note}")
    if not report.warnings and not report.notes:
        print("No issues found.")


def _login() -> None:
    _print_banner()
    asyncio.run(get_session.main())


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="newsdesk")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the bot")
    subparsers.add_parser("login", help="Create the Telegram session interactively")
    subparsers.add_parser("check-config", help="Validate the config file and print warnings")

    args = parser.parse_args(argv)
    if args.command == "login":
        _login()
        return
    if args.command == "check-config":
        _check_config()
        return
    _run()


if __name__ == "__main__":
    main()

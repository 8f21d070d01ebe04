"""Telegram client factory for newsdesk."""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv
from telethon import TelegramClient


def build_client() -> TelegramClient:
    """Create the bot's Telethon client from API_ID/API_HASH/SESSION_NAME.

    Updates are handled sequentially: reactions and deletions must reach the
    registry in the order Telegram sends them.
    """

    load_dotenv()

    api_id = os.getenv("API_ID")
    api_hash = os.getenv("API_HASH")
    if not api_id or not api_hash:
        raise RuntimeError("Missing API_ID or API_HASH in environment")

    session_name = os.getenv("SESSION_NAME", "newsdesk")
    logging.getLogger(__name__).info("Initializing Telegram client with session %s", session_name)
    return TelegramClient(session_name, int(api_id), api_hash, sequential_updates=True)

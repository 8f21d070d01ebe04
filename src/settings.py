"""Static configuration for newsdesk.

All user-editable settings (rooms, editors, sections, projects, reactions)
live in a single JSON file for quick edits without touching Python.
"""

import json
import os

from dotenv import load_dotenv

load_dotenv()

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

VERSION = "1.0.0"

# The config file can be moved out of the checkout (e.g. when
# update_config_command pulls it from another repository).
CONFIG_PATH = os.getenv("CONFIG_PATH") or os.path.join(PROJECT_ROOT, "config.json")


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _project_path(path: str) -> str:
    if os.path.isabs(path):
        return path
    return os.path.join(PROJECT_ROOT, path)


_CONFIG = _load_json_config()

# Expose the raw config; core.config.build_config turns it into BotConfig.
CONFIG = _CONFIG

# Where the news registry snapshot is stored.
STORE_PATH = _project_path(_CONFIG.get("store_path", "news_store.json"))

# Jinja2 template used by !render and !publish.
TEMPLATE_PATH = _project_path(_CONFIG.get("template_path", os.path.join("templates", "report.md.j2")))

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})

"""Admin command dispatcher (core domain).

Each admin room message is parsed on its own; there are no multi-turn
commands. The command names, argument shapes and response texts are what
operators script against, so keep them stable.
"""

from __future__ import annotations

import asyncio
import html
import json
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from core import notices
from core.actions import ActionKind
from core.config import BotConfig, config_to_dict
from core.events import AdminCommand
from core.models import RegistrySnapshot
from core.persistence import PersistenceManager
from core.ports import ChatPort, ProcessPort, Room
from core.registry import NewsRegistry
from core.render import RenderCoordinator, RenderError, RenderResult

LOGGER = logging.getLogger(__name__)

COMMAND_PREFIX = "!"

HELP_TEXT = "\n".join(
    [
        "Available commands:",
        "",
        "!about",
        "!clear",
        '!details "<term>"',
        "!help",
        "!list-config",
        "!list-projects",
        "!list-sections",
        "!publish",
        "!render",
        "!restart",
        '!say "<message>"',
        "!status",
        "!update-config",
    ]
)

_QUOTE_PAIRS = {'"': '"', "'": "'", "“": "”", "„": "“", "”": "”"}


class CommandUsageError(ValueError):
    """Raised for unknown commands and malformed arguments."""


@dataclass(frozen=True)
class ParsedCommand:
    name: str
    argument: str


def parse_command(raw: str) -> ParsedCommand:
    text = raw.strip()
    if not text.startswith(COMMAND_PREFIX) or len(text) == 1:
        raise CommandUsageError(notices.UNRECOGNIZED_COMMAND)
    parts = text[1:].split(maxsplit=1)
    name = parts[0].lower()
    argument = parts[1].strip() if len(parts) == 2 else ""
    return ParsedCommand(name=name, argument=argument)


def unquote_argument(argument: str, usage: str) -> str:
    """Return the (optionally quoted) argument, or raise a usage error."""

    value = argument.strip()
    if len(value) >= 2 and _QUOTE_PAIRS.get(value[0]) == value[-1]:
        value = value[1:-1].strip()
    if not value:
        raise CommandUsageError(f"❌ Missing argument. Usage: {usage}")
    return value


class CommandDispatcher:
    """Authorize, parse and execute admin room commands."""

    def __init__(
        self,
        config: BotConfig,
        registry: NewsRegistry,
        persistence: PersistenceManager,
        chat: ChatPort,
        renderer: RenderCoordinator,
        process: ProcessPort,
        version: str,
    ) -> None:
        self._config = config
        self._registry = registry
        self._persistence = persistence
        self._chat = chat
        self._renderer = renderer
        self._process = process
        self._version = version
        self._background: set[asyncio.Task] = set()
        self._handlers: dict[str, Callable[[ParsedCommand, AdminCommand], Awaitable[None]]] = {
            "about": self._about,
            "clear": self._clear,
            "details": self._details,
            "help": self._help,
            "list-config": self._list_config,
            "list-projects": self._list_projects,
            "list-sections": self._list_sections,
            "publish": self._publish,
            "render": self._render,
            "restart": self._restart,
            "say": self._say,
            "status": self._status,
            "update-config": self._update_config,
        }

    async def dispatch(self, command: AdminCommand) -> None:
        if not self._config.is_editor(command.actor_id):
            LOGGER.info("Rejected command from non-editor %s", command.actor_id)
            await self._notice(notices.PERMISSION_DENIED, html=False)
            return

        try:
            parsed = parse_command(command.raw)
            handler = self._handlers.get(parsed.name)
            if handler is None:
                raise CommandUsageError(notices.UNRECOGNIZED_COMMAND)
            LOGGER.info("Received command: %s (%s)", parsed.name, parsed.argument)
            await handler(parsed, command)
        except CommandUsageError as exc:
            await self._notice(str(exc), html=False)

    async def drain(self) -> None:
        """Wait for background renders/publishes to finish."""

        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def _notice(self, text: str, html: bool = True) -> None:
        await self._chat.post_text(Room.ADMIN, text, html=html)

    def _spawn(self, coro: Awaitable[None]) -> None:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _about(self, parsed: ParsedCommand, command: AdminCommand) -> None:
        await self._notice(f"You are running newsdesk version {html.escape(self._version)}")

    async def _help(self, parsed: ParsedCommand, command: AdminCommand) -> None:
        await self._notice(HELP_TEXT, html=False)

    async def _clear(self, parsed: ParsedCommand, command: AdminCommand) -> None:
        count = self._registry.clear()
        self._persistence.schedule(self._registry.snapshot())
        await self._notice(f"✅ Cleared {count} news entries!", html=False)

    async def _details(self, parsed: ParsedCommand, command: AdminCommand) -> None:
        term = unquote_argument(parsed.argument, '!details "<term>"')

        project = self._config.project(term)
        section = self._config.section(term)
        if project is None and section is None:
            # Fall back to emoji lookup; only assignment emoji name a section/project.
            action = self._config.action_for_emoji(term)
            if action is not None and action.kind is ActionKind.ASSIGN_PROJECT:
                project = self._config.project(action.key)
            elif action is not None and action.kind is ActionKind.ASSIGN_SECTION:
                section = self._config.section(action.key)

        if project is not None:
            await self._notice(notices.project_details(project))
        elif section is not None:
            await self._notice(notices.section_details(section, self._config))
        else:
            await self._notice(notices.not_found(term))

    async def _list_config(self, parsed: ParsedCommand, command: AdminCommand) -> None:
        dump = json.dumps(config_to_dict(self._config), indent=2, ensure_ascii=False)
        await self._notice(f"<pre><code>{html.escape(dump)}</code></pre>")

    async def _list_projects(self, parsed: ParsedCommand, command: AdminCommand) -> None:
        lines = [f"{p.emoji}: {p.title} - {p.description} ({p.website})" for p in self._config.projects]
        await self._notice(f"List of projects:\n<pre><code>{html.escape(chr(10).join(lines))}</code></pre>")

    async def _list_sections(self, parsed: ParsedCommand, command: AdminCommand) -> None:
        lines = [f"{s.emoji}: {s.title}" for s in self._config.sections]
        await self._notice(f"List of sections:\n<pre><code>{html.escape(chr(10).join(lines))}</code></pre>")

    async def _status(self, parsed: ParsedCommand, command: AdminCommand) -> None:
        await self._notice(notices.status(self._registry.items(), self._config))

    async def _say(self, parsed: ParsedCommand, command: AdminCommand) -> None:
        message = unquote_argument(parsed.argument, '!say "<message>"')
        await self._chat.post_text(Room.REPORTING, message, html=False)

    async def _render(self, parsed: ParsedCommand, command: AdminCommand) -> None:
        snapshot = self._registry.snapshot()
        editor = command.actor_name or command.actor_id
        self._spawn(self._render_and_post(snapshot, editor))

    async def _publish(self, parsed: ParsedCommand, command: AdminCommand) -> None:
        if not self._config.publish_command:
            await self._notice(
                notices.format_messages(True, ["No publish_command configured.", "Will not perform any action."])
            )
            return
        snapshot = self._registry.snapshot()
        editor = command.actor_name or command.actor_id
        self._spawn(self._publish_rendered(snapshot, editor))

    async def _restart(self, parsed: ParsedCommand, command: AdminCommand) -> None:
        await self._notice("Restarting newsdesk…", html=False)
        await self._persistence.flush()
        self._process.restart()

    async def _update_config(self, parsed: ParsedCommand, command: AdminCommand) -> None:
        if not self._config.update_config_command:
            await self._notice("❌ No update_config_command configured.", html=False)
            return

        await self._notice("Updating bot configuration…", html=False)
        try:
            code, stdout, stderr = await self._process.run_shell(self._config.update_config_command)
        except OSError as exc:
            LOGGER.exception("Unable to run update command")
            await self._notice(f"❌ Unable to run update command: {html.escape(str(exc))}")
            return

        output = html.escape((stdout + stderr).strip())
        if code != 0:
            await self._notice(f"❌ Update command failed (exit code {code}).\n<pre><code>{output}</code></pre>")
            return

        await self._notice(f"✅ Updated bot configuration!\n<pre><code>{output}</code></pre>")
        await self._restart(ParsedCommand("restart", ""), command)

    async def _render_snapshot(self, snapshot: RegistrySnapshot, editor: str) -> Optional[RenderResult]:
        try:
            return await self._renderer.render(snapshot, editor)
        except RenderError as exc:
            await self._notice(f"❌ Could not render template: <pre>{html.escape(str(exc))}</pre>")
            return None

    async def _post_render_report(self, result: RenderResult) -> None:
        if result.warnings:
            await self._notice(notices.format_messages(True, result.warnings))
        if result.notes:
            await self._notice(notices.format_messages(False, result.notes))
        if result.media:
            links = "\n".join(html.escape(url) for url in result.media)
            await self._notice(f"Attached media of this report:\n{links}")

    async def _render_and_post(self, snapshot: RegistrySnapshot, editor: str) -> None:
        result = await self._render_snapshot(snapshot, editor)
        if result is None:
            return
        try:
            await self._chat.post_file(Room.ADMIN, "rendered.md", result.document.encode("utf-8"))
        except Exception as exc:
            LOGGER.exception("Unable to upload rendered report")
            await self._notice(f"❌ Unable to upload rendered report: {html.escape(str(exc))}")
            return
        await self._post_render_report(result)

    async def _publish_rendered(self, snapshot: RegistrySnapshot, editor: str) -> None:
        result = await self._render_snapshot(snapshot, editor)
        if result is None:
            return
        try:
            code, stdout, stderr = await self._process.run_shell(
                self._config.publish_command or "",
                stdin=result.document.encode("utf-8"),
            )
        except OSError as exc:
            LOGGER.exception("Unable to run publish command")
            await self._notice(f"❌ Unable to run publish command: {html.escape(str(exc))}")
            return

        if code == 0:
            await self._notice("publish_command was successful", html=False)
            if stdout.strip():
                await self._notice(stdout, html=False)
        else:
            await self._notice(f"ErrorCode: {code}", html=False)
            if stderr.strip():
                await self._notice(stderr, html=False)
        await self._post_render_report(result)

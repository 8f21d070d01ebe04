"""Shared notice formatting helpers.

Keeping admin and reporting room texts here prevents drift between the
processor and the command dispatcher. Admin texts are HTML (the chat adapter
sends them with an HTML parse mode), so every user-provided value is escaped.
"""

from __future__ import annotations

import html
from typing import Iterable, Optional

from core.actions import Action, ActionKind
from core.config import BotConfig, Project, Section
from core.models import NewsItem

PERMISSION_DENIED = "You don’t have the permission to use commands."
UNRECOGNIZED_COMMAND = "Unrecognized command. Use !help to list available commands."


def message_link(item_id: str, link: Optional[str]) -> str:
    if not link:
        return f"message {html.escape(item_id)}"
    return f'<a href="{html.escape(link)}">open message</a>'


def item_link(item: NewsItem) -> str:
    return message_link(item.id, item.link)


def submitted(item: NewsItem) -> str:
    return f"✅ {html.escape(item.reporter_display_name)} submitted a news entry. [{item_link(item)}]"


def duplicate(item: NewsItem) -> str:
    return f"⚠️ Cannot resubmit a news item that has already been added. [{item_link(item)}]"


def too_short(display_name: str) -> str:
    return (
        f"❌ {display_name}: Your update is too short and was not stored. "
        "This limitation was set-up to limit spam."
    )


def acknowledgement(ack_text: str, display_name: str) -> str:
    return ack_text.replace("{{user}}", display_name)


def classified(actor_id: str, action: Action, item: NewsItem, config: BotConfig) -> Optional[str]:
    actor = html.escape(actor_id)
    reporter = html.escape(item.reporter_display_name)
    if action.kind is ActionKind.ASSIGN_SECTION:
        section = config.section(action.key)
        title = html.escape(section.title if section else str(action.key))
        return f"✅ {actor} added {reporter}’s news entry [{item_link(item)}] to the “{title}” section."
    if action.kind is ActionKind.ASSIGN_PROJECT:
        project = config.project(action.key)
        title = html.escape(project.title if project else str(action.key))
        return f"✅ {actor} added the project description “{title}” to {reporter}’s news entry [{item_link(item)}]."
    if action.kind is ActionKind.MARK_THIRD_PARTY:
        return f"✅ {actor} marked {reporter}’s news entry [{item_link(item)}] as third-party news."
    if action.kind is ActionKind.ATTACH_MEDIA:
        return f"✅ Added media to {reporter}’s news entry (“{html.escape(item.summary())}”) [{item_link(item)}]."
    return None


def unclassified(actor_id: str, action: Action, item: NewsItem) -> str:
    return (
        f"✅ {html.escape(actor_id)} removed their {html.escape(action.kind.value)} reaction "
        f"from {html.escape(item.reporter_display_name)}’s news entry. [{item_link(item)}]"
    )


def edited(item: NewsItem) -> str:
    return (
        f"✅ The news entry by {html.escape(item.reporter_display_name)} got edited. Check the new text, "
        f"and make sure you want to keep the assigned project/section. [{item_link(item)}]"
    )


def deleted(item: NewsItem, actor_id: str) -> str:
    by = f" by {html.escape(actor_id)}" if actor_id else ""
    return f"✅ {html.escape(item.reporter_display_name)}’s news entry got deleted{by}."


def media_deleted(item: NewsItem) -> str:
    return f"✅ An image/video of {html.escape(item.reporter_display_name)}’s news entry got deleted."


def format_messages(is_warning: bool, messages: Iterable[str]) -> str:
    emoji = "⚠️" if is_warning else "ℹ️"
    return "\n".join(f"- {emoji} {html.escape(message, quote=False)}" for message in messages)


def section_details(section: Section, config: BotConfig) -> str:
    titles = [project.title for project in config.projects if project.key in section.projects]
    return "\n".join(
        [
            "<b>Section Details</b>",
            f"<b>Emoji</b>: {html.escape(section.emoji)}",
            f"<b>Name</b>: {html.escape(section.title)} ({html.escape(section.key)})",
            f"<b>Projects</b>: {html.escape(', '.join(titles))}",
        ]
    )


def project_details(project: Project) -> str:
    return "\n".join(
        [
            "<b>Project Details</b>",
            f"<b>Emoji</b>: {html.escape(project.emoji)}",
            f"<b>Name</b>: {html.escape(project.title)} ({html.escape(project.key)})",
            f"<b>Description</b>: {html.escape(project.description)}",
            f"<b>Website</b>: {html.escape(project.website)}",
            f"<b>Section</b>: {html.escape(project.section)}",
        ]
    )


def not_found(term: str) -> str:
    return f"❌ Unable to find details for ”{html.escape(term)}”."


def classification_state(item: NewsItem, config: BotConfig) -> str:
    parts = ["approved" if item.approved else "not approved"]
    if item.section_key:
        section = config.section(item.section_key)
        parts.append(f"section: {section.title if section else item.section_key}")
    if item.project_key:
        project = config.project(item.project_key)
        parts.append(f"project: {project.title if project else item.project_key}")
    if item.third_party:
        parts.append("third-party")
    if item.images or item.videos:
        parts.append(f"media: {len(item.images) + len(item.videos)}")
    return ", ".join(parts)


def status(items: list[NewsItem], config: BotConfig) -> str:
    classified_lines: list[str] = []
    unclassified_lines: list[str] = []
    for item in items:
        line = (
            f"- [{item_link(item)}] {html.escape(item.reporter_display_name)}: "
            f"{html.escape(item.summary())} ({html.escape(classification_state(item, config))})"
        )
        if item.is_classified:
            classified_lines.append(line)
        else:
            unclassified_lines.append(line)

    return "\n".join(
        [
            f"{len(items)} news entries in total",
            "",
            f"✅ Assigned news entries ({len(classified_lines)}):",
            *classified_lines,
            "",
            f"❌ Unassigned / ignored news entries ({len(unclassified_lines)}):",
            *unclassified_lines,
        ]
    )

"""Render context assembly (core domain).

Builds a plain-data context from a registry snapshot and the configuration,
then hands it to the external templating collaborator. Building the context
is pure: the same snapshot, config, editor and clock give identical data.
"""

from __future__ import annotations

import asyncio
import logging
import zlib
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional

from core.config import BotConfig, Project, Section
from core.models import NewsItem, RegistrySnapshot
from core.ports import TemplatePort

LOGGER = logging.getLogger(__name__)


class RenderError(RuntimeError):
    """Raised when the templating collaborator fails."""


@dataclass(frozen=True)
class RenderContext:
    context: dict
    warnings: list[str] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)
    media: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class RenderResult:
    document: str
    warnings: list[str]
    notes: list[str]
    media: list[str]


def pick_verb(item_id: str, verbs: tuple[str, ...]) -> str:
    """Pick a verb deterministically so re-renders stay identical."""

    if not verbs:
        return "reports"
    return verbs[zlib.crc32(item_id.encode("utf-8")) % len(verbs)]


def _item_context(item: NewsItem, verbs: tuple[str, ...]) -> dict:
    return {
        "id": item.id,
        "reporter_id": item.reporter_id,
        "reporter_display_name": item.reporter_display_name,
        "message": item.message,
        "timestamp": item.timestamp.isoformat(),
        "link": item.link,
        "verb": pick_verb(item.id, verbs),
        "third_party": item.third_party,
        "images": [{"id": m.event_id, "url": m.url} for m in item.images],
        "videos": [{"id": m.event_id, "url": m.url} for m in item.videos],
    }


def _section_context(section: Section) -> dict:
    return {"key": section.key, "emoji": section.emoji, "title": section.title, "news": [], "projects": []}


def _project_context(project: Project) -> dict:
    return {
        "key": project.key,
        "emoji": project.emoji,
        "title": project.title,
        "website": project.website,
        "description": project.description,
        "news": [],
    }


def _label(item: NewsItem) -> str:
    return f"[{item.link or item.id}] News entry by {item.reporter_display_name}"


def build_render_context(
    snapshot: RegistrySnapshot,
    config: BotConfig,
    editor: str,
    now: Optional[datetime] = None,
) -> RenderContext:
    """Group approved items into sections and projects.

    Sections and projects are ordered by key; items keep submission order.
    """

    now = now or datetime.now(timezone.utc)
    warnings: list[str] = []
    notes: list[str] = []
    media: list[str] = []

    sections: dict[str, dict] = {}
    projects: dict[tuple[str, str], dict] = {}
    third_party: list[dict] = []

    def section_bucket(key: str) -> Optional[dict]:
        if key not in sections:
            section = config.section(key)
            if section is None:
                return None
            sections[key] = _section_context(section)
        return sections[key]

    for item in snapshot.items:
        if not item.approved:
            continue

        entry = _item_context(item, config.verbs)

        if item.project_key:
            project = config.project(item.project_key)
            section_key = item.section_key or (project.section if project else None)
            bucket = section_bucket(section_key) if section_key else None
            if project is None or bucket is None:
                warnings.append(f"{_label(item)} has an unknown project or section, it'll not appear in the report!")
                continue
            group_key = (bucket["key"], project.key)
            if group_key not in projects:
                projects[group_key] = _project_context(project)
            projects[group_key]["news"].append(entry)

        elif item.section_key:
            bucket = section_bucket(item.section_key)
            if bucket is None:
                warnings.append(f"{_label(item)} has an unknown section, it'll not appear in the report!")
                continue
            notes.append(
                f"{_label(item)} doesn't have project information, "
                "it'll appear directly in the section without any project description."
            )
            bucket["news"].append(entry)

        elif item.third_party:
            third_party.append(entry)

        elif config.uncategorized_section and section_bucket(config.uncategorized_section) is not None:
            notes.append(f"{_label(item)} isn't classified, it'll appear in the uncategorized section.")
            sections[config.uncategorized_section]["news"].append(entry)

        else:
            warnings.append(
                f"{_label(item)} doesn't have project/section information, it'll not appear in the report!"
            )
            continue

        media.extend(m.url for m in (*item.images, *item.videos))

    for (section_key, _), project_entry in sorted(projects.items()):
        sections[section_key]["projects"].append(project_entry)

    week_earlier = now - timedelta(days=7)
    context = {
        "editor": editor,
        "today": now.strftime("%Y-%m-%d"),
        "weeknumber": now.isocalendar()[1],
        "timespan": f"{week_earlier.strftime('%B %d')} to {now.strftime('%B %d')}",
        "verbs": list(config.verbs),
        "projects": sorted({project_key for _, project_key in projects}),
        "sections": [sections[key] for key in sorted(sections)],
        "third_party": third_party,
    }
    return RenderContext(context=context, warnings=warnings, notes=notes, media=media)


class RenderCoordinator:
    """Render a point-in-time snapshot through the templating collaborator.

    The template call runs in a worker thread on an already copied snapshot,
    so chat events keep mutating the live registry during a slow render.
    """

    def __init__(self, config: BotConfig, template: TemplatePort) -> None:
        self._config = config
        self._template = template

    async def render(
        self,
        snapshot: RegistrySnapshot,
        editor: str,
        now: Optional[datetime] = None,
    ) -> RenderResult:
        prepared = build_render_context(snapshot, self._config, editor, now)
        try:
            document = await asyncio.to_thread(self._template.render, prepared.context)
        except Exception as exc:
            LOGGER.exception("Template rendering failed")
            raise RenderError(str(exc)) from exc

        return RenderResult(
            document=document,
            warnings=prepared.warnings,
            notes=prepared.notes,
            media=prepared.media,
        )

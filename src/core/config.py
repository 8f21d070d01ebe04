"""Core configuration dataclasses.

We keep config loading outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

from core.actions import Action, ActionKind
from core.emoji import normalize_emoji


@dataclass(frozen=True)
class Section:
    """Top-level grouping of the rendered report."""

    key: str
    emoji: str
    title: str
    projects: tuple[str, ...] = ()


@dataclass(frozen=True)
class Project:
    """A named entity nested under its owning section."""

    key: str
    emoji: str
    title: str
    website: str
    description: str
    section: str


@dataclass(frozen=True)
class BotConfig:
    """Already-parsed configuration consumed by every core component."""

    bot_user_id: str
    reporting_room: str
    admin_room: str
    editors: frozenset[str]
    address_tokens: tuple[str, ...]
    sections: tuple[Section, ...]
    projects: tuple[Project, ...]
    reactions: dict[str, Action] = field(default_factory=dict)
    verbs: tuple[str, ...] = ("reports", "says", "announces")
    min_length: int = 0
    ack_text: str = ""
    restrict_media: bool = True
    restrict_notice: bool = True
    max_pending_references: int = 1000
    update_config_command: str = ""
    publish_command: Optional[str] = None
    uncategorized_section: Optional[str] = None

    def is_editor(self, actor_id: str) -> bool:
        return actor_id in self.editors

    def section(self, key: Optional[str]) -> Optional[Section]:
        for section in self.sections:
            if section.key == key:
                return section
        return None

    def project(self, key: Optional[str]) -> Optional[Project]:
        for project in self.projects:
            if project.key == key:
                return project
        return None

    def project_in_section(self, project_key: str, section_key: str) -> bool:
        section = self.section(section_key)
        return section is not None and project_key in section.projects

    def action_for_emoji(self, emoji: str) -> Optional[Action]:
        return self.reactions.get(normalize_emoji(emoji))


@dataclass(frozen=True)
class ConfigReport:
    """Problems found while validating a configuration."""

    warnings: list[str]
    notes: list[str]


def _as_list(value) -> list:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _build_sections(raw_sections: Iterable[dict], projects: list[Project]) -> tuple[Section, ...]:
    sections: list[Section] = []
    for entry in raw_sections:
        key = entry.get("key") or entry.get("name") or ""
        members = tuple(project.key for project in projects if project.section == key)
        sections.append(
            Section(
                key=key,
                emoji=entry.get("emoji", ""),
                title=entry.get("title", key),
                projects=members,
            )
        )
    return tuple(sections)


def _build_projects(raw_projects: Iterable[dict]) -> list[Project]:
    projects: list[Project] = []
    for entry in raw_projects:
        key = entry.get("key") or entry.get("name") or ""
        projects.append(
            Project(
                key=key,
                emoji=entry.get("emoji", ""),
                title=entry.get("title", key),
                website=entry.get("website", ""),
                description=entry.get("description", ""),
                section=entry.get("section") or entry.get("default_section") or "",
            )
        )
    return projects


def _build_reaction_table(
    raw_reactions: dict,
    sections: Iterable[Section],
    projects: Iterable[Project],
) -> dict[str, Action]:
    """Build the emoji lookup table.

    Several emoji may map to the same action. Explicit reaction entries win
    over section/project emoji when both claim the same key.
    """

    table: dict[str, Action] = {}
    for section in sections:
        if section.emoji:
            table[normalize_emoji(section.emoji)] = Action.assign_section(section.key)
    for project in projects:
        if project.emoji:
            table[normalize_emoji(project.emoji)] = Action.assign_project(project.key)

    builders = {
        "approve": Action.approve,
        "third_party": Action.mark_third_party,
        "media": Action.attach_media,
    }
    for name, builder in builders.items():
        for emoji in _as_list(raw_reactions.get(name)):
            table[normalize_emoji(emoji)] = builder()
    return table


def build_config(raw: dict) -> BotConfig:
    """Normalize the raw JSON config into the frozen BotConfig."""

    projects = _build_projects(raw.get("projects", []) or [])
    sections = _build_sections(raw.get("sections", []) or [], projects)
    reactions = _build_reaction_table(raw.get("reactions", {}) or {}, sections, projects)
    verbs = tuple(_as_list(raw.get("verbs"))) or ("reports", "says", "announces")

    return BotConfig(
        bot_user_id=str(raw.get("bot_user_id", "")),
        reporting_room=raw.get("reporting_room", ""),
        admin_room=raw.get("admin_room", ""),
        editors=frozenset(str(editor) for editor in _as_list(raw.get("editors"))),
        address_tokens=tuple(_as_list(raw.get("address_tokens"))),
        sections=sections,
        projects=tuple(projects),
        reactions=reactions,
        verbs=verbs,
        min_length=int(raw.get("min_length", 0)),
        ack_text=raw.get("ack_text", "") or "",
        restrict_media=bool(raw.get("restrict_media", True)),
        restrict_notice=bool(raw.get("restrict_notice", True)),
        max_pending_references=int(raw.get("max_pending_references", 1000)),
        update_config_command=raw.get("update_config_command", "") or "",
        publish_command=raw.get("publish_command") or None,
        uncategorized_section=raw.get("uncategorized_section") or None,
    )


def validate_config(config: BotConfig) -> ConfigReport:
    """Collect warnings and notes about a configuration."""

    warnings: list[str] = []
    notes: list[str] = []

    if not config.editors:
        warnings.append("No editor is specified, the bot cannot be used without an editor.")
    if not config.address_tokens:
        warnings.append("No address token is configured, no message will be recognized as a submission.")
    if not any(action.kind is ActionKind.APPROVE for action in config.reactions.values()):
        warnings.append("No approval emoji is configured, nothing will appear in the rendered report.")
    if not config.sections:
        notes.append("No sections are configured in the configuration file.")
    if not config.projects:
        warnings.append("No projects are configured in the configuration file.")

    section_keys = {section.key for section in config.sections}
    for section in config.sections:
        if not section.key:
            warnings.append("Section without key found, this can lead to undefined behavior.")
            continue
        if not section.emoji:
            warnings.append(f"Section “{section.key}” doesn’t have an emoji, it can’t be assigned by reaction.")

    for project in config.projects:
        if not project.key:
            warnings.append("Project without key found, this can lead to undefined behavior.")
            continue
        if not project.emoji:
            warnings.append(f"Project “{project.key}” doesn’t have an emoji, it can’t be assigned by reaction.")
        if not project.section:
            warnings.append(f"Project “{project.key}” doesn’t have a section, it will never be rendered.")
        elif project.section not in section_keys:
            warnings.append(f"Project “{project.key}” has an unknown section “{project.section}”.")

    if config.uncategorized_section and config.uncategorized_section not in section_keys:
        warnings.append(f"Unknown uncategorized section “{config.uncategorized_section}”.")

    emojis: set[str] = set()
    keys: set[str] = set()
    emoji_duplicates: set[str] = set()
    key_duplicates: set[str] = set()
    for entry in [*config.projects, *config.sections]:
        if entry.emoji:
            emoji = normalize_emoji(entry.emoji)
            if emoji in emojis:
                emoji_duplicates.add(entry.emoji)
            emojis.add(emoji)
        if entry.key in keys:
            key_duplicates.add(entry.key)
        keys.add(entry.key)

    if emoji_duplicates:
        warnings.append(f"At least one emoji is duplicated: {', '.join(sorted(emoji_duplicates))}")
    if key_duplicates:
        warnings.append(f"At least one key is duplicated: {', '.join(sorted(key_duplicates))}")

    return ConfigReport(warnings=warnings, notes=notes)


def config_to_dict(config: BotConfig) -> dict:
    """Return a JSON-friendly dump of the active configuration."""

    reactions: dict[str, list[str]] = {}
    for emoji, action in config.reactions.items():
        reactions.setdefault(action.label(), []).append(emoji)

    return {
        "bot_user_id": config.bot_user_id,
        "reporting_room": config.reporting_room,
        "admin_room": config.admin_room,
        "editors": sorted(config.editors),
        "address_tokens": list(config.address_tokens),
        "min_length": config.min_length,
        "ack_text": config.ack_text,
        "restrict_media": config.restrict_media,
        "restrict_notice": config.restrict_notice,
        "max_pending_references": config.max_pending_references,
        "update_config_command": config.update_config_command,
        "publish_command": config.publish_command,
        "uncategorized_section": config.uncategorized_section,
        "verbs": list(config.verbs),
        "reactions": reactions,
        "sections": [
            {"key": s.key, "emoji": s.emoji, "title": s.title, "projects": list(s.projects)}
            for s in config.sections
        ],
        "projects": [
            {
                "key": p.key,
                "emoji": p.emoji,
                "title": p.title,
                "website": p.website,
                "description": p.description,
                "section": p.section,
            }
            for p in config.projects
        ],
    }

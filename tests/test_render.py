from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from pathlib import Path

import pytest

from adapters.jinja_renderer import JinjaTemplateRenderer, quote_message
from core.actions import Action
from core.events import MediaPosted, Submission
from core.models import MediaKind
from core.registry import NewsRegistry
from core.render import RenderCoordinator, RenderError, build_render_context, pick_verb

NOW = datetime(2024, 3, 15, 9, 0, tzinfo=timezone.utc)
TEMPLATE = Path(__file__).resolve().parents[1] / "templates" / "report.md.j2"


def _submit(registry: NewsRegistry, item_id: str, reporter: str = "Alice") -> None:
    registry.submit(
        Submission(
            id=item_id,
            reporter_id=reporter.lower(),
            reporter_display_name=reporter,
            text=f"news from {item_id}\n- first point",
            timestamp=NOW,
            link=f"https://t.me/c/100/{item_id}",
        )
    )


def _classified_registry(config) -> NewsRegistry:
    registry = NewsRegistry(config)
    for item_id in ["m1", "m2", "m3", "m4", "m5", "m6"]:
        _submit(registry, item_id)
        registry.apply(Action.approve(), item_id, "ed1", "⭕")

    registry.apply(Action.assign_project("gtk"), "m1", "ed1", "🧱")
    registry.apply(Action.assign_project("fractal"), "m2", "ed1", "🧩")
    registry.apply(Action.assign_section("misc"), "m3", "ed1", "📝")
    registry.apply(Action.assign_project("gtk"), "m4", "ed1", "🧱")
    registry.apply(Action.mark_third_party(), "m5", "ed1", "🎉")
    # m6 stays unclassified.

    registry.record_media(
        MediaPosted(id="p1", parent_id="m2", url="https://t.me/c/100/p1", kind=MediaKind.IMAGE, sender_id="alice")
    )
    registry.apply(Action.attach_media(), "p1", "ed1", "📷")

    _submit(registry, "m7")  # never approved
    return registry


def test_context_groups_sections_and_projects_by_key(config) -> None:
    prepared = build_render_context(_classified_registry(config).snapshot(), config, "Ed", NOW)
    context = prepared.context

    assert [section["key"] for section in context["sections"]] == ["apps", "core", "misc"]
    core = context["sections"][1]
    assert [project["key"] for project in core["projects"]] == ["gtk"]
    assert [news["id"] for news in core["projects"][0]["news"]] == ["m1", "m4"]
    assert [news["id"] for news in context["sections"][2]["news"]] == ["m3"]
    assert [news["id"] for news in context["third_party"]] == ["m5"]
    assert context["projects"] == ["fractal", "gtk"]
    assert context["editor"] == "Ed"
    assert context["today"] == "2024-03-15"
    assert context["weeknumber"] == 11
    assert context["timespan"] == "March 08 to March 15"


def test_context_reports_warnings_notes_and_media(config) -> None:
    prepared = build_render_context(_classified_registry(config).snapshot(), config, "Ed", NOW)

    assert len(prepared.warnings) == 1
    assert "m6" in prepared.warnings[0]
    assert len(prepared.notes) == 1
    assert "m3" in prepared.notes[0]
    assert prepared.media == ["https://t.me/c/100/p1"]


def test_unclassified_items_go_to_uncategorized_section(config_factory) -> None:
    config = config_factory(uncategorized_section="misc")
    registry = NewsRegistry(config)
    _submit(registry, "m1")
    registry.apply(Action.approve(), "m1", "ed1", "⭕")

    prepared = build_render_context(registry.snapshot(), config, "Ed", NOW)

    assert prepared.warnings == []
    assert [news["id"] for news in prepared.context["sections"][0]["news"]] == ["m1"]


def test_unapproved_items_never_render(config) -> None:
    registry = NewsRegistry(config)
    _submit(registry, "m1")
    registry.apply(Action.assign_project("gtk"), "m1", "ed1", "🧱")

    prepared = build_render_context(registry.snapshot(), config, "Ed", NOW)

    assert prepared.context["sections"] == []
    assert prepared.warnings == []


def test_rendering_same_state_twice_is_identical(config) -> None:
    snapshot = _classified_registry(config).snapshot()

    first = build_render_context(snapshot, config, "Ed", NOW)
    second = build_render_context(snapshot, config, "Ed", NOW)

    assert first == second


def test_pick_verb_is_deterministic() -> None:
    verbs = ("reports", "says", "announces")
    assert pick_verb("m1", verbs) == pick_verb("m1", verbs)
    assert pick_verb("m1", verbs) in verbs
    assert pick_verb("m1", ()) == "reports"


def test_coordinator_wraps_template_failures(config, template) -> None:
    template.fail = True
    coordinator = RenderCoordinator(config, template)

    with pytest.raises(RenderError, match="unexpected end of template"):
        asyncio.run(coordinator.render(_classified_registry(config).snapshot(), "Ed", NOW))


def test_quote_filter_turns_bullets_into_stars() -> None:
    assert quote_message("first line\n- point\n") == "> first line\n> * point"


def test_bundled_template_renders_report(config) -> None:
    coordinator = RenderCoordinator(config, JinjaTemplateRenderer(str(TEMPLATE)))

    result = asyncio.run(coordinator.render(_classified_registry(config).snapshot(), "Ed", NOW))

    assert "## Core" in result.document
    assert "### [GTK](https://gtk.org)" in result.document
    assert "> news from m1" in result.document
    assert "> * first point" in result.document
    assert "![](https://t.me/c/100/p1)" in result.document
    assert "## Third Party Projects" in result.document
    assert "news from m6" not in result.document
    assert "news from m7" not in result.document

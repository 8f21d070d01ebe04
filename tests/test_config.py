from __future__ import annotations

from core.actions import Action
from core.config import build_config, config_to_dict, validate_config
from core.emoji import normalize_emoji


def test_normalize_emoji_strips_variation_selector_and_suggestion_marker() -> None:
    assert normalize_emoji("⚙️") == "⚙"
    assert normalize_emoji(" ⭕ ?") == "⭕"
    assert normalize_emoji("⭕") == "⭕"


def test_reaction_table_maps_sections_projects_and_explicit_reactions(config) -> None:
    assert config.action_for_emoji("⭕") == Action.approve()
    assert config.action_for_emoji("🎉") == Action.mark_third_party()
    assert config.action_for_emoji("📷") == Action.attach_media()
    assert config.action_for_emoji("📱") == Action.assign_section("apps")
    assert config.action_for_emoji("🧱") == Action.assign_project("gtk")
    # Lookup goes through the same normalization as the table keys.
    assert config.action_for_emoji("⚙") == Action.assign_section("core")
    assert config.action_for_emoji("⚙️") == Action.assign_section("core")
    assert config.action_for_emoji("🚀") is None


def test_section_projects_follow_project_config_order(config) -> None:
    assert config.section("apps").projects == ("fractal",)
    assert config.section("core").projects == ("gtk",)
    assert config.section("misc").projects == ()
    assert config.project_in_section("gtk", "core")
    assert not config.project_in_section("gtk", "apps")


def test_explicit_reaction_overrides_section_emoji(config_factory) -> None:
    config = config_factory(reactions={"approve": ["📱"]})
    assert config.action_for_emoji("📱") == Action.approve()


def test_validate_config_reports_problems() -> None:
    config = build_config(
        {
            "sections": [{"key": "apps", "emoji": "📱", "title": "Apps"}],
            "projects": [
                {"key": "a", "emoji": "📱", "title": "A", "section": "apps"},
                {"key": "b", "emoji": "", "title": "B", "section": "nope"},
            ],
        }
    )
    report = validate_config(config)
    joined = "\n".join(report.warnings)

    assert "No editor is specified" in joined
    assert "No approval emoji" in joined
    assert "Project “b” doesn’t have an emoji" in joined
    assert "Project “b” has an unknown section “nope”" in joined
    assert "At least one emoji is duplicated: 📱" in joined


def test_validate_config_is_quiet_for_a_complete_config(config) -> None:
    report = validate_config(config)
    assert report.warnings == []


def test_config_dump_groups_emoji_by_action(config) -> None:
    dump = config_to_dict(config)
    assert dump["reactions"]["approve"] == ["⭕"]
    assert dump["editors"] == ["ed1", "ed2"]

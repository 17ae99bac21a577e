from __future__ import annotations

from adapters.rule_formatting import (
    DEFAULT_RULE_LABEL,
    FIELD_VALUE_LIMIT,
    format_rule_line,
    format_rules_summary,
    rule_field,
)
from core.models import Rule, RuleKind


def _named(role_id: int = 10, activities=("Roblox", "minecraft"), comment: str = "", guild_id: int = 1) -> Rule:
    return Rule(guild_id, f"Guild {guild_id}", role_id, "players", RuleKind.NAMED_ACTIVITY, frozenset(activities), comment)


def test_rule_field_lists_activities_sorted() -> None:
    assert rule_field(_named()) == ("players", "minecraft, Roblox")


def test_rule_field_appends_comment() -> None:
    name, value = rule_field(_named(comment="block games"))

    assert value.endswith("*block games*")


def test_default_rule_uses_label() -> None:
    rule = Rule(1, "Guild", 20, "gamer", RuleKind.DEFAULT)

    assert rule_field(rule) == ("gamer", DEFAULT_RULE_LABEL)
    assert format_rule_line(rule) == f"gamer (20) [else]: {DEFAULT_RULE_LABEL}"


def test_long_values_are_truncated() -> None:
    activities = [f"game-{index:04d}" for index in range(200)]

    _, value = rule_field(_named(activities=activities))

    assert len(value) == FIELD_VALUE_LIMIT
    assert value.endswith("…")


def test_summary_groups_by_guild() -> None:
    summary = format_rules_summary([_named(10), _named(11), _named(12, guild_id=2)])

    assert summary.splitlines()[0] == "Guild 1 (1)"
    assert "" in summary.splitlines()
    assert "Guild 2 (2)" in summary

from __future__ import annotations

from core.models import RuleKind
from frontend.validators import parse_activity_lines, parse_rule_form, parse_snowflake


def test_parse_snowflake_accepts_mentions() -> None:
    assert parse_snowflake("<@&123>", "role_id").value == 123
    assert parse_snowflake(" 456 ", "role_id").value == 456


def test_parse_snowflake_errors() -> None:
    assert parse_snowflake("", "role_id").error == "role_id is required"
    assert parse_snowflake("abc", "role_id").error == "role_id must be numeric"
    assert parse_snowflake("0", "role_id").error == "role_id must be positive"


def test_parse_activity_lines_splits_lines_and_semicolons() -> None:
    assert parse_activity_lines("Minecraft\n Chess; Go \n\n") == {"Minecraft", "Chess", "Go"}


def test_parse_rule_form_builds_rule() -> None:
    result = parse_rule_form("1", "Guild", "10", "", "named-activity", "Minecraft", " note ")

    assert result.error is None
    assert result.rule.kind is RuleKind.NAMED_ACTIVITY
    assert result.rule.role_name == "10"
    assert result.rule.comment == "note"


def test_parse_rule_form_rejects_default_with_activities() -> None:
    result = parse_rule_form("1", "Guild", "10", "gamer", "else", "Minecraft")

    assert result.rule is None
    assert result.error == "default rules cannot have activities"


def test_parse_rule_form_requires_activity_for_named_rule() -> None:
    result = parse_rule_form("1", "Guild", "10", "gamer", "named-activity", "")

    assert result.error == "at least one activity is required"

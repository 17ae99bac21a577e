from __future__ import annotations

import pytest

from core.errors import RulesFormatError
from core.models import RuleKind
from core.rules_codec import (
    FIELDNAMES,
    dump_rules_csv,
    load_rules_csv,
    parse_activity_names,
    sorted_rules,
)

HEADER = ",".join(FIELDNAMES)

SAMPLE = "\n".join(
    [
        HEADER,
        "200,Second,30,gamer,else,,catch-all",
        "100,First,12,chess,named-activity,Chess;  chess.com ;,",
        "100,First,9,minecraft,named-activity,Minecraft,block game",
        "",
    ]
)


def test_parse_activity_names_trims_and_drops_blanks() -> None:
    assert parse_activity_names(" Minecraft ;; Roblox ;") == {"Minecraft", "Roblox"}
    assert parse_activity_names("") == frozenset()
    assert parse_activity_names(None) == frozenset()


def test_load_groups_rules_by_guild() -> None:
    rules = load_rules_csv(SAMPLE)

    assert set(rules) == {100, 200}
    chess = rules[100].get_rule(12)
    assert chess.kind is RuleKind.NAMED_ACTIVITY
    assert chess.activities == {"Chess", "chess.com"}
    assert rules[200].default_rule.role_name == "gamer"
    assert rules[200].default_rule.comment == "catch-all"


def test_dump_sorts_by_numeric_ids() -> None:
    text = dump_rules_csv(load_rules_csv(SAMPLE))
    lines = text.splitlines()

    assert lines[0] == HEADER
    assert [line.split(",")[:3] for line in lines[1:]] == [
        ["100", "First", "9"],
        ["100", "First", "12"],
        ["200", "Second", "30"],
    ]


def test_dump_then_load_keeps_rules() -> None:
    rules = load_rules_csv(SAMPLE)

    assert sorted_rules(load_rules_csv(dump_rules_csv(rules))) == sorted_rules(rules)


def test_empty_text_loads_no_rules() -> None:
    assert load_rules_csv("") == {}
    assert load_rules_csv(HEADER + "\n") == {}


def test_unknown_type_reports_line() -> None:
    text = HEADER + "\n100,First,9,minecraft,playing,Minecraft,\n"

    with pytest.raises(RulesFormatError, match="line 2"):
        load_rules_csv(text)


def test_non_numeric_id_is_rejected() -> None:
    text = HEADER + "\nabc,First,9,minecraft,named-activity,Minecraft,\n"

    with pytest.raises(RulesFormatError):
        load_rules_csv(text)


def test_duplicate_role_is_rejected() -> None:
    text = "\n".join(
        [
            HEADER,
            "100,First,9,minecraft,named-activity,Minecraft,",
            "100,First,9,minecraft,named-activity,Roblox,",
        ]
    )

    with pytest.raises(RulesFormatError, match="line 3"):
        load_rules_csv(text)


def test_second_default_rule_is_rejected() -> None:
    text = "\n".join(
        [
            HEADER,
            "100,First,1,gamer,else,,",
            "100,First,2,player,else,,",
        ]
    )

    with pytest.raises(RulesFormatError):
        load_rules_csv(text)


def test_missing_column_is_rejected() -> None:
    with pytest.raises(RulesFormatError, match="comments"):
        load_rules_csv("guild_id,guild_name,role_id,role_name,type,activity_names\n")


def test_activities_on_default_row_are_dropped() -> None:
    rules = load_rules_csv(HEADER + "\n100,First,1,gamer,else,Minecraft,\n")

    assert rules[100].default_rule.activities == frozenset()


def test_names_with_commas_are_quoted() -> None:
    text = HEADER + '\n100,"Guild, The",9,minecraft,named-activity,Minecraft,"fun, blocks"\n'

    rules = load_rules_csv(text)
    dumped = dump_rules_csv(rules)

    assert '"Guild, The"' in dumped
    assert load_rules_csv(dumped)[100].get_rule(9).comment == "fun, blocks"

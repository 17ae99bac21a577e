"""CSV encoding of the rule set (core domain).

One row per rule:
guild_id, guild_name, role_id, role_name, type, activity_names, comments

``activity_names`` is ``;``-separated. Rows are written sorted by numeric
(guild_id, role_id) so saved files diff cleanly.
"""

from __future__ import annotations

import csv
import io
import logging
from typing import Dict, Iterable, List, Mapping, Optional

from core.errors import RuleError, RulesFormatError
from core.models import Rule, RuleKind
from core.rules_engine import GuildRules

LOGGER = logging.getLogger(__name__)

FIELDNAMES = [
    "guild_id",
    "guild_name",
    "role_id",
    "role_name",
    "type",
    "activity_names",
    "comments",
]


def parse_activity_names(raw: Optional[str]) -> frozenset[str]:
    """Split a ``;``-separated activity list, dropping blanks."""

    if not raw:
        return frozenset()
    return frozenset(part.strip() for part in raw.split(";") if part.strip())


def format_activity_names(activities: Iterable[str]) -> str:
    return ";".join(sorted(activities))


def rule_from_row(row: Mapping[str, Optional[str]]) -> Rule:
    missing = [name for name in FIELDNAMES if row.get(name) is None]
    if missing:
        raise RulesFormatError(f"missing column(s): {', '.join(missing)}")
    try:
        guild_id = int(str(row["guild_id"]).strip())
        role_id = int(str(row["role_id"]).strip())
    except ValueError as exc:
        raise RulesFormatError(f"invalid id: {exc}") from exc
    try:
        kind = RuleKind.parse(str(row["type"]).strip())
    except ValueError as exc:
        raise RulesFormatError(str(exc)) from exc

    activities = parse_activity_names(row["activity_names"])
    if kind is RuleKind.DEFAULT and activities:
        LOGGER.warning("Ignoring activities on default rule for role %s", role_id)
        activities = frozenset()

    return Rule(
        guild_id=guild_id,
        guild_name=str(row["guild_name"]),
        role_id=role_id,
        role_name=str(row["role_name"]),
        kind=kind,
        activities=activities,
        comment=str(row["comments"]),
    )


def rule_to_row(rule: Rule) -> Dict[str, str]:
    return {
        "guild_id": str(rule.guild_id),
        "guild_name": rule.guild_name,
        "role_id": str(rule.role_id),
        "role_name": rule.role_name,
        "type": rule.kind.value,
        "activity_names": format_activity_names(rule.activities),
        "comments": rule.comment,
    }


def load_rules_csv(text: str) -> Dict[int, GuildRules]:
    """Parse CSV text into a guild_id -> GuildRules mapping."""

    reader = csv.DictReader(io.StringIO(text))
    if reader.fieldnames is None:
        return {}
    missing = [name for name in FIELDNAMES if name not in reader.fieldnames]
    if missing:
        raise RulesFormatError(f"missing column(s): {', '.join(missing)}")

    rules: Dict[int, GuildRules] = {}
    for row in reader:
        try:
            rule = rule_from_row(row)
            current = rules.get(rule.guild_id, GuildRules())
            rules[rule.guild_id] = current.with_rule(rule)
        except (RulesFormatError, RuleError) as exc:
            raise RulesFormatError(f"line {reader.line_num}: {exc}") from exc
    return rules


def sorted_rules(rules: Mapping[int, GuildRules]) -> List[Rule]:
    all_rules = [rule for guild_rules in rules.values() for rule in guild_rules.all_rules()]
    return sorted(all_rules, key=lambda rule: (rule.guild_id, rule.role_id))


def dump_rules_csv(rules: Mapping[int, GuildRules]) -> str:
    """Serialize every rule, sorted by (guild_id, role_id)."""

    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=FIELDNAMES, lineterminator="\n")
    writer.writeheader()
    for rule in sorted_rules(rules):
        writer.writerow(rule_to_row(rule))
    return buffer.getvalue()


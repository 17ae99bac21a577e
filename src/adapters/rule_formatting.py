"""Shared rule formatting helpers.

Keeping formatting here prevents drift between the slash commands, the CLI,
and the rules editor.
"""

from __future__ import annotations

from typing import Iterable, List, Tuple

from core.models import Rule

DEFAULT_RULE_LABEL = "Default Role"
NO_ACTIVITIES_LABEL = "(no activities)"
FIELD_VALUE_LIMIT = 1024


def _truncate(value: str, limit: int) -> str:
    if len(value) <= limit:
        return value
    return value[: limit - 1] + "…"


def rule_value(rule: Rule) -> str:
    """Activities joined for display, or the default-role label."""

    if rule.is_default:
        return DEFAULT_RULE_LABEL
    if not rule.activities:
        return NO_ACTIVITIES_LABEL
    return ", ".join(sorted(rule.activities, key=str.lower))


def rule_field(rule: Rule) -> Tuple[str, str]:
    """Return an embed-style (name, value) pair for one rule."""

    value = rule_value(rule)
    if rule.comment:
        value = f"{value}\n*{rule.comment}*"
    return rule.role_name or str(rule.role_id), _truncate(value, FIELD_VALUE_LIMIT)


def rule_fields(rules: Iterable[Rule]) -> List[Tuple[str, str]]:
    return [rule_field(rule) for rule in rules]


def format_rule_line(rule: Rule) -> str:
    """One-line description used in command confirmations."""

    return f"{rule.role_name} ({rule.role_id}) [{rule.kind.value}]: {rule_value(rule)}"


def format_rules_summary(rules: Iterable[Rule]) -> str:
    """Plain-text listing grouped by guild, for terminal output."""

    lines: List[str] = []
    current_guild = None
    for rule in rules:
        if rule.guild_id != current_guild:
            current_guild = rule.guild_id
            if lines:
                lines.append("")
            lines.append(f"{rule.guild_name} ({rule.guild_id})")
        lines.append(f"  - {format_rule_line(rule)}")
    return "\n".join(lines)

"""Validation helpers for rule editing."""

from __future__ import annotations

from dataclasses import dataclass

from core.models import Rule, RuleKind


@dataclass
class IdInfo:
    value: int | None
    error: str | None = None


@dataclass
class RuleFormResult:
    rule: Rule | None
    error: str | None = None


def parse_snowflake(raw_value: str, label: str) -> IdInfo:
    """Parse a Discord id typed by hand. Mentions like ``<@&123>`` are accepted."""

    raw_value = raw_value.strip()
    if raw_value.startswith("<") and raw_value.endswith(">"):
        raw_value = raw_value.strip("<>").lstrip("@&#!")
    if not raw_value:
        return IdInfo(None, f"{label} is required")
    if not raw_value.isdigit():
        return IdInfo(None, f"{label} must be numeric")
    value = int(raw_value)
    if value <= 0:
        return IdInfo(None, f"{label} must be positive")
    return IdInfo(value)


def parse_activity_lines(text: str) -> frozenset[str]:
    """One activity per line; ``;`` also separates names on a single line."""

    names = []
    for line in text.splitlines():
        names.extend(part.strip() for part in line.split(";"))
    return frozenset(name for name in names if name)


def parse_rule_form(
    guild_id: str,
    guild_name: str,
    role_id: str,
    role_name: str,
    kind: str,
    activities: str,
    comment: str = "",
) -> RuleFormResult:
    guild = parse_snowflake(guild_id, "guild_id")
    if guild.error or guild.value is None:
        return RuleFormResult(None, guild.error)
    role = parse_snowflake(role_id, "role_id")
    if role.error or role.value is None:
        return RuleFormResult(None, role.error)
    try:
        rule_kind = RuleKind.parse(kind)
    except ValueError as exc:
        return RuleFormResult(None, str(exc))

    names = parse_activity_lines(activities)
    if rule_kind is RuleKind.DEFAULT and names:
        return RuleFormResult(None, "default rules cannot have activities")
    if rule_kind is RuleKind.NAMED_ACTIVITY and not names:
        return RuleFormResult(None, "at least one activity is required")

    rule = Rule(
        guild_id=guild.value,
        guild_name=guild_name.strip(),
        role_id=role.value,
        role_name=role_name.strip() or str(role.value),
        kind=rule_kind,
        activities=names,
        comment=comment.strip(),
    )
    return RuleFormResult(rule)

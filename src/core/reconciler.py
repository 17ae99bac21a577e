"""Role reconciliation (core domain).

Pure function: given a guild's rules, the roles a member holds, and what the
member is playing, decide which managed roles to add and which to remove.
"""

from __future__ import annotations

from typing import AbstractSet, Iterable

from core.models import RoleDelta
from core.rules_engine import GuildRules


def desired_role_ids(guild_rules: GuildRules, activities: Iterable[str]) -> frozenset[int]:
    """Return the managed roles the member should hold for these activities."""

    return frozenset(rule.role_id for rule in guild_rules.matching_rules(activities))


def reconcile(
    guild_rules: GuildRules,
    held_role_ids: AbstractSet[int],
    activities: Iterable[str],
) -> RoleDelta:
    """Compute the role delta for one member.

    Roles outside the guild's managed set are never touched, even when held.
    """

    managed = guild_rules.managed_role_ids()
    desired = desired_role_ids(guild_rules, activities)
    held_managed = frozenset(held_role_ids) & managed
    return RoleDelta(
        to_add=desired - held_managed,
        to_remove=held_managed - desired,
    )

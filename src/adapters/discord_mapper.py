"""Discord-to-core mapping adapter.

This keeps discord.py-specific details out of the core pipeline.
"""

from __future__ import annotations

from typing import Any, Iterable

import discord

from core.models import PresenceEvent, SubjectSnapshot


def playing_activities(activities: Iterable[Any]) -> frozenset[str]:
    """Return the distinct names of "Playing ..." activities."""

    names: set[str] = set()
    for activity in activities or ():
        if getattr(activity, "type", None) != discord.ActivityType.playing:
            continue
        name = getattr(activity, "name", None)
        if isinstance(name, str) and name:
            names.add(name)
    return frozenset(names)


def build_event(member: Any) -> PresenceEvent:
    """Build a core PresenceEvent from a discord.py Member."""

    status = getattr(member, "status", None)
    return PresenceEvent(
        guild_id=member.guild.id,
        user_id=member.id,
        activities=playing_activities(getattr(member, "activities", ())),
        status=str(status) if status is not None else None,
    )


def build_snapshot(member: Any) -> SubjectSnapshot:
    """Read the member's current roles and playing activities."""

    return SubjectSnapshot(
        role_ids=frozenset(role.id for role in getattr(member, "roles", ())),
        activities=playing_activities(getattr(member, "activities", ())),
    )

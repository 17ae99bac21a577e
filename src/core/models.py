"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any integration-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Optional


class RuleKind(str, Enum):
    """How a rule decides whether its role is desired."""

    NAMED_ACTIVITY = "named-activity"
    DEFAULT = "else"

    @classmethod
    def parse(cls, value: str) -> "RuleKind":
        for kind in cls:
            if kind.value == value:
                return kind
        raise ValueError(f"Unknown rule type: {value!r}")


@dataclass(frozen=True)
class Rule:
    """One managed role within one guild."""

    guild_id: int
    guild_name: str
    role_id: int
    role_name: str
    kind: RuleKind
    activities: FrozenSet[str] = field(default_factory=frozenset)
    comment: str = ""

    @property
    def is_default(self) -> bool:
        return self.kind is RuleKind.DEFAULT

    def matches(self, user_activities: FrozenSet[str]) -> bool:
        """True if any rule activity is a case-insensitive substring of a user activity."""

        if self.is_default:
            return False
        lowered = [activity.lower() for activity in user_activities]
        return any(
            rule_activity.lower() in user_activity
            for rule_activity in self.activities
            for user_activity in lowered
        )


@dataclass(frozen=True)
class PresenceEvent:
    """Minimal presence update consumed by the reconciliation pipeline."""

    guild_id: int
    user_id: int
    activities: FrozenSet[str]
    status: Optional[str] = None

    @property
    def key(self) -> tuple[int, int]:
        return (self.guild_id, self.user_id)


@dataclass(frozen=True)
class SubjectSnapshot:
    """Member state read from the cache at evaluation time."""

    role_ids: FrozenSet[int]
    activities: FrozenSet[str]


@dataclass(frozen=True)
class RoleDelta:
    """Roles to add and remove for one member. The two sets are disjoint."""

    to_add: FrozenSet[int] = frozenset()
    to_remove: FrozenSet[int] = frozenset()

    @property
    def is_empty(self) -> bool:
        return not self.to_add and not self.to_remove


@dataclass(frozen=True)
class MemberPage:
    """One page of a guild member listing, ordered by user id."""

    user_ids: tuple[int, ...]

    @property
    def last_id(self) -> Optional[int]:
        return self.user_ids[-1] if self.user_ids else None

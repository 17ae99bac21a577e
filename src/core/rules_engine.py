"""Rule sets and rule matching (core domain)."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from core.errors import (
    DuplicateDefaultRuleError,
    DuplicateRuleError,
    InvalidRuleError,
    RuleNotFoundError,
)
from core.models import Rule, RuleKind
from core.rwlock import ReadWriteLock

LOGGER = logging.getLogger(__name__)

RulesMapping = Dict[int, "GuildRules"]
PersistCallback = Callable[[RulesMapping], Awaitable[None]]


@dataclass(frozen=True)
class GuildRules:
    """All rules of one guild: activity rules keyed by role id plus one optional default.

    Instances are never mutated; the ``with_*``/``without_*`` helpers return a
    new object so readers always see a complete rule set.
    """

    activity_rules: Mapping[int, Rule] = field(default_factory=dict)
    default_rule: Optional[Rule] = None

    @classmethod
    def from_rules(cls, rules: Iterable[Rule]) -> "GuildRules":
        guild_rules = cls()
        for rule in rules:
            guild_rules = guild_rules.with_rule(rule)
        return guild_rules

    @property
    def is_empty(self) -> bool:
        return not self.activity_rules and self.default_rule is None

    def all_rules(self) -> List[Rule]:
        """Every rule, default first, then activity rules by role id."""

        rules = [self.activity_rules[role_id] for role_id in sorted(self.activity_rules)]
        if self.default_rule is not None:
            rules.insert(0, self.default_rule)
        return rules

    def managed_role_ids(self) -> frozenset[int]:
        return frozenset(rule.role_id for rule in self.all_rules())

    def get_rule(self, role_id: int) -> Optional[Rule]:
        if self.default_rule is not None and self.default_rule.role_id == role_id:
            return self.default_rule
        return self.activity_rules.get(role_id)

    def matching_rules(self, user_activities: Iterable[str]) -> List[Rule]:
        """Return the rules whose role the member should hold.

        Matching logic:
        - No activities at all means no rule applies, not even the default.
        - Otherwise every activity rule with a matching activity applies.
        - If none matched, the default rule (when present) applies.
        """

        activities = frozenset(user_activities)
        if not activities:
            return []

        matched = [rule for rule in self.all_rules() if rule.matches(activities)]
        if matched:
            return matched
        if self.default_rule is not None:
            return [self.default_rule]
        return []

    def with_rule(self, rule: Rule) -> "GuildRules":
        existing = self.get_rule(rule.role_id)
        if existing is not None:
            raise DuplicateRuleError(f"Role {rule.role_name} already has a rule")
        if rule.is_default:
            if self.default_rule is not None:
                raise DuplicateDefaultRuleError(
                    f"Guild already has a default rule ({self.default_rule.role_name})"
                )
            if rule.activities:
                raise InvalidRuleError("Default rules cannot have activities")
            return replace(self, default_rule=rule)
        activity_rules = dict(self.activity_rules)
        activity_rules[rule.role_id] = rule
        return replace(self, activity_rules=activity_rules)

    def without_rule(self, role_id: int) -> Tuple["GuildRules", Rule]:
        if self.default_rule is not None and self.default_rule.role_id == role_id:
            return replace(self, default_rule=None), self.default_rule
        if role_id not in self.activity_rules:
            raise RuleNotFoundError(f"No rule found for role {role_id}")
        activity_rules = dict(self.activity_rules)
        removed = activity_rules.pop(role_id)
        return replace(self, activity_rules=activity_rules), removed

    def with_replaced(self, rule: Rule) -> "GuildRules":
        remaining, _ = self.without_rule(rule.role_id)
        return remaining.with_rule(rule)


class RuleStore:
    """Process-wide mapping of guild id to GuildRules.

    Reads (matching, listing) share the lock; admin writes take it exclusively
    and swap whole GuildRules objects. After each successful write the new
    state is handed to ``on_change`` in the background.
    """

    def __init__(
        self,
        guilds: Optional[Mapping[int, GuildRules]] = None,
        on_change: Optional[PersistCallback] = None,
    ) -> None:
        self._guilds: RulesMapping = {
            guild_id: rules for guild_id, rules in (guilds or {}).items() if not rules.is_empty
        }
        self._lock = ReadWriteLock()
        self._on_change = on_change
        self._pending: set[asyncio.Task] = set()

    async def get(self, guild_id: int) -> Optional[GuildRules]:
        async with self._lock.read():
            return self._guilds.get(guild_id)

    async def snapshot(self) -> RulesMapping:
        async with self._lock.read():
            return dict(self._guilds)

    async def list_rules(self, guild_id: int, role_id: Optional[int] = None) -> List[Rule]:
        """Return the guild's rules, or only the rule for ``role_id`` when given."""

        async with self._lock.read():
            guild_rules = self._guilds.get(guild_id, GuildRules())
        if role_id is None:
            return guild_rules.all_rules()
        rule = guild_rules.get_rule(role_id)
        if rule is None:
            raise RuleNotFoundError(f"No rule found for role {role_id}")
        return [rule]

    async def add_rule(self, rule: Rule) -> Rule:
        async with self._lock.write():
            current = self._guilds.get(rule.guild_id, GuildRules())
            self._guilds[rule.guild_id] = current.with_rule(rule)
            state = dict(self._guilds)
        LOGGER.info("Added %s rule for role %s in guild %s", rule.kind.value, rule.role_id, rule.guild_id)
        self._persist(state)
        return rule

    async def remove_rule(self, guild_id: int, role_id: int) -> Rule:
        async with self._lock.write():
            current = self._guilds.get(guild_id, GuildRules())
            updated, removed = current.without_rule(role_id)
            if updated.is_empty:
                self._guilds.pop(guild_id, None)
            else:
                self._guilds[guild_id] = updated
            state = dict(self._guilds)
        LOGGER.info("Removed rule for role %s in guild %s", role_id, guild_id)
        self._persist(state)
        return removed

    async def edit_rule(
        self,
        guild_id: int,
        role_id: int,
        add_activities: Iterable[str] = (),
        remove_activities: Iterable[str] = (),
        comment: Optional[str] = None,
    ) -> Rule:
        """Add/remove activity names and optionally replace the comment."""

        to_add = frozenset(add_activities)
        to_remove = frozenset(remove_activities)
        async with self._lock.write():
            current = self._guilds.get(guild_id, GuildRules())
            rule = current.get_rule(role_id)
            if rule is None:
                raise RuleNotFoundError(f"No rule found for role {role_id}")
            if rule.kind is RuleKind.DEFAULT and to_add:
                raise InvalidRuleError("Default rules cannot have activities")
            edited = replace(
                rule,
                activities=(rule.activities | to_add) - to_remove,
                comment=rule.comment if comment is None else comment,
            )
            self._guilds[guild_id] = current.with_replaced(edited)
            state = dict(self._guilds)
        LOGGER.info("Edited rule for role %s in guild %s", role_id, guild_id)
        self._persist(state)
        return edited

    async def replace_all(self, guilds: Mapping[int, GuildRules]) -> None:
        """Swap the whole rule set, e.g. after loading from storage."""

        async with self._lock.write():
            self._guilds = {
                guild_id: rules for guild_id, rules in guilds.items() if not rules.is_empty
            }
        LOGGER.info("Rule set replaced: %s guilds", len(guilds))

    async def wait_saved(self) -> None:
        """Wait for background saves scheduled so far."""

        if self._pending:
            await asyncio.gather(*list(self._pending))

    def _persist(self, state: RulesMapping) -> None:
        if self._on_change is None:
            return
        task = asyncio.create_task(self._save(state))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _save(self, state: RulesMapping) -> None:
        try:
            await self._on_change(state)
        except Exception:
            LOGGER.exception("Failed to persist rules after change")

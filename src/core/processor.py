"""Core presence processing pipeline.

This module is integration-agnostic. It only relies on ports for the member
cache and the platform, enabling other gateways or test fakes without
changes here.

The pipeline for one (guild, member) key:
1) Presence event arrives, any pending unit for the key is cancelled
2) Debounce window passes without a newer event
3) Fresh member snapshot and guild rules are read
4) Reconciler computes the role delta
5) Applier issues the role calls through the shared rate gate
"""

from __future__ import annotations

import logging
from typing import List, Optional

from core.applier import RoleApplier
from core.config import ReconcileConfig
from core.debounce import CancelToken, DebounceRegistry
from core.models import PresenceEvent, RoleDelta
from core.ports import MemberCachePort, PlatformPort
from core.rate_gate import RateGate
from core.reconciler import reconcile
from core.rules_engine import RuleStore

LOGGER = logging.getLogger(__name__)


class PresenceProcessor:
    """Orchestrates debouncing, reconciliation, and role updates."""

    def __init__(
        self,
        rules: RuleStore,
        platform: PlatformPort,
        cache: MemberCachePort,
        config: ReconcileConfig,
        gate: Optional[RateGate] = None,
    ) -> None:
        self._rules = rules
        self._platform = platform
        self._cache = cache
        self._config = config
        self._gate = gate or RateGate(config.rate_per_minute, config.rate_burst)
        self._applier = RoleApplier(platform, self._gate)
        self._registry = DebounceRegistry(config.debounce_seconds)

    @property
    def registry(self) -> DebounceRegistry:
        return self._registry

    async def handle(self, event: PresenceEvent) -> None:
        """Schedule reconciliation for the event's member."""

        LOGGER.debug(
            "Presence update for %s in %s: %s",
            event.user_id,
            event.guild_id,
            sorted(event.activities),
        )
        await self.enqueue(event.guild_id, event.user_id)

    async def enqueue(self, guild_id: int, user_id: int) -> None:
        async def work(token: CancelToken) -> None:
            await self.reconcile_member(guild_id, user_id, token)

        await self._registry.schedule((guild_id, user_id), work)

    async def reconcile_member(
        self, guild_id: int, user_id: int, token: Optional[CancelToken] = None
    ) -> RoleDelta:
        """Bring one member's managed roles in line with the current rules."""

        guild_rules = await self._rules.get(guild_id)
        if guild_rules is None:
            return RoleDelta()

        snapshot = self._cache.snapshot(guild_id, user_id)
        if snapshot is None:
            # The member may have left between the event and the debounce expiry.
            LOGGER.info("Member %s not found in cache for guild %s", user_id, guild_id)
            return RoleDelta()

        delta = reconcile(guild_rules, snapshot.role_ids, snapshot.activities)
        if delta.is_empty:
            return delta
        await self._applier.apply(guild_id, user_id, delta, token)
        return delta

    async def resync_guild(self, guild_id: int) -> int:
        """Push every guild member through the debounced pipeline.

        Used after (re)joining a guild, since roles may have drifted while we
        were offline. Returns the number of members enqueued.
        """

        if await self._rules.get(guild_id) is None:
            LOGGER.info("No rules for guild %s, skipping resync", guild_id)
            return 0

        user_ids = await self.list_all_members(guild_id)
        for user_id in user_ids:
            await self.enqueue(guild_id, user_id)
        LOGGER.info("Resync queued %s members for guild %s", len(user_ids), guild_id)
        return len(user_ids)

    async def list_all_members(self, guild_id: int) -> List[int]:
        """Page through the guild's members by increasing user id."""

        page_size = self._config.member_page_size
        after = 0
        user_ids: List[int] = []
        while True:
            page = await self._platform.list_members(guild_id, after, page_size)
            user_ids.extend(page.user_ids)
            if len(page.user_ids) < page_size or page.last_id is None:
                return user_ids
            if page.last_id <= after:
                LOGGER.warning("Member listing for guild %s did not advance past %s", guild_id, after)
                return user_ids
            after = page.last_id

    async def shutdown(self) -> None:
        await self._registry.cancel_all()

"""Apply a role delta to the chat platform through the shared rate gate."""

from __future__ import annotations

import logging
from typing import Optional

from core.debounce import CancelToken
from core.models import RoleDelta
from core.ports import PlatformPort
from core.rate_gate import RateGate

LOGGER = logging.getLogger(__name__)


class RoleApplier:
    """Issues assign/revoke calls, adds first, one gated call per role.

    Every call is independent: a failure is logged and the remaining calls
    still run. Nothing is retried; the next presence update for the member
    corrects any drift.
    """

    def __init__(self, platform: PlatformPort, gate: RateGate) -> None:
        self._platform = platform
        self._gate = gate

    async def apply(
        self,
        guild_id: int,
        user_id: int,
        delta: RoleDelta,
        token: Optional[CancelToken] = None,
    ) -> int:
        """Apply ``delta`` and return the number of successful calls."""

        token = token or CancelToken()
        applied = 0
        steps = [(role_id, True) for role_id in sorted(delta.to_add)]
        steps += [(role_id, False) for role_id in sorted(delta.to_remove)]

        for role_id, assign in steps:
            if not await token.race(self._gate.acquire()):
                LOGGER.debug("Role update for %s in %s superseded", user_id, guild_id)
                return applied
            if token.cancelled:
                return applied
            action = "Assigning" if assign else "Removing"
            LOGGER.warning("%s role %s for %s in %s", action, role_id, user_id, guild_id)
            try:
                if assign:
                    await self._platform.assign_role(guild_id, user_id, role_id)
                else:
                    await self._platform.revoke_role(guild_id, user_id, role_id)
            except Exception:
                LOGGER.exception(
                    "Couldn't %s role %s for %s in %s",
                    "add" if assign else "remove",
                    role_id,
                    user_id,
                    guild_id,
                )
                continue
            applied += 1
        return applied

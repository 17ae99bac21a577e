"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for the chat platform, the member cache,
and rule storage so that the core can be reused with different backends.
"""

from __future__ import annotations

from typing import Dict, Optional, Protocol

from core.models import MemberPage, SubjectSnapshot
from core.rules_engine import GuildRules


class PlatformPort(Protocol):
    """Role mutations and member listing on the chat platform."""

    async def assign_role(self, guild_id: int, user_id: int, role_id: int) -> None:
        ...

    async def revoke_role(self, guild_id: int, user_id: int, role_id: int) -> None:
        ...

    async def list_members(self, guild_id: int, after: int, limit: int) -> MemberPage:
        ...


class MemberCachePort(Protocol):
    """Read access to the locally cached member state."""

    def snapshot(self, guild_id: int, user_id: int) -> Optional[SubjectSnapshot]:
        ...


class RulesStoragePort(Protocol):
    """Load and save the complete rule set."""

    @property
    def label(self) -> str:
        """Where the rules live, for messages shown to admins."""
        ...

    async def load(self) -> Dict[int, GuildRules]:
        ...

    async def save(self, rules: Dict[int, GuildRules]) -> None:
        ...

"""discord.py implementation of the platform and member cache ports."""

from __future__ import annotations

import logging
from typing import Optional

import discord

from adapters.discord_mapper import build_snapshot
from core.models import MemberPage, SubjectSnapshot

LOGGER = logging.getLogger(__name__)

AUDIT_REASON = "Activity role rules"


class DiscordPlatform:
    """Role updates over REST and member state from the gateway cache.

    The REST calls take raw ids so a member that is not cached can still be
    updated and listed.
    """

    def __init__(self, client: discord.Client, reason: str = AUDIT_REASON) -> None:
        self._client = client
        self._reason = reason

    async def assign_role(self, guild_id: int, user_id: int, role_id: int) -> None:
        await self._client.http.add_role(guild_id, user_id, role_id, reason=self._reason)

    async def revoke_role(self, guild_id: int, user_id: int, role_id: int) -> None:
        await self._client.http.remove_role(guild_id, user_id, role_id, reason=self._reason)

    async def list_members(self, guild_id: int, after: int, limit: int) -> MemberPage:
        payload = await self._client.http.get_members(guild_id, limit, after)
        user_ids = sorted(int(member["user"]["id"]) for member in payload)
        return MemberPage(user_ids=tuple(user_ids))

    def snapshot(self, guild_id: int, user_id: int) -> Optional[SubjectSnapshot]:
        guild = self._client.get_guild(guild_id)
        if guild is None:
            LOGGER.debug("Guild %s not in cache", guild_id)
            return None
        member = guild.get_member(user_id)
        if member is None:
            return None
        return build_snapshot(member)

"""discord.py client wiring.

Gateway events are translated into core calls here and nowhere else; every
handler logs and swallows its own failures so one bad event never stops the
gateway loop.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine, Iterable, Optional

import discord
from discord import app_commands

from adapters.discord_commands import register_commands
from adapters.discord_mapper import build_event
from adapters.discord_platform import DiscordPlatform
from core.config import ReconcileConfig
from core.ports import RulesStoragePort
from core.processor import PresenceProcessor
from core.rules_engine import RuleStore

LOGGER = logging.getLogger(__name__)


def build_intents() -> discord.Intents:
    intents = discord.Intents.none()
    intents.guilds = True
    intents.members = True
    intents.presences = True
    return intents


class RollingRolesBot(discord.Client):
    """Discord client that keeps activity roles in sync with the rule set."""

    def __init__(
        self,
        *,
        store: RuleStore,
        file_storage: RulesStoragePort,
        github_storage: Optional[RulesStoragePort],
        reconcile_config: ReconcileConfig,
        command_guild_ids: Iterable[int] = (),
        presence_text: str = "Rolling Roles",
    ) -> None:
        super().__init__(
            intents=build_intents(),
            chunk_guilds_at_startup=True,
            activity=discord.Game(name=presence_text),
        )
        self._store = store
        self._command_guild_ids = list(command_guild_ids)
        self._background: set[asyncio.Task] = set()

        platform = DiscordPlatform(self)
        self.processor = PresenceProcessor(store, platform, platform, reconcile_config)
        self.tree = app_commands.CommandTree(self)
        register_commands(self.tree, store, file_storage, github_storage)

    async def setup_hook(self) -> None:
        try:
            if self._command_guild_ids:
                for guild_id in self._command_guild_ids:
                    guild = discord.Object(id=guild_id)
                    self.tree.copy_global_to(guild=guild)
                    await self.tree.sync(guild=guild)
                LOGGER.info("Registered commands in %s guild(s)", len(self._command_guild_ids))
            else:
                await self.tree.sync()
                LOGGER.info("Registered global commands")
        except discord.HTTPException:
            LOGGER.exception("Failed to register commands")

    async def on_ready(self) -> None:
        user = self.user
        LOGGER.info("Logged in as %s with ID %s", user, user.id if user else None)

    async def on_presence_update(self, before: discord.Member, after: discord.Member) -> None:
        try:
            await self.processor.handle(build_event(after))
        except Exception:
            LOGGER.exception("Error while processing presence update")

    async def on_guild_available(self, guild: discord.Guild) -> None:
        LOGGER.info("Guild available: %s (%s)", guild.name, guild.id)
        self._spawn(self._resync(guild))

    async def on_guild_join(self, guild: discord.Guild) -> None:
        LOGGER.info("Joined guild: %s (%s)", guild.name, guild.id)
        self._spawn(self._resync(guild))

    async def _resync(self, guild: discord.Guild) -> None:
        try:
            await self.processor.resync_guild(guild.id)
        except Exception:
            LOGGER.exception("Resync failed for guild %s", guild.id)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def close(self) -> None:
        LOGGER.info("Shutting down")
        for task in list(self._background):
            task.cancel()
        await self.processor.shutdown()
        await self._store.wait_saved()
        await super().close()

"""Slash commands for administering the rule set.

Commands translate Discord interactions into RuleStore operations. Rule
errors are shown to the caller verbatim; nothing here touches roles.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

import discord
from discord import app_commands

from adapters.rule_formatting import format_rule_line, rule_fields
from core.errors import RuleError, RulesFormatError, StorageError
from core.models import Rule, RuleKind
from core.ports import RulesStoragePort
from core.rules_codec import parse_activity_names
from core.rules_engine import RuleStore

LOGGER = logging.getLogger(__name__)

# Dark theme color, renders a "transparent" background.
EMBED_COLOR = 0x2F3136
MAX_FIELDS_PER_EMBED = 25
MAX_EMBEDS_PER_MESSAGE = 10

KIND_CHOICES = [
    app_commands.Choice(name="Named Activity", value=RuleKind.NAMED_ACTIVITY.value),
    app_commands.Choice(name="Default (else)", value=RuleKind.DEFAULT.value),
]

SAVE_TO_FILE = "save-to-file"
LOAD_FROM_FILE = "load-from-file"
SAVE_TO_GITHUB = "save-to-github"
LOAD_FROM_GITHUB = "load-from-github"

STORAGE_CHOICES = [
    app_commands.Choice(name="Save to File", value=SAVE_TO_FILE),
    app_commands.Choice(name="Load from File", value=LOAD_FROM_FILE),
    app_commands.Choice(name="Save to Github", value=SAVE_TO_GITHUB),
    app_commands.Choice(name="Load from Github", value=LOAD_FROM_GITHUB),
]


def build_rule_embeds(title: str, rules: Sequence[Rule]) -> List[discord.Embed]:
    fields = rule_fields(rules)
    if not fields:
        return [discord.Embed(title=title, description="No rules configured.", color=EMBED_COLOR)]

    embeds: List[discord.Embed] = []
    for start in range(0, len(fields), MAX_FIELDS_PER_EMBED):
        embed = discord.Embed(title=title if not embeds else f"{title} (cont.)", color=EMBED_COLOR)
        for name, value in fields[start : start + MAX_FIELDS_PER_EMBED]:
            embed.add_field(name=name, value=value, inline=False)
        embeds.append(embed)
    return embeds[:MAX_EMBEDS_PER_MESSAGE]


async def _reply(
    interaction: discord.Interaction,
    content: Optional[str] = None,
    embeds: Optional[List[discord.Embed]] = None,
) -> None:
    if embeds:
        await interaction.response.send_message(content, embeds=embeds, ephemeral=True)
    else:
        await interaction.response.send_message(content, ephemeral=True)


def _guild_name(interaction: discord.Interaction) -> str:
    return interaction.guild.name if interaction.guild is not None else ""


class ManageCommands(app_commands.Group):
    """/manage add|remove|edit|list"""

    def __init__(self, store: RuleStore) -> None:
        super().__init__(
            name="manage",
            description="Manage Guild Roles Rules",
            guild_only=True,
            default_permissions=discord.Permissions(manage_roles=True),
        )
        self._store = store

    @app_commands.command(name="add", description="Add Role Rule")
    @app_commands.describe(
        role="Role Tag",
        kind="Type",
        activities="Activities, `;` separated",
        comment="Comment",
    )
    @app_commands.choices(kind=KIND_CHOICES)
    async def add(
        self,
        interaction: discord.Interaction,
        role: discord.Role,
        kind: app_commands.Choice[str],
        activities: Optional[str] = None,
        comment: Optional[str] = None,
    ) -> None:
        rule = Rule(
            guild_id=interaction.guild_id or 0,
            guild_name=_guild_name(interaction),
            role_id=role.id,
            role_name=role.name,
            kind=RuleKind.parse(kind.value),
            activities=parse_activity_names(activities),
            comment=comment or "",
        )
        try:
            await self._store.add_rule(rule)
        except RuleError as exc:
            await _reply(interaction, f"Failed: {exc}")
            return
        await _reply(interaction, f"Added rule: {format_rule_line(rule)}")

    @app_commands.command(name="remove", description="Remove Role Rule, Stops assigning the role")
    @app_commands.describe(role="Role Tag")
    async def remove(self, interaction: discord.Interaction, role: discord.Role) -> None:
        try:
            removed = await self._store.remove_rule(interaction.guild_id or 0, role.id)
        except RuleError as exc:
            await _reply(interaction, f"Failed: {exc}")
            return
        await _reply(interaction, f"Removed rule: {format_rule_line(removed)}")

    @app_commands.command(name="edit", description="Edit Role Rule")
    @app_commands.describe(
        role="Role Tag",
        add_activities="Add Activities, `;` separated",
        remove_activities="Remove Activities, `;` separated",
        comment="Replace the comment",
    )
    async def edit(
        self,
        interaction: discord.Interaction,
        role: discord.Role,
        add_activities: Optional[str] = None,
        remove_activities: Optional[str] = None,
        comment: Optional[str] = None,
    ) -> None:
        try:
            edited = await self._store.edit_rule(
                interaction.guild_id or 0,
                role.id,
                add_activities=parse_activity_names(add_activities),
                remove_activities=parse_activity_names(remove_activities),
                comment=comment,
            )
        except RuleError as exc:
            await _reply(interaction, f"Failed: {exc}")
            return
        await _reply(interaction, f"Updated rule: {format_rule_line(edited)}")

    @app_commands.command(
        name="list", description="Shows Role Rule, if no role tag is provided, shows all rules"
    )
    @app_commands.describe(role="Role Tag")
    async def list_rules(self, interaction: discord.Interaction, role: Optional[discord.Role] = None) -> None:
        try:
            rules = await self._store.list_rules(
                interaction.guild_id or 0, role.id if role is not None else None
            )
        except RuleError as exc:
            await _reply(interaction, f"Failed: {exc}")
            return
        await _reply(interaction, embeds=build_rule_embeds("Guild Rules", rules))


class StorageActions:
    """Save or load the whole rule set, restricted to the application owner."""

    def __init__(
        self,
        store: RuleStore,
        file_storage: RulesStoragePort,
        github_storage: Optional[RulesStoragePort],
    ) -> None:
        self._store = store
        self._file_storage = file_storage
        self._github_storage = github_storage
        self._owner_ids: Optional[set[int]] = None

    async def _is_owner(self, interaction: discord.Interaction) -> bool:
        if self._owner_ids is None:
            info = await interaction.client.application_info()
            if info.team is not None:
                self._owner_ids = {member.id for member in info.team.members}
            else:
                self._owner_ids = {info.owner.id}
        return interaction.user.id in self._owner_ids

    async def handle(self, interaction: discord.Interaction, action: str) -> None:
        if not await self._is_owner(interaction):
            await _reply(interaction, "Only the bot owner can use this command")
            return

        await interaction.response.defer(ephemeral=True, thinking=True)
        try:
            message = await self.execute(action)
        except (StorageError, RulesFormatError) as exc:
            LOGGER.warning("Storage command %s failed: %s", action, exc)
            message = f"Failed: {exc}"
        await interaction.followup.send(message, ephemeral=True)

    async def execute(self, action: str) -> str:
        if action == SAVE_TO_FILE:
            await self._file_storage.save(await self._store.snapshot())
            return f"Rules saved to {self._file_storage.label}"
        if action == LOAD_FROM_FILE:
            await self._store.replace_all(await self._file_storage.load())
            return f"Rules loaded from {self._file_storage.label}"

        if self._github_storage is None:
            raise StorageError("No github config")
        if action == SAVE_TO_GITHUB:
            await self._github_storage.save(await self._store.snapshot())
            return f"Rules saved to {self._github_storage.label}"
        if action == LOAD_FROM_GITHUB:
            await self._store.replace_all(await self._github_storage.load())
            return f"Rules loaded from {self._github_storage.label}"
        raise StorageError(f"Unknown storage action: {action}")


def storage_command(actions: StorageActions) -> app_commands.Command:
    @app_commands.command(name="storage", description="Save/Load to Storage, bot owner only")
    @app_commands.describe(storage_command="Storage Command")
    @app_commands.choices(storage_command=STORAGE_CHOICES)
    async def storage(
        interaction: discord.Interaction, storage_command: app_commands.Choice[str]
    ) -> None:
        await actions.handle(interaction, storage_command.value)

    return storage


def list_guild_rules_command(store: RuleStore) -> app_commands.Command:
    @app_commands.command(name="list-guild-rules", description="List Rules for Guild")
    @app_commands.guild_only()
    async def list_guild_rules(interaction: discord.Interaction) -> None:
        rules = await store.list_rules(interaction.guild_id or 0)
        await interaction.response.send_message(embeds=build_rule_embeds("Guild Rules", rules))

    return list_guild_rules


def register_commands(
    tree: app_commands.CommandTree,
    store: RuleStore,
    file_storage: RulesStoragePort,
    github_storage: Optional[RulesStoragePort],
) -> None:
    tree.add_command(ManageCommands(store))
    tree.add_command(storage_command(StorageActions(store, file_storage, github_storage)))
    tree.add_command(list_guild_rules_command(store))

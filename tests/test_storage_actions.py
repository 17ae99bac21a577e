from __future__ import annotations

import asyncio

import pytest

from adapters.csv_storage import RulesFileStorage
from adapters.discord_commands import (
    LOAD_FROM_FILE,
    LOAD_FROM_GITHUB,
    SAVE_TO_FILE,
    SAVE_TO_GITHUB,
    StorageActions,
)
from core.errors import StorageError
from core.models import Rule, RuleKind
from core.rules_engine import GuildRules, RuleStore


class FakeStorage:
    def __init__(self, rules=None) -> None:
        self.rules = rules or {}
        self.saved = []

    @property
    def label(self) -> str:
        return "memory"

    async def load(self):
        return self.rules

    async def save(self, rules) -> None:
        self.saved.append(rules)


def _rules() -> dict[int, GuildRules]:
    rule = Rule(1, "Guild", 10, "minecraft", RuleKind.NAMED_ACTIVITY, frozenset({"Minecraft"}))
    return {1: GuildRules.from_rules([rule])}


def test_save_and_load_through_storages() -> None:
    files = FakeStorage()
    github = FakeStorage(_rules())

    async def scenario() -> None:
        store = RuleStore()
        actions = StorageActions(store, files, github)

        assert await actions.execute(LOAD_FROM_GITHUB) == "Rules loaded from memory"
        assert (await store.get(1)).get_rule(10) is not None
        assert await actions.execute(SAVE_TO_FILE) == "Rules saved to memory"
        assert await actions.execute(SAVE_TO_GITHUB) == "Rules saved to memory"

    asyncio.run(scenario())

    assert set(files.saved[0]) == {1}
    assert len(github.saved) == 1


def test_github_actions_need_github_storage() -> None:
    async def scenario() -> None:
        actions = StorageActions(RuleStore(), FakeStorage(), None)
        with pytest.raises(StorageError, match="No github config"):
            await actions.execute(LOAD_FROM_GITHUB)

    asyncio.run(scenario())


def test_loading_undecodable_file_is_a_storage_error(tmp_path) -> None:
    path = tmp_path / "db.csv"
    path.write_bytes(b"guild_id,guild_name\n\xff\n")

    async def scenario() -> None:
        store = RuleStore(_rules())
        actions = StorageActions(store, RulesFileStorage(str(path)), None)
        with pytest.raises(StorageError):
            await actions.execute(LOAD_FROM_FILE)
        # A failed load leaves the current rules in place.
        assert (await store.get(1)).get_rule(10) is not None

    asyncio.run(scenario())

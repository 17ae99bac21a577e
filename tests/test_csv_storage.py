from __future__ import annotations

import asyncio

import pytest

from adapters.csv_storage import RulesFileStorage
from core.errors import StorageError
from core.models import Rule, RuleKind
from core.rules_engine import GuildRules


def _rules() -> dict[int, GuildRules]:
    return {
        1: GuildRules.from_rules(
            [
                Rule(1, "Guild", 10, "minecraft", RuleKind.NAMED_ACTIVITY, frozenset({"Minecraft"})),
                Rule(1, "Guild", 20, "gamer", RuleKind.DEFAULT),
            ]
        )
    }


def test_save_then_load(tmp_path) -> None:
    storage = RulesFileStorage(str(tmp_path / "db.csv"))

    storage.save_sync(_rules())
    loaded = storage.load_sync()

    assert loaded[1].get_rule(10).activities == {"Minecraft"}
    assert loaded[1].default_rule.role_id == 20


def test_save_leaves_no_temp_files(tmp_path) -> None:
    storage = RulesFileStorage(str(tmp_path / "db.csv"))

    storage.save_sync(_rules())
    storage.save_sync({})

    assert [path.name for path in tmp_path.iterdir()] == ["db.csv"]
    assert storage.load_sync() == {}


def test_missing_file_raises_storage_error(tmp_path) -> None:
    storage = RulesFileStorage(str(tmp_path / "missing.csv"))

    assert not storage.exists()
    with pytest.raises(StorageError):
        storage.load_sync()


def test_async_save_and_load(tmp_path) -> None:
    storage = RulesFileStorage(str(tmp_path / "nested" / "db.csv"))

    async def scenario() -> dict[int, GuildRules]:
        await storage.save(_rules())
        return await storage.load()

    loaded = asyncio.run(scenario())

    assert set(loaded) == {1}


def test_non_utf8_file_raises_storage_error(tmp_path) -> None:
    path = tmp_path / "db.csv"
    path.write_bytes(b"guild_id,guild_name\n\xff\xfe\n")
    storage = RulesFileStorage(str(path))

    with pytest.raises(StorageError, match="db.csv"):
        storage.load_sync()

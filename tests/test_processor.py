from __future__ import annotations

import asyncio
from typing import Optional

from core.config import ReconcileConfig
from core.models import MemberPage, PresenceEvent, Rule, RuleKind, SubjectSnapshot
from core.processor import PresenceProcessor
from core.rate_gate import RateGate
from core.rules_engine import GuildRules, RuleStore

GUILD = 1
MINECRAFT = 10
CHESS = 11
GAMER = 20


class FakePlatform:
    def __init__(self, member_ids: tuple[int, ...] = (), failing_roles: tuple[int, ...] = ()) -> None:
        self.calls: list[tuple[str, int, int, int]] = []
        self.page_requests: list[tuple[int, int]] = []
        self._member_ids = sorted(member_ids)
        self._failing_roles = set(failing_roles)

    async def assign_role(self, guild_id: int, user_id: int, role_id: int) -> None:
        if role_id in self._failing_roles:
            raise RuntimeError("missing permissions")
        self.calls.append(("add", guild_id, user_id, role_id))

    async def revoke_role(self, guild_id: int, user_id: int, role_id: int) -> None:
        if role_id in self._failing_roles:
            raise RuntimeError("missing permissions")
        self.calls.append(("remove", guild_id, user_id, role_id))

    async def list_members(self, guild_id: int, after: int, limit: int) -> MemberPage:
        self.page_requests.append((after, limit))
        page = [user_id for user_id in self._member_ids if user_id > after][:limit]
        return MemberPage(user_ids=tuple(page))


class FakeCache:
    def __init__(self) -> None:
        self.members: dict[tuple[int, int], SubjectSnapshot] = {}

    def set(self, user_id: int, roles=(), activities=()) -> None:
        self.members[(GUILD, user_id)] = SubjectSnapshot(frozenset(roles), frozenset(activities))

    def snapshot(self, guild_id: int, user_id: int) -> Optional[SubjectSnapshot]:
        return self.members.get((guild_id, user_id))


def _store() -> RuleStore:
    rules = GuildRules.from_rules(
        [
            Rule(GUILD, "Guild", MINECRAFT, "minecraft", RuleKind.NAMED_ACTIVITY, frozenset({"minecraft"})),
            Rule(GUILD, "Guild", CHESS, "chess", RuleKind.NAMED_ACTIVITY, frozenset({"chess"})),
            Rule(GUILD, "Guild", GAMER, "gamer", RuleKind.DEFAULT),
        ]
    )
    return RuleStore({GUILD: rules})


def _processor(platform: FakePlatform, cache: FakeCache, page_size: int = 1000) -> PresenceProcessor:
    config = ReconcileConfig(debounce_seconds=0, member_page_size=page_size)
    gate = RateGate(per_minute=6000, burst=100)
    return PresenceProcessor(_store(), platform, cache, config, gate)


def _event(user_id: int, *activities: str) -> PresenceEvent:
    return PresenceEvent(guild_id=GUILD, user_id=user_id, activities=frozenset(activities))


def test_presence_update_assigns_matching_role() -> None:
    platform = FakePlatform()
    cache = FakeCache()
    cache.set(5, activities=["Minecraft"])
    processor = _processor(platform, cache)

    async def scenario() -> None:
        await processor.handle(_event(5, "Minecraft"))
        await processor.registry.join()

    asyncio.run(scenario())

    assert platform.calls == [("add", GUILD, 5, MINECRAFT)]


def test_adds_are_issued_before_removes() -> None:
    platform = FakePlatform()
    cache = FakeCache()
    cache.set(5, roles=[GAMER], activities=["Minecraft", "Chess"])
    processor = _processor(platform, cache)

    delta = asyncio.run(processor.reconcile_member(GUILD, 5))

    assert delta.to_add == {MINECRAFT, CHESS}
    assert delta.to_remove == {GAMER}
    assert [call[0] for call in platform.calls] == ["add", "add", "remove"]


def test_snapshot_is_read_after_debounce() -> None:
    platform = FakePlatform()
    cache = FakeCache()
    cache.set(5, activities=["Minecraft"])
    processor = _processor(platform, cache)

    async def scenario() -> None:
        await processor.handle(_event(5, "Minecraft"))
        # The member stopped playing before the window elapsed.
        cache.set(5, activities=[])
        await processor.registry.join()

    asyncio.run(scenario())

    assert platform.calls == []


def test_missing_member_is_skipped() -> None:
    platform = FakePlatform()
    processor = _processor(platform, FakeCache())

    delta = asyncio.run(processor.reconcile_member(GUILD, 5))

    assert delta.is_empty
    assert platform.calls == []


def test_guild_without_rules_is_ignored() -> None:
    platform = FakePlatform()
    cache = FakeCache()
    cache.members[(2, 5)] = SubjectSnapshot(frozenset(), frozenset({"Minecraft"}))
    processor = _processor(platform, cache)

    delta = asyncio.run(processor.reconcile_member(2, 5))

    assert delta.is_empty
    assert platform.calls == []


def test_failed_role_call_does_not_stop_others() -> None:
    platform = FakePlatform(failing_roles=(MINECRAFT,))
    cache = FakeCache()
    cache.set(5, roles=[GAMER], activities=["Minecraft", "Chess"])
    processor = _processor(platform, cache)

    asyncio.run(processor.reconcile_member(GUILD, 5))

    assert platform.calls == [("add", GUILD, 5, CHESS), ("remove", GUILD, 5, GAMER)]


def test_burst_of_updates_reconciles_once() -> None:
    platform = FakePlatform()
    cache = FakeCache()
    cache.set(5, activities=["Chess"])
    config = ReconcileConfig(debounce_seconds=0.05)
    processor = PresenceProcessor(_store(), platform, cache, config, RateGate(6000, 100))

    async def scenario() -> None:
        for name in ("Minecraft", "Tetris", "Chess"):
            await processor.handle(_event(5, name))
        await processor.registry.join()

    asyncio.run(scenario())

    assert platform.calls == [("add", GUILD, 5, CHESS)]


def test_resync_pages_through_members() -> None:
    platform = FakePlatform(member_ids=(3, 1, 7, 5, 9))
    cache = FakeCache()
    cache.set(1, activities=["Minecraft"])
    cache.set(7, roles=[CHESS])
    processor = _processor(platform, cache, page_size=2)

    async def scenario() -> int:
        count = await processor.resync_guild(GUILD)
        await processor.registry.join()
        return count

    count = asyncio.run(scenario())

    assert count == 5
    assert platform.page_requests == [(0, 2), (3, 2), (7, 2)]
    assert sorted(platform.calls) == [("add", GUILD, 1, MINECRAFT), ("remove", GUILD, 7, CHESS)]


def test_resync_of_guild_without_rules_lists_nothing() -> None:
    platform = FakePlatform(member_ids=(1, 2))
    processor = _processor(platform, FakeCache())

    assert asyncio.run(processor.resync_guild(2)) == 0
    assert platform.page_requests == []


def test_shutdown_cancels_pending_work() -> None:
    platform = FakePlatform()
    cache = FakeCache()
    cache.set(5, activities=["Minecraft"])
    config = ReconcileConfig(debounce_seconds=10)
    processor = PresenceProcessor(_store(), platform, cache, config, RateGate(6000, 100))

    async def scenario() -> None:
        await processor.handle(_event(5, "Minecraft"))
        await processor.shutdown()

    asyncio.run(scenario())

    assert platform.calls == []


def test_unit_waiting_on_gate_is_superseded() -> None:
    platform = FakePlatform()
    cache = FakeCache()
    cache.set(5, activities=["Minecraft"])
    gate = RateGate(per_minute=60, burst=1)
    processor = PresenceProcessor(_store(), platform, cache, ReconcileConfig(debounce_seconds=0), gate)

    async def scenario() -> None:
        await gate.acquire()
        await processor.handle(_event(5, "Minecraft"))
        # Past the debounce window, now blocked on the empty gate.
        await asyncio.sleep(0.05)
        cache.set(5, activities=[])
        await processor.handle(_event(5))
        await processor.registry.join()

    asyncio.run(scenario())

    assert platform.calls == []

"""State container for rule loading and dirty tracking."""

from __future__ import annotations

from dataclasses import dataclass

from core.rules_engine import GuildRules


@dataclass
class RulesState:
    rules: dict[int, GuildRules] | None = None
    dirty: bool = False
    error: str | None = None

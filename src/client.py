"""Discord client factory for rolling-roles.

We explicitly manage the client's lifecycle (``run``) so it is obvious when
the gateway session is created and when it ends.
"""

from __future__ import annotations

import logging
import os
from typing import Iterable, Optional

from dotenv import load_dotenv

from adapters.discord_bot import RollingRolesBot
from core.config import ReconcileConfig
from core.ports import RulesStoragePort
from core.rules_engine import RuleStore


def discord_token() -> str:
    """Read DISCORD_TOKEN via python-dotenv to keep secrets out of the repo."""

    load_dotenv()
    token = os.getenv("DISCORD_TOKEN")
    # Fail fast on missing credentials instead of an opaque login error.
    if not token:
        raise RuntimeError("Missing DISCORD_TOKEN in environment")
    return token


def github_token() -> Optional[str]:
    load_dotenv()
    return os.getenv("GITHUB_TOKEN") or None


def build_client(
    store: RuleStore,
    file_storage: RulesStoragePort,
    github_storage: Optional[RulesStoragePort],
    reconcile_config: ReconcileConfig,
    command_guild_ids: Iterable[int],
    presence_text: str,
) -> RollingRolesBot:
    """Create the Discord client with the rule store and storages wired in."""

    logging.getLogger(__name__).info("Initializing Discord client")

    return RollingRolesBot(
        store=store,
        file_storage=file_storage,
        github_storage=github_storage,
        reconcile_config=reconcile_config,
        command_guild_ids=command_guild_ids,
        presence_text=presence_text,
    )

"""Static configuration for rolling-roles.

All non-secret settings (rules location, reconcile timing, commands, logging)
live in a single JSON file for quick edits without touching Python. Secrets
come from the environment (.env).
"""

import json
import os

from core.config import MAX_MEMBER_PAGE_SIZE, ReconcileConfig

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

CONFIG_PATH = os.path.join(PROJECT_ROOT, "config.json")


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _resolve_path(path: str) -> str:
    if os.path.isabs(path):
        return path
    return os.path.join(PROJECT_ROOT, path)


_CONFIG = _load_json_config()

# Expose the raw config for modules that need structured access.
CONFIG = _CONFIG

# Rules CSV, written through on every admin change.
_rules = _CONFIG.get("rules", {})
RULES_PATH = _resolve_path(_rules.get("path", "db.csv"))

# Optional GitHub mirror of the rules CSV, used as startup fallback and by /storage.
_github = _rules.get("github", {})
GITHUB_ENABLED = bool(_github.get("enabled", False))
GITHUB_OWNER = _github.get("owner", "")
GITHUB_REPO = _github.get("repo", "")
GITHUB_PATH = _github.get("path", "db.csv")
GITHUB_BRANCH = _github.get("branch", "main")

# Reconcile timing:
# - debounce_seconds: quiet period after the last presence update per member
# - rate_per_minute / rate_burst: shared budget for role changes
# - member_page_size: page size when listing members for a resync
_reconcile = _CONFIG.get("reconcile", {})
RECONCILE = ReconcileConfig(
    debounce_seconds=float(_reconcile.get("debounce_seconds", 10)),
    rate_per_minute=int(_reconcile.get("rate_per_minute", 10)),
    rate_burst=int(_reconcile.get("rate_burst", 3)),
    member_page_size=int(_reconcile.get("member_page_size", MAX_MEMBER_PAGE_SIZE)),
)

# Slash commands are registered per guild when ids are listed, else globally.
_commands = _CONFIG.get("commands", {})
COMMAND_GUILD_IDS = [int(guild_id) for guild_id in _commands.get("guild_ids", [])]

# The bot's own "Playing ..." status.
PRESENCE_TEXT = _CONFIG.get("presence", {}).get("activity", "Rolling Roles")

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})

"""Application entry point for the rolling-roles bot."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import Dict, Optional

from art import tprint
from dotenv import load_dotenv

import settings
from adapters.csv_storage import RulesFileStorage
from adapters.github_storage import GithubLocation, GithubRulesStorage
from adapters.rule_formatting import format_rules_summary
from client import build_client, discord_token, github_token
from core.errors import RulesFormatError, StorageError
from core.rules_codec import sorted_rules
from core.rules_engine import GuildRules, RuleStore

NAME = "ROLLING ROLES"
FONT = "tarty-1"


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict) -> list[str]:
    redact_cfg = config.get("redact", {}) if config else {}
    if not redact_cfg.get("enabled", False):
        return []
    values = []
    for name in redact_cfg.get("patterns", []):
        value = os.getenv(name)
        if value:
            values.append(value)
    return sorted(set(values), key=len, reverse=True)


def _configure_logging() -> None:
    config = settings.LOGGING or {}
    if not config.get("enabled", False):
        return

    load_dotenv()
    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    secrets = _collect_redaction_values(config)
    formatter = _RedactingFormatter(secrets, fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/rolling-roles.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)


def _build_github_storage() -> Optional[GithubRulesStorage]:
    if not settings.GITHUB_ENABLED:
        return None
    if not settings.GITHUB_OWNER or not settings.GITHUB_REPO:
        raise RuntimeError("rules.github.owner and rules.github.repo are required when GitHub is enabled")
    location = GithubLocation(
        owner=settings.GITHUB_OWNER,
        repo=settings.GITHUB_REPO,
        path=settings.GITHUB_PATH,
        branch=settings.GITHUB_BRANCH,
    )
    return GithubRulesStorage(location, github_token())


def _load_rules(
    file_storage: RulesFileStorage, github_storage: Optional[GithubRulesStorage]
) -> Dict[int, GuildRules]:
    """Load the rule set from the file, falling back to GitHub when the file is missing."""

    logger = logging.getLogger(__name__)
    if file_storage.exists():
        rules = file_storage.load_sync()
        logger.info("Loaded rules from %s", file_storage.path)
        return rules
    if github_storage is not None:
        rules = github_storage.load_sync()
        logger.info("Rules file missing, loaded rules from GitHub")
        # Keep a local copy so write-through saves have something to update.
        file_storage.save_sync(rules)
        return rules
    raise RuntimeError(f"Rules file not found: {file_storage.path}")


def _run() -> None:
    _print_banner()
    _configure_logging()
    logger = logging.getLogger(__name__)

    logger.info("Starting rolling-roles")

    token = discord_token()
    file_storage = RulesFileStorage(settings.RULES_PATH)
    github_storage = _build_github_storage()
    rules = _load_rules(file_storage, github_storage)
    logger.info("%s rules are loaded across %s guilds", len(sorted_rules(rules)), len(rules))

    # Every admin change is written back to the rules file in the background.
    store = RuleStore(rules, on_change=file_storage.save)

    client = build_client(
        store=store,
        file_storage=file_storage,
        github_storage=github_storage,
        reconcile_config=settings.RECONCILE,
        command_guild_ids=settings.COMMAND_GUILD_IDS,
        presence_text=settings.PRESENCE_TEXT,
    )
    # Logging is configured above; keep discord.py from installing its own handler.
    client.run(token, log_handler=None)


def _setup() -> None:
    _print_banner()
    from frontend.app import RulesPanelApp

    RulesPanelApp().run()


def _check() -> int:
    """Validate the rules file and print a per-guild summary."""

    file_storage = RulesFileStorage(settings.RULES_PATH)
    try:
        rules = file_storage.load_sync()
    except (StorageError, RulesFormatError) as exc:
        print(f"Rules check failed: {exc}", file=sys.stderr)
        return 1

    ordered = sorted_rules(rules)
    if not ordered:
        print(f"No rules in {file_storage.path}")
        return 0
    print(format_rules_summary(ordered))
    print(f"\n{len(ordered)} rules across {len(rules)} guilds")
    return 0


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="rolling-roles")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the bot")
    subparsers.add_parser("config", help="Launch the rules editor TUI")
    subparsers.add_parser("check", help="Validate the rules file and print a summary")

    args = parser.parse_args(argv)
    if args.command == "config":
        _setup()
        return
    if args.command == "check":
        raise SystemExit(_check())
    _run()


if __name__ == "__main__":
    main()

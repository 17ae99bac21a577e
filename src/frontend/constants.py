"""Shared constants for the Textual UI."""

from __future__ import annotations

from pathlib import Path

DISCORD_BLURPLE = "#5865F2"
PROJECT_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_RULES_PATH = PROJECT_ROOT / "db.csv"

"""CSV file storage adapter.

Implements the core RulesStoragePort on top of a local CSV file.
"""

from __future__ import annotations

import asyncio
import os
import tempfile
from typing import Dict

from core.errors import StorageError
from core.rules_codec import dump_rules_csv, load_rules_csv
from core.rules_engine import GuildRules


class RulesFileStorage:
    """Thin file wrapper that satisfies the RulesStoragePort contract."""

    def __init__(self, path: str) -> None:
        self._path = path
        self._save_lock = asyncio.Lock()

    @property
    def path(self) -> str:
        return self._path

    @property
    def label(self) -> str:
        return self._path

    def exists(self) -> bool:
        return os.path.exists(self._path)

    def load_sync(self) -> Dict[int, GuildRules]:
        try:
            with open(self._path, "r", encoding="utf-8", newline="") as handle:
                text = handle.read()
        except OSError as exc:
            raise StorageError(f"Failed to read {self._path}: {exc.strerror or exc}") from exc
        except UnicodeDecodeError as exc:
            raise StorageError(f"Failed to read {self._path}: not valid UTF-8 ({exc.reason})") from exc
        return load_rules_csv(text)

    def save_sync(self, rules: Dict[int, GuildRules]) -> None:
        """Write the rules atomically (temp file + rename)."""

        text = dump_rules_csv(rules)
        directory = os.path.dirname(os.path.abspath(self._path))
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=".rules-", suffix=".csv", dir=directory)
            try:
                with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
                    handle.write(text)
                os.replace(tmp_path, self._path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as exc:
            raise StorageError(f"Failed to write {self._path}: {exc.strerror or exc}") from exc

    async def load(self) -> Dict[int, GuildRules]:
        return await asyncio.to_thread(self.load_sync)

    async def save(self, rules: Dict[int, GuildRules]) -> None:
        # Saves land in the order they were requested.
        async with self._save_lock:
            await asyncio.to_thread(self.save_sync, rules)

"""GitHub storage adapter.

Keeps the rules CSV in a GitHub repository through the contents API so the
rule set survives redeploys and can be reviewed as normal commits.
"""

from __future__ import annotations

import asyncio
import base64
import json
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from core.errors import StorageError
from core.rules_codec import dump_rules_csv, load_rules_csv
from core.rules_engine import GuildRules

API_ROOT = "https://api.github.com"
COMMIT_MESSAGE = "Update rules DB"


@dataclass(frozen=True)
class GithubLocation:
    owner: str
    repo: str
    path: str = "db.csv"
    branch: str = "main"


class GithubRulesStorage:
    """RulesStoragePort backed by one file in a GitHub repository."""

    def __init__(self, location: GithubLocation, token: Optional[str], timeout: float = 15) -> None:
        self._location = location
        self._token = token
        self._timeout = timeout

    @property
    def location(self) -> GithubLocation:
        return self._location

    @property
    def label(self) -> str:
        loc = self._location
        return f"GitHub {loc.owner}/{loc.repo}:{loc.path}@{loc.branch}"

    def _contents_url(self, with_ref: bool) -> str:
        loc = self._location
        url = (
            f"{API_ROOT}/repos/{urllib.parse.quote(loc.owner)}/{urllib.parse.quote(loc.repo)}"
            f"/contents/{urllib.parse.quote(loc.path)}"
        )
        if with_ref:
            url += f"?ref={urllib.parse.quote(loc.branch)}"
        return url

    def _request(self, method: str, url: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        data = json.dumps(payload).encode("utf-8") if payload is not None else None
        request = urllib.request.Request(url, data=data, method=method)
        request.add_header("Accept", "application/vnd.github+json")
        request.add_header("User-Agent", "rolling-roles")
        if data is not None:
            request.add_header("Content-Type", "application/json")
        if self._token:
            request.add_header("Authorization", f"Bearer {self._token}")
        try:
            with urllib.request.urlopen(request, timeout=self._timeout) as response:
                raw = response.read()
        except urllib.error.HTTPError as e:
            detail = e.read().decode("utf-8", errors="replace")
            raise StorageError(f"GitHub API error {e.code}: {detail}") from e
        except urllib.error.URLError as e:
            raise StorageError(f"GitHub API unreachable: {e.reason}") from e
        if not raw:
            return {}
        try:
            return json.loads(raw.decode("utf-8"))
        except ValueError as e:
            raise StorageError(f"GitHub API returned invalid JSON: {e}") from e

    def fetch(self) -> Tuple[str, str]:
        """Return (csv_text, blob_sha) of the rules file."""

        data = self._request("GET", self._contents_url(with_ref=True))
        content = data.get("content")
        if content is None:
            raise StorageError(f"GitHub file {self._location.path} has no content")
        try:
            text = base64.b64decode(content.replace("\n", ""), validate=True).decode("utf-8")
        except ValueError as e:
            # binascii.Error and UnicodeDecodeError are both ValueErrors.
            raise StorageError(f"GitHub file {self._location.path} is not valid UTF-8 CSV: {e}") from e
        return text, str(data.get("sha", ""))

    def load_sync(self) -> Dict[int, GuildRules]:
        text, _ = self.fetch()
        return load_rules_csv(text)

    def save_sync(self, rules: Dict[int, GuildRules]) -> None:
        if not self._token:
            raise StorageError("GITHUB_TOKEN is required to upload rules")
        # The contents API needs the current blob sha to update a file.
        try:
            _, sha = self.fetch()
        except StorageError as exc:
            if "error 404" not in str(exc):
                raise
            sha = None

        encoded = base64.b64encode(dump_rules_csv(rules).encode("utf-8")).decode("ascii")
        payload: Dict[str, Any] = {
            "message": COMMIT_MESSAGE,
            "content": encoded,
            "branch": self._location.branch,
        }
        if sha:
            payload["sha"] = sha
        self._request("PUT", self._contents_url(with_ref=False), payload)

    async def load(self) -> Dict[int, GuildRules]:
        return await asyncio.to_thread(self.load_sync)

    async def save(self, rules: Dict[int, GuildRules]) -> None:
        await asyncio.to_thread(self.save_sync, rules)

from __future__ import annotations

import base64
import io
import json
import urllib.error

import pytest

from adapters import github_storage
from adapters.github_storage import COMMIT_MESSAGE, GithubLocation, GithubRulesStorage
from core.errors import StorageError
from core.rules_codec import FIELDNAMES

CSV_TEXT = ",".join(FIELDNAMES) + "\n1,Guild,10,minecraft,named-activity,Minecraft,\n"


class FakeResponse:
    def __init__(self, payload: dict) -> None:
        self._body = json.dumps(payload).encode("utf-8")

    def read(self) -> bytes:
        return self._body

    def __enter__(self) -> "FakeResponse":
        return self

    def __exit__(self, *exc) -> None:
        return None


def _http_error(url: str, code: int) -> urllib.error.HTTPError:
    return urllib.error.HTTPError(url, code, "error", {}, io.BytesIO(b'{"message": "Not Found"}'))


def _storage(token: str = "secret") -> GithubRulesStorage:
    return GithubRulesStorage(GithubLocation(owner="me", repo="rules", branch="db-data"), token)


def test_load_decodes_contents(monkeypatch) -> None:
    requests = []

    def fake_urlopen(request, timeout):
        requests.append(request)
        content = base64.b64encode(CSV_TEXT.encode("utf-8")).decode("ascii")
        return FakeResponse({"content": content, "sha": "abc"})

    monkeypatch.setattr(github_storage.urllib.request, "urlopen", fake_urlopen)

    rules = _storage().load_sync()

    assert rules[1].get_rule(10).activities == {"Minecraft"}
    assert requests[0].full_url.endswith("/repos/me/rules/contents/db.csv?ref=db-data")
    assert requests[0].get_header("Authorization") == "Bearer secret"


def test_save_updates_existing_file(monkeypatch) -> None:
    requests = []

    def fake_urlopen(request, timeout):
        requests.append(request)
        if request.get_method() == "GET":
            return FakeResponse({"content": "", "sha": "abc"})
        return FakeResponse({"content": {"sha": "def"}})

    monkeypatch.setattr(github_storage.urllib.request, "urlopen", fake_urlopen)

    _storage().save_sync({})

    put = requests[-1]
    payload = json.loads(put.data.decode("utf-8"))
    assert put.get_method() == "PUT"
    assert payload["message"] == COMMIT_MESSAGE
    assert payload["branch"] == "db-data"
    assert payload["sha"] == "abc"
    assert base64.b64decode(payload["content"]).decode("utf-8") == ",".join(FIELDNAMES) + "\n"


def test_save_creates_missing_file(monkeypatch) -> None:
    requests = []

    def fake_urlopen(request, timeout):
        requests.append(request)
        if request.get_method() == "GET":
            raise _http_error(request.full_url, 404)
        return FakeResponse({})

    monkeypatch.setattr(github_storage.urllib.request, "urlopen", fake_urlopen)

    _storage().save_sync({})

    payload = json.loads(requests[-1].data.decode("utf-8"))
    assert "sha" not in payload


def test_save_requires_token() -> None:
    with pytest.raises(StorageError, match="GITHUB_TOKEN"):
        _storage(token="").save_sync({})


def test_api_errors_become_storage_errors(monkeypatch) -> None:
    def fake_urlopen(request, timeout):
        raise _http_error(request.full_url, 401)

    monkeypatch.setattr(github_storage.urllib.request, "urlopen", fake_urlopen)

    with pytest.raises(StorageError, match="401"):
        _storage().load_sync()


def test_non_utf8_blob_becomes_storage_error(monkeypatch) -> None:
    def fake_urlopen(request, timeout):
        content = base64.b64encode(b"\xff\xfe").decode("ascii")
        return FakeResponse({"content": content, "sha": "abc"})

    monkeypatch.setattr(github_storage.urllib.request, "urlopen", fake_urlopen)

    with pytest.raises(StorageError, match="db.csv"):
        _storage().load_sync()


def test_bad_base64_becomes_storage_error(monkeypatch) -> None:
    def fake_urlopen(request, timeout):
        return FakeResponse({"content": "not base64!", "sha": "abc"})

    monkeypatch.setattr(github_storage.urllib.request, "urlopen", fake_urlopen)

    with pytest.raises(StorageError):
        _storage().load_sync()


def test_bad_json_becomes_storage_error(monkeypatch) -> None:
    class RawResponse(FakeResponse):
        def read(self) -> bytes:
            return b"<html>maintenance</html>"

    def fake_urlopen(request, timeout):
        return RawResponse({})

    monkeypatch.setattr(github_storage.urllib.request, "urlopen", fake_urlopen)

    with pytest.raises(StorageError, match="invalid JSON"):
        _storage().load_sync()


def test_label_names_repository() -> None:
    assert _storage().label == "GitHub me/rules:db.csv@db-data"

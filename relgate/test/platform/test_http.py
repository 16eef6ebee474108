"""Tests for relgate.platform.http module."""

from __future__ import annotations

import base64
import urllib.error
import urllib.request
from pathlib import Path

import pytest

from relgate.core.result import Err, Ok
from relgate.platform.http import HttpError, MockHttpClient, RealHttpClient, basic_auth_header


def test_basic_auth_header() -> None:
    header = basic_auth_header("bot", "tok")
    encoded = header["Authorization"].removeprefix("Basic ")
    assert base64.b64decode(encoded) == b"bot:tok"


def test_http_error_str() -> None:
    assert str(HttpError("https://x", 404, "Not Found")) == "HTTP 404: Not Found (https://x)"
    assert str(HttpError("https://x", 0, "refused")) == "refused (https://x)"


class TestMockHttpClient:
    def test_records_calls_and_returns_responses(self) -> None:
        client = MockHttpClient()
        client.set_json("https://r/index.json", {"version": "3.0.0"})
        client.set_bytes("https://r/pkg.nupkg", b"zip")

        assert client.get_json("https://r/index.json") == Ok({"version": "3.0.0"})
        assert client.get_bytes("https://r/pkg.nupkg", {"A": "b"}) == Ok(b"zip")
        assert client.calls == [
            ("get_json", "https://r/index.json", {}),
            ("get_bytes", "https://r/pkg.nupkg", {"A": "b"}),
        ]

    def test_unknown_url_is_404(self) -> None:
        result = MockHttpClient().get_bytes("https://r/missing")
        assert isinstance(result, Err)
        assert result.error.status == 404

    def test_configured_error(self) -> None:
        client = MockHttpClient()
        client.set_json("https://r/index.json", HttpError("https://r/index.json", 401, "Unauthorized"))
        result = client.get_json("https://r/index.json")
        assert isinstance(result, Err)
        assert result.error.status == 401


class TestRealHttpClient:
    def test_reads_local_json(self, tmp_path: Path) -> None:
        path = tmp_path / "index.json"
        path.write_text('{"resources": []}', encoding="utf-8")

        result = RealHttpClient().get_json(path.as_uri())

        assert result == Ok({"resources": []})

    def test_rejects_non_object_json(self, tmp_path: Path) -> None:
        path = tmp_path / "list.json"
        path.write_text("[1, 2]", encoding="utf-8")

        result = RealHttpClient().get_json(path.as_uri())

        assert isinstance(result, Err)
        assert result.error.message == "Expected JSON object"

    def test_http_status_error(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def fake_urlopen(req: urllib.request.Request, **kwargs: object) -> object:
            raise urllib.error.HTTPError(req.full_url, 403, "Forbidden", hdrs=None, fp=None)  # type: ignore[arg-type]

        monkeypatch.setattr(urllib.request, "urlopen", fake_urlopen)

        result = RealHttpClient().get_bytes("https://r/pkg.nupkg")

        assert isinstance(result, Err)
        assert result.error.status == 403

    def test_timeout(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def fake_urlopen(req: urllib.request.Request, **kwargs: object) -> object:
            raise urllib.error.URLError(TimeoutError("timed out"))

        monkeypatch.setattr(urllib.request, "urlopen", fake_urlopen)

        result = RealHttpClient().get_bytes("https://r/pkg.nupkg")

        assert isinstance(result, Err)
        assert result.error.timed_out

from __future__ import annotations

import io
from urllib.error import HTTPError, URLError

import pytest


class DummyResponse:
    def __init__(self, status: int, body: bytes) -> None:
        self.status = status
        self._body = body

    def read(self) -> bytes:
        return self._body

    def __enter__(self) -> DummyResponse:
        return self

    def __exit__(self, *args) -> None:  # noqa: ANN002
        return None


def test_is_reachable_only_for_200(monkeypatch) -> None:  # noqa: ANN001
    from chrome_cli import http_client

    urls: list[str] = []

    def fake_urlopen(req, timeout: float = 5.0):  # noqa: ANN001, ARG001
        urls.append(req.full_url)
        return DummyResponse(200, b"{}")

    monkeypatch.setattr(http_client, "urlopen", fake_urlopen)
    assert http_client.is_reachable("http://127.0.0.1:9222/") is True
    assert urls == ["http://127.0.0.1:9222/json/version"]

    monkeypatch.setattr(http_client, "urlopen", lambda *_a, **_k: DummyResponse(204, b""))
    assert http_client.is_reachable("http://127.0.0.1:9222") is False


def test_is_reachable_false_on_network_error(monkeypatch) -> None:  # noqa: ANN001
    from chrome_cli import http_client

    def refuse(*_a, **_k):  # noqa: ANN002, ANN003
        raise URLError(ConnectionRefusedError(111, "refused"))

    monkeypatch.setattr(http_client, "urlopen", refuse)
    assert http_client.is_reachable("http://127.0.0.1:1") is False


def test_http_get_returns_error_status_with_body(monkeypatch) -> None:  # noqa: ANN001
    from chrome_cli import http_client

    def not_found(req, timeout: float = 5.0):  # noqa: ANN001, ARG001
        raise HTTPError(req.full_url, 404, "Not Found", {}, io.BytesIO(b"No such target id"))

    monkeypatch.setattr(http_client, "urlopen", not_found)
    status, body = http_client.http_get("http://127.0.0.1:9222/json/close/x")
    assert status == 404
    assert body == b"No such target id"


def test_http_get_json_errors(monkeypatch) -> None:  # noqa: ANN001
    from chrome_cli import http_client
    from chrome_cli.errors import DecodeError, HttpClientError

    monkeypatch.setattr(http_client, "urlopen", lambda *_a, **_k: DummyResponse(200, b"not json"))
    with pytest.raises(DecodeError):
        http_client.http_get_json("http://127.0.0.1:9222/json/list")

    monkeypatch.setattr(http_client, "urlopen", lambda *_a, **_k: DummyResponse(500, b""))
    with pytest.raises(HttpClientError):
        http_client.http_get_json("http://127.0.0.1:9222/json/list")

    def refuse(*_a, **_k):  # noqa: ANN002, ANN003
        raise URLError("refused")

    monkeypatch.setattr(http_client, "urlopen", refuse)
    with pytest.raises(HttpClientError):
        http_client.http_get_json("http://127.0.0.1:9222/json/list")


def test_non_http_answer_is_unreachable_and_a_client_error(monkeypatch) -> None:  # noqa: ANN001
    from http.client import BadStatusLine

    from chrome_cli import http_client
    from chrome_cli.errors import HttpClientError
    from chrome_cli.targets import TargetDirectory

    def garbage(*_a, **_k):  # noqa: ANN002, ANN003, ANN202
        raise BadStatusLine("NOT-HTTP garbage")

    monkeypatch.setattr(http_client, "urlopen", garbage)
    assert http_client.is_reachable("http://127.0.0.1:9222") is False
    with pytest.raises(HttpClientError, match="NOT-HTTP garbage"):
        http_client.http_get("http://127.0.0.1:9222/json/list")
    with pytest.raises(HttpClientError):
        TargetDirectory("http://127.0.0.1:9222").fetch_targets()

from __future__ import annotations

import json
import logging
from http.client import HTTPException
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from .errors import DecodeError, HttpClientError

logger = logging.getLogger("chrome_cli.http")

USER_AGENT = "chrome-cli/1.0"


def _build_request(url: str) -> Request:
    return Request(url, headers={"User-Agent": USER_AGENT})


def http_get(url: str, timeout: float = 5.0) -> tuple[int, bytes]:
    """GET a debugging-endpoint URL and return (status, body)."""
    try:
        with urlopen(_build_request(url), timeout=timeout) as resp:
            return resp.status, resp.read()
    except HTTPError as exc:
        # Non-2xx responses still carry a useful body (e.g. "No such target id").
        body = b""
        try:
            body = exc.read()
        except OSError:
            pass
        return exc.code, body
    except (TimeoutError, URLError, OSError, HTTPException) as exc:
        raise HttpClientError(str(getattr(exc, "reason", exc))) from exc


def http_get_json(url: str, timeout: float = 5.0) -> Any:
    status, body = http_get(url, timeout=timeout)
    if status != 200:
        raise HttpClientError(f"unexpected status {status} from {url}")
    try:
        return json.loads(body.decode())
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise DecodeError(f"malformed response from {url}: {exc}") from exc


def is_reachable(base_url: str, timeout: float = 5.0) -> bool:
    """Return True only if <base_url>/json/version answers 200.

    Single attempt, no retries: a slow-starting browser reads as absent.
    """
    endpoint = base_url.rstrip("/") + "/json/version"
    try:
        with urlopen(_build_request(endpoint), timeout=timeout) as resp:
            ok = resp.status == 200
    except (OSError, TimeoutError, URLError, ValueError, HTTPException):
        ok = False
    logger.info("probe %s reachable=%s", endpoint, ok)
    return ok


__all__ = ["HttpClientError", "DecodeError", "http_get", "http_get_json", "is_reachable"]

"""Target directory client for the remote-debugging HTTP endpoint.

Every call is a fresh round trip; nothing is cached between calls.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

from .errors import DecodeError, HttpClientError
from .http_client import http_get, http_get_json
from .session_cdp import CdpConnection

logger = logging.getLogger("chrome_cli.targets")

INTERNAL_URL_PREFIXES = ("chrome://", "chrome-untrusted://")


@dataclass(frozen=True)
class BrowsingTarget:
    id: str
    kind: str
    url: str = ""
    title: str = ""
    session_endpoint: str = ""

    @classmethod
    def from_json(cls, raw: dict[str, Any]) -> BrowsingTarget:
        return cls(
            id=str(raw.get("id") or ""),
            kind=str(raw.get("type") or ""),
            url=str(raw.get("url") or ""),
            title=str(raw.get("title") or ""),
            session_endpoint=str(raw.get("webSocketDebuggerUrl") or ""),
        )

    @property
    def short_id(self) -> str:
        return self.id[:8]


@dataclass(frozen=True)
class TargetInfo:
    """Target as reported by Target.getTargets (includes attachment state)."""

    id: str
    kind: str
    url: str = ""
    title: str = ""
    attached: bool = False

    @classmethod
    def from_cdp(cls, raw: dict[str, Any]) -> TargetInfo:
        return cls(
            id=str(raw.get("targetId") or ""),
            kind=str(raw.get("type") or ""),
            url=str(raw.get("url") or ""),
            title=str(raw.get("title") or ""),
            attached=bool(raw.get("attached")),
        )


def is_internal_url(url: str) -> bool:
    return url.startswith(INTERNAL_URL_PREFIXES)


def filter_pages(targets: Iterable[BrowsingTarget]) -> list[BrowsingTarget]:
    """Keep user-facing page targets, in directory order."""
    return [t for t in targets if t.kind == "page" and not is_internal_url(t.url)]


Connector = Callable[..., CdpConnection]


class TargetDirectory:
    def __init__(self, base_url: str, timeout: float = 5.0, connect: Connector = CdpConnection) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._connect = connect

    def fetch_targets(self) -> list[BrowsingTarget]:
        payload = http_get_json(f"{self.base_url}/json/list", timeout=self.timeout)
        if not isinstance(payload, list):
            raise DecodeError(f"expected a JSON array from {self.base_url}/json/list")
        return [BrowsingTarget.from_json(item) for item in payload if isinstance(item, dict)]

    def fetch_pages(self) -> list[BrowsingTarget]:
        return filter_pages(self.fetch_targets())

    def find(self, target_id: str) -> BrowsingTarget | None:
        for target in self.fetch_targets():
            if target.id == target_id:
                return target
        return None

    def version(self) -> dict[str, Any]:
        payload = http_get_json(f"{self.base_url}/json/version", timeout=self.timeout)
        if not isinstance(payload, dict):
            raise DecodeError(f"expected a JSON object from {self.base_url}/json/version")
        return payload

    def browser_endpoint(self) -> str:
        ws_url = str(self.version().get("webSocketDebuggerUrl") or "")
        if not ws_url:
            raise HttpClientError("CDP browser websocket url not found")
        return ws_url

    def open_browser(self, deadline: float | None = None) -> CdpConnection:
        return self._connect(self.browser_endpoint(), timeout=self.timeout, deadline=deadline)

    def fetch_target_infos(self) -> list[TargetInfo]:
        """Enumerate targets over the browser session, with the attached flag."""
        conn = self.open_browser()
        try:
            result = conn.send("Target.getTargets")
        finally:
            conn.close()
        infos = result.get("targetInfos")
        if not isinstance(infos, list):
            raise DecodeError("Target.getTargets returned no targetInfos")
        return [TargetInfo.from_cdp(item) for item in infos if isinstance(item, dict)]

    def new_target(self, url: str = "about:blank", deadline: float | None = None) -> str:
        conn = self.open_browser(deadline=deadline)
        try:
            result = conn.send("Target.createTarget", {"url": url})
        finally:
            conn.close()
        target_id = str(result.get("targetId") or "")
        if not target_id:
            raise HttpClientError("failed to create browser tab")
        logger.info("created target %s url=%s", target_id, url)
        return target_id

    def close_target(self, target_id: str) -> None:
        url = f"{self.base_url}/json/close/{quote(target_id, safe='')}"
        status, body = http_get(url, timeout=self.timeout)
        if status != 200:
            raise HttpClientError(f"status {status}: {body.decode(errors='replace').strip()}")
        logger.info("closed target %s", target_id)


__all__ = [
    "BrowsingTarget",
    "INTERNAL_URL_PREFIXES",
    "TargetDirectory",
    "TargetInfo",
    "filter_pages",
    "is_internal_url",
]

"""Low-level CDP websocket connection.

One connection per target (or per browser endpoint). Commands are sent with
monotonically increasing ids and the reply is correlated by id; any events
that arrive while waiting are buffered so later waits can consume them.
"""

from __future__ import annotations

import json
import logging
import socket
import time
from contextlib import suppress
from typing import Any

import websocket

from .errors import CdpError, CdpTimeoutError, HttpClientError

logger = logging.getLogger("chrome_cli.cdp")


def _is_timeout(exc: BaseException) -> bool:
    return isinstance(exc, (websocket.WebSocketTimeoutException, TimeoutError, socket.timeout))


class CdpConnection:
    """Blocking CDP connection built on websocket-client."""

    def __init__(self, ws_url: str, timeout: float = 5.0, deadline: float | None = None):
        if not ws_url:
            raise HttpClientError("missing websocket debugger url")
        self.ws_url = ws_url
        self.timeout = timeout
        # Absolute time.monotonic() cutoff inherited from the execution context.
        self.deadline = deadline
        self._next_id = 1
        self._event_queue: list[dict[str, Any]] = []
        self._max_event_queue = 2000
        self._closed = False
        try:
            self.ws = websocket.create_connection(
                ws_url, timeout=self._clamp(timeout), suppress_origin=True
            )
        except (websocket.WebSocketException, OSError) as exc:
            raise HttpClientError(f"cannot connect to {ws_url}: {exc}") from exc

    def _clamp(self, wanted: float) -> float:
        """Clamp a wait to the remaining deadline; raise once it has passed."""
        if self.deadline is None:
            return wanted
        remaining = self.deadline - time.monotonic()
        if remaining <= 0:
            raise CdpTimeoutError("deadline exceeded")
        return min(wanted, remaining)

    def _push_event(self, event: dict[str, Any]) -> None:
        self._event_queue.append(event)
        if len(self._event_queue) > self._max_event_queue:
            del self._event_queue[: len(self._event_queue) - self._max_event_queue]

    def _recv_json(self, wait: float) -> dict[str, Any] | None:
        """Receive one message; None on socket timeout or undecodable frame."""
        try:
            self.ws.settimeout(wait)
            raw = self.ws.recv()
        except Exception as exc:  # noqa: BLE001
            if _is_timeout(exc):
                return None
            raise HttpClientError(str(exc) or type(exc).__name__) from exc
        try:
            data = json.loads(raw)
        except (TypeError, json.JSONDecodeError):
            return None
        return data if isinstance(data, dict) else None

    @staticmethod
    def _is_event(data: dict[str, Any]) -> bool:
        return isinstance(data.get("method"), str) and "id" not in data

    def send(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Send a CDP command and wait for its result."""
        msg_id = self._next_id
        self._next_id += 1
        msg: dict[str, Any] = {"id": msg_id, "method": method}
        if params:
            msg["params"] = params
        try:
            self.ws.settimeout(self._clamp(self.timeout))
            self.ws.send(json.dumps(msg))
        except CdpTimeoutError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise HttpClientError(f"{method}: {exc}") from exc
        return self._recv_until(msg_id, method)

    def _recv_until(self, expected_id: int, method: str) -> dict[str, Any]:
        cutoff = time.monotonic() + self.timeout
        while True:
            remaining = cutoff - time.monotonic()
            if remaining <= 0:
                raise CdpTimeoutError(f"{method}: CDP response timed out")
            data = self._recv_json(self._clamp(min(0.5, remaining)))
            if data is None:
                continue
            if self._is_event(data):
                self._push_event(data)
                continue
            if data.get("id") == expected_id:
                if "error" in data:
                    raise CdpError(method, data["error"])
                result = data.get("result")
                return result if isinstance(result, dict) else {}

    def pop_event(self, event_name: str) -> dict[str, Any] | None:
        """Pop the oldest buffered event params with the given name."""
        for i, ev in enumerate(self._event_queue):
            if ev.get("method") == event_name:
                self._event_queue.pop(i)
                params = ev.get("params")
                return params if isinstance(params, dict) else {}
        return None

    def wait_for_event(self, event_name: str, timeout: float = 10.0) -> dict[str, Any] | None:
        queued = self.pop_event(event_name)
        if queued is not None:
            return queued
        cutoff = time.monotonic() + timeout
        while True:
            remaining = cutoff - time.monotonic()
            if remaining <= 0:
                return None
            data = self._recv_json(self._clamp(min(0.5, remaining)))
            if data is None or not self._is_event(data):
                continue
            if data.get("method") == event_name:
                params = data.get("params")
                return params if isinstance(params, dict) else {}
            self._push_event(data)

    def next_event(self, timeout: float = 0.5) -> dict[str, Any] | None:
        """Return the next event (buffered first), or None if none arrived in time."""
        if self._event_queue:
            return self._event_queue.pop(0)
        data = self._recv_json(self._clamp(timeout))
        if data is not None and self._is_event(data):
            return data
        return None

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Close the websocket. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        with suppress(Exception):
            self.ws.close()
        logger.debug("closed %s", self.ws_url)


__all__ = ["CdpConnection"]

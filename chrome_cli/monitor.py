"""Console and network monitoring.

A background EventListener reads CDP events off the context connection and
offers shaped events to a bounded EventQueue. When the queue is full the
newest event is dropped; the listener never blocks on the consumer.
"""

from __future__ import annotations

import json
import logging
import queue
import threading
import time
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from .errors import HttpClientError
from .session_cdp import CdpConnection

logger = logging.getLogger("chrome_cli.monitor")

QUEUE_CAPACITY = 100

Shaper = Callable[[dict[str, Any]], "dict[str, Any] | None"]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class EventQueue:
    """Bounded producer/consumer handoff with a drop-newest policy."""

    def __init__(self, capacity: int = QUEUE_CAPACITY) -> None:
        self.capacity = capacity
        self._queue: queue.Queue[dict[str, Any]] = queue.Queue(maxsize=capacity)
        self.dropped = 0

    def offer(self, item: dict[str, Any]) -> bool:
        try:
            self._queue.put_nowait(item)
        except queue.Full:
            self.dropped += 1
            return False
        return True

    def get(self, timeout: float | None = None) -> dict[str, Any] | None:
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        while True:
            try:
                items.append(self._queue.get_nowait())
            except queue.Empty:
                return items

    def __len__(self) -> int:
        return self._queue.qsize()


def _remote_object_value(arg: dict[str, Any]) -> Any:
    if "value" in arg:
        return arg["value"]
    if arg.get("unserializableValue") is not None:
        return arg["unserializableValue"]
    if arg.get("description") is not None:
        return arg["description"]
    return arg.get("type", "undefined")


def shape_console_event(event: dict[str, Any]) -> dict[str, Any] | None:
    """Map Runtime/Log events to a flat console message, or None to ignore."""
    method = event.get("method")
    params = event.get("params") if isinstance(event.get("params"), dict) else {}
    if method == "Runtime.consoleAPICalled":
        msg: dict[str, Any] = {"type": str(params.get("type") or "log"), "timestamp": _now()}
        values = [_remote_object_value(a) for a in params.get("args") or [] if isinstance(a, dict)]
        if len(values) == 1 and isinstance(values[0], str):
            msg["message"] = values[0]
        elif len(values) == 1:
            msg["args"] = values[0]
        elif values:
            msg["args"] = values
        return msg
    if method == "Runtime.exceptionThrown":
        details = params.get("exceptionDetails") if isinstance(params.get("exceptionDetails"), dict) else {}
        exception = details.get("exception") if isinstance(details.get("exception"), dict) else {}
        return {
            "type": "exception",
            "level": "error",
            "message": exception.get("description") or details.get("text") or "",
            "timestamp": _now(),
        }
    if method == "Log.entryAdded":
        entry = params.get("entry") if isinstance(params.get("entry"), dict) else {}
        return {
            "type": str(entry.get("source") or "other"),
            "level": str(entry.get("level") or ""),
            "message": str(entry.get("text") or ""),
            "timestamp": _now(),
        }
    return None


def shape_network_event(event: dict[str, Any]) -> dict[str, Any] | None:
    method = event.get("method")
    params = event.get("params") if isinstance(event.get("params"), dict) else {}
    request_id = str(params.get("requestId") or "")
    if method == "Network.requestWillBeSent":
        request = params.get("request") if isinstance(params.get("request"), dict) else {}
        return {
            "type": "request",
            "requestId": request_id,
            "url": request.get("url", ""),
            "method": request.get("method", ""),
            "timestamp": _now(),
        }
    if method == "Network.responseReceived":
        response = params.get("response") if isinstance(params.get("response"), dict) else {}
        return {
            "type": "response",
            "requestId": request_id,
            "url": response.get("url", ""),
            "status": response.get("status", 0),
            "statusText": response.get("statusText", ""),
            "timestamp": _now(),
        }
    if method == "Network.loadingFailed":
        return {
            "type": "failed",
            "requestId": request_id,
            "error": params.get("errorText", ""),
            "timestamp": _now(),
        }
    return None


class EventListener:
    """Background CDP event reader feeding an EventQueue."""

    def __init__(self, conn: CdpConnection, shape: Shaper, events: EventQueue, *, name: str = "cdp-events") -> None:
        self.conn = conn
        self._shape = shape
        self.events = events
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self.error: Exception | None = None

    def start(self) -> None:
        if not self._thread.is_alive():
            self._thread.start()

    def stop(self, timeout: float = 1.0) -> None:
        self._stop.set()
        if self._thread.is_alive():
            self._thread.join(timeout)

    @property
    def alive(self) -> bool:
        return self._thread.is_alive()

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                event = self.conn.next_event(timeout=0.25)
            except HttpClientError as exc:
                # Socket closed or the context deadline passed.
                if not self._stop.is_set():
                    self.error = exc
                    logger.info("event listener stopped: %s", exc)
                return
            if event is None:
                continue
            shaped = self._shape(event)
            if shaped is not None:
                self.events.offer(shaped)


def drain_until(
    events: EventQueue,
    emit: Callable[[dict[str, Any]], None],
    *,
    duration: float | None,
    listener: EventListener | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> int:
    """Emit events until duration elapses (None = follow forever). Returns count emitted."""
    deadline = None if duration is None else clock() + duration
    emitted = 0
    while True:
        if deadline is not None:
            remaining = deadline - clock()
            if remaining <= 0:
                break
            wait = min(0.25, remaining)
        else:
            wait = 0.25
        item = events.get(timeout=wait)
        if item is not None:
            emit(item)
            emitted += 1
            continue
        if listener is not None and not listener.alive and len(events) == 0:
            if listener.error is not None:
                raise listener.error
            break
    return emitted


def json_line(item: dict[str, Any]) -> str:
    return json.dumps(item, ensure_ascii=False)


__all__ = [
    "EventListener",
    "EventQueue",
    "QUEUE_CAPACITY",
    "drain_until",
    "json_line",
    "shape_console_event",
    "shape_network_event",
]

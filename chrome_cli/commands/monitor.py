"""
Monitoring commands - stream console and network events from the bound tab.
"""

from __future__ import annotations

import argparse
import json
import logging
import signal
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from ..context import ExecutionContext, open_context
from ..monitor import EventListener, EventQueue, Shaper, drain_until, json_line, shape_console_event, shape_network_event
from . import Command, monitor_timeout

if TYPE_CHECKING:
    from ..config import CliConfig

logger = logging.getLogger("chrome_cli.commands.monitor")

DEFAULT_DURATION = 5.0


def _raise_interrupt(signum: int, frame: object) -> None:
    raise KeyboardInterrupt


@contextmanager
def _terminate_as_interrupt() -> Iterator[None]:
    """Treat SIGTERM like Ctrl+C while following, so release still runs."""
    previous = signal.signal(signal.SIGTERM, _raise_interrupt)
    try:
        yield
    finally:
        signal.signal(signal.SIGTERM, previous)


def stream_events(
    ctx: ExecutionContext,
    shape: Shaper,
    emit: Callable[[dict[str, Any]], None],
    *,
    duration: float,
    follow: bool,
) -> int:
    events = EventQueue()
    listener = EventListener(ctx.session.conn, shape, events)
    listener.start()
    try:
        if not follow:
            return drain_until(events, emit, duration=duration, listener=listener)
        with _terminate_as_interrupt():
            try:
                return drain_until(events, emit, duration=None, listener=listener)
            except KeyboardInterrupt:
                return 0
    finally:
        listener.stop()
        if events.dropped:
            logger.warning("dropped %d events (consumer too slow)", events.dropped)


def _emit_json_line(item: dict[str, Any]) -> None:
    print(json_line(item), flush=True)


def _emit_indented(item: dict[str, Any]) -> None:
    print(json.dumps(item, indent=2, ensure_ascii=False), flush=True)


def handle_console(config: CliConfig, args: argparse.Namespace) -> int:
    timeout = monitor_timeout(config, args.duration, args.follow)
    with open_context(config, timeout, args.target) as ctx:
        ctx.session.enable("Runtime", "Log")
        if args.eval.strip():
            # Events produced while evaluating are buffered on the connection
            # and picked up once the listener starts.
            ctx.session.eval_js(args.eval)
        stream_events(ctx, shape_console_event, _emit_json_line, duration=args.duration, follow=args.follow)
    return 0


def handle_network(config: CliConfig, args: argparse.Namespace) -> int:
    timeout = monitor_timeout(config, args.duration, args.follow)
    with open_context(config, timeout, args.target) as ctx:
        ctx.session.enable("Network")
        stream_events(ctx, shape_network_event, _emit_indented, duration=args.duration, follow=args.follow)
    return 0


def _configure_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-d", "--duration", type=float, default=DEFAULT_DURATION, help="seconds to capture (default: 5)")
    parser.add_argument("-f", "--follow", action="store_true", help="capture until interrupted")


def _configure_console(parser: argparse.ArgumentParser) -> None:
    _configure_common(parser)
    parser.add_argument("--eval", default="", help="JavaScript to evaluate once capture is enabled")


MONITOR_COMMANDS: dict[str, Command] = {
    "console": Command(
        handle_console,
        "Capture console logs as NDJSON",
        _configure_console,
        description="Capture console calls, exceptions and browser log entries, one JSON object per line.",
    ),
    "network": Command(handle_network, "Capture network requests and responses", _configure_common),
}

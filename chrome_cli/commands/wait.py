"""
Wait commands - poll the page until text or an element shows up.
"""

from __future__ import annotations

import argparse
from typing import TYPE_CHECKING

from ..browser_session import BrowserSession
from ..context import open_context
from ..errors import CdpError, CommandError
from ..polling import RetryPolicy, poll_until
from . import Command

if TYPE_CHECKING:
    from ..config import CliConfig

DEFAULT_WAIT_TIMEOUT = 10.0
POLL_INTERVAL = 0.1


def wait_for_text(session: BrowserSession, text: str, timeout: float) -> None:
    poll_until(
        lambda: session.body_contains(text),
        RetryPolicy(interval=POLL_INTERVAL, timeout=timeout),
        message=f"timeout waiting for text: {text}",
    )


def wait_for_visible(session: BrowserSession, selector: str, timeout: float) -> None:
    def visible() -> bool:
        # The page may be mid-navigation; evaluation errors just mean "not yet".
        try:
            return session.is_visible(selector)
        except (CommandError, CdpError):
            return False

    poll_until(
        visible,
        RetryPolicy(interval=POLL_INTERVAL, timeout=timeout),
        message=f"timeout waiting for visible: {selector}",
    )


def _context_timeout(config: CliConfig, wait_timeout: float) -> float:
    return max(config.timeout, wait_timeout + 5.0)


def handle_wait(config: CliConfig, args: argparse.Namespace) -> int:
    with open_context(config, _context_timeout(config, args.timeout), args.target) as ctx:
        wait_for_text(ctx.session, args.text, args.timeout)
    return 0


def handle_waitfor(config: CliConfig, args: argparse.Namespace) -> int:
    with open_context(config, _context_timeout(config, args.timeout), args.target) as ctx:
        wait_for_visible(ctx.session, args.selector, args.timeout)
    return 0


def _configure_wait(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("text", help="text to wait for in document.body")
    parser.add_argument("--timeout", type=float, default=DEFAULT_WAIT_TIMEOUT, help="seconds to wait (default: 10)")


def _configure_waitfor(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("selector", help="CSS selector that must become visible")
    parser.add_argument("--timeout", type=float, default=DEFAULT_WAIT_TIMEOUT, help="seconds to wait (default: 10)")


WAIT_COMMANDS: dict[str, Command] = {
    "wait": Command(handle_wait, "Wait for text to appear on the page", _configure_wait),
    "waitfor": Command(handle_waitfor, "Wait for an element to become visible", _configure_waitfor),
}

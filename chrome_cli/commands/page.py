"""
Page commands - navigation and read-only inspection of the bound tab.
"""

from __future__ import annotations

import argparse
import json
from typing import TYPE_CHECKING

from ..context import open_context
from ..errors import CommandError
from . import Command

if TYPE_CHECKING:
    from ..config import CliConfig


def handle_navigate(config: CliConfig, args: argparse.Namespace) -> int:
    with open_context(config, config.timeout, args.target) as ctx:
        ctx.session.navigate(args.url, wait_load=True, timeout=ctx.remaining() or config.timeout)
    return 0


def handle_title(config: CliConfig, args: argparse.Namespace) -> int:
    with open_context(config, config.timeout, args.target) as ctx:
        print(ctx.session.get_title())
    return 0


def handle_html(config: CliConfig, args: argparse.Namespace) -> int:
    with open_context(config, config.timeout, args.target) as ctx:
        print(ctx.session.get_html(outer=args.outer))
    return 0


def format_eval_result(value: object) -> str | None:
    """Strings print raw, null prints nothing, anything else as indented JSON."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return json.dumps(value, indent=2, ensure_ascii=False)


def handle_eval(config: CliConfig, args: argparse.Namespace) -> int:
    with open_context(config, config.timeout, args.target) as ctx:
        text = format_eval_result(ctx.session.eval_js(args.script))
    if text is not None:
        print(text)
    return 0


def handle_rect(config: CliConfig, args: argparse.Namespace) -> int:
    with open_context(config, config.timeout, args.target) as ctx:
        rect = ctx.session.element_rect(args.selector)
    if rect is None:
        raise CommandError(f"element not found: {args.selector}")
    print(json.dumps(rect, indent=2))
    return 0


def _configure_navigate(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("url", help="URL to load")


def _configure_html(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-o", "--outer", action="store_true", help="print outerHTML instead of innerHTML")


def _configure_eval(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("script", help="JavaScript expression to evaluate")


def _configure_rect(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("selector", help="CSS selector")


PAGE_COMMANDS: dict[str, Command] = {
    "navigate": Command(handle_navigate, "Navigate to a URL and wait for load", _configure_navigate),
    "title": Command(handle_title, "Print the page title"),
    "html": Command(handle_html, "Print the page HTML", _configure_html),
    "eval": Command(handle_eval, "Evaluate JavaScript and print the result", _configure_eval),
    "rect": Command(handle_rect, "Print an element's bounding rect as JSON", _configure_rect),
}

"""
Input commands - mouse clicks, typing and form filling.
"""

from __future__ import annotations

import argparse
import sys
from typing import TYPE_CHECKING

from ..browser_session import DEFAULT_CLICKABLE
from ..context import open_context
from ..errors import CommandError
from . import Command

if TYPE_CHECKING:
    from ..config import CliConfig


def parse_coordinate(raw: str, axis: str) -> float:
    try:
        return float(raw)
    except ValueError:
        raise CommandError(f"invalid {axis} coordinate: {raw}") from None


def handle_click(config: CliConfig, args: argparse.Namespace) -> int:
    with open_context(config, config.timeout, args.target) as ctx:
        ctx.session.click_selector(args.selector, timeout=ctx.remaining() or config.timeout)
    return 0


def handle_clicktext(config: CliConfig, args: argparse.Namespace) -> int:
    with open_context(config, config.timeout, args.target) as ctx:
        ctx.session.click_text(args.text, selector=args.selector, index=args.index)
    return 0


def handle_clickxy(config: CliConfig, args: argparse.Namespace) -> int:
    x = parse_coordinate(args.x, "x")
    y = parse_coordinate(args.y, "y")
    with open_context(config, config.timeout, args.target) as ctx:
        ctx.session.click(x, y)
    return 0


def handle_type(config: CliConfig, args: argparse.Namespace) -> int:
    with open_context(config, config.timeout, args.target) as ctx:
        ctx.session.type_into(args.selector, args.text, append=args.append)
    return 0


def handle_fill(config: CliConfig, args: argparse.Namespace) -> int:
    with open_context(config, config.timeout, args.target) as ctx:
        actual = ctx.session.fill(args.selector, args.value)
    if actual != args.value:
        print(f"warning: value mismatch - requested {args.value!r} but got {actual!r}", file=sys.stderr)
    return 0


def _configure_click(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("selector", help="CSS selector of the element to click")


def _configure_clicktext(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("text", help="exact button/link text to click")
    parser.add_argument("--selector", default=DEFAULT_CLICKABLE, help="CSS selector limiting the search")
    parser.add_argument("--index", type=int, default=0, help="which match to click (0-based)")


def _configure_clickxy(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("x", help="X coordinate in viewport pixels")
    parser.add_argument("y", help="Y coordinate in viewport pixels")


def _configure_type(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("selector", help="CSS selector of the input")
    parser.add_argument("text", help="text to type")
    parser.add_argument("-a", "--append", action="store_true", help="keep existing text and type at the end")


def _configure_fill(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("selector", help="CSS selector of the form field")
    parser.add_argument("value", help="value to set")


INPUT_COMMANDS: dict[str, Command] = {
    "click": Command(handle_click, "Click an element by CSS selector", _configure_click),
    "clicktext": Command(handle_clicktext, "Click an element by its visible text", _configure_clicktext),
    "clickxy": Command(handle_clickxy, "Click at viewport coordinates", _configure_clickxy),
    "type": Command(handle_type, "Type text into an element", _configure_type),
    "fill": Command(
        handle_fill,
        "Set a form field value",
        _configure_fill,
        description="Set the value with the native setter and fire input/change events. "
        "Supports INPUT, TEXTAREA, SELECT and contenteditable elements.",
    ),
}

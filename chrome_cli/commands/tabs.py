"""
Tab commands - list, open and close tabs of an already running browser.
"""

from __future__ import annotations

import argparse
import logging
from typing import TYPE_CHECKING

from ..errors import ChromeCliError, TargetNotFound
from ..resolver import resolve_target
from ..targets import TargetDirectory, TargetInfo
from . import Command, require_running

if TYPE_CHECKING:
    from ..config import CliConfig

logger = logging.getLogger("chrome_cli.commands.tabs")


def _directory(config: CliConfig) -> TargetDirectory:
    return TargetDirectory(config.base_url, timeout=config.probe_timeout)


def handle_list(config: CliConfig, args: argparse.Namespace) -> int:
    require_running(config)
    directory = _directory(config)
    pages = directory.fetch_pages()
    if not pages:
        print("no page tabs")
        return 0

    try:
        infos = directory.fetch_target_infos()
    except ChromeCliError as exc:
        logger.info("attachment state unavailable: %s", exc)
        infos = []
    info_by_id: dict[str, TargetInfo] = {info.id: info for info in infos}
    preferred = resolve_target(directory, "", config.overrides, config.default_selector).target_id

    for page in pages:
        marker = "*" if preferred and page.id == preferred else " "
        print(f"{marker}[{page.short_id}] {page.title or '(no title)'}")
        print(f"  {page.url}")
        info = info_by_id.get(page.id)
        if info is not None:
            print(f"  status: {'attached' if info.attached else 'detached'}")
    return 0


def handle_newtab(config: CliConfig, args: argparse.Namespace) -> int:
    require_running(config)
    target_id = _directory(config).new_target(args.url or "about:blank")
    print(f"Created tab: {target_id}")
    return 0


def handle_close(config: CliConfig, args: argparse.Namespace) -> int:
    require_running(config)
    directory = _directory(config)
    resolution = resolve_target(directory, args.target, config.overrides, config.default_selector)
    if not resolution.found:
        raise TargetNotFound(resolution.reason)
    directory.close_target(resolution.target_id)
    print(f"Closed tab: {resolution.target_id}")
    return 0


def _configure_newtab(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("url", nargs="?", default="about:blank", help="URL to open in the new tab")


TAB_COMMANDS: dict[str, Command] = {
    "list": Command(
        handle_list,
        "List open tabs (running browser only)",
        takes_target=False,
        description="List page tabs; * marks the tab commands act on by default.",
    ),
    "newtab": Command(handle_newtab, "Create a new tab", _configure_newtab, takes_target=False),
    "close": Command(handle_close, "Close a tab"),
}

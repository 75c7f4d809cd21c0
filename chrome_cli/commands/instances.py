"""
Instance commands - start, list and stop long-lived debugging browsers.
"""

from __future__ import annotations

import argparse
import sys
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from ..config import expand_path, parse_port
from ..errors import CommandError
from ..http_client import is_reachable
from ..launcher import BrowserLauncher, default_user_data_dir
from ..registry import InstanceRecord, InstanceRegistry, utc_now_iso
from . import Command

if TYPE_CHECKING:
    from ..config import CliConfig

TABLE_ROW = "{:<6}  {:<40}  {}"
DIR_COLUMN_WIDTH = 40

ALREADY_RUNNING_HINT = """\
Chrome already running on port {port}. Use:
  chrome list                    # See open tabs
  chrome newtab <url>            # Open new tab
  chrome -t <url-prefix> <cmd>   # Target existing tab"""

NO_INSTANCES_HINT = """\
No Chrome instances running

Launch one with:
  chrome launch
  chrome launch --port 9223 --user-data-dir ~/.chrome-twitter"""


def _registry(config: CliConfig) -> InstanceRegistry:
    return InstanceRegistry(config.instances_dir)


def handle_launch(config: CliConfig, args: argparse.Namespace) -> int:
    try:
        port = parse_port(args.port) if args.port else config.port
    except ValueError as exc:
        raise CommandError(str(exc)) from None
    base_url = f"http://127.0.0.1:{port}"
    if is_reachable(base_url, timeout=config.probe_timeout):
        print(ALREADY_RUNNING_HINT.format(port=port), file=sys.stderr)
        return 0

    launcher = BrowserLauncher(config)
    binary = launcher.binary()
    user_data_dir = expand_path(args.user_data_dir.strip() or default_user_data_dir())
    log_file = args.log_file.strip() or str(Path(tempfile.gettempdir()) / "chrome-launch.log")

    print(f"Launching Chrome on port {port}...")
    print(f"Chrome path: {binary}")
    print(f"User data: {user_data_dir}")
    print(f"Logs: {log_file}")
    print("Waiting for Chrome to start...", flush=True)

    result = launcher.launch_persistent(port, user_data_dir, log_file)
    if not result.started:
        print(f"warning: {result.message}. Check {result.log_path} for details.", file=sys.stderr)
        return 0

    record = InstanceRecord(
        port=port,
        profile_dir=user_data_dir,
        process_id=result.process_id or 0,
        started_at=utc_now_iso(),
        log_file=result.log_path or "",
    )
    try:
        _registry(config).write(record)
    except OSError as exc:
        print(f"warning: unable to record instance: {exc}", file=sys.stderr)
    print(result.message)
    return 0


def _shorten(path: str, width: int = DIR_COLUMN_WIDTH) -> str:
    if len(path) <= width:
        return path
    return "..." + path[-(width - 3) :]


def handle_instances(config: CliConfig, args: argparse.Namespace) -> int:
    records = _registry(config).list()
    if not records:
        print(NO_INSTANCES_HINT)
        return 0
    print(TABLE_ROW.format("PORT", "USER_DATA_DIR", "STARTED"))
    print(TABLE_ROW.format("----", "-------------", "-------"))
    for record in records:
        print(TABLE_ROW.format(record.port, _shorten(record.profile_dir), record.started_at))
    return 0


def handle_quit(config: CliConfig, args: argparse.Namespace) -> int:
    port = config.port
    if not is_reachable(config.base_url, timeout=config.probe_timeout):
        print(f"No Chrome instance running on port {port}")
        return 0
    print(f"Quitting Chrome on port {port}...")
    if not BrowserLauncher(config).quit(port):
        raise CommandError(f"Chrome may still be running on port {port}")
    _registry(config).remove(port)
    print(f"Chrome on port {port} has been closed")
    return 0


def _configure_launch(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--port", default="", help="debugging port (default: global -p, CHROME_PORT or 9222)")
    parser.add_argument("--user-data-dir", default="", help="profile directory (default: ~/.chrome, C:\\temp\\chrome on WSL)")
    parser.add_argument("--log-file", default="", help="browser output log (default: <tmp>/chrome-launch.log)")


INSTANCE_COMMANDS: dict[str, Command] = {
    "launch": Command(
        handle_launch,
        "Launch Chrome with remote debugging",
        _configure_launch,
        takes_target=False,
        description="Start a detached browser bound to localhost that outlives this command.",
    ),
    "instances": Command(handle_instances, "List browsers started with launch", takes_target=False),
    "quit": Command(handle_quit, "Gracefully close the browser on the current port", takes_target=False),
}

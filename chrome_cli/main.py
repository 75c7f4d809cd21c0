"""chrome - drive a Chromium-family browser over its remote-debugging port.

Global options are read up to the first non-option token (the command); the
rest of argv belongs to the command's own parser.
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Sequence
from dataclasses import dataclass, field

from .commands import CommandRegistry, build_registry
from .config import CliConfig, parse_port
from .errors import ChromeCliError

LOG_LEVEL_ENV = "CHROME_CLI_LOG_LEVEL"

logger = logging.getLogger("chrome_cli")

USAGE_HEADER = """\
Chrome CLI - browser automation over the remote-debugging protocol

Quick Start:
  chrome list                              # See open tabs (use this first!)
  chrome newtab http://localhost:8000      # Open a new tab
  chrome -t localhost:8000 click "#btn"    # Target tab by URL prefix

Global Options (must appear before command):
  -p, --port PORT                          # Chrome debug port (default: 9222, env: CHROME_PORT)
  -t, --target URL_PREFIX                  # Select tab by URL prefix (env: CHROME_TARGET)

Multi-Instance Usage:
  chrome launch --port 9223 --user-data-dir ~/.chrome-twitter
  chrome -p 9223 newtab https://x.com      # Use different port
  chrome instances                         # List running Chrome instances
  chrome -p 9223 quit                      # Quit Chrome on port 9223

Selectors:
  Commands that take SELECTOR use standard CSS selectors only.
  To click by visible text, use 'clicktext' instead of 'click'.

Commands:"""


class UsageError(ChromeCliError):
    pass


@dataclass
class GlobalOptions:
    port: str = ""
    target: str = ""
    show_help: bool = False
    rest: list[str] = field(default_factory=list)


def parse_global_options(argv: Sequence[str]) -> GlobalOptions:
    opts = GlobalOptions()
    args = list(argv)
    while args:
        arg = args[0]
        if arg in ("-h", "--help"):
            opts.show_help = True
            return opts
        matched = False
        for short, long, attr in (("-p", "--port", "port"), ("-t", "--target", "target")):
            if arg in (short, long):
                if len(args) < 2:
                    raise UsageError(f"{long} requires a value")
                setattr(opts, attr, args[1])
                args = args[2:]
                matched = True
                break
            for prefix in (f"{long}=", f"{short}="):
                if arg.startswith(prefix):
                    setattr(opts, attr, arg[len(prefix) :])
                    args = args[1:]
                    matched = True
                    break
            if matched:
                break
        if not matched:
            break
    opts.rest = args
    return opts


def usage(registry: CommandRegistry) -> str:
    names = registry.command_names
    width = max((len(n) for n in names), default=0)
    lines = [USAGE_HEADER]
    for name in names:
        command = registry.get(name)
        lines.append(f"  {name:<{width}} {command.help if command else ''}")
    return "\n".join(lines)


def configure_logging(environ: dict[str, str] | None = None) -> None:
    env = os.environ if environ is None else environ
    level_name = (env.get(LOG_LEVEL_ENV) or "WARNING").strip().upper()
    level = getattr(logging, level_name, None)
    if not isinstance(level, int):
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(message)s", stream=sys.stderr)


def build_config(opts: GlobalOptions, environ: dict[str, str] | None = None) -> CliConfig:
    config = CliConfig.from_env(environ)
    port = parse_port(opts.port) if opts.port else None
    return config.with_overrides(port=port, target=opts.target)


def main(argv: Sequence[str] | None = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    configure_logging()
    registry = build_registry()

    if not argv:
        print(usage(registry), file=sys.stderr)
        return 1
    try:
        opts = parse_global_options(argv)
    except UsageError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    if opts.show_help:
        print(usage(registry), file=sys.stderr)
        return 0
    if not opts.rest or not registry.has(opts.rest[0]):
        if opts.rest:
            print(f"error: unknown command: {opts.rest[0]}", file=sys.stderr)
        print(usage(registry), file=sys.stderr)
        return 1

    try:
        config = build_config(opts)
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    try:
        return registry.run(config, opts.rest)
    except (ChromeCliError, OSError) as exc:
        logger.debug("command %s failed", opts.rest[0], exc_info=True)
        print(f"error: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130
    except Exception as exc:  # noqa: BLE001
        logger.debug("unexpected failure in %s", opts.rest[0], exc_info=True)
        print(f"error: {type(exc).__name__}: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())

"""
CLI commands organized by domain.

Each command module exports a `<DOMAIN>_COMMANDS` table of name -> Command.
Handlers follow the signature: (config, args) -> exit code (None means 0).
"""

from __future__ import annotations

import argparse
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..errors import CommandError

if TYPE_CHECKING:
    from ..config import CliConfig

logger = logging.getLogger("chrome_cli.commands")

HandlerFunc = Callable[["CliConfig", argparse.Namespace], "int | None"]
ConfigureFunc = Callable[[argparse.ArgumentParser], None]


def _no_arguments(parser: argparse.ArgumentParser) -> None:
    return None


@dataclass(frozen=True)
class Command:
    handler: HandlerFunc
    help: str
    configure: ConfigureFunc = _no_arguments
    takes_target: bool = True
    description: str = ""
    # Handler parses its own argv (args.argv); option-like tokens are not interpreted.
    raw_args: bool = False


class CommandParser(argparse.ArgumentParser):
    """ArgumentParser that reports usage errors as CommandError instead of exiting."""

    def error(self, message: str) -> None:  # type: ignore[override]
        raise CommandError(f"{self.prog}: {message}")


class CommandRegistry:
    """Name -> Command table with argument parsing and dispatch."""

    def __init__(self) -> None:
        self._commands: dict[str, Command] = {}

    def register(self, name: str, command: Command) -> None:
        self._commands[name] = command

    def register_many(self, commands: dict[str, Command]) -> None:
        self._commands.update(commands)

    def get(self, name: str) -> Command | None:
        return self._commands.get(name)

    def has(self, name: str) -> bool:
        return name in self._commands

    def takes_target(self, name: str) -> bool:
        command = self._commands.get(name)
        return bool(command and command.takes_target)

    def build_parser(self, name: str) -> CommandParser:
        command = self._commands[name]
        parser = CommandParser(prog=f"chrome {name}", description=command.description or command.help)
        if command.takes_target:
            parser.add_argument("-t", "--target", default="", help="URL prefix to select tab (first match wins)")
        command.configure(parser)
        return parser

    def run(self, config: CliConfig, argv: Sequence[str]) -> int:
        """Parse argv (command name first) and run the handler."""
        if not argv:
            raise CommandError("command is required")
        name, rest = argv[0], list(argv[1:])
        command = self._commands.get(name)
        if command is None:
            raise CommandError(f"unknown command: {name}")
        parser = self.build_parser(name)
        if command.raw_args:
            if rest in (["-h"], ["--help"]):
                parser.print_help()
                return 0
            args = argparse.Namespace(argv=rest)
        else:
            args = parser.parse_args(rest)
        logger.info("running %s %s", name, " ".join(rest))
        code = command.handler(config, args)
        return 0 if code is None else int(code)

    @property
    def command_names(self) -> list[str]:
        return sorted(self._commands)

    def __len__(self) -> int:
        return len(self._commands)


def require_running(config: CliConfig) -> None:
    """Tab-management commands never launch a browser of their own."""
    from ..http_client import is_reachable

    if not is_reachable(config.base_url, timeout=config.probe_timeout):
        raise CommandError(f"Chrome not running on port {config.port}")


def monitor_timeout(config: CliConfig, duration: float, follow: bool) -> float:
    """Context timeout for commands that watch the page for `duration` seconds."""
    if follow:
        return 0.0
    return max(config.timeout, duration + 5.0)


def build_registry() -> CommandRegistry:
    from .capture import CAPTURE_COMMANDS
    from .input import INPUT_COMMANDS
    from .instances import INSTANCE_COMMANDS
    from .monitor import MONITOR_COMMANDS
    from .page import PAGE_COMMANDS
    from .tabs import TAB_COMMANDS
    from .wait import WAIT_COMMANDS

    registry = CommandRegistry()
    registry.register_many(
        {
            **TAB_COMMANDS,
            **PAGE_COMMANDS,
            **INPUT_COMMANDS,
            **WAIT_COMMANDS,
            **CAPTURE_COMMANDS,
            **MONITOR_COMMANDS,
            **INSTANCE_COMMANDS,
        }
    )
    return registry


__all__ = [
    "Command",
    "CommandParser",
    "CommandRegistry",
    "HandlerFunc",
    "build_registry",
]

"""
Capture commands - screenshots, recorded steps and slideshows built from them.
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from ..context import open_context
from ..errors import ChromeCliError, CommandError
from ..slideshow import DEFAULT_FPS, generate_slideshow
from ..steps import (
    StepRecord,
    load_step_records_from_dir,
    prepare_screenshot_path,
    remember_step,
    step_summary,
)
from . import Command

if TYPE_CHECKING:
    from ..config import CliConfig

logger = logging.getLogger("chrome_cli.commands.capture")


def _effective_label(label: str) -> str:
    return label.strip() or "shot"


def _screenshot_args(args: argparse.Namespace) -> list[str]:
    collected: list[str] = []
    for flag, value in (
        ("path", args.path),
        ("output-dir", args.output_dir),
        ("label", args.label),
        ("note", args.note),
        ("target", args.target.strip()),
    ):
        if value:
            collected.append(f"--{flag}={value}")
    return collected


def _remember(record: StepRecord, config: CliConfig) -> StepRecord:
    try:
        return remember_step(record, config.cache_dir)
    except OSError as exc:
        print(f"warning: unable to persist metadata: {exc}", file=sys.stderr)
        return record


def handle_screenshot(config: CliConfig, args: argparse.Namespace) -> int:
    label = _effective_label(args.label)
    path = prepare_screenshot_path(args.path, args.output_dir, label, default_dir=config.shots_dir)
    with open_context(config, config.timeout, args.target) as ctx:
        ctx.session.bring_to_front()
        data = ctx.session.screenshot("png")
    path.write_bytes(data)
    logger.info("wrote %d bytes to %s", len(data), path)

    record = _remember(
        StepRecord(
            action="screenshot",
            args=_screenshot_args(args),
            target=args.target.strip(),
            label=label,
            note=args.note,
            screenshot=str(path),
            created_at=datetime.now(timezone.utc),
        ),
        config,
    )
    print(f"saved {record.screenshot}")
    if record.note:
        print(f"note: {record.note}")
    return 0


# ─────────────────────────────────────────────────────────────────────────────
# step
# ─────────────────────────────────────────────────────────────────────────────


@dataclass
class StepInvocation:
    action: str
    action_args: list[str] = field(default_factory=list)
    target: str = ""
    output_dir: str = ""
    label: str = ""
    note: str = ""


_STEP_OPTIONS = {
    "-t": "target",
    "--target": "target",
    "-o": "output_dir",
    "--output-dir": "output_dir",
    "-l": "label",
    "--label": "label",
    "-n": "note",
    "--note": "note",
}


def parse_step_args(argv: Sequence[str]) -> StepInvocation:
    """Split `step` arguments into step options, the action and its own arguments.

    Options are only recognised before the action name; everything after it
    belongs to the action.
    """
    values: dict[str, str] = {}
    pos = 0
    tokens = list(argv)
    while pos < len(tokens):
        tok = tokens[pos]
        if tok == "--":
            pos += 1
            break
        if not tok.startswith("-"):
            break
        name, sep, inline = tok.partition("=")
        if name not in _STEP_OPTIONS or (sep and not name.startswith("--")):
            raise CommandError(f"unknown step option {tok!r}")
        long_name = "--" + _STEP_OPTIONS[name].replace("_", "-")
        if sep:
            if not inline:
                raise CommandError(f"{long_name} requires a value")
            values[_STEP_OPTIONS[name]] = inline
            pos += 1
            continue
        if pos + 1 >= len(tokens):
            raise CommandError(f"{long_name} requires a value")
        values[_STEP_OPTIONS[name]] = tokens[pos + 1]
        pos += 2

    if pos >= len(tokens):
        raise CommandError("action is required")
    return StepInvocation(action=tokens[pos], action_args=tokens[pos + 1 :], **values)


def apply_target(args: Sequence[str], target: str) -> list[str]:
    """Prepend -t target unless the action arguments already pick a tab."""
    if not target:
        return list(args)
    for arg in args:
        if arg in ("-t", "--target") or arg.startswith(("-t=", "--target=")):
            return list(args)
    return ["-t", target, *args]


def handle_step(config: CliConfig, args: argparse.Namespace) -> int:
    from . import build_registry

    step = parse_step_args(args.argv)
    target = step.target or config.default_selector
    if step.action == "step":
        raise CommandError("step cannot run step")
    registry = build_registry()
    if not registry.has(step.action):
        raise CommandError(f"unknown command: {step.action}")

    action_args = apply_target(step.action_args, target) if registry.takes_target(step.action) else list(step.action_args)
    summary = " ".join(action_args).strip()
    print(f"action: chrome {step.action} {summary}".rstrip())
    try:
        code = registry.run(config, [step.action, *action_args])
    except ChromeCliError as exc:
        raise CommandError(f"executing action: {exc}") from exc
    if code != 0:
        raise CommandError(f"executing action: {step.action} exited with status {code}")

    label = step.label or step.action
    path = prepare_screenshot_path("", step.output_dir, label, default_dir=config.shots_dir)
    shot_args = ["screenshot", "--path", str(path)]
    if step.label:
        shot_args += ["--label", step.label]
    if step.note:
        shot_args += ["--note", step.note]
    if target:
        shot_args += ["--target", target]
    try:
        registry.run(config, shot_args)
    except ChromeCliError as exc:
        raise CommandError(f"capturing screenshot: {exc}") from exc

    record = _remember(
        StepRecord(
            action=step.action,
            args=action_args,
            target=target,
            label=label,
            note=step.note,
            screenshot=str(path),
            created_at=datetime.now(timezone.utc),
        ),
        config,
    )
    print(step_summary(record))
    print(f"metadata: {record.metadata_path}")
    if record.note:
        print(f"note: {record.note}")
    return 0


# ─────────────────────────────────────────────────────────────────────────────
# slideshow
# ─────────────────────────────────────────────────────────────────────────────


def handle_slideshow(config: CliConfig, args: argparse.Namespace) -> int:
    shots_dir = Path(args.shots_dir.strip()).expanduser() if args.shots_dir.strip() else config.shots_dir
    try:
        records = load_step_records_from_dir(shots_dir)
    except (OSError, ValueError) as exc:
        raise CommandError(f"loading step records: {exc}") from exc
    if not records:
        raise CommandError(f"no screenshots found in {shots_dir}")

    output = args.output.strip()
    if not output:
        stamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
        output = str(shots_dir / f"slideshow-{stamp}.mp4")
    fps = args.fps if args.fps > 0 else DEFAULT_FPS
    created = generate_slideshow(records, output, fps=fps, verbose=args.verbose)
    print(f"slideshow created: {created}")
    return 0


def _configure_screenshot(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--path", default="", help="exact file path (overrides --output-dir)")
    parser.add_argument("-o", "--output-dir", default="", help="directory for screenshots (default: ~/chrome-shots)")
    parser.add_argument("-l", "--label", default="", help="label embedded in the filename")
    parser.add_argument("-n", "--note", default="", help="note saved in metadata")


def _configure_step(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("argv", nargs=argparse.REMAINDER, help="[-t T] [-o DIR] [-l LABEL] [-n NOTE] ACTION [ARGS...]")


def _configure_slideshow(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-d", "--shots-dir", default="", help="directory with screenshots and metadata")
    parser.add_argument("-o", "--output", default="", help="output mp4 path (default: <shots-dir>/slideshow-<timestamp>.mp4)")
    parser.add_argument("-f", "--fps", type=int, default=DEFAULT_FPS, help="output frames per second (default: 30)")
    parser.add_argument("--verbose", action="store_true", help="show ffmpeg banner and progress output")


CAPTURE_COMMANDS: dict[str, Command] = {
    "screenshot": Command(handle_screenshot, "Capture a screenshot with metadata", _configure_screenshot),
    "step": Command(
        handle_step,
        "Run an action, then capture a screenshot",
        _configure_step,
        takes_target=False,
        raw_args=True,
        description="Run ACTION in-process, then screenshot the tab and record the step.",
    ),
    "slideshow": Command(handle_slideshow, "Build an mp4 slideshow from captured steps", _configure_slideshow, takes_target=False),
}

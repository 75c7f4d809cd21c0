"""Render captured steps as an mp4 with burned-in captions (ffmpeg + SRT)."""

from __future__ import annotations

import logging
import shutil
import subprocess
import tempfile
from collections.abc import Sequence
from pathlib import Path

from PIL import Image

from .errors import CommandError
from .steps import StepRecord

logger = logging.getLogger("chrome_cli.slideshow")

FRAME_SECONDS = 5
DEFAULT_FPS = 30
CAPTION_WIDTH = 72
SUBTITLE_FONT = "DejaVu Sans"
SUBTITLE_FONT_SIZE = 32


def caption_for(record: StepRecord) -> str:
    note = record.note.strip()
    if note:
        return note
    if record.label:
        return f"{record.action} ({record.label})"
    args = " ".join(record.args).strip()
    if args:
        return f"{record.action} {args}"
    return record.action.strip()


def wrap_text(text: str, width: int = CAPTION_WIDTH) -> list[str]:
    """Greedy word wrap; a single word longer than width gets its own line."""
    if width <= 0:
        return [text]
    words = text.split()
    if not words:
        return [""]
    lines: list[str] = []
    current = ""
    for word in words:
        if not current:
            current = word
        elif len(current) + 1 + len(word) <= width:
            current = f"{current} {word}"
        else:
            lines.append(current)
            current = word
    lines.append(current)
    return lines


def format_srt_time(seconds: float) -> str:
    millis_total = max(0, int(round(seconds * 1000)))
    hours, rest = divmod(millis_total, 3_600_000)
    minutes, rest = divmod(rest, 60_000)
    secs, millis = divmod(rest, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d},{millis:03d}"


def escape_for_concat(path: str) -> str:
    return path.replace("'", "'\\''")


def escape_for_filter(path: str) -> str:
    return path.replace("'", "\\'\\''").replace(":", "\\:")


def max_dimensions(records: Sequence[StepRecord]) -> tuple[int, int]:
    """Largest width and height across screenshots, rounded up to even numbers."""
    width = height = 0
    for record in records:
        try:
            with Image.open(record.screenshot) as img:
                w, h = img.size
        except OSError as exc:
            raise CommandError(f"reading screenshot {record.screenshot}: {exc}") from exc
        width = max(width, w)
        height = max(height, h)
    # libx264 with yuv420p needs even dimensions.
    return width + width % 2, height + height % 2


def write_concat_file(path: Path, records: Sequence[StepRecord], frame_seconds: float = FRAME_SECONDS) -> None:
    lines: list[str] = []
    for record in records:
        lines.append(f"file '{escape_for_concat(record.screenshot)}'")
        lines.append(f"duration {frame_seconds:.3f}")
    if records:
        # The concat demuxer ignores the last duration unless the file repeats.
        lines.append(f"file '{escape_for_concat(records[-1].screenshot)}'")
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")


def write_captions_file(path: Path, records: Sequence[StepRecord], frame_seconds: float = FRAME_SECONDS) -> None:
    blocks: list[str] = []
    for idx, record in enumerate(records):
        text = caption_for(record)
        if not text:
            continue
        start = format_srt_time(frame_seconds * idx)
        end = format_srt_time(frame_seconds * (idx + 1))
        blocks.append("\n".join([str(idx + 1), f"{start} --> {end}", *wrap_text(text)]) + "\n")
    path.write_text("\n".join(blocks), encoding="utf-8")


def build_filter(captions_path: Path, width: int, height: int) -> str:
    parts: list[str] = []
    if width > 0 and height > 0:
        parts.append(f"pad={width}:{height}:({width}-iw)/2:({height}-ih)/2")
    style = (
        f"FontName={SUBTITLE_FONT},FontSize={SUBTITLE_FONT_SIZE},"
        "PrimaryColour=&H00FFFFFF&,OutlineColour=&H00000000&,"
        "BorderStyle=3,Outline=1,Shadow=0,Alignment=2"
    )
    parts.append(f"subtitles='{escape_for_filter(str(captions_path))}':force_style='{style}'")
    return ",".join(parts)


def build_ffmpeg_command(
    ffmpeg: str, concat_path: Path, video_filter: str, output: Path, fps: int, verbose: bool = False
) -> list[str]:
    cmd = [ffmpeg]
    if not verbose:
        cmd += ["-hide_banner", "-loglevel", "error", "-nostats"]
    cmd += [
        "-y",
        "-f", "concat",
        "-safe", "0",
        "-i", str(concat_path),
        "-r", str(fps),
        "-vf", video_filter,
        "-pix_fmt", "yuv420p",
        "-c:v", "libx264",
        "-vsync", "cfr",
        str(output),
    ]  # fmt: skip
    return cmd


def generate_slideshow(
    records: Sequence[StepRecord], output: str | Path, fps: int = DEFAULT_FPS, verbose: bool = False
) -> Path:
    if not records:
        raise CommandError("no step records provided for slideshow")
    if fps <= 0:
        fps = DEFAULT_FPS
    out_path = Path(str(output).strip()).expanduser().resolve()
    out_path.parent.mkdir(parents=True, exist_ok=True)

    ffmpeg = shutil.which("ffmpeg")
    if not ffmpeg:
        raise CommandError("ffmpeg not found in PATH")

    width, height = max_dimensions(records)
    with tempfile.TemporaryDirectory(prefix="chrome-slideshow-") as tmp:
        concat_path = Path(tmp) / "inputs.txt"
        captions_path = Path(tmp) / "captions.srt"
        write_concat_file(concat_path, records)
        write_captions_file(captions_path, records)
        cmd = build_ffmpeg_command(
            ffmpeg, concat_path, build_filter(captions_path, width, height), out_path, fps, verbose
        )
        logger.info("running %s", " ".join(cmd))
        proc = subprocess.run(cmd, check=False)
    if proc.returncode != 0:
        raise CommandError(f"ffmpeg exited with status {proc.returncode}")
    return out_path


__all__ = [
    "caption_for",
    "format_srt_time",
    "generate_slideshow",
    "max_dimensions",
    "wrap_text",
    "write_captions_file",
    "write_concat_file",
]

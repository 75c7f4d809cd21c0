"""Step records: a screenshot plus the action that produced it.

Each screenshot taken by `screenshot` or `step` gets a `<png>.json` sidecar,
and the most recent record is mirrored to <cache>/last-step.json.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

logger = logging.getLogger("chrome_cli.steps")

LAST_STEP_FILE = "last-step.json"
_LABEL_CLEANUP = re.compile(r"[^a-z0-9-]+")


def _parse_time(raw: Any) -> datetime | None:
    if not raw or not isinstance(raw, str):
        return None
    text = raw.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    # Normalise fractional seconds to exactly six digits for fromisoformat.
    text = re.sub(r"\.(\d+)", lambda m: "." + (m.group(1) + "000000")[:6], text)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _format_time(value: datetime | None) -> str:
    if value is None:
        return ""
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class StepRecord:
    action: str = ""
    args: list[str] = field(default_factory=list)
    target: str = ""
    label: str = ""
    note: str = ""
    screenshot: str = ""
    created_at: datetime | None = None

    @property
    def metadata_path(self) -> Path:
        return Path(self.screenshot + ".json")

    def to_json(self) -> dict[str, Any]:
        data = asdict(self)
        data["created_at"] = _format_time(self.created_at)
        return data

    @classmethod
    def from_json(cls, raw: Any) -> StepRecord:
        if not isinstance(raw, dict):
            raise ValueError("step record must be a JSON object")
        args = raw.get("args") or []
        return cls(
            action=str(raw.get("action") or ""),
            args=[str(a) for a in args] if isinstance(args, list) else [],
            target=str(raw.get("target") or ""),
            label=str(raw.get("label") or ""),
            note=str(raw.get("note") or ""),
            screenshot=str(raw.get("screenshot") or ""),
            created_at=_parse_time(raw.get("created_at")),
        )


def sanitize_label(label: str) -> str:
    lower = (label or "").strip().lower()
    if not lower:
        return ""
    compact = _LABEL_CLEANUP.sub("-", lower).strip("-")
    return compact.replace("--", "-")


def prepare_shots_dir(directory: str | Path | None, default: Path) -> Path:
    text = str(directory).strip() if directory else ""
    target = Path(text).expanduser() if text else default
    target = target.resolve()
    target.mkdir(parents=True, exist_ok=True)
    return target


def prepare_screenshot_path(
    path: str = "",
    directory: str = "",
    label: str = "",
    *,
    default_dir: Path,
    now: datetime | None = None,
) -> Path:
    """Absolute screenshot path: explicit path, else <dir>/<UTC stamp>-<label>.png."""
    explicit = (path or "").strip()
    if explicit:
        resolved = Path(explicit).expanduser().resolve()
        resolved.parent.mkdir(parents=True, exist_ok=True)
        return resolved

    shots_dir = prepare_shots_dir(directory, default_dir)
    stamp = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    name = f"{stamp:%Y%m%d-%H%M%S}_{stamp.microsecond // 1000:03d}-{sanitize_label(label) or 'shot'}.png"
    return shots_dir / name


def save_step_record(record: StepRecord) -> Path:
    if record.created_at is None:
        record = replace(record, created_at=datetime.now(timezone.utc))
    path = record.metadata_path
    path.write_text(json.dumps(record.to_json(), indent=2), encoding="utf-8")
    return path


def save_last_step(record: StepRecord, cache_dir: Path) -> Path:
    cache_dir.mkdir(parents=True, exist_ok=True)
    path = cache_dir / LAST_STEP_FILE
    path.write_text(json.dumps(record.to_json(), indent=2), encoding="utf-8")
    return path


def load_last_step(cache_dir: Path) -> StepRecord:
    path = cache_dir / LAST_STEP_FILE
    return StepRecord.from_json(json.loads(path.read_text(encoding="utf-8")))


def load_step_metadata(screenshot: str | Path) -> StepRecord:
    """Record for a screenshot; a missing sidecar yields a bare record."""
    abs_path = Path(screenshot).expanduser().resolve()
    meta_path = Path(str(abs_path) + ".json")
    try:
        raw = meta_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return StepRecord(screenshot=str(abs_path))
    record = StepRecord.from_json(json.loads(raw))
    if not record.screenshot:
        record.screenshot = str(abs_path)
    return record


def remember_step(record: StepRecord, cache_dir: Path) -> StepRecord:
    if record.created_at is None:
        record = replace(record, created_at=datetime.now(timezone.utc))
    save_step_record(record)
    save_last_step(record, cache_dir)
    return record


def _sort_key(record: StepRecord) -> tuple[int, datetime, str]:
    # Records without a timestamp sort after all timestamped ones.
    if record.created_at is None:
        return (1, datetime.min.replace(tzinfo=timezone.utc), record.screenshot)
    return (0, record.created_at, record.screenshot)


def load_step_records_from_dir(directory: str | Path) -> list[StepRecord]:
    """Step records in a directory whose screenshot still exists, oldest first."""
    text = str(directory).strip() if directory else ""
    if not text:
        raise ValueError("input directory is required")
    root = Path(text).expanduser().resolve()
    records: list[StepRecord] = []
    for meta in sorted(root.iterdir()):
        if meta.is_dir() or meta.suffix != ".json":
            continue
        try:
            record = load_step_metadata(meta.with_suffix(""))
        except (OSError, ValueError) as exc:
            logger.info("skipping step metadata %s: %s", meta, exc)
            continue
        if not record.screenshot or not Path(record.screenshot).exists():
            continue
        records.append(record)
    records.sort(key=_sort_key)
    return records


def step_summary(record: StepRecord, cwd: Path | None = None) -> str:
    shown = record.screenshot
    try:
        shown = str(Path(record.screenshot).relative_to(cwd or Path.cwd()))
    except ValueError:
        pass
    stamp = "unknown"
    if record.created_at is not None:
        stamp = record.created_at.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    args_text = " ".join(record.args).strip()
    if args_text:
        return f"[{stamp}] {record.action} {args_text} -> {shown}"
    return f"[{stamp}] {record.action} -> {shown}"


__all__ = [
    "StepRecord",
    "load_last_step",
    "load_step_metadata",
    "load_step_records_from_dir",
    "prepare_screenshot_path",
    "prepare_shots_dir",
    "remember_step",
    "sanitize_label",
    "save_last_step",
    "save_step_record",
    "step_summary",
]

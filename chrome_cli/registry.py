"""Registry of browsers started by `chrome launch`.

One JSON document per port under <cache>/chrome-cli/instances/. There is no
locking: each port owns its own file, and two launches on the same port race
with last-write-wins.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

logger = logging.getLogger("chrome_cli.registry")


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass(frozen=True)
class InstanceRecord:
    port: int
    profile_dir: str
    process_id: int
    started_at: str
    log_file: str = ""

    @classmethod
    def from_json(cls, raw: Any) -> InstanceRecord:
        if not isinstance(raw, dict):
            raise ValueError("instance record must be a JSON object")
        try:
            port = int(raw["port"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"invalid port: {exc}") from exc
        return cls(
            port=port,
            profile_dir=str(raw.get("profile_dir") or ""),
            process_id=int(raw.get("process_id") or 0),
            started_at=str(raw.get("started_at") or ""),
            log_file=str(raw.get("log_file") or ""),
        )


@dataclass(frozen=True)
class RecordResult:
    """Outcome of reading one registry file: a record or the reason it failed."""

    path: Path
    record: InstanceRecord | None = None
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.record is not None


class InstanceRegistry:
    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def path_for(self, port: int) -> Path:
        return self.root / f"{int(port)}.json"

    def write(self, record: InstanceRecord) -> Path:
        self.root.mkdir(parents=True, exist_ok=True)
        path = self.path_for(record.port)
        path.write_text(json.dumps(asdict(record), indent=2) + "\n", encoding="utf-8")
        logger.info("registered instance port=%s pid=%s", record.port, record.process_id)
        return path

    def list_results(self) -> list[RecordResult]:
        if not self.root.is_dir():
            return []
        results: list[RecordResult] = []
        for path in sorted(self.root.glob("*.json")):
            try:
                record = InstanceRecord.from_json(json.loads(path.read_text(encoding="utf-8")))
            except (OSError, ValueError) as exc:
                results.append(RecordResult(path=path, error=str(exc)))
                continue
            results.append(RecordResult(path=path, record=record))
        return results

    def list(self) -> list[InstanceRecord]:
        """Readable records sorted by port; corrupt or partial files are skipped."""
        records: list[InstanceRecord] = []
        for result in self.list_results():
            if result.record is None:
                logger.info("skipping unreadable instance file %s: %s", result.path, result.error)
                continue
            records.append(result.record)
        return sorted(records, key=lambda r: r.port)

    def remove(self, port: int) -> bool:
        try:
            self.path_for(port).unlink()
        except FileNotFoundError:
            return False
        logger.info("removed instance port=%s", port)
        return True


__all__ = ["InstanceRecord", "InstanceRegistry", "RecordResult", "utc_now_iso"]

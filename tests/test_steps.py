from __future__ import annotations

import json
import os
from datetime import datetime, timezone


def test_sanitize_label() -> None:
    from chrome_cli.steps import sanitize_label

    assert sanitize_label("  After Login! ") == "after-login"
    assert sanitize_label("a//b") == "a-b"
    assert sanitize_label("---") == ""
    assert sanitize_label("") == ""


def test_prepare_screenshot_path_uses_timestamp_and_label(tmp_path) -> None:  # noqa: ANN001
    from chrome_cli.steps import prepare_screenshot_path

    now = datetime(2024, 1, 15, 10, 30, 5, 123456, tzinfo=timezone.utc)
    path = prepare_screenshot_path("", str(tmp_path / "shots"), "After Login", default_dir=tmp_path / "unused", now=now)
    assert path == (tmp_path / "shots" / "20240115-103005_123-after-login.png").resolve()
    assert path.parent.is_dir()

    default = prepare_screenshot_path("", "", "", default_dir=tmp_path / "default", now=now)
    assert default.name == "20240115-103005_123-shot.png"
    assert default.parent == (tmp_path / "default").resolve()


def test_prepare_screenshot_path_explicit_path_wins(tmp_path) -> None:  # noqa: ANN001
    from chrome_cli.steps import prepare_screenshot_path

    path = prepare_screenshot_path(str(tmp_path / "deep" / "x.png"), "ignored", "label", default_dir=tmp_path)
    assert path == (tmp_path / "deep" / "x.png").resolve()
    assert path.parent.is_dir()


def test_remember_step_writes_sidecar_and_last_step(tmp_path) -> None:  # noqa: ANN001
    from chrome_cli.steps import StepRecord, load_last_step, load_step_metadata, remember_step

    shot = tmp_path / "a.png"
    shot.write_bytes(b"png")
    record = remember_step(StepRecord(action="click", args=["#go"], label="click", screenshot=str(shot)), tmp_path / "cache")

    assert record.created_at is not None
    sidecar = json.loads((tmp_path / "a.png.json").read_text(encoding="utf-8"))
    assert sidecar["action"] == "click"
    assert sidecar["args"] == ["#go"]
    assert sidecar["created_at"].endswith("Z")

    assert load_last_step(tmp_path / "cache").screenshot == str(shot)
    assert load_step_metadata(shot).created_at == record.created_at


def test_load_step_metadata_without_sidecar(tmp_path) -> None:  # noqa: ANN001
    from chrome_cli.steps import load_step_metadata

    record = load_step_metadata(tmp_path / "missing.png")
    assert record.screenshot == str((tmp_path / "missing.png").resolve())
    assert record.action == ""


def test_load_step_records_sorted_and_filtered(tmp_path) -> None:  # noqa: ANN001
    from chrome_cli.steps import load_step_records_from_dir

    def write(name: str, created_at: str | None, exists: bool = True) -> None:
        shot = tmp_path / name
        if exists:
            shot.write_bytes(b"png")
        data = {"action": name, "screenshot": str(shot)}
        if created_at:
            data["created_at"] = created_at
        (tmp_path / f"{name}.json").write_text(json.dumps(data), encoding="utf-8")

    write("late.png", "2024-01-15T10:00:02.5Z")
    write("early.png", "2024-01-15T10:00:01.123456789Z")
    write("undated.png", None)
    write("gone.png", "2024-01-15T09:00:00Z", exists=False)
    (tmp_path / "broken.png.json").write_text("{", encoding="utf-8")

    records = load_step_records_from_dir(tmp_path)
    assert [r.action for r in records] == ["early.png", "late.png", "undated.png"]


def test_step_summary_relative_path(tmp_path) -> None:  # noqa: ANN001
    from chrome_cli.steps import StepRecord, step_summary

    record = StepRecord(
        action="type",
        args=["#name", "Alice"],
        screenshot=str(tmp_path / "shots" / "x.png"),
        created_at=datetime(2024, 1, 15, 10, 30, 0, tzinfo=timezone.utc),
    )
    assert step_summary(record, cwd=tmp_path) == f"[2024-01-15T10:30:00Z] type #name Alice -> {os.path.join('shots', 'x.png')}"

    bare = StepRecord(action="navigate", screenshot="/elsewhere/y.png")
    assert step_summary(bare, cwd=tmp_path) == "[unknown] navigate -> /elsewhere/y.png"

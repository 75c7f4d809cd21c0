from __future__ import annotations

import pytest


def _record(**kwargs):  # noqa: ANN003, ANN202
    from chrome_cli.steps import StepRecord

    return StepRecord(**kwargs)


def test_caption_priority() -> None:
    from chrome_cli.slideshow import caption_for

    assert caption_for(_record(action="click", label="go", note="  clicked go ")) == "clicked go"
    assert caption_for(_record(action="click", label="go", args=["#go"])) == "click (go)"
    assert caption_for(_record(action="click", args=["#go"])) == "click #go"
    assert caption_for(_record(action=" title ")) == "title"


def test_wrap_text() -> None:
    from chrome_cli.slideshow import wrap_text

    assert wrap_text("aaa bbb ccc", 7) == ["aaa bbb", "ccc"]
    assert wrap_text("   ", 10) == [""]
    assert wrap_text("averyveryverylongword x", 5) == ["averyveryverylongword", "x"]
    assert wrap_text("keep as is", 0) == ["keep as is"]


@pytest.mark.parametrize(
    ("seconds", "expected"),
    [(0, "00:00:00,000"), (5, "00:00:05,000"), (3725.5, "01:02:05,500"), (-1, "00:00:00,000")],
)
def test_format_srt_time(seconds, expected) -> None:  # noqa: ANN001
    from chrome_cli.slideshow import format_srt_time

    assert format_srt_time(seconds) == expected


def test_concat_and_captions_files(tmp_path) -> None:  # noqa: ANN001
    from chrome_cli.slideshow import write_captions_file, write_concat_file

    records = [
        _record(action="navigate", args=["http://x"], screenshot="/s/a.png"),
        _record(action="", screenshot="/s/it's.png"),
    ]
    concat = tmp_path / "inputs.txt"
    write_concat_file(concat, records)
    assert concat.read_text(encoding="utf-8").splitlines() == [
        "file '/s/a.png'",
        "duration 5.000",
        "file '/s/it'\\''s.png'",
        "duration 5.000",
        "file '/s/it'\\''s.png'",
    ]

    captions = tmp_path / "captions.srt"
    write_captions_file(captions, records)
    assert captions.read_text(encoding="utf-8") == "1\n00:00:00,000 --> 00:00:05,000\nnavigate http://x\n"


def test_max_dimensions_rounds_up_to_even(tmp_path) -> None:  # noqa: ANN001
    from PIL import Image

    from chrome_cli.slideshow import max_dimensions

    Image.new("RGB", (101, 40)).save(tmp_path / "a.png")
    Image.new("RGB", (80, 63)).save(tmp_path / "b.png")
    width, height = max_dimensions([_record(screenshot=str(tmp_path / "a.png")), _record(screenshot=str(tmp_path / "b.png"))])
    assert (width, height) == (102, 64)


def test_ffmpeg_command_quiet_by_default(tmp_path) -> None:  # noqa: ANN001
    from chrome_cli.slideshow import build_ffmpeg_command, build_filter

    vf = build_filter(tmp_path / "c.srt", 100, 50)
    assert vf.startswith("pad=100:50:(100-iw)/2:(50-ih)/2,subtitles=")
    assert "FontName=DejaVu Sans,FontSize=32" in vf

    quiet = build_ffmpeg_command("ffmpeg", tmp_path / "in.txt", vf, tmp_path / "out.mp4", 30)
    assert quiet[1:5] == ["-hide_banner", "-loglevel", "error", "-nostats"]
    assert quiet[-1] == str(tmp_path / "out.mp4")
    verbose = build_ffmpeg_command("ffmpeg", tmp_path / "in.txt", vf, tmp_path / "out.mp4", 30, verbose=True)
    assert "-hide_banner" not in verbose


def test_generate_slideshow_requires_records_and_ffmpeg(monkeypatch, tmp_path) -> None:  # noqa: ANN001
    from chrome_cli import slideshow
    from chrome_cli.errors import CommandError

    with pytest.raises(CommandError, match="no step records"):
        slideshow.generate_slideshow([], tmp_path / "out.mp4")

    monkeypatch.setattr(slideshow.shutil, "which", lambda _name: None)
    with pytest.raises(CommandError, match="ffmpeg not found"):
        slideshow.generate_slideshow([_record(screenshot=str(tmp_path / "a.png"))], tmp_path / "out.mp4")

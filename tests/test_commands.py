from __future__ import annotations

import pytest


def _config(tmp_path, **changes):  # noqa: ANN001, ANN202
    from dataclasses import replace

    from chrome_cli.config import CliConfig

    config = CliConfig.from_env({"XDG_CACHE_HOME": str(tmp_path / "cache")})
    return replace(config, shots_dir=tmp_path / "shots", **changes)


def test_parse_step_args_splits_options_from_action() -> None:
    from chrome_cli.commands.capture import parse_step_args

    step = parse_step_args(["-t", "http://x", "--label=login", "-n", "after login", "click", "#go", "-t", "other"])
    assert step.target == "http://x"
    assert step.label == "login"
    assert step.note == "after login"
    assert step.action == "click"
    assert step.action_args == ["#go", "-t", "other"]


@pytest.mark.parametrize(
    ("argv", "message"),
    [
        ([], "action is required"),
        (["-l", "x"], "action is required"),
        (["--bogus", "click"], "unknown step option '--bogus'"),
        (["-l=x", "click"], "unknown step option '-l=x'"),
        (["--note"], "--note requires a value"),
        (["--label=", "click"], "--label requires a value"),
    ],
)
def test_parse_step_args_errors(argv, message) -> None:  # noqa: ANN001
    from chrome_cli.commands.capture import parse_step_args
    from chrome_cli.errors import CommandError

    with pytest.raises(CommandError) as excinfo:
        parse_step_args(argv)
    assert str(excinfo.value) == message


def test_parse_step_args_double_dash_ends_options() -> None:
    from chrome_cli.commands.capture import parse_step_args

    step = parse_step_args(["--", "eval", "-1"])
    assert step.action == "eval"
    assert step.action_args == ["-1"]


def test_apply_target_respects_existing_selection() -> None:
    from chrome_cli.commands.capture import apply_target

    assert apply_target(["#go"], "") == ["#go"]
    assert apply_target(["#go"], "http://x") == ["-t", "http://x", "#go"]
    assert apply_target(["--target=http://y", "#go"], "http://x") == ["--target=http://y", "#go"]
    assert apply_target(["-t", "http://y"], "http://x") == ["-t", "http://y"]


def test_step_refuses_to_nest(tmp_path) -> None:  # noqa: ANN001
    import argparse

    from chrome_cli.commands.capture import handle_step
    from chrome_cli.errors import CommandError

    with pytest.raises(CommandError, match="step cannot run step"):
        handle_step(_config(tmp_path), argparse.Namespace(argv=["step", "title"]))


def test_format_eval_result() -> None:
    from chrome_cli.commands.page import format_eval_result

    assert format_eval_result(None) is None
    assert format_eval_result("plain") == "plain"
    assert format_eval_result(3) == "3"
    assert format_eval_result({"a": [1]}) == '{\n  "a": [\n    1\n  ]\n}'


def test_parse_coordinate() -> None:
    from chrome_cli.commands.input import parse_coordinate
    from chrome_cli.errors import CommandError

    assert parse_coordinate("12.5", "x") == 12.5
    with pytest.raises(CommandError, match="invalid y coordinate: abc"):
        parse_coordinate("abc", "y")


def test_monitor_timeout() -> None:
    from chrome_cli.commands import monitor_timeout
    from chrome_cli.config import CliConfig

    config = CliConfig(timeout=30.0)
    assert monitor_timeout(config, 5.0, follow=False) == 30.0
    assert monitor_timeout(config, 60.0, follow=False) == 65.0
    assert monitor_timeout(config, 5.0, follow=True) == 0.0


def test_registry_rejects_unknown_command_and_bad_arguments(tmp_path) -> None:  # noqa: ANN001
    from chrome_cli.commands import build_registry
    from chrome_cli.errors import CommandError

    registry = build_registry()
    with pytest.raises(CommandError, match="unknown command: nope"):
        registry.run(_config(tmp_path), ["nope"])
    with pytest.raises(CommandError, match="chrome navigate"):
        registry.run(_config(tmp_path), ["navigate"])


def test_registry_knows_every_command() -> None:
    from chrome_cli.commands import build_registry

    registry = build_registry()
    expected = {
        "list", "newtab", "close", "navigate", "title", "html", "eval", "rect",
        "click", "clicktext", "clickxy", "type", "fill", "wait", "waitfor",
        "screenshot", "step", "slideshow", "console", "network", "launch", "instances", "quit",
    }  # fmt: skip
    assert expected <= set(registry.command_names)
    assert registry.takes_target("click")
    assert not registry.takes_target("list")
    assert not registry.takes_target("step")


def test_raw_args_command_receives_argv_untouched(tmp_path) -> None:  # noqa: ANN001
    from chrome_cli.commands import Command, CommandRegistry

    seen = {}

    def handler(config, args):  # noqa: ANN001, ANN202
        seen["argv"] = args.argv

    registry = CommandRegistry()
    registry.register("raw", Command(handler, "raw", raw_args=True, takes_target=False))
    assert registry.run(_config(tmp_path), ["raw", "-t", "x", "--weird"]) == 0
    assert seen["argv"] == ["-t", "x", "--weird"]


def test_instances_lists_records(tmp_path, capsys) -> None:  # noqa: ANN001
    import argparse

    from chrome_cli.commands.instances import NO_INSTANCES_HINT, handle_instances
    from chrome_cli.registry import InstanceRecord, InstanceRegistry

    config = _config(tmp_path)
    assert handle_instances(config, argparse.Namespace()) == 0
    assert capsys.readouterr().out.strip() == NO_INSTANCES_HINT

    long_dir = "/home/user/" + "x" * 60
    InstanceRegistry(config.instances_dir).write(
        InstanceRecord(port=9223, profile_dir=long_dir, process_id=42, started_at="2024-01-01T00:00:00Z")
    )
    handle_instances(config, argparse.Namespace())
    lines = capsys.readouterr().out.splitlines()
    assert lines[0].split() == ["PORT", "USER_DATA_DIR", "STARTED"]
    assert lines[2].split()[0] == "9223"
    assert lines[2].split()[1].startswith("...")
    assert lines[2].endswith("2024-01-01T00:00:00Z")
    assert "x" * 37 in lines[2]


def test_quit_without_browser(tmp_path, monkeypatch, capsys) -> None:  # noqa: ANN001
    import argparse

    import chrome_cli.commands.instances as instances_mod

    monkeypatch.setattr(instances_mod, "is_reachable", lambda *a, **k: False)
    assert instances_mod.handle_quit(_config(tmp_path, port=9333), argparse.Namespace()) == 0
    assert capsys.readouterr().out.strip() == "No Chrome instance running on port 9333"


def test_launch_rejects_bad_port(tmp_path) -> None:  # noqa: ANN001
    import argparse

    from chrome_cli.commands.instances import handle_launch
    from chrome_cli.errors import CommandError

    with pytest.raises(CommandError, match="invalid port: 70000"):
        handle_launch(_config(tmp_path), argparse.Namespace(port="70000", user_data_dir="", log_file=""))


class FakeDirectory:
    closed: list[str] = []

    def __init__(self, base_url: str, timeout: float = 5.0) -> None:  # noqa: ARG002
        from chrome_cli.targets import BrowsingTarget, TargetInfo

        self.pages = [
            BrowsingTarget(id="AAAAAAAA1111", kind="page", url="http://x.com/", title="X"),
            BrowsingTarget(id="BBBBBBBB2222", kind="page", url="http://y.com/", title=""),
        ]
        self.infos = [TargetInfo(id="AAAAAAAA1111", kind="page"), TargetInfo(id="BBBBBBBB2222", kind="page", attached=True)]

    def fetch_pages(self):  # noqa: ANN201
        return list(self.pages)

    def fetch_target_infos(self):  # noqa: ANN201
        return list(self.infos)

    def close_target(self, target_id: str) -> None:
        FakeDirectory.closed.append(target_id)


def test_list_marks_preferred_tab(tmp_path, monkeypatch, capsys) -> None:  # noqa: ANN001
    import argparse

    import chrome_cli.commands.tabs as tabs_mod

    monkeypatch.setattr(tabs_mod, "require_running", lambda config: None)
    monkeypatch.setattr(tabs_mod, "TargetDirectory", FakeDirectory)
    assert tabs_mod.handle_list(_config(tmp_path), argparse.Namespace()) == 0
    assert capsys.readouterr().out.splitlines() == [
        " [AAAAAAAA] X",
        "  http://x.com/",
        "  status: detached",
        "*[BBBBBBBB] (no title)",
        "  http://y.com/",
        "  status: attached",
    ]


def test_close_miss_raises_target_not_found(tmp_path, monkeypatch) -> None:  # noqa: ANN001
    import argparse

    import chrome_cli.commands.tabs as tabs_mod
    from chrome_cli.errors import TargetNotFound

    monkeypatch.setattr(tabs_mod, "require_running", lambda config: None)
    monkeypatch.setattr(tabs_mod, "TargetDirectory", FakeDirectory)
    FakeDirectory.closed = []
    with pytest.raises(TargetNotFound, match="no tab URL starts with"):
        tabs_mod.handle_close(_config(tmp_path), argparse.Namespace(target="http://z.com"))
    tabs_mod.handle_close(_config(tmp_path), argparse.Namespace(target="http://y"))
    assert FakeDirectory.closed == ["BBBBBBBB2222"]


def test_require_running(tmp_path, monkeypatch) -> None:  # noqa: ANN001
    import chrome_cli.http_client as http_mod
    from chrome_cli.commands import require_running
    from chrome_cli.errors import CommandError

    monkeypatch.setattr(http_mod, "is_reachable", lambda *a, **k: False)
    with pytest.raises(CommandError, match="Chrome not running on port 9444"):
        require_running(_config(tmp_path, port=9444))


def test_slideshow_without_screenshots(tmp_path) -> None:  # noqa: ANN001
    import argparse

    from chrome_cli.commands.capture import handle_slideshow
    from chrome_cli.errors import CommandError

    shots = tmp_path / "empty"
    shots.mkdir()
    args = argparse.Namespace(shots_dir=str(shots), output="", fps=30, verbose=False)
    with pytest.raises(CommandError, match="no screenshots found"):
        handle_slideshow(_config(tmp_path), args)

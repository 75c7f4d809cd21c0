from __future__ import annotations

import pytest


def test_from_env_defaults(tmp_path) -> None:  # noqa: ANN001
    from chrome_cli.config import DEFAULT_PORT, CliConfig

    config = CliConfig.from_env({"XDG_CACHE_HOME": str(tmp_path)})
    assert config.port == DEFAULT_PORT
    assert config.base_url == "http://127.0.0.1:9222"
    assert config.env_target == ""
    assert config.binary_path == ""
    assert config.headless is True
    assert config.cache_dir == tmp_path / "chrome-cli"
    assert config.instances_dir == tmp_path / "chrome-cli" / "instances"


def test_from_env_reads_target_port_and_binary(tmp_path) -> None:  # noqa: ANN001
    from chrome_cli.config import CliConfig

    config = CliConfig.from_env(
        {
            "CHROME_PORT": "9333",
            "CHROME_TARGET": " http://localhost ",
            "CHROME_PATH": "/opt/chrome",
            "CHROME_HEADLESS": "0",
            "XDG_CACHE_HOME": str(tmp_path),
        }
    )
    assert config.port == 9333
    assert config.env_target == "http://localhost"
    assert config.binary_path == "/opt/chrome"
    assert config.headless is False
    assert config.default_selector == "http://localhost"


def test_with_overrides_global_target_beats_env() -> None:
    from chrome_cli.config import CliConfig

    config = CliConfig(env_target="http://env").with_overrides(port=9400, target=" http://flag ")
    assert config.port == 9400
    assert config.default_selector == "http://flag"
    assert CliConfig(env_target="http://env").with_overrides(target="").default_selector == "http://env"


@pytest.mark.parametrize("raw", ["abc", "0", "65536", "-1", ""])
def test_parse_port_rejects_invalid(raw) -> None:  # noqa: ANN001
    from chrome_cli.config import parse_port

    with pytest.raises(ValueError, match="must be 1-65535"):
        parse_port(raw)


def test_parse_port_accepts_range() -> None:
    from chrome_cli.config import parse_port

    assert parse_port("1") == 1
    assert parse_port(" 65535 ") == 65535


def test_locate_binary_prefers_override_then_candidates(monkeypatch, tmp_path) -> None:  # noqa: ANN001
    from chrome_cli import config as config_mod
    from chrome_cli.errors import BrowserNotFound

    override = tmp_path / "my-chrome"
    override.write_text("", encoding="utf-8")
    candidate = tmp_path / "candidate-chrome"
    candidate.write_text("", encoding="utf-8")

    assert config_mod.locate_binary(str(override), [str(candidate)]) == str(override)
    assert config_mod.locate_binary(str(tmp_path / "missing"), [str(candidate)]) == str(candidate)

    monkeypatch.setattr(config_mod.shutil, "which", lambda name: "/usr/bin/chromium" if name == "chromium" else None)
    assert config_mod.locate_binary("", []) == "/usr/bin/chromium"

    monkeypatch.setattr(config_mod.shutil, "which", lambda _name: None)
    with pytest.raises(BrowserNotFound, match="CHROME_PATH"):
        config_mod.locate_binary("", [])

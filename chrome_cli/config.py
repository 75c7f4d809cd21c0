from __future__ import annotations

import os
import shutil
import sys
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path

from .errors import BrowserNotFound

DEFAULT_PORT = 9222
DEFAULT_TIMEOUT = 30.0
TARGET_ENV = "CHROME_TARGET"
PORT_ENV = "CHROME_PORT"
BINARY_ENV = "CHROME_PATH"

MAC_BINARY_CANDIDATES: list[str] = [
    "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
    "/Applications/Chromium.app/Contents/MacOS/Chromium",
    "/Applications/Google Chrome Canary.app/Contents/MacOS/Google Chrome Canary",
]

WSL_BINARY_CANDIDATES: list[str] = [
    "/mnt/c/Program Files/Google/Chrome/Application/chrome.exe",
    "/mnt/c/Program Files (x86)/Google/Chrome/Application/chrome.exe",
]

LINUX_BINARY_CANDIDATES: list[str] = [
    "/usr/bin/google-chrome",
    "/usr/bin/google-chrome-stable",
    "/usr/bin/chromium",
    "/usr/bin/chromium-browser",
    # Snap last: it ignores --user-data-dir outside of $HOME.
    "/snap/bin/chromium",
]

PATH_BINARY_NAMES: list[str] = ["google-chrome", "google-chrome-stable", "chromium", "chromium-browser", "chrome"]


def expand_path(raw: str) -> str:
    return str(Path(raw).expanduser())


def is_wsl() -> bool:
    if not sys.platform.startswith("linux"):
        return False
    if Path("/proc/sys/fs/binfmt_misc/WSLInterop").exists():
        return True
    try:
        version = Path("/proc/version").read_text(encoding="utf-8", errors="replace")
    except OSError:
        return False
    return "Microsoft" in version or "WSL" in version


def platform_binary_candidates(environ: Mapping[str, str] | None = None) -> list[str]:
    env = os.environ if environ is None else environ
    if sys.platform == "darwin":
        return list(MAC_BINARY_CANDIDATES)
    if sys.platform.startswith("win"):
        roots = [env.get("PROGRAMFILES", ""), env.get("PROGRAMFILES(X86)", ""), env.get("LOCALAPPDATA", "")]
        return [str(Path(root, "Google", "Chrome", "Application", "chrome.exe")) for root in roots if root]
    candidates = list(WSL_BINARY_CANDIDATES) if is_wsl() else []
    return candidates + LINUX_BINARY_CANDIDATES


def locate_binary(override: str = "", candidates: list[str] | None = None) -> str:
    """Find a browser executable: override path, well-known installs, then PATH."""
    override = (override or "").strip()
    if override:
        path = Path(expand_path(override))
        if path.exists():
            return str(path)
    for candidate in candidates if candidates is not None else platform_binary_candidates():
        if candidate and Path(candidate).exists():
            return candidate
    for name in PATH_BINARY_NAMES:
        found = shutil.which(name)
        if found:
            return found
    raise BrowserNotFound("Chrome not found. Install Google Chrome or Chromium, or set CHROME_PATH.")


def user_cache_dir(environ: Mapping[str, str] | None = None) -> Path:
    env = os.environ if environ is None else environ
    raw = (env.get("XDG_CACHE_HOME") or "").strip()
    base = Path(raw).expanduser() if raw else Path.home() / ".cache"
    return base / "chrome-cli"


def parse_port(raw: str) -> int:
    """Parse a debugging port; raises ValueError outside 1-65535."""
    text = str(raw).strip()
    try:
        port = int(text)
    except ValueError:
        raise ValueError(f"invalid port: {text} (must be 1-65535)") from None
    if port <= 0 or port >= 65536:
        raise ValueError(f"invalid port: {text} (must be 1-65535)")
    return port


@dataclass
class CliConfig:
    port: int = DEFAULT_PORT
    # Global -t value; env_target is the CHROME_TARGET captured at startup.
    target: str = ""
    env_target: str = ""
    overrides: dict[str, str] = field(default_factory=dict)
    binary_path: str = ""
    headless: bool = True
    timeout: float = DEFAULT_TIMEOUT
    probe_timeout: float = 5.0
    launch_timeout: float = 10.0
    cache_dir: Path = field(default_factory=user_cache_dir)
    shots_dir: Path = field(default_factory=lambda: Path.home() / "chrome-shots")

    @property
    def base_url(self) -> str:
        return f"http://127.0.0.1:{self.port}"

    @property
    def instances_dir(self) -> Path:
        return self.cache_dir / "instances"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> CliConfig:
        env = os.environ if environ is None else environ
        port_raw = (env.get(PORT_ENV) or "").strip()
        port = parse_port(port_raw) if port_raw else DEFAULT_PORT
        return cls(
            port=port,
            env_target=(env.get(TARGET_ENV) or "").strip(),
            binary_path=expand_path(env[BINARY_ENV].strip()) if (env.get(BINARY_ENV) or "").strip() else "",
            headless=env.get("CHROME_HEADLESS", "1") != "0",
            cache_dir=user_cache_dir(env),
        )

    def with_overrides(self, *, port: int | None = None, target: str | None = None) -> CliConfig:
        changes: dict[str, object] = {}
        if port is not None:
            changes["port"] = port
        if target is not None and target.strip():
            changes["target"] = target.strip()
        return replace(self, **changes) if changes else self

    @property
    def default_selector(self) -> str:
        """Global -t wins over CHROME_TARGET."""
        return self.target or self.env_target

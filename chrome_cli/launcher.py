from __future__ import annotations

import contextlib
import logging
import shutil
import socket
import subprocess
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path

from .config import CliConfig, expand_path, is_wsl, locate_binary
from .errors import HttpClientError, LaunchError, LaunchTimeout
from .http_client import is_reachable
from .polling import PollTimeout, RetryPolicy, poll_until
from .targets import TargetDirectory

logger = logging.getLogger("chrome_cli.launcher")

AUTOMATION_FLAGS = [
    "--disable-gpu",
    "--no-first-run",
    "--no-default-browser-check",
]


def default_user_data_dir() -> str:
    if is_wsl():
        return "C:\\temp\\chrome"
    try:
        return str(Path.home() / ".chrome")
    except RuntimeError:
        return str(Path(tempfile.gettempdir()) / "chrome")


def find_free_port() -> int:
    with contextlib.closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@dataclass
class LaunchResult:
    command: list[str]
    started: bool
    message: str
    process_id: int | None = None
    log_path: str | None = None


@dataclass
class LaunchedBrowser:
    """A browser process spawned for the duration of one invocation."""

    process: subprocess.Popen
    port: int
    profile_dir: str
    command: list[str] = field(default_factory=list)

    @property
    def base_url(self) -> str:
        return f"http://127.0.0.1:{self.port}"


class BrowserLauncher:
    def __init__(self, config: CliConfig | None = None) -> None:
        self.config = config or CliConfig.from_env()

    def binary(self) -> str:
        return locate_binary(self.config.binary_path)

    def build_ephemeral_command(self, binary: str, port: int, profile_dir: str) -> list[str]:
        flags = [
            f"--remote-debugging-port={port}",
            "--remote-debugging-address=127.0.0.1",
            f"--user-data-dir={profile_dir}",
            "--remote-allow-origins=*",
            *AUTOMATION_FLAGS,
        ]
        if self.config.headless:
            flags.append("--headless=new")
        return [binary, *flags, "about:blank"]

    def build_persistent_command(self, binary: str, port: int, user_data_dir: str) -> list[str]:
        return [
            binary,
            f"--remote-debugging-port={port}",
            "--remote-debugging-address=127.0.0.1",
            f"--user-data-dir={expand_path(user_data_dir)}",
            "--remote-allow-origins=*",
            "--no-first-run",
            "--no-default-browser-check",
        ]

    def spawn_ephemeral(self) -> LaunchedBrowser:
        """Start a private headless browser and wait for its endpoint.

        Raises BrowserNotFound when no executable exists and LaunchTimeout
        when the endpoint does not come up within config.launch_timeout.
        """
        binary = self.binary()
        port = find_free_port()
        profile_dir = tempfile.mkdtemp(prefix="chrome-cli-profile-")
        cmd = self.build_ephemeral_command(binary, port, profile_dir)
        logger.info("launching %s", " ".join(cmd))
        try:
            process = subprocess.Popen(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
        except OSError as exc:
            shutil.rmtree(profile_dir, ignore_errors=True)
            raise LaunchError(f"error launching Chrome: {exc}") from exc

        launched = LaunchedBrowser(process=process, port=port, profile_dir=profile_dir, command=cmd)
        try:
            poll_until(
                lambda: process.poll() is not None or is_reachable(launched.base_url, timeout=0.5),
                RetryPolicy(interval=0.1, timeout=self.config.launch_timeout),
            )
        except PollTimeout:
            self.stop_ephemeral(launched)
            raise LaunchTimeout(
                f"Chrome did not expose a debugging endpoint on port {port} within {self.config.launch_timeout:g}s"
            ) from None
        if process.poll() is not None:
            shutil.rmtree(profile_dir, ignore_errors=True)
            raise LaunchError(f"Chrome exited during startup (exit code {process.returncode})")
        return launched

    def stop_ephemeral(self, launched: LaunchedBrowser, *, wait: float = 2.0) -> None:
        """Ask the browser to close and clean up its temporary profile.

        The process handle is never killed; a browser that ignores
        Browser.close is left to exit on its own.
        """
        if launched.process.poll() is None:
            try:
                conn = TargetDirectory(launched.base_url, timeout=2.0).open_browser()
                try:
                    conn.send("Browser.close")
                finally:
                    conn.close()
            except HttpClientError as exc:
                logger.info("Browser.close failed for port %s: %s", launched.port, exc)
            try:
                launched.process.wait(timeout=wait)
            except subprocess.TimeoutExpired:
                logger.warning("Chrome on port %s still running after close request", launched.port)
        shutil.rmtree(launched.profile_dir, ignore_errors=True)

    def launch_persistent(
        self,
        port: int,
        user_data_dir: str,
        log_file: str,
        *,
        policy: RetryPolicy = RetryPolicy(interval=0.5, timeout=5.0),
    ) -> LaunchResult:
        """Start a detached browser that outlives this process."""
        binary = self.binary()
        cmd = self.build_persistent_command(binary, port, user_data_dir)
        log_path = Path(expand_path(log_file))
        log_path.parent.mkdir(parents=True, exist_ok=True)
        with open(log_path, "ab", buffering=0) as log_fh:
            try:
                process = subprocess.Popen(
                    cmd,
                    stdout=log_fh,
                    stderr=log_fh,
                    stdin=subprocess.DEVNULL,
                    start_new_session=True,
                )
            except OSError as exc:
                raise LaunchError(f"error launching Chrome: {exc}") from exc

        base_url = f"http://127.0.0.1:{port}"
        try:
            poll_until(lambda: is_reachable(base_url, timeout=0.5), policy)
        except PollTimeout:
            return LaunchResult(cmd, False, "Chrome may still be starting", process.pid, str(log_path))
        return LaunchResult(cmd, True, f"Chrome is running on port {port}", process.pid, str(log_path))

    def quit(self, port: int, *, settle: float = 0.5) -> bool:
        """Gracefully close the browser on port; True once the endpoint is gone."""
        base_url = f"http://127.0.0.1:{port}"
        try:
            conn = TargetDirectory(base_url, timeout=10.0).open_browser()
            try:
                conn.send("Browser.close")
            finally:
                conn.close()
        except HttpClientError as exc:
            # The browser can drop the socket before replying to Browser.close.
            logger.info("Browser.close on port %s: %s", port, exc)
        time.sleep(settle)
        return not is_reachable(base_url, timeout=self.config.probe_timeout)


__all__ = [
    "AUTOMATION_FLAGS",
    "BrowserLauncher",
    "LaunchResult",
    "LaunchedBrowser",
    "default_user_data_dir",
    "find_free_port",
]

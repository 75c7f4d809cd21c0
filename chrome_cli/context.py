"""Execution-context lifecycle.

Two modes:
- remote: a browser already listens on the configured port. The context
  attaches to the resolved tab (or a fresh tab) and release only closes the
  websocket, so tabs persist between CLI invocations.
- launched: nothing listens, so a private headless browser is spawned for
  this invocation and asked to exit on release.
"""

from __future__ import annotations

import enum
import logging
import time
from collections.abc import Generator
from contextlib import contextmanager
from dataclasses import dataclass

from .browser_session import BrowserSession
from .config import DEFAULT_TIMEOUT, CliConfig
from .errors import BrowserNotFound, TargetNotFound
from .http_client import is_reachable
from .launcher import BrowserLauncher, LaunchedBrowser
from .resolver import Resolution, resolve_target
from .session_cdp import CdpConnection
from .targets import Connector, TargetDirectory

logger = logging.getLogger("chrome_cli.context")


class ContextMode(enum.Enum):
    REMOTE = "remote"
    LAUNCHED = "launched"


class ReleasePolicy(enum.Enum):
    TERMINATE_PROCESS_AND_CONNECTION = "terminate_process_and_connection"
    CONNECTION_ONLY = "connection_only"


POLICY_BY_MODE = {
    ContextMode.REMOTE: ReleasePolicy.CONNECTION_ONLY,
    ContextMode.LAUNCHED: ReleasePolicy.TERMINATE_PROCESS_AND_CONNECTION,
}


@dataclass
class ExecutionContext:
    mode: ContextMode
    session: BrowserSession
    bound_target: str = ""
    deadline: float | None = None
    resolution: Resolution | None = None
    launched: LaunchedBrowser | None = None
    released: bool = False

    @property
    def policy(self) -> ReleasePolicy:
        return POLICY_BY_MODE[self.mode]

    def remaining(self) -> float | None:
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())


def deadline_from(timeout: float | None) -> float | None:
    if timeout is None or timeout <= 0:
        return None
    return time.monotonic() + timeout


class ContextManager:
    def __init__(
        self,
        config: CliConfig,
        directory: TargetDirectory | None = None,
        connect: Connector = CdpConnection,
        launcher: BrowserLauncher | None = None,
    ) -> None:
        self.config = config
        self.directory = directory or TargetDirectory(config.base_url, timeout=config.probe_timeout, connect=connect)
        self._connect = connect
        self.launcher = launcher or BrowserLauncher(config)

    def probe(self) -> bool:
        return is_reachable(self.directory.base_url, timeout=self.config.probe_timeout)

    def acquire(self, timeout: float | None = DEFAULT_TIMEOUT, selector: str = "", strict: bool = True) -> ExecutionContext:
        """Build an execution context; timeout <= 0 means no deadline."""
        deadline = deadline_from(timeout)
        if self.probe():
            return self._acquire_remote(deadline, selector, strict)
        return self._acquire_launched(deadline)

    def _attach(self, directory: TargetDirectory, target_id: str, deadline: float | None) -> BrowserSession:
        target = directory.find(target_id)
        if target is None or not target.session_endpoint:
            raise TargetNotFound(f"target {target_id} has no websocket debugger url")
        conn = self._connect(target.session_endpoint, timeout=self._command_timeout(deadline), deadline=deadline)
        return BrowserSession(conn, target.id, target.url)

    def _command_timeout(self, deadline: float | None) -> float:
        if deadline is None:
            return self.config.timeout
        return max(0.1, min(self.config.timeout, deadline - time.monotonic()))

    def _acquire_remote(self, deadline: float | None, selector: str, strict: bool) -> ExecutionContext:
        resolution = resolve_target(self.directory, selector, self.config.overrides, self.config.default_selector)
        logger.info("resolved target=%r reason=%s", resolution.target_id, resolution.reason)
        target_id = resolution.target_id
        if not target_id:
            # Only an explicit selector is binding; a default one falls back to a fresh tab.
            if strict and (selector or "").strip():
                raise TargetNotFound(resolution.reason)
            target_id = self.directory.new_target(deadline=deadline)
        session = self._attach(self.directory, target_id, deadline)
        return ExecutionContext(
            mode=ContextMode.REMOTE,
            session=session,
            bound_target=target_id,
            deadline=deadline,
            resolution=resolution,
        )

    def _acquire_launched(self, deadline: float | None) -> ExecutionContext:
        try:
            launched = self.launcher.spawn_ephemeral()
        except BrowserNotFound as exc:
            raise BrowserNotFound(f"{exc} (nothing listening on {self.directory.base_url})") from exc
        try:
            directory = TargetDirectory(launched.base_url, timeout=self.config.probe_timeout, connect=self._connect)
            pages = directory.fetch_pages()
            target_id = pages[0].id if pages else directory.new_target(deadline=deadline)
            session = self._attach(directory, target_id, deadline)
        except BaseException:
            self.launcher.stop_ephemeral(launched)
            raise
        return ExecutionContext(
            mode=ContextMode.LAUNCHED,
            session=session,
            bound_target=target_id,
            deadline=deadline,
            launched=launched,
        )

    def release(self, ctx: ExecutionContext) -> None:
        """Tear down according to ctx.policy. Calling it again is a no-op."""
        if ctx.released:
            return
        ctx.released = True
        ctx.session.close()
        if ctx.policy is ReleasePolicy.TERMINATE_PROCESS_AND_CONNECTION and ctx.launched is not None:
            self.launcher.stop_ephemeral(ctx.launched)
        logger.info("released %s context target=%s policy=%s", ctx.mode.value, ctx.bound_target, ctx.policy.value)


@contextmanager
def open_context(
    config: CliConfig,
    timeout: float | None = DEFAULT_TIMEOUT,
    selector: str = "",
    manager: ContextManager | None = None,
    strict: bool = True,
) -> Generator[ExecutionContext, None, None]:
    """Acquire a context for one command and always release it."""
    manager = manager or ContextManager(config)
    ctx = manager.acquire(timeout, selector, strict)
    try:
        yield ctx
    finally:
        manager.release(ctx)


__all__ = [
    "ContextManager",
    "ContextMode",
    "ExecutionContext",
    "ReleasePolicy",
    "deadline_from",
    "open_context",
]

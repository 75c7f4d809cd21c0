"""Exception hierarchy shared across the CLI.

Resolution failures are not represented here: the resolver reports them as
values (see resolver.Resolution). Only callers that *require* a tab raise
TargetNotFound.
"""

from __future__ import annotations


class ChromeCliError(Exception):
    pass


class HttpClientError(ChromeCliError):
    """Network, HTTP or websocket failure talking to the debugging endpoint."""


class DecodeError(HttpClientError):
    pass


class CdpTimeoutError(HttpClientError):
    pass


class CdpError(HttpClientError):
    """Error response returned by the browser for a CDP command."""

    def __init__(self, method: str, error: object) -> None:
        self.method = method
        self.error = error
        message = error.get("message") if isinstance(error, dict) else None
        super().__init__(f"{method}: {message or error}")


class TargetNotFound(ChromeCliError):
    pass


class LaunchError(ChromeCliError):
    pass


class BrowserNotFound(LaunchError):
    pass


class LaunchTimeout(LaunchError):
    pass


class CommandError(ChromeCliError):
    pass


__all__ = [
    "BrowserNotFound",
    "CdpError",
    "CdpTimeoutError",
    "ChromeCliError",
    "CommandError",
    "DecodeError",
    "HttpClientError",
    "LaunchError",
    "LaunchTimeout",
    "TargetNotFound",
]

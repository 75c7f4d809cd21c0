from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

from .errors import CommandError

T = TypeVar("T")


class PollTimeout(CommandError):
    pass


@dataclass(frozen=True)
class RetryPolicy:
    """Fixed-interval polling bounded by a total timeout (seconds)."""

    interval: float = 0.1
    timeout: float = 10.0

    @property
    def attempts(self) -> int:
        if self.interval <= 0:
            return 1
        return max(1, int(self.timeout / self.interval))


def poll_until(
    predicate: Callable[[], T],
    policy: RetryPolicy,
    *,
    message: str = "timed out",
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call predicate every policy.interval until it returns a truthy value.

    Exceptions raised by predicate propagate. Raises PollTimeout once
    policy.timeout has elapsed without a truthy result.
    """
    deadline = clock() + policy.timeout
    while True:
        value = predicate()
        if value:
            return value
        if clock() + policy.interval > deadline:
            raise PollTimeout(message)
        sleep(policy.interval)


__all__ = ["PollTimeout", "RetryPolicy", "poll_until"]

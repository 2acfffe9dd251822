"""Polling helpers that retry a condition until it holds or time runs out.

A condition returns True when done and False to keep waiting; an exception it
raises stops the wait and propagates.
"""

from __future__ import annotations

import time
from collections.abc import Callable


class WaitTimeoutError(Exception):
    """The condition did not hold within the allowed attempts or time."""

    def __init__(self, message: str = "timed out waiting for the condition") -> None:
        super().__init__(message)


def exponential_backoff(
    duration: float,
    factor: float,
    steps: int,
    condition: Callable[[], bool],
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """Check ``condition`` up to ``steps`` times, sleeping ``duration`` growing by ``factor``."""
    delay = duration
    for remaining in range(steps, 0, -1):
        if condition():
            return
        if remaining == 1:
            break
        sleep(delay)
        if factor:
            delay *= factor
    raise WaitTimeoutError()


def poll(
    interval: float,
    timeout: float,
    condition: Callable[[], bool],
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> None:
    """Check ``condition`` every ``interval`` seconds, starting after the first interval."""
    if interval <= 0:
        raise ValueError("interval must be positive")
    deadline = clock() + timeout
    while True:
        sleep(interval)
        if condition():
            return
        if clock() >= deadline:
            raise WaitTimeoutError()
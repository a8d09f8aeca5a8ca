"""Bounded retry loop used by readiness checks."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryExhausted(RuntimeError):
    """Raised when a readiness check never succeeded."""

    def __init__(self, message: str, attempts: int, last_error: Optional[BaseException] = None) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(message)


def retry_until(
    check: Callable[[], Optional[T]],
    *,
    tries: int = 10,
    delay: float = 5.0,
    message: str = "Check did not succeed",
    retry_on: tuple = (),
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call `check` until it returns a truthy value.

    Exceptions listed in `retry_on` count as a failed attempt. After `tries`
    attempts `RetryExhausted` is raised; between attempts the loop sleeps
    for a fixed `delay`.
    """
    last_error: Optional[BaseException] = None
    for attempt in range(1, tries + 1):
        try:
            result = check()
            if result:
                return result
        except retry_on as exc:  # type: ignore[misc]
            last_error = exc
        if attempt < tries:
            logger.info("%s, waiting %s secs and trying again (%d/%d)", message, delay, attempt, tries)
            sleep(delay)
    raise RetryExhausted(f"{message} after {tries} attempts", tries, last_error)

"""Bounded retry for reads that can lag behind a preceding write."""

import time
from dataclasses import dataclass
from typing import Callable, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class NotYetAvailable:
    """Typed outcome for a value that never became ready."""

    attempts: int


def linear_backoff(step: float) -> Callable[[int], float]:
    """Delay of ``step * (attempt + 1)`` seconds: 0.2, 0.4, 0.6 for step 0.2."""
    return lambda attempt: step * (attempt + 1)


def retry_until_ready(
    load: Callable[[], T],
    is_ready: Callable[[T], bool],
    attempts: int = 3,
    backoff: Callable[[int], float] = linear_backoff(0.2),
    sleep: Callable[[float], None] = time.sleep,
) -> Union[T, NotYetAvailable]:
    """Call ``load`` until ``is_ready`` accepts its result.

    Args:
        load: Zero-argument loader
        is_ready: Predicate over the loaded value
        attempts: Maximum number of loads (at least 1)
        backoff: Maps the zero-based attempt number to a delay in seconds
        sleep: Sleep function, replaceable in tests

    Returns:
        The first ready value, or NotYetAvailable after the last attempt
    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1")

    for attempt in range(attempts):
        value = load()
        if is_ready(value):
            return value
        if attempt < attempts - 1:
            sleep(backoff(attempt))
    return NotYetAvailable(attempts=attempts)

"""
Bounded polling primitive.

Fixed interval, fixed deadline, early-exit predicate. The condition is
checked immediately before the first sleep. Time and sleep are injectable
so tests do not wait on the wall clock.
"""

import time
from typing import Callable

from .errors import PollTimeoutError


def poll_until(
    condition: Callable[[], bool],
    interval: float,
    timeout: float,
    sleep: Callable[[float], None] = time.sleep,
    monotonic: Callable[[], float] = time.monotonic,
) -> None:
    """
    Call ``condition`` until it returns True or ``timeout`` elapses.

    Args:
        condition: Returns True when done; exceptions propagate to the caller
        interval: Seconds between checks
        timeout: Overall deadline in seconds

    Raises:
        PollTimeoutError: the deadline passed with the condition still False
    """
    deadline = monotonic() + timeout
    while True:
        if condition():
            return
        if monotonic() + interval > deadline:
            raise PollTimeoutError(f"condition not met within {timeout}s")
        sleep(interval)

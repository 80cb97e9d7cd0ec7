"""Fixed-interval polling with a wall-clock deadline.

``poll_until`` repeatedly calls ``fetch`` and hands each observation to
``classify``. Polling stops on the first SUCCEED or FAIL decision, or raises
``PollTimeout`` once ``timeout`` seconds have elapsed since the first call.
``sleep`` and ``clock`` are injectable so callers can test without delays.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Generic, Optional, TypeVar

T = TypeVar("T")


class PollDecision(Enum):
    """What to do after one observation."""

    CONTINUE = "continue"
    SUCCEED = "succeed"
    FAIL = "fail"


@dataclass
class PollResult(Generic[T]):
    """Terminal observation of a polling run."""

    decision: PollDecision
    value: T
    attempts: int
    elapsed_seconds: float

    @property
    def succeeded(self) -> bool:
        return self.decision is PollDecision.SUCCEED


class PollTimeout(Exception):
    """The deadline passed without a terminal decision."""

    def __init__(self, attempts: int, elapsed_seconds: float):
        self.attempts = attempts
        self.elapsed_seconds = elapsed_seconds
        super().__init__(f"No terminal state after {attempts} attempts in {elapsed_seconds:.1f}s")


def poll_until(
    fetch: Callable[[], T],
    classify: Callable[[T], PollDecision],
    *,
    interval: float,
    timeout: float,
    on_attempt: Optional[Callable[[int, T], None]] = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> PollResult[T]:
    """Poll ``fetch`` until ``classify`` returns a terminal decision.

    Args:
        fetch: Produces one observation; exceptions propagate unchanged
        classify: Maps an observation to a PollDecision
        interval: Seconds between attempts
        timeout: Seconds from the first attempt after which polling gives up
        on_attempt: Called with (attempt_number, observation) after every fetch
        sleep: Sleep function
        clock: Monotonic clock function

    Returns:
        PollResult for the SUCCEED or FAIL observation

    Raises:
        PollTimeout: the deadline passed first
    """
    if interval <= 0 or timeout <= 0:
        raise ValueError("interval and timeout must be positive")

    start = clock()
    attempts = 0

    while True:
        value = fetch()
        attempts += 1

        if on_attempt is not None:
            on_attempt(attempts, value)

        decision = classify(value)
        elapsed = clock() - start

        if decision is not PollDecision.CONTINUE:
            return PollResult(decision=decision, value=value, attempts=attempts, elapsed_seconds=elapsed)

        if elapsed >= timeout:
            raise PollTimeout(attempts, elapsed)

        sleep(min(interval, timeout - elapsed))

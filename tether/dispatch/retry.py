"""Backoff, deadlines and transient-retry handling for the polling loops.

Both long-running loops (waiting for a dispatched run to appear and waiting
for a run to complete) share one :class:`PollingPolicy`. The policy carries
injectable ``sleep`` and ``clock`` callables so tests can drive the loops
without waiting in real time.
"""

from __future__ import annotations

import asyncio
import collections.abc as cabc
import dataclasses
import time

from tether.errors import WaitTimeoutError
from tether.github.errors import RetryableApiError
from tether.logging import get_logger, log_warning

logger = get_logger(__name__)

type Sleep = cabc.Callable[[float], cabc.Awaitable[None]]
type Clock = cabc.Callable[[], float]


@dataclasses.dataclass(frozen=True, slots=True)
class Backoff:
    """Exponential delay schedule capped at ``maximum_s``."""

    initial_s: float = 1.0
    maximum_s: float = 10.0
    multiplier: float = 2.0

    def delays(self) -> cabc.Iterator[float]:
        """Yield an endless sequence of delays."""
        delay = min(self.initial_s, self.maximum_s)
        while True:
            yield delay
            delay = min(delay * self.multiplier, self.maximum_s)


@dataclasses.dataclass(slots=True)
class Deadline:
    """Wall-clock budget measured on a monotonic clock.

    ``seconds=None`` means the loop may run forever.
    """

    seconds: float | None
    clock: Clock = time.monotonic
    _started_at: float = dataclasses.field(init=False)

    def __post_init__(self) -> None:
        """Start the budget at construction time."""
        self._started_at = self.clock()

    def remaining(self) -> float | None:
        """Return seconds left, or ``None`` for an unbounded deadline."""
        if self.seconds is None:
            return None
        return max(0.0, self.seconds - (self.clock() - self._started_at))

    def expired(self) -> bool:
        """Whether the budget is spent."""
        remaining = self.remaining()
        return remaining is not None and remaining <= 0


@dataclasses.dataclass(frozen=True, slots=True)
class PollingPolicy:
    """Pacing and limits for one polling loop.

    Attributes
    ----------
    backoff
        Delay schedule between ticks and between transient retries.
    timeout_s
        Hard deadline for the whole loop; ``None`` disables it.
    max_transient_retries
        Consecutive transient failures tolerated for a single call before the
        loop gives up with :class:`WaitTimeoutError`.
    sleep
        Awaitable sleep, ``asyncio.sleep`` outside tests.
    clock
        Monotonic clock used for deadlines.

    """

    backoff: Backoff = dataclasses.field(default_factory=Backoff)
    timeout_s: float | None = None
    max_transient_retries: int = 10
    sleep: Sleep = asyncio.sleep
    clock: Clock = time.monotonic

    def deadline(self) -> Deadline:
        """Start a new deadline for one loop."""
        return Deadline(self.timeout_s, clock=self.clock)

    async def pause(self, delay: float, deadline: Deadline | None = None) -> None:
        """Sleep for ``delay`` without overshooting ``deadline``."""
        remaining = deadline.remaining() if deadline is not None else None
        if remaining is not None:
            delay = min(delay, remaining)
        if delay > 0:
            await self.sleep(delay)


async def call_with_retries[T](
    operation: cabc.Callable[[], cabc.Awaitable[T]],
    *,
    policy: PollingPolicy,
    activity: str,
) -> T:
    """Await ``operation``, re-issuing it after each transient failure.

    :class:`~tether.github.errors.FatalApiError` and any other exception
    propagate untouched on the first occurrence.

    Raises
    ------
    WaitTimeoutError
        When more than ``policy.max_transient_retries`` consecutive attempts
        fail transiently.

    """
    delays = policy.backoff.delays()
    failures = 0
    while True:
        try:
            return await operation()
        except RetryableApiError as exc:
            failures += 1
            if failures > policy.max_transient_retries:
                raise WaitTimeoutError.retries_exhausted(activity, failures) from exc
            delay = next(delays)
            log_warning(
                logger,
                "Server error while %s (%s) - trying again in %.1fs",
                activity,
                exc,
                delay,
            )
            await policy.pause(delay)

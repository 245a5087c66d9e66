"""Generic poll-until-condition-or-timeout primitive.

Clock and sleep are injected so callers (and tests) control time. The interval
is fixed; there is no backoff.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import TypeVar

T = TypeVar("T")

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


class PollTimeout(Exception):
    """The predicate was never satisfied before the deadline."""

    def __init__(self, last: object, polls: int, elapsed: float) -> None:
        super().__init__(f"Condition not met after {polls} polls in {elapsed:.1f}s")
        self.last = last
        self.polls = polls
        self.elapsed = elapsed


async def poll_until(
    probe: Callable[[], Awaitable[T]],
    predicate: Callable[[T], bool],
    *,
    timeout: float,
    interval: float,
    clock: Clock = time.monotonic,
    sleep: Sleep = asyncio.sleep,
) -> T:
    """Call ``probe`` until ``predicate`` accepts its result.

    Polls immediately, then every ``interval`` seconds. The last sleep is
    clipped to the deadline so the final poll happens at the deadline, which
    keeps total elapsed time between ``timeout`` and ``timeout + interval``.
    Exceptions from ``probe`` propagate unchanged.

    Raises PollTimeout once the deadline has passed without a match.
    """
    start = clock()
    deadline = start + timeout
    polls = 0
    while True:
        value = await probe()
        polls += 1
        if predicate(value):
            return value

        remaining = deadline - clock()
        if remaining <= 0:
            raise PollTimeout(value, polls, clock() - start)
        await sleep(min(interval, remaining))

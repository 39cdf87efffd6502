"""Call id generation.

Ids combine a wrapping counter with the wall-clock time in milliseconds,
e.g. ``"42_1737111111111"``. Each worker hub owns its own generator; ids only
need to be unique among that worker's pending calls because replies are
routed back on the worker's own channel.
"""

from __future__ import annotations

import time

# Largest integer exactly representable in an IEEE-754 double. Peers on the
# other side of the channel may decode numbers as doubles.
MAX_SAFE_INTEGER = 2**53 - 1


class IdGenerator:
    """Produces call ids unique for the lifetime of the generator."""

    def __init__(self, start: int = 0, limit: int = MAX_SAFE_INTEGER) -> None:
        self._counter = start
        self._limit = limit

    def next(self) -> str:
        """Return the next id."""
        self._counter += 1
        if self._counter >= self._limit:
            self._counter = 0
        return f"{self._counter}_{int(time.time() * 1000)}"

    __call__ = next

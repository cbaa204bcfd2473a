"""
Purpose: Bounded concurrent fan-out for provider calls, shared by every tier.
What it does:
- BoundedFanout: a fixed-size thread pool; map_slots() runs one call per item
  and returns results in input order once *all* calls have finished
- CancellationToken: generation-keyed token; stale requests stop issuing
  provider calls and raise DiscoveryCancelled

Each call writes only its own result slot; merging happens after the fan-out.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from typing import Callable, List, Optional, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class DiscoveryCancelled(Exception):
    """The request was superseded; its results must not be used."""
    pass


class CancellationToken:
    """
    A token is stale once cancel() was called or, when bound to a generation
    counter, once the counter moved past the token's generation.
    """
    def __init__(self, generation: int = 0, current: Optional[Callable[[], int]] = None):
        self.generation = generation
        self._current = current
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        if self._cancelled.is_set():
            return True
        return self._current is not None and self._current() != self.generation

    def check(self) -> None:
        if self.cancelled:
            raise DiscoveryCancelled(f"discovery generation {self.generation} was superseded")


class BoundedFanout:
    def __init__(self, max_workers: int = 8):
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self.max_workers = max_workers
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="dropoff")

    def map_slots(
        self,
        fn: Callable[[T], R],
        items: Sequence[T],
        token: Optional[CancellationToken] = None,
    ) -> List[R]:
        """
        Run fn(item) for every item with at most `max_workers` in flight.
        Results come back in input order, independent of completion order.
        The first exception (in input order) is re-raised after queued work
        has been cancelled.
        """
        if token is not None:
            token.check()
        if not items:
            return []

        futures: List[Future] = [self._executor.submit(fn, item) for item in items]
        done, not_done = wait(futures, return_when=FIRST_EXCEPTION)
        if not_done:
            # something failed: drop whatever has not started yet
            cancelled = sum(1 for future in not_done if future.cancel())
            logger.debug("fan-out aborted, %s queued calls cancelled", cancelled)
            wait(not_done)

        slots: List[R] = []
        for future in futures:
            if future.cancelled():
                continue
            error = future.exception()
            if error is not None:
                raise error
            slots.append(future.result())

        if token is not None:
            token.check()
        return slots

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)

    def __enter__(self) -> BoundedFanout:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

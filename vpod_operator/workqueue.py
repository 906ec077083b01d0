"""
Keyed reconcile queue.

Guarantees:
- a key is queued at most once at any time
- a key is never handed to two workers at once; a key added while it is
  being processed is queued again when the worker calls done()
- failed keys come back with per-key exponential backoff and jitter
"""

import heapq
import random
import threading
import time
from typing import Callable, Dict, List, Optional, Set, Tuple

Key = Tuple[str, str]

BASE_DELAY_SECONDS = 0.005
MAX_DELAY_SECONDS = 300.0


class ShutDown(Exception):
    """Raised by get() once the queue is shut down and drained."""
    pass


class ReconcileQueue:

    def __init__(
        self,
        base_delay: float = BASE_DELAY_SECONDS,
        max_delay: float = MAX_DELAY_SECONDS,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._monotonic = monotonic
        self._cond = threading.Condition()
        self._queue: List[Key] = []
        self._dirty: Set[Key] = set()
        self._processing: Set[Key] = set()
        self._waiting: List[Tuple[float, int, Key]] = []
        self._failures: Dict[Key, int] = {}
        self._counter = 0
        self._shutting_down = False

    def __len__(self) -> int:
        with self._cond:
            return len(self._queue)

    def add(self, key: Key) -> None:
        with self._cond:
            if self._shutting_down or key in self._dirty:
                return
            self._dirty.add(key)
            if key in self._processing:
                return
            self._queue.append(key)
            self._cond.notify()

    def add_after(self, key: Key, delay: float) -> None:
        if delay <= 0:
            self.add(key)
            return
        with self._cond:
            if self._shutting_down:
                return
            self._counter += 1
            heapq.heappush(self._waiting, (self._monotonic() + delay, self._counter, key))
            self._cond.notify()

    def add_rate_limited(self, key: Key) -> float:
        """Requeue a key after its backoff; returns the delay used."""
        with self._cond:
            failures = self._failures.get(key, 0)
            self._failures[key] = failures + 1
        delay = min(self.base_delay * (2 ** failures), self.max_delay)
        delay += random.uniform(0, delay * 0.1)
        self.add_after(key, delay)
        return delay

    def forget(self, key: Key) -> None:
        with self._cond:
            self._failures.pop(key, None)

    def failures(self, key: Key) -> int:
        with self._cond:
            return self._failures.get(key, 0)

    def get(self, timeout: Optional[float] = None) -> Optional[Key]:
        """
        Block until a key is ready and mark it as processing.

        Returns:
            The key, or None when ``timeout`` elapsed first

        Raises:
            ShutDown: the queue was shut down
        """
        deadline = None if timeout is None else self._monotonic() + timeout
        with self._cond:
            while True:
                self._promote_waiting()
                if self._queue:
                    key = self._queue.pop(0)
                    self._dirty.discard(key)
                    self._processing.add(key)
                    return key
                if self._shutting_down:
                    raise ShutDown()
                if deadline is not None and self._monotonic() >= deadline:
                    return None
                self._cond.wait(self._next_wait(deadline))

    def done(self, key: Key) -> None:
        with self._cond:
            self._processing.discard(key)
            if key in self._dirty:
                self._queue.append(key)
                self._cond.notify()

    def shutdown(self) -> None:
        with self._cond:
            self._shutting_down = True
            self._cond.notify_all()

    def _promote_waiting(self) -> None:
        now = self._monotonic()
        while self._waiting and self._waiting[0][0] <= now:
            _, _, key = heapq.heappop(self._waiting)
            if key in self._dirty:
                continue
            self._dirty.add(key)
            if key not in self._processing:
                self._queue.append(key)

    def _next_wait(self, deadline: Optional[float]) -> Optional[float]:
        now = self._monotonic()
        waits = []
        if self._waiting:
            waits.append(self._waiting[0][0] - now)
        if deadline is not None:
            waits.append(deadline - now)
        if not waits:
            return None
        return max(min(waits), 0.0)

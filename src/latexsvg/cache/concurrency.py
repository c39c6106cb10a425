"""Per-key locking and the debounced background sweeper."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
import logging
from threading import Condition, Lock, Thread
import time


_log = logging.getLogger(__name__)


class _KeyedEntry:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = Lock()
        self.users = 0


class KeyedLock:
    """Lazily created mutexes, one per key, released when nobody holds them."""

    def __init__(self) -> None:
        self._entries: dict[str, _KeyedEntry] = {}
        self._guard = Lock()

    @contextmanager
    def hold(self, key: str, *, blocking: bool = True) -> Iterator[bool]:
        """Acquire the lock for ``key``; yields whether it was acquired."""
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _KeyedEntry()
            entry.users += 1
        acquired = entry.lock.acquire(blocking)
        try:
            yield acquired
        finally:
            if acquired:
                entry.lock.release()
            with self._guard:
                entry.users -= 1
                if entry.users == 0:
                    self._entries.pop(key, None)

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)


class DebouncedSweeper:
    """Run ``callback`` once activity has been quiet for ``delay`` seconds.

    A single daemon thread waits for triggers; each trigger pushes the deadline
    back, so a burst of requests results in one call.
    """

    def __init__(
        self,
        callback: Callable[[], object],
        *,
        delay: float,
        name: str = "latexsvg-sweeper",
    ) -> None:
        self._callback = callback
        self._delay = max(0.0, float(delay))
        self._name = name
        self._condition = Condition()
        self._deadline: float | None = None
        self._running = False
        self._stopped = False
        self._thread: Thread | None = None

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def pending(self) -> bool:
        with self._condition:
            return self._deadline is not None or self._running

    def trigger(self) -> None:
        """Schedule a run ``delay`` seconds from now, replacing any earlier deadline."""
        with self._condition:
            if self._stopped:
                return
            self._deadline = time.monotonic() + self._delay
            if self._thread is None:
                self._thread = Thread(target=self._worker, name=self._name, daemon=True)
                self._thread.start()
            self._condition.notify_all()

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until no run is scheduled or in progress."""
        end = None if timeout is None else time.monotonic() + timeout
        with self._condition:
            while self._deadline is not None or self._running:
                remaining = None if end is None else end - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return False
                self._condition.wait(remaining)
            return True

    def stop(self, *, timeout: float | None = 5.0) -> None:
        """Stop the worker thread, dropping any scheduled run."""
        with self._condition:
            self._stopped = True
            self._deadline = None
            self._condition.notify_all()
            thread = self._thread
        if thread is not None:
            thread.join(timeout)

    def _worker(self) -> None:
        while True:
            with self._condition:
                while not self._stopped:
                    if self._deadline is None:
                        self._condition.wait()
                        continue
                    remaining = self._deadline - time.monotonic()
                    if remaining <= 0:
                        break
                    self._condition.wait(remaining)
                if self._stopped:
                    return
                self._deadline = None
                self._running = True
            try:
                self._callback()
            except Exception:
                _log.exception("Background cache sweep failed")
            finally:
                with self._condition:
                    self._running = False
                    self._condition.notify_all()


__all__ = ["DebouncedSweeper", "KeyedLock"]

from __future__ import annotations

import logging
from threading import Event, Lock, Thread

from latexsvg.cache.concurrency import DebouncedSweeper, KeyedLock


class _Counter:
    def __init__(self) -> None:
        self.calls = 0
        self._lock = Lock()

    def __call__(self) -> None:
        with self._lock:
            self.calls += 1


def test_burst_of_triggers_runs_callback_once() -> None:
    counter = _Counter()
    sweeper = DebouncedSweeper(counter, delay=0.1)
    try:
        for _ in range(5):
            sweeper.trigger()
        assert sweeper.pending
        assert sweeper.wait_idle(5)
    finally:
        sweeper.stop()

    assert counter.calls == 1


def test_trigger_after_run_schedules_again() -> None:
    counter = _Counter()
    sweeper = DebouncedSweeper(counter, delay=0.01)
    try:
        sweeper.trigger()
        assert sweeper.wait_idle(5)
        sweeper.trigger()
        assert sweeper.wait_idle(5)
    finally:
        sweeper.stop()

    assert counter.calls == 2


def test_stop_drops_scheduled_run() -> None:
    counter = _Counter()
    sweeper = DebouncedSweeper(counter, delay=30)
    sweeper.trigger()

    sweeper.stop()
    sweeper.trigger()

    assert not sweeper.pending
    assert counter.calls == 0


def test_failing_callback_is_logged(caplog) -> None:
    def _boom() -> None:
        raise RuntimeError("sweep exploded")

    sweeper = DebouncedSweeper(_boom, delay=0.01)
    with caplog.at_level(logging.ERROR, logger="latexsvg.cache.concurrency"):
        try:
            sweeper.trigger()
            assert sweeper.wait_idle(5)
        finally:
            sweeper.stop()

    assert "Background cache sweep failed" in caplog.text


def test_keyed_lock_non_blocking_hold_fails_while_held() -> None:
    locks = KeyedLock()
    held = Event()
    release = Event()

    def _owner() -> None:
        with locks.hold("key"):
            held.set()
            release.wait(5)

    owner = Thread(target=_owner)
    owner.start()
    assert held.wait(5)
    try:
        with locks.hold("key", blocking=False) as acquired:
            assert acquired is False
        with locks.hold("other", blocking=False) as acquired:
            assert acquired is True
    finally:
        release.set()
        owner.join(5)

    with locks.hold("key", blocking=False) as acquired:
        assert acquired is True
    assert len(locks) == 0

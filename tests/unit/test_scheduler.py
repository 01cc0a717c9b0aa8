"""
Unit tests for src.reconcile.scheduler.
"""
from __future__ import annotations

import threading
import time

import pytest

from src.reconcile.scheduler import PeriodicTask


def _wait_for(predicate, timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


class TestPeriodicTask:
    def test_runs_repeatedly_until_stopped(self):
        calls = []
        task = PeriodicTask("tick", lambda: calls.append(1), interval=0.01)
        task.start()
        assert _wait_for(lambda: len(calls) >= 3)
        task.stop(timeout=2)
        assert not task.running
        settled = len(calls)
        time.sleep(0.05)
        assert len(calls) == settled

    def test_exceptions_do_not_kill_the_loop(self, caplog):
        calls = []

        def _flaky():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("boom")

        task = PeriodicTask("flaky", _flaky, interval=0.01)
        task.start()
        assert _wait_for(lambda: len(calls) >= 3)
        task.stop(timeout=2)
        assert task.failures == 1
        assert "PeriodicTask[flaky] run failed" in caplog.text

    def test_run_immediately(self):
        ran = threading.Event()
        task = PeriodicTask("eager", ran.set, interval=60, run_immediately=True)
        task.start()
        assert ran.wait(2)
        task.stop(timeout=2)

    def test_stop_interrupts_long_wait(self):
        task = PeriodicTask("slow", lambda: None, interval=60)
        task.start()
        started = time.monotonic()
        task.stop(timeout=2)
        assert time.monotonic() - started < 2
        assert task.runs == 0

    def test_start_twice_is_harmless(self):
        task = PeriodicTask("twice", lambda: None, interval=60)
        task.start()
        task.start()
        assert task.running
        task.stop(timeout=2)

    def test_stop_before_start(self):
        PeriodicTask("idle", lambda: None, interval=1).stop()

    def test_invalid_interval(self):
        with pytest.raises(ValueError, match="interval"):
            PeriodicTask("bad", lambda: None, interval=0)

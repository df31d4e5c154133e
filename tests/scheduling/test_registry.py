"""Tests for TimerRegistry and RecurringTimer."""

import threading
import time
from datetime import datetime

import pytest

from jobspine.core.errors import InvalidExpressionError, SchedulingError
from jobspine.core.scheduling.registry import TimerRegistry
from jobspine.core.timestamps import utc_now

from helpers import EVERY_SECOND, wait_for


def _noop(fire_at: datetime) -> None:
    pass


class TestRegistration:
    def test_register_installs_entry(self, registry):
        entry = registry.register("job-1", "*/5 * * * *", _noop)

        assert registry.is_registered("job-1")
        assert registry.count() == 1
        assert registry.list_registered_ids() == {"job-1"}
        assert registry.expression_for("job-1") == "*/5 * * * *"
        assert entry.timer.is_alive

    def test_next_fire_at_is_in_future(self, registry):
        before = utc_now()
        registry.register("job-1", "*/5 * * * *", _noop)
        assert registry.next_fire_at("job-1") > before

    def test_register_is_idempotent(self, registry):
        """Registering twice leaves exactly one live entry."""
        first = registry.register("job-1", "*/5 * * * *", _noop)
        second = registry.register("job-1", "*/5 * * * *", _noop)

        assert registry.count() == 1
        assert registry.list_registered_ids() == {"job-1"}
        assert first.timer.stopped
        assert not second.timer.stopped

    def test_reregister_replaces_expression(self, registry):
        registry.register("job-1", "*/5 * * * *", _noop)
        registry.register("job-1", "0 8 * * *", _noop)
        assert registry.expression_for("job-1") == "0 8 * * *"

    def test_invalid_expression_registers_nothing(self, registry):
        with pytest.raises(InvalidExpressionError):
            registry.register("job-1", "not-a-cron", _noop)

        assert not registry.is_registered("job-1")
        assert registry.count() == 0

    def test_invalid_reregistration_drops_old_entry(self, registry):
        """Cancel happens before validation, so a bad update leaves no stale timer."""
        registry.register("job-1", "*/5 * * * *", _noop)
        with pytest.raises(InvalidExpressionError):
            registry.register("job-1", "61 * * * *", _noop)
        assert not registry.is_registered("job-1")

    def test_register_after_close_rejected(self, evaluator):
        reg = TimerRegistry(evaluator)
        reg.close()
        with pytest.raises(SchedulingError):
            reg.register("job-1", "*/5 * * * *", _noop)


class TestCancel:
    def test_cancel_removes_entry(self, registry):
        entry = registry.register("job-1", "*/5 * * * *", _noop)

        assert registry.cancel("job-1") is True
        assert not registry.is_registered("job-1")
        assert entry.timer.stopped
        assert wait_for(lambda: not entry.timer.is_alive, timeout=2.0)

    def test_cancel_unknown_is_noop(self, registry):
        assert registry.cancel("missing") is False

    def test_cancel_all(self, registry):
        for i in range(3):
            registry.register(f"job-{i}", "*/5 * * * *", _noop)

        assert registry.cancel_all() == 3
        assert registry.count() == 0

    def test_introspection_of_unknown_id(self, registry):
        assert registry.next_fire_at("missing") is None
        assert registry.expression_for("missing") is None
        assert registry.get_entry("missing") is None


class TestFiring:
    def test_timer_fires_callback(self, registry):
        fired = []
        registry.register("job-1", EVERY_SECOND, lambda at: fired.append(at))

        assert wait_for(lambda: len(fired) >= 1, timeout=3.0)
        assert fired[0].tzinfo is not None

    def test_timer_keeps_firing(self, registry):
        fired = []
        registry.register("job-1", EVERY_SECOND, lambda at: fired.append(at))

        assert wait_for(lambda: len(fired) >= 2, timeout=4.0)
        assert fired[1] > fired[0]

    def test_async_callback_is_awaited(self, registry):
        done = threading.Event()

        async def on_fire(fire_at):
            done.set()

        registry.register("job-1", EVERY_SECOND, on_fire)
        assert done.wait(timeout=3.0)

    def test_failing_callback_does_not_stop_timer(self, registry):
        calls = []

        def explode(fire_at):
            calls.append(fire_at)
            raise RuntimeError("boom")

        registry.register("job-1", EVERY_SECOND, explode)

        assert wait_for(lambda: len(calls) >= 2, timeout=4.0)
        assert registry.is_registered("job-1")

    def test_failing_job_does_not_affect_others(self, registry):
        healthy = []
        registry.register("bad", EVERY_SECOND, lambda at: 1 / 0)
        registry.register("good", EVERY_SECOND, lambda at: healthy.append(at))

        assert wait_for(lambda: len(healthy) >= 2, timeout=4.0)

    def test_slow_callback_does_not_block_other_jobs(self, registry):
        release = threading.Event()
        fast = []

        registry.register("slow", EVERY_SECOND, lambda at: release.wait(5.0))
        registry.register("fast", EVERY_SECOND, lambda at: fast.append(at))
        try:
            assert wait_for(lambda: len(fast) >= 2, timeout=4.0)
        finally:
            release.set()

    def test_cancelled_timer_stops_firing(self, registry):
        fired = []
        registry.register("job-1", EVERY_SECOND, lambda at: fired.append(at))
        assert wait_for(lambda: len(fired) >= 1, timeout=3.0)

        registry.cancel("job-1")
        count = len(fired)
        time.sleep(1.5)
        assert len(fired) <= count + 1  # at most one firing already handed off


class TestOverlap:
    """A job never has more than one firing in flight."""

    def test_stuck_job_does_not_starve_others(self, evaluator):
        reg = TimerRegistry(evaluator, max_workers=2)
        release = threading.Event()
        stuck_started = threading.Event()
        healthy = []

        def stuck(fire_at):
            stuck_started.set()
            release.wait(10.0)

        reg.register("stuck", EVERY_SECOND, stuck)
        reg.register("healthy", EVERY_SECOND, lambda at: healthy.append(at))
        try:
            assert stuck_started.wait(timeout=3.0)
            # Enough stuck firings to fill both workers if each one were dispatched
            assert wait_for(lambda: reg.get_entry("stuck").timer.fire_count >= 4, timeout=6.0)

            seen = len(healthy)
            assert wait_for(lambda: len(healthy) >= seen + 2, timeout=4.0)
            assert reg.get_entry("stuck").skipped_overlaps >= 2
            assert reg.in_flight <= 2
        finally:
            release.set()
            reg.close()

    def test_overlapping_firing_is_skipped(self, registry):
        release = threading.Event()
        lock = threading.Lock()
        state = {"running": 0, "peak": 0, "runs": 0}

        def slow(fire_at):
            with lock:
                state["running"] += 1
                state["runs"] += 1
                state["peak"] = max(state["peak"], state["running"])
            release.wait(5.0)
            with lock:
                state["running"] -= 1

        registry.register("job-1", EVERY_SECOND, slow)
        try:
            assert wait_for(lambda: registry.get_entry("job-1").skipped_overlaps >= 1, timeout=4.0)
            assert state["runs"] == 1
            assert registry.snapshot()[0]["skipped_overlaps"] >= 1
        finally:
            release.set()

        # Skipping does not stop the timer
        assert wait_for(lambda: state["runs"] >= 2, timeout=3.0)
        assert state["peak"] == 1

    def test_reregistration_keeps_the_bound(self, registry):
        release = threading.Event()
        started = []

        def blocked(fire_at):
            started.append(fire_at)
            release.wait(5.0)

        registry.register("job-1", EVERY_SECOND, blocked)
        try:
            assert wait_for(lambda: len(started) == 1, timeout=3.0)
            entry = registry.register("job-1", EVERY_SECOND, blocked)

            assert wait_for(lambda: entry.skipped_overlaps >= 1, timeout=3.0)
            assert len(started) == 1
        finally:
            release.set()


class TestConcurrency:
    def test_concurrent_register_and_cancel(self, registry):
        errors = []

        def worker(n: int) -> None:
            try:
                for i in range(20):
                    job_id = f"job-{i % 5}"
                    registry.register(job_id, "*/5 * * * *", _noop)
                    if (i + n) % 3 == 0:
                        registry.cancel(job_id)
            except Exception as exc:  # pragma: no cover
                errors.append(exc)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        ids = registry.list_registered_ids()
        assert ids <= {f"job-{i}" for i in range(5)}
        assert registry.count() == len(ids)
        for job_id in ids:
            assert not registry.get_entry(job_id).timer.stopped


class TestShutdown:
    def test_wait_idle_without_work(self, registry):
        assert registry.wait_idle(0.1) is True

    def test_wait_idle_waits_for_in_flight(self, registry):
        started = threading.Event()

        def slow(fire_at):
            started.set()
            time.sleep(0.3)

        registry.register("job-1", EVERY_SECOND, slow)
        assert started.wait(timeout=3.0)
        registry.cancel_all()

        assert registry.wait_idle(2.0) is True
        assert registry.in_flight == 0

    def test_wait_idle_times_out(self, registry):
        started = threading.Event()
        release = threading.Event()

        def blocked(fire_at):
            started.set()
            release.wait(5.0)

        registry.register("job-1", EVERY_SECOND, blocked)
        assert started.wait(timeout=3.0)
        registry.cancel_all()
        try:
            assert registry.wait_idle(0.1) is False
        finally:
            release.set()

    def test_close_is_idempotent(self, evaluator):
        reg = TimerRegistry(evaluator)
        reg.register("job-1", "*/5 * * * *", _noop)
        reg.close()
        reg.close()
        assert reg.closed
        assert reg.count() == 0

    def test_snapshot(self, registry):
        registry.register("b", "*/5 * * * *", _noop)
        registry.register("a", "0 8 * * *", _noop)

        snapshot = registry.snapshot()
        assert [s["job_id"] for s in snapshot] == ["a", "b"]
        assert snapshot[0]["cron_expression"] == "0 8 * * *"
        assert snapshot[0]["fire_count"] == 0

"""
Unit tests for the bounded worker pool.
"""

import threading

import pytest

from minihttp.core.thread_pool import ThreadPool, WorkerState


def blocker(started: threading.Event, release: threading.Event):
    """A task that occupies its worker until ``release`` is set."""
    def run():
        started.set()
        release.wait(timeout=5.0)
    return run


@pytest.fixture
def release():
    event = threading.Event()
    yield event
    event.set()  # Never leave a worker parked after a failed assertion


class TestThreadPool:

    def test_submit_runs_task(self):
        pool = ThreadPool(min_workers=2, max_workers=2, queue_size=4)
        pool.start()
        done = threading.Event()
        results = []

        def task(value, scale=1):
            results.append(value * scale)
            done.set()

        try:
            assert pool.submit(task, args=(21,), kwargs={"scale": 2}) is True
            assert done.wait(timeout=5.0)
        finally:
            pool.shutdown()

        assert results == [42]

    def test_submit_before_start(self):
        pool = ThreadPool(min_workers=1, max_workers=1, queue_size=1)
        with pytest.raises(RuntimeError):
            pool.submit(lambda: None)

    def test_submit_after_shutdown(self):
        pool = ThreadPool(min_workers=1, max_workers=1, queue_size=1)
        pool.start()
        pool.shutdown()

        with pytest.raises(RuntimeError):
            pool.submit(lambda: None)

    def test_full_queue_refuses_without_waiting(self, release):
        pool = ThreadPool(min_workers=1, max_workers=1, queue_size=1)
        pool.start()
        started = threading.Event()

        try:
            assert pool.submit(blocker(started, release))
            assert started.wait(timeout=5.0)

            assert pool.submit(lambda: None) is True   # Takes the only queue slot
            assert pool.submit(lambda: None) is False  # Nowhere to put this one
        finally:
            release.set()
            pool.shutdown(wait=True, timeout=5.0)

    def test_scales_up_to_max_when_all_busy(self, release):
        pool = ThreadPool(min_workers=1, max_workers=3, queue_size=10)
        pool.start()

        try:
            for i in range(4):
                started = threading.Event()
                pool.submit(blocker(started, release))
                if i < 3:
                    assert started.wait(timeout=5.0)

            stats = pool.stats
            assert stats["workers"]["total"] == 3
            assert stats["workers"]["busy"] == 3
            assert stats["tasks"]["queued"] == 1
        finally:
            release.set()
            pool.shutdown(wait=True, timeout=5.0)

    def test_failing_task_counted_and_worker_survives(self):
        pool = ThreadPool(min_workers=1, max_workers=1, queue_size=4)
        pool.start()
        done = threading.Event()

        def explode():
            raise ValueError("boom")

        try:
            pool.submit(explode)
            pool.submit(done.set)
            assert done.wait(timeout=5.0)
            assert pool.stats["tasks"]["failed"] == 1
        finally:
            pool.shutdown()

    def test_shutdown_runs_queued_tasks_then_stops_workers(self):
        pool = ThreadPool(min_workers=2, max_workers=2, queue_size=10)
        pool.start()
        ran = []
        lock = threading.Lock()

        def task(i):
            with lock:
                ran.append(i)

        for i in range(5):
            assert pool.submit(task, args=(i,))

        workers = list(pool._workers)
        pool.shutdown(wait=True, timeout=5.0)

        assert sorted(ran) == [0, 1, 2, 3, 4]
        for worker in workers:
            assert not worker.is_alive()
            assert worker.state == WorkerState.STOPPED
        assert pool.stats["workers"]["total"] == 0

"""Tests for the bounded connection worker pool."""

import threading

import pytest

from thread_pool import ThreadPool


def test_thread_pool_starts_fixed_worker_count() -> None:
    pool = ThreadPool(worker_count=3, queue_size=4, handler=lambda _conn, _addr: None)
    pool.start()

    try:
        assert pool.worker_count == 3
        assert len(pool.threads) == 3
        assert all(thread.is_alive() for thread in pool.threads)
    finally:
        pool.shutdown()


def test_thread_pool_submit_returns_false_when_full() -> None:
    pool = ThreadPool(worker_count=1, queue_size=1, handler=lambda _conn, _addr: None)

    assert pool.submit(object(), ("127.0.0.1", 0)) is True
    assert pool.submit(object(), ("127.0.0.1", 1)) is False


def test_thread_pool_runs_handler_for_submitted_jobs() -> None:
    handled: list[tuple[str, int]] = []
    done = threading.Event()

    def handler(_connection: object, address: tuple[str, int]) -> None:
        handled.append(address)
        if len(handled) == 2:
            done.set()

    pool = ThreadPool(worker_count=2, queue_size=4, handler=handler)
    pool.start()
    try:
        pool.submit(object(), ("10.0.0.1", 1))
        pool.submit(object(), ("10.0.0.2", 2))
        assert done.wait(2.0)
    finally:
        pool.shutdown(graceful=True)

    assert sorted(handled) == [("10.0.0.1", 1), ("10.0.0.2", 2)]


def test_thread_pool_rejects_submissions_after_shutdown() -> None:
    pool = ThreadPool(worker_count=1, queue_size=1, handler=lambda _conn, _addr: None)
    pool.start()
    pool.shutdown()

    assert pool.submit(object(), ("127.0.0.1", 0)) is False


@pytest.mark.parametrize(("worker_count", "queue_size"), [(0, 1), (1, 0)])
def test_thread_pool_validates_sizes(worker_count: int, queue_size: int) -> None:
    with pytest.raises(ValueError, match="must be positive"):
        ThreadPool(worker_count=worker_count, queue_size=queue_size, handler=lambda _c, _a: None)

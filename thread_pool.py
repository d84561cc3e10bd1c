"""Bounded worker pool serving accepted connections."""

from __future__ import annotations

import queue
import threading
from collections.abc import Callable

ClientAddress = tuple[str, int]
ConnectionJob = tuple[object, ClientAddress]
ConnectionHandler = Callable[[object, ClientAddress], None]


class ThreadPool:
    """Fixed number of worker threads fed from a bounded queue."""

    def __init__(self, worker_count: int, queue_size: int, handler: ConnectionHandler) -> None:
        if worker_count <= 0:
            raise ValueError("worker_count must be positive")
        if queue_size <= 0:
            raise ValueError("queue_size must be positive")

        self._handler = handler
        self._worker_count = worker_count
        self._queue: queue.Queue[ConnectionJob | None] = queue.Queue(maxsize=queue_size)
        self._stop_event = threading.Event()
        self._threads: list[threading.Thread] = []
        self._shutdown_lock = threading.Lock()
        self._shutdown_started = False

    @property
    def worker_count(self) -> int:
        return self._worker_count

    @property
    def threads(self) -> tuple[threading.Thread, ...]:
        return tuple(self._threads)

    def start(self) -> None:
        for index in range(self._worker_count):
            worker = threading.Thread(
                target=self._worker_loop,
                name=f"dispatch-worker-{index}",
                daemon=True,
            )
            self._threads.append(worker)
            worker.start()

    def submit(self, connection: object, address: ClientAddress) -> bool:
        """Queue a connection; False when the pool is stopping or the queue is full."""
        if self._shutdown_started:
            return False
        try:
            self._queue.put_nowait((connection, address))
        except queue.Full:
            return False
        return True

    def shutdown(self, *, graceful: bool = False, timeout: float = 1.0) -> None:
        with self._shutdown_lock:
            if self._shutdown_started:
                return
            self._shutdown_started = True

        if graceful:
            # Workers exit on the sentinel only after draining queued connections.
            for _ in self._threads:
                self._queue.put(None)
        else:
            self._stop_event.set()
            for _ in self._threads:
                try:
                    self._queue.put_nowait(None)
                except queue.Full:
                    break

        for thread in self._threads:
            thread.join(timeout=timeout)

    def _worker_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                job = self._queue.get(timeout=0.2)
            except queue.Empty:
                continue
            try:
                if job is None:
                    return
                connection, address = job
                self._handler(connection, address)
            finally:
                self._queue.task_done()

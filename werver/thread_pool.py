"""A fixed-size pool of worker threads that reports job failures."""

from __future__ import annotations

import logging
import queue
import threading
import time
from typing import Any, Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

R = TypeVar("R")

_STOP = object()


class ThreadPool(Generic[R]):
    """Run jobs on worker threads.

    A job is a callable taking no arguments. A job that raises has its
    exception passed to ``err_handler``. The handler's result is queued and
    given back by a later call to :meth:`execute`.
    """

    def __init__(self, size: int, err_handler: Callable[[Exception], R]) -> None:
        if size <= 0:
            raise ValueError("thread pool size must be greater than zero")
        self._jobs: queue.Queue[Any] = queue.Queue()
        self._errors: queue.Queue[R] = queue.Queue()
        self._err_handler = err_handler
        self._closed = False
        self._workers: list[tuple[int, threading.Thread]] = []
        for worker_id in range(size):
            thread = threading.Thread(
                target=self._run_worker,
                args=(worker_id,),
                name=f"werver-worker-{worker_id}",
                daemon=True,
            )
            thread.start()
            self._workers.append((worker_id, thread))

    def _run_worker(self, worker_id: int) -> None:
        while True:
            job = self._jobs.get()
            if job is _STOP:
                logger.info("Worker %d disconnected; shutting down.", worker_id)
                return
            logger.info("Worker %d got a job; executing.", worker_id)
            started = time.monotonic()
            try:
                job()
            except Exception as exc:  # every job failure goes to the handler
                logger.info("Worker %d encountered an error; handling.", worker_id)
                self._errors.put(self._err_handler(exc))
            else:
                elapsed_ms = int((time.monotonic() - started) * 1000)
                logger.info(
                    "Worker %d finished job successfully in %dms.", worker_id, elapsed_ms
                )

    def execute(self, job: Callable[[], Any]) -> R | None:
        """Queue ``job`` and return one pending handled error, or None if there is none."""
        if self._closed:
            raise RuntimeError("thread pool has been shut down")
        self._jobs.put(job)
        try:
            return self._errors.get_nowait()
        except queue.Empty:
            return None

    def shutdown(self) -> None:
        """Stop accepting jobs, let queued jobs finish and join every worker."""
        if self._closed:
            return
        self._closed = True
        for _ in self._workers:
            self._jobs.put(_STOP)
        for worker_id, thread in self._workers:
            logger.info("Shutting down worker %d", worker_id)
            thread.join()

    def __enter__(self) -> ThreadPool[R]:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()
"""
=============================================================================
THREAD POOL
=============================================================================

Bounded concurrency for connection handling. The accept loop never handles
a client itself; it submits the connection here and goes back to accept().

    accept loop ──submit(conn)──►  ┌──────────────────────────────────┐
                                   │  Task Queue (maxsize=queue_size) │
                                   │  [conn] [conn] [conn] ...        │
                                   └───────────────┬──────────────────┘
                              ┌────────────────────┼────────────────────┐
                              ▼                    ▼                    ▼
                         ┌─────────┐          ┌─────────┐          ┌─────────┐
                         │Worker 0 │          │Worker 1 │   ...    │Worker N │
                         └─────────┘          └─────────┘          └─────────┘

=============================================================================
LIMITS
=============================================================================

    min_workers   Started with the pool and kept for its lifetime.
    max_workers   Ceiling. A worker is added only when every existing one
                  is busy and work is waiting.
    queue_size    Connections that may wait for a worker. When the queue
                  is full, submit() returns False and the caller
                  answers with 503 instead of letting the backlog grow.

A failing task is logged and counted; the worker moves on to the next one.

=============================================================================
SHUTDOWN (poison pills)
=============================================================================

    1. Refuse new submissions
    2. Optionally wait for the queue to drain
    3. Put one None per worker into the queue
    4. Each worker exits when it takes a None
    5. Join workers

=============================================================================
"""

import threading
import queue
import time
import logging
from typing import Callable, Optional, Any
from dataclasses import dataclass, field
from enum import Enum


logger = logging.getLogger(__name__)


class WorkerState(Enum):
    IDLE = "idle"        # Waiting for a task
    BUSY = "busy"        # Running a task
    STOPPED = "stopped"  # Thread exited


@dataclass
class Task:
    """
    A deferred call: ``func(*args, **kwargs)`` on some worker, later.

    ``submitted_at`` is kept so the worker can log how long the task sat
    in the queue.
    """
    func: Callable[..., Any]
    args: tuple = ()
    kwargs: dict = field(default_factory=dict)
    submitted_at: float = field(default_factory=time.time)


class Worker(threading.Thread):
    """
    Pulls tasks off the shared queue until it receives a poison pill.

    Daemon thread, so a stuck client can never keep the interpreter alive
    after the main thread exits.
    """

    def __init__(self, task_queue: "queue.Queue[Optional[Task]]", worker_id: int, idle_timeout: float = 1.0):
        super().__init__(name=f"minihttp-worker-{worker_id}", daemon=True)

        self.task_queue = task_queue
        self.worker_id = worker_id
        self.idle_timeout = idle_timeout

        self.state = WorkerState.IDLE
        self._shutdown = threading.Event()

        self.tasks_completed = 0
        self.tasks_failed = 0

    def run(self):
        logger.debug(f"Worker {self.worker_id} started")

        while not self._shutdown.is_set():
            try:
                # Timeout so shutdown() is noticed even without a pill
                task = self.task_queue.get(timeout=self.idle_timeout)
            except queue.Empty:
                continue

            try:
                if task is None:
                    break
                self._execute_task(task)
            finally:
                self.task_queue.task_done()

        self.state = WorkerState.STOPPED
        logger.debug(f"Worker {self.worker_id} stopped")

    def _execute_task(self, task: Task):
        self.state = WorkerState.BUSY
        start_time = time.time()
        waited = start_time - task.submitted_at
        if waited > 1.0:
            logger.debug(f"Worker {self.worker_id} picked up task after {waited:.2f}s in queue")

        try:
            task.func(*task.args, **task.kwargs)
            self.tasks_completed += 1
            logger.debug(
                f"Worker {self.worker_id} completed task in {time.time() - start_time:.3f}s"
            )
        except Exception as e:
            # One bad connection must not take the worker down with it
            logger.exception(
                f"Worker {self.worker_id} task failed after {time.time() - start_time:.3f}s: {e}"
            )
            self.tasks_failed += 1
        finally:
            self.state = WorkerState.IDLE

    def shutdown(self):
        """Signal the worker to stop after its current task."""
        self._shutdown.set()


class ThreadPool:
    """
    Fixed-ceiling pool of worker threads over a bounded queue.

        pool = ThreadPool(min_workers=4, max_workers=16, queue_size=100)
        pool.start()

        if not pool.submit(handle, args=(conn,)):
            ...  # saturated: reject the connection

        pool.shutdown(wait=True, timeout=5.0)
    """

    def __init__(
        self,
        min_workers: int = 4,
        max_workers: int = 16,
        queue_size: int = 100,
        idle_timeout: float = 1.0,
    ):
        self.min_workers = min_workers
        self.max_workers = max_workers
        self.max_queue_size = queue_size
        self.idle_timeout = idle_timeout

        # queue.Queue does its own locking; maxsize is the backpressure point
        self._task_queue: "queue.Queue[Optional[Task]]" = queue.Queue(maxsize=queue_size)

        self._workers: list[Worker] = []
        self._lock = threading.Lock()  # Protects _workers and _next_worker_id
        self._started = False
        self._shutdown = False
        self._next_worker_id = 0

    def start(self):
        """Start ``min_workers`` workers. A second call is a no-op."""
        if self._started:
            return

        logger.info(f"Starting thread pool with {self.min_workers} workers (max {self.max_workers})")

        self._shutdown = False
        with self._lock:
            for _ in range(self.min_workers):
                self._add_worker_locked()

        self._started = True

    def _add_worker_locked(self) -> Worker:
        """Create and start a worker. Caller holds ``self._lock``."""
        worker = Worker(
            task_queue=self._task_queue,
            worker_id=self._next_worker_id,
            idle_timeout=self.idle_timeout,
        )
        self._next_worker_id += 1
        self._workers.append(worker)
        worker.start()
        return worker

    def submit(
        self,
        func: Callable[..., Any],
        args: tuple = (),
        kwargs: Optional[dict] = None,
    ) -> bool:
        """
        Queue ``func(*args, **kwargs)`` for a worker without waiting.

        Args:
            func: The function to run.
            args: Positional arguments.
            kwargs: Keyword arguments.

        Returns:
            True if queued, False if the queue was full.

        Raises:
            RuntimeError: The pool is not started or is shutting down.
        """
        if not self._started:
            raise RuntimeError("Thread pool not started")

        if self._shutdown:
            raise RuntimeError("Thread pool is shutting down")

        task = Task(func=func, args=args, kwargs=kwargs or {})

        try:
            self._task_queue.put(task, block=False)
        except queue.Full:
            return False

        self._maybe_scale_up()
        return True

    def _maybe_scale_up(self):
        """Add one worker if all are busy, work is waiting and we are under max."""
        with self._lock:
            if len(self._workers) >= self.max_workers:
                return

            busy_count = sum(1 for w in self._workers if w.state == WorkerState.BUSY)
            if busy_count == len(self._workers) and self._task_queue.qsize() > 0:
                logger.debug(f"Scaling up: {len(self._workers)} -> {len(self._workers) + 1} workers")
                self._add_worker_locked()

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None):
        """
        Stop the pool.

        Args:
            wait: Let queued tasks run before stopping the workers.
            timeout: Upper bound in seconds on that wait; None waits for
                     the queue to drain completely.
        """
        if not self._started:
            return

        logger.info("Shutting down thread pool...")
        self._shutdown = True

        if wait:
            if timeout is not None:
                deadline = time.time() + timeout
                while self._task_queue.unfinished_tasks:
                    if time.time() > deadline:
                        logger.warning("Shutdown timeout, abandoning queued tasks")
                        break
                    time.sleep(0.05)
            else:
                self._task_queue.join()

        for worker in self._workers:
            worker.shutdown()
            try:
                self._task_queue.put(None, block=False)
            except queue.Full:
                pass  # Worker still sees its shutdown flag on the next get() timeout

        for worker in self._workers:
            worker.join(timeout=2.0)

        with self._lock:
            self._workers.clear()
        self._started = False

        logger.info("Thread pool shutdown complete")

    # =========================================================================
    # MONITORING
    # =========================================================================

    @property
    def active_workers(self) -> int:
        return sum(1 for w in self._workers if w.state != WorkerState.STOPPED)

    @property
    def busy_workers(self) -> int:
        return sum(1 for w in self._workers if w.state == WorkerState.BUSY)

    @property
    def idle_workers(self) -> int:
        return sum(1 for w in self._workers if w.state == WorkerState.IDLE)

    @property
    def stats(self) -> dict:
        """Worker and task counters, logged on shutdown."""
        return {
            "workers": {
                "total": len(self._workers),
                "active": self.active_workers,
                "busy": self.busy_workers,
                "idle": self.idle_workers,
            },
            "tasks": {
                "queued": self._task_queue.qsize(),
                "queue_limit": self.max_queue_size,
                "completed": sum(w.tasks_completed for w in self._workers),
                "failed": sum(w.tasks_failed for w in self._workers),
            },
        }

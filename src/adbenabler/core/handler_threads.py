"""
=============================================================================
PER-CONNECTION HANDLER THREADS
=============================================================================

Every accepted connection gets its own thread.

    accept loop ──► spawn(handle, conn) ──► Worker-1  (client A)
                └─► spawn(handle, conn) ──► Worker-2  (client B, slow)
                └─► spawn(handle, conn) ──► Worker-3  (client C)

Why not a fixed-size pool?
──────────────────────────
Handlers block on socket reads. With a pool of N workers, N clients that
connect and then go quiet would occupy every worker and stall everyone
else. One thread per connection means a stalled client only ever costs
its own thread. The listener serves a handful of clients on a local
network, so the thread count stays small.

Lifecycle:
    - Threads are daemons: they never keep the process alive on exit.
    - Stopping the listener does NOT cancel running handlers. Each one
      finishes normally or on its own read/write failure.
    - join() lets callers (tests, graceful CLI shutdown) wait for the
      handlers that are still running.

=============================================================================
"""

import logging
import threading
import time
from typing import Any, Callable, Optional, Set


logger = logging.getLogger(__name__)


class Worker(threading.Thread):
    """
    Runs one task and reports back to its HandlerThreads when done.

    Exceptions escaping the task are logged here; they never reach the
    accept loop.
    """

    def __init__(
        self,
        owner: "HandlerThreads",
        worker_id: int,
        func: Callable[..., Any],
        args: tuple,
    ):
        super().__init__(name=f"Worker-{worker_id}", daemon=True)
        self.owner = owner
        self.worker_id = worker_id
        self.func = func
        self.args = args

    def run(self):
        start_time = time.time()
        failed = True
        try:
            self.func(*self.args)
            failed = False
        except Exception as e:
            elapsed = time.time() - start_time
            logger.exception(f"Worker {self.worker_id} task failed after {elapsed:.3f}s: {e}")
        finally:
            self.owner._finished(self, failed=failed)



class HandlerThreads:
    """
    Spawns and tracks one thread per task.

    Usage:
        threads = HandlerThreads()
        threads.spawn(handle_connection, conn)
        ...
        threads.join(timeout=5.0)
    """

    def __init__(self):
        self._active: Set[Worker] = set()
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._next_worker_id = 0

        self.tasks_completed = 0
        self.tasks_failed = 0

    def spawn(self, func: Callable[..., Any], *args: Any) -> Worker:
        """Start func(*args) on a new daemon thread."""
        with self._lock:
            worker = Worker(self, self._next_worker_id, func, args)
            self._next_worker_id += 1
            self._active.add(worker)

        try:
            worker.start()
        except RuntimeError:
            # Out of threads; forget the worker so join() does not hang
            with self._lock:
                self._active.discard(worker)
            raise
        return worker

    def _finished(self, worker: Worker, failed: bool):
        with self._lock:
            self._active.discard(worker)
            if failed:
                self.tasks_failed += 1
            else:
                self.tasks_completed += 1
            if not self._active:
                self._idle.notify_all()

    def join(self, timeout: Optional[float] = None) -> bool:
        """
        Wait until no handler is running.

        Returns:
            True if all handlers finished, False on timeout.
        """
        with self._idle:
            return self._idle.wait_for(lambda: not self._active, timeout=timeout)

    @property
    def active_count(self) -> int:
        with self._lock:
            return len(self._active)

    @property
    def stats(self) -> dict:
        with self._lock:
            return {
                "active": len(self._active),
                "completed": self.tasks_completed,
                "failed": self.tasks_failed,
            }

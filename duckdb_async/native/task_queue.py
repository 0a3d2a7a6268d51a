from __future__ import annotations
import logging
import queue
import threading
from contextlib import nullcontext
from typing import Any, Callable, ContextManager, Optional

_logger = logging.getLogger(__name__)

_STOP = object()


def invoke_callback(callback: Optional[Callable[..., Any]], *args: Any,
                    logger: logging.Logger = _logger) -> None:
    """Call a user callback; its exceptions are logged, never propagated into the worker."""
    if callback is None:
        return
    try:
        callback(*args)
    except Exception:
        logger.exception("Unhandled exception in native callback")


class TaskQueue:
    """
    A FIFO of jobs drained by one dedicated worker thread.

    Every native handle owns (or shares) one queue, which is what serializes
    the operations issued against it in submission order.

    Args:
        name (str): Thread name, used in log messages.
        gate (Callable, optional): Returns a context manager entered around
            every job. Used to serialize several queues against each other.
    """

    def __init__(self, name: str, gate: Optional[Callable[[], ContextManager]] = None,
                 logger: Optional[logging.Logger] = None) -> None:
        self.name = name
        self._gate = gate or nullcontext
        self.logger = logger or _logger
        self._queue: queue.SimpleQueue = queue.SimpleQueue()
        self._stopped = False
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._thread.start()
        self.logger.debug(f"Started worker {name}")

    @property
    def stopped(self) -> bool:
        return self._stopped

    def submit(self, job: Callable[..., Any], *args: Any) -> None:
        if self._stopped:
            raise RuntimeError(f"Worker {self.name} is stopped")
        self._queue.put((job, args))

    def stop(self) -> None:
        """Stop the worker after the jobs already queued have run."""
        if not self._stopped:
            self._stopped = True
            self._queue.put(_STOP)

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                break
            job, args = item
            try:
                with self._gate():
                    job(*args)
            except Exception:
                # Jobs report their own errors through callbacks.
                self.logger.exception(f"Unhandled exception in worker {self.name}")
        self.logger.debug(f"Stopped worker {self.name}")

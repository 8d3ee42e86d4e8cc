"""Single-lane request queue.

Provider calls are funnelled through one worker so that at most one request
per provider is in flight, in strict arrival order, with a fixed gap between
consecutive requests.
"""

import threading
import time
from collections import deque
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Callable

from docenrich.logger import get_logger

logger = get_logger(__name__)


@dataclass
class QueuedOperation:
    """A pending call and the future that receives its outcome."""

    operation: Callable[[], Any]
    future: Future


class ThrottleManager:
    """FIFO queue drained by a single worker thread.

    The worker is started on demand and exits once the queue is empty. An
    enqueue that arrives while the worker is draining only appends. Queued
    operations cannot be cancelled.
    """

    def __init__(
        self,
        min_request_gap: float = 0.1,
        sleep: Callable[[float], None] = time.sleep,
        name: str = "throttle",
    ):
        self.min_request_gap = min_request_gap
        self.name = name
        self._sleep = sleep
        self._queue: deque[QueuedOperation] = deque()
        self._lock = threading.Lock()
        self._processing = False

    @property
    def queue_depth(self) -> int:
        with self._lock:
            return len(self._queue)

    @property
    def is_processing(self) -> bool:
        with self._lock:
            return self._processing

    def enqueue(self, operation: Callable[[], Any]) -> Future:
        """Queue an operation and return a future for its result."""
        future: Future = Future()
        future.set_running_or_notify_cancel()

        with self._lock:
            self._queue.append(QueuedOperation(operation, future))
            if self._processing:
                return future
            self._processing = True

        worker = threading.Thread(
            target=self._drain,
            name=f"{self.name}-worker",
            daemon=True,
        )
        worker.start()
        return future

    def _drain(self) -> None:
        try:
            while True:
                with self._lock:
                    if not self._queue:
                        self._processing = False
                        return
                    item = self._queue.popleft()

                try:
                    result = item.operation()
                except BaseException as e:
                    # Settled on the future; the lane keeps draining
                    item.future.set_exception(e)
                else:
                    item.future.set_result(result)

                self._sleep(self.min_request_gap)
        except BaseException:
            # Let the next enqueue start a fresh worker
            with self._lock:
                self._processing = False
            logger.error("llm.throttle.worker_died", queue=self.name, exc_info=True)
            raise

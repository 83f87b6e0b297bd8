"""Work queues that execute request operations asynchronously."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_for_futures
from typing import Callable, Protocol, runtime_checkable

from .exceptions import QueuedHTTPError
from .operation import RequestOperation


logger = logging.getLogger(__name__)

OperationPredicate = Callable[[RequestOperation], bool]


@runtime_checkable
class WorkQueue(Protocol):
    """Collaborator that schedules request operations.

    ``submit`` must return without running the operation on the calling thread.
    """

    def submit(self, operation: RequestOperation) -> None: ...

    def cancel_matching(self, predicate: OperationPredicate) -> int: ...

    def wait_until_idle(self, timeout: float | None = None) -> bool: ...

    def shutdown(self, wait: bool = True) -> None: ...


class ThreadPoolWorkQueue:
    """Runs operations on a bounded pool of worker threads."""

    def __init__(self, max_workers: int = 4, *, thread_name_prefix: str = "queued-http") -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.max_workers = max_workers
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=thread_name_prefix)
        self._lock = threading.RLock()
        self._in_flight: dict[RequestOperation, Future[None]] = {}
        self._closed = False

    def __len__(self) -> int:
        with self._lock:
            return len(self._in_flight)

    @property
    def operations(self) -> list[RequestOperation]:
        with self._lock:
            return list(self._in_flight)

    def submit(self, operation: RequestOperation) -> None:
        with self._lock:
            if self._closed:
                raise QueuedHTTPError("Work queue has been shut down")
            future = self._executor.submit(operation.run)
            self._in_flight[operation] = future
            future.add_done_callback(lambda _: self._discard(operation))
        logger.debug("Submitted %r", operation)

    def _discard(self, operation: RequestOperation) -> None:
        with self._lock:
            self._in_flight.pop(operation, None)

    def cancel_matching(self, predicate: OperationPredicate) -> int:
        cancelled = 0
        with self._lock:
            for operation, future in list(self._in_flight.items()):
                if not predicate(operation):
                    continue
                if operation.cancel():
                    cancelled += 1
                future.cancel()
        if cancelled:
            logger.debug("Cancelled %d operation(s)", cancelled)
        return cancelled

    def wait_until_idle(self, timeout: float | None = None) -> bool:
        with self._lock:
            futures = list(self._in_flight.values())
        _, not_done = wait_for_futures(futures, timeout=timeout)
        return not not_done

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            self._closed = True
        self._executor.shutdown(wait=wait)

"""Bounded request queue feeding the return/renew worker.

Entries are served newest first (LIFO). Producers block while the queue is
full; consumers block while it is empty until shutdown is requested, after
which an empty queue yields ``QUIT_SENTINEL``.
"""

import threading
from typing import List, Optional

from bookloan.core.logger import setup_logger
from bookloan.core.models import QUIT_SENTINEL, Request

logger = setup_logger(__name__)

DEFAULT_CAPACITY = 10


class RequestQueue:
    """Fixed-capacity LIFO buffer with blocking push/pop and cooperative shutdown."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY, lock: Optional[threading.Lock] = None):
        if capacity < 1:
            raise ValueError(f"Queue capacity must be positive, got {capacity}")
        self._capacity = capacity
        self._entries: List[Request] = []
        self._lock = lock if lock is not None else threading.Lock()
        self._not_full = threading.Condition(self._lock)
        self._not_empty = threading.Condition(self._lock)
        self._shutdown = False

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def lock(self) -> threading.Lock:
        return self._lock

    @property
    def shutdown_requested(self) -> bool:
        with self._lock:
            return self._shutdown

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def is_empty(self) -> bool:
        return len(self) == 0

    def push(self, request: Request) -> bool:
        """Add a return/renew request, blocking while the queue is full.

        Returns False without queueing once shutdown has been requested; the
        worker stops popping after it drains the queue.
        """
        if not request.operation.queued:
            raise ValueError(f"Only return/renew requests are queued, got {request.operation.name}")

        with self._not_full:
            while len(self._entries) >= self._capacity and not self._shutdown:
                logger.debug("Request queue full, waiting for the worker")
                self._not_full.wait()
            if self._shutdown:
                return False
            self._entries.append(request)
            self._not_empty.notify()
            return True

    def pop(self) -> Request:
        """Remove the newest request, or return QUIT_SENTINEL once drained after shutdown."""
        with self._not_empty:
            while not self._entries and not self._shutdown:
                self._not_empty.wait()

            if not self._entries:
                return QUIT_SENTINEL

            request = self._entries.pop()
            self._not_full.notify()
            return request

    def request_shutdown(self) -> None:
        """Set the shutdown flag and wake every waiter. Safe to call repeatedly."""
        with self._lock:
            if not self._shutdown:
                logger.info(f"Shutdown requested with {len(self._entries)} queued request(s)")
            self._shutdown = True
            self._not_empty.notify_all()
            self._not_full.notify_all()

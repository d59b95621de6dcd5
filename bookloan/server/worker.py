"""Return/renew worker draining the request queue."""

import threading
from typing import Optional

from bookloan.core.logger import setup_logger
from bookloan.core.models import Operation
from bookloan.core.queue import RequestQueue
from bookloan.server.handlers import RequestHandler

logger = setup_logger(__name__)


class ReturnRenewWorker:
    """Pops queued requests until the queue hands back the quit sentinel."""

    def __init__(self, queue: RequestQueue, handler: RequestHandler):
        self.queue = queue
        self.handler = handler
        self.processed = 0
        self._thread: Optional[threading.Thread] = None

    def run(self) -> None:
        logger.info("Return/renew worker started")
        while True:
            request = self.queue.pop()
            if request.operation == Operation.QUIT:
                break
            try:
                self.handler.handle_queued(request)
            except Exception as e:
                logger.error_trace(f"Failed to process {request.operation.name} for ISBN {request.isbn}: {e}")
            self.processed += 1
        logger.info(f"Return/renew worker stopped after {self.processed} request(s)")

    def start(self) -> None:
        """Run the worker on its own thread. Safe to call multiple times."""
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self.run, daemon=True, name="ReturnRenewWorker")
        self._thread.start()

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the worker. Returns True once it has exited."""
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

"""Request ingress: reads the inbound FIFO and routes each request."""

from typing import Iterable, Optional

from bookloan.core.config import config
from bookloan.core.errors import ParseError
from bookloan.core.logger import setup_logger
from bookloan.core.models import Operation, Request
from bookloan.core.queue import RequestQueue
from bookloan.ipc.channel import InboundChannel
from bookloan.ipc.protocol import parse_request
from bookloan.server.handlers import RequestHandler

logger = setup_logger(__name__)


class RequestIngress:
    """Reads request frames until shutdown and dispatches them in arrival order.

    Loans run inline before the next frame is looked at. Returns and renewals
    go to the queue. Quit requests shutdown for the whole server.
    """

    def __init__(self, channel: InboundChannel, queue: RequestQueue, handler: RequestHandler,
                 verbose: Optional[bool] = None, poll_interval: Optional[float] = None):
        self.channel = channel
        self.queue = queue
        self.handler = handler
        self.verbose = verbose if verbose is not None else bool(config.get("VERBOSE", False))
        self.poll_interval = (
            poll_interval if poll_interval is not None
            else float(config.get("INGRESS_POLL_INTERVAL", 0.2))
        )
        self.received = 0
        self.dropped = 0

    def run(self) -> None:
        logger.info("Ingress started")
        while not self.queue.shutdown_requested:
            frames = self.channel.receive(self.poll_interval)
            self.dispatch_all(frames)
        logger.info(f"Ingress stopped after {self.received} request(s), {self.dropped} dropped")

    def dispatch_all(self, frames: Iterable[bytes]) -> None:
        pending = list(frames)
        for index, frame in enumerate(pending):
            if self.queue.shutdown_requested:
                leftover = len(pending) - index
                logger.warning(f"Shutdown in progress, dropping {leftover} unprocessed request(s)")
                self.dropped += leftover
                return
            self.dispatch(frame)

    def dispatch(self, frame: bytes) -> Optional[Request]:
        """Route one frame. Malformed frames are logged and dropped without a reply."""
        try:
            request = parse_request(frame)
        except ParseError as e:
            logger.warning(f"Dropping malformed request: {e}")
            self.dropped += 1
            return None

        self.received += 1
        self._log_request(request)

        if request.operation == Operation.LOAN:
            self.handler.handle_loan(request)
        elif request.operation.queued:
            if not self.queue.push(request):
                logger.warning(
                    f"Shutdown in progress, dropping {request.operation.name.lower()} "
                    f"request from requester {request.requester_id}"
                )
                self.dropped += 1
        elif request.operation == Operation.QUIT:
            logger.info(f"Quit received from requester {request.requester_id}")
            self.queue.request_shutdown()
        return request

    def _log_request(self, request: Request) -> None:
        message = (
            f"Received: type={request.operation.value}, name={request.name}, "
            f"isbn={request.isbn}, requester={request.requester_id}"
        )
        if self.verbose:
            logger.info(message)
        else:
            logger.debug(message)

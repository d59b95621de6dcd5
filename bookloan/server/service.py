"""Loan server orchestration.

Three units run concurrently: ingress (on the caller's thread, loans inline),
the return/renew worker and the operator console. Queue and catalog share a
single lock so loans, queue traffic and reports never interleave.
"""

import threading
from pathlib import Path
from typing import Callable, Optional, TextIO, Union

from bookloan.core.catalog import Catalog
from bookloan.core.config import config
from bookloan.core.errors import StartupError
from bookloan.core.logger import setup_logger
from bookloan.core.models import DueDate
from bookloan.core.queue import RequestQueue
from bookloan.core.storage import load_catalog, save_catalog
from bookloan.ipc.channel import InboundChannel, ReplySender
from bookloan.server.console import OperatorConsole
from bookloan.server.handlers import RequestHandler
from bookloan.server.ingress import RequestIngress
from bookloan.server.worker import ReturnRenewWorker

logger = setup_logger(__name__)

# Upper bound for joins during shutdown; the worker normally exits as soon as the queue drains
JOIN_TIMEOUT = 30.0


class LoanServer:
    """Owns the catalog, the request queue and the three server roles."""

    def __init__(
        self,
        inbound_path: Union[str, Path],
        catalog_path: Union[str, Path],
        output_path: Optional[Union[str, Path]] = None,
        verbose: Optional[bool] = None,
        console_input: Optional[TextIO] = None,
        console_output: Optional[TextIO] = None,
        sender: Optional[ReplySender] = None,
        clock: Optional[Callable[[], DueDate]] = None,
        enable_console: bool = True,
    ):
        self.inbound_path = Path(inbound_path)
        self.catalog_path = Path(catalog_path)
        output = output_path if output_path is not None else config.get("OUTPUT_FILE")
        self.output_path = Path(output) if output else None
        self.verbose = verbose if verbose is not None else bool(config.get("VERBOSE", False))
        self.console_input = console_input
        self.console_output = console_output
        self.enable_console = enable_console

        self.channel = InboundChannel(self.inbound_path)
        self.sender = sender or ReplySender()
        self.clock = clock

        self.catalog: Optional[Catalog] = None
        self.queue: Optional[RequestQueue] = None
        self.worker: Optional[ReturnRenewWorker] = None
        self.console: Optional[OperatorConsole] = None
        self.ingress: Optional[RequestIngress] = None

        self._shutdown_lock = threading.Lock()
        self._stopped = False

    def start(self) -> None:
        """Open the inbound channel, load the catalog and start worker and console.

        Raises StartupError; nothing is left running when it does.
        """
        self.channel.open()
        try:
            books = load_catalog(self.catalog_path)
        except StartupError:
            self.channel.close()
            raise

        lock = threading.Lock()
        self.catalog = Catalog(books, lock=lock)
        self.queue = RequestQueue(int(config.QUEUE_CAPACITY), lock=lock)
        handler = RequestHandler(self.catalog, self.sender, clock=self.clock)

        self.worker = ReturnRenewWorker(self.queue, handler)
        self.ingress = RequestIngress(self.channel, self.queue, handler, verbose=self.verbose)
        self.worker.start()

        if self.enable_console:
            self.console = OperatorConsole(
                self.queue, self.catalog,
                input_stream=self.console_input, output_stream=self.console_output,
            )
            self.console.start()

        logger.info(f"Loan server ready with {len(self.catalog)} books")

    def serve(self) -> None:
        """Run ingress until shutdown, then tear everything down."""
        if self.ingress is None:
            raise RuntimeError("LoanServer.start() must be called before serve()")
        try:
            self.ingress.run()
        finally:
            self.shutdown()

    def request_shutdown(self) -> None:
        if self.queue is not None:
            self.queue.request_shutdown()

    def shutdown(self) -> None:
        """Drain the queue, stop worker and console, save, and release the FIFO.

        Idempotent: both the quit request and the operator console may get here.
        """
        with self._shutdown_lock:
            if self._stopped:
                return
            self._stopped = True

        self.request_shutdown()

        if self.worker is not None and not self.worker.join(JOIN_TIMEOUT):
            logger.error(f"Worker did not stop within {JOIN_TIMEOUT}s")
        if self.console is not None and not self.console.join(JOIN_TIMEOUT):
            logger.warning("Operator console still waiting on input")

        if self.output_path is not None and self.catalog is not None:
            try:
                save_catalog(self.output_path, self.catalog.books())
            except OSError as e:
                logger.error_trace(f"Failed to save catalog to {self.output_path}: {e}")

        self.channel.close()
        logger.info("Loan server stopped")

    def run(self) -> None:
        self.start()
        self.serve()

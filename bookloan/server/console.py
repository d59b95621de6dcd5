"""Operator console: shutdown and report commands typed on the server terminal."""

import io
import os
import select
import sys
import threading
from typing import List, Optional, TextIO

from bookloan.core.catalog import Catalog
from bookloan.core.config import config
from bookloan.core.logger import setup_logger
from bookloan.core.queue import RequestQueue

logger = setup_logger(__name__)

QUIT_COMMANDS = frozenset({"s", "q", "quit"})
REPORT_COMMANDS = frozenset({"r", "report"})
USAGE = "Use 's' to stop the server or 'r' for a report"
READ_SIZE = 1024


class OperatorConsole:
    """Reads operator commands until quit, EOF, or shutdown from elsewhere."""

    def __init__(self, queue: RequestQueue, catalog: Catalog,
                 input_stream: Optional[TextIO] = None, output_stream: Optional[TextIO] = None,
                 poll_interval: Optional[float] = None):
        self.queue = queue
        self.catalog = catalog
        self.input = input_stream or sys.stdin
        self.output = output_stream or sys.stdout
        self.poll_interval = (
            poll_interval if poll_interval is not None
            else float(config.get("CONSOLE_POLL_INTERVAL", 0.2))
        )
        self._thread: Optional[threading.Thread] = None
        self._pending: List[str] = []
        self._partial = ""

    def _input_fd(self) -> Optional[int]:
        try:
            return self.input.fileno()
        except (AttributeError, io.UnsupportedOperation, ValueError):
            return None

    def _next_line(self) -> Optional[str]:
        """Next input line, "" at EOF, or None when nothing arrived this poll."""
        if self._pending:
            return self._pending.pop(0)

        fd = self._input_fd()
        if fd is None:
            return self.input.readline()

        readable, _, _ = select.select([fd], [], [], self.poll_interval)
        if not readable:
            return None

        # Read the fd directly; a buffered readline would hide queued lines from select
        data = os.read(fd, READ_SIZE)
        if not data:
            leftover, self._partial = self._partial, ""
            return leftover
        self._partial += data.decode(errors="replace")
        *lines, self._partial = self._partial.split("\n")
        self._pending.extend(line + "\n" for line in lines)
        return self._pending.pop(0) if self._pending else None

    def _write(self, text: str) -> None:
        self.output.write(text + "\n")
        self.output.flush()

    def handle(self, command: str) -> bool:
        """Execute one command. Returns False when the console should stop."""
        command = command.strip().lower()
        if command in QUIT_COMMANDS:
            logger.info("Shutdown requested from operator console")
            self.queue.request_shutdown()
            return False
        if command in REPORT_COMMANDS:
            self.print_report()
            return True
        self._write(USAGE)
        return True

    def print_report(self) -> None:
        self.catalog.write_report(self._write, header="Report:")

    def run(self) -> None:
        while not self.queue.shutdown_requested:
            line = self._next_line()
            if line is None:
                continue
            if not line:
                logger.debug("Console input closed")
                return
            if not self.handle(line):
                return

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self.run, daemon=True, name="OperatorConsole")
        self._thread.start()

    def join(self, timeout: Optional[float] = None) -> bool:
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

"""Requester process: sends loan/return/renew requests and prints the replies."""

from __future__ import annotations

import os
import re
import sys
from pathlib import Path
from typing import Optional, TextIO, Union

from bookloan.core.config import config
from bookloan.core.errors import ParseError
from bookloan.core.logger import setup_logger
from bookloan.core.models import Operation, Request
from bookloan.ipc.channel import ReplyChannel, RequestWriter
from bookloan.ipc.protocol import quit_request

logger = setup_logger(__name__)

# Batch lines look like "P, Intro to OS, 100"
BATCH_LINE_REGEX = re.compile(r'^\s*([A-Za-z])\s*,\s*([^,]+?)\s*,\s*(-?\d+)\s*$')

CLIENT_OPERATIONS = (Operation.LOAN, Operation.RETURN, Operation.RENEW)


def parse_batch_line(line: str) -> tuple[Operation, str, int]:
    match = BATCH_LINE_REGEX.match(line)
    if not match:
        raise ParseError(f"Invalid batch line: {line.strip()!r}")
    try:
        operation = Operation(match.group(1).upper())
    except ValueError:
        raise ParseError(f"Unknown operation {match.group(1)!r}")
    return operation, match.group(2), int(match.group(3))


class Requester:
    """One client process talking to the loan server.

    The reply channel is created before the first request is sent and
    removed on close.
    """

    def __init__(self, inbound_path: Union[str, Path], requester_id: Optional[int] = None,
                 reply_dir: Optional[Union[str, Path]] = None, timeout: Optional[float] = None):
        self.requester_id = requester_id if requester_id is not None else os.getpid()
        self.timeout = timeout if timeout is not None else float(config.get("RESPONSE_TIMEOUT", 1.0))
        self.writer = RequestWriter(inbound_path)
        self.replies = ReplyChannel(self.requester_id, reply_dir)
        self.quit_sent = False

    def open(self) -> None:
        self.replies.open()
        try:
            self.writer.open()
        except Exception:
            self.replies.close()
            raise

    def close(self) -> None:
        self.writer.close()
        self.replies.close()

    def __enter__(self) -> Requester:
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def request(self, operation: Operation, name: str, isbn: int) -> Optional[str]:
        """Send one request and wait for its reply. None means the reply was lost."""
        if operation not in CLIENT_OPERATIONS:
            raise ValueError(f"Use quit() to send {operation.name}")
        self.writer.send(Request(operation, name, isbn, self.requester_id))
        response = self.replies.receive(self.timeout)
        if response is None:
            logger.warning(f"No response for operation {operation.value}, ISBN {isbn} after {self.timeout}s")
        return response

    def quit(self) -> None:
        """Ask the server to shut down. No reply is expected."""
        self.writer.send(quit_request(self.requester_id))
        self.quit_sent = True

    def _report(self, output: TextIO, operation: Operation, isbn: int, response: Optional[str]) -> None:
        if response is None:
            output.write(f"No response for operation {operation.value}, ISBN {isbn}\n")
        else:
            output.write(f"Response for operation {operation.value}, ISBN {isbn}: {response}\n")
        output.flush()

    def run_batch(self, path: Union[str, Path], output: Optional[TextIO] = None) -> int:
        """Send every request in a batch file. Returns the number of requests sent."""
        output = output or sys.stdout
        sent = 0
        with open(path, "r", encoding="utf-8") as f:
            for line in f:
                if not line.strip():
                    continue
                try:
                    operation, name, isbn = parse_batch_line(line)
                except ParseError as e:
                    output.write(f"Skipping line: {e}\n")
                    continue

                if operation == Operation.QUIT:
                    self.quit()
                    break

                self._report(output, operation, isbn, self.request(operation, name, isbn))
                sent += 1

        if not self.quit_sent:
            self.quit()
        return sent

    def run_interactive(self, input_stream: Optional[TextIO] = None,
                        output: Optional[TextIO] = None) -> int:
        """Prompt for requests until the operator is done, then send quit."""
        input_stream = input_stream or sys.stdin
        output = output or sys.stdout
        sent = 0

        def prompt(label: str) -> str:
            output.write(label)
            output.flush()
            return input_stream.readline()

        while True:
            raw_operation = prompt("Operation (D/R/P, Q to finish): ")
            if not raw_operation or raw_operation.strip().upper() in ("", "Q"):
                break
            try:
                operation = Operation(raw_operation.strip().upper())
            except ValueError:
                operation = None
            if operation not in CLIENT_OPERATIONS:
                output.write("Invalid operation. Must be D, R or P.\n")
                continue

            name = prompt("Book name: ").strip()
            raw_isbn = prompt("ISBN: ").strip()
            if not name or "," in name or not raw_isbn.lstrip("-").isdigit():
                output.write("Invalid book name or ISBN.\n")
                continue

            isbn = int(raw_isbn)
            self._report(output, operation, isbn, self.request(operation, name, isbn))
            sent += 1

        self.quit()
        return sent

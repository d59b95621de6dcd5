"""Tests for the operator console."""

import io
import os
import threading

from bookloan.core.queue import RequestQueue
from bookloan.server.console import USAGE, OperatorConsole


def _console(catalog, text, queue=None):
    output = io.StringIO()
    console = OperatorConsole(queue if queue is not None else RequestQueue(), catalog, io.StringIO(text), output, poll_interval=0.01)
    return console, output


def test_report_prints_every_copy(catalog):
    console, output = _console(catalog, "r\ns\n")
    console.run()

    lines = output.getvalue().splitlines()
    assert lines[0] == "Report:"
    assert lines[1:] == catalog.report_lines()
    assert console.queue.shutdown_requested


def test_quit_sets_shutdown_and_stops_reading(catalog):
    console, output = _console(catalog, "s\nr\n")
    console.run()

    assert console.queue.shutdown_requested
    assert output.getvalue() == ""


def test_unknown_command_reprompts_without_state_change(catalog):
    before = catalog.report_lines()
    console, output = _console(catalog, "x\nhello\n")
    console.run()

    assert output.getvalue().splitlines() == [USAGE, USAGE]
    assert not console.queue.shutdown_requested
    assert catalog.report_lines() == before


def test_eof_ends_console_without_shutdown(catalog):
    console, _ = _console(catalog, "")
    console.run()
    assert not console.queue.shutdown_requested


def test_console_stops_when_shutdown_comes_from_elsewhere(catalog):
    read_fd, write_fd = os.pipe()
    queue = RequestQueue()
    with os.fdopen(read_fd, "r") as stream:
        console = OperatorConsole(queue, catalog, stream, io.StringIO(), poll_interval=0.01)
        console.start()
        assert not console.join(0.1)

        queue.request_shutdown()
        assert console.join(2)
    os.close(write_fd)


def test_quit_wakes_blocked_worker_consumer(catalog):
    queue = RequestQueue()
    results = []
    consumer = threading.Thread(target=lambda: results.append(queue.pop()), daemon=True)
    consumer.start()

    console, _ = _console(catalog, "q\n", queue=queue)
    console.run()
    consumer.join(2)

    assert results and results[0].operation.value == "Q"


class LockCheckingOutput(io.StringIO):
    """Records whether the catalog lock was held for every write."""

    def __init__(self, lock):
        super().__init__()
        self.lock = lock
        self.held = []

    def write(self, text):
        self.held.append(self.lock.locked())
        return super().write(text)


def test_report_is_printed_while_holding_the_catalog_lock(catalog):
    output = LockCheckingOutput(catalog.lock)
    console = OperatorConsole(RequestQueue(), catalog, io.StringIO(""), output, poll_interval=0.01)

    console.print_report()

    assert output.getvalue().splitlines()[0] == "Report:"
    assert len(output.held) == len(catalog.report_lines()) + 1
    assert all(output.held)
    assert not catalog.lock.locked()

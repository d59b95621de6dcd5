"""End-to-end tests: a real server and requester talking over FIFOs."""

import io
import os
import threading

import pytest

from bookloan.client.requester import Requester
from bookloan.core.errors import StartupError
from bookloan.core.models import Operation, Request
from bookloan.core.storage import load_catalog
from bookloan.ipc.channel import ReplySender
from bookloan.server.service import LoanServer


@pytest.fixture
def running_server(pipe_dir, catalog_file, fixed_clock):
    """Start a server on its own thread; yields (server, thread, output path)."""
    output = pipe_dir / "final.txt"
    server = LoanServer(
        pipe_dir / "server",
        catalog_file,
        output_path=output,
        verbose=True,
        sender=ReplySender(attempts=5, delay=0.05, directory=pipe_dir),
        clock=fixed_clock,
        enable_console=False,
    )
    server.start()
    thread = threading.Thread(target=server.serve, name="TestIngress")
    thread.start()
    yield server, thread, output
    server.request_shutdown()
    thread.join(10)


def _requester(server, pipe_dir, requester_id):
    requester = Requester(server.inbound_path, requester_id=requester_id, reply_dir=pipe_dir, timeout=3.0)
    requester.open()
    return requester


def test_loan_twice_on_single_copy(running_server, pipe_dir):
    server, thread, output = running_server
    requester = _requester(server, pipe_dir, 501)
    try:
        first = requester.request(Operation.LOAN, "Intro to OS", 100)
        second = requester.request(Operation.LOAN, "Intro to OS", 100)
        requester.quit()
    finally:
        requester.close()

    thread.join(10)
    assert not thread.is_alive()
    assert first == "Loan successful: ISBN 100, copy 1, due 05-01-2025"
    assert second == "Error: no copy available for ISBN 100"

    books = load_catalog(output)
    assert books[0].copies[0].status.value == "P"
    assert not server.inbound_path.exists()


def test_malformed_request_gets_no_reply_and_service_continues(running_server, pipe_dir):
    server, thread, _ = running_server
    requester = _requester(server, pipe_dir, 502)
    try:
        fd = os.open(server.inbound_path, os.O_WRONLY)
        try:
            os.write(fd, b"P,Intro to OS\0")
        finally:
            os.close(fd)

        assert requester.replies.receive(0.3) is None
        response = requester.request(Operation.RENEW, "Distributed Systems", 200)
        requester.quit()
    finally:
        requester.close()

    thread.join(10)
    assert response == "Renewal successful: ISBN 200, copy 1, new due date 05-06-2025"


def test_queued_returns_are_applied_before_shutdown_completes(running_server, pipe_dir):
    server, thread, output = running_server
    requester = _requester(server, pipe_dir, 503)
    try:
        requester.writer.send(Request(Operation.RETURN, "Distributed Systems", 200, 503))
        requester.writer.send(Request(Operation.RETURN, "Distributed Systems", 200, 503))
        requester.quit()
        thread.join(10)
        replies = [requester.replies.receive(1.0), requester.replies.receive(1.0)]
    finally:
        requester.close()

    assert not thread.is_alive()
    # Identical requests: whichever is served first frees the lowest-numbered loaned copy
    assert replies == ["Return successful: ISBN 200, copy 1", "Return successful: ISBN 200, copy 3"]

    copies = load_catalog(output)[1].copies
    assert [c.status.value for c in copies] == ["D", "D", "D"]


def test_shutdown_is_idempotent(running_server):
    server, thread, _ = running_server
    server.request_shutdown()
    thread.join(10)

    server.shutdown()
    server.shutdown()
    assert not server.inbound_path.exists()


def test_console_report_and_quit(pipe_dir, catalog_file):
    read_fd, write_fd = os.pipe()
    output = io.StringIO()
    with os.fdopen(read_fd, "r") as console_in:
        server = LoanServer(
            pipe_dir / "server",
            catalog_file,
            console_input=console_in,
            console_output=output,
            sender=ReplySender(attempts=1, delay=0.01, directory=pipe_dir),
        )
        server.start()
        thread = threading.Thread(target=server.serve)
        thread.start()

        os.write(write_fd, b"r\ns\n")
        thread.join(10)
    os.close(write_fd)

    assert not thread.is_alive()
    lines = output.getvalue().splitlines()
    assert lines[0] == "Report:"
    assert "D, Intro to OS, 100, 1, 01-01-2025" in lines


def test_missing_catalog_is_fatal_and_cleans_up(pipe_dir):
    server = LoanServer(pipe_dir / "server", pipe_dir / "missing.txt", enable_console=False)
    with pytest.raises(StartupError):
        server.start()
    assert not (pipe_dir / "server").exists()


def test_serve_requires_start(pipe_dir, catalog_file):
    with pytest.raises(RuntimeError):
        LoanServer(pipe_dir / "server", catalog_file).serve()

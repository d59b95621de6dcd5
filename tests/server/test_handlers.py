"""Tests for request execution and replies."""

import threading

import pytest

from bookloan.core.catalog import Catalog
from bookloan.core.models import Book, Copy, CopyStatus, DueDate, Operation, Request
from bookloan.server.handlers import RequestHandler


def _request(operation, name="Intro to OS", isbn=100, requester=1):
    return Request(operation, name, isbn, requester)


def test_execute_builds_response_without_sending(catalog, sender, fixed_clock):
    handler = RequestHandler(catalog, sender, clock=fixed_clock)

    text = handler.execute(_request(Operation.LOAN))

    assert text == "Loan successful: ISBN 100, copy 1, due 05-01-2025"
    assert sender.sent == []


def test_unknown_book_gets_error_reply(catalog, sender):
    handler = RequestHandler(catalog, sender)

    handler.handle_loan(_request(Operation.LOAN, name="Intro to Networks"))

    assert sender.sent == [(1, "Error: ISBN 100 not found or wrong book name")]


def test_loan_uses_clock(catalog, sender):
    handler = RequestHandler(catalog, sender, clock=lambda: DueDate(10, 2, 2026))
    handler.handle_loan(_request(Operation.LOAN))
    assert catalog.find("Intro to OS", 100).copies[0].due_date == DueDate(17, 2, 2026)


def test_handle_loan_rejects_other_operations(catalog, sender):
    handler = RequestHandler(catalog, sender)
    with pytest.raises(ValueError):
        handler.handle_loan(_request(Operation.RETURN))


def test_handle_queued_rejects_loans(catalog, sender):
    handler = RequestHandler(catalog, sender)
    with pytest.raises(ValueError):
        handler.handle_queued(_request(Operation.LOAN))


def test_execute_rejects_quit(catalog, sender):
    with pytest.raises(ValueError):
        RequestHandler(catalog, sender).execute(_request(Operation.QUIT))


def test_reply_is_sent_after_lock_is_released(sender):
    lock = threading.Lock()
    catalog = Catalog([Book("Intro to OS", 100, [Copy(1)])], lock=lock)
    held_during_send = []

    class LockCheckingSender:
        def send(self, requester_id, text):
            held_during_send.append(lock.locked())
            return True

    RequestHandler(catalog, LockCheckingSender()).handle_loan(_request(Operation.LOAN))

    assert held_during_send == [False]


def test_handler_reports_delivery_result(catalog):
    class FailingSender:
        def send(self, requester_id, text):
            return False

    handler = RequestHandler(catalog, FailingSender())
    assert handler.handle_loan(_request(Operation.LOAN)) is False
    # The request still counts as processed
    assert catalog.find("Intro to OS", 100).copies[0].status == CopyStatus.LOANED

"""In-memory book catalog and the copy state machine.

Copies move Available -> Loaned on loan and Loaned -> Available on return.
Renewal only pushes the due date. All access goes through the lock the
catalog was built with, which the server shares with the request queue.
"""

import threading
from dataclasses import replace
from typing import Callable, Iterable, List, Optional

from bookloan.core.errors import BookNotFoundError, NoAvailableCopyError, NoLoanedCopyError
from bookloan.core.logger import setup_logger
from bookloan.core.models import Book, Copy, CopyStatus, DueDate

logger = setup_logger(__name__)


class Catalog:
    """Thread-safe catalog of books and their copies."""

    def __init__(self, books: Iterable[Book], lock: Optional[threading.Lock] = None):
        self._books: List[Book] = list(books)
        self._lock = lock if lock is not None else threading.Lock()

    @property
    def lock(self) -> threading.Lock:
        return self._lock

    def __len__(self) -> int:
        return len(self._books)

    def _find_book(self, name: str, isbn: int) -> Book:
        """Must be called with lock held."""
        for book in self._books:
            if book.matches(name, isbn):
                return book
        raise BookNotFoundError(name, isbn)

    def loan(self, name: str, isbn: int, today: Optional[DueDate] = None) -> Copy:
        """Loan the first available copy. Returns a snapshot of the loaned copy."""
        start = today or DueDate.today()
        with self._lock:
            book = self._find_book(name, isbn)
            target = book.first_copy(CopyStatus.AVAILABLE)
            if target is None:
                raise NoAvailableCopyError(name, isbn)
            target.status = CopyStatus.LOANED
            target.due_date = start.extended()
            logger.info(f"Loaned '{name}' (ISBN {isbn}) copy {target.number}, due {target.due_date}")
            return replace(target)

    def return_copy(self, name: str, isbn: int) -> Copy:
        """Mark the first loaned copy available again."""
        with self._lock:
            book = self._find_book(name, isbn)
            target = book.first_copy(CopyStatus.LOANED)
            if target is None:
                raise NoLoanedCopyError(name, isbn)
            target.status = CopyStatus.AVAILABLE
            logger.info(f"Returned '{name}' (ISBN {isbn}) copy {target.number}")
            return replace(target)

    def renew(self, name: str, isbn: int) -> Copy:
        """Extend the first loaned copy by one loan term. Status is untouched."""
        with self._lock:
            book = self._find_book(name, isbn)
            target = book.first_copy(CopyStatus.LOANED)
            if target is None:
                raise NoLoanedCopyError(name, isbn)
            target.due_date = target.due_date.extended()
            logger.info(f"Renewed '{name}' (ISBN {isbn}) copy {target.number}, due {target.due_date}")
            return replace(target)

    def books(self) -> List[Book]:
        """Deep snapshot of every book, safe to use outside the lock."""
        with self._lock:
            return [book.snapshot() for book in self._books]

    def find(self, name: str, isbn: int) -> Optional[Book]:
        """Snapshot of a single book, or None."""
        with self._lock:
            try:
                return self._find_book(name, isbn).snapshot()
            except BookNotFoundError:
                return None

    def _report_lines(self) -> List[str]:
        return [
            f"{item.status.value}, {book.name}, {book.isbn}, {item.number}, {item.due_date}"
            for book in self._books
            for item in book.copies
        ]

    def report_lines(self) -> List[str]:
        """One ``status, name, isbn, copy, due`` line per copy."""
        with self._lock:
            return self._report_lines()

    def write_report(self, write: Callable[[str], None], header: Optional[str] = None) -> None:
        """Pass the header and every report line to ``write`` while holding the lock."""
        with self._lock:
            if header is not None:
                write(header)
            for line in self._report_lines():
                write(line)

"""Flat-file catalog loading and saving.

File layout, one book header followed by its copies::

    <name>,<isbn>,<numCopies>
    <copyNumber>,<D|P>,<dd-mm-yyyy>
"""

import re
from pathlib import Path
from typing import Iterable, List, Optional, Tuple, Union

from bookloan.core.config import config
from bookloan.core.errors import ParseError, StartupError
from bookloan.core.logger import setup_logger
from bookloan.core.models import DEFAULT_DUE_DATE, Book, Copy, CopyStatus, DueDate

logger = setup_logger(__name__)

# Name is everything up to the first comma
BOOK_LINE_REGEX = re.compile(r'^([^,]{1,249}),\s*(-?\d+)\s*,\s*(-?\d+)\s*$')
COPY_LINE_REGEX = re.compile(r'^\s*(\d+)\s*,\s*([A-Za-z])\s*,\s*(\S+)\s*$')


def parse_book_line(line: str) -> Tuple[str, int, int]:
    """Parse a book header into (name, isbn, copy count)."""
    match = BOOK_LINE_REGEX.match(line)
    if not match:
        raise ParseError(f"Invalid book line: {line!r}")
    return match.group(1), int(match.group(2)), int(match.group(3))


def parse_copy_line(line: str) -> Copy:
    """Parse a copy line. An unreadable date falls back to 01-01-2000."""
    match = COPY_LINE_REGEX.match(line)
    if not match:
        raise ParseError(f"Invalid copy line: {line!r}")

    number = int(match.group(1))
    try:
        status = CopyStatus(match.group(2).upper())
    except ValueError:
        raise ParseError(f"Invalid copy status {match.group(2)!r} in line: {line!r}")

    try:
        due_date = DueDate.parse(match.group(3))
    except ValueError:
        logger.warning(f"Could not parse date {match.group(3)!r}, using {DEFAULT_DUE_DATE}")
        due_date = DEFAULT_DUE_DATE

    return Copy(number=number, status=status, due_date=due_date)


def parse_catalog(lines: Iterable[str], max_books: Optional[int] = None,
                  max_copies: Optional[int] = None) -> List[Book]:
    """Build books from catalog lines. Bad lines are logged and skipped."""
    max_books = max_books if max_books is not None else int(config.get("MAX_BOOKS", 100))
    max_copies = max_copies if max_copies is not None else int(config.get("MAX_COPIES", 10))

    books: List[Book] = []
    pending = iter(line.rstrip("\r\n") for line in lines)

    for line in pending:
        if len(books) >= max_books:
            logger.warning(f"Catalog limit of {max_books} books reached, ignoring the rest")
            break
        if not line.strip():
            continue

        try:
            name, isbn, count = parse_book_line(line)
        except ParseError as e:
            logger.warning(str(e))
            continue

        if count <= 0 or count > max_copies:
            logger.warning(f"Invalid number of copies for ISBN {isbn}: {count}")
            continue

        book = Book(name=name, isbn=isbn)
        seen = set()
        for _ in range(count):
            copy_line = next(pending, None)
            if copy_line is None:
                logger.warning(f"Catalog ended before all {count} copies of ISBN {isbn} were read")
                break
            try:
                item = parse_copy_line(copy_line)
            except ParseError as e:
                logger.warning(str(e))
                continue
            if item.number in seen:
                logger.warning(f"Duplicate copy number {item.number} for ISBN {isbn}, skipping")
                continue
            seen.add(item.number)
            book.copies.append(item)

        logger.debug(f"Loaded '{name}' (ISBN {isbn}) with {len(book.copies)} copies")
        books.append(book)

    return books


def load_catalog(path: Union[str, Path]) -> List[Book]:
    """Load the catalog file. Raises StartupError when nothing usable is found."""
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as f:
            books = parse_catalog(f)
    except OSError as e:
        raise StartupError(f"Cannot read catalog {path}: {e}")

    if not books:
        raise StartupError(f"Catalog {path} contains no valid books")

    logger.info(f"Loaded {len(books)} books from {path}")
    return books


def format_catalog(books: Iterable[Book]) -> str:
    lines: List[str] = []
    for book in books:
        lines.append(f"{book.name},{book.isbn},{len(book.copies)}")
        for item in book.copies:
            lines.append(f"{item.number},{item.status.value},{item.due_date}")
    return "\n".join(lines) + ("\n" if lines else "")


def save_catalog(path: Union[str, Path], books: Iterable[Book]) -> None:
    """Write the catalog back in the load format."""
    path = Path(path)
    path.write_text(format_catalog(books), encoding="utf-8")
    logger.info(f"Catalog saved to {path}")

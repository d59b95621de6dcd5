"""Data models for the catalog and the request protocol."""

from __future__ import annotations

import copy as _copy
import re
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import List, Optional

# Fixed-length calendar: every month has 30 days
DAYS_PER_MONTH = 30
MONTHS_PER_YEAR = 12
LOAN_TERM_DAYS = 7

_DATE_REGEX = re.compile(r'^\s*(\d{1,2})-(\d{1,2})-(\d{1,4})\s*$')


class Operation(str, Enum):
    """Request operation tags, as sent on the wire."""
    LOAN = "P"
    RETURN = "D"
    RENEW = "R"
    QUIT = "Q"

    @property
    def queued(self) -> bool:
        """Return and renew go through the request queue."""
        return self in (Operation.RETURN, Operation.RENEW)


class CopyStatus(str, Enum):
    """Copy availability, as written in the catalog file."""
    AVAILABLE = "D"
    LOANED = "P"


@dataclass(frozen=True)
class DueDate:
    """A day-month-year triple on the fixed 30-day calendar."""
    day: int
    month: int
    year: int

    @classmethod
    def parse(cls, text: str) -> DueDate:
        """Parse ``dd-mm-yyyy``. Raises ValueError on anything else."""
        match = _DATE_REGEX.match(text)
        if not match:
            raise ValueError(f"Invalid date: {text!r}")
        day, month, year = (int(part) for part in match.groups())
        return cls(day, month, year)

    @classmethod
    def today(cls) -> DueDate:
        now = date.today()
        return cls(now.day, now.month, now.year)

    def plus_days(self, days: int = LOAN_TERM_DAYS) -> DueDate:
        """Advance on the 30-day calendar. The year never changes."""
        day = self.day + days
        month = self.month
        if day > DAYS_PER_MONTH:
            day -= DAYS_PER_MONTH
            month += 1
            if month < 1 or month > MONTHS_PER_YEAR:
                month = 1
        if day < 1 or day > DAYS_PER_MONTH:
            day = 1
        return DueDate(day, month, self.year)

    def extended(self) -> DueDate:
        """Due date one loan term later."""
        return self.plus_days(LOAN_TERM_DAYS)

    def __str__(self) -> str:
        return f"{self.day:02d}-{self.month:02d}-{self.year:04d}"


DEFAULT_DUE_DATE = DueDate(1, 1, 2000)


@dataclass
class Copy:
    """One physical copy of a book."""
    number: int
    status: CopyStatus = CopyStatus.AVAILABLE
    due_date: DueDate = DEFAULT_DUE_DATE

    @property
    def is_available(self) -> bool:
        return self.status == CopyStatus.AVAILABLE

    @property
    def is_loaned(self) -> bool:
        return self.status == CopyStatus.LOANED


@dataclass
class Book:
    """A catalog entry keyed by (isbn, name)."""
    name: str
    isbn: int
    copies: List[Copy] = field(default_factory=list)

    def matches(self, name: str, isbn: int) -> bool:
        return self.isbn == isbn and self.name == name

    def first_copy(self, status: CopyStatus) -> Optional[Copy]:
        """First copy in catalog order with the given status."""
        for item in self.copies:
            if item.status == status:
                return item
        return None

    def snapshot(self) -> Book:
        return _copy.deepcopy(self)


@dataclass(frozen=True)
class Request:
    """A parsed client request."""
    operation: Operation
    name: str
    isbn: int
    requester_id: int


# Returned by the queue once shutdown is requested and nothing is left
QUIT_SENTINEL = Request(Operation.QUIT, "", 0, 0)

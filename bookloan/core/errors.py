"""Exception hierarchy shared by the server, the client and the catalog store."""


class BookLoanError(Exception):
    """Base error for the loan service."""
    pass


class ParseError(BookLoanError):
    """Malformed request frame or catalog line."""
    pass


class NotFoundError(BookLoanError):
    """Requested book or eligible copy does not exist."""

    def __init__(self, name: str, isbn: int, message: str = ""):
        self.name = name
        self.isbn = isbn
        super().__init__(message or f"Nothing found for '{name}' (ISBN {isbn})")


class BookNotFoundError(NotFoundError):
    """No book matches the (isbn, name) pair."""
    pass


class NoAvailableCopyError(NotFoundError):
    """Every copy of the book is already loaned."""
    pass


class NoLoanedCopyError(NotFoundError):
    """No copy of the book is currently loaned, so nothing to return or renew."""
    pass


class ChannelError(BookLoanError):
    """Base error for named-pipe channels."""
    pass


class ChannelUnavailable(ChannelError):
    """Channel could not be opened (missing FIFO or no reader)."""
    pass


class StartupError(BookLoanError):
    """Fatal error while bringing the server or client up."""
    pass

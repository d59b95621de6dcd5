"""Request execution: loan on the ingress path, return/renew for the worker."""

from typing import Callable, Optional

from bookloan.core.catalog import Catalog
from bookloan.core.errors import BookNotFoundError, NoAvailableCopyError, NoLoanedCopyError
from bookloan.core.logger import setup_logger
from bookloan.core.models import DueDate, Operation, Request
from bookloan.ipc import protocol
from bookloan.ipc.channel import ReplySender

logger = setup_logger(__name__)


class RequestHandler:
    """Applies requests to the catalog and answers the requester.

    Catalog mutations run under the catalog lock; the reply is sent after
    the lock is released so a slow requester cannot stall the server.
    """

    def __init__(self, catalog: Catalog, sender: ReplySender,
                 clock: Optional[Callable[[], DueDate]] = None):
        self.catalog = catalog
        self.sender = sender
        self.clock = clock or DueDate.today

    def execute(self, request: Request) -> str:
        """Apply the request and return the response text without sending it."""
        try:
            if request.operation == Operation.LOAN:
                item = self.catalog.loan(request.name, request.isbn, self.clock())
                return protocol.loan_succeeded(request.isbn, item)
            if request.operation == Operation.RETURN:
                item = self.catalog.return_copy(request.name, request.isbn)
                return protocol.return_succeeded(request.isbn, item)
            if request.operation == Operation.RENEW:
                item = self.catalog.renew(request.name, request.isbn)
                return protocol.renew_succeeded(request.isbn, item)
        except BookNotFoundError:
            logger.info(f"ISBN {request.isbn} not found for '{request.name}'")
            return protocol.book_not_found(request.isbn)
        except NoAvailableCopyError:
            logger.info(f"No copy available for ISBN {request.isbn}")
            return protocol.no_available_copy(request.isbn)
        except NoLoanedCopyError:
            logger.info(f"No loaned copy found for ISBN {request.isbn}")
            return protocol.no_loaned_copy(request.isbn)

        raise ValueError(f"Cannot execute {request.operation.name} request")

    def handle_loan(self, request: Request) -> bool:
        """Run a loan synchronously and reply. Returns whether the reply was delivered."""
        if request.operation != Operation.LOAN:
            raise ValueError(f"Expected a loan request, got {request.operation.name}")
        return self.sender.send(request.requester_id, self.execute(request))

    def handle_queued(self, request: Request) -> bool:
        """Run a dequeued return/renew and reply."""
        if not request.operation.queued:
            raise ValueError(f"Expected a return or renew request, got {request.operation.name}")
        return self.sender.send(request.requester_id, self.execute(request))

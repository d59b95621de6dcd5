"""Wire protocol for requests and responses.

Requests are NUL-terminated text frames ``type,name,isbn,requesterId`` of at
most 256 bytes. Responses are free text, NUL-terminated, same size limit.
"""

from typing import List

from bookloan.core.errors import ParseError
from bookloan.core.logger import setup_logger
from bookloan.core.models import Copy, Operation, Request

logger = setup_logger(__name__)

MAX_MESSAGE_SIZE = 256  # bytes, terminator included
MAX_NAME_LENGTH = 249
TERMINATOR = b"\0"
ENCODING = "utf-8"

QUIT_NAME = "Salir"


def parse_request(frame: bytes) -> Request:
    """Parse one request frame. Raises ParseError on any malformed input."""
    if len(frame.rstrip(TERMINATOR)) + 1 > MAX_MESSAGE_SIZE:
        raise ParseError(f"Request exceeds {MAX_MESSAGE_SIZE} bytes")

    try:
        text = frame.rstrip(TERMINATOR).decode(ENCODING)
    except UnicodeDecodeError:
        raise ParseError(f"Request is not valid {ENCODING}: {frame[:64]!r}")

    parts = text.split(",")
    if len(parts) != 4:
        raise ParseError(f"Invalid request format: {text!r}")

    raw_type, name, raw_isbn, raw_requester = parts
    try:
        operation = Operation(raw_type.strip())
    except ValueError:
        raise ParseError(f"Unknown operation {raw_type!r} in request: {text!r}")

    if not name or len(name) > MAX_NAME_LENGTH:
        raise ParseError(f"Invalid book name in request: {text!r}")

    try:
        isbn = int(raw_isbn)
        requester_id = int(raw_requester)
    except ValueError:
        raise ParseError(f"Non-numeric ISBN or requester id in request: {text!r}")

    return Request(operation=operation, name=name, isbn=isbn, requester_id=requester_id)


def format_request(request: Request) -> bytes:
    """Build the NUL-terminated frame for a request."""
    if "," in request.name:
        raise ParseError(f"Book names cannot contain commas: {request.name!r}")
    frame = (
        f"{request.operation.value},{request.name},{request.isbn},{request.requester_id}"
    ).encode(ENCODING) + TERMINATOR
    if len(frame) > MAX_MESSAGE_SIZE:
        raise ParseError(f"Request exceeds {MAX_MESSAGE_SIZE} bytes")
    return frame


def quit_request(requester_id: int) -> Request:
    return Request(Operation.QUIT, QUIT_NAME, 0, requester_id)


def encode_response(text: str) -> bytes:
    """Encode a response, truncated on a character boundary to fit the frame."""
    data = text.encode(ENCODING)
    limit = MAX_MESSAGE_SIZE - 1
    if len(data) > limit:
        data = data[:limit].decode(ENCODING, errors="ignore").encode(ENCODING)
    return data + TERMINATOR


def decode_response(frame: bytes) -> str:
    return frame.rstrip(TERMINATOR).decode(ENCODING, errors="replace")


# Response texts

def loan_succeeded(isbn: int, item: Copy) -> str:
    return f"Loan successful: ISBN {isbn}, copy {item.number}, due {item.due_date}"


def return_succeeded(isbn: int, item: Copy) -> str:
    return f"Return successful: ISBN {isbn}, copy {item.number}"


def renew_succeeded(isbn: int, item: Copy) -> str:
    return f"Renewal successful: ISBN {isbn}, copy {item.number}, new due date {item.due_date}"


def book_not_found(isbn: int) -> str:
    return f"Error: ISBN {isbn} not found or wrong book name"


def no_available_copy(isbn: int) -> str:
    return f"Error: no copy available for ISBN {isbn}"


def no_loaned_copy(isbn: int) -> str:
    return f"Error: no loaned copy found for ISBN {isbn}"


class FrameBuffer:
    """Reassembles NUL-terminated frames from arbitrary pipe reads."""

    def __init__(self, max_size: int = MAX_MESSAGE_SIZE):
        self._buffer = b""
        self._max_size = max_size
        self._skipping = False

    def feed(self, data: bytes) -> List[bytes]:
        """Add raw bytes and return every frame completed by them (without terminator).

        After an oversized run is discarded, everything up to its terminator is
        discarded too, so the tail of that message never surfaces as a frame.
        """
        if self._skipping:
            end = data.find(TERMINATOR)
            if end < 0:
                return []
            logger.debug(f"Skipped {end} trailing bytes of an oversized request")
            data = data[end + 1:]
            self._skipping = False

        self._buffer += data
        *frames, self._buffer = self._buffer.split(TERMINATOR)

        if len(self._buffer) >= self._max_size:
            logger.warning(f"Discarding {len(self._buffer)} unterminated bytes")
            self._buffer = b""
            self._skipping = True

        return [frame for frame in frames if frame]

    @property
    def pending(self) -> int:
        return len(self._buffer)

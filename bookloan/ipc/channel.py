"""Named-pipe (FIFO) channels between requesters and the loan server.

The server owns one inbound FIFO that every requester writes to. Each
requester owns a private reply FIFO whose path is derived from its id.
"""

import errno
import os
import select
import stat
import time
from pathlib import Path
from typing import List, Optional, Union

from bookloan.core.config import config
from bookloan.core.errors import ChannelUnavailable, StartupError
from bookloan.core.logger import setup_logger
from bookloan.core.models import Request
from bookloan.ipc.protocol import FrameBuffer, decode_response, encode_response, format_request

logger = setup_logger(__name__)

RECV_BUFFER = 4096
FIFO_MODE = 0o666

# open() errors meaning "the other side is not there yet"
_RETRYABLE_OPEN_ERRORS = frozenset({errno.ENOENT, errno.ENXIO, errno.EINTR})


def reply_channel_path(requester_id: int, directory: Optional[Union[str, Path]] = None) -> Path:
    """Deterministic reply FIFO path for a requester."""
    base = Path(directory) if directory is not None else Path(config.get("REPLY_CHANNEL_DIR"))
    return base / f"pipe_{requester_id}"


def _ensure_fifo(path: Path) -> bool:
    """Create the FIFO if needed. Returns True when this call created it."""
    try:
        os.mkfifo(path, FIFO_MODE)
        return True
    except FileExistsError:
        if not stat.S_ISFIFO(os.stat(path).st_mode):
            raise StartupError(f"{path} exists and is not a named pipe")
        return False
    except OSError as e:
        raise StartupError(f"Failed to create named pipe {path}: {e}")


def _read_available(fd: int, frames: FrameBuffer) -> List[bytes]:
    """Drain whatever the pipe holds right now into complete frames."""
    collected: List[bytes] = []
    while True:
        try:
            data = os.read(fd, RECV_BUFFER)
        except BlockingIOError:
            break
        if not data:
            break
        collected.extend(frames.feed(data))
        if len(data) < RECV_BUFFER:
            break
    return collected


class InboundChannel:
    """Server side of the shared request FIFO."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._fd: Optional[int] = None
        self._created = False
        self._frames = FrameBuffer()

    @property
    def is_open(self) -> bool:
        return self._fd is not None

    def open(self) -> None:
        """Create and open the FIFO. Raises StartupError on failure."""
        self._created = _ensure_fifo(self.path)
        try:
            # Read/write so the server never sees EOF between requesters
            self._fd = os.open(self.path, os.O_RDWR | os.O_NONBLOCK)
        except OSError as e:
            self._unlink()
            raise StartupError(f"Failed to open named pipe {self.path}: {e}")
        logger.info(f"Listening for requests on {self.path}")

    def receive(self, timeout: float) -> List[bytes]:
        """Wait up to timeout seconds and return any complete request frames."""
        if self._fd is None:
            raise ChannelUnavailable(f"Inbound channel {self.path} is not open")
        readable, _, _ = select.select([self._fd], [], [], timeout)
        if not readable:
            return []
        return _read_available(self._fd, self._frames)

    def _unlink(self) -> None:
        if not self._created:
            return
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        self._created = False

    def close(self) -> None:
        """Close and remove the FIFO. Safe to call more than once."""
        if self._fd is not None:
            os.close(self._fd)
            self._fd = None
        self._unlink()


def open_with_deadline(path: Path, flags: int, attempts: int, delay: float) -> int:
    """Open path, retrying transient failures until attempts or the deadline run out."""
    deadline = time.monotonic() + attempts * delay
    last_error: Optional[OSError] = None

    for attempt in range(1, attempts + 1):
        try:
            return os.open(path, flags)
        except OSError as e:
            if e.errno not in _RETRYABLE_OPEN_ERRORS:
                raise ChannelUnavailable(f"Cannot open {path}: {e}")
            last_error = e
            logger.debug(f"Open attempt {attempt}/{attempts} for {path} failed: {e}")

        remaining = deadline - time.monotonic()
        if attempt == attempts or remaining <= 0:
            break
        time.sleep(min(delay, remaining))

    raise ChannelUnavailable(f"Cannot open {path} after {attempts} attempts: {last_error}")


class ReplySender:
    """Delivers one response per request to the requester's reply FIFO."""

    def __init__(self, attempts: Optional[int] = None, delay: Optional[float] = None,
                 directory: Optional[Union[str, Path]] = None):
        self.attempts = attempts if attempts is not None else int(config.get("REPLY_OPEN_ATTEMPTS", 5))
        self.delay = delay if delay is not None else float(config.get("REPLY_RETRY_DELAY", 0.1))
        self.directory = directory

    def deliver(self, requester_id: int, text: str) -> None:
        """Write the response. Raises ChannelUnavailable if the FIFO never opens."""
        path = reply_channel_path(requester_id, self.directory)
        fd = open_with_deadline(path, os.O_WRONLY | os.O_NONBLOCK, self.attempts, self.delay)
        try:
            os.set_blocking(fd, True)
            os.write(fd, encode_response(text))
        except OSError as e:
            raise ChannelUnavailable(f"Failed to write to {path}: {e}")
        finally:
            os.close(fd)

    def send(self, requester_id: int, text: str) -> bool:
        """Deliver a response, abandoning it if the reply channel is unavailable."""
        try:
            self.deliver(requester_id, text)
        except ChannelUnavailable as e:
            logger.warning(f"Response to requester {requester_id} abandoned: {e}")
            return False
        logger.debug(f"Sent response to requester {requester_id}: {text}")
        return True


class ReplyChannel:
    """Requester side of its private reply FIFO."""

    def __init__(self, requester_id: int, directory: Optional[Union[str, Path]] = None):
        self.requester_id = requester_id
        self.path = reply_channel_path(requester_id, directory)
        self._fd: Optional[int] = None
        self._created = False
        self._frames = FrameBuffer()
        self._ready: List[bytes] = []

    def open(self) -> None:
        self._created = _ensure_fifo(self.path)
        try:
            # Read/write keeps the FIFO openable by the server at all times
            self._fd = os.open(self.path, os.O_RDWR | os.O_NONBLOCK)
        except OSError as e:
            self.close()
            raise StartupError(f"Failed to open reply pipe {self.path}: {e}")

    def receive(self, timeout: float) -> Optional[str]:
        """Return the next response, or None if nothing arrives in time."""
        if self._fd is None:
            raise ChannelUnavailable(f"Reply channel {self.path} is not open")

        deadline = time.monotonic() + timeout
        while not self._ready:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return None
            readable, _, _ = select.select([self._fd], [], [], remaining)
            if readable:
                self._ready.extend(_read_available(self._fd, self._frames))
        return decode_response(self._ready.pop(0))

    def close(self) -> None:
        if self._fd is not None:
            os.close(self._fd)
            self._fd = None
        if self._created:
            try:
                self.path.unlink()
            except FileNotFoundError:
                pass
            self._created = False


class RequestWriter:
    """Requester side of the server's inbound FIFO."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._fd: Optional[int] = None

    def open(self) -> None:
        """Open the inbound FIFO. Raises ChannelUnavailable if no server is listening."""
        try:
            self._fd = os.open(self.path, os.O_WRONLY | os.O_NONBLOCK)
        except OSError as e:
            raise ChannelUnavailable(f"Cannot open server pipe {self.path}: {e}")
        os.set_blocking(self._fd, True)

    def send(self, request: Request) -> None:
        if self._fd is None:
            raise ChannelUnavailable(f"Server pipe {self.path} is not open")
        try:
            os.write(self._fd, format_request(request))
        except BrokenPipeError as e:
            raise ChannelUnavailable(f"Server pipe {self.path} closed: {e}")

    def close(self) -> None:
        if self._fd is not None:
            os.close(self._fd)
            self._fd = None

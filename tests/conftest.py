"""
Pytest configuration and shared fixtures.
"""

import os
import sys
import tempfile

# Set environment variables BEFORE importing the application
_temp_base = tempfile.mkdtemp(prefix="bookloan_test_")

os.environ["LOG_ROOT"] = _temp_base
os.environ["ENABLE_LOGGING"] = "false"
os.environ["REPLY_CHANNEL_DIR"] = os.path.join(_temp_base, "pipes")
os.environ["INGRESS_POLL_INTERVAL"] = "0.05"
os.environ["CONSOLE_POLL_INTERVAL"] = "0.05"

os.makedirs(os.path.join(_temp_base, "pipes"), exist_ok=True)

# Add the project root to Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from bookloan.core.catalog import Catalog
from bookloan.core.config import config
from bookloan.core.models import Book, Copy, CopyStatus, DueDate


CATALOG_TEXT = """Intro to OS,100,1
1,D,01-01-2025
Distributed Systems,200,3
1,P,28-05-2025
2,D,10-06-2025
3,P,30-12-2025
"""


class RecordingSender:
    """Stands in for ReplySender and keeps every response in order."""

    def __init__(self, delivered: bool = True):
        self.sent = []
        self.delivered = delivered

    def send(self, requester_id, text):
        self.sent.append((requester_id, text))
        return self.delivered


@pytest.fixture(autouse=True)
def reset_config_overrides():
    config.clear_overrides()
    yield
    config.clear_overrides()


@pytest.fixture
def sample_books():
    return [
        Book("Intro to OS", 100, [Copy(1, CopyStatus.AVAILABLE, DueDate(1, 1, 2025))]),
        Book("Distributed Systems", 200, [
            Copy(1, CopyStatus.LOANED, DueDate(28, 5, 2025)),
            Copy(2, CopyStatus.AVAILABLE, DueDate(10, 6, 2025)),
            Copy(3, CopyStatus.LOANED, DueDate(30, 12, 2025)),
        ]),
    ]


@pytest.fixture
def catalog(sample_books):
    return Catalog(sample_books)


@pytest.fixture
def catalog_file(tmp_path):
    path = tmp_path / "catalog.txt"
    path.write_text(CATALOG_TEXT)
    return path


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
def fixed_clock():
    return lambda: DueDate(28, 12, 2025)


@pytest.fixture
def pipe_dir(tmp_path):
    if not hasattr(os, "mkfifo"):
        pytest.skip("named pipes need POSIX")
    path = tmp_path / "pipes"
    path.mkdir()
    return path

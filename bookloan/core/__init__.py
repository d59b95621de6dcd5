"""Core module - shared models, catalog, queue, and utilities."""

from bookloan.core.models import Book, Copy, CopyStatus, DueDate, Operation, Request, QUIT_SENTINEL
from bookloan.core.catalog import Catalog
from bookloan.core.queue import RequestQueue
from bookloan.core.logger import setup_logger

"""Environment-derived settings.

Values are read once at import time. Anything that must change at runtime
goes through ``bookloan.core.config.config`` instead.
"""

import os
import tempfile
from pathlib import Path


def string_to_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "yes", "1", "y", "on")


def _env_int(key: str, default: int) -> int:
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(key: str, default: float) -> float:
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


# Logging
LOG_ROOT = Path(os.getenv("LOG_ROOT", "/var/log/"))
LOG_DIR = LOG_ROOT / "bookloan"
LOG_FILE = LOG_DIR / "bookloan.log"
ENABLE_LOGGING = string_to_bool(os.getenv("ENABLE_LOGGING", "false"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Catalog limits
MAX_BOOKS = _env_int("MAX_BOOKS", 100)
MAX_COPIES = _env_int("MAX_COPIES", 10)

# Request queue
QUEUE_CAPACITY = _env_int("QUEUE_CAPACITY", 10)

# Channels
REPLY_CHANNEL_DIR = Path(os.getenv("REPLY_CHANNEL_DIR", tempfile.gettempdir()))
REPLY_OPEN_ATTEMPTS = _env_int("REPLY_OPEN_ATTEMPTS", 5)
REPLY_RETRY_DELAY = _env_float("REPLY_RETRY_DELAY", 0.1)  # seconds between open attempts
RESPONSE_TIMEOUT = _env_float("RESPONSE_TIMEOUT", 1.0)
INGRESS_POLL_INTERVAL = _env_float("INGRESS_POLL_INTERVAL", 0.2)
CONSOLE_POLL_INTERVAL = _env_float("CONSOLE_POLL_INTERVAL", 0.2)

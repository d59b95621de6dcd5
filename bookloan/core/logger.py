"""Logging configuration and custom logger with error tracing."""

import logging
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Any

from bookloan.config.env import LOG_FILE, ENABLE_LOGGING, LOG_LEVEL


class CustomLogger(logging.Logger):
    """Logger with *_trace helpers that attach the active stack trace."""

    def error_trace(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        """Log an error message with full stack trace."""
        self.log_resource_usage()
        kwargs.pop('exc_info', None)
        self.error(msg, *args, exc_info=True, **kwargs)

    def warning_trace(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        """Log a warning message with full stack trace."""
        self.log_resource_usage()
        kwargs.pop('exc_info', None)
        self.warning(msg, *args, exc_info=True, **kwargs)

    def info_trace(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        """Log an info message (stack trace only if exception active)."""
        kwargs.pop('exc_info', None)
        has_exception = sys.exc_info()[0] is not None
        self.info(msg, *args, exc_info=has_exception, **kwargs)

    def debug_trace(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        """Log a debug message (stack trace only if exception active)."""
        kwargs.pop('exc_info', None)
        has_exception = sys.exc_info()[0] is not None
        self.debug(msg, *args, exc_info=has_exception, **kwargs)

    def log_resource_usage(self):
        # Best-effort only; this should never raise during exception logging.
        try:
            import psutil

            process = psutil.Process()
            with process.oneshot():
                rss_mb = process.memory_info().rss / (1024 * 1024)
                threads = process.num_threads()
                open_files = len(process.open_files())
            self.debug(
                f"Server process: RSS={rss_mb:.2f} MB, threads={threads}, open files={open_files}"
            )
        except Exception:
            # psutil missing or restricted; the log call itself still goes out.
            return


def setup_logger(name: str, log_file: Path = LOG_FILE) -> CustomLogger:
    """Set up and configure a logger instance.

    Args:
        name: The name of the logger instance
        log_file: Path to the rotating log file, used only when ENABLE_LOGGING is set

    Returns:
        CustomLogger: Configured logger instance with error_trace method
    """
    logging.setLoggerClass(CustomLogger)

    logger = CustomLogger(name)
    log_level = getattr(logging, LOG_LEVEL, logging.INFO)
    logger.setLevel(log_level)

    # Ingress, worker and console run on separate threads
    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - [%(threadName)s] %(filename)s:%(lineno)d - %(message)s'
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(log_level)
    console_handler.addFilter(lambda record: record.levelno < logging.ERROR)  # Only allow logs below ERROR to stdout
    logger.addHandler(console_handler)

    error_handler = logging.StreamHandler(sys.stderr)
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(formatter)
    logger.addHandler(error_handler)

    try:
        if ENABLE_LOGGING:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=10485760,  # 10MB
                backupCount=5
            )
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
    except Exception as e:
        logger.error_trace(f"Failed to create log file: {e}", exc_info=True)

    return logger

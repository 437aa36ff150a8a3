"""
Logging configuration for flac-auditor.

This module sets up the logging system with multiple outputs:
    - Console: Real-time messages with tqdm-compatible, colored formatting
    - log_full_<timestamp>.log: Complete log of all events (DEBUG and above)
    - log_errors_<timestamp>.log: Only ERROR and CRITICAL level messages
    - failed_files_<timestamp>.log: Files whose terminal status is a failure

The audit log (flac_audit.csv) is NOT part of the logging system: it is a
structured, append-only record written by flac_auditor.core.audit_log.
Run logs here are per-run and timestamped.

Usage:
    from flac_auditor.core.logger import setup_logging, get_logger

    setup_logging(log_dir, verbose=False)  # Call once at startup
    logger = get_logger(__name__)          # Get logger for each module

    logger.info("Starting audit")
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import TextIO

from tqdm import tqdm


# Log file name prefixes (created in the log directory)
LOG_FULL_PREFIX = "log_full"
LOG_ERRORS_PREFIX = "log_errors"
FAILED_FILES_PREFIX = "failed_files"

# Log format for file output (detailed with timestamp and thread)
FILE_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(threadName)s | %(name)s | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class Colors:
    """ANSI color codes for terminal output."""
    RESET = "\033[0m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"
    BOLD = "\033[1m"


class ColoredConsoleFormatter(logging.Formatter):
    """
    Formatter that colors the level name on console output.

    Colors:
        - DEBUG: Blue
        - INFO: Green
        - WARNING: Yellow
        - ERROR: Red
        - CRITICAL: Bold Red
    """

    LEVEL_COLORS = {
        logging.DEBUG: Colors.BLUE,
        logging.INFO: Colors.GREEN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.BOLD + Colors.RED,
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, Colors.WHITE)
        return f"{color}{record.levelname}{Colors.RESET}: {record.getMessage()}"


class TqdmLoggingHandler(logging.Handler):
    """
    Logging handler that writes through tqdm.write().

    Progress bars redraw in place on stderr; plain writes to the same
    stream would tear them. tqdm.write() prints above any active bar.
    """

    def __init__(self, stream: TextIO = sys.stderr) -> None:
        super().__init__()
        self.stream = stream

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            tqdm.write(msg, file=self.stream)
        except Exception:
            self.handleError(record)


class FailedFileHandler(logging.Handler):
    """
    Handler that collects files with a failing terminal status.

    Listens for log records carrying failure extra fields and writes them
    to failed_files_<timestamp>.log in a simple, human-readable format:

        RECOVERY_FAILED  Artist/Album/01 - Track.flac
            decode failed with primary and fallback decoder

        VERIFY_FAILED  Artist/Album/02 - Track.flac
            output copy failed final integrity test

    Extra fields looked for:
        - 'failed_file_path': relative path of the file (required)
        - 'failed_file_status': terminal status token
        - 'failed_file_reason': free-text reason

    Records without 'failed_file_path' are ignored. logging.Handler.handle()
    holds the handler lock around emit(), so concurrent workers do not
    interleave entries.
    """

    def __init__(self, report_path: Path) -> None:
        super().__init__()
        self.report_path = report_path
        self.report_file: TextIO | None = None

    def open(self) -> None:
        """Open the report file for writing (overwrites existing content)."""
        self.report_file = open(self.report_path, "w", encoding="utf-8")

    def emit(self, record: logging.LogRecord) -> None:
        if not hasattr(record, "failed_file_path"):
            return

        if self.report_file is None:
            return

        try:
            path = getattr(record, "failed_file_path", "")
            status = getattr(record, "failed_file_status", "")
            reason = getattr(record, "failed_file_reason", "")

            self.report_file.write(f"{status}  {path}\n")
            if reason:
                self.report_file.write(f"    {reason}\n")
            self.report_file.write("\n")
            self.report_file.flush()
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        """Close the report file handle. Safe to call multiple times."""
        if self.report_file is not None:
            try:
                self.report_file.close()
            except OSError:
                pass
            self.report_file = None
        super().close()


class ErrorOnlyFilter(logging.Filter):
    """Filter that only allows ERROR and CRITICAL level records."""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.ERROR


def setup_logging(log_dir: Path, verbose: bool = False) -> None:
    """
    Configure the logging system for the application.

    Call ONCE at startup, after the configuration is loaded and before any
    worker threads are started.

    Args:
        log_dir: Directory where run log files will be created.
                 Created if it doesn't exist.
        verbose: If True, the console shows DEBUG messages too.

    Behavior:
        1. Create log_dir if needed
        2. Configure root logger level to DEBUG, drop existing handlers
        3. Console handler (TqdmLoggingHandler), INFO or DEBUG
        4. Full log file handler, DEBUG
        5. Error-only log file handler
        6. FailedFileHandler for failing statuses
    """
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    console_handler = TqdmLoggingHandler()
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(ColoredConsoleFormatter())
    root_logger.addHandler(console_handler)

    full_log_path = log_dir / f"{LOG_FULL_PREFIX}_{timestamp}.log"
    full_handler = logging.FileHandler(full_log_path, mode="w", encoding="utf-8")
    full_handler.setLevel(logging.DEBUG)
    full_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT))
    root_logger.addHandler(full_handler)

    error_log_path = log_dir / f"{LOG_ERRORS_PREFIX}_{timestamp}.log"
    error_handler = logging.FileHandler(error_log_path, mode="w", encoding="utf-8")
    error_handler.setLevel(logging.DEBUG)  # Filter handles the level restriction
    error_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT))
    error_handler.addFilter(ErrorOnlyFilter())
    root_logger.addHandler(error_handler)

    failed_path = log_dir / f"{FAILED_FILES_PREFIX}_{timestamp}.log"
    failed_handler = FailedFileHandler(failed_path)
    failed_handler.open()
    root_logger.addHandler(failed_handler)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: The logger name, typically __name__ of the calling module.

    Note:
        Loggers obtained before setup_logging() have no handlers of their
        own and propagate to whatever the root logger has at emit time.
    """
    return logging.getLogger(name)


def format_status_message(status: str, relative_path: str, index: int, total: int) -> str:
    """
    Format the one-line per-file progress message used in verbose mode.

    Example:
        [12/340] RECOVERED  Artist/Album/03 - Track.flac
    """
    color = {
        "OK": Colors.GREEN,
        "NORMALIZED": Colors.GREEN,
        "RECOVERED": Colors.CYAN,
        "FAIL": Colors.YELLOW,
    }.get(status, Colors.RED)
    return f"[{index}/{total}] {color}{status}{Colors.RESET}  {relative_path}"


def log_file_failure(
    logger: logging.Logger,
    relative_path: str,
    status: str,
    reason: str,
) -> None:
    """
    Log a file whose terminal status is a failure.

    Logs a WARNING with extra fields that FailedFileHandler picks up and
    writes to failed_files_<timestamp>.log.
    """
    logger.warning(
        f"{status}: {relative_path} ({reason})" if reason else f"{status}: {relative_path}",
        extra={
            "failed_file_path": relative_path,
            "failed_file_status": status,
            "failed_file_reason": reason,
        }
    )


def shutdown_logging() -> None:
    """
    Flush, close and remove all root handlers.

    Typically called from a finally block at application exit.
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        try:
            handler.flush()
            handler.close()
        except OSError:
            pass
        root_logger.removeHandler(handler)

"""
Append-only audit log for flac-auditor.

One CSV header row, then one row per processed file:

    path,relative_path,status,reason,had_legacy_tag,has_image,channels,
    sample_rate,bits_per_sample,total_samples,md5,actions,output_path

Format rules:
    - reason and actions are always quoted; embedded quotes are doubled
    - actions is a semicolon-delimited list of action tokens
    - booleans are written as true/false
    - missing stream attributes and a missing output path are empty
    - other fields are quoted only if they contain a comma, quote or newline

The file is never truncated. The header is written only when the file
doesn't exist yet (or is empty), so several runs can append to the same
log and --skip-logged can resume an interrupted audit.

Thread Safety:
    AuditLog.append() is serialized with a lock; workers call it directly.

Usage:
    with AuditLog(output_root / "flac_audit.csv") as audit_log:
        audit_log.append(record)
"""

import csv
import threading
from pathlib import Path
from typing import TextIO

from flac_auditor.core.exceptions import AuditLogError
from flac_auditor.core.logger import get_logger
from flac_auditor.pipeline.models import AuditRecord

logger = get_logger(__name__)


AUDIT_LOG_HEADER: tuple[str, ...] = (
    "path",
    "relative_path",
    "status",
    "reason",
    "had_legacy_tag",
    "has_image",
    "channels",
    "sample_rate",
    "bits_per_sample",
    "total_samples",
    "md5",
    "actions",
    "output_path",
)

ACTION_SEPARATOR = ";"

_SPECIAL_CHARS = (",", '"', "\n", "\r")


def _quote(value: str) -> str:
    return '"' + value.replace('"', '""') + '"'


def _field(value: str | None) -> str:
    if not value:
        return ""
    if any(char in value for char in _SPECIAL_CHARS):
        return _quote(value)
    return value


def _bool(value: bool) -> str:
    return "true" if value else "false"


def format_header() -> str:
    """Header row, without line terminator."""
    return ",".join(AUDIT_LOG_HEADER)


def format_record(record: AuditRecord) -> str:
    """
    Serialize one AuditRecord as a CSV row, without line terminator.

    This is the only place a record is turned into text.
    """
    info = record.stream_info
    actions = ACTION_SEPARATOR.join(str(action) for action in record.actions)
    fields = [
        _field(str(record.source)),
        _field(record.relative_path),
        str(record.status),
        _quote(record.reason.replace("\r", " ").replace("\n", " ")),
        _bool(record.had_legacy_tag),
        _bool(record.has_image),
        _field(info.channels),
        _field(info.sample_rate),
        _field(info.bit_depth),
        _field(info.total_samples),
        _field(info.md5),
        _quote(actions),
        _field(str(record.output_path) if record.output_path is not None else ""),
    ]
    return ",".join(fields)


def read_logged_sources(log_path: Path) -> set[str]:
    """
    Source paths already recorded in an existing audit log.

    Returns an empty set if the log doesn't exist. Rows that can't be
    parsed are ignored.

    Raises:
        AuditLogError: If the log exists but can't be read.
    """
    if not log_path.exists():
        return set()

    sources: set[str] = set()
    try:
        with open(log_path, "r", encoding="utf-8", newline="") as f:
            reader = csv.reader(f)
            for row in reader:
                if not row or row[0] == AUDIT_LOG_HEADER[0]:
                    continue
                sources.add(row[0])
    except (OSError, csv.Error, UnicodeDecodeError) as e:
        raise AuditLogError(
            f"Cannot read audit log: {e}",
            details={"file_path": str(log_path), "original_error": str(e)}
        ) from e
    return sources


class AuditLog:
    """
    Append-only, thread-safe CSV audit log.

    Attributes:
        path: Log file location.
        records_written: Rows appended through this instance.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self.records_written = 0
        self._lock = threading.Lock()
        self._file: TextIO | None = None

    def open(self) -> None:
        """
        Open the log for appending, writing the header for a new file.

        Raises:
            AuditLogError: If the file or its directory can't be created.
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            is_new = not self.path.exists() or self.path.stat().st_size == 0
            self._file = open(self.path, "a", encoding="utf-8", newline="")
            if is_new:
                self._file.write(format_header() + "\n")
                self._file.flush()
        except OSError as e:
            raise AuditLogError(
                f"Cannot open audit log: {e}",
                details={"file_path": str(self.path), "original_error": str(e)}
            ) from e
        logger.debug(f"Audit log opened: {self.path}")

    def append(self, record: AuditRecord) -> None:
        """
        Append one record and flush it to disk.

        Raises:
            AuditLogError: If the log isn't open or the write fails.
        """
        line = format_record(record) + "\n"
        with self._lock:
            if self._file is None:
                raise AuditLogError(
                    "Audit log is not open",
                    details={"file_path": str(self.path)}
                )
            try:
                self._file.write(line)
                self._file.flush()
            except OSError as e:
                raise AuditLogError(
                    f"Cannot append to audit log: {e}",
                    details={"file_path": str(self.path), "original_error": str(e)}
                ) from e
            self.records_written += 1

    def close(self) -> None:
        """Close the log. Safe to call multiple times."""
        with self._lock:
            if self._file is not None:
                try:
                    self._file.close()
                except OSError as e:
                    logger.warning(f"Error closing audit log: {e}")
                self._file = None

    def __enter__(self) -> "AuditLog":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

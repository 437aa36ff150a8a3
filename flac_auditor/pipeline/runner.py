"""
Run-level driver: discovery, parallel processing, reporting, summary.

Files are processed by a thread pool (run.workers, default 1). Each worker
runs the whole FilePipeline for one file and appends its record to the
audit log itself, so a record is written as soon as its file is done.

Cancellation:
    On Ctrl-C (or any error in the collecting thread, such as an audit log
    write failure) the cancel event is set. Files already started finish
    and are reported; files not yet started are skipped. The audit log
    therefore never holds a partial run of a file.

Usage:
    summary = run_audit(config, toolkit, transcoder, input_root, output_root)
    log_summary(summary)
"""

import contextlib
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path

from flac_auditor.core.audit_log import AuditLog, read_logged_sources
from flac_auditor.core.config import AUDIT_LOG_FILENAME, Config
from flac_auditor.core.file_manager import discover_flac_files
from flac_auditor.core.logger import format_status_message, get_logger, log_file_failure
from flac_auditor.core.progress import AuditProgressBar
from flac_auditor.pipeline.models import STATUS_DESCRIPTIONS, AuditRecord, AuditStatus
from flac_auditor.pipeline.orchestrator import FilePipeline
from flac_auditor.tools.base import CodecToolkit, ImageTranscoder

logger = get_logger(__name__)


@dataclass
class RunSummary:
    """
    Statistics of one run.

    Attributes:
        discovered: FLAC files found below the input root.
        skipped: Files skipped because the audit log already lists them.
        processed: Files that got a record in this run.
        cancelled: True if the run stopped before every file was processed.
        counts: Records per terminal status.
    """
    discovered: int = 0
    skipped: int = 0
    processed: int = 0
    cancelled: bool = False
    counts: dict[AuditStatus, int] = field(
        default_factory=lambda: {status: 0 for status in AuditStatus}
    )

    def add(self, record: AuditRecord) -> None:
        self.processed += 1
        self.counts[record.status] += 1


class AuditRunner:
    """
    Processes a list of files with a FilePipeline and an AuditLog.

    Attributes:
        pipeline: Per-file orchestrator (shared by all workers).
        audit_log: Open audit log.
        workers: Number of worker threads.
        verbose: One line per file instead of a progress bar.
        show_progress: Show the Rich progress bar in non-verbose mode.
        cancel_event: Set to stop before the next file starts.
    """

    def __init__(
        self,
        pipeline: FilePipeline,
        audit_log: AuditLog,
        workers: int = 1,
        verbose: bool = False,
        show_progress: bool = True,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self.pipeline = pipeline
        self.audit_log = audit_log
        self.workers = max(1, workers)
        self.verbose = verbose
        self.show_progress = show_progress
        self.cancel_event = cancel_event or threading.Event()

    def _audit_one(self, source: Path) -> AuditRecord | None:
        """Worker body. Returns None if the run was cancelled before start."""
        if self.cancel_event.is_set():
            return None
        record = self.pipeline.process(source)
        self.audit_log.append(record)
        return record

    def run(self, files: list[Path], summary: RunSummary | None = None) -> RunSummary:
        """
        Process files and collect statistics.

        Raises:
            AuditLogError: If a record can't be written (remaining files
                           are not started).
            KeyboardInterrupt: Re-raised after in-flight files finished.
        """
        if summary is None:
            summary = RunSummary(discovered=len(files))
        total = len(files)
        if not files:
            logger.info("No files to audit")
            return summary

        logger.info(f"Auditing {total} files with {self.workers} worker(s)")

        if self.verbose or not self.show_progress:
            progress_cm = contextlib.nullcontext()
        else:
            progress_cm = AuditProgressBar(total=total)

        with progress_cm as progress:
            with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="audit") as executor:
                futures = {executor.submit(self._audit_one, source): source for source in files}
                try:
                    for future in as_completed(futures):
                        record = future.result()
                        if record is None:
                            continue
                        summary.add(record)
                        self._report(record, summary.processed, total, progress)
                except BaseException:
                    self.cancel_event.set()
                    executor.shutdown(wait=False, cancel_futures=True)
                    summary.cancelled = True
                    raise
                finally:
                    if summary.processed < total:
                        summary.cancelled = True

        return summary

    def _report(
        self,
        record: AuditRecord,
        index: int,
        total: int,
        progress: AuditProgressBar | None,
    ) -> None:
        if self.verbose:
            logger.info(format_status_message(str(record.status), record.relative_path, index, total))
        elif progress is not None:
            progress.update(record.status)

        if record.status.is_failure:
            log_file_failure(logger, record.relative_path, str(record.status), record.reason)
        elif record.output_path is not None:
            logger.debug(f"{record.status}: {record.relative_path} -> {record.output_path}")


def resolve_audit_log_path(config: Config, output_root: Path) -> Path:
    return config.run.audit_log or (output_root / AUDIT_LOG_FILENAME)


def run_audit(
    config: Config,
    toolkit: CodecToolkit,
    transcoder: ImageTranscoder,
    input_root: Path,
    output_root: Path,
    cancel_event: threading.Event | None = None,
    show_progress: bool = True,
) -> RunSummary:
    """
    Audit every FLAC file below input_root.

    Args:
        config: Effective configuration.
        toolkit: Codec collaborator.
        transcoder: Artwork collaborator.
        input_root: Scan root.
        output_root: Root of mirrored output copies (and default log location).
        cancel_event: Optional event to stop the run between files.
        show_progress: Show the Rich progress bar in non-verbose mode.

    Returns:
        RunSummary of the run.

    Raises:
        AuditLogError: If the audit log can't be read, opened or written.
    """
    input_root = input_root.resolve()
    output_root = output_root.resolve()
    log_path = resolve_audit_log_path(config, output_root)

    files = discover_flac_files(input_root, exclude=output_root)
    summary = RunSummary(discovered=len(files))

    if config.run.skip_logged:
        logged = read_logged_sources(log_path)
        pending = [path for path in files if str(path) not in logged]
        summary.skipped = len(files) - len(pending)
        if summary.skipped:
            logger.info(f"Skipping {summary.skipped} files already in {log_path.name}")
        files = pending

    pipeline = FilePipeline(
        config.pipeline,
        toolkit,
        transcoder,
        input_root=input_root,
        output_root=output_root,
        scratch_parent=config.run.scratch_directory,
    )

    with AuditLog(log_path) as audit_log:
        runner = AuditRunner(
            pipeline,
            audit_log,
            workers=config.run.workers,
            verbose=config.run.verbose,
            show_progress=show_progress,
            cancel_event=cancel_event,
        )
        runner.run(files, summary)

    return summary


def log_summary(summary: RunSummary) -> None:
    """Log per-status counts followed by the meaning of every status."""
    logger.info("=" * 60)
    logger.info("AUDIT SUMMARY")
    logger.info("=" * 60)
    logger.info(f"Files found:       {summary.discovered}")
    if summary.skipped:
        logger.info(f"Already logged:    {summary.skipped}")
    logger.info(f"Processed:         {summary.processed}")
    for status in AuditStatus:
        logger.info(f"  {status.value:<16} {summary.counts[status]}")
    if summary.cancelled:
        logger.warning("Run stopped before all files were processed")
    logger.info("-" * 60)
    logger.info("Status codes:")
    for status in AuditStatus:
        logger.info(f"  {status.value:<16} {STATUS_DESCRIPTIONS[status]}")
    logger.info("=" * 60)

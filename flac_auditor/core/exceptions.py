"""
Exception classes for flac-auditor.

This module defines the custom exceptions used at the edges of the
application: configuration loading, tool discovery and the audit log.

Per-file processing never raises across stage boundaries. Stages report
failures as StageOutcome values (see flac_auditor.pipeline.context); the
exceptions below are reserved for conditions that stop the whole run, plus
StageError which a stage may raise internally and which the orchestrator
converts back into an outcome.

Exception Hierarchy:
    FlacAuditorError (base)
        ConfigError - Configuration file or option issues
        ToolNotFoundError - Required external executable missing
        AuditLogError - Audit log cannot be opened or written
        StageError - Internal stage failure (never leaves the orchestrator)
"""


class FlacAuditorError(Exception):
    """
    Base exception for all flac-auditor errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context (paths, values).

    Example:
        try:
            config = load_config()
        except FlacAuditorError as e:
            logger.error(f"Startup failed: {e.message}")
            if e.details:
                logger.debug(f"Details: {e.details}")
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        """
        Initialize the base exception.

        Args:
            message: Human-readable error description shown to the user.
            details: Optional dictionary containing additional context.
                     Common keys include:
                     - 'file_path': file involved in the error
                     - 'field': configuration field that failed validation
                     - 'original_error': the wrapped exception, as a string
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return the error message for display."""
        return self.message


class ConfigError(FlacAuditorError):
    """
    Raised when there's an issue with the configuration.

    This is a CRITICAL error that stops the run before any file is touched.

    Common causes:
        - Explicit --config file not found
        - Invalid YAML syntax
        - Section that is not a mapping
        - Invalid values (non-positive timeout, empty whitelist, ...)

    Example:
        raise ConfigError(
            "'run.workers' must be a positive integer",
            details={'field': 'run.workers', 'value': 0}
        )
    """
    pass


class ToolNotFoundError(FlacAuditorError):
    """
    Raised when a required external executable is not available.

    Checked once at startup. Only the encoder/decoder (`flac`) and the
    block editor (`metaflac`) are required; a missing fallback decoder
    (`ffmpeg`) just disables the fallback decode attempt.

    Example:
        raise ToolNotFoundError(
            "Required tool not found on PATH: metaflac",
            details={'tool': 'metaflac'}
        )
    """
    pass


class AuditLogError(FlacAuditorError):
    """
    Raised when the append-only audit log cannot be opened or written.

    This is CRITICAL: a file that cannot be reported must not be processed,
    so the run stops.

    Example:
        raise AuditLogError(
            "Cannot append to audit log: permission denied",
            details={'file_path': '/music/out/flac_audit.csv'}
        )
    """
    pass


class StageError(FlacAuditorError):
    """
    Raised inside a pipeline stage for a failure of the current file.

    The orchestrator catches it and turns it into a StageOutcome carrying
    the stage's failure kind, so it never escapes a single file's
    processing.

    Attributes:
        kind: The FailureKind of the stage that raised.
    """

    def __init__(self, message: str, kind=None, details: dict | None = None) -> None:
        """
        Initialize the stage error.

        Args:
            message: Human-readable error description.
            kind: FailureKind of the failing stage (optional).
            details: Optional dictionary with additional context.
        """
        super().__init__(message, details)
        self.kind = kind

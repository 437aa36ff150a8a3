"""
Per-file processing state shared between pipeline stages.

A FileContext is created by the orchestrator for one source file, passed
to every enabled stage in order, and turned into exactly one AuditRecord
at the end. Stages read what earlier stages found and record their own
results on it; they never talk to each other directly.

Stages report how things went with a StageOutcome:

    StageOutcome.ok()                      - continue with the next stage
    StageOutcome.noted(kind, reason)       - failure recorded, continue
    StageOutcome.stop(kind, reason)        - failure recorded, stop here
"""

from dataclasses import dataclass, field
from pathlib import Path

from flac_auditor.core.config import PipelineConfig
from flac_auditor.core.exceptions import StageError
from flac_auditor.core.file_manager import create_scratch_workspace, remove_scratch_workspace
from flac_auditor.pipeline.models import Action, FailureKind, PictureAsset, TagSet
from flac_auditor.tools.streaminfo import StreamInfo


@dataclass(frozen=True)
class StageOutcome:
    """
    Result of running one stage on one file.

    Attributes:
        proceed: False ends processing of the file after this stage.
        failure: Failure category, or None if the stage succeeded.
        reason: Free-text reason for the failure ("" if none).
    """
    proceed: bool = True
    failure: FailureKind | None = None
    reason: str = ""

    @classmethod
    def ok(cls) -> "StageOutcome":
        return cls()

    @classmethod
    def noted(cls, failure: FailureKind, reason: str = "") -> "StageOutcome":
        return cls(proceed=True, failure=failure, reason=reason)

    @classmethod
    def stop(cls, failure: FailureKind, reason: str = "") -> "StageOutcome":
        return cls(proceed=False, failure=failure, reason=reason)


@dataclass
class FileContext:
    """
    Mutable state of one file's trip through the pipeline.

    Attributes:
        source: Absolute source path.
        relative_path: Source path relative to the scan root.
        output_target: Where a re-encoded copy would be written.
        config: Pipeline settings for this run.
        scratch_parent: Parent directory for the scratch workspace
                        (None for the system temporary directory).

    Probe results (refreshed by the container sanitizer):
        header_ok, stream_info, has_legacy_tag, integrity_ok, diagnostic,
        has_image

    Copy results:
        raw_path: Decoded audio in the scratch workspace.
        output_path: Re-encoded copy, set once the encoder succeeded.
        verified: True once the copy passed the final integrity test.
        tags: TagSet exported from the source, if requested.
        picture: First picture exported from the source, if any.

    Audit trail:
        actions: Action tokens in the order they were applied.
        failures: FailureKind of every failed stage.
        reasons: Free-text reasons, joined for the audit record.
    """
    source: Path
    relative_path: str
    output_target: Path
    config: PipelineConfig
    scratch_parent: Path | None = None

    header_ok: bool = False
    stream_info: StreamInfo = field(default_factory=StreamInfo)
    has_legacy_tag: bool = False
    integrity_ok: bool = False
    diagnostic: str = ""
    has_image: bool = False

    raw_path: Path | None = None
    output_path: Path | None = None
    verified: bool = False
    tags: TagSet | None = None
    picture: PictureAsset | None = None

    actions: list[Action] = field(default_factory=list)
    failures: list[FailureKind] = field(default_factory=list)
    reasons: list[str] = field(default_factory=list)

    _workspace: Path | None = field(default=None, init=False, repr=False)

    @property
    def needs_copy(self) -> bool:
        """
        True if this file gets a re-encoded copy.

        Decided on the current integrity state, so a container sanitize
        that fixed the file turns a would-be recovery into no copy at all
        (unless every file is re-encoded).
        """
        if not self.config.produces_copies:
            return False
        return self.config.force_reencode or not self.integrity_ok

    @property
    def workspace(self) -> Path:
        """
        Scratch directory of this file, created on first use.

        Raises:
            StageError: If the directory can't be created.
        """
        if self._workspace is None:
            try:
                self._workspace = create_scratch_workspace(self.scratch_parent)
            except OSError as e:
                raise StageError(
                    f"Cannot create scratch workspace: {e}",
                    kind=FailureKind.UNEXPECTED,
                    details={"file_path": str(self.source)}
                ) from e
        return self._workspace

    @property
    def workspace_path(self) -> Path | None:
        """Scratch directory if one was created, else None."""
        return self._workspace

    def discard_workspace(self) -> None:
        """Delete the scratch directory and every exported asset in it."""
        remove_scratch_workspace(self._workspace)
        self._workspace = None
        self.raw_path = None
        self.picture = None

    def add_action(self, action: Action) -> None:
        self.actions.append(action)

    def record(self, outcome: StageOutcome) -> None:
        """Add a stage outcome's failure and reason to the audit trail."""
        if outcome.failure is not None:
            self.failures.append(outcome.failure)
        if outcome.reason:
            self.reasons.append(outcome.reason)

    @property
    def reason(self) -> str:
        return "; ".join(self.reasons)

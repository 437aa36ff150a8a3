"""
Per-file audit pipeline for flac-auditor.

Components:
    - models: AuditRecord, AuditStatus, Action, FailureKind, TagSet, PictureAsset
    - context: FileContext and StageOutcome shared by the stages
    - probe: structural probe (header, STREAMINFO, legacy tags, integrity)
    - sanitize: in-place legacy tag removal
    - reencode: asset export, decode with fallback, encode, final verify
    - tags: whitelist tag sanitizer
    - artwork: artwork normalizer
    - classifier: terminal status and record construction
    - orchestrator: FilePipeline running the enabled stages per file
    - runner: thread pool, audit log writes, progress and summary
      (imported from flac_auditor.pipeline.runner directly)

Usage:
    from flac_auditor.pipeline import FilePipeline, AuditStatus

    pipeline = FilePipeline(config.pipeline, toolkit, transcoder, input_root, output_root)
    record = pipeline.process(path)
"""

from flac_auditor.pipeline.classifier import build_record, classify
from flac_auditor.pipeline.context import FileContext, StageOutcome
from flac_auditor.pipeline.models import (
    STATUS_DESCRIPTIONS,
    Action,
    AuditRecord,
    AuditStatus,
    FailureKind,
    PictureAsset,
    TagSet,
)
from flac_auditor.pipeline.orchestrator import FilePipeline, build_stages
from flac_auditor.pipeline.probe import ProbeResult, check_header, probe_file
from flac_auditor.pipeline.stage import Stage

__all__ = [
    # Models
    "AuditRecord",
    "AuditStatus",
    "Action",
    "FailureKind",
    "TagSet",
    "PictureAsset",
    "STATUS_DESCRIPTIONS",
    # Stages
    "FileContext",
    "StageOutcome",
    "Stage",
    "ProbeResult",
    "check_header",
    "probe_file",
    # Orchestration
    "FilePipeline",
    "build_stages",
    "build_record",
    "classify",
]

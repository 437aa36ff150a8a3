"""
Classifier: turns a finished FileContext into its AuditRecord.

Status rules, first match wins:

    decode stage failed                        -> RECOVERY_FAILED
    final verification of the copy failed      -> VERIFY_FAILED
    copy produced and verified, source failing -> RECOVERED
    copy produced and verified, source passing -> NORMALIZED
    source passes the integrity test           -> OK
    otherwise                                  -> FAIL

"Source failing" means the integrity state the copy decision was made
on, i.e. after any container sanitize.
"""

from flac_auditor.pipeline.context import FileContext
from flac_auditor.pipeline.models import AuditRecord, AuditStatus, FailureKind


HEADER_REASON = "missing fLaC marker at start of file"


def classify(ctx: FileContext) -> AuditStatus:
    """Derive the terminal status of one file."""
    if FailureKind.DECODE in ctx.failures:
        return AuditStatus.RECOVERY_FAILED
    if FailureKind.VERIFY in ctx.failures:
        return AuditStatus.VERIFY_FAILED
    if ctx.output_path is not None and ctx.verified:
        return AuditStatus.NORMALIZED if ctx.integrity_ok else AuditStatus.RECOVERED
    return AuditStatus.OK if ctx.integrity_ok else AuditStatus.FAIL


def compose_reason(ctx: FileContext) -> str:
    """
    Free-text reason for the audit record.

    Header problem first, then the source's integrity diagnostics (if it
    fails), then every reason a stage reported, in stage order.
    """
    parts: list[str] = []
    if not ctx.header_ok:
        parts.append(HEADER_REASON)
    if not ctx.integrity_ok and ctx.diagnostic:
        parts.append(ctx.diagnostic)
    parts.extend(reason for reason in ctx.reasons if reason)
    return "; ".join(parts)


def build_record(ctx: FileContext) -> AuditRecord:
    """
    Build the one AuditRecord of a file.

    The output path is carried only for RECOVERED and NORMALIZED; the
    orchestrator removes any other copy from disk.
    """
    status = classify(ctx)
    return AuditRecord(
        source=ctx.source,
        relative_path=ctx.relative_path,
        status=status,
        reason=compose_reason(ctx),
        had_legacy_tag=ctx.has_legacy_tag,
        has_image=ctx.has_image,
        stream_info=ctx.stream_info,
        actions=tuple(ctx.actions),
        output_path=ctx.output_path if status.has_output else None,
    )

"""
Structural probe: the read-only inspection every file gets.

Checks:
    - Header: the file starts with the "fLaC" marker
    - STREAMINFO: channels, sample rate, bit depth, total samples, MD5
    - Legacy (ID3) tag block presence
    - Integrity test (exit status zero means pass)
    - Embedded picture presence

The probe must work on maximally broken input, so nothing here raises
for a missing, truncated or garbage file: every failure becomes False or
an empty value.
"""

from dataclasses import dataclass, field
from pathlib import Path

from flac_auditor.core.logger import get_logger
from flac_auditor.pipeline.context import FileContext, StageOutcome
from flac_auditor.pipeline.models import FailureKind
from flac_auditor.pipeline.stage import Stage
from flac_auditor.tools.base import CodecToolkit, ToolResult
from flac_auditor.tools.streaminfo import StreamInfo, parse_streaminfo

logger = get_logger(__name__)


FLAC_MAGIC = b"fLaC"


def check_header(path: Path) -> bool:
    """
    True if the file's first 4 bytes are the canonical FLAC marker.

    A file that can't be opened is "not canonical", not an error.
    """
    try:
        with open(path, "rb") as f:
            return f.read(len(FLAC_MAGIC)) == FLAC_MAGIC
    except OSError as e:
        logger.debug(f"Header check could not open {path}: {e}")
        return False


def diagnostic_text(result: ToolResult) -> str:
    """Collapse a tool's diagnostics into one line for the audit record."""
    if result.timed_out:
        return "integrity test timed out"
    text = " ".join(
        line.strip()
        for stream in (result.stderr, result.stdout)
        for line in stream.splitlines()
        if line.strip()
    )
    return text or f"integrity test exit status {result.returncode}"


@dataclass(frozen=True)
class ProbeResult:
    """
    Everything the probe found out about one file.

    Attributes:
        header_ok: Canonical marker present at offset 0.
        stream_info: Parsed STREAMINFO fields (missing fields are None).
        has_legacy_tag: A legacy (ID3) tag block is present.
        integrity_ok: The integrity test exited with status zero.
        diagnostic: Integrity test diagnostics ("" when it passed).
        has_image: At least one embedded picture block.
    """
    header_ok: bool
    stream_info: StreamInfo = field(default_factory=StreamInfo)
    has_legacy_tag: bool = False
    integrity_ok: bool = False
    diagnostic: str = ""
    has_image: bool = False


def run_integrity_test(toolkit: CodecToolkit, path: Path) -> tuple[bool, str]:
    """
    Run the integrity test on path.

    Returns:
        (passed, diagnostic) where diagnostic is "" on success.
    """
    result = toolkit.integrity_test(path)
    if result.ok:
        return True, ""
    return False, diagnostic_text(result)


def probe_file(toolkit: CodecToolkit, path: Path) -> ProbeResult:
    """
    Inspect one file without modifying it.

    Args:
        toolkit: Collaborator used for the tool-backed checks.
        path: File to inspect.

    Returns:
        ProbeResult. Never raises for tool failures or bad files.
    """
    header_ok = check_header(path)

    info_result = toolkit.read_structural_info(path)
    stream_info = parse_streaminfo(info_result.stdout) if info_result.ok else StreamInfo()

    has_legacy_tag = toolkit.detect_legacy_tag_block(path)
    integrity_ok, diagnostic = run_integrity_test(toolkit, path)
    has_image = bool(toolkit.list_image_blocks(path))

    return ProbeResult(
        header_ok=header_ok,
        stream_info=stream_info,
        has_legacy_tag=has_legacy_tag,
        integrity_ok=integrity_ok,
        diagnostic=diagnostic,
        has_image=has_image,
    )


class ProbeStage(Stage):
    """
    First stage, always enabled.

    Copies the ProbeResult onto the context. Missing STREAMINFO fields are
    a ProbeUncertainty: recorded, never fatal.
    """

    name = "probe"
    failure_kind = FailureKind.PROBE_UNCERTAINTY

    def __init__(self, toolkit: CodecToolkit) -> None:
        self.toolkit = toolkit

    def run(self, ctx: FileContext) -> StageOutcome:
        result = probe_file(self.toolkit, ctx.source)

        ctx.header_ok = result.header_ok
        ctx.stream_info = result.stream_info
        ctx.has_legacy_tag = result.has_legacy_tag
        ctx.integrity_ok = result.integrity_ok
        ctx.diagnostic = result.diagnostic
        ctx.has_image = result.has_image

        logger.debug(
            f"Probe {ctx.relative_path}: header={result.header_ok} "
            f"integrity={result.integrity_ok} legacy_tag={result.has_legacy_tag} "
            f"image={result.has_image}"
        )

        if result.stream_info.is_empty:
            logger.debug(f"No STREAMINFO fields could be read for {ctx.relative_path}")
            return StageOutcome.noted(FailureKind.PROBE_UNCERTAINTY)
        return StageOutcome.ok()

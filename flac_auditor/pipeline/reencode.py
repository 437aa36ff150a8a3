"""
Decode/re-encode engine.

Four stages that only run for files that get an output copy
(FileContext.needs_copy):

    ExportAssetsStage  - tag set and first picture of the ORIGINAL, saved
                         before any audio is touched
    DecodeStage        - primary decoder, then the fallback decoder
    EncodeStage        - canonical encode (--best --verify) to the mirrored
                         path under the output root
    FinalVerifyStage   - integrity test of the produced copy

Everything decoded or exported lives in the file's scratch workspace,
which the orchestrator deletes on every exit path. The source file is
only ever read here.
"""

from pathlib import Path

from flac_auditor.core.file_manager import ensure_directory, remove_file
from flac_auditor.core.logger import get_logger
from flac_auditor.pipeline.context import FileContext, StageOutcome
from flac_auditor.pipeline.models import Action, FailureKind, PictureAsset, TagSet
from flac_auditor.pipeline.probe import run_integrity_test
from flac_auditor.pipeline.stage import Stage
from flac_auditor.tools.base import CodecToolkit, ToolResult

logger = get_logger(__name__)


# Scratch file names inside a workspace
RAW_FILENAME = "decoded.wav"
PICTURE_FILENAME = "picture.orig"


def _produced(result: ToolResult, path: Path) -> bool:
    """A tool step succeeded: exit status zero AND a non-empty output file."""
    if not result.ok:
        return False
    try:
        return path.exists() and path.stat().st_size > 0
    except OSError:
        return False


class ExportAssetsStage(Stage):
    """
    Export the original's tags and first picture for the copy stages.

    Args:
        toolkit: Codec collaborator.
        export_tags: Export the tag set (tag sanitizer enabled).
        export_picture: Export the lowest-indexed picture (artwork
                        normalizer enabled).

    Only the lowest-indexed picture block is exported, whatever else the
    file embeds. A file without pictures leaves ctx.picture as None and
    records nothing.
    """

    name = "export-assets"
    failure_kind = FailureKind.ARTWORK

    def __init__(self, toolkit: CodecToolkit, export_tags: bool, export_picture: bool) -> None:
        self.toolkit = toolkit
        self.export_tags = export_tags
        self.export_picture = export_picture

    def applies(self, ctx: FileContext) -> bool:
        return ctx.needs_copy and (self.export_tags or self.export_picture)

    def run(self, ctx: FileContext) -> StageOutcome:
        outcome = StageOutcome.ok()

        if self.export_tags:
            pairs = self.toolkit.export_tag_set(ctx.source)
            if pairs is None:
                ctx.add_action(Action.TAG_EXPORT_FAILED)
                outcome = StageOutcome.noted(FailureKind.TAG_SANITIZE, "tag export failed")
            else:
                ctx.tags = TagSet.from_pairs(pairs)
                ctx.add_action(Action.TAGS_EXPORTED)
                if len(ctx.tags) < len(pairs):
                    logger.debug(
                        f"{len(pairs) - len(ctx.tags)} duplicate tag entries collapsed "
                        f"in {ctx.relative_path}"
                    )

        if self.export_picture:
            indices = self.toolkit.list_image_blocks(ctx.source)
            if indices:
                index = min(indices)
                data = self.toolkit.export_image(ctx.source, index)
                if not data:
                    ctx.add_action(Action.ART_NORMALIZE_FAILED)
                    return StageOutcome.noted(
                        FailureKind.ARTWORK, f"picture block #{index} could not be exported"
                    )
                path = ctx.workspace / PICTURE_FILENAME
                try:
                    path.write_bytes(data)
                except OSError as e:
                    ctx.add_action(Action.ART_NORMALIZE_FAILED)
                    return StageOutcome.noted(
                        FailureKind.ARTWORK, f"cannot write exported picture: {e}"
                    )
                ctx.picture = PictureAsset(index=index, path=path)
                ctx.add_action(Action.ART_EXPORTED)
                if len(indices) > 1:
                    logger.debug(
                        f"{ctx.relative_path} embeds {len(indices)} pictures; "
                        f"keeping block #{index} only"
                    )

        return outcome


class DecodeStage(Stage):
    """
    Decode the source to raw audio, falling back to a second decoder.

    A source that currently fails the integrity test is decoded with
    continue-on-error so salvageable audio still comes out. If the primary
    decoder fails and a fallback decoder is available, it gets one
    error-ignoring, audio-only attempt. Both failing is terminal
    (RECOVERY_FAILED).
    """

    name = "decode"
    failure_kind = FailureKind.DECODE
    failure_action = Action.DECODE_FAILED

    def __init__(self, toolkit: CodecToolkit) -> None:
        self.toolkit = toolkit

    def applies(self, ctx: FileContext) -> bool:
        return ctx.needs_copy

    def run(self, ctx: FileContext) -> StageOutcome:
        raw = ctx.workspace / RAW_FILENAME
        through_errors = not ctx.integrity_ok

        primary = self.toolkit.decode(
            ctx.source,
            raw,
            force_overwrite=True,
            continue_on_error=through_errors,
        )
        if _produced(primary, raw):
            ctx.raw_path = raw
            ctx.add_action(Action.DECODED_THROUGH_ERRORS if through_errors else Action.DECODED)
            return StageOutcome.ok()

        logger.info(f"Primary decode failed for {ctx.relative_path}: {primary.failure_text}")
        reason = f"decode failed: {primary.failure_text}"

        if self.toolkit.has_fallback_decoder:
            remove_file(raw)
            fallback = self.toolkit.fallback_decode(
                ctx.source, raw, bit_depth=ctx.stream_info.bit_depth_int
            )
            if _produced(fallback, raw):
                ctx.raw_path = raw
                ctx.add_action(Action.FALLBACK_DECODED)
                logger.info(f"Fallback decoder recovered audio from {ctx.relative_path}")
                return StageOutcome.ok()
            reason += f"; fallback decode failed: {fallback.failure_text}"
        else:
            reason += "; no fallback decoder available"

        ctx.add_action(Action.DECODE_FAILED)
        return StageOutcome.stop(FailureKind.DECODE, reason)


class EncodeStage(Stage):
    """
    Encode the decoded audio to the mirrored output path.

    Uses maximum compression and the encoder's built-in verification.
    Failure ends the file's processing without changing its probe status.
    """

    name = "encode"
    failure_kind = FailureKind.ENCODE
    failure_action = Action.RE_ENCODE_FAILED

    def __init__(self, toolkit: CodecToolkit) -> None:
        self.toolkit = toolkit

    def applies(self, ctx: FileContext) -> bool:
        return ctx.raw_path is not None

    def _fail(self, ctx: FileContext, reason: str) -> StageOutcome:
        ctx.add_action(Action.RE_ENCODE_FAILED)
        logger.warning(f"Re-encode failed for {ctx.relative_path}: {reason}")
        return StageOutcome.stop(FailureKind.ENCODE, f"re-encode failed: {reason}")

    def run(self, ctx: FileContext) -> StageOutcome:
        target = ctx.output_target
        if target.resolve() == ctx.source.resolve():
            return self._fail(ctx, "output path is the source file")

        try:
            ensure_directory(target.parent)
        except OSError as e:
            return self._fail(ctx, f"cannot create {target.parent}: {e}")

        result = self.toolkit.encode(ctx.raw_path, target, max_compression=True, verify=True)

        # Decoded audio is large; drop it as soon as it's been used
        remove_file(ctx.raw_path)
        ctx.raw_path = None

        if not _produced(result, target):
            remove_file(target)
            return self._fail(ctx, result.failure_text if not result.ok else "no output written")

        ctx.output_path = target
        ctx.add_action(Action.RE_ENCODED)
        return StageOutcome.ok()


class FinalVerifyStage(Stage):
    """
    Integrity-test the produced copy.

    A copy that fails is never accepted: the file ends as VERIFY_FAILED
    and the orchestrator removes the copy.
    """

    name = "final-verify"
    failure_kind = FailureKind.VERIFY
    failure_action = Action.VERIFY_FAILED

    def __init__(self, toolkit: CodecToolkit) -> None:
        self.toolkit = toolkit

    def applies(self, ctx: FileContext) -> bool:
        return ctx.output_path is not None

    def run(self, ctx: FileContext) -> StageOutcome:
        passed, diagnostic = run_integrity_test(self.toolkit, ctx.output_path)
        if not passed:
            ctx.add_action(Action.VERIFY_FAILED)
            logger.error(f"Output copy failed verification: {ctx.output_path} ({diagnostic})")
            return StageOutcome.stop(
                FailureKind.VERIFY, f"output copy failed final verification: {diagnostic}"
            )

        ctx.verified = True
        ctx.has_image = bool(self.toolkit.list_image_blocks(ctx.output_path))
        ctx.add_action(Action.VERIFIED)
        return StageOutcome.ok()

"""
Container sanitizer: strips legacy (ID3) tag blocks from the source.

This stage mutates the SOURCE file in place and takes no backup. It only
runs when enabled and the probe found a legacy block.
"""

from flac_auditor.core.logger import get_logger
from flac_auditor.pipeline.context import FileContext, StageOutcome
from flac_auditor.pipeline.models import Action, FailureKind
from flac_auditor.pipeline.probe import check_header, run_integrity_test
from flac_auditor.pipeline.stage import Stage
from flac_auditor.tools.base import LEGACY_BLOCK_TYPE, CodecToolkit

logger = get_logger(__name__)


class ContainerSanitizeStage(Stage):
    """
    Remove legacy tag blocks in place and re-run the integrity test.

    On success the context's legacy flag is cleared and its header and
    integrity state refreshed. The copy decision and the reported reason
    then see the sanitized file. On failure the flag stays set and processing
    continues.
    """

    name = "container-sanitize"
    failure_kind = FailureKind.CONTAINER_SANITIZE
    failure_action = Action.LEGACY_TAG_REMOVE_FAILED

    def __init__(self, toolkit: CodecToolkit) -> None:
        self.toolkit = toolkit

    def applies(self, ctx: FileContext) -> bool:
        return ctx.has_legacy_tag

    def run(self, ctx: FileContext) -> StageOutcome:
        result = self.toolkit.remove_block_by_type(ctx.source, LEGACY_BLOCK_TYPE)
        if not result.ok:
            logger.warning(
                f"Could not remove legacy tag block from {ctx.relative_path}: "
                f"{result.failure_text}"
            )
            ctx.add_action(Action.LEGACY_TAG_REMOVE_FAILED)
            return StageOutcome.noted(
                FailureKind.CONTAINER_SANITIZE,
                f"legacy tag removal failed: {result.failure_text}",
            )

        ctx.has_legacy_tag = False
        ctx.add_action(Action.LEGACY_TAG_REMOVED)
        ctx.header_ok = check_header(ctx.source)

        was_ok = ctx.integrity_ok
        ctx.integrity_ok, ctx.diagnostic = run_integrity_test(self.toolkit, ctx.source)
        if ctx.integrity_ok != was_ok:
            logger.info(
                f"Integrity after legacy tag removal: "
                f"{'pass' if ctx.integrity_ok else 'FAIL'} ({ctx.relative_path})"
            )
        return StageOutcome.ok()

"""
Tag sanitizer: reduces the output copy's tags to a whitelist.

Every tag is removed from the copy, then the tags exported from the
original are written back if their upper-cased name is whitelisted.
Anything else is dropped on purpose: exotic or malformed fields are what
make some players choke.
"""

from pathlib import Path

from flac_auditor.core.logger import get_logger
from flac_auditor.pipeline.context import FileContext, StageOutcome
from flac_auditor.pipeline.models import Action, FailureKind, TagSet
from flac_auditor.pipeline.stage import Stage
from flac_auditor.tools.base import CodecToolkit

logger = get_logger(__name__)


def sanitize_tags(
    toolkit: CodecToolkit,
    path: Path,
    tags: TagSet,
    whitelist: tuple[str, ...],
) -> bool:
    """
    Replace path's tags with the whitelisted subset of tags.

    Individual tag writes are best effort: a failing write is logged and
    the remaining tags are still written.

    Returns:
        False only if the existing tags could not be removed.
    """
    cleared = toolkit.remove_all_tags(path)
    if not cleared.ok:
        logger.warning(f"Could not clear tags of {path}: {cleared.failure_text}")
        return False

    kept = tags.filtered(whitelist)
    for key, value in kept.items():
        result = toolkit.set_tag(path, key, value)
        if not result.ok:
            logger.debug(f"Could not write {key} to {path}: {result.failure_text}")

    dropped = len(tags) - len(kept)
    if dropped:
        logger.debug(f"Dropped {dropped} non-whitelisted tags from {path.name}")
    return True


class TagSanitizeStage(Stage):
    """
    Apply the whitelist to the output copy.

    Never stops the pipeline; failures only add a TagSanitizeFailed token.
    """

    name = "tag-sanitize"
    failure_kind = FailureKind.TAG_SANITIZE
    failure_action = Action.TAG_SANITIZE_FAILED

    def __init__(self, toolkit: CodecToolkit, whitelist: tuple[str, ...]) -> None:
        self.toolkit = toolkit
        self.whitelist = whitelist

    def applies(self, ctx: FileContext) -> bool:
        return ctx.output_path is not None

    def run(self, ctx: FileContext) -> StageOutcome:
        if ctx.tags is None:
            # Export failed earlier; the copy keeps the encoder's (empty) tags
            ctx.add_action(Action.TAG_SANITIZE_FAILED)
            return StageOutcome.noted(FailureKind.TAG_SANITIZE)

        if not sanitize_tags(self.toolkit, ctx.output_path, ctx.tags, self.whitelist):
            ctx.add_action(Action.TAG_SANITIZE_FAILED)
            return StageOutcome.noted(FailureKind.TAG_SANITIZE, "tag sanitize failed")

        ctx.add_action(Action.TAGS_SANITIZED)
        return StageOutcome.ok()

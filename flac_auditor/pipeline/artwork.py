"""
Artwork normalizer: one baseline JPEG as the copy's only picture.

The picture exported from the original (lowest block index only) is
transcoded to a baseline JPEG no larger than art_max_dimension on its
longer side, every picture block is removed from the output copy, and the
transcoded image is imported as the sole front cover.
"""

from flac_auditor.core.logger import get_logger
from flac_auditor.pipeline.context import FileContext, StageOutcome
from flac_auditor.pipeline.models import Action, FailureKind
from flac_auditor.pipeline.stage import Stage
from flac_auditor.tools.base import CodecToolkit, ImageTranscoder

logger = get_logger(__name__)


NORMALIZED_PICTURE_FILENAME = "picture.jpg"


class ArtworkStage(Stage):
    """
    Replace the copy's pictures with the normalized first picture.

    Skipped (no token at all) when the original had no picture or no
    transcoder is available. Never stops the pipeline.
    """

    name = "artwork"
    failure_kind = FailureKind.ARTWORK
    failure_action = Action.ART_NORMALIZE_FAILED

    def __init__(
        self,
        toolkit: CodecToolkit,
        transcoder: ImageTranscoder,
        max_dimension: int,
        quality: int,
    ) -> None:
        self.toolkit = toolkit
        self.transcoder = transcoder
        self.max_dimension = max_dimension
        self.quality = quality

    def applies(self, ctx: FileContext) -> bool:
        return (
            ctx.output_path is not None
            and ctx.picture is not None
            and self.transcoder.available
        )

    def _fail(self, ctx: FileContext, reason: str) -> StageOutcome:
        logger.warning(f"Artwork not normalized for {ctx.relative_path}: {reason}")
        ctx.add_action(Action.ART_NORMALIZE_FAILED)
        return StageOutcome.noted(FailureKind.ARTWORK, f"artwork: {reason}")

    def run(self, ctx: FileContext) -> StageOutcome:
        try:
            original = ctx.picture.path.read_bytes()
        except OSError as e:
            return self._fail(ctx, f"cannot read exported picture: {e}")

        normalized = self.transcoder.transcode(original, self.max_dimension, self.quality)
        if not normalized:
            return self._fail(ctx, "transcode failed")

        # Kept in the workspace so it's cleaned up with the other assets
        try:
            (ctx.workspace / NORMALIZED_PICTURE_FILENAME).write_bytes(normalized)
        except OSError as e:
            logger.debug(f"Could not keep normalized picture in workspace: {e}")

        removed = self.toolkit.remove_image_blocks(ctx.output_path)
        if not removed.ok:
            return self._fail(ctx, f"remove pictures failed: {removed.failure_text}")

        imported = self.toolkit.import_image(ctx.output_path, normalized)
        if not imported.ok:
            return self._fail(ctx, f"import failed: {imported.failure_text}")

        ctx.add_action(Action.ART_NORMALIZED)
        return StageOutcome.ok()

"""
Per-file orchestrator.

FilePipeline owns the ordered list of stages enabled for a run and turns
one source file into exactly one AuditRecord:

    Probe -> Container sanitize -> Export assets -> Decode -> Encode
          -> Tag sanitize -> Artwork normalize -> Final verify

Stages that are disabled by configuration are not in the list at all.
Stages in the list are skipped for a file when their precondition
(Stage.applies) is False; for example tag and artwork stages never run
without a produced output copy.

Guarantees, on every exit path:
    - the file's scratch workspace is deleted
    - an output copy that did not end verified is deleted
    - exactly one AuditRecord is returned (unexpected exceptions are
      logged and folded into the record instead of propagating)

Usage:
    pipeline = FilePipeline(config.pipeline, toolkit, transcoder, input_root, output_root)
    record = pipeline.process(source)
"""

from pathlib import Path

from flac_auditor.core.config import PipelineConfig
from flac_auditor.core.exceptions import StageError
from flac_auditor.core.file_manager import mirrored_path, relative_path, remove_file
from flac_auditor.core.logger import get_logger
from flac_auditor.pipeline.artwork import ArtworkStage
from flac_auditor.pipeline.classifier import build_record
from flac_auditor.pipeline.context import FileContext, StageOutcome
from flac_auditor.pipeline.models import Action, AuditRecord, FailureKind
from flac_auditor.pipeline.probe import ProbeStage
from flac_auditor.pipeline.reencode import DecodeStage, EncodeStage, ExportAssetsStage, FinalVerifyStage
from flac_auditor.pipeline.sanitize import ContainerSanitizeStage
from flac_auditor.pipeline.stage import Stage
from flac_auditor.pipeline.tags import TagSanitizeStage
from flac_auditor.tools.base import CodecToolkit, ImageTranscoder

logger = get_logger(__name__)


def build_stages(
    config: PipelineConfig,
    toolkit: CodecToolkit,
    transcoder: ImageTranscoder,
) -> list[Stage]:
    """
    Ordered list of the stages enabled by config.

    The tag whitelist and artwork parameters are taken from config and
    handed to their stages here; stages have no defaults of their own.
    """
    stages: list[Stage] = [ProbeStage(toolkit)]

    if config.sanitize_container and not config.dry_run:
        stages.append(ContainerSanitizeStage(toolkit))

    if config.produces_copies:
        if config.sanitize_tags or config.normalize_art:
            stages.append(ExportAssetsStage(
                toolkit,
                export_tags=config.sanitize_tags,
                export_picture=config.normalize_art,
            ))
        stages.append(DecodeStage(toolkit))
        stages.append(EncodeStage(toolkit))
        if config.sanitize_tags:
            stages.append(TagSanitizeStage(toolkit, config.tag_whitelist))
        if config.normalize_art:
            stages.append(ArtworkStage(
                toolkit,
                transcoder,
                max_dimension=config.art_max_dimension,
                quality=config.art_quality,
            ))
        stages.append(FinalVerifyStage(toolkit))

    return stages


class FilePipeline:
    """
    Runs the enabled stages over one file at a time.

    Instances hold no per-file state, so one FilePipeline can be shared by
    several worker threads.

    Attributes:
        config: Pipeline settings.
        stages: Ordered stage list built from config.
        input_root: Scan root (for relative paths).
        output_root: Root of mirrored output copies.
        scratch_parent: Parent directory of scratch workspaces.
    """

    def __init__(
        self,
        config: PipelineConfig,
        toolkit: CodecToolkit,
        transcoder: ImageTranscoder,
        input_root: Path,
        output_root: Path,
        scratch_parent: Path | None = None,
        stages: list[Stage] | None = None,
    ) -> None:
        self.config = config
        self.input_root = input_root
        self.output_root = output_root
        self.scratch_parent = scratch_parent
        self.stages = stages if stages is not None else build_stages(config, toolkit, transcoder)
        logger.debug(f"Pipeline stages: {', '.join(stage.name for stage in self.stages)}")

    def new_context(self, source: Path) -> FileContext:
        return FileContext(
            source=source,
            relative_path=relative_path(source, self.input_root),
            output_target=mirrored_path(source, self.input_root, self.output_root),
            config=self.config,
            scratch_parent=self.scratch_parent,
        )

    def process(self, source: Path) -> AuditRecord:
        """
        Audit (and possibly repair) one file.

        Args:
            source: Absolute path of a file below input_root.

        Returns:
            The file's AuditRecord. Never raises for per-file problems.
        """
        ctx = self.new_context(source)
        try:
            self._run_stages(ctx)
        except Exception as e:
            logger.exception(f"Unexpected error while processing {ctx.relative_path}")
            ctx.add_action(Action.UNEXPECTED_ERROR)
            ctx.record(StageOutcome.stop(FailureKind.UNEXPECTED, f"Unexpected error: {e}"))
            ctx.verified = False
        finally:
            ctx.discard_workspace()

        record = build_record(ctx)
        if ctx.output_path is not None and record.output_path is None:
            logger.debug(f"Removing unaccepted output copy {ctx.output_path}")
            remove_file(ctx.output_path)
        return record

    def _run_stages(self, ctx: FileContext) -> None:
        for stage in self.stages:
            if not stage.applies(ctx):
                continue

            try:
                outcome = stage.run(ctx)
            except StageError as e:
                logger.warning(f"Stage {stage.name} failed for {ctx.relative_path}: {e.message}")
                kind = e.kind or stage.failure_kind
                if kind is stage.failure_kind and stage.failure_action is not None:
                    ctx.add_action(stage.failure_action)
                elif kind is FailureKind.UNEXPECTED:
                    ctx.add_action(Action.UNEXPECTED_ERROR)
                outcome = StageOutcome.stop(kind, e.message)

            ctx.record(outcome)
            if not outcome.proceed:
                logger.debug(f"Processing of {ctx.relative_path} ended at stage {stage.name}")
                break

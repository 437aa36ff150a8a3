"""
Base class of pipeline stages.

A stage is one step of a file's audit: probe, container sanitize, asset
export, decode, encode, tag sanitize, artwork normalize, final verify.
The orchestrator holds an ordered list of the stages enabled for the run
and, for each file, calls run() on every stage whose applies() is True
until one returns an outcome with proceed=False.
"""

from abc import ABC, abstractmethod

from flac_auditor.pipeline.context import FileContext, StageOutcome
from flac_auditor.pipeline.models import Action, FailureKind


class Stage(ABC):
    """
    One step of the per-file pipeline.

    Class attributes:
        name: Short name used in log messages.
        failure_kind: Failure category used when the stage raises
                      StageError without a kind of its own.
        failure_action: Action token recorded when the stage raises
                        StageError (None for none).
    """

    name: str = "stage"
    failure_kind: FailureKind = FailureKind.UNEXPECTED
    failure_action: Action | None = None

    def applies(self, ctx: FileContext) -> bool:
        """Precondition checked before run(). Skipped stages leave no trace."""
        return True

    @abstractmethod
    def run(self, ctx: FileContext) -> StageOutcome:
        """
        Process the file described by ctx.

        Must not raise for tool failures; may raise StageError for
        unexpected local problems (filesystem errors and the like).
        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"

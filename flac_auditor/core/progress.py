"""
Progress bar for flac-auditor using the Rich library.

Shown for non-verbose runs. Verbose runs print one line per file instead
(see flac_auditor.core.logger.format_status_message).

Usage:
    from flac_auditor.core.progress import AuditProgressBar

    with AuditProgressBar(total=len(files)) as progress:
        for record in records:
            progress.update(record.status)
"""

from rich import get_console
from rich.console import OverflowMethod
from rich.progress import (
    BarColumn,
    Progress,
    ProgressColumn,
    Task,
    TaskID,
)
from rich.style import StyleType
from rich.text import Text
from rich.theme import Theme

from flac_auditor.pipeline.models import AuditStatus


PROGRESS_THEME = Theme({
    "bar.back": "grey23",
    "bar.complete": "rgb(165,66,129)",
    "bar.finished": "rgb(114,156,31)",
    "bar.pulse": "rgb(165,66,129)",
    "progress.percentage": "white",
})

# Symbol and Rich style per status, in display order
_STATUS_STYLES: tuple[tuple[AuditStatus, str, str], ...] = (
    (AuditStatus.OK, "✓", "green"),
    (AuditStatus.NORMALIZED, "≡", "green"),
    (AuditStatus.RECOVERED, "↺", "cyan"),
    (AuditStatus.FAIL, "✗", "yellow"),
    (AuditStatus.VERIFY_FAILED, "⚠", "red"),
    (AuditStatus.RECOVERY_FAILED, "☠", "red"),
)


class SizedTextColumn(ProgressColumn):
    """Markup text column padded or cut to a fixed width."""

    def __init__(
        self,
        text_format: str,
        width: int,
        style: StyleType = "none",
        overflow: OverflowMethod = "ellipsis",
    ) -> None:
        self.text_format = text_format
        self.width = width
        self.style = style
        self.overflow = overflow
        super().__init__()

    def render(self, task: Task) -> Text:
        text = Text.from_markup(self.text_format.format(task=task), style=self.style)
        text.truncate(max_width=self.width, overflow=self.overflow, pad=True)
        return text


class AuditProgressBar:
    """
    Progress bar with one counter per terminal status.

    Displays:
    - Description ("Auditing")
    - Status counters: only statuses seen so far, OK always
    - Progress bar and percentage

    Example:
        Auditing        ✓ 310  ↺ 4  ✗ 2  ☠ 1   ━━━━━━━━━━━━━━━━━  93%
    """

    def __init__(self, total: int, description: str = "Auditing", status_width: int = 40):
        """
        Initialize the progress bar.

        Args:
            total: Number of files to audit.
            description: Description shown on the left.
            status_width: Width of the counters column.
        """
        self.total = total
        self.description = description
        self.completed = 0
        self.counts: dict[AuditStatus, int] = {status: 0 for status in AuditStatus}

        self.console = get_console()
        self.console.push_theme(PROGRESS_THEME)

        self.progress = Progress(
            SizedTextColumn(
                "[white]{task.description}",
                overflow="ellipsis",
                width=15,
            ),
            SizedTextColumn(
                "{task.fields[status]}",
                width=status_width,
                style="white",
            ),
            BarColumn(bar_width=40, finished_style="green"),
            "[progress.percentage]{task.percentage:>3.0f}%",
            console=self.console,
            transient=False,
            refresh_per_second=10,
        )

        self.task_id: TaskID | None = None
        self._started = False

    def __enter__(self) -> "AuditProgressBar":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()

    def start(self) -> None:
        """Start the progress bar (can be called manually)."""
        if not self._started:
            self.progress.start()
            self.task_id = self.progress.add_task(
                description=self.description,
                total=self.total,
                status=self._get_status_text(),
            )
            self._started = True

    def stop(self) -> None:
        """Stop the progress bar."""
        if self._started:
            self.progress.stop()
            self._started = False

    def _get_status_text(self) -> str:
        parts = []
        for status, symbol, style in _STATUS_STYLES:
            count = self.counts[status]
            if count or status is AuditStatus.OK:
                parts.append(f"[{style}]{symbol} {count}[/{style}]")
        return "  ".join(parts)

    def update(self, status: AuditStatus) -> None:
        """
        Count one finished file.

        Args:
            status: The file's terminal status.
        """
        self.completed += 1
        self.counts[status] += 1
        if self.task_id is not None:
            self.progress.update(
                self.task_id,
                completed=self.completed,
                status=self._get_status_text(),
            )

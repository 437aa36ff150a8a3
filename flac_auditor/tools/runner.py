"""
Subprocess runner for external tools.

Every external command goes through ToolRunner.run(), which:
    - bounds the number of concurrently running tools (semaphore)
    - applies a per-invocation timeout; expiry is a failed ToolResult
    - maps a missing executable to exit status 127
    - decodes output as UTF-8 with replacement, so odd bytes in tag text
      or tool diagnostics never raise

Usage:
    runner = ToolRunner(timeout=600, max_concurrent=4)
    result = runner.run(["flac", "-t", "-s", str(path)])
    if not result.ok:
        logger.debug(result.failure_text)
"""

import shutil
import subprocess
import threading
from collections.abc import Sequence

from flac_auditor.core.logger import get_logger
from flac_auditor.tools.base import ToolResult

logger = get_logger(__name__)

# Exit status used when the executable itself can't be started
EXIT_NOT_FOUND = 127


def which(executable: str | None) -> str | None:
    """Resolve an executable name on PATH (None if missing or not configured)."""
    if not executable:
        return None
    return shutil.which(executable)


class ToolRunner:
    """
    Runs external commands with a timeout and a concurrency bound.

    Attributes:
        timeout: Seconds before an invocation is killed.
        max_concurrent: Upper bound on simultaneously running tools.
    """

    def __init__(self, timeout: int, max_concurrent: int = 1) -> None:
        self.timeout = timeout
        self.max_concurrent = max(1, max_concurrent)
        self._slots = threading.BoundedSemaphore(self.max_concurrent)

    def run(self, argv: Sequence[str]) -> ToolResult:
        """
        Run argv and capture its output.

        Args:
            argv: Command and arguments. No shell is involved.

        Returns:
            ToolResult. Never raises for tool failures.
        """
        argv = [str(arg) for arg in argv]
        with self._slots:
            try:
                completed = subprocess.run(
                    argv,
                    capture_output=True,
                    text=True,
                    encoding="utf-8",
                    errors="replace",
                    timeout=self.timeout,
                    stdin=subprocess.DEVNULL,
                    # Own session: Ctrl-C stops the run between files, not mid-tool
                    start_new_session=True,
                )
            except subprocess.TimeoutExpired:
                logger.warning(f"Tool timed out after {self.timeout}s: {argv[0]}")
                logger.debug(f"Timed out command: {argv}")
                return ToolResult(returncode=-1, stderr="timed out", timed_out=True)
            except FileNotFoundError:
                logger.debug(f"Executable not found: {argv[0]}")
                return ToolResult(
                    returncode=EXIT_NOT_FOUND,
                    stderr=f"executable not found: {argv[0]}",
                )
            except OSError as e:
                logger.debug(f"Failed to start {argv[0]}: {e}")
                return ToolResult(returncode=EXIT_NOT_FOUND, stderr=str(e))

        logger.debug(f"{' '.join(argv)} -> {completed.returncode}")
        return ToolResult(
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )

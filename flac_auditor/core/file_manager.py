"""
File discovery and output path mirroring for flac-auditor.

Layout:
    input_root/                         output_root/
    ├── Artist/                         ├── flac_audit.csv
    │   └── Album/                      ├── logs/
    │       ├── 01 - Track.flac   --->  └── Artist/
    │       └── 02 - Track.flac               └── Album/
    └── Other/                                    └── 01 - Track.flac
        └── Track.FLAC

Only files that get a verified re-encoded copy appear under output_root.
The relative path of every source below input_root is reproduced
unchanged under output_root.

Usage:
    from flac_auditor.core.file_manager import discover_flac_files, mirrored_path

    for source in discover_flac_files(input_root, exclude=output_root):
        target = mirrored_path(source, input_root, output_root)
"""

import os
import shutil
import tempfile
from pathlib import Path

from flac_auditor.core.logger import get_logger

logger = get_logger(__name__)


FLAC_SUFFIX = ".flac"

# Prefix of per-file scratch workspace directories
SCRATCH_PREFIX = "flac_audit_"


def discover_flac_files(input_root: Path, exclude: Path | None = None) -> list[Path]:
    """
    Find every FLAC file below input_root.

    Args:
        input_root: Directory to scan recursively.
        exclude: Directory to skip entirely (typically the output root when
                 it is nested inside the input root).

    Returns:
        Sorted list of absolute file paths. Sorting gives a deterministic
        processing and log order across runs.

    Behavior:
        - Suffix match is case-insensitive (.flac, .FLAC, .Flac)
        - Hidden directories and files (leading dot) are skipped
        - Symlinked directories are not followed
    """
    root = input_root.resolve()
    excluded = exclude.resolve() if exclude is not None else None
    found: list[Path] = []

    for dirpath, dirnames, filenames in os.walk(root):
        current = Path(dirpath)
        # Prune in place so os.walk doesn't descend
        dirnames[:] = [
            d for d in dirnames
            if not d.startswith(".") and (excluded is None or current / d != excluded)
        ]
        for name in filenames:
            if name.startswith("."):
                continue
            if name.lower().endswith(FLAC_SUFFIX):
                found.append(current / name)

    found.sort()
    logger.debug(f"Discovered {len(found)} FLAC files below {root}")
    return found


def relative_path(source: Path, input_root: Path) -> str:
    """
    Path of source relative to input_root, with forward slashes.

    Falls back to the file name if source is not below input_root.
    """
    try:
        return source.resolve().relative_to(input_root.resolve()).as_posix()
    except ValueError:
        return source.name


def mirrored_path(source: Path, input_root: Path, output_root: Path) -> Path:
    """
    Output location of source: same relative path, under output_root.

    Example:
        mirrored_path(Path("/music/A/B/t.flac"), Path("/music"), Path("/out"))
        # Path("/out/A/B/t.flac")
    """
    return output_root.resolve() / relative_path(source, input_root)


def ensure_directory(path: Path) -> Path:
    """
    Create a directory (and parents) if it doesn't exist.

    Safe to call concurrently for the same path from several workers.

    Raises:
        OSError: If the directory can't be created.
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def create_scratch_workspace(parent: Path | None = None) -> Path:
    """
    Create an empty, uniquely named scratch directory.

    Args:
        parent: Directory to create it in, or None for the system
                temporary directory.

    Raises:
        OSError: If the directory can't be created.
    """
    if parent is not None:
        ensure_directory(parent)
    return Path(tempfile.mkdtemp(prefix=SCRATCH_PREFIX, dir=parent))


def remove_scratch_workspace(path: Path | None) -> None:
    """
    Delete a scratch directory and everything in it.

    Errors are logged and not raised: cleanup runs on every exit path,
    including while another error is being handled.
    """
    if path is None:
        return
    try:
        if path.exists():
            shutil.rmtree(path)
    except OSError as e:
        logger.warning(f"Failed to remove scratch workspace {path}: {e}")


def remove_file(path: Path | None) -> None:
    """Delete a file if it exists, logging failures."""
    if path is None:
        return
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Failed to remove {path}: {e}")

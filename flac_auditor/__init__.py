"""
flac-auditor: Find and repair FLAC files that hardware players reject.

Many players refuse FLAC files that still pass `flac -t`: files with ID3
tags glued to the container, odd metadata blocks, oversized or multiple
embedded pictures, or exotic tag fields. flac-auditor walks a library,
records the state of every file in an append-only CSV audit log, and can
write a canonical, device-safe copy of each file to a mirrored output tree.

Architecture:
    Every file goes through the same ordered stages. Optional stages are
    enabled by configuration; each one only runs if its precondition holds.

    1. Probe (always): header marker, STREAMINFO, legacy tags, integrity
    2. Container sanitize: remove ID3 blocks from the source, in place
    3. Re-encode: export tags/picture, decode (with fallback decoder),
       encode with --best --verify to the output tree
    4. Tag sanitize: keep only whitelisted tags on the copy
    5. Artwork normalize: one baseline JPEG (max 1200px) on the copy
    6. Final verify: integrity test of the copy
    7. Classify and report: one audit log row per file

Modules:
    core/       - Configuration, exceptions, logging, audit log, file helpers
    tools/      - flac/metaflac/ffmpeg/mutagen/Pillow collaborator adapters
    pipeline/   - Stages, classifier, per-file orchestrator, run driver
    cli.py      - Command-line interface

Usage:
    Command Line:
        flac-audit ~/Music ~/Music-fixed
        flac-audit ~/Music ~/Music-fixed --sanitize-container --recover
        flac-audit ~/Music ~/Music-fixed --force-reencode --sanitize-tags --normalize-art

    Python API:
        from flac_auditor.core import load_config, setup_logging
        from flac_auditor.tools import FlacToolkit, PillowTranscoder, ToolRunner
        from flac_auditor.pipeline.runner import run_audit, log_summary

        config = load_config()
        runner = ToolRunner(config.tools.timeout, config.run.workers)
        summary = run_audit(
            config,
            FlacToolkit(runner, config.tools),
            PillowTranscoder(),
            input_root,
            output_root,
        )
        log_summary(summary)

Statuses:
    OK, FAIL, RECOVERED, NORMALIZED, VERIFY_FAILED, RECOVERY_FAILED
    (see flac_auditor.pipeline.models.STATUS_DESCRIPTIONS)

Dependencies:
    - mutagen: Vorbis comment, PICTURE and ID3 block editing
    - Pillow: Artwork transcoding
    - click / rich-click: CLI framework and colors
    - rich: Progress bar
    - tqdm: Progress-safe console logging
    - pyyaml: Configuration file parsing
    - flac, metaflac, ffmpeg: external executables
"""

__version__ = "0.3.0"
__author__ = "flac-auditor"
__license__ = "MIT"

# Convenience imports for common usage
from flac_auditor.core import (
    AuditLogError,
    Config,
    ConfigError,
    FlacAuditorError,
    ToolNotFoundError,
    get_logger,
    load_config,
    setup_logging,
)

__all__ = [
    # Version
    "__version__",
    # Core
    "Config",
    "load_config",
    "setup_logging",
    "get_logger",
    # Exceptions
    "FlacAuditorError",
    "ConfigError",
    "ToolNotFoundError",
    "AuditLogError",
]

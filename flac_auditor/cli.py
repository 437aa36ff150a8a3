"""
Command-line interface for flac-auditor.

This module implements the CLI using Click; rich-click is used for the
output colors.

Usage:
    # Audit only: probe every file, write flac_audit.csv
    flac-audit ~/Music ~/Music-fixed

    # Strip ID3 blocks from sources and recover files failing `flac -t`
    flac-audit ~/Music ~/Music-fixed --sanitize-container --recover

    # Canonical device-safe copy of every file
    flac-audit ~/Music ~/Music-fixed --force-reencode --sanitize-tags --normalize-art

    # Custom tag whitelist, 4 workers, resume an interrupted audit
    flac-audit ~/Music ~/Out --force-reencode --sanitize-tags \\
        --whitelist "TITLE,ARTIST,ALBUM,TRACKNUMBER" --workers 4 --skip-logged

Configuration:
    Optional flac_auditor.yaml in the current directory (or --config PATH).
    Command-line flags override file values. Every switch has a --no-
    form, so a setting enabled in the file can be turned off for one run:

        flac-audit ~/Music ~/Out --config strict.yaml --no-force-reencode

Exit Codes:
    0   - every discovered file was processed (whatever its status)
    1   - configuration error or unexpected error
    2   - required external tool missing (or invalid usage)
    3   - audit log cannot be read or written
    4   - other flac-auditor error
    130 - interrupted by user
"""

import sys
import threading
from pathlib import Path
from typing import Optional

import rich_click as click

click.rich_click.USE_RICH_MARKUP = True
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.GROUP_ARGUMENTS_OPTIONS = True
click.rich_click.STYLE_ERRORS_SUGGESTION = "magenta italic"
click.rich_click.ERRORS_SUGGESTION = ""
click.rich_click.MAX_WIDTH = 100
click.rich_click.OPTION_GROUPS = {
    "cli": [
        {
            "name": "Repair Stages",
            "options": [
                "--sanitize-container",
                "--recover",
                "--force-reencode",
                "--sanitize-tags",
                "--normalize-art",
                "--whitelist",
            ],
        },
        {
            "name": "Run Options",
            "options": [
                "--workers",
                "--timeout",
                "--skip-logged",
                "--dry-run",
                "--audit-log",
                "--log-dir",
                "--config",
            ],
        },
        {
            "name": "Info",
            "options": ["--verbose", "--version", "--help"],
        },
    ],
}

from flac_auditor import __version__
from flac_auditor.core import (
    AuditLogError,
    Config,
    ConfigError,
    FlacAuditorError,
    ToolNotFoundError,
    get_logger,
    load_config,
    setup_logging,
    shutdown_logging,
)
from flac_auditor.pipeline.runner import log_summary, run_audit
from flac_auditor.tools import FlacToolkit, PillowTranscoder, ToolRunner, which

logger = get_logger(__name__)


@click.command()
@click.argument(
    "input_root",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
)
@click.argument(
    "output_root",
    type=click.Path(file_okay=False, path_type=Path),
)
@click.option(
    "--sanitize-container/--no-sanitize-container",
    default=None,
    help="Remove ID3 blocks from source files IN PLACE"
)
@click.option(
    "--recover/--no-recover",
    default=None,
    help="Re-encode files that fail the integrity test"
)
@click.option(
    "--force-reencode/--no-force-reencode",
    default=None,
    help="Re-encode every file"
)
@click.option(
    "--sanitize-tags/--no-sanitize-tags",
    default=None,
    help="Keep only whitelisted tags on re-encoded copies"
)
@click.option(
    "--normalize-art/--no-normalize-art",
    default=None,
    help="Replace artwork of copies with one baseline JPEG"
)
@click.option(
    "--whitelist",
    type=str,
    default=None,
    metavar="<TAG,TAG,...>",
    help="Comma-separated tag whitelist for --sanitize-tags"
)
@click.option(
    "--workers",
    type=click.IntRange(min=1),
    default=None,
    help="Files processed in parallel (default 1)"
)
@click.option(
    "--timeout",
    type=click.IntRange(min=1),
    default=None,
    help="Seconds before an external tool is killed (default 600)"
)
@click.option(
    "--skip-logged/--no-skip-logged",
    default=None,
    help="Skip files already in the audit log"
)
@click.option(
    "--dry-run/--no-dry-run",
    default=None,
    help="Probe and report only; never modify or write files"
)
@click.option(
    "--audit-log",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Audit log path (default <output_root>/flac_audit.csv)"
)
@click.option(
    "--log-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Run log directory (default <output_root>/logs)"
)
@click.option(
    "--config", "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Configuration file (default ./flac_auditor.yaml)"
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="One line per file and debug output"
)
@click.version_option(__version__, prog_name="flac-audit")
def cli(
    input_root: Path,
    output_root: Path,
    sanitize_container: Optional[bool],
    recover: Optional[bool],
    force_reencode: Optional[bool],
    sanitize_tags: Optional[bool],
    normalize_art: Optional[bool],
    whitelist: Optional[str],
    workers: Optional[int],
    timeout: Optional[int],
    skip_logged: Optional[bool],
    dry_run: Optional[bool],
    audit_log: Optional[Path],
    log_dir: Optional[Path],
    config_path: Optional[Path],
    verbose: bool,
) -> None:
    """
    flac-audit: Audit a FLAC library and repair files players reject.

    Every FLAC file below INPUT_ROOT is probed and gets one row in the
    audit log. Repair options write verified copies to the same relative
    path below OUTPUT_ROOT; source files are only modified by
    --sanitize-container.

    \b
    STATUS CODES:
        OK               passed the integrity test, no copy requested
        FAIL             failed the integrity test, no copy produced
        RECOVERED        was failing; copy produced and verified
        NORMALIZED       was passing; copy produced and verified
        VERIFY_FAILED    copy produced but failed final verification
        RECOVERY_FAILED  primary and fallback decoding both failed
    """
    input_root = input_root.expanduser().resolve()
    output_root = output_root.expanduser().resolve()
    if input_root == output_root:
        raise click.UsageError("OUTPUT_ROOT must differ from INPUT_ROOT")

    options = {
        "pipeline": {
            "sanitize_container": sanitize_container,
            "recover_failed": recover,
            "force_reencode": force_reencode,
            "sanitize_tags": sanitize_tags,
            "normalize_art": normalize_art,
            "dry_run": dry_run,
            "tag_whitelist": whitelist,
        },
        "tools": {
            "timeout": timeout,
        },
        "run": {
            "workers": workers,
            "skip_logged": skip_logged,
            "verbose": verbose or None,
            "audit_log": audit_log.expanduser().resolve() if audit_log else None,
            "log_directory": log_dir.expanduser().resolve() if log_dir else None,
        },
    }

    _run_audit(input_root, output_root, config_path, options)


def _run_audit(
    input_root: Path,
    output_root: Path,
    config_path: Optional[Path],
    options: dict,
) -> None:
    """
    Execute the audit based on CLI options.

    1. Loads configuration and applies CLI overrides
    2. Sets up logging
    3. Checks the external tools
    4. Runs the audit and prints the summary

    Raises:
        SystemExit: On fatal errors (with appropriate exit code).
    """
    cancel_event = threading.Event()
    logging_ready = False

    try:
        config = _load_configuration(config_path, options)

        log_dir = config.run.log_directory or (output_root / "logs")
        setup_logging(log_dir, verbose=config.run.verbose)
        logging_ready = True
        logger.info(f"flac-auditor {__version__} starting")
        logger.debug(f"Effective configuration: {config}")

        if config.pipeline.sanitize_container and not config.pipeline.dry_run:
            logger.warning("Container sanitize is enabled: source files will be modified in place")

        toolkit = _initialize_toolkit(config)
        summary = run_audit(
            config,
            toolkit,
            PillowTranscoder(),
            input_root,
            output_root,
            cancel_event=cancel_event,
        )
        log_summary(summary)

        logger.info("flac-auditor completed successfully")

    except ConfigError as e:
        click.echo(f"Configuration error: {e.message}", err=True)
        sys.exit(1)

    except ToolNotFoundError as e:
        click.echo(f"Tool error: {e.message}", err=True)
        click.echo("Install the FLAC command-line tools (flac, metaflac)", err=True)
        if logging_ready:
            logger.error(f"Tool error: {e.message}")
        sys.exit(2)

    except AuditLogError as e:
        click.echo(f"Audit log error: {e.message}", err=True)
        if logging_ready:
            logger.error(f"Audit log error: {e.message}", exc_info=True)
        sys.exit(3)

    except FlacAuditorError as e:
        click.echo(f"Error: {e.message}", err=True)
        if logging_ready:
            logger.error(f"Error: {e.message}", exc_info=True)
        sys.exit(4)

    except KeyboardInterrupt:
        cancel_event.set()
        click.echo("\nInterrupted by user", err=True)
        if logging_ready:
            logger.info("Interrupted by user")
        sys.exit(130)

    except Exception as e:
        click.echo(f"Unexpected error: {e}", err=True)
        if logging_ready:
            logger.exception("Unexpected error")
        sys.exit(1)

    finally:
        shutdown_logging()


def _load_configuration(config_path: Optional[Path], options: dict) -> Config:
    """
    Load configuration and apply command-line overrides.

    Raises:
        ConfigError: If the file or an override is invalid.
    """
    config = load_config(config_path)
    return config.with_overrides(
        tools=options["tools"],
        pipeline=options["pipeline"],
        run=options["run"],
    )


def _initialize_toolkit(config: Config) -> FlacToolkit:
    """
    Check the required executables and build the codec toolkit.

    Raises:
        ToolNotFoundError: If flac or metaflac is not on PATH.
    """
    for name in (config.tools.flac, config.tools.metaflac):
        if which(name) is None:
            raise ToolNotFoundError(
                f"Required tool not found on PATH: {name}",
                details={"tool": name}
            )

    runner = ToolRunner(timeout=config.tools.timeout, max_concurrent=config.run.workers)
    return FlacToolkit(runner, config.tools)


def main() -> None:
    """
    Entry point for the CLI.

    This function is called when running `flac-audit` from the command line.
    """
    cli()


if __name__ == "__main__":
    main()

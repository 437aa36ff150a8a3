"""
Configuration management for flac-auditor.

This module handles loading, validating, and providing access to the
application configuration. Settings come from three layers, later layers
winning:

    1. Built-in defaults (this module)
    2. Optional YAML file (flac_auditor.yaml in the current directory,
       or an explicit --config path)
    3. Command-line flags (applied by the CLI via with_overrides())

Example flac_auditor.yaml:
    tools:
      flac: "flac"
      metaflac: "metaflac"
      ffmpeg: "ffmpeg"        # null disables the fallback decoder
      timeout: 600            # seconds per external tool invocation

    pipeline:
      sanitize_container: true
      recover_failed: true
      force_reencode: false
      sanitize_tags: true
      normalize_art: true
      tag_whitelist: [TITLE, ARTIST, ALBUM, ALBUMARTIST, TRACKNUMBER]
      art_max_dimension: 1200
      art_quality: 85

    run:
      workers: 2
      audit_log: "~/Music/audit/flac_audit.csv"
      log_directory: "~/Music/audit/logs"
      scratch_directory: "/tmp"   # parent of per-file scratch workspaces
"""

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

from flac_auditor.core.exceptions import ConfigError


# Default configuration file name (looked up in current working directory)
CONFIG_FILENAME = "flac_auditor.yaml"

# Audit log file name, created in the output root unless configured
AUDIT_LOG_FILENAME = "flac_audit.csv"

# Vorbis comment fields kept by the tag sanitizer unless overridden
DEFAULT_TAG_WHITELIST: tuple[str, ...] = (
    "TITLE",
    "ARTIST",
    "ALBUM",
    "ALBUMARTIST",
    "TRACKNUMBER",
    "TRACKTOTAL",
    "TOTALTRACKS",
    "DISCNUMBER",
    "DISCTOTAL",
    "TOTALDISCS",
    "DATE",
    "YEAR",
    "GENRE",
    "COMMENT",
)

DEFAULT_TOOL_TIMEOUT = 600
DEFAULT_ART_MAX_DIMENSION = 1200
DEFAULT_ART_QUALITY = 85


@dataclass(frozen=True)
class ToolsConfig:
    """
    External tool configuration.

    Attributes:
        flac: Executable used for integrity test, decode and encode.
        metaflac: Executable used for block listing and block removal.
        ffmpeg: Fallback decoder executable, or None to disable fallback.
        timeout: Per-invocation timeout in seconds. Expiry counts as a
                 tool failure.
    """
    flac: str = "flac"
    metaflac: str = "metaflac"
    ffmpeg: str | None = "ffmpeg"
    timeout: int = DEFAULT_TOOL_TIMEOUT


@dataclass(frozen=True)
class PipelineConfig:
    """
    Per-file pipeline toggles and stage parameters.

    Attributes:
        sanitize_container: Remove legacy (ID3) blocks from the source in place.
        recover_failed: Produce a re-encoded copy of files failing the
                        integrity test.
        force_reencode: Produce a re-encoded copy of every file.
        sanitize_tags: Reduce the copy's tags to tag_whitelist.
        normalize_art: Replace the copy's artwork with one baseline JPEG.
        tag_whitelist: Upper-cased tag names kept by the tag sanitizer.
        art_max_dimension: Longest side of normalized artwork, in pixels.
        art_quality: JPEG quality for normalized artwork (1-95).
        dry_run: Only probe and report; never mutate or write copies.
    """
    sanitize_container: bool = False
    recover_failed: bool = False
    force_reencode: bool = False
    sanitize_tags: bool = False
    normalize_art: bool = False
    tag_whitelist: tuple[str, ...] = DEFAULT_TAG_WHITELIST
    art_max_dimension: int = DEFAULT_ART_MAX_DIMENSION
    art_quality: int = DEFAULT_ART_QUALITY
    dry_run: bool = False

    @property
    def produces_copies(self) -> bool:
        """True if any setting can cause an output copy to be written."""
        return not self.dry_run and (self.force_reencode or self.recover_failed)


@dataclass(frozen=True)
class RunConfig:
    """
    Run-level settings.

    Attributes:
        workers: Number of files processed in parallel.
        audit_log: Audit log path, or None for <output_root>/flac_audit.csv.
        log_directory: Directory for run logs, or None for <output_root>/logs.
        scratch_directory: Parent of per-file scratch workspaces, or None
                           for the system temporary directory.
        skip_logged: Skip sources already present in the audit log.
        verbose: One progress line per file and DEBUG console output.
    """
    workers: int = 1
    audit_log: Path | None = None
    log_directory: Path | None = None
    scratch_directory: Path | None = None
    skip_logged: bool = False
    verbose: bool = False


@dataclass(frozen=True)
class Config:
    """
    Complete application configuration.

    Created by load_config() and treated as immutable. The CLI derives the
    effective configuration with with_overrides().

    Example:
        config = load_config()
        config = config.with_overrides(pipeline={"recover_failed": True})
        print(config.pipeline.tag_whitelist)
    """
    tools: ToolsConfig = field(default_factory=ToolsConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    run: RunConfig = field(default_factory=RunConfig)

    def with_overrides(
        self,
        tools: dict[str, Any] | None = None,
        pipeline: dict[str, Any] | None = None,
        run: dict[str, Any] | None = None,
    ) -> "Config":
        """
        Return a copy with the given fields replaced.

        Values of None in the override dicts are ignored so CLI options that
        were not passed keep the file/default value.
        """
        def _clean(values: dict[str, Any] | None) -> dict[str, Any]:
            return {k: v for k, v in (values or {}).items() if v is not None}

        new_pipeline = replace(self.pipeline, **_clean(pipeline))
        if pipeline and pipeline.get("tag_whitelist") is not None:
            new_pipeline = replace(
                new_pipeline,
                tag_whitelist=_parse_whitelist(pipeline["tag_whitelist"]),
            )
        return Config(
            tools=replace(self.tools, **_clean(tools)),
            pipeline=new_pipeline,
            run=replace(self.run, **_clean(run)),
        )


def load_config(config_path: Path | None = None) -> Config:
    """
    Load and validate configuration.

    Args:
        config_path: Optional explicit path to a YAML config file.
                     If None, flac_auditor.yaml in the current working
                     directory is used when present, built-in defaults
                     otherwise.

    Returns:
        Config: A frozen dataclass containing all configuration values.

    Raises:
        ConfigError: If an explicit file is missing, the YAML is invalid,
                     a section has the wrong shape, or a value is invalid.
    """
    explicit = config_path is not None
    if config_path is None:
        config_path = Path.cwd() / CONFIG_FILENAME

    if not config_path.exists():
        if explicit:
            raise ConfigError(
                f"Configuration file not found: {config_path}",
                details={"file_path": str(config_path)}
            )
        return Config()

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            content = f.read()
    except IOError as e:
        raise ConfigError(
            f"Failed to read configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    try:
        raw_config = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Invalid YAML syntax in configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    # An empty file is a valid "all defaults" config
    if raw_config is None:
        return Config()

    if not isinstance(raw_config, dict):
        raise ConfigError(
            "Configuration file must contain a YAML dictionary",
            details={"file_path": str(config_path)}
        )

    for section in ("tools", "pipeline", "run"):
        value = raw_config.get(section)
        if value is not None and not isinstance(value, dict):
            raise ConfigError(
                f"Section '{section}' must be a dictionary",
                details={"section": section}
            )

    return Config(
        tools=_parse_tools_config(raw_config.get("tools")),
        pipeline=_parse_pipeline_config(raw_config.get("pipeline")),
        run=_parse_run_config(raw_config.get("run")),
    )


def _parse_tools_config(section: dict[str, Any] | None) -> ToolsConfig:
    """
    Parse the 'tools' section.

    Raises:
        ConfigError: If an executable name is empty or timeout is not a
                     positive integer.
    """
    defaults = ToolsConfig()
    if not section:
        return defaults

    values: dict[str, Any] = {}
    for name in ("flac", "metaflac"):
        raw = section.get(name)
        if raw is not None:
            values[name] = _require_string(raw, f"tools.{name}")

    if "ffmpeg" in section:
        raw = section["ffmpeg"]
        values["ffmpeg"] = None if raw is None else _require_string(raw, "tools.ffmpeg")

    raw_timeout = section.get("timeout")
    if raw_timeout is not None:
        values["timeout"] = _require_positive_int(raw_timeout, "tools.timeout")

    return replace(defaults, **values)


def _parse_pipeline_config(section: dict[str, Any] | None) -> PipelineConfig:
    """
    Parse the 'pipeline' section.

    Raises:
        ConfigError: If a toggle is not a boolean, the whitelist is not a
                     non-empty list of strings, or an artwork parameter is
                     out of range.
    """
    defaults = PipelineConfig()
    if not section:
        return defaults

    values: dict[str, Any] = {}
    for name in ("sanitize_container", "recover_failed", "force_reencode",
                 "sanitize_tags", "normalize_art", "dry_run"):
        raw = section.get(name)
        if raw is not None:
            if not isinstance(raw, bool):
                raise ConfigError(
                    f"'pipeline.{name}' must be true or false",
                    details={"field": f"pipeline.{name}", "value": raw}
                )
            values[name] = raw

    if section.get("tag_whitelist") is not None:
        values["tag_whitelist"] = _parse_whitelist(section["tag_whitelist"])

    raw_dim = section.get("art_max_dimension")
    if raw_dim is not None:
        values["art_max_dimension"] = _require_positive_int(raw_dim, "pipeline.art_max_dimension")

    raw_quality = section.get("art_quality")
    if raw_quality is not None:
        quality = _require_positive_int(raw_quality, "pipeline.art_quality")
        if quality > 95:
            raise ConfigError(
                "'pipeline.art_quality' must be between 1 and 95",
                details={"field": "pipeline.art_quality", "value": quality}
            )
        values["art_quality"] = quality

    return replace(defaults, **values)


def _parse_run_config(section: dict[str, Any] | None) -> RunConfig:
    """
    Parse the 'run' section.

    Paths are expanded (~) and made absolute. Directories are not created
    here; that happens when the run starts.
    """
    defaults = RunConfig()
    if not section:
        return defaults

    values: dict[str, Any] = {}
    raw_workers = section.get("workers")
    if raw_workers is not None:
        values["workers"] = _require_positive_int(raw_workers, "run.workers")

    for name in ("audit_log", "log_directory", "scratch_directory"):
        raw = section.get(name)
        if raw is not None:
            values[name] = Path(_require_string(raw, f"run.{name}")).expanduser().resolve()

    for name in ("skip_logged", "verbose"):
        raw = section.get(name)
        if raw is not None:
            if not isinstance(raw, bool):
                raise ConfigError(
                    f"'run.{name}' must be true or false",
                    details={"field": f"run.{name}", "value": raw}
                )
            values[name] = raw

    return replace(defaults, **values)


def _parse_whitelist(raw: Any) -> tuple[str, ...]:
    """
    Normalize a whitelist given as a list or a comma-separated string.

    Entries are stripped and upper-cased; duplicates are dropped while
    keeping the first occurrence's order.
    """
    if isinstance(raw, str):
        items = raw.split(",")
    elif isinstance(raw, (list, tuple)):
        items = list(raw)
    else:
        raise ConfigError(
            "'pipeline.tag_whitelist' must be a list or comma-separated string",
            details={"field": "pipeline.tag_whitelist"}
        )

    result: list[str] = []
    for item in items:
        if not isinstance(item, str):
            raise ConfigError(
                "'pipeline.tag_whitelist' entries must be strings",
                details={"field": "pipeline.tag_whitelist", "value": item}
            )
        key = item.strip().upper()
        if key and key not in result:
            result.append(key)

    if not result:
        raise ConfigError(
            "'pipeline.tag_whitelist' must contain at least one tag name",
            details={"field": "pipeline.tag_whitelist"}
        )
    return tuple(result)


def _require_string(raw: Any, field_name: str) -> str:
    if not isinstance(raw, str) or not raw.strip():
        raise ConfigError(
            f"'{field_name}' must be a non-empty string",
            details={"field": field_name}
        )
    return raw.strip()


def _require_positive_int(raw: Any, field_name: str) -> int:
    # bool is an int subclass; reject it explicitly
    if isinstance(raw, bool) or not isinstance(raw, int) or raw < 1:
        raise ConfigError(
            f"'{field_name}' must be a positive integer",
            details={"field": field_name, "value": raw}
        )
    return raw

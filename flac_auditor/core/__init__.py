"""
Core module for flac-auditor.

This module provides the foundational components used throughout the application:
    - exceptions: Custom exception classes for error handling
    - config: Configuration loading and validation
    - logger: Logging system with multiple outputs
    - file_manager: File discovery, output mirroring, scratch workspaces

audit_log and progress depend on the pipeline models and are imported
from their modules directly.

Usage:
    from flac_auditor.core import (
        Config, load_config,
        setup_logging, get_logger,
        FlacAuditorError, ConfigError, AuditLogError
    )
"""

from flac_auditor.core.config import (
    DEFAULT_TAG_WHITELIST,
    Config,
    PipelineConfig,
    RunConfig,
    ToolsConfig,
    load_config,
)
from flac_auditor.core.exceptions import (
    AuditLogError,
    ConfigError,
    FlacAuditorError,
    StageError,
    ToolNotFoundError,
)
from flac_auditor.core.file_manager import (
    discover_flac_files,
    ensure_directory,
    mirrored_path,
    relative_path,
)
from flac_auditor.core.logger import (
    get_logger,
    log_file_failure,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    # Config
    "Config",
    "ToolsConfig",
    "PipelineConfig",
    "RunConfig",
    "DEFAULT_TAG_WHITELIST",
    "load_config",
    # Exceptions
    "FlacAuditorError",
    "ConfigError",
    "ToolNotFoundError",
    "AuditLogError",
    "StageError",
    # Files
    "discover_flac_files",
    "ensure_directory",
    "mirrored_path",
    "relative_path",
    # Logger
    "setup_logging",
    "get_logger",
    "log_file_failure",
    "shutdown_logging",
]

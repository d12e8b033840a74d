# ============================================================================
# netshell/base/config.py
# Runtime Settings Management
# ============================================================================
#
# PURPOSE:
# Process-level settings that are not part of a pipeline definition: logging,
# the shell used for local execution, fallback timeouts. Pipeline definitions
# themselves live in netshell/config/schema.py and are passed explicitly to
# the Orchestrator.
#
# KEY CONCEPTS:
# 1. Frozen dataclasses: settings never change once built
# 2. Environment variables: NETSHELL_* overrides, read once by from_env()
# 3. Singleton accessors: get_config()/set_config() for the shared instance
#
# ============================================================================

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)


# ============================================================================
# Execution Defaults
# ============================================================================

@dataclass(frozen=True)
class ExecutionDefaults:
    # Used when neither the step nor the pipeline file sets a timeout
    default_timeout_seconds: float = 60.0

    # Local scripts are written to this interpreter's stdin
    shell: str = "/bin/sh"

    # Remote scripts are written to this command's stdin over SSH
    remote_shell: str = "sh"

    # TCP connect + handshake budget when ssh_config.timeout_seconds is unset
    ssh_connect_timeout_seconds: float = 10.0

    # Longest single output line accepted from a local process
    stream_limit_bytes: int = 1024 * 1024

    # Export scalar variables to local processes as environment variables
    export_variables_to_env: bool = True


# ============================================================================
# Logging Configuration
# ============================================================================

@dataclass(frozen=True)
class LogConfig:
    # DEBUG / INFO / WARNING / ERROR
    level: str = "INFO"

    format: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

    # Optional log file; None keeps logging on the console only
    file_path: Optional[Path] = None

    # Rotation: size of one file and how many old files to keep
    max_file_size_mb: int = 10
    backup_count: int = 5


# ============================================================================
# Master Configuration Container
# ============================================================================

@dataclass(frozen=True)
class NetShellConfig:
    execution: ExecutionDefaults = field(default_factory=ExecutionDefaults)
    log: LogConfig = field(default_factory=LogConfig)
    debug: bool = False

    @classmethod
    def from_env(cls) -> "NetShellConfig":
        """Build settings from NETSHELL_* environment variables."""
        execution = ExecutionDefaults(
            default_timeout_seconds=float(os.getenv("NETSHELL_DEFAULT_TIMEOUT", "60")),
            shell=os.getenv("NETSHELL_SHELL", "/bin/sh"),
            remote_shell=os.getenv("NETSHELL_REMOTE_SHELL", "sh"),
            ssh_connect_timeout_seconds=float(os.getenv("NETSHELL_SSH_CONNECT_TIMEOUT", "10")),
            export_variables_to_env=os.getenv("NETSHELL_EXPORT_ENV", "true").lower() == "true",
        )

        log_file = os.getenv("NETSHELL_LOG_FILE")
        log = LogConfig(
            level=os.getenv("NETSHELL_LOG_LEVEL", "INFO"),
            file_path=Path(log_file) if log_file else None,
        )

        return cls(
            execution=execution,
            log=log,
            debug=os.getenv("NETSHELL_DEBUG", "false").lower() == "true",
        )


# ============================================================================
# Global Configuration Singleton
# ============================================================================

_config: Optional[NetShellConfig] = None


def get_config() -> NetShellConfig:
    """
    Get the global runtime settings, loading them from the environment on
    first use.
    """
    global _config
    if _config is None:
        _config = NetShellConfig.from_env()
    return _config


def set_config(config: NetShellConfig) -> None:
    """Replace the global runtime settings (mainly used by tests and the CLI)."""
    global _config
    _config = config


def setup_logging(config: Optional[NetShellConfig] = None) -> None:
    """
    Configure Python's logging system from LogConfig.

    Call this once at application startup. Library code never calls it.
    """
    cfg = config or get_config()

    handlers: List[logging.Handler] = [logging.StreamHandler()]

    if cfg.log.file_path is not None:
        from logging.handlers import RotatingFileHandler
        cfg.log.file_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(
            cfg.log.file_path,
            maxBytes=cfg.log.max_file_size_mb * 1024 * 1024,
            backupCount=cfg.log.backup_count,
        ))

    level = "DEBUG" if cfg.debug else cfg.log.level
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=cfg.log.format,
        handlers=handlers,
        force=True,
    )

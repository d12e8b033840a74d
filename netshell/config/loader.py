"""Module loader: reads pipeline files into a validated ExecutionConfig."""
#
# PURPOSE:
# The only place where a configuration error can abort a run. Everything
# below this layer receives an already-validated, immutable ExecutionConfig.
#

import logging
from pathlib import Path
from typing import Any, Mapping, Union

import yaml
from pydantic import ValidationError

from netshell.config.schema import ExecutionConfig
from netshell.errors import ConfigError, ErrorCode

logger = logging.getLogger(__name__)


def load_config(path: Union[str, Path]) -> ExecutionConfig:
    """
    Load and validate a YAML pipeline file.

    Raises:
        ConfigError: file missing, YAML malformed, or schema violations
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ConfigError(
            ErrorCode.CONFIG_FILE_NOT_FOUND,
            f"Configuration file not found: {path}",
            details={"path": str(path)},
        ) from None
    except OSError as exc:
        raise ConfigError(
            ErrorCode.CONFIG_FILE_NOT_FOUND,
            f"Failed to read configuration file {path}: {exc}",
            details={"path": str(path)},
        ) from exc
    return load_config_str(text, source=str(path))


def load_config_str(text: str, source: str = "<string>") -> ExecutionConfig:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(
            ErrorCode.CONFIG_PARSE_ERROR,
            f"Failed to parse YAML configuration ({source}): {exc}",
            details={"source": source},
        ) from exc

    if not isinstance(data, Mapping):
        raise ConfigError(
            ErrorCode.CONFIG_INVALID,
            f"Configuration root must be a mapping ({source})",
            details={"source": source},
        )
    return parse_config(data, source=source)


def parse_config(data: Mapping[str, Any], source: str = "<dict>") -> ExecutionConfig:
    """Validate an already-parsed mapping (e.g. from another loader)."""
    try:
        config = ExecutionConfig.model_validate(dict(data))
    except ValidationError as exc:
        violations = []
        for err in exc.errors():
            loc = ".".join(str(part) for part in err["loc"])
            violations.append(f"{loc}: {err['msg']}" if loc else err["msg"])
        missing_only = all(err["type"] == "missing" for err in exc.errors())
        logger.error(f"[Config] {source} rejected: {'; '.join(violations)}")
        raise ConfigError(
            ErrorCode.CONFIG_MISSING_REQUIRED if missing_only else ErrorCode.CONFIG_INVALID,
            f"Invalid configuration ({source}): {'; '.join(violations)}",
            details={"source": source, "violations": violations},
        ) from exc

    logger.info(
        f"[Config] Loaded {source}: {len(config.pipelines)} pipeline(s), "
        f"{len(config.clients)} client(s)"
    )
    return config

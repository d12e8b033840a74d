from netshell.config.schema import (
    ClientConfig,
    ExecutionConfig,
    ExecutionMethod,
    ExtractRule,
    ExtractSource,
    Pipeline,
    SshConfig,
    Step,
)
from netshell.config.loader import load_config, load_config_str, parse_config

__all__ = [
    "ClientConfig",
    "ExecutionConfig",
    "ExecutionMethod",
    "ExtractRule",
    "ExtractSource",
    "Pipeline",
    "SshConfig",
    "Step",
    "load_config",
    "load_config_str",
    "parse_config",
]

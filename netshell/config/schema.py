"""
netshell/config/schema.py
Pydantic schemas for the execution model.

This module provides the STRICT runtime validation models for pipeline files:
clients (local or SSH targets), pipelines, steps and extraction rules.
All models are frozen; a validated ExecutionConfig is passed explicitly to the
Orchestrator and never mutated afterwards.
"""

import logging
import re
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

logger = logging.getLogger(__name__)


def _stringify_scalars(value: Any) -> Any:
    """YAML turns `version: 1.0` into a float; variables are strings."""
    if value is None:
        return {}
    if not isinstance(value, dict):
        return value
    coerced = {}
    for key, item in value.items():
        if item is None:
            item = ""
        elif isinstance(item, bool):
            item = "true" if item else "false"
        elif isinstance(item, (int, float)):
            item = str(item)
        coerced[str(key)] = item
    return coerced


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


# ---------------------------------------------------------------------------
# Clients
# ---------------------------------------------------------------------------

class ExecutionMethod(str, Enum):
    SSH = "ssh"
    LOCAL = "local"


class SshConfig(_Frozen):
    host: str = Field(..., min_length=1)
    port: int = Field(22, ge=1, le=65535)
    username: str = Field(..., min_length=1)
    password: Optional[str] = None
    private_key_path: Optional[str] = None
    timeout_seconds: Optional[float] = Field(None, gt=0, description="Connect timeout")

    @model_validator(mode="after")
    def check_single_auth_method(self) -> "SshConfig":
        if (self.password is None) == (self.private_key_path is None):
            raise ValueError("exactly one of password or private_key_path must be set")
        return self


class ClientConfig(_Frozen):
    name: Optional[str] = None
    execution_method: ExecutionMethod = ExecutionMethod.SSH
    ssh_config: Optional[SshConfig] = None

    @model_validator(mode="after")
    def check_method_config(self) -> "ClientConfig":
        if self.execution_method is ExecutionMethod.SSH and self.ssh_config is None:
            raise ValueError("ssh clients require ssh_config")
        return self


# ---------------------------------------------------------------------------
# Steps & Extraction
# ---------------------------------------------------------------------------

class ExtractSource(str, Enum):
    STDOUT = "stdout"
    STDERR = "stderr"
    EXIT_CODE = "exit_code"


class ExtractRule(_Frozen):
    name: str = Field(..., min_length=1)
    patterns: Tuple[str, ...] = Field(..., min_length=1)
    source: ExtractSource = ExtractSource.STDOUT
    cascade: bool = True

    @field_validator("patterns", mode="before")
    @classmethod
    def accept_single_pattern(cls, v: Any) -> Any:
        if isinstance(v, str):
            return (v,)
        return v

    @field_validator("patterns")
    @classmethod
    def validate_patterns(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        for idx, pattern in enumerate(v):
            try:
                re.compile(pattern)
            except re.error as exc:
                raise ValueError(f"patterns[{idx}] is not a valid regex: {exc}")
        return v


class Step(_Frozen):
    name: str = Field(..., min_length=1)
    script: str
    timeout_seconds: Optional[float] = Field(None, gt=0)
    servers: Tuple[str, ...] = ()
    variables: Dict[str, str] = Field(default_factory=dict)
    extract: Tuple[ExtractRule, ...] = ()

    @field_validator("servers", "extract", mode="before")
    @classmethod
    def null_to_empty(cls, v: Any) -> Any:
        return () if v is None else v

    @field_validator("variables", mode="before")
    @classmethod
    def coerce_variables(cls, v: Any) -> Any:
        return _stringify_scalars(v)

    @field_validator("servers")
    @classmethod
    def validate_servers(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        seen = set()
        for server in v:
            if server in seen:
                raise ValueError(f"server '{server}' listed more than once")
            seen.add(server)
        return v


class Pipeline(_Frozen):
    name: str = Field(..., min_length=1)
    steps: Tuple[Step, ...] = Field(..., min_length=1)


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------

class ExecutionConfig(_Frozen):
    variables: Dict[str, str] = Field(default_factory=dict)
    clients: Dict[str, ClientConfig] = Field(default_factory=dict)
    pipelines: Tuple[Pipeline, ...] = Field(..., min_length=1)
    default_timeout: Optional[float] = Field(None, gt=0)

    @field_validator("variables", mode="before")
    @classmethod
    def coerce_variables(cls, v: Any) -> Any:
        return _stringify_scalars(v)

    @field_validator("clients", mode="before")
    @classmethod
    def null_clients(cls, v: Any) -> Any:
        return {} if v is None else v

    @model_validator(mode="after")
    def check_references(self) -> "ExecutionConfig":
        names: List[str] = [p.name for p in self.pipelines]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"duplicate pipeline names: {', '.join(duplicates)}")

        for pipeline in self.pipelines:
            for step in pipeline.steps:
                for server in step.servers:
                    if server not in self.clients:
                        raise ValueError(
                            f"server '{server}' referenced in step '{step.name}' of pipeline "
                            f"'{pipeline.name}' not found in clients"
                        )
        return self

    def get_pipeline(self, name: str) -> Optional[Pipeline]:
        for pipeline in self.pipelines:
            if pipeline.name == name:
                return pipeline
        return None

"""
netshell/engine/models.py

Purpose:
    Result records produced by the execution layers.

Semantics:
    - ExecutionResult: the outcome of one script on one target. Immutable.
      `success` is derived from the exit code; framework failures (template,
      connection, spawn, timeout) carry exit_code -1, an error_message and an
      error_code.
    - StepResult: one per (step, target) pair.
    - PipelineResult: ordered StepResults; steps after the first failing step
      are absent.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from netshell.errors import ErrorCode, NetShellError

LOCAL_TARGET = "local"

# Exit code recorded when the script never produced one
NO_EXIT_CODE = -1

# Failures whose output can still be fed to extraction rules
_EXTRACTABLE = (None, ErrorCode.EXEC_NONZERO_EXIT)


@dataclass(frozen=True)
class ExecutionResult:
    stdout: str = ""
    stderr: str = ""
    exit_code: int = NO_EXIT_CODE
    execution_time_ms: int = 0
    error_message: Optional[str] = None
    error_code: Optional[ErrorCode] = None
    script: str = ""

    @property
    def success(self) -> bool:
        return self.exit_code == 0

    @property
    def executed(self) -> bool:
        """True when the script ran to completion on the target."""
        return self.error_code in _EXTRACTABLE

    @classmethod
    def completed(
        cls,
        stdout: str,
        stderr: str,
        exit_code: int,
        execution_time_ms: int,
        script: str = "",
    ) -> "ExecutionResult":
        if exit_code == 0:
            return cls(stdout, stderr, exit_code, execution_time_ms, script=script)
        return cls(
            stdout,
            stderr,
            exit_code,
            execution_time_ms,
            error_message=f"Script exited with code {exit_code}",
            error_code=ErrorCode.EXEC_NONZERO_EXIT,
            script=script,
        )

    @classmethod
    def failure(
        cls,
        error: NetShellError,
        execution_time_ms: int = 0,
        stdout: str = "",
        stderr: str = "",
        script: str = "",
    ) -> "ExecutionResult":
        return cls(
            stdout=stdout,
            stderr=stderr,
            exit_code=NO_EXIT_CODE,
            execution_time_ms=execution_time_ms,
            error_message=error.message,
            error_code=error.code,
            script=script,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "exit_code": self.exit_code,
            "execution_time_ms": self.execution_time_ms,
            "error_message": self.error_message,
            "error_code": self.error_code.value if self.error_code else None,
        }


@dataclass(frozen=True)
class StepResult:
    step_name: str
    target_name: str
    execution_result: ExecutionResult

    @property
    def success(self) -> bool:
        return self.execution_result.success

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step_name": self.step_name,
            "target_name": self.target_name,
            "execution_result": self.execution_result.to_dict(),
        }


@dataclass
class PipelineResult:
    pipeline_name: str
    overall_success: bool = True
    total_execution_time_ms: int = 0
    step_results: List[StepResult] = field(default_factory=list)

    def results_for(self, step_name: str) -> List[StepResult]:
        return [r for r in self.step_results if r.step_name == step_name]

    @property
    def steps_run(self) -> List[str]:
        names: List[str] = []
        for result in self.step_results:
            if result.step_name not in names:
                names.append(result.step_name)
        return names

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pipeline_name": self.pipeline_name,
            "overall_success": self.overall_success,
            "total_execution_time_ms": self.total_execution_time_ms,
            "step_results": [r.to_dict() for r in self.step_results],
        }

"""
netshell/transport/base.py
The execution capability every target provides.

A Target runs one rendered script with a timeout, streams each output line
through a LineSink as it arrives, and always returns an ExecutionResult.
Connection, spawn and timeout failures are reported as failed results, never
raised.
"""

import time
from abc import ABC, abstractmethod
from typing import Callable, Mapping, Optional

from netshell.engine.events import OutputType
from netshell.engine.models import ExecutionResult

# Receives (OutputType.STDOUT | OutputType.STDERR, line without newline)
LineSink = Callable[[OutputType, str], None]


def _discard(kind: OutputType, line: str) -> None:
    return None


class Target(ABC):
    """A named local or remote execution destination."""

    def __init__(self, name: str):
        self.name = name

    @abstractmethod
    async def run(
        self,
        script: str,
        timeout: float,
        on_line: LineSink = _discard,
        env: Optional[Mapping[str, str]] = None,
    ) -> ExecutionResult:
        """Execute a rendered script. Never raises for per-target failures."""

    async def close(self) -> None:
        """Release connections or other resources held by the target."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class Stopwatch:
    def __init__(self):
        self._start = time.monotonic()

    @property
    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self._start) * 1000)

"""Pytest configuration and shared fixtures for netshell."""
import asyncio
from typing import Dict, List, Optional

import pytest

from netshell.base.config import ExecutionDefaults, NetShellConfig, set_config
from netshell.config.schema import ClientConfig
from netshell.engine.events import OutputEvent, OutputType
from netshell.engine.models import ExecutionResult
from netshell.errors import NetShellError
from netshell.transport.base import Target


class FakeTarget(Target):
    """
    Scripted stand-in for a Local/SSH target.

    Emits `stdout`/`stderr` line by line through on_line, optionally after a
    real asyncio delay, and reports `elapsed_ms` (defaults to the delay).
    With `error` set it reports that failure instead of an exit code.
    """

    def __init__(
        self,
        name: str,
        stdout: str = "",
        stderr: str = "",
        exit_code: int = 0,
        delay: float = 0.0,
        elapsed_ms: Optional[int] = None,
        error: Optional[NetShellError] = None,
    ):
        super().__init__(name)
        self.stdout = stdout
        self.stderr = stderr
        self.exit_code = exit_code
        self.delay = delay
        self.elapsed_ms = elapsed_ms
        self.error = error
        self.scripts: List[str] = []
        self.envs: List[Optional[dict]] = []
        self.closed = False

    async def run(self, script, timeout, on_line=lambda kind, line: None, env=None):
        self.scripts.append(script)
        self.envs.append(env)
        if self.delay:
            await asyncio.sleep(self.delay)
        for line in self.stdout.splitlines():
            on_line(OutputType.STDOUT, line)
        for line in self.stderr.splitlines():
            on_line(OutputType.STDERR, line)
        elapsed = self.elapsed_ms if self.elapsed_ms is not None else int(self.delay * 1000)
        if self.error is not None:
            return ExecutionResult.failure(self.error, elapsed, self.stdout, self.stderr, script=script)
        return ExecutionResult.completed(self.stdout, self.stderr, self.exit_code, elapsed, script=script)

    async def close(self):
        self.closed = True


class FakeTargetFactory:
    """Target factory handing out FakeTargets configured per target name."""

    def __init__(self, **specs: dict):
        self.specs = specs
        self.targets: Dict[str, FakeTarget] = {}
        self.clients: Dict[str, Optional[ClientConfig]] = {}

    def __call__(self, name: str, client: Optional[ClientConfig], defaults: ExecutionDefaults) -> FakeTarget:
        target = FakeTarget(name, **self.specs.get(name, {}))
        self.targets[name] = target
        self.clients[name] = client
        return target


class EventRecorder:
    def __init__(self):
        self.events: List[OutputEvent] = []

    def __call__(self, event: OutputEvent) -> None:
        self.events.append(event)

    def of(self, kind: OutputType) -> List[OutputEvent]:
        return [e for e in self.events if e.output_type is kind]

    def contents(self, kind: OutputType) -> List[str]:
        return [e.content for e in self.of(kind)]


@pytest.fixture(autouse=True)
def runtime_config():
    """Fresh runtime settings per test, independent of NETSHELL_* in the environment."""
    config = NetShellConfig()
    set_config(config)
    yield config
    set_config(NetShellConfig())


@pytest.fixture
def recorder():
    return EventRecorder()


@pytest.fixture
def fake_factory():
    return FakeTargetFactory

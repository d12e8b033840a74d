"""Module local: runs scripts in a local shell process."""
#
# PURPOSE:
# The Local target. Spawns the configured shell, writes the rendered script
# to its stdin and streams stdout/stderr line by line.
#
# KEY CONCEPTS:
# - The shell runs in its own process group so a timeout kills the whole
#   tree (background jobs included), not only the shell itself
# - Scalar variables are exported as environment variables on top of the
#   inherited environment
#

import asyncio
import logging
import os
import signal
from typing import List, Mapping, Optional

from netshell.base.config import ExecutionDefaults, get_config
from netshell.engine.events import OutputType
from netshell.engine.models import ExecutionResult
from netshell.errors import ErrorCode, ExecutionError
from netshell.transport.base import LineSink, Stopwatch, Target, _discard

logger = logging.getLogger(__name__)


class LocalTarget(Target):
    """Executes scripts on this machine."""

    def __init__(self, name: str = "local", defaults: Optional[ExecutionDefaults] = None):
        super().__init__(name)
        self.defaults = defaults or get_config().execution

    async def run(
        self,
        script: str,
        timeout: float,
        on_line: LineSink = _discard,
        env: Optional[Mapping[str, str]] = None,
    ) -> ExecutionResult:
        watch = Stopwatch()
        process_env = dict(os.environ)
        if env:
            process_env.update(env)

        try:
            proc = await asyncio.create_subprocess_exec(
                self.defaults.shell,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=process_env,
                start_new_session=True,
                limit=self.defaults.stream_limit_bytes,
            )
        except OSError as exc:
            logger.error(f"[LocalTarget:{self.name}] failed to start {self.defaults.shell}: {exc}")
            return ExecutionResult.failure(
                ExecutionError(ErrorCode.EXEC_SPAWN_FAILED, f"Failed to spawn local shell: {exc}"),
                execution_time_ms=watch.elapsed_ms,
                script=script,
            )

        stdout_lines: List[str] = []
        stderr_lines: List[str] = []
        work = asyncio.gather(
            self._feed(proc, script),
            self._pump(proc.stdout, OutputType.STDOUT, stdout_lines, on_line),
            self._pump(proc.stderr, OutputType.STDERR, stderr_lines, on_line),
            proc.wait(),
        )

        try:
            await asyncio.wait_for(work, timeout=timeout)
        except asyncio.TimeoutError:
            self._kill(proc)
            await self._reap(proc)
            logger.warning(f"[LocalTarget:{self.name}] timed out after {timeout}s; killed pid {proc.pid}")
            return ExecutionResult.failure(
                ExecutionError(ErrorCode.EXEC_TIMEOUT, f"Execution timed out after {timeout:g} seconds"),
                execution_time_ms=watch.elapsed_ms,
                stdout="".join(stdout_lines),
                stderr="".join(stderr_lines),
                script=script,
            )
        except asyncio.CancelledError:
            self._kill(proc)
            await self._reap(proc)
            raise
        except Exception as exc:
            self._kill(proc)
            await self._reap(proc)
            logger.error(f"[LocalTarget:{self.name}] execution error: {exc}")
            return ExecutionResult.failure(
                ExecutionError(ErrorCode.EXEC_FAILED, f"Local execution failed: {exc}"),
                execution_time_ms=watch.elapsed_ms,
                stdout="".join(stdout_lines),
                stderr="".join(stderr_lines),
                script=script,
            )

        exit_code = proc.returncode if proc.returncode is not None else -1
        logger.info(f"[LocalTarget:{self.name}] completed with exit code {exit_code}")
        return ExecutionResult.completed(
            stdout="".join(stdout_lines),
            stderr="".join(stderr_lines),
            exit_code=exit_code,
            execution_time_ms=watch.elapsed_ms,
            script=script,
        )

    @staticmethod
    async def _feed(proc: asyncio.subprocess.Process, script: str) -> None:
        assert proc.stdin is not None
        try:
            proc.stdin.write(script.encode("utf-8"))
            if not script.endswith("\n"):
                proc.stdin.write(b"\n")
            await proc.stdin.drain()
        except (BrokenPipeError, ConnectionResetError):
            # Shell exited before reading everything; its exit code tells the story
            pass
        finally:
            proc.stdin.close()

    @staticmethod
    async def _pump(
        stream: Optional[asyncio.StreamReader],
        kind: OutputType,
        sink: List[str],
        on_line: LineSink,
    ) -> None:
        assert stream is not None
        while True:
            line = await stream.readline()
            if not line:
                break
            text = line.decode("utf-8", errors="replace")
            sink.append(text)
            on_line(kind, text.rstrip("\r\n"))

    @staticmethod
    def _kill(proc: asyncio.subprocess.Process) -> None:
        if proc.returncode is not None:
            return
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except (ProcessLookupError, PermissionError):
            try:
                proc.kill()
            except ProcessLookupError:
                pass

    @staticmethod
    async def _reap(proc: asyncio.subprocess.Process) -> None:
        try:
            await asyncio.wait_for(proc.wait(), timeout=2)
        except asyncio.TimeoutError:
            logger.warning(f"[LocalTarget] pid {proc.pid} did not exit after SIGKILL")

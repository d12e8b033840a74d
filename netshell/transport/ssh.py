"""Module ssh: runs scripts on remote hosts over SSH."""
#
# PURPOSE:
# The SSH target. Opens (and reuses) one connection per client, execs the
# remote shell, writes the rendered script to its stdin and streams stdout
# and stderr line by line.
#
# KEY CONCEPTS:
# - Authentication: exactly one of password or private key (validated in
#   SshConfig)
# - Connect timeout: ssh_config.timeout_seconds, else the runtime default
# - Execution timeout: closes the channel; the cached connection survives
# - Host keys are not verified (known_hosts=None), matching plain
#   script-runner usage against lab and CI hosts
#

import asyncio
import logging
from typing import List, Mapping, Optional

import asyncssh

from netshell.base.config import ExecutionDefaults, get_config
from netshell.config.schema import SshConfig
from netshell.engine.events import OutputType
from netshell.engine.models import ExecutionResult
from netshell.errors import ErrorCode, ExecutionError, TargetConnectionError
from netshell.transport.base import LineSink, Stopwatch, Target, _discard

logger = logging.getLogger(__name__)


class SshTarget(Target):
    """Executes scripts on one SSH client."""

    def __init__(self, name: str, ssh_config: SshConfig, defaults: Optional[ExecutionDefaults] = None):
        super().__init__(name)
        self.ssh_config = ssh_config
        self.defaults = defaults or get_config().execution
        self._conn: Optional[asyncssh.SSHClientConnection] = None
        self._lock: Optional[asyncio.Lock] = None

    @property
    def connect_timeout(self) -> float:
        if self.ssh_config.timeout_seconds is not None:
            return self.ssh_config.timeout_seconds
        return self.defaults.ssh_connect_timeout_seconds

    async def _connection(self) -> asyncssh.SSHClientConnection:
        if self._lock is None:
            self._lock = asyncio.Lock()
        async with self._lock:
            if self._conn is not None:
                return self._conn

            cfg = self.ssh_config
            logger.info(f"[SshTarget:{self.name}] connecting to {cfg.host}:{cfg.port} as {cfg.username}")
            options = {
                "port": cfg.port,
                "username": cfg.username,
                "known_hosts": None,
            }
            if cfg.password is not None:
                options["password"] = cfg.password
                options["client_keys"] = None
            else:
                options["client_keys"] = [cfg.private_key_path]

            try:
                self._conn = await asyncio.wait_for(
                    asyncssh.connect(cfg.host, **options),
                    timeout=self.connect_timeout,
                )
            except asyncio.TimeoutError:
                raise TargetConnectionError(
                    ErrorCode.CONN_TIMEOUT,
                    f"Connection to {cfg.host}:{cfg.port} timed out after {self.connect_timeout:g}s",
                    details={"host": cfg.host, "port": cfg.port},
                ) from None
            except asyncssh.PermissionDenied as exc:
                raise TargetConnectionError(
                    ErrorCode.CONN_AUTH_FAILED,
                    f"SSH authentication failed for {cfg.username}@{cfg.host}: {exc.reason}",
                    details={"host": cfg.host, "username": cfg.username},
                ) from exc
            except (asyncssh.Error, OSError) as exc:
                raise TargetConnectionError(
                    ErrorCode.CONN_FAILED,
                    f"Failed to connect to {cfg.host}:{cfg.port}: {exc}",
                    details={"host": cfg.host, "port": cfg.port},
                ) from exc

            logger.info(f"[SshTarget:{self.name}] connected")
            return self._conn

    async def run(
        self,
        script: str,
        timeout: float,
        on_line: LineSink = _discard,
        env: Optional[Mapping[str, str]] = None,
    ) -> ExecutionResult:
        watch = Stopwatch()
        try:
            conn = await self._connection()
        except TargetConnectionError as exc:
            logger.error(f"[SshTarget:{self.name}] {exc.message}")
            return ExecutionResult.failure(exc, execution_time_ms=watch.elapsed_ms, script=script)

        stdout_lines: List[str] = []
        stderr_lines: List[str] = []
        process = None
        try:
            process = await conn.create_process(self.defaults.remote_shell, encoding="utf-8")
            # One deadline covers streaming and the exit status
            completed = await asyncio.wait_for(
                self._communicate(process, script, stdout_lines, stderr_lines, on_line),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            if process is not None:
                process.close()
            logger.warning(f"[SshTarget:{self.name}] timed out after {timeout}s; channel closed")
            return ExecutionResult.failure(
                ExecutionError(ErrorCode.EXEC_TIMEOUT, f"Execution timed out after {timeout:g} seconds"),
                execution_time_ms=watch.elapsed_ms,
                stdout="".join(stdout_lines),
                stderr="".join(stderr_lines),
                script=script,
            )
        except (asyncssh.Error, OSError) as exc:
            # The connection is likely gone; reconnect on next use
            await self.close()
            logger.error(f"[SshTarget:{self.name}] execution error: {exc}")
            return ExecutionResult.failure(
                ExecutionError(ErrorCode.EXEC_FAILED, f"Remote execution failed: {exc}"),
                execution_time_ms=watch.elapsed_ms,
                stdout="".join(stdout_lines),
                stderr="".join(stderr_lines),
                script=script,
            )

        exit_code = completed.exit_status if completed.exit_status is not None else -1
        logger.info(f"[SshTarget:{self.name}] completed with exit code {exit_code}")
        return ExecutionResult.completed(
            stdout="".join(stdout_lines),
            stderr="".join(stderr_lines),
            exit_code=exit_code,
            execution_time_ms=watch.elapsed_ms,
            script=script,
        )

    async def _communicate(
        self,
        process: asyncssh.SSHClientProcess,
        script: str,
        stdout_lines: List[str],
        stderr_lines: List[str],
        on_line: LineSink,
    ) -> asyncssh.SSHCompletedProcess:
        await asyncio.gather(
            self._feed(process, script),
            self._pump(process.stdout, OutputType.STDOUT, stdout_lines, on_line),
            self._pump(process.stderr, OutputType.STDERR, stderr_lines, on_line),
        )
        return await process.wait(check=False)

    @staticmethod
    async def _feed(process: asyncssh.SSHClientProcess, script: str) -> None:
        process.stdin.write(script if script.endswith("\n") else script + "\n")
        await process.stdin.drain()
        process.stdin.write_eof()

    @staticmethod
    async def _pump(stream, kind: OutputType, sink: List[str], on_line: LineSink) -> None:
        while True:
            line = await stream.readline()
            if not line:
                break
            sink.append(line)
            on_line(kind, line.rstrip("\r\n"))

    async def close(self) -> None:
        conn, self._conn = self._conn, None
        if conn is not None:
            conn.close()
            try:
                await conn.wait_closed()
            except (asyncssh.Error, OSError) as exc:
                logger.debug(f"[SshTarget:{self.name}] error while closing: {exc}")

"""
Tests for SshTarget with asyncssh mocked out.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import asyncssh
import pytest

from netshell.config.schema import SshConfig
from netshell.engine.events import OutputType
from netshell.errors import ErrorCode
from netshell.transport.ssh import SshTarget


def make_process(stdout_lines=(), stderr_lines=(), exit_status=0):
    process = MagicMock()
    process.stdin.drain = AsyncMock()
    process.stdout.readline = AsyncMock(side_effect=list(stdout_lines) + [""])
    process.stderr.readline = AsyncMock(side_effect=list(stderr_lines) + [""])
    process.wait = AsyncMock(return_value=MagicMock(exit_status=exit_status))
    return process


def make_connection(*processes):
    conn = MagicMock()
    conn.create_process = AsyncMock(side_effect=list(processes))
    conn.wait_closed = AsyncMock()
    return conn


@pytest.fixture
def password_config():
    return SshConfig(host="10.0.0.5", username="deploy", password="secret")


@pytest.mark.asyncio
async def test_streams_output_and_reports_exit_code(password_config):
    process = make_process(["up 3 days\n", "load 0.1\n"], ["warning\n"], exit_status=0)
    conn = make_connection(process)
    lines = []

    with patch("netshell.transport.ssh.asyncssh.connect", new=AsyncMock(return_value=conn)) as connect:
        target = SshTarget("master", password_config)
        result = await target.run("uptime", timeout=5, on_line=lambda kind, line: lines.append((kind, line)))

    assert result.success
    assert result.stdout == "up 3 days\nload 0.1\n"
    assert result.stderr == "warning\n"
    assert sorted(lines) == sorted([
        (OutputType.STDOUT, "up 3 days"),
        (OutputType.STDOUT, "load 0.1"),
        (OutputType.STDERR, "warning"),
    ])
    process.stdin.write.assert_called_once_with("uptime\n")
    process.stdin.write_eof.assert_called_once()

    args, kwargs = connect.call_args
    assert args == ("10.0.0.5",)
    assert kwargs["port"] == 22
    assert kwargs["password"] == "secret"
    assert kwargs["client_keys"] is None
    assert kwargs["known_hosts"] is None


@pytest.mark.asyncio
async def test_private_key_auth_options():
    config = SshConfig(host="h", username="u", private_key_path="/keys/id_ed25519", port=2222)
    conn = make_connection(make_process())

    with patch("netshell.transport.ssh.asyncssh.connect", new=AsyncMock(return_value=conn)) as connect:
        await SshTarget("h", config).run("true", timeout=5)

    kwargs = connect.call_args.kwargs
    assert kwargs["client_keys"] == ["/keys/id_ed25519"]
    assert kwargs["port"] == 2222
    assert "password" not in kwargs


@pytest.mark.asyncio
async def test_nonzero_exit(password_config):
    conn = make_connection(make_process(exit_status=2))
    with patch("netshell.transport.ssh.asyncssh.connect", new=AsyncMock(return_value=conn)):
        result = await SshTarget("m", password_config).run("false", timeout=5)
    assert not result.success
    assert result.exit_code == 2
    assert result.error_code is ErrorCode.EXEC_NONZERO_EXIT


@pytest.mark.asyncio
async def test_connection_is_reused_until_closed(password_config):
    conn = make_connection(make_process(), make_process())
    with patch("netshell.transport.ssh.asyncssh.connect", new=AsyncMock(return_value=conn)) as connect:
        target = SshTarget("m", password_config)
        await target.run("one", timeout=5)
        await target.run("two", timeout=5)
        await target.close()

    assert connect.await_count == 1
    conn.close.assert_called_once()
    conn.wait_closed.assert_awaited_once()


@pytest.mark.asyncio
@pytest.mark.parametrize("error, code", [
    (asyncssh.PermissionDenied("bad password"), ErrorCode.CONN_AUTH_FAILED),
    (ConnectionRefusedError("refused"), ErrorCode.CONN_FAILED),
    (asyncio.TimeoutError(), ErrorCode.CONN_TIMEOUT),
])
async def test_connection_failures_become_results(password_config, error, code):
    with patch("netshell.transport.ssh.asyncssh.connect", new=AsyncMock(side_effect=error)):
        result = await SshTarget("m", password_config).run("true", timeout=5)
    assert not result.success
    assert result.exit_code == -1
    assert result.error_code is code
    assert result.error_message


@pytest.mark.asyncio
async def test_execution_timeout_closes_channel(password_config):
    async def hang():
        await asyncio.sleep(10)
        return ""

    process = make_process()
    process.stdout.readline = AsyncMock(side_effect=hang)
    conn = make_connection(process)

    with patch("netshell.transport.ssh.asyncssh.connect", new=AsyncMock(return_value=conn)):
        result = await SshTarget("m", password_config).run("sleep 100", timeout=0.05)

    assert result.error_code is ErrorCode.EXEC_TIMEOUT
    assert "timed out" in result.error_message
    process.close.assert_called_once()


@pytest.mark.asyncio
async def test_timeout_spans_streaming_and_exit_wait(password_config):
    async def slow_eof():
        await asyncio.sleep(0.15)
        return ""

    async def slow_exit(check=False):
        await asyncio.sleep(0.15)
        return MagicMock(exit_status=0)

    process = make_process()
    process.stdout.readline = AsyncMock(side_effect=slow_eof)
    process.wait = AsyncMock(side_effect=slow_exit)
    conn = make_connection(process)

    with patch("netshell.transport.ssh.asyncssh.connect", new=AsyncMock(return_value=conn)):
        result = await SshTarget("m", password_config).run("sleep 1", timeout=0.2)

    assert result.error_code is ErrorCode.EXEC_TIMEOUT
    process.close.assert_called_once()

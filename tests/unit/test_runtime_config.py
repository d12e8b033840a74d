import logging
import logging.handlers
from pathlib import Path
from unittest.mock import patch

from netshell.base.config import LogConfig, NetShellConfig, get_config, set_config, setup_logging


def test_defaults():
    config = NetShellConfig()
    assert config.execution.default_timeout_seconds == 60.0
    assert config.execution.shell == "/bin/sh"
    assert config.execution.export_variables_to_env is True
    assert config.log.level == "INFO"
    assert config.log.file_path is None


def test_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("NETSHELL_DEFAULT_TIMEOUT", "12.5")
    monkeypatch.setenv("NETSHELL_SHELL", "/bin/bash")
    monkeypatch.setenv("NETSHELL_SSH_CONNECT_TIMEOUT", "3")
    monkeypatch.setenv("NETSHELL_EXPORT_ENV", "false")
    monkeypatch.setenv("NETSHELL_LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("NETSHELL_LOG_FILE", str(tmp_path / "netshell.log"))

    config = NetShellConfig.from_env()

    assert config.execution.default_timeout_seconds == 12.5
    assert config.execution.shell == "/bin/bash"
    assert config.execution.ssh_connect_timeout_seconds == 3.0
    assert config.execution.export_variables_to_env is False
    assert config.log.level == "DEBUG"
    assert config.log.file_path == Path(tmp_path / "netshell.log")


def test_set_config_replaces_singleton():
    custom = NetShellConfig(debug=True)
    set_config(custom)
    assert get_config() is custom


def test_setup_logging_with_file(tmp_path):
    log_file = tmp_path / "logs" / "netshell.log"
    with patch("netshell.base.config.logging.basicConfig") as basic_config:
        setup_logging(NetShellConfig(log=LogConfig(level="WARNING", file_path=log_file)))

    kwargs = basic_config.call_args.kwargs
    assert kwargs["level"] == logging.WARNING
    assert kwargs["force"] is True
    assert log_file.parent.is_dir()
    handler_types = [type(h) for h in kwargs["handlers"]]
    assert handler_types == [logging.StreamHandler, logging.handlers.RotatingFileHandler]
    for handler in kwargs["handlers"]:
        handler.close()


def test_debug_forces_debug_level():
    with patch("netshell.base.config.logging.basicConfig") as basic_config:
        setup_logging(NetShellConfig(debug=True))
    assert basic_config.call_args.kwargs["level"] == logging.DEBUG

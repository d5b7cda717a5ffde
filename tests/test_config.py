"""Tests for configuration loading and command-line overrides."""

import socket
from pathlib import Path

import pytest
from typer.testing import CliRunner

from socks5_relay.cmd.cli import app, build_config
from socks5_relay.core.config import (
    Credentials,
    ServerConfig,
    load_config,
    parse_host_port,
)
from socks5_relay.core.exceptions import ConfigError

runner = CliRunner()


def write_config(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_load_full_config(tmp_path):
    path = write_config(
        tmp_path,
        """
listen_addr: "127.0.0.1:1081"
log_file: "proxy.log"
username: "user"
password: "pass"
idle_timeout: 30
nameservers: ["9.9.9.9"]
""",
    )
    config = load_config(path)
    assert config.listen_address == ("127.0.0.1", 1081)
    assert config.credentials == Credentials("user", "pass")
    assert config.log_file == Path("proxy.log")
    assert config.idle_timeout == 30
    assert config.nameservers == ("9.9.9.9",)


def test_empty_config_uses_defaults(tmp_path):
    config = load_config(write_config(tmp_path, ""))
    assert config == ServerConfig()
    assert config.credentials is None


def test_missing_config_file(tmp_path):
    with pytest.raises(ConfigError):
        load_config(tmp_path / "missing.yaml")


@pytest.mark.parametrize(
    "text",
    [
        "- not\n- a mapping\n",
        "listen_addr: [unclosed\n",
        "username: only-user\n",
        "listen_port: 1080\n",
        "idle_timeout: -1\n",
        "listen_addr: 'localhost'\n",
    ],
)
def test_invalid_config(tmp_path, text):
    with pytest.raises(ConfigError):
        load_config(write_config(tmp_path, text))


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("0.0.0.0:1080", ("0.0.0.0", 1080)),
        ("[::1]:1080", ("::1", 1080)),
        ("localhost:0", ("localhost", 0)),
    ],
)
def test_parse_host_port(value, expected):
    assert parse_host_port(value) == expected


@pytest.mark.parametrize("value", ["::1:1080", "host:port", "host:70000", ":1080"])
def test_parse_host_port_rejects(value):
    with pytest.raises(ConfigError):
        parse_host_port(value)


def test_credentials_repr_hides_password():
    assert "s3cret" not in repr(Credentials("alice", "s3cret"))


def test_cli_overrides(tmp_path):
    path = write_config(tmp_path, "username: user\npassword: pass\n")
    config = build_config(path, listen="127.0.0.1:2000", password="other")
    assert config.listen_addr == "127.0.0.1:2000"
    assert config.credentials == Credentials("user", "other")


def test_cli_default_path_missing_uses_defaults(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert build_config(Path("config.yaml")) == ServerConfig()


def test_cli_username_without_password(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    with pytest.raises(ConfigError):
        build_config(Path("config.yaml"), username="alice")


def test_serve_exits_on_missing_config(tmp_path):
    result = runner.invoke(app, ["serve", "--config", str(tmp_path / "missing.yaml")])
    assert result.exit_code == 1


def test_serve_exits_on_bind_failure(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("socks5_relay.cmd.cli.configure_logging", lambda *args, **kwargs: None)
    with socket.create_server(("127.0.0.1", 0)) as taken:
        port = taken.getsockname()[1]
        result = runner.invoke(app, ["serve", "--listen", f"127.0.0.1:{port}"])
    assert result.exit_code == 1

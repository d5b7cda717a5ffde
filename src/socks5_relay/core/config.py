"""Server configuration.

The configuration is loaded once at startup from a YAML file and turned into
an immutable ``ServerConfig`` that is passed explicitly to the server. Every
connection handler reads it through its server; nothing in the package keeps
configuration in module-level state.

Example:
    config = load_config(Path("config.yaml"))
    run_server(config)

Example config.yaml:
    listen_addr: "0.0.0.0:1080"
    log_file: "socks5.log"
    username: "user"
    password: "secret"
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Final

import yaml

from socks5_relay.core.exceptions import ConfigError

DEFAULT_LISTEN_ADDR: Final = "0.0.0.0:1080"
DEFAULT_HANDSHAKE_TIMEOUT: Final = 10.0  # seconds
DEFAULT_IDLE_TIMEOUT: Final = 300.0  # seconds
DEFAULT_CONNECT_TIMEOUT: Final = 10.0  # seconds
DEFAULT_NAMESERVERS: Final = (
    "1.1.1.1",  # Cloudflare
    "8.8.8.8",  # Google
    "9.9.9.9",  # Quad9
)

KNOWN_KEYS: Final = frozenset(
    {
        "listen_addr",
        "log_file",
        "username",
        "password",
        "handshake_timeout",
        "idle_timeout",
        "connect_timeout",
        "nameservers",
    }
)


@dataclass(frozen=True)
class Credentials:
    """Username and password accepted by the server."""

    username: str
    password: str

    def __repr__(self) -> str:
        return f"Credentials(username={self.username!r}, password='***')"


@dataclass(frozen=True)
class ServerConfig:
    """Immutable server configuration.

    Attributes:
        listen_addr: Address to listen on, ``host:port`` or ``[v6]:port``
        credentials: Accepted credentials, or None to disable username/password
        log_file: Optional path of the log file sink
        handshake_timeout: Per-read timeout while negotiating, in seconds
        idle_timeout: Inactivity timeout while relaying, in seconds
        connect_timeout: Timeout for upstream TCP connects, in seconds
        nameservers: Nameservers for the fallback DNS resolver
    """

    listen_addr: str = DEFAULT_LISTEN_ADDR
    credentials: Credentials | None = None
    log_file: Path | None = None
    handshake_timeout: float = DEFAULT_HANDSHAKE_TIMEOUT
    idle_timeout: float = DEFAULT_IDLE_TIMEOUT
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    nameservers: tuple[str, ...] = field(default=DEFAULT_NAMESERVERS)

    def __post_init__(self) -> None:
        parse_host_port(self.listen_addr)
        for name in ("handshake_timeout", "idle_timeout", "connect_timeout"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int | float) or value <= 0:
                raise ConfigError(f"{name} must be a positive number, got {value!r}")

    @property
    def listen_address(self) -> tuple[str, int]:
        """The listen address as a ``(host, port)`` tuple."""
        return parse_host_port(self.listen_addr)


def parse_host_port(value: str) -> tuple[str, int]:
    """Split ``host:port`` (or ``[v6]:port``) into its parts.

    Raises:
        ConfigError: If the value is not a valid address
    """
    host, sep, port_text = value.rpartition(":")
    if not sep or not host:
        raise ConfigError(f"invalid listen address {value!r}, expected host:port")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    elif ":" in host:
        raise ConfigError(f"IPv6 listen address {value!r} must be bracketed")

    try:
        port = int(port_text)
    except ValueError as exc:
        raise ConfigError(f"invalid port in listen address {value!r}") from exc
    if not 0 <= port <= 65535:
        raise ConfigError(f"port {port} out of range in listen address {value!r}")
    return host, port


def _build_credentials(data: dict[str, Any]) -> Credentials | None:
    username = data.get("username")
    password = data.get("password")
    if username is None and password is None:
        return None
    if username is None or password is None:
        raise ConfigError("username and password must be set together")
    return Credentials(str(username), str(password))


def config_from_mapping(data: dict[str, Any]) -> ServerConfig:
    """Build a ServerConfig from a parsed config mapping.

    Raises:
        ConfigError: For unknown keys or invalid values
    """
    unknown = set(data) - KNOWN_KEYS
    if unknown:
        raise ConfigError(f"unknown config keys: {', '.join(sorted(unknown))}")

    kwargs: dict[str, Any] = {"credentials": _build_credentials(data)}
    if "listen_addr" in data:
        kwargs["listen_addr"] = str(data["listen_addr"])
    if data.get("log_file"):
        kwargs["log_file"] = Path(data["log_file"])
    for name in ("handshake_timeout", "idle_timeout", "connect_timeout"):
        if name in data:
            kwargs[name] = data[name]
    if "nameservers" in data:
        nameservers = data["nameservers"]
        if not isinstance(nameservers, list) or not nameservers:
            raise ConfigError("nameservers must be a non-empty list")
        kwargs["nameservers"] = tuple(str(ns) for ns in nameservers)

    return ServerConfig(**kwargs)


def load_config(path: Path) -> ServerConfig:
    """Load the server configuration from a YAML file.

    Args:
        path: Path of the YAML config file

    Returns:
        ServerConfig: The validated configuration

    Raises:
        ConfigError: If the file cannot be read or is invalid
    """
    try:
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as exc:
        raise ConfigError(f"failed to read config file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"failed to parse config file {path}: {exc}") from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a mapping")
    return config_from_mapping(data)

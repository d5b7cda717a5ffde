"""Command-line interface for the SOCKS5 proxy server.

This module provides the main command-line interface for the proxy server, handling:
- Configuration loading from YAML with command-line overrides
- Logging setup
- Server startup and shutdown
- Error reporting

Startup failures (unreadable config, unopenable log file, bind failure)
exit with a non-zero status. Failures of individual client connections
never stop the server.

Example:
    # Run from command line:
    $ socks5-relay serve --config config.yaml
    $ python -m socks5_relay serve --listen 127.0.0.1:1080 --username user --password secret
"""

import dataclasses
from pathlib import Path

import typer
from loguru import logger
from rich.console import Console

from socks5_relay import __version__
from socks5_relay.core.config import Credentials, ServerConfig, load_config
from socks5_relay.core.exceptions import ConfigError
from socks5_relay.core.proxy import run_server
from socks5_relay.core.utils.log_config import configure_logging

DEFAULT_CONFIG_PATH = Path("config.yaml")

console = Console(stderr=True)
app = typer.Typer(help="SOCKS5 proxy server with TCP and UDP relaying")


@app.callback(invoke_without_command=True)
def version_callback():
    """Show version information."""
    console.print(f"[cyan]SOCKS5 Relay v{__version__}[/cyan]")


def build_config(
    config_path: Path,
    listen: str | None = None,
    username: str | None = None,
    password: str | None = None,
    log_file: Path | None = None,
) -> ServerConfig:
    """Load the config file and apply command-line overrides.

    A missing file at the default path means "use defaults"; an explicitly
    given path must exist.

    Raises:
        ConfigError: If the resulting configuration is invalid
    """
    if config_path == DEFAULT_CONFIG_PATH and not config_path.exists():
        config = ServerConfig()
    else:
        config = load_config(config_path)

    overrides: dict = {}
    if listen is not None:
        overrides["listen_addr"] = listen
    if log_file is not None:
        overrides["log_file"] = log_file
    if username is not None or password is not None:
        current = config.credentials
        user = username if username is not None else (current.username if current else None)
        pwd = password if password is not None else (current.password if current else None)
        if user is None or pwd is None:
            raise ConfigError("username and password must be set together")
        overrides["credentials"] = Credentials(user, pwd)
    return dataclasses.replace(config, **overrides) if overrides else config


@app.command(name="serve")
def serve(
    config_path: Path = typer.Option(
        DEFAULT_CONFIG_PATH, "--config", "-c", help="Path of the YAML config file"
    ),
    listen: str | None = typer.Option(None, "--listen", "-l", help="Listen address, host:port"),
    username: str | None = typer.Option(None, "--username", "-u", help="Username for authentication"),
    password: str | None = typer.Option(None, "--password", "-p", help="Password for authentication"),
    log_file: Path | None = typer.Option(None, "--log-file", help="Write logs to this file"),
    debug: bool = typer.Option(
        default=False,
        help="Enable debug logging",
    ),
):
    """Start the SOCKS5 proxy server."""
    try:
        config = build_config(config_path, listen, username, password, log_file)
    except ConfigError as e:
        console.print(f"[red]Configuration error: {e}")
        raise typer.Exit(1) from e

    try:
        configure_logging(config.log_file, debug=debug)
    except OSError as e:
        console.print(f"[red]Failed to open log file {config.log_file}: {e}")
        raise typer.Exit(1) from e

    auth = "username/password" if config.credentials else "no authentication"
    logger.info(f"Starting SOCKS5 proxy server on {config.listen_addr} ({auth})")

    try:
        run_server(config)
    except OSError as e:
        logger.error(f"Listen error: {e}")
        console.print(f"[red]Failed to listen on {config.listen_addr}: {e}")
        raise typer.Exit(1) from e


if __name__ == "__main__":
    app()

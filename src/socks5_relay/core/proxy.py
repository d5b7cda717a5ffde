"""Core proxy functionality and main entry point for the SOCKS proxy server.

This module serves as the main entry point for the SOCKS proxy server functionality.
It provides a clean interface to the underlying proxy implementation by exposing
only the necessary components through its public API.

Example:
    from socks5_relay.core.proxy import ServerConfig, run_server

    # Start a SOCKS proxy server on localhost:1080
    run_server(ServerConfig(listen_addr="127.0.0.1:1080"))

Attributes:
    __all__ (list): List of public components exposed by this module
"""

from .config import ServerConfig, load_config
from .lib import SocksProxy, run_server

__all__ = ["load_config", "run_server", "ServerConfig", "SocksProxy"]

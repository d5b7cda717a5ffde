"""SOCKS proxy server implementation.

This module implements the listening side of the proxy server:
- A threading TCP server that spawns a handler thread per connection
- Explicit configuration, statistics and resolver objects shared read-only
  by every handler
- IPv4 and IPv6 listen addresses
- Clean shutdown with a traffic summary

Example:
    config = ServerConfig(listen_addr="127.0.0.1:1080")
    run_server(config)
"""

import contextlib
import socket
import socketserver

from loguru import logger

from socks5_relay.core.config import ServerConfig
from socks5_relay.core.lib.dns_handler import DNSResolver
from socks5_relay.core.lib.proxy_stats import ProxyStats

from .socks_handler import SocksHandler


class SocksProxy(socketserver.ThreadingMixIn, socketserver.TCPServer):
    """SOCKS proxy server implementation."""

    allow_reuse_address = True
    daemon_threads = True
    block_on_close = False
    request_queue_size = 100

    def __init__(
        self,
        config: ServerConfig,
        stats: ProxyStats | None = None,
        resolver: DNSResolver | None = None,
        *,
        bind_and_activate: bool = True,
    ) -> None:
        """Create the server and, by default, bind and listen.

        Args:
            config: Server configuration, shared read-only with every handler
            stats: Statistics tracker, a new one by default
            resolver: Name resolver, built from the configured nameservers by default
            bind_and_activate: Whether to bind and listen immediately

        Raises:
            OSError: If the listen address cannot be bound
        """
        self.config = config
        self.stats = stats or ProxyStats()
        self.resolver = resolver or DNSResolver(config.nameservers)
        host, _ = config.listen_address
        if ":" in host:
            self.address_family = socket.AF_INET6
        super().__init__(config.listen_address, SocksHandler, bind_and_activate)

    def server_bind(self) -> None:
        """Bind the server socket with reuse options."""
        self.socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        super().server_bind()

    def handle_error(self, request, client_address) -> None:
        """Log errors that escaped a handler instead of printing them."""
        logger.exception(f"Unhandled error for connection from {client_address}")


def run_server(config: ServerConfig) -> None:
    """Bind the server and serve until interrupted.

    Args:
        config: Server configuration

    Raises:
        OSError: If the listen address cannot be bound
    """
    server = SocksProxy(config)
    host, port = server.server_address[:2]
    logger.info(f"SOCKS5 server is running on {host}:{port}")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    finally:
        with contextlib.suppress(OSError):
            server.server_close()
        logger.info(f"Server closed: {server.stats.summary()}")

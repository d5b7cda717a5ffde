"""SOCKS protocol handler implementation for the proxy server.

This module implements the per-connection side of RFC 1928, running each
phase in order on the accepted socket:
- Authentication method negotiation
- Username/password authentication (RFC 1929) when negotiated
- Request parsing (CONNECT and UDP ASSOCIATE)
- TCP relaying or UDP association serving

Any ``ProxyError`` raised by a phase ends only the current connection, after
it has been logged. The socket itself is closed by the server once
``handle`` returns.

Example:
    # The handler is automatically used by the SocksProxy server class
    server = SocksProxy(config)
    server.serve_forever()
"""

import socketserver

from loguru import logger

from socks5_relay.core.exceptions import (
    AuthenticationFailedError,
    ProxyError,
    TransportError,
    UpstreamDialError,
)
from socks5_relay.core.lib.handshake import AuthMethod, authenticate, negotiate_method
from socks5_relay.core.lib.request import RESP_SUCCESS, Command, read_request, send_reply
from socks5_relay.core.lib.tcp_relay import handle_connect
from socks5_relay.core.lib.udp_relay import UDPAssociation


class SocksHandler(socketserver.BaseRequestHandler):
    """Handle incoming SOCKS5 connections."""

    def setup(self) -> None:
        """Prepare per-connection state."""
        self.config = self.server.config
        self.stats = self.server.stats
        self.resolver = self.server.resolver
        self.peer = f"{self.client_address[0]}:{self.client_address[1]}"

    def _negotiate(self) -> None:
        """Select an authentication method and authenticate if required."""
        credentials = self.config.credentials
        method = negotiate_method(self.request, offer_user_pass=credentials is not None)
        if method is AuthMethod.USER_PASS:
            username = authenticate(self.request, credentials)
            logger.info(f"Client {self.peer} authenticated as {username!r}")

    def handle(self) -> None:
        """Handle incoming SOCKS5 connection."""
        logger.info(f"New connection from: {self.peer}")
        self.stats.connection_started()
        self.request.settimeout(self.config.handshake_timeout)
        try:
            self._negotiate()
            request = read_request(self.request)
            logger.debug(f"Client {self.peer} requested {request.command.name} {request.target}")

            if request.command is Command.CONNECT:
                send_reply(self.request, RESP_SUCCESS)
                handle_connect(
                    self.request,
                    request.target,
                    self.resolver,
                    self.stats,
                    connect_timeout=self.config.connect_timeout,
                    idle_timeout=self.config.idle_timeout,
                )
            else:
                self.request.settimeout(self.config.idle_timeout)
                with UDPAssociation(
                    self.request,
                    self.resolver,
                    self.stats,
                    idle_timeout=self.config.idle_timeout,
                ) as association:
                    association.serve()

        except AuthenticationFailedError as exc:
            logger.warning(f"Authentication error from {self.peer}: {exc}")
        except UpstreamDialError as exc:
            logger.warning(f"Dial remote error for {self.peer}: {exc}")
        except TransportError as exc:
            logger.info(f"Connection {self.peer} aborted: {exc}")
        except ProxyError as exc:
            logger.warning(f"Request error from {self.peer}: {exc}")
        except Exception:
            logger.exception(f"Error handling SOCKS connection from {self.peer}")
        finally:
            self.stats.connection_ended()
            logger.info(f"Connection from {self.peer} closed")

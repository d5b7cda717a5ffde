"""Custom exceptions for the proxy server.

Every failure the server can report derives from ``ProxyError`` so the
connection supervisor can contain it to a single client:
- Protocol violations during negotiation, authentication and requests
- Authentication failures
- Upstream dial and name resolution failures
- Transport (read/write) failures on client sockets
- Malformed UDP datagrams, which are dropped rather than fatal
- Configuration errors raised at startup

Example:
    try:
        method = negotiate_method(conn, offer_user_pass=True)
    except NoAcceptableMethodError:
        logger.warning("Client offered no usable authentication method")
"""


class ProxyError(Exception):
    """Base exception for proxy errors."""


class ProtocolError(ProxyError):
    """Raised when a peer violates the SOCKS5 wire protocol."""


class ProtocolVersionError(ProtocolError):
    """Raised when a message carries an unsupported protocol version."""


class UnsupportedAuthVersionError(ProtocolVersionError):
    """Raised when the username/password sub-negotiation version is not 1."""


class UnsupportedMethodError(ProtocolError):
    """Raised when authentication method negotiation fails."""


class NoAcceptableMethodError(UnsupportedMethodError):
    """Raised when none of the offered authentication methods is acceptable."""


class UnsupportedAddressTypeError(ProtocolError):
    """Raised for an address type other than IPv4, domain or IPv6."""

    def __init__(self, address_type: int) -> None:
        super().__init__(f"unsupported address type 0x{address_type:02x}")
        self.address_type = address_type


class InvalidAddressError(ProtocolError):
    """Raised when an address cannot be represented on the wire."""


class UnsupportedCommandError(ProtocolError):
    """Raised for a request command other than CONNECT or UDP ASSOCIATE."""

    def __init__(self, command: int) -> None:
        super().__init__(f"unsupported command 0x{command:02x}")
        self.command = command


class MalformedDatagramError(ProtocolError):
    """Raised when a UDP relay datagram cannot be parsed."""


class AuthenticationFailedError(ProxyError):
    """Raised when username/password authentication fails."""


class UpstreamDialError(ProxyError):
    """Raised when the requested destination cannot be reached."""


class TransportError(ProxyError):
    """Base exception for socket I/O failures."""


class TransportReadError(TransportError):
    """Raised when reading from a peer fails or ends early."""


class TransportWriteError(TransportError):
    """Raised when writing to a peer fails."""


class DNSResolutionError(ProxyError):
    """Raised when DNS resolution fails."""


class ConfigError(ProxyError):
    """Raised when the server configuration is missing or invalid."""

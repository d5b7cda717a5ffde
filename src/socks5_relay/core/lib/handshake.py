"""Authentication method negotiation and username/password authentication.

Implements the opening exchange of RFC 1928 and the sub-negotiation of
RFC 1929:
- Method selection, preferring username/password over no authentication
- Username/password verification against the configured credentials

Each phase reads a fully determined number of bytes before writing its
reply, and every negative reply is written before the error is raised.
"""

import hmac
import socket
from enum import IntEnum
from typing import Final

from loguru import logger

from socks5_relay.core.config import Credentials
from socks5_relay.core.exceptions import (
    AuthenticationFailedError,
    NoAcceptableMethodError,
    ProtocolVersionError,
    UnsupportedAuthVersionError,
)
from socks5_relay.core.lib.transport import recv_exact, send_all

SOCKS_VERSION: Final = 0x05
AUTH_VERSION: Final = 0x01

AUTH_SUCCESS: Final = 0x00
AUTH_FAILURE: Final = 0xFF


class AuthMethod(IntEnum):
    """Authentication method identifiers."""

    NO_AUTH = 0x00
    USER_PASS = 0x02
    NO_ACCEPTABLE = 0xFF


def select_method(offered: bytes, *, offer_user_pass: bool) -> AuthMethod:
    """Choose a method from the client's offer.

    The preference order is fixed: username/password when the server has
    credentials, then no authentication.
    """
    if offer_user_pass and AuthMethod.USER_PASS in offered:
        return AuthMethod.USER_PASS
    if AuthMethod.NO_AUTH in offered:
        return AuthMethod.NO_AUTH
    return AuthMethod.NO_ACCEPTABLE


def negotiate_method(conn: socket.socket, *, offer_user_pass: bool) -> AuthMethod:
    """Read the client greeting and reply with the selected method.

    Args:
        conn: Freshly accepted client socket
        offer_user_pass: Whether username/password may be selected

    Returns:
        AuthMethod: The selected method, never NO_ACCEPTABLE

    Raises:
        ProtocolVersionError: If the greeting is not SOCKS5
        NoAcceptableMethodError: If no offered method is acceptable
    """
    version, nmethods = recv_exact(conn, 2)
    if version != SOCKS_VERSION:
        raise ProtocolVersionError(f"unsupported SOCKS version {version}")

    offered = recv_exact(conn, nmethods)
    logger.debug(f"Offered methods: {list(offered)}")

    method = select_method(offered, offer_user_pass=offer_user_pass)
    send_all(conn, bytes([SOCKS_VERSION, method]))
    if method is AuthMethod.NO_ACCEPTABLE:
        raise NoAcceptableMethodError(f"no acceptable method in {list(offered)}")
    return method


def authenticate(conn: socket.socket, credentials: Credentials) -> str:
    """Run the username/password sub-negotiation.

    Args:
        conn: Client socket after USER_PASS was negotiated
        credentials: Expected username and password

    Returns:
        str: The authenticated username

    Raises:
        UnsupportedAuthVersionError: If the sub-negotiation version is not 1
        AuthenticationFailedError: If the username or password is wrong
    """
    version, ulen = recv_exact(conn, 2)
    if version != AUTH_VERSION:
        raise UnsupportedAuthVersionError(f"unsupported auth version {version}")

    username = recv_exact(conn, ulen)
    (plen,) = recv_exact(conn, 1)
    password = recv_exact(conn, plen)

    # Both comparisons always run
    user_ok = hmac.compare_digest(username, credentials.username.encode())
    pass_ok = hmac.compare_digest(password, credentials.password.encode())
    if not (user_ok and pass_ok):
        send_all(conn, bytes([AUTH_VERSION, AUTH_FAILURE]))
        raise AuthenticationFailedError(f"invalid credentials for user {username!r}")

    send_all(conn, bytes([AUTH_VERSION, AUTH_SUCCESS]))
    return username.decode(errors="replace")

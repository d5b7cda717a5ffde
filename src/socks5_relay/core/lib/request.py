"""SOCKS5 request parsing and replies."""

import functools
import socket
import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Final

from socks5_relay.core.exceptions import (
    ProtocolVersionError,
    UnsupportedAddressTypeError,
    UnsupportedCommandError,
)
from socks5_relay.core.lib.address import (
    UNSPECIFIED_ADDRESS,
    TargetAddress,
    encode_address,
    read_address,
)
from socks5_relay.core.lib.handshake import SOCKS_VERSION
from socks5_relay.core.lib.transport import recv_exact, send_all


class Command(IntEnum):
    """Request commands supported by the server."""

    CONNECT = 0x01
    UDP_ASSOCIATE = 0x03


# Reply codes
RESP_SUCCESS: Final = 0x00
RESP_CMD_NOT_SUPPORTED: Final = 0x07
RESP_ADDR_NOT_SUPPORTED: Final = 0x08


@dataclass(frozen=True)
class Request:
    """A parsed client request."""

    command: Command
    target: TargetAddress


def build_reply(status: int, bind: TargetAddress = UNSPECIFIED_ADDRESS) -> bytes:
    """Build a reply message carrying ``bind`` as the bound address."""
    return struct.pack("!BBB", SOCKS_VERSION, status, 0x00) + encode_address(bind)


def send_reply(conn: socket.socket, status: int, bind: TargetAddress = UNSPECIFIED_ADDRESS) -> None:
    """Send a reply message to the client."""
    send_all(conn, build_reply(status, bind))


def read_request(conn: socket.socket) -> Request:
    """Read a request header and its destination address.

    Unsupported commands and address types are answered with the matching
    negative reply before the error is raised.

    Raises:
        ProtocolVersionError: If the request is not SOCKS5
        UnsupportedCommandError: For commands other than CONNECT and UDP ASSOCIATE
        UnsupportedAddressTypeError: For an unknown address type
    """
    version, cmd, _, addr_type = recv_exact(conn, 4)
    if version != SOCKS_VERSION:
        raise ProtocolVersionError(f"unsupported SOCKS version {version} in request")

    try:
        command = Command(cmd)
    except ValueError:
        send_reply(conn, RESP_CMD_NOT_SUPPORTED)
        raise UnsupportedCommandError(cmd) from None

    try:
        target = read_address(functools.partial(recv_exact, conn), addr_type)
    except UnsupportedAddressTypeError:
        send_reply(conn, RESP_ADDR_NOT_SUPPORTED)
        raise

    return Request(command, target)

"""SOCKS5 address encoding and decoding.

A SOCKS5 address on the wire is an address-type byte followed by the address
and a two-byte big-endian port:
- ``0x01`` IPv4: 4 bytes
- ``0x03`` domain name: 1 length byte and that many bytes
- ``0x04`` IPv6: 16 bytes

The same codec serves stream requests (reading from a socket) and UDP relay
datagrams (reading from a buffer), so both paths reject truncated or
mismatched addresses identically.

Example:
    target = read_address(functools.partial(recv_exact, conn), atyp)
    buf = encode_address(target)
"""

import socket
import struct
from collections.abc import Callable
from dataclasses import dataclass
from enum import IntEnum
from typing import Final

from socks5_relay.core.exceptions import (
    InvalidAddressError,
    MalformedDatagramError,
    UnsupportedAddressTypeError,
)

MAX_DOMAIN_LENGTH: Final = 255

Reader = Callable[[int], bytes]


class AddressType(IntEnum):
    """Address type byte values."""

    IPV4 = 0x01
    DOMAIN = 0x03
    IPV6 = 0x04


@dataclass(frozen=True)
class TargetAddress:
    """Destination requested by a client.

    Attributes:
        kind: Wire address type
        host: Dotted-decimal IPv4, domain name, or colon-hex IPv6
        port: Destination port
    """

    kind: AddressType
    host: str
    port: int

    def __str__(self) -> str:
        if self.kind is AddressType.IPV6:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"


UNSPECIFIED_ADDRESS: Final = TargetAddress(AddressType.IPV4, "0.0.0.0", 0)


def read_address(read: Reader, address_type: int) -> TargetAddress:
    """Decode an address whose type byte has already been consumed.

    Args:
        read: Callable returning exactly the requested number of bytes
        address_type: The address type byte

    Returns:
        TargetAddress: The decoded address

    Raises:
        UnsupportedAddressTypeError: For an unknown address type
        InvalidAddressError: If a domain name is not valid text
    """
    if address_type == AddressType.IPV4:
        kind = AddressType.IPV4
        host = socket.inet_ntoa(read(4))
    elif address_type == AddressType.DOMAIN:
        kind = AddressType.DOMAIN
        length = read(1)[0]
        try:
            host = read(length).decode()
        except UnicodeDecodeError as exc:
            raise InvalidAddressError("domain name is not valid UTF-8") from exc
    elif address_type == AddressType.IPV6:
        kind = AddressType.IPV6
        host = socket.inet_ntop(socket.AF_INET6, read(16))
    else:
        raise UnsupportedAddressTypeError(address_type)

    (port,) = struct.unpack("!H", read(2))
    return TargetAddress(kind, host, port)


def encode_address(address: TargetAddress) -> bytes:
    """Encode an address as type byte, address bytes and port.

    Raises:
        InvalidAddressError: If the host does not fit its address type
    """
    try:
        if address.kind is AddressType.IPV4:
            raw = socket.inet_aton(address.host)
        elif address.kind is AddressType.IPV6:
            raw = socket.inet_pton(socket.AF_INET6, address.host)
        else:
            name = address.host.encode()
            if len(name) > MAX_DOMAIN_LENGTH:
                msg = f"domain name is {len(name)} bytes, at most {MAX_DOMAIN_LENGTH} allowed"
                raise InvalidAddressError(msg)
            raw = bytes([len(name)]) + name
    except OSError as exc:
        raise InvalidAddressError(f"invalid {address.kind.name} address {address.host!r}") from exc

    try:
        port = struct.pack("!H", address.port)
    except struct.error as exc:
        raise InvalidAddressError(f"port {address.port} out of range") from exc
    return bytes([address.kind]) + raw + port


class DatagramReader:
    """Sequential reader over a datagram buffer.

    Reading past the end raises MalformedDatagramError instead of returning
    a short slice.
    """

    def __init__(self, data: bytes, offset: int = 0) -> None:
        self._view = memoryview(data)
        self.offset = offset

    def __call__(self, size: int) -> bytes:
        end = self.offset + size
        if end > len(self._view):
            msg = f"datagram truncated: need {end} bytes, have {len(self._view)}"
            raise MalformedDatagramError(msg)
        chunk = self._view[self.offset : end].tobytes()
        self.offset = end
        return chunk

    def rest(self) -> bytes:
        """Return every byte after the current offset."""
        return self._view[self.offset :].tobytes()

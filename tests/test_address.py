"""Tests for the SOCKS5 address codec."""

import functools

import pytest

from socks5_relay.core.exceptions import (
    InvalidAddressError,
    MalformedDatagramError,
    UnsupportedAddressTypeError,
)
from socks5_relay.core.lib.address import (
    AddressType,
    DatagramReader,
    TargetAddress,
    encode_address,
    read_address,
)
from socks5_relay.core.lib.transport import recv_exact


def decode(data: bytes) -> TargetAddress:
    return read_address(DatagramReader(data, 1), data[0])


@pytest.mark.parametrize(
    "address",
    [
        TargetAddress(AddressType.IPV4, "127.0.0.1", 8080),
        TargetAddress(AddressType.IPV6, "2001:db8::1", 443),
        TargetAddress(AddressType.DOMAIN, "example.com", 80),
        TargetAddress(AddressType.DOMAIN, "", 0),
        TargetAddress(AddressType.DOMAIN, "a" * 255, 65535),
    ],
)
def test_encode_decode_round_trip(address):
    assert decode(encode_address(address)) == address


def test_ipv4_wire_layout():
    encoded = encode_address(TargetAddress(AddressType.IPV4, "127.0.0.1", 8080))
    assert encoded == bytes([0x01, 127, 0, 0, 1, 0x1F, 0x90])


def test_domain_length_prefix_matches_name():
    encoded = encode_address(TargetAddress(AddressType.DOMAIN, "x" * 200, 1))
    assert encoded[1] == 200
    assert len(encoded) == 1 + 1 + 200 + 2


def test_domain_longer_than_255_is_rejected():
    with pytest.raises(InvalidAddressError):
        encode_address(TargetAddress(AddressType.DOMAIN, "a" * 256, 80))


def test_invalid_ipv4_text_is_rejected():
    with pytest.raises(InvalidAddressError):
        encode_address(TargetAddress(AddressType.IPV4, "example.com", 80))


def test_ipv6_renders_colon_hex():
    data = bytes([0x04]) + bytes(15) + b"\x01" + b"\x00\x50"
    address = decode(data)
    assert address.host == "::1"
    assert str(address) == "[::1]:80"


def test_unsupported_address_type():
    with pytest.raises(UnsupportedAddressTypeError) as exc_info:
        read_address(DatagramReader(b"\x00" * 8), 0x02)
    assert exc_info.value.address_type == 0x02


def test_truncated_buffer_is_malformed():
    with pytest.raises(MalformedDatagramError):
        decode(bytes([0x01, 10, 0, 0]))


def test_domain_shorter_than_declared_is_malformed():
    with pytest.raises(MalformedDatagramError):
        decode(bytes([0x03, 10]) + b"short" + b"\x00\x50")


def test_read_from_stream(conn_pair):
    server_side, client_side = conn_pair
    client_side.sendall(b"\x0bexample.com\x01\xbb")
    address = read_address(functools.partial(recv_exact, server_side), 0x03)
    assert address == TargetAddress(AddressType.DOMAIN, "example.com", 443)

"""UDP relay for the UDP ASSOCIATE command.

An association binds an ephemeral UDP socket, tells the client its port over
the TCP control connection and then forwards every encapsulated datagram it
receives to the destination named in the datagram header:

    +-----+------+------+----------+----------+----------+
    | RSV | FRAG | ATYP | DST.ADDR | DST.PORT |   DATA   |
    +-----+------+------+----------+----------+----------+
    |  2  |  1   |  1   | Variable |    2     | Variable |
    +-----+------+------+----------+----------+----------+

Forwarding is one-way: each payload is sent from a fresh one-shot socket and
replies from destinations are not relayed back to the client. Fragmentation
is not supported, the FRAG byte is ignored.

Malformed datagrams and forwarding failures are dropped and logged. The
association closes when the control connection closes, when it stays idle
for the configured timeout, or when reading the relay socket fails.

Example:
    with UDPAssociation(conn, resolver, stats, idle_timeout=300) as association:
        association.serve()
"""

import selectors
import socket
from enum import Enum

from loguru import logger

from socks5_relay.core.exceptions import DNSResolutionError, MalformedDatagramError, ProxyError
from socks5_relay.core.lib.address import (
    UNSPECIFIED_ADDRESS,
    AddressType,
    DatagramReader,
    TargetAddress,
    read_address,
)
from socks5_relay.core.lib.dns_handler import DNSResolver
from socks5_relay.core.lib.proxy_stats import ProxyStats
from socks5_relay.core.lib.request import RESP_SUCCESS, send_reply

MIN_DATAGRAM_SIZE = 10
MAX_DATAGRAM_SIZE = 65536
HEADER_ADDR_OFFSET = 3
RELAY_BIND_HOST = "0.0.0.0"


class AssociationState(Enum):
    """Lifecycle of a UDP association."""

    OPEN = "open"
    SERVING = "serving"
    CLOSED = "closed"


def parse_datagram(data: bytes) -> tuple[TargetAddress, bytes]:
    """Split a relay datagram into its destination and payload.

    Raises:
        MalformedDatagramError: If the datagram is too short or truncated
        UnsupportedAddressTypeError: For an unknown address type
    """
    if len(data) < MIN_DATAGRAM_SIZE:
        raise MalformedDatagramError(f"datagram of {len(data)} bytes is too short")

    reader = DatagramReader(data, HEADER_ADDR_OFFSET)
    (address_type,) = reader(1)
    target = read_address(reader, address_type)
    return target, reader.rest()


class UDPAssociation:
    """Relay state for one UDP ASSOCIATE request."""

    def __init__(
        self,
        control: socket.socket,
        resolver: DNSResolver,
        stats: ProxyStats,
        *,
        idle_timeout: float,
    ) -> None:
        self.control = control
        self.resolver = resolver
        self.stats = stats
        self.idle_timeout = idle_timeout
        self.state = AssociationState.OPEN
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            self.sock.bind((RELAY_BIND_HOST, 0))
        except OSError:
            self.sock.close()
            raise

    @property
    def port(self) -> int:
        """Ephemeral port of the relay socket."""
        return self.sock.getsockname()[1]

    def __enter__(self) -> "UDPAssociation":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        """Release the relay socket."""
        self.state = AssociationState.CLOSED
        self.sock.close()

    def send_bound_address(self) -> None:
        """Reply to the client with the relay port."""
        bind = TargetAddress(AddressType.IPV4, UNSPECIFIED_ADDRESS.host, self.port)
        send_reply(self.control, RESP_SUCCESS, bind)

    def serve(self) -> None:
        """Reply to the client, then forward datagrams until the association ends."""
        self.send_bound_address()
        self.state = AssociationState.SERVING
        logger.info(f"UDP relay listening on port {self.port}")

        with selectors.DefaultSelector() as selector:
            selector.register(self.sock, selectors.EVENT_READ)
            selector.register(self.control, selectors.EVENT_READ)
            while self.state is AssociationState.SERVING:
                readable = {key.fileobj for key, _ in selector.select(self.idle_timeout)}
                if not readable:
                    logger.info(f"UDP association on port {self.port} idle, closing")
                    break

                if self.control in readable and not self._control_alive():
                    logger.info(
                        f"Control connection closed, ending UDP association on port {self.port}"
                    )
                    break

                if self.sock in readable:
                    try:
                        data, addr = self.sock.recvfrom(MAX_DATAGRAM_SIZE)
                    except OSError as exc:
                        logger.error(f"UDP read error: {exc}")
                        break
                    self.handle_datagram(data, addr)

        self.state = AssociationState.CLOSED

    def _control_alive(self) -> bool:
        """Drain the control connection, returning False once it is closed."""
        try:
            return bool(self.control.recv(1024))
        except OSError:
            return False

    def handle_datagram(self, data: bytes, addr: tuple) -> bool:
        """Forward one datagram, returning whether it was sent."""
        try:
            target, payload = parse_datagram(data)
        except ProxyError as exc:
            logger.info(f"Dropping invalid UDP packet from {addr[0]}:{addr[1]}: {exc}")
            self.stats.datagram_dropped()
            return False

        logger.debug(f"UDP request from {addr[0]}:{addr[1]} to {target}")
        try:
            self.forward(target, payload)
        except (DNSResolutionError, OSError) as exc:
            logger.warning(f"Failed to forward UDP packet to {target}: {exc}")
            self.stats.datagram_dropped()
            return False

        self.stats.datagram_forwarded(len(payload))
        return True

    def forward(self, target: TargetAddress, payload: bytes) -> None:
        """Send ``payload`` to ``target`` from a one-shot socket."""
        host = target.host
        if target.kind is AddressType.DOMAIN:
            host = self.resolver.resolve(target.host)

        family, socktype, proto, _, sockaddr = socket.getaddrinfo(
            host, target.port, type=socket.SOCK_DGRAM
        )[0]
        with socket.socket(family, socktype, proto) as upstream:
            upstream.connect(sockaddr)
            upstream.send(payload)

"""TCP relay for the CONNECT command.

Dials the requested destination and copies bytes in both directions until
each side reaches end-of-stream. The upstream-to-client direction runs in
its own thread, which is always joined before the relay returns, so no copy
outlives the connection that owns the sockets.
"""

import socket
import threading

from loguru import logger

from socks5_relay.core.exceptions import DNSResolutionError, UpstreamDialError
from socks5_relay.core.lib.address import AddressType, TargetAddress
from socks5_relay.core.lib.dns_handler import DNSResolver
from socks5_relay.core.lib.proxy_stats import ProxyStats
from socks5_relay.core.lib.transport import ActivityClock, pipe
from socks5_relay.core.utils.utils import format_bytes


def dial(target: TargetAddress, resolver: DNSResolver, timeout: float) -> socket.socket:
    """Open a TCP connection to ``target``.

    Raises:
        UpstreamDialError: If the name cannot be resolved or the connect fails
    """
    hosts = [target.host]
    if target.kind is AddressType.DOMAIN:
        try:
            hosts = resolver.resolve_all(target.host)
        except DNSResolutionError as exc:
            raise UpstreamDialError(f"cannot resolve {target}: {exc}") from exc

    # Try each resolved address in turn
    last_error: OSError | None = None
    for host in hosts:
        try:
            return socket.create_connection((host, target.port), timeout=timeout)
        except OSError as exc:
            logger.debug(f"Connect to {host}:{target.port} for {target} failed: {exc}")
            last_error = exc
    raise UpstreamDialError(f"cannot connect to {target}: {last_error}") from last_error


def relay(
    client: socket.socket,
    upstream: socket.socket,
    stats: ProxyStats,
    idle_timeout: float,
) -> tuple[int, int]:
    """Copy bytes between ``client`` and ``upstream`` in both directions.

    Returns:
        tuple[int, int]: Bytes copied client to upstream, and upstream to client
    """
    # Bounds a single stalled write; idleness is tracked per session
    client.settimeout(idle_timeout)
    upstream.settimeout(idle_timeout)
    clock = ActivityClock(idle_timeout)

    received = 0

    def _reverse() -> None:
        nonlocal received
        received = pipe(upstream, client, clock, lambda n: stats.update_bytes(0, n))

    reverse = threading.Thread(target=_reverse, name="relay-upstream", daemon=True)
    reverse.start()
    try:
        sent = pipe(client, upstream, clock, lambda n: stats.update_bytes(n, 0))
    finally:
        reverse.join()
    return sent, received


def handle_connect(
    client: socket.socket,
    target: TargetAddress,
    resolver: DNSResolver,
    stats: ProxyStats,
    *,
    connect_timeout: float,
    idle_timeout: float,
) -> None:
    """Dial ``target`` and relay until both directions are finished.

    Raises:
        UpstreamDialError: If the destination cannot be reached
    """
    logger.info(f"Forwarding request to: {target}")
    with dial(target, resolver, connect_timeout) as upstream:
        sent, received = relay(client, upstream, stats, idle_timeout)
    logger.info(
        f"Relay to {target} finished: sent {format_bytes(sent)}, received {format_bytes(received)}"
    )

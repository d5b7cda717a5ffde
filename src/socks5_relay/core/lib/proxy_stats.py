"""Statistics tracking for the SOCKS proxy server.

This module provides traffic statistics for the proxy server, including:
- Active and total connection counting
- Bytes relayed in each direction
- UDP datagrams forwarded and dropped
- Server uptime

Counters are shared by every connection thread of a server and are guarded
by a lock.

Example:
    stats = ProxyStats()
    stats.connection_started()
    stats.update_bytes(sent=1024, received=2048)
    logger.info(stats.summary())
"""

import threading
import time

from socks5_relay.core.utils.utils import format_bytes


class ProxyStats:
    """Thread-safe statistics tracker for SOCKS proxy server."""

    def __init__(self) -> None:
        """Initialize proxy statistics tracker with zeroed counters."""
        self.active_connections = 0
        self.total_connections = 0
        self.total_bytes_sent = 0
        self.total_bytes_received = 0
        self.datagrams_forwarded = 0
        self.datagrams_dropped = 0
        self.start_time = time.monotonic()
        self._lock = threading.Lock()

    def update_bytes(self, sent: int, received: int) -> None:
        """Update byte transfer statistics.

        Args:
            sent: Number of bytes sent from clients to destinations
            received: Number of bytes received from destinations
        """
        with self._lock:
            self.total_bytes_sent += sent
            self.total_bytes_received += received

    def datagram_forwarded(self, size: int) -> None:
        """Record a UDP payload forwarded to its destination."""
        with self._lock:
            self.datagrams_forwarded += 1
            self.total_bytes_sent += size

    def datagram_dropped(self) -> None:
        """Record a UDP datagram that was dropped."""
        with self._lock:
            self.datagrams_dropped += 1

    def connection_started(self) -> None:
        """Increment the active connection counter."""
        with self._lock:
            self.active_connections += 1
            self.total_connections += 1

    def connection_ended(self) -> None:
        """Decrement the active connection counter."""
        with self._lock:
            self.active_connections -= 1

    @property
    def uptime(self) -> float:
        """Seconds since the tracker was created."""
        return time.monotonic() - self.start_time

    def summary(self) -> str:
        """Return a one-line human-readable summary."""
        with self._lock:
            return (
                f"{self.total_connections} connections ({self.active_connections} active), "
                f"sent {format_bytes(self.total_bytes_sent)}, "
                f"received {format_bytes(self.total_bytes_received)}, "
                f"datagrams {self.datagrams_forwarded} forwarded / {self.datagrams_dropped} dropped, "
                f"uptime {self.uptime:.0f}s"
            )

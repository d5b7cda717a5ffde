"""Socket I/O helpers shared by the protocol phases and relays."""

import contextlib
import selectors
import socket
import time
from collections.abc import Callable
from typing import Final

from loguru import logger

from socks5_relay.core.exceptions import TransportReadError, TransportWriteError

BUFFER_SIZE: Final = 32768
POLL_INTERVAL: Final = 1.0  # seconds


def recv_exact(sock: socket.socket, size: int) -> bytes:
    """Read exactly ``size`` bytes from ``sock``.

    Args:
        sock: Connected stream socket
        size: Number of bytes to read

    Returns:
        bytes: The bytes read, always ``size`` long

    Raises:
        TransportReadError: If the peer closes early, the read times out
            or the socket fails
    """
    chunks = []
    remaining = size
    while remaining:
        try:
            chunk = sock.recv(remaining)
        except TimeoutError as exc:
            msg = f"timed out after reading {size - remaining} of {size} bytes"
            raise TransportReadError(msg) from exc
        except OSError as exc:
            raise TransportReadError(f"read failed: {exc}") from exc
        if not chunk:
            msg = f"connection closed after {size - remaining} of {size} bytes"
            raise TransportReadError(msg)
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def send_all(sock: socket.socket, data: bytes) -> None:
    """Write all of ``data`` to ``sock``, raising TransportWriteError on failure."""
    try:
        sock.sendall(data)
    except OSError as exc:
        raise TransportWriteError(f"write failed: {exc}") from exc


class ActivityClock:
    """Last-activity time shared by both directions of a relay session.

    A session is idle only when no direction has moved data for
    ``idle_timeout`` seconds.
    """

    def __init__(self, idle_timeout: float) -> None:
        self.idle_timeout = idle_timeout
        self.poll_interval = min(POLL_INTERVAL, idle_timeout)
        self._last_activity = time.monotonic()

    def touch(self) -> None:
        """Record that data moved."""
        self._last_activity = time.monotonic()

    def expired(self) -> bool:
        """Whether the session has been idle for ``idle_timeout``."""
        return time.monotonic() - self._last_activity >= self.idle_timeout


def pipe(
    src: socket.socket,
    dst: socket.socket,
    clock: ActivityClock,
    on_chunk: Callable[[int], None] | None = None,
) -> int:
    """Copy bytes from ``src`` to ``dst`` until EOF, session idleness or socket error.

    The write side of ``dst`` is shut down when ``src`` ends or fails so the
    peer behind ``dst`` observes end-of-stream. An idle session leaves
    ``dst`` untouched; the caller closes both sockets.

    Returns:
        int: Total number of bytes copied
    """
    total = 0
    idle = False
    with selectors.DefaultSelector() as selector:
        try:
            selector.register(src, selectors.EVENT_READ)
            while True:
                if not selector.select(clock.poll_interval):
                    if clock.expired():
                        idle = True
                        logger.debug(f"Copy stopped after {total} bytes: session idle")
                        break
                    continue
                data = src.recv(BUFFER_SIZE)
                if not data:
                    break
                clock.touch()
                dst.sendall(data)
                total += len(data)
                clock.touch()
                if on_chunk:
                    on_chunk(len(data))
        except (OSError, ValueError) as exc:
            # Resets and stalled writes end the copy the same way EOF does
            logger.debug(f"Copy stopped after {total} bytes: {exc}")
        finally:
            if not idle:
                with contextlib.suppress(OSError):
                    dst.shutdown(socket.SHUT_WR)
    return total

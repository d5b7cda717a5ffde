"""Shared fixtures: socket pairs, a running proxy and loopback peers."""

import contextlib
import queue
import socket
import threading
import time

import pytest

from socks5_relay.core.config import Credentials, ServerConfig
from socks5_relay.core.lib.proxy_server import SocksProxy

TIMEOUT = 5.0


@pytest.fixture
def conn_pair():
    """Return ``(server_side, client_side)`` of a connected socket pair."""
    server_side, client_side = socket.socketpair()
    server_side.settimeout(TIMEOUT)
    client_side.settimeout(TIMEOUT)
    yield server_side, client_side
    server_side.close()
    client_side.close()


@pytest.fixture
def credentials():
    return Credentials("alice", "s3cret")


@pytest.fixture
def make_proxy(credentials):
    """Start proxies on ephemeral loopback ports in background threads."""
    running = []

    def _start(idle_timeout: float = TIMEOUT, auth: Credentials | None = credentials) -> SocksProxy:
        config = ServerConfig(
            listen_addr="127.0.0.1:0",
            credentials=auth,
            handshake_timeout=TIMEOUT,
            idle_timeout=idle_timeout,
            connect_timeout=TIMEOUT,
        )
        server = SocksProxy(config)
        thread = threading.Thread(target=server.serve_forever, daemon=True)
        thread.start()
        running.append((server, thread))
        return server

    yield _start
    for server, thread in running:
        server.shutdown()
        server.server_close()
        thread.join(TIMEOUT)


@pytest.fixture
def proxy_server(make_proxy):
    return make_proxy()


def _echo(conn: socket.socket) -> None:
    with conn:
        while data := conn.recv(4096):
            conn.sendall(data)


@contextlib.contextmanager
def serving(listener: socket.socket, handler):
    """Run ``handler(conn)`` in a thread for every connection to ``listener``."""

    def _accept_loop():
        while True:
            try:
                conn, _ = listener.accept()
            except OSError:
                return
            threading.Thread(target=handler, args=(conn,), daemon=True).start()

    thread = threading.Thread(target=_accept_loop, daemon=True)
    thread.start()
    try:
        yield listener.getsockname()[1]
    finally:
        with contextlib.suppress(OSError):
            listener.shutdown(socket.SHUT_RDWR)
        listener.close()
        thread.join(TIMEOUT)


@pytest.fixture
def echo_server():
    """TCP echo server on loopback; yields its port."""
    with serving(socket.create_server(("127.0.0.1", 0)), _echo) as port:
        yield port


@pytest.fixture
def ipv6_echo_server():
    """TCP echo server on the IPv6 loopback; skips when IPv6 is unavailable."""
    if not socket.has_ipv6:
        pytest.skip("IPv6 not supported")
    try:
        listener = socket.create_server(("::1", 0), family=socket.AF_INET6)
    except OSError as exc:
        pytest.skip(f"IPv6 loopback unavailable: {exc}")
    with serving(listener, _echo) as port:
        yield port


@pytest.fixture
def udp_sink():
    """UDP socket on loopback that records what destinations receive."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(("127.0.0.1", 0))
    sock.settimeout(TIMEOUT)
    yield sock
    sock.close()


@pytest.fixture
def closed_port():
    """A loopback port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def slow_upstream():
    """TCP server that sends 25 single bytes 0.1 s apart, then closes."""

    def _trickle(conn: socket.socket) -> None:
        with conn:
            for i in range(25):
                conn.sendall(bytes([i]))
                time.sleep(0.1)

    with serving(socket.create_server(("127.0.0.1", 0)), _trickle) as port:
        yield port


@pytest.fixture
def silent_sink():
    """TCP server that never replies; yields its port and a queue of received data."""
    received: queue.Queue[bytes] = queue.Queue()

    def _drain(conn: socket.socket) -> None:
        chunks = []
        with conn:
            while data := conn.recv(4096):
                chunks.append(data)
        received.put(b"".join(chunks))

    with serving(socket.create_server(("127.0.0.1", 0)), _drain) as port:
        yield port, received

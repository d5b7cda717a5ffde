"""Core proxy library components."""

from .proxy_server import SocksProxy, run_server
from .proxy_stats import ProxyStats
from .socks_handler import SocksHandler

__all__ = [
    "ProxyStats",
    "run_server",
    "SocksHandler",
    "SocksProxy",
]

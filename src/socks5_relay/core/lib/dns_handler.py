"""DNS resolution using dnspython.

System DNS is tried first and its answers are kept in a small cache that is
bounded in size and expires entries after ``SYSTEM_CACHE_TTL``. When system
DNS fails, the configured nameservers are queried through dnspython, whose
``LRUCache`` honors record TTLs.
"""

import ipaddress
import socket
import threading
import time
from collections import OrderedDict
from collections.abc import Iterable
from typing import TYPE_CHECKING, NoReturn, cast

import dns.exception
import dns.resolver
from loguru import logger

from socks5_relay.core.config import DEFAULT_NAMESERVERS
from socks5_relay.core.exceptions import DNSResolutionError

if TYPE_CHECKING:
    from dns.resolver import Resolver

# DNS resolver constants
DEFAULT_TIMEOUT = 1.0  # seconds
DEFAULT_LIFETIME = 3.0  # seconds
DEFAULT_CACHE_SIZE = 1024  # entries
SYSTEM_CACHE_TTL = 60.0  # seconds
RECORD_TYPES = ("A", "AAAA")


def _ipv4_first(addresses: Iterable[str]) -> list[str]:
    """Deduplicate addresses, IPv4 before IPv6, otherwise in answer order."""
    unique = list(dict.fromkeys(addresses))
    return sorted(unique, key=lambda ip: ipaddress.ip_address(ip).version)


class DNSResolver:
    """Resolve domain names, falling back from system DNS to dnspython."""

    def __init__(
        self,
        nameservers: Iterable[str] = DEFAULT_NAMESERVERS,
        cache_size: int = DEFAULT_CACHE_SIZE,
        cache_ttl: float = SYSTEM_CACHE_TTL,
    ) -> None:
        """Initialize the DNS resolver.

        Args:
            nameservers: Nameservers queried when system DNS fails
            cache_size: Maximum number of names kept in each cache
            cache_ttl: Seconds a system DNS answer stays cached
        """
        self.nameservers = list(nameservers)
        self.resolver = cast("Resolver", dns.resolver.Resolver(configure=False))
        self.resolver.timeout = DEFAULT_TIMEOUT
        self.resolver.lifetime = DEFAULT_LIFETIME
        self.resolver.nameservers = self.nameservers
        self.resolver.cache = dns.resolver.LRUCache(cache_size)
        self.cache_size = cache_size
        self.cache_ttl = cache_ttl
        # domain -> (expires_at, addresses), oldest first
        self._resolve_cache: OrderedDict[str, tuple[float, list[str]]] = OrderedDict()
        self._lock = threading.Lock()

    def _cached(self, domain: str) -> list[str] | None:
        with self._lock:
            entry = self._resolve_cache.get(domain)
            if entry is None:
                return None
            expires_at, addresses = entry
            if time.monotonic() >= expires_at:
                del self._resolve_cache[domain]
                return None
            self._resolve_cache.move_to_end(domain)
            return addresses

    def _store(self, domain: str, addresses: list[str]) -> None:
        with self._lock:
            self._resolve_cache[domain] = (time.monotonic() + self.cache_ttl, addresses)
            self._resolve_cache.move_to_end(domain)
            while len(self._resolve_cache) > self.cache_size:
                self._resolve_cache.popitem(last=False)

    def _try_system_dns(self, domain: str) -> list[str]:
        """Try resolving using system DNS."""
        try:
            infos = socket.getaddrinfo(domain, None, type=socket.SOCK_STREAM)
        except (socket.gaierror, UnicodeError) as e:
            logger.debug(f"System DNS resolution failed for {domain}: {e}")
            return []
        return _ipv4_first(str(info[4][0]) for info in infos)

    def _try_configured_resolver(self, domain: str) -> list[str]:
        """Try resolving using the configured nameservers."""
        addresses = []
        for record_type in RECORD_TYPES:
            try:
                answer = self.resolver.resolve(domain, record_type)
                addresses.extend(str(rdata) for rdata in answer)
            except dns.exception.DNSException as e:
                logger.debug(f"Resolver {record_type} lookup failed for {domain}: {e}")
        return _ipv4_first(addresses)

    def _raise_dns_error(self, msg: str) -> NoReturn:
        """Raise a DNS resolution error.

        Args:
            msg: Error message

        Raises:
            DNSResolutionError: Always raised with the given message
        """
        raise DNSResolutionError(msg)

    def resolve_all(self, domain: str) -> list[str]:
        """Resolve domain name to every known IP address, IPv4 first.

        Raises:
            DNSResolutionError: If resolution fails
        """
        if cached := self._cached(domain):
            return cached

        if addresses := self._try_system_dns(domain):
            self._store(domain, addresses)
            return addresses

        if addresses := self._try_configured_resolver(domain):
            return addresses

        error_msg = f"Could not resolve {domain} using any available method"
        logger.warning(error_msg)
        self._raise_dns_error(error_msg)

    def resolve(self, domain: str) -> str:
        """Resolve domain name to IP address.

        Args:
            domain: Domain name to resolve

        Returns:
            str: Resolved IP address, IPv4 preferred

        Raises:
            DNSResolutionError: If resolution fails
        """
        return self.resolve_all(domain)[0]

"""Public and private IPv4 address lookup."""

import ipaddress
import socket
import time
from typing import Optional, Sequence, Tuple

import httpx
import psutil
from loguru import logger

from .error_handling import NetworkLookupError

PUBLIC_IP_SERVICES = (
    "https://api.ipify.org",
    "https://ipv4.icanhazip.com",
    "https://checkip.amazonaws.com",
)


def parse_ipv4(text: str) -> Optional[str]:
    """Return the address if ``text`` is a dotted IPv4 literal."""
    try:
        address = ipaddress.IPv4Address(text.strip())
    except ValueError:
        return None
    return str(address)


class NetworkInfo:
    """
    Looks up the machine's addresses and caches them.

    The cached values are read synchronously by the search path; only an
    explicit fetch goes to the network.
    """

    def __init__(self,
                 services: Sequence[str] = PUBLIC_IP_SERVICES,
                 timeout: float = 3.0,
                 cache_ttl: float = 300.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.services = tuple(services)
        self.transport = transport
        self.timeout = timeout
        self.cache_ttl = cache_ttl
        self._public: Optional[Tuple[str, float]] = None
        self._private: Optional[Tuple[str, float]] = None

    def _fresh(self, entry: Optional[Tuple[str, float]]) -> Optional[str]:
        if entry is None:
            return None
        value, fetched_at = entry
        if time.monotonic() - fetched_at > self.cache_ttl:
            return None
        return value

    @property
    def cached_public_ip(self) -> Optional[str]:
        return self._fresh(self._public)

    @property
    def cached_private_ip(self) -> Optional[str]:
        return self._fresh(self._private)

    async def fetch_public_ip(self) -> str:
        """Ask each echo service in turn; the first valid IPv4 answer wins."""
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            for url in self.services:
                try:
                    response = await client.get(url)
                    response.raise_for_status()
                except httpx.HTTPError as e:
                    logger.debug(f"Public IP lookup via {url} failed: {e}")
                    continue

                address = parse_ipv4(response.text)
                if address:
                    self._public = (address, time.monotonic())
                    logger.info(f"Public IP resolved via {url}")
                    return address
                logger.debug(f"Public IP lookup via {url} returned non-IPv4 payload")

        raise NetworkLookupError("No echo service returned a public IPv4 address")

    def private_ip(self) -> str:
        """First private, non-loopback IPv4 on an interface that is up."""
        stats = psutil.net_if_stats()
        for interface, addresses in psutil.net_if_addrs().items():
            if interface in stats and not stats[interface].isup:
                continue
            for entry in addresses:
                if entry.family != socket.AF_INET:
                    continue
                address = ipaddress.IPv4Address(entry.address)
                if address.is_private and not address.is_loopback and not address.is_link_local:
                    self._private = (str(address), time.monotonic())
                    return str(address)

        raise NetworkLookupError("No private IPv4 address on any active interface")

from __future__ import annotations

import ipaddress
import logging
import socket
from collections.abc import Callable, Iterable

import psutil

logger = logging.getLogger(__name__)

PREFIX_LENGTH = 24


def local_ipv4_addresses() -> list[ipaddress.IPv4Address]:
    """IPv4 addresses bound to local interfaces, loopback and link-local excluded."""
    addresses: list[ipaddress.IPv4Address] = []
    for _name, snics in psutil.net_if_addrs().items():
        for snic in snics:
            if snic.family != socket.AF_INET:
                continue
            try:
                address = ipaddress.IPv4Address(snic.address)
            except ValueError:
                continue
            if address.is_loopback or address.is_link_local:
                continue
            if address not in addresses:
                addresses.append(address)
    return addresses


class SubnetEnumerator:
    """Candidate hosts for the /24 networks this machine sits on."""

    def __init__(
        self,
        addresses: Callable[[], Iterable[ipaddress.IPv4Address]] = local_ipv4_addresses,
    ) -> None:
        self._addresses = addresses

    def local_addresses(self) -> list[ipaddress.IPv4Address]:
        return list(self._addresses())

    def prefixes(self) -> list[ipaddress.IPv4Network]:
        networks: list[ipaddress.IPv4Network] = []
        for address in self.local_addresses():
            network = ipaddress.IPv4Network(f"{address}/{PREFIX_LENGTH}", strict=False)
            if network not in networks:
                networks.append(network)
        logger.debug("Local prefixes: %s", ", ".join(str(n) for n in networks))
        return networks

    def candidates(self, network: ipaddress.IPv4Network) -> list[str]:
        own = set(self.local_addresses())
        return [str(host) for host in network.hosts() if host not in own]

"""MAC to live IP resolution.

Stages, each short-circuiting on success:

1. optional hint (last-known IP) confirmed by the health probe
2. OS neighbor table lookup
3. health-probe sweep of every local /24, first responder wins

Stages 2-3 run inside a bounded retry envelope so a host that is still
booting after a wake packet gets a chance to appear.
"""

from __future__ import annotations

import asyncio
import ipaddress
import logging
from collections.abc import Awaitable, Callable

from wakestream.config import DiscoveryConfig
from wakestream.models.validation import normalize_mac

from .health import HealthProbe
from .neighbors import NeighborTableReader
from .retry import retry_with_backoff
from .subnets import SubnetEnumerator

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]


class Resolver:
    def __init__(
        self,
        config: DiscoveryConfig | None = None,
        probe: HealthProbe | None = None,
        neighbors: NeighborTableReader | None = None,
        subnets: SubnetEnumerator | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        self.config = config or DiscoveryConfig()
        self.probe = probe or HealthProbe(
            timeout=self.config.probe_timeout,
            path=self.config.health_path,
            scheme=self.config.scheme,
        )
        self.neighbors = neighbors or NeighborTableReader()
        self.subnets = subnets or SubnetEnumerator()
        self._sleep = sleep
        self._on_progress = on_progress
        self.in_flight = 0
        self.max_in_flight = 0
        self.probes_dispatched = 0

    def _progress(self, message: str) -> None:
        logger.debug(message)
        if self._on_progress is not None:
            self._on_progress(message)

    async def _probe(self, ip: str, port: int) -> bool:
        self.in_flight += 1
        self.probes_dispatched += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            result = await self.probe.probe(ip, port, self.config.probe_timeout)
        finally:
            self.in_flight -= 1
        return result.alive

    async def sweep(self, network: ipaddress.IPv4Network, port: int) -> str | None:
        """Probe every candidate in ``network`` through a fixed-width worker pool."""
        candidates = self.subnets.candidates(network)
        self._progress(f"Scanning {network} ({len(candidates)} hosts)")
        cursor = 0
        winner: str | None = None

        async def worker() -> None:
            nonlocal cursor, winner
            while winner is None and cursor < len(candidates):
                ip = candidates[cursor]
                cursor += 1
                if await self._probe(ip, port) and winner is None:
                    winner = ip

        width = min(self.config.concurrency, len(candidates))
        await asyncio.gather(*(worker() for _ in range(width)))
        if winner is not None:
            logger.info("Found live host at %s in %s", winner, network)
        return winner

    async def lookup_neighbors(self, mac: str) -> str | None:
        ips = await self.neighbors.lookup(mac)
        return ips[0] if ips else None

    async def resolve_once(self, mac: str, port: int) -> str | None:
        ip = await self.lookup_neighbors(mac)
        if ip is not None:
            logger.info("Resolved %s to %s from neighbor table", mac, ip)
            return ip

        for network in self.subnets.prefixes():
            ip = await self.sweep(network, port)
            if ip is not None:
                return ip
        return None

    async def resolve(
        self, mac: str, port: int | None = None, hint: str | None = None
    ) -> str | None:
        """Resolve ``mac`` to a live IP, or ``None`` when the retry budget runs out.

        Raises InvalidMacError before any network activity.
        """
        mac = normalize_mac(mac)
        port = port or self.config.port

        if hint and await self._probe(hint, port):
            logger.info("Known address %s for %s is alive", hint, mac)
            return hint

        def announce(attempt: int) -> None:
            self._progress(
                f"Resolving {mac} (attempt {attempt}/{self.config.attempts})"
            )

        ip = await retry_with_backoff(
            lambda: self.resolve_once(mac, port),
            attempts=self.config.attempts,
            interval=self.config.backoff,
            sleep=self._sleep,
            on_attempt=announce,
        )
        if ip is None:
            logger.info("Could not resolve %s after %d attempts", mac, self.config.attempts)
        return ip

"""Host profile operations: resolution, liveness refresh, background rescans."""

from __future__ import annotations

import asyncio
import functools
import logging
import time

from wakestream.config import Settings
from wakestream.core.health import HealthProbe
from wakestream.core.periodic import PeriodicTask
from wakestream.core.resolver import Resolver
from wakestream.models import HostProfile, normalize_mac
from wakestream.storage import Database

logger = logging.getLogger(__name__)


class ProfileService:
    def __init__(
        self,
        db: Database,
        settings: Settings | None = None,
        resolver: Resolver | None = None,
        probe: HealthProbe | None = None,
    ) -> None:
        self.db = db
        self.settings = settings or Settings()
        discovery = self.settings.discovery
        self.probe = probe or HealthProbe(
            timeout=discovery.probe_timeout,
            path=discovery.health_path,
            scheme=discovery.scheme,
        )
        self.resolver = resolver or Resolver(discovery, probe=self.probe)
        self._inflight: dict[str, asyncio.Task[str | None]] = {}
        self._background = PeriodicTask(
            self.rescan_unknown, discovery.rescan_interval, name="rescan"
        )

    def is_resolving(self, profile_id: str) -> bool:
        return profile_id in self._inflight

    def list_profiles(self) -> list[HostProfile]:
        profiles = self.db.load_profiles()
        for profile in profiles:
            profile.resolving = profile.id in self._inflight
        return profiles

    def _require(self, profile_id: str) -> HostProfile:
        profile = self.db.get_profile(profile_id)
        if profile is None:
            raise KeyError(profile_id)
        return profile

    def edit_mac(self, profile_id: str, mac: str) -> HostProfile:
        """Store a new MAC; the old address and liveness are discarded."""
        return self.db.update_profile(profile_id, mac=normalize_mac(mac))

    async def resolve_profile(
        self,
        profile_id: str,
        neighbors_only: bool = False,
        port: int | None = None,
    ) -> str | None:
        """Resolve one profile and persist ``ip``/``online``.

        At most one resolution runs per profile. A call made while one is
        running waits for it and gets its result; its own arguments are
        ignored. ``port`` overrides the stored port for this resolution only.
        """
        profile = self._require(profile_id)
        task = self._inflight.get(profile.id)
        if task is None:
            task = asyncio.create_task(
                self._resolve(profile, neighbors_only, port or profile.port),
                name=f"resolve-{profile.id}",
            )
            self._inflight[profile.id] = task
            task.add_done_callback(functools.partial(self._forget, profile.id))
        else:
            logger.debug("Joining running resolution for %s", profile.name)
        return await asyncio.shield(task)

    def _forget(self, profile_id: str, task: asyncio.Task[str | None]) -> None:
        if self._inflight.get(profile_id) is task:
            del self._inflight[profile_id]

    async def _resolve(
        self, profile: HostProfile, neighbors_only: bool, port: int
    ) -> str | None:
        if neighbors_only:
            ip = await self.resolver.lookup_neighbors(profile.mac)
        else:
            ip = await self.resolver.resolve(profile.mac, port, hint=profile.ip)
        address = ip or profile.ip
        online = bool(await self.probe.probe(address, port))
        self.db.update_profile(profile.id, ip=address, online=online)
        logger.info(
            "%s: %s (%s)",
            profile.name,
            address or "not found",
            "online" if online else "offline",
        )
        return ip

    async def refresh_online(self) -> dict[str, bool]:
        """Re-probe every profile with a known address."""
        results: dict[str, bool] = {}
        for profile in self.db.load_profiles():
            if profile.ip is None:
                continue
            online = bool(await self.probe.probe(profile.ip, profile.port))
            if online != profile.online:
                self.db.update_profile(profile.id, online=online)
            results[profile.id] = online
        return results

    async def rescan_unknown(self) -> None:
        """Try to resolve every profile that has no address yet."""
        pending = [
            profile
            for profile in self.db.load_profiles()
            if profile.ip is None and profile.id not in self._inflight
        ]
        if not pending:
            return
        logger.debug("Background rescan of %d profile(s)", len(pending))
        await asyncio.gather(
            *(self.resolve_profile(p.id, neighbors_only=True) for p in pending)
        )

    def start_background(self) -> None:
        self._background.start()

    async def stop_background(self) -> None:
        await self._background.stop()

    async def wait_for_host(
        self,
        ip: str,
        port: int,
        timeout: float = 120.0,
        interval: float = 2.0,
    ) -> bool:
        """Poll the health endpoint until the host answers or ``timeout`` passes."""
        deadline = time.monotonic() + timeout
        while True:
            if await self.probe.probe(ip, port):
                return True
            if time.monotonic() + interval > deadline:
                return False
            await asyncio.sleep(interval)

    async def wait_until_up(
        self, profile_id: str, timeout: float | None = None, interval: float = 2.0
    ) -> str | None:
        """Wait for a just-woken host: its last address first, then a full resolve."""
        profile = self._require(profile_id)
        if timeout is None:
            timeout = self.settings.discovery.wake_timeout
        if profile.ip is not None and await self.wait_for_host(
            profile.ip, profile.port, timeout=timeout, interval=interval
        ):
            self.db.update_profile(profile.id, online=True)
            return profile.ip
        return await self.resolve_profile(profile.id)

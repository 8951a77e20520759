"""OS neighbor (ARP) table lookups."""

from __future__ import annotations

import asyncio
import logging
import re
import sys
from dataclasses import dataclass

from wakestream.models.validation import normalize_mac

logger = logging.getLogger(__name__)

_MAC_RE = re.compile(r"(?<![0-9a-f])([0-9a-f]{1,2}[:-]){5}[0-9a-f]{1,2}(?![0-9a-f])", re.I)
_IP_RE = re.compile(r"(?<![\d.])(\d{1,3}\.){3}\d{1,3}(?![\d.])")

COMMAND_TIMEOUT = 3.0


@dataclass(frozen=True)
class NeighborEntry:
    ip: str
    mac: str


def _pad_octets(raw: str) -> str:
    # macOS prints single-digit octets ("0:1b:2c:...")
    return ":".join(part.zfill(2) for part in re.split(r"[:-]", raw))


def parse_neighbor_table(text: str) -> list[NeighborEntry]:
    """Parse ``ip neigh``, ``arp -an`` or ``arp -a`` output."""
    entries: list[NeighborEntry] = []
    for line in text.splitlines():
        mac_match = _MAC_RE.search(line)
        ip_match = _IP_RE.search(line)
        if not mac_match or not ip_match:
            continue
        try:
            mac = normalize_mac(_pad_octets(mac_match.group(0)))
        except ValueError:
            continue
        if mac in ("00:00:00:00:00:00", "FF:FF:FF:FF:FF:FF"):
            continue
        entries.append(NeighborEntry(ip=ip_match.group(0), mac=mac))
    return entries


def default_commands(platform: str = sys.platform) -> list[list[str]]:
    if platform.startswith("win"):
        return [["arp", "-a"]]
    if platform == "darwin":
        return [["arp", "-an"]]
    return [["ip", "neigh", "show"], ["arp", "-an"]]


class NeighborTableReader:
    def __init__(
        self,
        commands: list[list[str]] | None = None,
        timeout: float = COMMAND_TIMEOUT,
    ) -> None:
        self.commands = commands if commands is not None else default_commands()
        self.timeout = timeout

    async def _run(self, command: list[str]) -> str:
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except (FileNotFoundError, PermissionError) as exc:
            logger.debug("Neighbor command %s unavailable: %s", command[0], exc)
            return ""
        try:
            stdout, _ = await asyncio.wait_for(process.communicate(), self.timeout)
        except (asyncio.TimeoutError, TimeoutError):
            process.kill()
            await process.wait()
            logger.debug("Neighbor command %s timed out", " ".join(command))
            return ""
        return stdout.decode("utf-8", errors="replace")

    async def read_table(self) -> list[NeighborEntry]:
        entries: list[NeighborEntry] = []
        for command in self.commands:
            entries.extend(parse_neighbor_table(await self._run(command)))
        return entries

    async def lookup(self, mac: str) -> list[str]:
        """Return IPs the neighbor table associates with ``mac``, in table order."""
        wanted = normalize_mac(mac)
        found: list[str] = []
        for entry in await self.read_table():
            if entry.mac == wanted and entry.ip not in found:
                found.append(entry.ip)
        if found:
            logger.debug("Neighbor table maps %s to %s", wanted, ", ".join(found))
        return found

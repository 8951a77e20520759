from __future__ import annotations

import asyncio
import logging
import socket

from wakestream.errors import WakeError
from wakestream.models.validation import mac_bytes, normalize_mac

logger = logging.getLogger(__name__)

BROADCAST_ADDRESS = "255.255.255.255"
WAKE_PORT = 9
SYNC_STREAM = b"\xff" * 6
MAC_REPEATS = 16


def build_magic_packet(mac: str) -> bytes:
    """Six 0xFF bytes followed by the MAC repeated 16 times (102 bytes)."""
    return SYNC_STREAM + mac_bytes(mac) * MAC_REPEATS


class WakeSignaler:
    """Fire-and-forget Wake-on-LAN sender.

    Success means the packet left this machine, not that the host woke up.
    """

    def __init__(self, broadcast: str = BROADCAST_ADDRESS, port: int = WAKE_PORT) -> None:
        self.broadcast = broadcast
        self.port = port

    def _send(self, packet: bytes) -> None:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
            sock.sendto(packet, (self.broadcast, self.port))

    async def wake(self, mac: str) -> None:
        """Broadcast the wake packet for ``mac``.

        Raises InvalidMacError before touching the network and WakeError when
        the packet could not be sent.
        """
        packet = build_magic_packet(mac)
        canonical = normalize_mac(mac)
        try:
            await asyncio.to_thread(self._send, packet)
        except OSError as exc:
            raise WakeError(f"Failed to send wake packet to {canonical}: {exc}") from exc
        logger.info("Sent wake packet for %s to %s:%d", canonical, self.broadcast, self.port)

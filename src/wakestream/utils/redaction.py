from __future__ import annotations

import ipaddress
from dataclasses import dataclass, field


@dataclass
class Redactor:
    """Masks host addresses for output that gets pasted into bug reports."""

    enabled: bool = True
    _macs: dict[str, int] = field(default_factory=dict)

    def redact_ip(self, ip: str | None) -> str:
        if ip is None:
            return ""
        if not self.enabled:
            return ip
        try:
            address = ipaddress.IPv4Address(ip)
        except ValueError:
            return ip
        return f"x.x.x.{address.packed[3]}"

    def redact_mac(self, mac: str) -> str:
        if not self.enabled:
            return mac
        octets = mac.split(":")
        if len(octets) != 6:
            return mac
        # same MAC, same placeholder within one listing
        number = self._macs.setdefault(mac, len(self._macs) + 1)
        return f"{':'.join(octets[:3])}:xx:xx:{number:02d}"

from __future__ import annotations

import asyncio

from wakestream.core import NeighborTableReader, parse_neighbor_table
from wakestream.core.neighbors import default_commands

LINUX_IP_NEIGH = """\
192.168.0.1 dev eth0 lladdr 00:11:22:33:44:55 REACHABLE
192.168.0.42 dev eth0 lladdr aa:bb:cc:dd:ee:ff STALE
192.168.0.99 dev eth0  FAILED
fe80::1 dev eth0 lladdr 00:11:22:33:44:55 router REACHABLE
"""

MACOS_ARP = """\
? (192.168.0.1) at 0:11:22:33:44:55 on en0 ifscope [ethernet]
? (192.168.0.42) at aa:bb:cc:d:e:f on en0 ifscope [ethernet]
? (192.168.0.255) at ff:ff:ff:ff:ff:ff on en0 ifscope [ethernet]
? (192.168.0.77) at (incomplete) on en0 ifscope [ethernet]
"""

WINDOWS_ARP = """\

Interface: 192.168.0.10 --- 0x4
  Internet Address      Physical Address      Type
  192.168.0.1           00-11-22-33-44-55     dynamic
  192.168.0.42          aa-bb-cc-dd-ee-ff     dynamic
  224.0.0.22            01-00-5e-00-00-16     static
"""


def test_parse_linux_ip_neigh():
    entries = parse_neighbor_table(LINUX_IP_NEIGH)
    assert [(e.ip, e.mac) for e in entries] == [
        ("192.168.0.1", "00:11:22:33:44:55"),
        ("192.168.0.42", "AA:BB:CC:DD:EE:FF"),
    ]


def test_parse_macos_arp_pads_octets_and_skips_broadcast():
    entries = parse_neighbor_table(MACOS_ARP)
    assert [(e.ip, e.mac) for e in entries] == [
        ("192.168.0.1", "00:11:22:33:44:55"),
        ("192.168.0.42", "AA:BB:CC:0D:0E:0F"),
    ]


def test_parse_windows_arp():
    entries = parse_neighbor_table(WINDOWS_ARP)
    assert ("192.168.0.42", "AA:BB:CC:DD:EE:FF") in [(e.ip, e.mac) for e in entries]
    assert len(entries) == 3


def test_default_commands_per_platform():
    assert default_commands("win32") == [["arp", "-a"]]
    assert default_commands("darwin") == [["arp", "-an"]]
    assert default_commands("linux")[0] == ["ip", "neigh", "show"]


def test_lookup_matches_normalized_mac(monkeypatch):
    reader = NeighborTableReader(commands=[["ip", "neigh", "show"]])

    async def fake_run(command):
        return LINUX_IP_NEIGH

    monkeypatch.setattr(reader, "_run", fake_run)
    assert asyncio.run(reader.lookup("aa-bb-cc-dd-ee-ff")) == ["192.168.0.42"]
    assert asyncio.run(reader.lookup("11:11:11:11:11:11")) == []


def test_missing_command_yields_no_entries():
    reader = NeighborTableReader(commands=[["wakestream-no-such-neighbor-tool"]])
    assert asyncio.run(reader.lookup("AA:BB:CC:DD:EE:FF")) == []

"""Data models for wakestream."""

from wakestream.models.host import (
    DEFAULT_PORT,
    AddressBook,
    HostProfile,
    PairingRecord,
)
from wakestream.models.session import SessionConfig, SessionState, StatsSnapshot
from wakestream.models.validation import is_valid_mac, mac_bytes, normalize_mac

__all__ = [
    "DEFAULT_PORT",
    "AddressBook",
    "HostProfile",
    "PairingRecord",
    "SessionConfig",
    "SessionState",
    "StatsSnapshot",
    "is_valid_mac",
    "mac_bytes",
    "normalize_mac",
]

"""wakestream - find a LAN host by MAC, wake it, and stream its desktop."""

from __future__ import annotations

from importlib.metadata import version

from .config import DiscoveryConfig, Settings, StreamConfig, get_settings
from .core import Resolver, SessionController, SessionNegotiator, WakeSignaler
from .models import HostProfile, PairingRecord, SessionConfig, StatsSnapshot
from .storage import Database

__all__ = [
    "Database",
    "DiscoveryConfig",
    "HostProfile",
    "PairingRecord",
    "Resolver",
    "SessionConfig",
    "SessionController",
    "SessionNegotiator",
    "Settings",
    "StatsSnapshot",
    "StreamConfig",
    "WakeSignaler",
    "__version__",
    "get_settings",
]

__version__ = version("wakestream")

from __future__ import annotations

from .controller import SessionController
from .health import HealthProbe, ProbeResult
from .input import (
    FitMode,
    GamepadPoller,
    GamepadSource,
    GamepadState,
    InputTransport,
    Viewport,
    map_pointer,
)
from .negotiator import SessionHandle, SessionNegotiator, order_codecs
from .neighbors import NeighborTableReader, parse_neighbor_table
from .periodic import PeriodicTask
from .resolver import Resolver
from .retry import retry_with_backoff
from .subnets import SubnetEnumerator
from .telemetry import FrameCounter, InboundCounters, TelemetrySampler, compute_snapshot
from .wake import WakeSignaler, build_magic_packet

__all__ = [
    "FitMode",
    "FrameCounter",
    "GamepadPoller",
    "GamepadSource",
    "GamepadState",
    "HealthProbe",
    "InboundCounters",
    "InputTransport",
    "NeighborTableReader",
    "PeriodicTask",
    "ProbeResult",
    "Resolver",
    "SessionController",
    "SessionHandle",
    "SessionNegotiator",
    "SubnetEnumerator",
    "TelemetrySampler",
    "Viewport",
    "WakeSignaler",
    "build_magic_packet",
    "compute_snapshot",
    "map_pointer",
    "order_codecs",
    "parse_neighbor_table",
    "retry_with_backoff",
]

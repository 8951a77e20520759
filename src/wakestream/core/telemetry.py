"""Per-second stream statistics.

aiortc reports packet counters and jitter on the ``inbound-rtp`` entry and
byte counters on the ``transport`` entry it belongs to. It does not report
frame counters, so those come from a :class:`FrameCounter` draining a relay
of the received video track.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from fractions import Fraction
from typing import Any, Protocol

from aiortc.mediastreams import MediaStreamError

from wakestream.models.session import StatsSnapshot

from .periodic import PeriodicTask

logger = logging.getLogger(__name__)

StatsCallback = Callable[[StatsSnapshot], None]

VIDEO_CLOCK_RATE = 90_000


class StatsSource(Protocol):
    async def getStats(self) -> Mapping[str, Any]: ...


def _field(report: Any, name: str, default: Any = None) -> Any:
    if isinstance(report, Mapping):
        return report.get(name, default)
    return getattr(report, name, default)


def find_inbound_video(reports: Iterable[Any]) -> Any | None:
    for report in reports:
        if _field(report, "type") == "inbound-rtp" and _field(report, "kind") == "video":
            return report
    return None


def find_transport(reports: Iterable[Any], transport_id: str | None) -> Any | None:
    """The transport entry with ``transport_id``, else the first transport."""
    transports = [r for r in reports if _field(r, "type") == "transport"]
    for report in transports:
        if _field(report, "id") == transport_id:
            return report
    return transports[0] if transports else None


class FrameCounter:
    """Consumes a video track and counts received and skipped frames.

    A frame is counted as dropped when the gap to the previous frame's
    presentation time spans more than one frame interval at ``expected_fps``.
    """

    def __init__(self, track: Any, expected_fps: int = 60) -> None:
        self.track = track
        self.expected_fps = expected_fps
        self.frames_decoded = 0
        self.frames_dropped = 0
        self._last_pts: int | None = None
        self._task: asyncio.Task[None] | None = None

    def observe(self, frame: Any) -> None:
        self.frames_decoded += 1
        pts = getattr(frame, "pts", None)
        time_base = getattr(frame, "time_base", None)
        if pts is None or time_base is None:
            return
        if self._last_pts is not None and pts > self._last_pts:
            gap = float((pts - self._last_pts) * Fraction(time_base))
            missed = round(gap * self.expected_fps) - 1
            if missed > 0:
                self.frames_dropped += missed
        self._last_pts = pts

    async def _run(self) -> None:
        while True:
            try:
                frame = await self.track.recv()
            except MediaStreamError:
                logger.debug("Video track ended after %d frames", self.frames_decoded)
                return
            self.observe(frame)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(
                self._run(), name="frame-counter"
            )

    async def stop(self) -> None:
        task, self._task = self._task, None
        stop_track = getattr(self.track, "stop", None)
        if stop_track is not None:
            stop_track()
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


@dataclass(frozen=True)
class InboundCounters:
    """Cumulative receive counters at one instant."""

    timestamp: float
    bytes_received: int = 0
    frames_decoded: int = 0
    packets_received: int = 0
    packets_lost: int = 0
    frames_dropped: int = 0
    jitter_ms: float = 0.0

    @classmethod
    def from_reports(
        cls,
        reports: Iterable[Any],
        timestamp: float,
        clock_rate: int = VIDEO_CLOCK_RATE,
        frames: FrameCounter | None = None,
    ) -> InboundCounters | None:
        """Read counters from a ``getStats()`` result; None without inbound video."""
        entries = list(reports)
        inbound = find_inbound_video(entries)
        if inbound is None:
            return None
        transport = find_transport(entries, _field(inbound, "transportId"))
        # jitter is in RTP timestamp units
        jitter = float(_field(inbound, "jitter") or 0)
        return cls(
            timestamp=timestamp,
            bytes_received=int(_field(transport, "bytesReceived") or 0),
            frames_decoded=frames.frames_decoded if frames is not None else 0,
            packets_received=int(_field(inbound, "packetsReceived") or 0),
            packets_lost=int(_field(inbound, "packetsLost") or 0),
            frames_dropped=frames.frames_dropped if frames is not None else 0,
            jitter_ms=jitter / (clock_rate or VIDEO_CLOCK_RATE) * 1000,
        )


def compute_snapshot(
    previous: InboundCounters | None, current: InboundCounters
) -> StatsSnapshot:
    """Rates between two counter readings; placeholder without a usable baseline."""
    if previous is None:
        return StatsSnapshot.placeholder()
    elapsed = current.timestamp - previous.timestamp
    if elapsed <= 0:
        return StatsSnapshot.placeholder()

    lost = current.packets_lost - previous.packets_lost
    received = current.packets_received - previous.packets_received
    total = lost + received
    loss = (lost / total) * 100 if total > 0 else 0.0

    return StatsSnapshot(
        fps=(current.frames_decoded - previous.frames_decoded) / elapsed,
        bitrate_mbps=(current.bytes_received - previous.bytes_received)
        * 8
        / elapsed
        / 1_000_000,
        jitter_ms=round(current.jitter_ms),
        packet_loss_percent=loss,
        frames_dropped=current.frames_dropped - previous.frames_dropped,
    )


class TelemetrySampler:
    """Turns a peer connection's cumulative counters into 1 Hz snapshots."""

    def __init__(
        self,
        peer: StatsSource,
        interval: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        clock_rate: int = VIDEO_CLOCK_RATE,
    ) -> None:
        self._peer = peer
        self._clock = clock
        self.clock_rate = clock_rate
        self.frames: FrameCounter | None = None
        self._previous: InboundCounters | None = None
        self._observers: list[StatsCallback] = []
        self._closed = False
        self._timer = PeriodicTask(self.sample, interval, name="telemetry")
        self.latest: StatsSnapshot = StatsSnapshot.placeholder()

    def on_stats(self, callback: StatsCallback) -> None:
        self._observers.append(callback)

    @property
    def running(self) -> bool:
        return self._timer.running

    def watch(self, track: Any, expected_fps: int = 60) -> FrameCounter | None:
        """Count frames on ``track``. Only the first video track is watched."""
        if self._closed or self.frames is not None:
            return None
        self.frames = FrameCounter(track, expected_fps)
        self.frames.start()
        return self.frames

    def _emit(self, snapshot: StatsSnapshot) -> None:
        self.latest = snapshot
        for callback in list(self._observers):
            try:
                callback(snapshot)
            except Exception:
                logger.exception("Stats observer failed")

    async def sample(self) -> StatsSnapshot | None:
        """Take one reading and notify observers. No-op once stopped."""
        if self._closed:
            return None
        reports = await self._peer.getStats()
        # the session may have been torn down while stats were collected
        if self._closed:
            return None

        current = InboundCounters.from_reports(
            reports.values(), self._clock(), self.clock_rate, self.frames
        )
        if current is None:
            snapshot = StatsSnapshot.placeholder()
        else:
            snapshot = compute_snapshot(self._previous, current)
            self._previous = current

        self._emit(snapshot)
        return snapshot

    def start(self) -> None:
        self._closed = False
        self._timer.start()

    async def stop(self) -> None:
        self._closed = True
        await self._timer.stop()
        if self.frames is not None:
            await self.frames.stop()

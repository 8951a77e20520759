"""Input events onto the session's data channel.

Messages are JSON objects, one per channel message:

    {"t": "mmoveAbs", "x": 0.5, "y": 0.5, "inside": 1, "ts": 1234.5}
    {"t": "mdown", "b": 0, "x": 0.5, "y": 0.5, "ts": ...}
    {"t": "mwheel", "dx": 0.0, "dy": -120.0, "ts": ...}
    {"t": "kdown", "k": "KeyA", "ts": ...}
    {"t": "gp", "id": "...", "index": 0, "axes": [...], "buttons": [...], "ts": ...}

Nothing is queued: an event that arrives while the channel is not open is
dropped. Pointer moves are coalesced to one message per frame; clicks, keys
and wheel steps go out immediately.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from .periodic import PeriodicTask

logger = logging.getLogger(__name__)

DEFAULT_VIDEO_SIZE = (1920, 1080)


class InputChannel(Protocol):
    readyState: str

    def send(self, data: str) -> None: ...


class FitMode(str, Enum):
    CONTAIN = "contain"
    COVER = "cover"
    FILL = "fill"
    SCALE_DOWN = "scale-down"


@dataclass
class Viewport:
    """Display element geometry and the stream's intrinsic size."""

    element_width: float
    element_height: float
    video_width: int = DEFAULT_VIDEO_SIZE[0]
    video_height: int = DEFAULT_VIDEO_SIZE[1]
    fit: FitMode = FitMode.CONTAIN

    def content_box(self) -> tuple[float, float, float, float]:
        """Return ``(offset_x, offset_y, width, height)`` of the drawn video."""
        rw, rh = self.element_width, self.element_height
        vw = self.video_width or DEFAULT_VIDEO_SIZE[0]
        vh = self.video_height or DEFAULT_VIDEO_SIZE[1]
        aspect = vw / vh
        fit = FitMode(self.fit)

        if fit is FitMode.FILL or rw <= 0 or rh <= 0:
            return 0.0, 0.0, rw, rh

        if fit is FitMode.SCALE_DOWN and vw <= rw and vh <= rh:
            return (rw - vw) / 2, (rh - vh) / 2, float(vw), float(vh)

        wider = rw / rh > aspect
        if fit is FitMode.COVER:
            wider = not wider
        if wider:
            width, height = rh * aspect, rh
        else:
            width, height = rw, rw / aspect
        return (rw - width) / 2, (rh - height) / 2, width, height


@dataclass(frozen=True)
class PointerPosition:
    x: float
    y: float
    inside: bool


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def map_pointer(viewport: Viewport | None, x: float, y: float) -> PointerPosition:
    """Map element-relative pixels to [0,1] stream coordinates."""
    if viewport is None:
        return PointerPosition(0.0, 0.0, False)
    off_x, off_y, width, height = viewport.content_box()
    if width <= 0 or height <= 0:
        return PointerPosition(0.0, 0.0, False)
    nx = (x - off_x) / width
    ny = (y - off_y) / height
    inside = 0.0 <= nx <= 1.0 and 0.0 <= ny <= 1.0
    return PointerPosition(_clamp(nx), _clamp(ny), inside)


class InputTransport:
    def __init__(
        self,
        channel: InputChannel,
        viewport: Viewport | None = None,
        clock: Callable[[], float] = time.monotonic,
        frame_rate: int = 60,
    ) -> None:
        self.channel = channel
        self.viewport = viewport
        self._clock = clock
        self._pending_move: tuple[float, float] | None = None
        self._held_keys: set[str] = set()
        self._frame_loop = PeriodicTask(self.flush_frame, 1 / frame_rate, name="pointer-frame")
        self._poller: GamepadPoller | None = None
        self.sent = 0

    @property
    def is_open(self) -> bool:
        return getattr(self.channel, "readyState", None) == "open"

    def send(self, type_: str, **payload: Any) -> bool:
        if not self.is_open:
            return False
        message = {"t": type_, **payload, "ts": self._clock() * 1000}
        try:
            self.channel.send(json.dumps(message, separators=(",", ":")))
        except Exception as exc:
            logger.debug("Dropped %s event: %s", type_, exc)
            return False
        self.sent += 1
        return True

    def pointer_move(self, x: float, y: float) -> None:
        """Record a pointer sample; only the newest one per frame is sent."""
        self._pending_move = (x, y)

    def flush_frame(self) -> bool:
        pending, self._pending_move = self._pending_move, None
        if pending is None:
            return False
        position = map_pointer(self.viewport, *pending)
        return self.send(
            "mmoveAbs",
            x=position.x,
            y=position.y,
            inside=1 if position.inside else 0,
        )

    def pointer_down(self, button: int, x: float, y: float) -> bool:
        position = map_pointer(self.viewport, x, y)
        return self.send("mdown", b=button, x=position.x, y=position.y)

    def pointer_up(self, button: int, x: float, y: float) -> bool:
        position = map_pointer(self.viewport, x, y)
        return self.send("mup", b=button, x=position.x, y=position.y)

    def wheel(self, dx: float, dy: float) -> bool:
        return self.send("mwheel", dx=dx, dy=dy)

    def key_down(self, code: str, repeat: bool = False) -> bool:
        # auto-repeat never leaves the client; the host sees one press
        if repeat or code in self._held_keys:
            return False
        self._held_keys.add(code)
        return self.send("kdown", k=code)

    def key_up(self, code: str) -> bool:
        self._held_keys.discard(code)
        return self.send("kup", k=code)

    def attach_gamepad(self, source: GamepadSource, hz: int = 120) -> GamepadPoller:
        self._poller = GamepadPoller(self, source, hz=hz)
        return self._poller

    @property
    def gamepad(self) -> GamepadPoller | None:
        return self._poller

    def start(self) -> None:
        self._frame_loop.start()
        if self._poller is not None:
            self._poller.start()

    async def stop(self) -> None:
        await self._frame_loop.stop()
        if self._poller is not None:
            await self._poller.stop()
        self._pending_move = None
        self._held_keys.clear()


@dataclass(frozen=True)
class GamepadState:
    id: str
    index: int
    axes: Sequence[float]
    buttons: Sequence[bool]


class GamepadSource(Protocol):
    def read(self) -> GamepadState | None: ...


class GamepadPoller:
    """Polls a controller and sends its state only when it changes."""

    MIN_HZ = 15
    MAX_HZ = 240

    def __init__(self, transport: InputTransport, source: GamepadSource, hz: int = 120) -> None:
        self.transport = transport
        self.source = source
        self.hz = max(self.MIN_HZ, min(self.MAX_HZ, int(hz)))
        self.baseline: list[float] | None = None
        self._last_sent: str | None = None
        self._timer = PeriodicTask(self.poll, 1 / self.hz, name="gamepad")

    def calibrate(self) -> bool:
        """Capture the current axes as the zero point."""
        state = self.source.read()
        if state is None:
            return False
        self.baseline = [float(value) for value in state.axes]
        self._last_sent = None
        return True

    def _normalize(self, axes: Sequence[float]) -> list[float]:
        values = [float(value) for value in axes]
        if self.baseline is not None:
            values = [
                value - self.baseline[i] if i < len(self.baseline) else value
                for i, value in enumerate(values)
            ]
        return [round(value, 3) for value in values]

    def snapshot(self, state: GamepadState) -> dict[str, Any]:
        return {
            "id": state.id,
            "index": state.index,
            "axes": self._normalize(state.axes),
            "buttons": [1 if pressed else 0 for pressed in state.buttons],
        }

    def poll(self) -> bool:
        state = self.source.read()
        if state is None:
            return False
        message = self.snapshot(state)
        serialized = json.dumps(message, sort_keys=True)
        if serialized == self._last_sent:
            return False
        if self.transport.send("gp", **message):
            self._last_sent = serialized
            return True
        return False

    @property
    def running(self) -> bool:
        return self._timer.running

    def start(self) -> None:
        self._timer.start()

    async def stop(self) -> None:
        await self._timer.stop()

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from aiortc.contrib.media import MediaRelay

from wakestream.config import Settings
from wakestream.models import HostProfile, SessionConfig, SessionState, StatsSnapshot

from .input import FitMode, GamepadSource, InputTransport, Viewport
from .negotiator import SessionHandle, SessionNegotiator
from .resolver import Resolver
from .telemetry import TelemetrySampler
from .wake import WakeSignaler

if TYPE_CHECKING:
    from wakestream.services import ProfileService

logger = logging.getLogger(__name__)

StatusCallback = Callable[[str], None]
StatsCallback = Callable[[StatsSnapshot], None]


class SessionController:
    """Owns the single active session.

    ``connect`` resolves the target, wakes it when asked, negotiates the
    stream and starts input and telemetry. A running session is always
    ended completely before the next one is negotiated.

    With ``profiles`` set, stored profiles are resolved through it so a
    connect shares any resolution already running for the same host and the
    found address is saved.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        resolver: Resolver | None = None,
        wake: WakeSignaler | None = None,
        negotiator: SessionNegotiator | None = None,
        gamepad_source: GamepadSource | None = None,
        viewport: Viewport | None = None,
        profiles: ProfileService | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.profiles = profiles
        if resolver is None and profiles is not None:
            resolver = profiles.resolver
        self.resolver = resolver or Resolver(self.settings.discovery)
        self.wake_signaler = wake or WakeSignaler()
        self.negotiator = negotiator or SessionNegotiator()
        self.negotiator.on_track(self._track_received)
        self.relay = MediaRelay()
        self.gamepad_source = gamepad_source
        self.viewport = viewport or Viewport(
            element_width=self.settings.stream.width,
            element_height=self.settings.stream.height,
            fit=FitMode(self.settings.stream.fit),
        )
        self._lock = asyncio.Lock()
        self._handle: SessionHandle | None = None
        self._stats_observers: list[StatsCallback] = []
        self._status_observers: list[StatusCallback] = []

    @property
    def handle(self) -> SessionHandle | None:
        return self._handle

    @property
    def state(self) -> SessionState:
        return self.negotiator.state

    @property
    def input(self) -> InputTransport | None:
        return self._handle.input if self._handle is not None else None

    def on_stats(self, callback: StatsCallback) -> None:
        self._stats_observers.append(callback)

    def on_status_change(self, callback: StatusCallback) -> None:
        self._status_observers.append(callback)

    def _status(self, message: str) -> None:
        logger.info(message)
        for callback in list(self._status_observers):
            try:
                callback(message)
            except Exception:
                logger.exception("Status observer failed")

    def _publish_stats(self, snapshot: StatsSnapshot) -> None:
        for callback in list(self._stats_observers):
            callback(snapshot)

    def build_config(self, server: str, **overrides: object) -> SessionConfig:
        stream = self.settings.stream
        fields: dict[str, object] = {
            "server": server,
            "codec": stream.codec,
            "audio": stream.audio,
            "fps": stream.fps,
            "width": stream.width,
            "height": stream.height,
            "preset": stream.preset,
            "bitrate": stream.bitrate,
            "capture": stream.capture,
        }
        fields.update({k: v for k, v in overrides.items() if v is not None})
        return SessionConfig.model_validate(fields)

    async def _resolve(self, profile: HostProfile, hint: str | None) -> str | None:
        if self.profiles is not None and self.profiles.db.get_profile(profile.id):
            return await self.profiles.resolve_profile(profile.id, port=profile.port)
        return await self.resolver.resolve(profile.mac, profile.port, hint=hint)

    async def locate(self, profile: HostProfile, wake: bool = False) -> str:
        """Find a live address for ``profile``, sending a wake packet if allowed."""
        self._status(f"Resolving {profile.name} ({profile.mac})")
        ip = await self._resolve(profile, profile.ip)
        if ip is None and wake:
            await self.wake_signaler.wake(profile.mac)
            self._status(f"Wake packet sent to {profile.mac}, waiting for host")
            ip = await self._resolve(profile, None)
        if ip is None:
            raise LookupError(f"Host {profile.name} ({profile.mac}) not found on the LAN")
        return ip

    async def connect(
        self,
        target: HostProfile | str,
        config: SessionConfig | None = None,
        wake: bool = False,
        overrides: dict[str, object] | None = None,
    ) -> SessionHandle:
        async with self._lock:
            await self._teardown()

            if isinstance(target, HostProfile):
                ip = await self.locate(target, wake=wake)
                server = f"http://{ip}:{target.port}"
            else:
                server = target
            if config is None:
                config = self.build_config(server, **(overrides or {}))
            elif config.server != server.rstrip("/"):
                config = config.model_copy(update={"server": server.rstrip("/")})

            self._status(f"Connecting to {config.server}")
            handle = await self.negotiator.connect(
                config, unreliable=self.settings.stream.unreliable_input
            )
            self._attach(handle)
            self._handle = handle
            self._status(f"Connected to {config.server}")
            return handle

    def _attach(self, handle: SessionHandle) -> None:
        transport = InputTransport(
            handle.channel,
            viewport=self.viewport,
            frame_rate=self.settings.input.frame_rate,
        )
        if self.gamepad_source is not None:
            transport.attach_gamepad(self.gamepad_source, hz=self.settings.input.gamepad_hz)
        handle.input = transport

        channel_on = getattr(handle.channel, "on", None)
        if channel_on is not None:
            channel_on("open", lambda: self._status("Input channel open"))

        sampler = TelemetrySampler(handle.peer, clock_rate=handle.video_clock_rate)
        sampler.on_stats(self._publish_stats)
        handle.telemetry = sampler

        transport.start()
        sampler.start()
        # aiortc delivers tracks while the answer is applied, before this point
        for track in handle.tracks:
            self._watch_video(handle, track)

    def _watch_video(self, handle: SessionHandle, track: Any) -> None:
        sampler = handle.telemetry
        if getattr(track, "kind", None) != "video" or sampler is None:
            return
        if sampler.frames is None:
            sampler.watch(self.relay.subscribe(track), expected_fps=handle.config.fps)

    def _track_received(self, track: Any) -> None:
        if self._handle is not None:
            self._watch_video(self._handle, track)

    async def _teardown(self) -> None:
        handle, self._handle = self._handle, None
        if handle is None and self.negotiator.state is SessionState.IDLE:
            return
        await self.negotiator.end()
        self._status("Disconnected")

    async def disconnect(self) -> None:
        async with self._lock:
            await self._teardown()

"""Peer connection lifecycle: offer/answer against the host's signaling API.

States move IDLE -> NEGOTIATING -> ACTIVE -> CLOSING -> IDLE. A failed
negotiation drops straight back to IDLE with the peer connection closed.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

import httpx
from aiortc import RTCConfiguration, RTCPeerConnection, RTCSessionDescription
from aiortc.rtcrtpreceiver import RTCRtpReceiver

from wakestream.errors import NegotiationError, SessionStateError
from wakestream.models.session import SessionConfig, SessionState

from .input import InputTransport
from .telemetry import VIDEO_CLOCK_RATE, TelemetrySampler

logger = logging.getLogger(__name__)

OFFER_PATH = "/api/session/offer"
END_PATH = "/api/session/end"
INPUT_CHANNEL = "input"
DEFAULT_TIMEOUT = 10.0

PeerFactory = Callable[[], Any]
CapabilityLookup = Callable[[str], Sequence[Any]]
TrackSink = Callable[[Any], None]
StateCallback = Callable[[SessionState], None]


def default_peer_factory() -> RTCPeerConnection:
    return RTCPeerConnection(RTCConfiguration(iceServers=[]))


def default_capabilities(kind: str) -> list[Any]:
    return list(RTCRtpReceiver.getCapabilities(kind).codecs)


def order_codecs(codecs: Sequence[Any], token: str) -> list[Any]:
    """Put codecs whose mime type contains ``token`` first, keeping relative order."""
    token = token.lower()
    matching = [c for c in codecs if token and token in (c.mimeType or "").lower()]
    remaining = [c for c in codecs if c not in matching]
    return matching + remaining


@dataclass
class SessionHandle:
    """Runtime state of the one active session."""

    config: SessionConfig
    peer: Any
    channel: Any = None
    video_transceiver: Any = None
    video_clock_rate: int = VIDEO_CLOCK_RATE
    tracks: list[Any] = field(default_factory=list)
    input: InputTransport | None = None
    telemetry: TelemetrySampler | None = None
    closed: bool = False

    async def stop_background(self) -> None:
        if self.telemetry is not None:
            await self.telemetry.stop()
        if self.input is not None:
            await self.input.stop()

    def stop_tracks(self) -> None:
        for track in self.tracks:
            try:
                track.stop()
            except Exception as exc:
                logger.debug("Failed to stop %s track: %s", getattr(track, "kind", "?"), exc)
        self.tracks.clear()


class SessionNegotiator:
    def __init__(
        self,
        peer_factory: PeerFactory | None = None,
        capabilities: CapabilityLookup | None = None,
        client: httpx.AsyncClient | None = None,
        on_track: TrackSink | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._peer_factory = peer_factory or default_peer_factory
        self._capabilities = capabilities or default_capabilities
        self._client = client
        self._track_sinks: list[TrackSink] = [on_track] if on_track is not None else []
        self.timeout = timeout
        self._state = SessionState.IDLE
        self._state_observers: list[StateCallback] = []
        self._handle: SessionHandle | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def handle(self) -> SessionHandle | None:
        return self._handle

    def on_state_change(self, callback: StateCallback) -> None:
        self._state_observers.append(callback)

    def on_track(self, callback: TrackSink) -> None:
        """Also hand every received track to ``callback``."""
        self._track_sinks.append(callback)

    def _set_state(self, state: SessionState) -> None:
        if state is self._state:
            return
        logger.debug("Session %s -> %s", self._state.value, state.value)
        self._state = state
        for callback in list(self._state_observers):
            try:
                callback(state)
            except Exception:
                logger.exception("State observer failed")

    async def _post(self, url: str, **kwargs: Any) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(url, timeout=self.timeout, **kwargs)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(url, **kwargs)

    def _prefer_codec(self, handle: SessionHandle, codec: str) -> None:
        try:
            ordered = order_codecs(self._capabilities("video"), codec)
            if ordered and codec.lower() in (ordered[0].mimeType or "").lower():
                handle.video_transceiver.setCodecPreferences(ordered)
                clock_rate = getattr(ordered[0], "clockRate", None)
                handle.video_clock_rate = clock_rate or VIDEO_CLOCK_RATE
                logger.debug("Preferred video codec: %s", ordered[0].mimeType)
            else:
                logger.debug("No video codec matches %r, keeping default order", codec)
        except (AttributeError, TypeError, ValueError) as exc:
            logger.debug("Codec preference for %r not applied: %s", codec, exc)

    def _handle_track(self, handle: SessionHandle, track: Any) -> None:
        logger.info("Receiving %s track", getattr(track, "kind", "unknown"))
        handle.tracks.append(track)
        for sink in list(self._track_sinks):
            try:
                sink(track)
            except Exception:
                logger.exception("Track observer failed")

    async def _exchange(self, config: SessionConfig, sdp: str, type_: str) -> dict[str, Any]:
        url = config.server + OFFER_PATH
        body = {"sdp": sdp, "type": type_, **config.offer_fields()}
        try:
            response = await self._post(url, json=body)
        except httpx.HTTPError as exc:
            raise NegotiationError(f"Offer to {url} failed", detail=str(exc)) from exc

        if not response.is_success:
            raise NegotiationError(
                f"Offer to {url} rejected",
                status_code=response.status_code,
                detail=response.text,
            )
        try:
            answer = response.json()
        except ValueError as exc:
            raise NegotiationError(
                "Malformed answer", status_code=response.status_code, detail=response.text
            ) from exc
        if (
            not isinstance(answer, dict)
            or not isinstance(answer.get("sdp"), str)
            or answer.get("type") not in ("answer", "pranswer")
        ):
            raise NegotiationError(
                "Malformed answer", status_code=response.status_code, detail=str(answer)
            )
        return answer

    async def connect(self, config: SessionConfig, unreliable: bool = True) -> SessionHandle:
        """Negotiate a receive-only stream with the host named in ``config``.

        The previous session must already be ended. Raises NegotiationError
        when the host rejects the offer or answers with garbage.
        """
        if self._state is not SessionState.IDLE:
            raise SessionStateError(f"Cannot connect while session is {self._state.value}")

        self._set_state(SessionState.NEGOTIATING)
        peer = self._peer_factory()
        handle = SessionHandle(config=config, peer=peer)
        try:
            peer.on("track", lambda track: self._handle_track(handle, track))
            handle.video_transceiver = peer.addTransceiver("video", direction="recvonly")
            peer.addTransceiver("audio", direction="recvonly")

            channel_options: dict[str, Any] = {"ordered": True}
            if unreliable:
                channel_options["maxRetransmits"] = 0
            handle.channel = peer.createDataChannel(INPUT_CHANNEL, **channel_options)

            self._prefer_codec(handle, config.codec)

            offer = await peer.createOffer()
            await peer.setLocalDescription(offer)
            local = peer.localDescription or offer

            answer = await self._exchange(config, local.sdp, local.type)
            try:
                await peer.setRemoteDescription(
                    RTCSessionDescription(sdp=answer["sdp"], type=answer["type"])
                )
            except ValueError as exc:
                raise NegotiationError("Answer rejected by peer", detail=str(exc)) from exc
        except (Exception, asyncio.CancelledError):
            await self._dispose(handle)
            self._set_state(SessionState.IDLE)
            raise

        self._handle = handle
        self._set_state(SessionState.ACTIVE)
        logger.info("Session active with %s (%s)", config.server, config.codec)
        return handle

    async def _dispose(self, handle: SessionHandle) -> None:
        try:
            await handle.stop_background()
            await handle.peer.close()
        finally:
            handle.stop_tracks()
            handle.closed = True

    async def end(self) -> None:
        """Tear the active session down; always ends IDLE."""
        handle = self._handle
        if handle is None:
            self._set_state(SessionState.IDLE)
            return

        self._set_state(SessionState.CLOSING)
        try:
            await handle.stop_background()
            url = handle.config.server + END_PATH
            try:
                await self._post(url)
            except httpx.HTTPError as exc:
                logger.warning("End-session request to %s failed: %s", url, exc)
            await self._dispose(handle)
        finally:
            self._handle = None
            self._set_state(SessionState.IDLE)
        logger.info("Session with %s closed", handle.config.server)

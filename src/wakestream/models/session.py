"""Streaming session models."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class SessionState(str, Enum):
    IDLE = "idle"
    NEGOTIATING = "negotiating"
    ACTIVE = "active"
    CLOSING = "closing"


class SessionConfig(BaseModel):
    """Stream parameters negotiated with the host. Immutable once built."""

    model_config = {"frozen": True, "extra": "forbid"}

    server: str
    codec: str = "h264"
    audio: bool = True
    fps: int = Field(default=60, ge=1, le=240)
    width: int = Field(default=1920, ge=1)
    height: int = Field(default=1080, ge=1)
    preset: str = "p1"
    bitrate: str = Field(default="25M", pattern=r"^\d+(\.\d+)?[KMGkmg]?$")
    capture: str = "screen"

    @field_validator("server")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        if not value.startswith(("http://", "https://")):
            raise ValueError("server must be an http(s) base URL")
        return value

    @field_validator("width", "height")
    @classmethod
    def _round_up_even(cls, value: int) -> int:
        # encoders reject odd frame dimensions
        return value + (value % 2)

    @field_validator("codec")
    @classmethod
    def _lower_codec(cls, value: str) -> str:
        return value.strip().lower()

    def offer_fields(self) -> dict[str, Any]:
        return {
            "codec": self.codec,
            "audio": self.audio,
            "fps": self.fps,
            "width": self.width,
            "height": self.height,
            "preset": self.preset,
            "bitrate": self.bitrate,
            "capture": self.capture,
        }


@dataclass(frozen=True)
class StatsSnapshot:
    """Per-second inbound video statistics. ``None`` fields are placeholders."""

    fps: float | None = None
    bitrate_mbps: float | None = None
    jitter_ms: int | None = None
    packet_loss_percent: float | None = None
    frames_dropped: int | None = None

    @classmethod
    def placeholder(cls) -> StatsSnapshot:
        return cls()

    @property
    def is_placeholder(self) -> bool:
        return self.fps is None

    def format(self) -> str:
        def show(value: object, pattern: str) -> str:
            return "-" if value is None else pattern.format(value)

        return " | ".join(
            [
                f"fps: {show(self.fps, '{:.1f}')}",
                f"br: {show(self.bitrate_mbps, '{:.2f}')} Mbps",
                f"jitter: {show(self.jitter_ms, '{}')}ms",
                f"loss: {show(self.packet_loss_percent, '{:.2f}')}%",
                f"dropped: {show(self.frames_dropped, '{}')}",
            ]
        )

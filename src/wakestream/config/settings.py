from __future__ import annotations

import json
import os
import tomllib
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, ValidationError, field_validator

from .paths import default_config_path, default_data_dir, expand_path

CONFIG_ENV_VAR = "WAKESTREAM_CONFIG"

FitModeName = Literal["contain", "cover", "fill", "scale-down"]


class DatabaseConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    path: str = Field(default_factory=lambda: str(default_data_dir()))


class DiscoveryConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    port: int = Field(default=8080, ge=1, le=65535)
    probe_timeout: float = Field(default=0.8, gt=0)
    concurrency: int = Field(default=64, ge=1, le=254)
    attempts: int = Field(default=9, ge=1)
    backoff: float = Field(default=5.0, ge=0)
    rescan_interval: float = Field(default=30.0, gt=0)
    wake_timeout: float = Field(default=120.0, gt=0)
    health_path: str = "/healthz"
    scheme: Literal["http", "https"] = "http"

    @field_validator("health_path")
    @classmethod
    def _leading_slash(cls, value: str) -> str:
        return value if value.startswith("/") else f"/{value}"


class StreamConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    codec: str = "h264"
    audio: bool = True
    fps: int = Field(default=60, ge=1, le=240)
    width: int = Field(default=1920, ge=2)
    height: int = Field(default=1080, ge=2)
    preset: str = "p1"
    bitrate: str = "25M"
    capture: str = "screen"
    fit: FitModeName = "contain"
    unreliable_input: bool = True


class InputConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    frame_rate: int = Field(default=60, ge=1, le=240)
    gamepad_hz: int = Field(default=120, ge=15, le=240)


class Settings(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    discovery: DiscoveryConfig = Field(default_factory=DiscoveryConfig)
    stream: StreamConfig = Field(default_factory=StreamConfig)
    input: InputConfig = Field(default_factory=InputConfig)


def resolve_config_path(allow_missing: bool = False) -> tuple[Path, bool]:
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        path = expand_path(env_path)
        if not allow_missing and not path.exists():
            raise FileNotFoundError(f"{CONFIG_ENV_VAR} points to missing file: {path}")
        return path, path.exists()

    path = default_config_path()
    return path, path.exists()


def load_settings(path: Path) -> Settings:
    try:
        with path.open("rb") as handle:
            data = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"Invalid TOML in config file: {path}\n{exc}") from exc

    try:
        return Settings.model_validate(data or {})
    except ValidationError as exc:
        raise ValueError(f"Invalid config file: {path}\n{exc}") from exc


@lru_cache
def get_settings() -> Settings:
    path, exists = resolve_config_path(allow_missing=False)
    if exists:
        return load_settings(path)
    return Settings()


def data_dir_from_settings(settings: Settings) -> Path:
    return expand_path(settings.database.path)


def _toml_value(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return json.dumps(str(value))


def _render_section(name: str, section: BaseModel) -> list[str]:
    lines = [f"[{name}]"]
    for key, value in section.model_dump().items():
        lines.append(f"{key} = {_toml_value(value)}")
    lines.append("")
    return lines


def render_settings_toml(settings: Settings) -> str:
    lines = ["# wakestream configuration", ""]
    lines += _render_section("database", settings.database)
    lines += _render_section("discovery", settings.discovery)
    lines += _render_section("stream", settings.stream)
    lines += _render_section("input", settings.input)
    return "\n".join(lines)


def write_settings(settings: Settings, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_settings_toml(settings))

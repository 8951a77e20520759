"""Host and pairing records."""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, Field, ValidationError, field_validator

from wakestream.errors import PairingImportError

from .validation import normalize_mac

DEFAULT_PORT = 8080


def _new_id() -> str:
    return uuid.uuid4().hex


class HostProfile(BaseModel):
    """A known remote host, identified by MAC across IP changes."""

    model_config = {"validate_assignment": True}

    id: str = Field(default_factory=_new_id)
    name: str = "PC"
    mac: str
    ip: str | None = None  # None means auto-resolve
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)
    online: bool = False
    resolving: bool = Field(default=False, exclude=True)

    @field_validator("mac")
    @classmethod
    def _canonical_mac(cls, value: str) -> str:
        return normalize_mac(value)

    @field_validator("ip")
    @classmethod
    def _blank_ip_is_unknown(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        return value or None

    def with_mac(self, mac: str) -> HostProfile:
        """Copy with a new MAC; the previously resolved address no longer applies."""
        return self.model_copy(
            update={"mac": normalize_mac(mac), "ip": None, "online": False}
        )

    @property
    def base_url(self) -> str | None:
        if self.ip is None:
            return None
        return f"http://{self.ip}:{self.port}"


class PairingRecord(BaseModel):
    """Trust artifact imported from a pairing file."""

    model_config = {"frozen": True}

    device_id: str = Field(min_length=1)
    broker: str = Field(min_length=1)
    name: str | None = None
    mac: str | None = None
    port: int | None = Field(default=None, ge=1, le=65535)
    imported_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("mac")
    @classmethod
    def _canonical_mac(cls, value: str | None) -> str | None:
        if not value:
            return None
        return normalize_mac(value)

    @classmethod
    def from_json(cls, text: str) -> PairingRecord:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise PairingImportError(f"Invalid pairing file: {exc}") from exc
        if not isinstance(data, dict):
            raise PairingImportError("Invalid pairing file: expected a JSON object")

        missing = [key for key in ("device_id", "broker") if not data.get(key)]
        if missing:
            raise PairingImportError(
                f"Missing fields in pairing file: {', '.join(missing)}"
            )

        fields = {
            key: data[key]
            for key in ("device_id", "broker", "name", "mac", "port")
            if key in data
        }
        try:
            return cls.model_validate(fields)
        except ValidationError as exc:
            raise PairingImportError(f"Invalid pairing file:\n{exc}") from exc


class AddressBook(BaseModel):
    """All known hosts and imported pairings."""

    profiles: list[HostProfile] = []
    pairings: list[PairingRecord] = []

    def find(self, key: str) -> HostProfile | None:
        """Look a profile up by id, then name, then MAC."""
        for profile in self.profiles:
            if profile.id == key:
                return profile
        for profile in self.profiles:
            if profile.name == key:
                return profile
        try:
            mac = normalize_mac(key)
        except ValueError:
            return None
        for profile in self.profiles:
            if profile.mac == mac:
                return profile
        return None

    def unresolved(self) -> list[HostProfile]:
        return [profile for profile in self.profiles if profile.ip is None]

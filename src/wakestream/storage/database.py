from __future__ import annotations

import json
import tomllib
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from wakestream.config import HOSTS_FILENAME, PAIRINGS_FILENAME
from wakestream.models import AddressBook, HostProfile, PairingRecord, normalize_mac


def _toml_string(value: str) -> str:
    return json.dumps(value)


def _render_hosts_toml(profiles: list[HostProfile]) -> str:
    lines = [
        "# wakestream known hosts",
        "# ip is omitted while the address is unknown and resolved automatically",
        "",
    ]
    for profile in profiles:
        lines.append("[[hosts]]")
        lines.append(f"id = {_toml_string(profile.id)}")
        lines.append(f"name = {_toml_string(profile.name)}")
        lines.append(f"mac = {_toml_string(profile.mac)}")
        if profile.ip is not None:
            lines.append(f"ip = {_toml_string(profile.ip)}")
        lines.append(f"port = {profile.port}")
        lines.append(f"online = {'true' if profile.online else 'false'}")
        lines.append("")
    return "\n".join(lines)


class Database:
    def __init__(self, data_dir: Path) -> None:
        self._data_dir = data_dir
        self._hosts_path = data_dir / HOSTS_FILENAME
        self._pairings_path = data_dir / PAIRINGS_FILENAME

    @property
    def path(self) -> Path:
        return self._data_dir

    @property
    def hosts_path(self) -> Path:
        return self._hosts_path

    @property
    def pairings_path(self) -> Path:
        return self._pairings_path

    def ensure_dirs(self) -> None:
        self._data_dir.mkdir(parents=True, exist_ok=True)

    def load_profiles(self) -> list[HostProfile]:
        if not self._hosts_path.exists():
            return []

        try:
            with self._hosts_path.open("rb") as handle:
                data = tomllib.load(handle) or {}
        except tomllib.TOMLDecodeError as exc:
            raise ValueError(
                f"Invalid TOML in hosts file: {self._hosts_path}\n{exc}"
            ) from exc

        try:
            return [HostProfile.model_validate(item) for item in data.get("hosts", [])]
        except ValidationError as exc:
            raise ValueError(f"Invalid hosts file: {self._hosts_path}\n{exc}") from exc

    def save_profiles(self, profiles: list[HostProfile]) -> None:
        self.ensure_dirs()
        self._hosts_path.write_text(_render_hosts_toml(profiles))

    def load(self) -> AddressBook:
        return AddressBook(profiles=self.load_profiles(), pairings=self.load_pairings())

    def get_profile(self, key: str) -> HostProfile | None:
        """Find a profile by id, name or MAC."""
        return AddressBook(profiles=self.load_profiles()).find(key)

    def add_profile(
        self,
        name: str,
        mac: str,
        port: int = 8080,
        ip: str | None = None,
    ) -> HostProfile:
        profile = HostProfile(name=name.strip() or "PC", mac=mac, port=port, ip=ip)
        profiles = self.load_profiles()
        profiles.insert(0, profile)
        self.save_profiles(profiles)
        return profile

    def update_profile(self, profile_id: str, **patch: Any) -> HostProfile:
        """Apply ``patch`` to a stored profile. A new MAC clears ip and online."""
        profiles = self.load_profiles()
        for index, profile in enumerate(profiles):
            if profile.id != profile_id:
                continue
            if "mac" in patch:
                mac = normalize_mac(patch.pop("mac"))
                if mac != profile.mac:
                    profile = profile.with_mac(mac)
                    patch.pop("ip", None)
                    patch.pop("online", None)
            updated = HostProfile.model_validate({**profile.model_dump(), **patch})
            profiles[index] = updated
            self.save_profiles(profiles)
            return updated
        raise KeyError(profile_id)

    def remove_profile(self, profile_id: str) -> bool:
        profiles = self.load_profiles()
        remaining = [p for p in profiles if p.id != profile_id]
        if len(remaining) == len(profiles):
            return False
        self.save_profiles(remaining)
        return True

    def load_pairings(self) -> list[PairingRecord]:
        if not self._pairings_path.exists():
            return []
        with self._pairings_path.open("r") as handle:
            data = json.load(handle)
        try:
            return [PairingRecord.model_validate(item) for item in data]
        except ValidationError as exc:
            raise ValueError(
                f"Invalid pairings file: {self._pairings_path}\n{exc}"
            ) from exc

    def _save_pairings(self, pairings: list[PairingRecord]) -> None:
        self.ensure_dirs()
        with self._pairings_path.open("w") as handle:
            json.dump([p.model_dump(mode="json") for p in pairings], handle, indent=2)

    def import_pairing(self, path: Path) -> PairingRecord:
        """Import a pairing file; raises PairingImportError when it is malformed."""
        record = PairingRecord.from_json(path.read_text(encoding="utf-8"))
        pairings = self.load_pairings()
        pairings.insert(0, record)
        self._save_pairings(pairings)
        return record

    def remove_pairing(self, device_id: str) -> bool:
        pairings = self.load_pairings()
        remaining = [p for p in pairings if p.device_id != device_id]
        if len(remaining) == len(pairings):
            return False
        self._save_pairings(remaining)
        return True

    def init(self) -> None:
        self.ensure_dirs()
        if not self._hosts_path.exists():
            self.save_profiles([])

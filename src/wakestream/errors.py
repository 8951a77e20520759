from __future__ import annotations


class WakestreamError(Exception):
    """Base class for wakestream failures."""


class InvalidMacError(WakestreamError, ValueError):
    def __init__(self, value: str) -> None:
        super().__init__(f"Invalid MAC address: {value!r}")
        self.value = value


class PairingImportError(WakestreamError, ValueError):
    """Pairing file could not be parsed or misses required fields."""


class WakeError(WakestreamError):
    """Wake packet could not be transmitted."""


class NegotiationError(WakestreamError):
    """Offer/answer exchange with the signaling endpoint failed."""

    def __init__(
        self, message: str, status_code: int | None = None, detail: str = ""
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail

    def __str__(self) -> str:
        text = super().__str__()
        if self.status_code is not None:
            text = f"{text} (HTTP {self.status_code})"
        if self.detail:
            text = f"{text}: {self.detail}"
        return text


class SessionStateError(WakestreamError, RuntimeError):
    """Operation not allowed in the current session state."""

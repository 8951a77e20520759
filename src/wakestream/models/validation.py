"""MAC address validation and canonicalisation."""

from __future__ import annotations

import re
import string

from wakestream.errors import InvalidMacError

_SEPARATORS = re.compile(r"[\s:.\-]")


def _hex_digits(value: str) -> str:
    cleaned = _SEPARATORS.sub("", value or "")
    if len(cleaned) != 12 or not all(ch in string.hexdigits for ch in cleaned):
        raise InvalidMacError(value)
    return cleaned.upper()


def normalize_mac(value: str) -> str:
    """Return ``value`` as upper-case colon-separated hex pairs.

    Accepts ``:``, ``-`` and ``.`` separators (or none). Raises
    InvalidMacError for anything that is not exactly six octets.
    """
    digits = _hex_digits(value)
    return ":".join(digits[i : i + 2] for i in range(0, 12, 2))


def mac_bytes(value: str) -> bytes:
    return bytes.fromhex(_hex_digits(value))


def is_valid_mac(value: str) -> bool:
    try:
        _hex_digits(value)
    except InvalidMacError:
        return False
    return True

"""Helpers for safe logging.

fuelquota handles owner contact details and SMS provider credentials.
This module masks them before they reach a log record.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

_SENSITIVE_VALUE_KEYS: frozenset[str] = frozenset(
    {
        "authorization",
        "auth_token",
        "twilio_auth_token",
        "password",
        "token",
        "cookie",
    }
)

_PHONE_KEYS: frozenset[str] = frozenset({"phone", "to", "from", "from_number"})
_EMAIL_KEYS: frozenset[str] = frozenset({"email"})


def mask_phone(phone: str | None) -> str:
    """Keep the first four and last three digits of a phone number."""
    if not phone:
        return "<none>"
    text = str(phone)
    if len(text) <= 7:
        return "*" * len(text)
    return f"{text[:4]}{'*' * (len(text) - 7)}{text[-3:]}"


def mask_email(email: str | None) -> str:
    """Keep the first character of the local part and the domain."""
    if not email:
        return "<none>"
    local, sep, domain = str(email).partition("@")
    if not sep:
        return "<redacted>"
    return f"{local[:1]}***@{domain}"


def redact_for_log(value: Any, *, max_string: int = 512, _depth: int = 0) -> Any:
    """Return a redacted copy of *value* suitable for logs."""
    if _depth > 20:
        return "<max-depth>"

    if value is None:
        return None

    if isinstance(value, str):
        if len(value) > max_string:
            return f"{value[:max_string]}…<truncated>"
        return value

    if isinstance(value, (int, float, bool)):
        return value

    if isinstance(value, bytes):
        return f"<bytes:{len(value)}b>"

    if isinstance(value, Mapping):
        redacted: dict[str, Any] = {}
        for k, v in value.items():
            key = str(k)
            lowered = key.lower()
            if lowered in _SENSITIVE_VALUE_KEYS:
                redacted[key] = "<redacted>"
            elif lowered in _PHONE_KEYS:
                redacted[key] = mask_phone(v)
            elif lowered in _EMAIL_KEYS:
                redacted[key] = mask_email(v)
            else:
                redacted[key] = redact_for_log(v, max_string=max_string, _depth=_depth + 1)
        return redacted

    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return [redact_for_log(v, max_string=max_string, _depth=_depth + 1) for v in value]

    # Fallback: represent unknown objects without dumping internals.
    return repr(value)

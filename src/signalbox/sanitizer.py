"""
Redaction of sensitive form fields.

Form payloads are sanitised before they are stored in a record. Keys are
matched case-insensitively with separators ignored, so ``password``,
``confirm_password``, ``credit-card`` and ``creditCardNumber`` all match.
Nested dicts and lists are walked. Redacting an already redacted payload
returns an identical payload.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

REDACTED = "[REDACTED]"

# Fragments matched against the normalised key (lowercase, alphanumerics only)
_SENSITIVE_FRAGMENTS = (
    "password",
    "passwd",
    "passcode",
    "creditcard",
    "cardnumber",
    "cvv",
    "cvc",
    "secret",
    "token",
)

# Normalised keys that must match exactly (too short to match as fragments)
_SENSITIVE_EXACT = frozenset({"ssn", "pin", "socialsecuritynumber"})

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")


def is_sensitive_key(key: object) -> bool:
    normalised = _NON_ALNUM_RE.sub("", str(key).lower())
    if normalised in _SENSITIVE_EXACT:
        return True
    return any(fragment in normalised for fragment in _SENSITIVE_FRAGMENTS)


def sanitize_payload(payload: Mapping[Any, Any]) -> dict[Any, Any]:
    """Return a copy of ``payload`` with sensitive values replaced by ``REDACTED``."""
    return {key: _sanitize_value(key, value) for key, value in payload.items()}


def _sanitize_value(key: object, value: Any) -> Any:
    if is_sensitive_key(key) and value not in (None, ""):
        return REDACTED
    if isinstance(value, Mapping):
        return sanitize_payload(value)
    if isinstance(value, list):
        return [sanitize_payload(item) if isinstance(item, Mapping) else item for item in value]
    return value

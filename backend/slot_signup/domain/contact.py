from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_NON_DIGIT_RE = re.compile(r"\D")
_ANGLE_RE = re.compile(r"[<>]")

PHONE_DIGITS = 10


def sanitize_input(value: Any, max_length: int) -> str:
    if value is None:
        return ""
    return _ANGLE_RE.sub("", str(value).strip())[:max_length]


def normalize_phone(phone: Any) -> str:
    if not phone or not isinstance(phone, str):
        return ""
    return _NON_DIGIT_RE.sub("", phone)


def is_valid_phone(phone: Any) -> bool:
    return len(normalize_phone(phone)) == PHONE_DIGITS


def is_valid_email(email: str, *, max_length: int = 254) -> bool:
    return bool(_EMAIL_RE.match(email)) and len(email) <= max_length


@dataclass(frozen=True)
class Contact:
    """Normalized phone (digits only) and lowercased email; either may be empty."""

    phone: str = ""
    email: str = ""

    @property
    def key(self) -> str:
        return self.phone or self.email

    def matches(self, phone: str, email: str) -> bool:
        if self.phone and normalize_phone(phone) == self.phone:
            return True
        return bool(self.email) and (email or "").strip().lower() == self.email


def contact_from_query(value: str) -> Contact:
    """Interpret a single lookup value as an email when it has an ``@``, else as a phone."""
    value = (value or "").strip()
    if "@" in value:
        return Contact(email=value.lower())
    return Contact(phone=normalize_phone(value))

"""Persisted session facts: verification, role and last known location."""

import re
from typing import Optional

from promo_radar.core.entities import Coordinate, UserRole
from promo_radar.core.gate import GATE_KEYS, NotificationGate
from promo_radar.core.interfaces import KeyValueStore

VERIFIED_KEY = "session.otp_verified"
PHONE_NUMBER_KEY = "session.phone_number"
ROLE_KEY = "session.role"
LAST_LOCATION_KEY = "session.last_location"

SESSION_KEYS = (VERIFIED_KEY, PHONE_NUMBER_KEY, ROLE_KEY, LAST_LOCATION_KEY)


def normalize_phone_number(raw: str) -> str:
    """Normalize an Indian phone number to E.164 (``+91XXXXXXXXXX``).

    Accepts 10 digits or a ``+91`` prefix, with spaces, dashes, dots and
    parentheses ignored.

    Raises:
        ValueError: with a user-facing message when the number is invalid
    """
    if not raw:
        raise ValueError("Please enter a phone number")

    cleaned = re.sub(r"[\s\-().]", "", raw)

    if cleaned.startswith("+"):
        country_code = re.match(r"^\+(\d{1,3})", cleaned)
        if not country_code:
            raise ValueError("Invalid phone number format")
        if not cleaned.startswith("+91"):
            raise ValueError("Only Indian phone numbers (+91) are supported")
        rest = cleaned[3:]
        if not re.fullmatch(r"\d{10}", rest):
            raise ValueError("Indian phone numbers must be 10 digits")
        return f"+91{rest}"

    if not re.fullmatch(r"\d{10}", cleaned):
        if len(cleaned) < 10:
            raise ValueError("Phone number must be 10 digits")
        raise ValueError("Phone number must be exactly 10 digits")

    return f"+91{cleaned}"


def format_phone_number(normalized: str) -> str:
    """Render ``+919876543210`` as ``+91 98765 43210``."""
    if not normalized.startswith("+91") or len(normalized) != 13:
        return normalized
    digits = normalized[3:]
    return f"+91 {digits[:5]} {digits[5:]}"


class SessionStateStore:
    """Session facts kept next to the notification state in one store.

    Pass the ``gate`` sharing the store so :meth:`logout` clears its state
    under the gate's lock.
    """

    def __init__(self, store: KeyValueStore, gate: Optional[NotificationGate] = None) -> None:
        self.store = store
        self.gate = gate

    @property
    def is_verified(self) -> bool:
        return self.store.get(VERIFIED_KEY) is True

    @property
    def phone_number(self) -> Optional[str]:
        value = self.store.get(PHONE_NUMBER_KEY)
        return value if isinstance(value, str) else None

    def mark_verified(self, phone_number: str) -> str:
        """Record a verified phone number and return its normalized form."""
        normalized = normalize_phone_number(phone_number)
        self.store.set_many({VERIFIED_KEY: True, PHONE_NUMBER_KEY: normalized})
        return normalized

    @property
    def role(self) -> Optional[UserRole]:
        value = self.store.get(ROLE_KEY)
        try:
            return UserRole(value) if value is not None else None
        except ValueError:
            return None

    def set_role(self, role: UserRole) -> None:
        self.store.set(ROLE_KEY, role.value)

    @property
    def last_location(self) -> Optional[Coordinate]:
        value = self.store.get(LAST_LOCATION_KEY)
        try:
            return Coordinate(latitude=float(value["latitude"]), longitude=float(value["longitude"]))
        except (KeyError, TypeError, ValueError):
            return None

    def set_last_location(self, coordinate: Coordinate) -> None:
        self.store.set(
            LAST_LOCATION_KEY,
            {"latitude": coordinate.latitude, "longitude": coordinate.longitude},
        )

    def logout(self) -> None:
        """Drop session and notification state in one write."""
        if self.gate is not None:
            self.gate.reset(extra_keys=SESSION_KEYS)
        else:
            self.store.delete_many(SESSION_KEYS + GATE_KEYS)

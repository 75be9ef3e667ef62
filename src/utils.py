"""Shared utilities used across the queue dashboard."""

import random
import re
from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def normalize_phone(value: str) -> str:
    """Normalize a phone number by stripping everything except digits and a leading +.

    Examples:
        >>> normalize_phone("(11) 99999-8888")
        '11999998888'
        >>> normalize_phone("+55 (11) 99999-8888")
        '+5511999998888'
    """
    value = value.strip()
    if value.startswith("+"):
        return "+" + re.sub(r"[^\d]", "", value[1:])
    return re.sub(r"[^\d]", "", value)


def placeholder_client_contact(area_code: str, rng: Optional[random.Random] = None) -> str:
    """Build a display number for a client who gave no contact.

    Example:
        >>> placeholder_client_contact("11", random.Random(1))  # doctest: +SKIP
        '(11) 92201-9585'
    """
    rng = rng or random.Random()
    return f"({area_code}) 9{rng.randint(0, 9999):04d}-{rng.randint(0, 9999):04d}"

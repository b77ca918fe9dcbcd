# iguanaflow/roles.py
from __future__ import annotations

from enum import Enum
from typing import Optional, Union


class Role(str, Enum):
    FREE = "free"
    PREMIUM = "premium"
    TRAINER = "trainer"
    ADMIN = "admin"


PREMIUM_ROLES = frozenset({Role.PREMIUM, Role.TRAINER, Role.ADMIN})

# Badge colours used by the admin user listings (Tailwind palette names)
ROLE_BADGE_TONES: dict[Role, str] = {
    Role.ADMIN: "red",
    Role.TRAINER: "blue",
    Role.PREMIUM: "yellow",
    Role.FREE: "gray",
}


def normalize_role(value: Optional[Union[str, Role]]) -> Role:
    """
    Parse a stored role string. Anything unknown (or missing) is treated as FREE,
    so a garbage value can never unlock paid content.
    """
    if isinstance(value, Role):
        return value
    r = (value or "").strip().lower()
    try:
        return Role(r)
    except ValueError:
        return Role.FREE


def is_premium_role(value) -> bool:
    return normalize_role(value) in PREMIUM_ROLES


def is_admin_role(value) -> bool:
    return normalize_role(value) == Role.ADMIN


def is_trainer_role(value) -> bool:
    """Trainer-capable: TRAINER or ADMIN."""
    return normalize_role(value) in (Role.TRAINER, Role.ADMIN)


def role_badge_tone(value) -> str:
    return ROLE_BADGE_TONES[normalize_role(value)]

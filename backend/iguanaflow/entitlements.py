# iguanaflow/entitlements.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Mapping, Optional

from iguanaflow.roles import is_premium_role

CURRENCY_USD = "usd"
CURRENCY_PLN = "pln"


class AccessTier(str, Enum):
    FULL = "full"
    DEMO = "demo"
    NONE = "none"


@dataclass(frozen=True)
class SportPathAccess:
    sport_category_id: str
    sport_name: str
    sport_key_name: str
    has_full_access: bool       # premium role or purchased
    has_demo_access: bool       # sport declared in profile, not purchased
    is_purchased: bool
    price_usd: Optional[int] = None
    price_pln: Optional[int] = None
    free_levels_count: int = 0


def _field(row: Any, name: str, default=None):
    if isinstance(row, Mapping):
        return row.get(name, default)
    return getattr(row, name, default)


@dataclass(frozen=True)
class SportAccessSnapshot:
    """
    Access decisions over one already-fetched snapshot of
    (profile, purchases, published catalog).
    """

    is_premium_user: bool
    sports: tuple[SportPathAccess, ...] = field(default_factory=tuple)

    def find(self, sport_key_name: str) -> Optional[SportPathAccess]:
        for s in self.sports:
            if s.sport_key_name == sport_key_name:
                return s
        return None

    def has_sport_access(self, sport_key_name: str) -> AccessTier:
        if self.is_premium_user:
            return AccessTier.FULL

        sport = self.find(sport_key_name)
        if not sport:
            return AccessTier.NONE

        if sport.has_full_access:
            return AccessTier.FULL
        if sport.has_demo_access:
            return AccessTier.DEMO
        return AccessTier.NONE

    def can_access_level(self, sport_key_name: str, is_level_demo: bool) -> bool:
        if self.is_premium_user:
            return True

        access = self.has_sport_access(sport_key_name)
        if access == AccessTier.FULL:
            return True
        if access == AccessTier.DEMO and is_level_demo:
            return True
        return False

    def level_access(self, sport_key_name: str, level_number: int) -> AccessTier:
        """
        Per-level tier: FULL for entitled users, DEMO when the level falls inside
        the category's free levels and the user declared the sport, else NONE.
        """
        access = self.has_sport_access(sport_key_name)
        if access == AccessTier.FULL:
            return AccessTier.FULL

        sport = self.find(sport_key_name)
        if access == AccessTier.DEMO and sport and is_free_level(level_number, sport.free_levels_count):
            return AccessTier.DEMO
        return AccessTier.NONE

    def get_sport_price(self, sport_key_name: str, currency: str = CURRENCY_USD) -> Optional[int]:
        sport = self.find(sport_key_name)
        if not sport:
            return None
        return sport.price_pln if (currency or "").lower() == CURRENCY_PLN else sport.price_usd


def is_free_level(level_number: int, free_levels_count: Optional[int]) -> bool:
    return 1 <= int(level_number) <= int(free_levels_count or 0)


def resolve_sport_access(
    role,
    user_sports: Optional[Iterable[str]],
    purchases: Optional[Iterable[Any]],
    catalog: Optional[Iterable[Any]],
) -> SportAccessSnapshot:
    """
    Central decision:
      - premium / trainer / admin -> full access everywhere
      - purchase row for the category -> full access to that category
      - category declared in profile sports (and not owned) -> demo access
      - otherwise nothing

    `purchases` rows expose sport_category_id; `catalog` rows expose
    id, name, key_name, price_usd, price_pln, free_levels_count and optionally
    is_published (unpublished rows are skipped).
    """
    is_premium = is_premium_role(role)
    declared = set(user_sports or [])
    purchased_ids = {str(_field(p, "sport_category_id")) for p in (purchases or [])}

    out: list[SportPathAccess] = []
    for sport in catalog or []:
        if _field(sport, "is_published", True) is False:
            continue

        sport_id = str(_field(sport, "id"))
        key_name = _field(sport, "key_name") or ""
        is_purchased = sport_id in purchased_ids
        in_profile = key_name in declared

        out.append(
            SportPathAccess(
                sport_category_id=sport_id,
                sport_name=_field(sport, "name") or "",
                sport_key_name=key_name,
                has_full_access=is_premium or is_purchased,
                has_demo_access=in_profile and not is_purchased and not is_premium,
                is_purchased=is_purchased,
                price_usd=_field(sport, "price_usd"),
                price_pln=_field(sport, "price_pln"),
                free_levels_count=int(_field(sport, "free_levels_count", 0) or 0),
            )
        )

    return SportAccessSnapshot(is_premium_user=is_premium, sports=tuple(out))

# iguanaflow/access_guard.py
from __future__ import annotations

from datetime import date
from typing import Optional

import structlog
from fastapi import Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from iguanaflow import auth, models
from iguanaflow.database import get_db
from iguanaflow.day_lock import is_day_locked
from iguanaflow.entitlements import AccessTier, SportAccessSnapshot, resolve_sport_access
from iguanaflow.roles import is_admin_role, is_premium_role

logger = structlog.get_logger(__name__)


def current_date() -> date:
    return date.today()


# -------------------------------------------------
# Snapshot loaders (the only I/O around the pure evaluators)
# -------------------------------------------------
def load_sport_access(db: Session, user: models.Profile) -> SportAccessSnapshot:
    purchases = db.scalars(
        select(models.UserSportPurchase).where(models.UserSportPurchase.user_id == user.id)
    ).all()
    catalog = db.scalars(
        select(models.SportCategory)
        .where(models.SportCategory.is_published == True)  # noqa: E712
        .order_by(models.SportCategory.name)
    ).all()
    return resolve_sport_access(user.role, user.sports or [], purchases, catalog)


def load_challenge_days(db: Session, challenge_id: str, user_id: str) -> list[models.ChallengeDay]:
    return list(
        db.scalars(
            select(models.ChallengeDay)
            .where(
                models.ChallengeDay.challenge_id == challenge_id,
                models.ChallengeDay.user_id == user_id,
            )
            .order_by(models.ChallengeDay.day_number)
        ).all()
    )


def has_challenge_purchase(db: Session, user_id: str, challenge_id: str) -> bool:
    row = db.scalar(
        select(models.UserChallengePurchase.id).where(
            models.UserChallengePurchase.user_id == user_id,
            models.UserChallengePurchase.challenge_id == challenge_id,
        )
    )
    return row is not None


def can_access_challenge(db: Session, user: models.Profile, challenge: models.Challenge) -> bool:
    """
    - free challenges: everyone
    - premium challenges: premium/trainer/admin roles, or a purchase row
    """
    if not challenge.premium:
        return True
    if is_premium_role(user.role):
        return True
    return has_challenge_purchase(db, user.id, challenge.id)


# -------------------------------------------------
# Guards
# -------------------------------------------------
def ensure_premium(user: models.Profile) -> models.Profile:
    if is_premium_role(user.role):
        return user

    raise HTTPException(
        status_code=status.HTTP_402_PAYMENT_REQUIRED,
        detail={
            "code": "PREMIUM_REQUIRED",
            "message": "Ta funkcja wymaga konta Premium.",
            "role": user.role,
        },
    )


def require_premium(user: models.Profile = Depends(auth.get_current_user)) -> models.Profile:
    """Premium-only routers (whole training library section)."""
    return ensure_premium(user)


def ensure_sport_level_access(
    snapshot: SportAccessSnapshot,
    sport_key_name: str,
    level_number: int,
) -> AccessTier:
    tier = snapshot.level_access(sport_key_name, level_number)
    if tier != AccessTier.NONE:
        return tier

    raise HTTPException(
        status_code=status.HTTP_402_PAYMENT_REQUIRED,
        detail={
            "code": "SPORT_PATH_REQUIRED",
            "message": "Ten poziom wymaga wykupienia ścieżki.",
            "sport_key_name": sport_key_name,
            "level_number": level_number,
            "price_usd": snapshot.get_sport_price(sport_key_name, "usd"),
            "price_pln": snapshot.get_sport_price(sport_key_name, "pln"),
        },
    )


def require_challenge_access(
    challenge_id: str,
    db: Session = Depends(get_db),
    user: models.Profile = Depends(auth.get_current_user),
) -> models.Challenge:
    challenge = db.get(models.Challenge, challenge_id)
    if not challenge:
        raise HTTPException(status_code=404, detail="Challenge not found")

    if not can_access_challenge(db, user, challenge):
        raise HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail={
                "code": "CHALLENGE_PURCHASE_REQUIRED",
                "message": "To wyzwanie jest płatne.",
                "challenge_id": challenge.id,
            },
        )
    return challenge


def require_challenge_day_unlocked(
    challenge_id: str,
    day_number: int,
    db: Session = Depends(get_db),
    user: models.Profile = Depends(auth.get_current_user),
    challenge: models.Challenge = Depends(require_challenge_access),
    today: Optional[date] = Depends(current_date),
) -> models.ChallengeDay:
    days = load_challenge_days(db, challenge.id, user.id)
    day = next((d for d in days if d.day_number == day_number), None)
    if day is None:
        raise HTTPException(status_code=404, detail="Challenge day not found")

    if is_day_locked(day_number, days, is_admin=is_admin_role(user.role), today=today):
        logger.info("challenge_day_locked", challenge_id=challenge.id, user_id=user.id, day_number=day_number)
        raise HTTPException(
            status_code=status.HTTP_423_LOCKED,
            detail={
                "code": "DAY_LOCKED",
                "message": "Ten dzień jest jeszcze zablokowany.",
                "day_number": day_number,
            },
        )
    return day

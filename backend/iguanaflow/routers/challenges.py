# iguanaflow/routers/challenges.py
from __future__ import annotations

from collections import defaultdict
from datetime import date

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from iguanaflow import auth, models, payments, schemas
from iguanaflow.access_guard import (
    can_access_challenge,
    current_date,
    has_challenge_purchase,
    load_challenge_days,
    require_challenge_access,
    require_challenge_day_unlocked,
)
from iguanaflow.challenge_filters import ChallengeFilters, FilterStatus
from iguanaflow.database import get_db
from iguanaflow.day_lock import DONE_STATUSES, day_lock_map
from iguanaflow.roles import is_admin_role

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/challenges", tags=["challenges"])


def _day_out(day: models.ChallengeDay, locked: bool) -> dict:
    return {
        "day_number": day.day_number,
        "status": day.status,
        "calendar_date": day.calendar_date,
        "is_locked": locked,
    }


def participation_status(days: list[models.ChallengeDay]) -> str:
    if not days:
        return "not-started"
    if all((d.status or "").lower() in DONE_STATUSES for d in days):
        return "completed"
    return "active"


@router.get("", response_model=list[schemas.ChallengeListItemOut])
def list_challenges(
    status: list[FilterStatus] = Query(default=[]),
    db: Session = Depends(get_db),
    user: models.Profile = Depends(auth.get_current_user),
):
    """
    Published challenges with the caller's progress, filtered by
    ?status=active&status=not_started&status=completed and sorted
    active -> not-started -> completed, then by level.
    """
    challenges = db.scalars(
        select(models.Challenge).where(models.Challenge.status == "published")
    ).all()

    days_by_challenge: dict[str, list[models.ChallengeDay]] = defaultdict(list)
    for d in db.scalars(select(models.ChallengeDay).where(models.ChallengeDay.user_id == user.id)):
        days_by_challenge[d.challenge_id].append(d)

    items = [
        {
            "id": c.id,
            "title": c.title,
            "description": c.description,
            "level": c.level,
            "premium": c.premium,
            "status": participation_status(days_by_challenge.get(c.id, [])),
            "can_access": can_access_challenge(db, user, c),
        }
        for c in challenges
    ]

    filters = ChallengeFilters(status=list(status))
    return filters.sort(filters.apply(items))


@router.get("/{challenge_id}/days", response_model=schemas.ChallengeCalendarOut)
def challenge_calendar(
    challenge: models.Challenge = Depends(require_challenge_access),
    db: Session = Depends(get_db),
    user: models.Profile = Depends(auth.get_current_user),
    today: date = Depends(current_date),
):
    days = load_challenge_days(db, challenge.id, user.id)
    locks = day_lock_map(days, is_admin=is_admin_role(user.role), today=today)
    return {
        "challenge_id": challenge.id,
        "days": [_day_out(d, locks.get(d.day_number, True)) for d in days],
    }


@router.get("/{challenge_id}/days/{day_number}", response_model=schemas.ChallengeDayOut)
def challenge_day(day: models.ChallengeDay = Depends(require_challenge_day_unlocked)):
    return _day_out(day, False)


@router.post("/{challenge_id}/purchase", response_model=schemas.CheckoutOut)
def purchase_challenge(
    challenge_id: str,
    payload: schemas.ChallengePurchaseIn,
    db: Session = Depends(get_db),
    user: models.Profile = Depends(auth.get_current_user),
):
    payments.require_billing_enabled()

    challenge = db.get(models.Challenge, challenge_id)
    if not challenge:
        raise HTTPException(status_code=404, detail="Challenge not found")

    if not challenge.premium:
        raise HTTPException(status_code=400, detail="This challenge is not premium")

    if has_challenge_purchase(db, user.id, challenge.id):
        raise HTTPException(status_code=400, detail="You have already purchased this challenge")

    currency = payments.normalize_currency(payload.currency)
    configured = challenge.price_pln if currency == "pln" else challenge.price_usd
    amount = configured or payments.DEFAULT_CHALLENGE_PRICES[currency]

    logger.info("challenge_checkout_requested", user_id=user.id, challenge_id=challenge.id, currency=currency)

    return payments.create_payment_checkout(
        db,
        user=user,
        order_type="challenge",
        item_id=challenge.id,
        product_name=f"Premium Challenge: {challenge.title}",
        product_description="Unlock premium challenge access",
        amount=amount,
        currency=currency,
        payment_method_types=payments.CHALLENGE_PAYMENT_METHODS,
        success_path="/challenges?purchase=success",
        cancel_path="/challenges?purchase=cancelled",
        metadata={
            "user_id": user.id,
            "challenge_id": challenge.id,
            "purchase_type": "challenge",
        },
    )

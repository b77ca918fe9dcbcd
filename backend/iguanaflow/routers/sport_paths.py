# iguanaflow/routers/sport_paths.py
from __future__ import annotations

from dataclasses import asdict
from datetime import datetime

import structlog
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from iguanaflow import auth, models, payments, schemas
from iguanaflow.access_guard import ensure_sport_level_access, load_sport_access
from iguanaflow.database import get_db
from iguanaflow.entitlements import AccessTier, is_free_level

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/sport-paths", tags=["sport-paths"])


def normalize_code(raw: str) -> str:
    return (raw or "").strip().upper()


def _existing_purchase(db: Session, user_id: str, sport_category_id: str):
    return db.scalar(
        select(models.UserSportPurchase).where(
            models.UserSportPurchase.user_id == user_id,
            models.UserSportPurchase.sport_category_id == sport_category_id,
        )
    )


def claim_code_use(db: Session, code_id: str) -> bool:
    """
    Count one use of a redemption code, only while it is under its cap.
    The check and the increment are a single UPDATE so concurrent
    redemptions cannot push a capped code past max_uses.
    """
    result = db.execute(
        update(models.SportRedemptionCode)
        .where(
            models.SportRedemptionCode.id == code_id,
            or_(
                models.SportRedemptionCode.max_uses.is_(None),
                models.SportRedemptionCode.current_uses < models.SportRedemptionCode.max_uses,
            ),
        )
        .values(current_uses=models.SportRedemptionCode.current_uses + 1)
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount == 1


@router.get("/access", response_model=schemas.SportAccessOut)
def sport_path_access(
    db: Session = Depends(get_db),
    user: models.Profile = Depends(auth.get_current_user),
):
    snapshot = load_sport_access(db, user)
    return {
        "is_premium_user": snapshot.is_premium_user,
        "sports": [asdict(s) for s in snapshot.sports],
    }


@router.get("/{sport_key}/levels", response_model=list[schemas.SportLevelOut])
def sport_path_levels(
    sport_key: str,
    db: Session = Depends(get_db),
    user: models.Profile = Depends(auth.get_current_user),
):
    category = db.scalar(
        select(models.SportCategory).where(
            models.SportCategory.key_name == sport_key,
            models.SportCategory.is_published == True,  # noqa: E712
        )
    )
    if not category:
        raise HTTPException(status_code=404, detail="Sport category not found")

    snapshot = load_sport_access(db, user)
    levels = db.scalars(
        select(models.SportLevel)
        .where(
            models.SportLevel.sport_category_id == category.id,
            models.SportLevel.status == "published",
        )
        .order_by(models.SportLevel.level_number)
    ).all()

    out = []
    for level in levels:
        is_demo = is_free_level(level.level_number, category.free_levels_count)
        tier = snapshot.level_access(sport_key, level.level_number)
        out.append(
            {
                "id": level.id,
                "level_number": level.level_number,
                "level_name": level.level_name,
                "point_limit": level.point_limit,
                "is_demo": is_demo,
                "access": tier.value,
                "can_access": tier != AccessTier.NONE,
            }
        )
    return out


@router.get("/{sport_key}/levels/{level_number}", response_model=schemas.SportLevelOut)
def sport_path_level(
    sport_key: str,
    level_number: int,
    db: Session = Depends(get_db),
    user: models.Profile = Depends(auth.get_current_user),
):
    category = db.scalar(
        select(models.SportCategory).where(
            models.SportCategory.key_name == sport_key,
            models.SportCategory.is_published == True,  # noqa: E712
        )
    )
    if not category:
        raise HTTPException(status_code=404, detail="Sport category not found")

    level = db.scalar(
        select(models.SportLevel).where(
            models.SportLevel.sport_category_id == category.id,
            models.SportLevel.level_number == level_number,
            models.SportLevel.status == "published",
        )
    )
    if not level:
        raise HTTPException(status_code=404, detail="Level not found")

    tier = ensure_sport_level_access(load_sport_access(db, user), sport_key, level_number)
    return {
        "id": level.id,
        "level_number": level.level_number,
        "level_name": level.level_name,
        "point_limit": level.point_limit,
        "is_demo": is_free_level(level.level_number, category.free_levels_count),
        "access": tier.value,
        "can_access": True,
    }


@router.post("/purchase", response_model=schemas.CheckoutOut)
def purchase_sport_path(
    payload: schemas.SportPathPurchaseIn,
    db: Session = Depends(get_db),
    user: models.Profile = Depends(auth.get_current_user),
):
    payments.require_billing_enabled()

    category = db.get(models.SportCategory, payload.sport_category_id)
    if not category:
        raise HTTPException(status_code=404, detail="Sport category not found")

    if _existing_purchase(db, user.id, category.id):
        raise HTTPException(status_code=400, detail="You already have access to this sport path")

    currency = payments.normalize_currency(payload.currency)
    price = category.price_pln if currency == "pln" else category.price_usd
    if not price or price <= 0:
        raise HTTPException(status_code=400, detail="Invalid price configuration for this sport")

    logger.info("sport_path_checkout_requested", user_id=user.id, sport=category.key_name, currency=currency)

    return payments.create_payment_checkout(
        db,
        user=user,
        order_type="sport_path",
        item_id=category.id,
        product_name=f"Ścieżka: {category.name}",
        product_description=(
            category.description
            or f"Pełny dostęp do wszystkich poziomów i wyzwań w ścieżce {category.name}"
        ),
        amount=price,
        currency=currency,
        payment_method_types=payments.SPORT_PATH_PAYMENT_METHODS,
        success_path="/payment-success?session_id={CHECKOUT_SESSION_ID}&type=sport_path",
        cancel_path="/payment-cancelled?type=sport_path",
        metadata={
            "user_id": user.id,
            "sport_category_id": category.id,
            "sport_name": category.name,
            "purchase_type": "sport_path",
        },
    )


@router.post("/redeem", response_model=schemas.RedeemCodeOut)
def redeem_sport_code(
    payload: schemas.RedeemCodeIn,
    db: Session = Depends(get_db),
    user: models.Profile = Depends(auth.get_current_user),
):
    code = normalize_code(payload.code)
    if not code:
        raise HTTPException(status_code=400, detail="Code is required")

    redemption = db.scalar(
        select(models.SportRedemptionCode).where(
            models.SportRedemptionCode.code == code,
            models.SportRedemptionCode.is_active == True,  # noqa: E712
        )
    )
    if not redemption:
        logger.info("sport_code_not_found", user_id=user.id)
        raise HTTPException(status_code=400, detail="Invalid or expired code")

    if redemption.expires_at and redemption.expires_at < datetime.utcnow():
        raise HTTPException(status_code=400, detail="This code has expired")

    if redemption.max_uses and redemption.current_uses >= redemption.max_uses:
        raise HTTPException(status_code=400, detail="This code has reached its maximum uses")

    if _existing_purchase(db, user.id, redemption.sport_category_id):
        raise HTTPException(status_code=400, detail="You already have access to this sport path")

    sport_name = redemption.sport_category.name if redemption.sport_category else None

    try:
        db.add(
            models.UserSportPurchase(
                user_id=user.id,
                sport_category_id=redemption.sport_category_id,
                purchase_type="redemption",
                redemption_code=code,
                notes=f"Redeemed code: {code}",
            )
        )
        if not claim_code_use(db, redemption.id):
            db.rollback()
            raise HTTPException(status_code=400, detail="This code has reached its maximum uses")
        db.add(
            models.Order(
                user_id=user.id,
                order_type="sport_path_redemption",
                item_id=redemption.sport_category_id,
                status="completed",
            )
        )
        db.commit()
    except IntegrityError:
        # concurrent redemption for the same user+sport
        db.rollback()
        raise HTTPException(status_code=400, detail="You already have access to this sport path")

    logger.info("sport_code_redeemed", user_id=user.id, sport_category_id=redemption.sport_category_id)

    return {
        "success": True,
        "sport_name": sport_name,
        "message": f"Successfully unlocked {sport_name} path!",
    }

# iguanaflow/routers/billing.py
from __future__ import annotations

import stripe
import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from iguanaflow import auth, models, payments, schemas
from iguanaflow.database import get_db
from iguanaflow.roles import Role, is_premium_role

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/billing", tags=["billing"])


# -----------------------------
# Premium subscription checkout
# -----------------------------
@router.post("/checkout", response_model=schemas.CheckoutOut)
def billing_checkout(
    payload: schemas.SubscriptionCheckoutIn,
    db: Session = Depends(get_db),
    user: models.Profile = Depends(auth.get_current_user),
):
    if is_premium_role(user.role):
        raise HTTPException(status_code=400, detail="Subscription already active")

    currency = payments.normalize_currency(payload.currency)
    return payments.create_subscription_checkout(db, user=user, currency=currency)


@router.get("/status")
def billing_status(user: models.Profile = Depends(auth.get_current_user)):
    return {
        "ok": True,
        "billing_enabled": payments.billing_enabled(),
        "role": user.role,
        "is_premium": is_premium_role(user.role),
    }


# -----------------------------
# Webhook event handlers
# -----------------------------
def _set_order_status(db: Session, session_id: str, new_status: str) -> None:
    db.execute(
        update(models.Order)
        .where(models.Order.stripe_session_id == session_id)
        .values(status=new_status)
    )


def _record_sport_path_purchase(db: Session, session: dict, user_id: str, sport_category_id: str) -> bool:
    session_id = session.get("id")

    already = db.scalar(
        select(models.UserSportPurchase.id).where(
            (models.UserSportPurchase.stripe_session_id == session_id)
            | (
                (models.UserSportPurchase.user_id == user_id)
                & (models.UserSportPurchase.sport_category_id == sport_category_id)
            )
        )
    )
    if already:
        logger.info("sport_purchase_already_recorded", session_id=session_id, user_id=user_id)
        return False

    db.add(
        models.UserSportPurchase(
            user_id=user_id,
            sport_category_id=sport_category_id,
            purchase_type="payment",
            payment_amount=session.get("amount_total"),
            currency=session.get("currency"),
            stripe_session_id=session_id,
        )
    )
    return True


def _record_challenge_purchase(db: Session, session: dict, user_id: str, challenge_id: str) -> bool:
    session_id = session.get("id")

    already = db.scalar(
        select(models.UserChallengePurchase.id).where(
            models.UserChallengePurchase.stripe_session_id == session_id
        )
    )
    if already:
        logger.info("challenge_purchase_already_recorded", session_id=session_id, user_id=user_id)
        return False

    db.add(
        models.UserChallengePurchase(
            user_id=user_id,
            challenge_id=challenge_id,
            purchase_type="payment",
            payment_amount=session.get("amount_total"),
            currency=session.get("currency"),
            stripe_session_id=session_id,
        )
    )
    return True


def _activate_subscription(db: Session, user_id: str) -> bool:
    user = db.get(models.Profile, user_id)
    if not user:
        return False
    # never downgrade trainers/admins
    if is_premium_role(user.role):
        return False
    user.role = Role.PREMIUM.value
    return True


def handle_checkout_completed(db: Session, session: dict) -> dict:
    """
    checkout.session.completed:
      - order row for the session -> completed
      - exactly one purchase row per session id, by metadata.purchase_type
    """
    session_id = session.get("id") or ""
    md = session.get("metadata") or {}
    user_id = md.get("user_id")
    purchase_type = md.get("purchase_type")

    logger.info("checkout_completed", session_id=session_id, purchase_type=purchase_type, user_id=user_id)

    _set_order_status(db, session_id, "completed")

    recorded = False
    if purchase_type == "sport_path" and user_id and md.get("sport_category_id"):
        recorded = _record_sport_path_purchase(db, session, user_id, md["sport_category_id"])
    elif purchase_type == "challenge" and user_id and md.get("challenge_id"):
        recorded = _record_challenge_purchase(db, session, user_id, md["challenge_id"])
    elif purchase_type == "subscription" and user_id:
        recorded = _activate_subscription(db, user_id)

    db.commit()
    return {"received": True, "recorded": recorded}


def handle_checkout_expired(db: Session, session: dict) -> dict:
    session_id = session.get("id") or ""
    _set_order_status(db, session_id, "expired")
    db.commit()
    logger.info("checkout_session_expired", session_id=session_id)
    return {"received": True}


# -----------------------------
# Webhook (public), disabled when BILLING_ENABLED=false
# -----------------------------
@router.post("/stripe/webhook")
async def stripe_webhook(request: Request, db: Session = Depends(get_db)):
    payments.init_stripe()
    wh_secret = payments.webhook_secret()

    payload = await request.body()
    sig = request.headers.get("stripe-signature")
    if not sig:
        raise HTTPException(status_code=400, detail="Missing Stripe signature header")

    try:
        event = stripe.Webhook.construct_event(payload=payload, sig_header=sig, secret=wh_secret)
    except (ValueError, stripe.SignatureVerificationError):
        logger.warning("stripe_webhook_signature_invalid")
        raise HTTPException(status_code=400, detail="Invalid Stripe webhook signature")

    event = payments.as_dict(event)
    etype = (event.get("type") or "").strip()
    obj = payments.as_dict((event.get("data") or {}).get("object"))

    logger.info("stripe_webhook_received", type=etype)

    try:
        if etype == "checkout.session.completed":
            return handle_checkout_completed(db, obj)

        if etype == "checkout.session.expired":
            return handle_checkout_expired(db, obj)
    except Exception:
        db.rollback()
        logger.exception("stripe_webhook_failed", type=etype, session_id=obj.get("id"))
        raise HTTPException(status_code=500, detail="Webhook processing failed")

    logger.info("stripe_webhook_ignored", type=etype)
    return {"received": True, "ignored": True, "type": etype}

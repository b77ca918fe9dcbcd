# iguanaflow/payments.py
from __future__ import annotations

import os
from typing import Any, Optional

import stripe
import structlog
from fastapi import HTTPException
from sqlalchemy.orm import Session

from iguanaflow import models

logger = structlog.get_logger(__name__)

# Fallback prices in minor units when a challenge has none configured
DEFAULT_CHALLENGE_PRICES = {"usd": 999, "pln": 3999}
# Monthly premium subscription
SUBSCRIPTION_PRICES = {"usd": 1000, "pln": 4000}
SUBSCRIPTION_TRIAL_DAYS = 7

SPORT_PATH_PAYMENT_METHODS = ["card", "blik", "p24"]
CHALLENGE_PAYMENT_METHODS = ["card", "blik"]


# -----------------------------
# Billing feature flag
# -----------------------------
def billing_enabled() -> bool:
    v = (os.getenv("BILLING_ENABLED") or "").strip().lower()
    # default = enabled unless explicitly false-like
    return v not in ("0", "false", "no", "off")


def require_billing_enabled() -> None:
    if not billing_enabled():
        raise HTTPException(status_code=503, detail="Billing disabled")


# -----------------------------
# Stripe config helpers
# -----------------------------
def get_base_url() -> str:
    base = (os.getenv("APP_BASE_URL") or "").strip().rstrip("/")
    return base or "http://127.0.0.1:8000"


def init_stripe() -> None:
    require_billing_enabled()
    key = (os.getenv("STRIPE_SECRET_KEY") or "").strip()
    if not key:
        raise HTTPException(status_code=500, detail="Stripe not configured (missing STRIPE_SECRET_KEY)")
    stripe.api_key = key


def webhook_secret() -> str:
    wh = (os.getenv("STRIPE_WEBHOOK_SECRET") or "").strip()
    if not wh:
        raise HTTPException(status_code=500, detail="Missing STRIPE_WEBHOOK_SECRET")
    return wh


def normalize_currency(currency: Optional[str]) -> str:
    return "pln" if (currency or "").strip().lower() == "pln" else "usd"


def as_dict(obj: Any) -> dict:
    """Stripe objects -> plain dicts (works for dict payloads in tests too)."""
    if obj is None:
        return {}
    if isinstance(obj, dict):
        return obj
    to_dict = getattr(obj, "to_dict", None) or getattr(obj, "to_dict_recursive", None)
    if to_dict:
        return to_dict()
    return dict(obj)


def find_or_create_customer(user: models.Profile) -> str:
    customers = stripe.Customer.list(email=user.email, limit=1)
    data = list(getattr(customers, "data", None) or [])
    if data:
        return data[0]["id"]

    customer = stripe.Customer.create(email=user.email, metadata={"user_id": str(user.id)})
    return customer["id"]


def create_payment_checkout(
    db: Session,
    *,
    user: models.Profile,
    order_type: str,
    item_id: str,
    product_name: str,
    product_description: str,
    amount: int,
    currency: str,
    payment_method_types: list[str],
    success_path: str,
    cancel_path: str,
    metadata: dict,
) -> dict:
    """
    One-off Stripe Checkout session + a pending order row keyed by the session id.
    The purchase row itself is only created by the webhook.
    """
    init_stripe()
    base = get_base_url()
    customer_id = find_or_create_customer(user)

    session = stripe.checkout.Session.create(
        customer=customer_id,
        payment_method_types=payment_method_types,
        line_items=[
            {
                "price_data": {
                    "currency": currency,
                    "product_data": {"name": product_name, "description": product_description},
                    "unit_amount": int(amount),
                },
                "quantity": 1,
            }
        ],
        mode="payment",
        success_url=f"{base}{success_path}",
        cancel_url=f"{base}{cancel_path}",
        metadata={k: str(v) for k, v in metadata.items()},
    )

    db.add(
        models.Order(
            user_id=user.id,
            order_type=order_type,
            item_id=item_id,
            amount=int(amount),
            currency=currency,
            status="pending",
            stripe_session_id=session["id"],
        )
    )
    db.commit()

    logger.info("checkout_session_created", order_type=order_type, item_id=item_id, session_id=session["id"])
    return {"url": session["url"], "session_id": session["id"]}


def create_subscription_checkout(db: Session, *, user: models.Profile, currency: str) -> dict:
    init_stripe()
    base = get_base_url()
    customer_id = find_or_create_customer(user)
    amount = SUBSCRIPTION_PRICES[currency]

    session = stripe.checkout.Session.create(
        customer=customer_id,
        line_items=[
            {
                "price_data": {
                    "currency": currency,
                    "product_data": {"name": "Premium Subscription"},
                    "unit_amount": amount,
                    "recurring": {"interval": "month"},
                },
                "quantity": 1,
            }
        ],
        mode="subscription",
        subscription_data={"trial_period_days": SUBSCRIPTION_TRIAL_DAYS},
        success_url=f"{base}/payment-success?session_id={{CHECKOUT_SESSION_ID}}",
        cancel_url=f"{base}/payment-cancelled",
        metadata={"user_id": str(user.id), "purchase_type": "subscription"},
    )

    db.add(
        models.Order(
            user_id=user.id,
            order_type="subscription",
            amount=amount,
            currency=currency,
            status="pending",
            stripe_session_id=session["id"],
        )
    )
    db.commit()

    logger.info("subscription_checkout_created", user_id=user.id, session_id=session["id"])
    return {"url": session["url"], "session_id": session["id"]}

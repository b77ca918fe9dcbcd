from __future__ import annotations

from datetime import datetime, timedelta, timezone

import stripe

from iguanaflow import models, payments
from iguanaflow.routers.sport_paths import claim_code_use
from tests.conftest import auth_headers


def _code(db_session, sport, code="POLE2026", **kw) -> models.SportRedemptionCode:
    row = models.SportRedemptionCode(code=code, sport_category_id=sport.id, **kw)
    db_session.add(row)
    db_session.commit()
    return row


def test_access_requires_auth(client) -> None:
    response = client.get("/sport-paths/access")
    assert response.status_code == 401


def test_access_lists_published_categories(client, db_session, make_user, sport) -> None:
    db_session.add(models.SportCategory(name="Silks", key_name="silks", is_published=False))
    db_session.commit()
    user = make_user(sports=["pole_dance"])

    response = client.get("/sport-paths/access", headers=auth_headers(user))

    assert response.status_code == 200
    body = response.json()
    assert body["is_premium_user"] is False
    assert [s["sport_key_name"] for s in body["sports"]] == ["pole_dance"]
    assert body["sports"][0]["has_demo_access"] is True
    assert body["sports"][0]["has_full_access"] is False


def test_levels_for_demo_user(client, make_user, sport) -> None:
    user = make_user(sports=["pole_dance"])

    response = client.get("/sport-paths/pole_dance/levels", headers=auth_headers(user))

    assert response.status_code == 200
    levels = response.json()
    assert [(lv["level_number"], lv["access"], lv["can_access"]) for lv in levels] == [
        (1, "demo", True),
        (2, "demo", True),
        (3, "none", False),
        (4, "none", False),
    ]


def test_levels_for_premium_user(client, make_user, sport) -> None:
    user = make_user(role="premium")

    response = client.get("/sport-paths/pole_dance/levels", headers=auth_headers(user))

    assert {lv["access"] for lv in response.json()} == {"full"}


def test_locked_level_returns_payment_required(client, make_user, sport) -> None:
    user = make_user(sports=["pole_dance"])

    ok = client.get("/sport-paths/pole_dance/levels/2", headers=auth_headers(user))
    locked = client.get("/sport-paths/pole_dance/levels/3", headers=auth_headers(user))

    assert ok.status_code == 200
    assert ok.json()["access"] == "demo"
    assert locked.status_code == 402
    assert locked.json()["detail"]["code"] == "SPORT_PATH_REQUIRED"
    assert locked.json()["detail"]["price_usd"] == 4999


def test_locked_level_redirects_browsers_to_pricing(client, make_user, sport) -> None:
    user = make_user()

    response = client.get(
        "/sport-paths/pole_dance/levels/3",
        headers={**auth_headers(user), "Accept": "text/html"},
        follow_redirects=False,
    )

    assert response.status_code == 303
    assert response.headers["location"] == "/pricing"


def test_unknown_sport_levels_404(client, make_user) -> None:
    user = make_user()
    response = client.get("/sport-paths/nope/levels", headers=auth_headers(user))
    assert response.status_code == 404


def test_redeem_code_grants_access(client, db_session, make_user, sport) -> None:
    user = make_user()
    code = _code(db_session, sport, max_uses=5)

    response = client.post("/sport-paths/redeem", json={"code": " pole2026 "}, headers=auth_headers(user))

    assert response.status_code == 200
    assert response.json()["sport_name"] == "Pole Dance"

    purchase = db_session.query(models.UserSportPurchase).filter_by(user_id=user.id).one()
    assert purchase.purchase_type == "redemption"
    assert purchase.redemption_code == "POLE2026"
    db_session.refresh(code)
    assert code.current_uses == 1
    order = db_session.query(models.Order).filter_by(user_id=user.id).one()
    assert (order.order_type, order.status) == ("sport_path_redemption", "completed")

    levels = client.get("/sport-paths/pole_dance/levels", headers=auth_headers(user)).json()
    assert {lv["access"] for lv in levels} == {"full"}


def test_redeem_twice_is_rejected_without_changes(client, db_session, make_user, sport) -> None:
    user = make_user()
    code = _code(db_session, sport)

    client.post("/sport-paths/redeem", json={"code": "POLE2026"}, headers=auth_headers(user))
    response = client.post("/sport-paths/redeem", json={"code": "POLE2026"}, headers=auth_headers(user))

    assert response.status_code == 400
    assert response.json()["detail"] == "You already have access to this sport path"
    db_session.refresh(code)
    assert code.current_uses == 1
    assert db_session.query(models.UserSportPurchase).count() == 1


def test_redeem_rejects_unknown_inactive_expired_and_exhausted_codes(client, db_session, make_user, sport) -> None:
    user = make_user()
    _code(db_session, sport, code="OFF", is_active=False)
    _code(db_session, sport, code="OLD", expires_at=datetime.utcnow() - timedelta(days=1))
    _code(db_session, sport, code="USED", max_uses=1, current_uses=1)

    def redeem(c):
        return client.post("/sport-paths/redeem", json={"code": c}, headers=auth_headers(user))

    assert redeem("MISSING").json()["detail"] == "Invalid or expired code"
    assert redeem("OFF").json()["detail"] == "Invalid or expired code"
    assert redeem("OLD").json()["detail"] == "This code has expired"
    assert redeem("USED").json()["detail"] == "This code has reached its maximum uses"
    assert db_session.query(models.UserSportPurchase).count() == 0


def test_purchase_creates_checkout_and_pending_order(client, db_session, make_user, sport, billing_env, monkeypatch) -> None:
    user = make_user()
    captured = {}

    def fake_session_create(**kwargs):
        captured.update(kwargs)
        return {"id": "cs_test_1", "url": "https://checkout.stripe.test/cs_test_1"}

    monkeypatch.setattr(payments, "find_or_create_customer", lambda u: "cus_1")
    monkeypatch.setattr(stripe.checkout.Session, "create", fake_session_create)

    response = client.post(
        "/sport-paths/purchase",
        json={"sport_category_id": sport.id, "currency": "pln"},
        headers=auth_headers(user),
    )

    assert response.status_code == 200
    assert response.json() == {"url": "https://checkout.stripe.test/cs_test_1", "session_id": "cs_test_1"}
    assert captured["mode"] == "payment"
    assert captured["line_items"][0]["price_data"]["unit_amount"] == 19900
    assert captured["line_items"][0]["price_data"]["currency"] == "pln"
    assert captured["metadata"]["purchase_type"] == "sport_path"
    assert captured["metadata"]["sport_category_id"] == sport.id

    order = db_session.query(models.Order).one()
    assert (order.status, order.stripe_session_id, order.amount) == ("pending", "cs_test_1", 19900)
    # no purchase until the webhook confirms payment
    assert db_session.query(models.UserSportPurchase).count() == 0


def test_purchase_rejects_owned_and_unpriced_sports(client, db_session, make_user, sport, billing_env) -> None:
    user = make_user()
    free_sport = models.SportCategory(name="Stretching", key_name="stretching", is_published=True)
    db_session.add(free_sport)
    db_session.add(models.UserSportPurchase(user_id=user.id, sport_category_id=sport.id, purchase_type="payment"))
    db_session.commit()

    owned = client.post("/sport-paths/purchase", json={"sport_category_id": sport.id}, headers=auth_headers(user))
    unpriced = client.post(
        "/sport-paths/purchase", json={"sport_category_id": free_sport.id}, headers=auth_headers(user)
    )
    missing = client.post("/sport-paths/purchase", json={"sport_category_id": "nope"}, headers=auth_headers(user))

    assert owned.status_code == 400
    assert unpriced.status_code == 400
    assert unpriced.json()["detail"] == "Invalid price configuration for this sport"
    assert missing.status_code == 404


def test_purchase_when_billing_disabled(client, make_user, sport, monkeypatch) -> None:
    monkeypatch.setenv("BILLING_ENABLED", "false")
    user = make_user()

    response = client.post("/sport-paths/purchase", json={"sport_category_id": sport.id}, headers=auth_headers(user))

    assert response.status_code == 503


def test_code_expiry_respects_utc_offset(client, db_session, make_user, sport) -> None:
    admin = make_user(role="admin")
    user = make_user()
    plus_five = timezone(timedelta(hours=5))
    # one hour ago, written as +05:00 wall-clock time
    expired = (datetime.now(timezone.utc) - timedelta(hours=1)).astimezone(plus_five)
    valid = (datetime.now(timezone.utc) + timedelta(hours=1)).astimezone(plus_five)

    for code, expires_at in (("late", expired), ("soon", valid)):
        created = client.post(
            "/admin/redemption-codes",
            json={"code": code, "sport_category_id": sport.id, "expires_at": expires_at.isoformat()},
            headers=auth_headers(admin),
        )
        assert created.status_code == 201

    stored = db_session.query(models.SportRedemptionCode).filter_by(code="LATE").one()
    assert stored.expires_at < datetime.utcnow()

    late = client.post("/sport-paths/redeem", json={"code": "LATE"}, headers=auth_headers(user))
    assert late.status_code == 400
    assert late.json()["detail"] == "This code has expired"
    assert db_session.query(models.UserSportPurchase).count() == 0

    soon = client.post("/sport-paths/redeem", json={"code": "SOON"}, headers=auth_headers(user))
    assert soon.status_code == 200


def test_claim_code_use_stops_at_cap(db_session, sport) -> None:
    capped = _code(db_session, sport, code="CAPPED", max_uses=2, current_uses=1)
    open_ended = _code(db_session, sport, code="OPEN", current_uses=7)

    assert claim_code_use(db_session, capped.id) is True
    # a second redeemer that read current_uses=1 before the first commit
    assert claim_code_use(db_session, capped.id) is False
    assert claim_code_use(db_session, open_ended.id) is True
    db_session.commit()

    db_session.refresh(capped)
    db_session.refresh(open_ended)
    assert capped.current_uses == 2
    assert open_ended.current_uses == 8

from __future__ import annotations

from datetime import timedelta

import stripe

from iguanaflow import models, payments
from tests.conftest import TODAY, auth_headers


def _challenge(db_session, *, premium=False, **kw) -> models.Challenge:
    ch = models.Challenge(title="30 dni rozciągania", premium=premium, **kw)
    db_session.add(ch)
    db_session.commit()
    return ch


def _calendar(db_session, challenge, user, statuses_and_offsets) -> None:
    for n, (status, offset) in enumerate(statuses_and_offsets, start=1):
        db_session.add(
            models.ChallengeDay(
                challenge_id=challenge.id,
                user_id=user.id,
                day_number=n,
                status=status,
                calendar_date=TODAY + timedelta(days=offset),
            )
        )
    db_session.commit()


def test_calendar_marks_locked_days(client, db_session, make_user) -> None:
    user = make_user()
    ch = _challenge(db_session)
    _calendar(db_session, ch, user, [("completed", -2), ("rest", -1), ("pending", 0), ("pending", 1)])

    response = client.get(f"/challenges/{ch.id}/days", headers=auth_headers(user))

    assert response.status_code == 200
    assert [(d["day_number"], d["is_locked"]) for d in response.json()["days"]] == [
        (1, False),
        (2, False),
        (3, False),
        (4, True),
    ]


def test_calendar_only_shows_own_days(client, db_session, make_user) -> None:
    user = make_user()
    other = make_user()
    ch = _challenge(db_session)
    _calendar(db_session, ch, other, [("completed", -1), ("pending", 0)])

    response = client.get(f"/challenges/{ch.id}/days", headers=auth_headers(user))

    assert response.json()["days"] == []


def test_admin_sees_every_day_unlocked(client, db_session, make_user) -> None:
    admin = make_user(role="admin")
    ch = _challenge(db_session)
    _calendar(db_session, ch, admin, [("pending", 0), ("pending", 1), ("pending", 5)])

    days = client.get(f"/challenges/{ch.id}/days", headers=auth_headers(admin)).json()["days"]

    assert all(d["is_locked"] is False for d in days)
    assert client.get(f"/challenges/{ch.id}/days/3", headers=auth_headers(admin)).status_code == 200


def test_locked_day_returns_423(client, db_session, make_user) -> None:
    user = make_user()
    ch = _challenge(db_session)
    _calendar(db_session, ch, user, [("pending", -1), ("pending", 0)])

    open_day = client.get(f"/challenges/{ch.id}/days/1", headers=auth_headers(user))
    locked_day = client.get(f"/challenges/{ch.id}/days/2", headers=auth_headers(user))
    missing_day = client.get(f"/challenges/{ch.id}/days/9", headers=auth_headers(user))

    assert open_day.status_code == 200
    assert open_day.json()["is_locked"] is False
    assert locked_day.status_code == 423
    assert locked_day.json()["detail"]["code"] == "DAY_LOCKED"
    assert missing_day.status_code == 404


def test_premium_challenge_requires_purchase_or_premium_role(client, db_session, make_user) -> None:
    free_user = make_user()
    buyer = make_user()
    premium_user = make_user(role="premium")
    ch = _challenge(db_session, premium=True)
    db_session.add(models.UserChallengePurchase(user_id=buyer.id, challenge_id=ch.id, stripe_session_id="cs_x"))
    db_session.commit()

    assert client.get(f"/challenges/{ch.id}/days", headers=auth_headers(free_user)).status_code == 402
    assert client.get(f"/challenges/{ch.id}/days", headers=auth_headers(buyer)).status_code == 200
    assert client.get(f"/challenges/{ch.id}/days", headers=auth_headers(premium_user)).status_code == 200


def test_unknown_challenge_404(client, make_user) -> None:
    user = make_user()
    assert client.get("/challenges/nope/days", headers=auth_headers(user)).status_code == 404


def test_purchase_challenge_uses_default_price(client, db_session, make_user, billing_env, monkeypatch) -> None:
    user = make_user()
    ch = _challenge(db_session, premium=True)
    captured = {}

    def fake_session_create(**kwargs):
        captured.update(kwargs)
        return {"id": "cs_ch_1", "url": "https://checkout.stripe.test/cs_ch_1"}

    monkeypatch.setattr(payments, "find_or_create_customer", lambda u: "cus_1")
    monkeypatch.setattr(stripe.checkout.Session, "create", fake_session_create)

    response = client.post(f"/challenges/{ch.id}/purchase", json={"currency": "usd"}, headers=auth_headers(user))

    assert response.status_code == 200
    assert captured["line_items"][0]["price_data"]["unit_amount"] == 999
    assert captured["metadata"] == {"user_id": user.id, "challenge_id": ch.id, "purchase_type": "challenge"}
    order = db_session.query(models.Order).one()
    assert (order.order_type, order.status) == ("challenge", "pending")


def test_purchase_challenge_rejections(client, db_session, make_user, billing_env) -> None:
    user = make_user()
    free_ch = _challenge(db_session)
    paid_ch = _challenge(db_session, premium=True)
    db_session.add(models.UserChallengePurchase(user_id=user.id, challenge_id=paid_ch.id, stripe_session_id="cs_old"))
    db_session.commit()

    not_premium = client.post(f"/challenges/{free_ch.id}/purchase", json={}, headers=auth_headers(user))
    owned = client.post(f"/challenges/{paid_ch.id}/purchase", json={}, headers=auth_headers(user))

    assert not_premium.status_code == 400
    assert not_premium.json()["detail"] == "This challenge is not premium"
    assert owned.status_code == 400


def test_challenge_list_sorted_by_progress_then_level(client, db_session, make_user) -> None:
    user = make_user()
    done = _challenge(db_session, level=1)
    fresh_hard = _challenge(db_session, level=3)
    fresh_easy = _challenge(db_session, level=1)
    running = _challenge(db_session, level=2)
    _challenge(db_session, status="draft")
    _calendar(db_session, done, user, [("completed", -2), ("rest", -1)])
    _calendar(db_session, running, user, [("completed", -1), ("pending", 0)])

    response = client.get("/challenges", headers=auth_headers(user))

    assert response.status_code == 200
    assert [(c["id"], c["status"]) for c in response.json()] == [
        (running.id, "active"),
        (fresh_easy.id, "not-started"),
        (fresh_hard.id, "not-started"),
        (done.id, "completed"),
    ]


def test_challenge_list_status_filter(client, db_session, make_user) -> None:
    user = make_user()
    done = _challenge(db_session)
    fresh = _challenge(db_session, premium=True)
    running = _challenge(db_session)
    _calendar(db_session, done, user, [("completed", -1)])
    _calendar(db_session, running, user, [("pending", 0)])

    def listed(params):
        return [c["id"] for c in client.get("/challenges", params=params, headers=auth_headers(user)).json()]

    assert listed({"status": "completed"}) == [done.id]
    assert listed({"status": ["active", "not_started"]}) == [running.id, fresh.id]

    bad = client.get("/challenges", params={"status": "archived"}, headers=auth_headers(user))
    assert bad.status_code == 422

    item = client.get("/challenges", params={"status": "not_started"}, headers=auth_headers(user)).json()[0]
    assert (item["premium"], item["can_access"]) == (True, False)

from __future__ import annotations

import pytest

from iguanaflow.roles import (
    Role,
    is_admin_role,
    is_premium_role,
    is_trainer_role,
    normalize_role,
    role_badge_tone,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("admin", Role.ADMIN),
        (" Trainer ", Role.TRAINER),
        ("PREMIUM", Role.PREMIUM),
        ("free", Role.FREE),
        ("owner", Role.FREE),
        ("", Role.FREE),
        (None, Role.FREE),
        (Role.ADMIN, Role.ADMIN),
    ],
)
def test_normalize_role(raw, expected) -> None:
    assert normalize_role(raw) == expected


def test_role_predicates() -> None:
    assert [is_premium_role(r) for r in ("free", "premium", "trainer", "admin")] == [False, True, True, True]
    assert [is_trainer_role(r) for r in ("free", "premium", "trainer", "admin")] == [False, False, True, True]
    assert [is_admin_role(r) for r in ("free", "premium", "trainer", "admin")] == [False, False, False, True]


def test_badge_tone_is_total() -> None:
    assert {r: role_badge_tone(r) for r in Role} == {
        Role.FREE: "gray",
        Role.PREMIUM: "yellow",
        Role.TRAINER: "blue",
        Role.ADMIN: "red",
    }
    assert role_badge_tone("garbage") == "gray"

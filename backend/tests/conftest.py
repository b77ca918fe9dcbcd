from __future__ import annotations

from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from iguanaflow import auth, models
from iguanaflow.access_guard import current_date
from iguanaflow.database import Base, get_db
from iguanaflow.main import app

TODAY = date(2026, 3, 10)


@pytest.fixture()
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def client(db_session):
    def _get_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[current_date] = lambda: TODAY
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def make_user(db_session):
    def _make(role: str = "free", sports: list[str] | None = None, email: str | None = None) -> models.Profile:
        n = db_session.query(models.Profile).count() + 1
        user = models.Profile(
            email=email or f"user{n}@example.com",
            hashed_password="not-a-real-hash",
            username=f"user{n}",
            role=role,
            sports=sports or [],
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


def auth_headers(user: models.Profile) -> dict[str, str]:
    token = auth.create_access_token(user_id=user.id, role=user.role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def sport(db_session) -> models.SportCategory:
    category = models.SportCategory(
        name="Pole Dance",
        key_name="pole_dance",
        is_published=True,
        free_levels_count=2,
        price_usd=4999,
        price_pln=19900,
    )
    db_session.add(category)
    db_session.flush()
    for n in (1, 2, 3, 4):
        db_session.add(
            models.SportLevel(
                sport_category_id=category.id,
                level_number=n,
                level_name=f"Poziom {n}",
                point_limit=(n - 1) * 10,
                status="published",
            )
        )
    db_session.commit()
    db_session.refresh(category)
    return category


@pytest.fixture()
def billing_env(monkeypatch):
    monkeypatch.setenv("BILLING_ENABLED", "true")
    monkeypatch.setenv("STRIPE_SECRET_KEY", "sk_test_dummy")
    monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", "whsec_dummy")
    monkeypatch.setenv("APP_BASE_URL", "https://iguanaflow.test")

# iguanaflow/main.py
from __future__ import annotations

import os

import structlog
from dotenv import load_dotenv, find_dotenv
from fastapi import FastAPI, Depends, HTTPException
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy import select
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

# -------------------------------------------------
# LOAD .env ONCE (before any module reads os.getenv at import time)
# -------------------------------------------------
load_dotenv(find_dotenv(usecwd=True), override=False)

from iguanaflow import auth, models, schemas  # noqa: E402
from iguanaflow.authz_errors import http_exception_handler  # noqa: E402
from iguanaflow.database import Base, engine, get_db, SessionLocal  # noqa: E402
from iguanaflow.logging import configure_logging  # noqa: E402
from iguanaflow.roles import Role  # noqa: E402
from iguanaflow.routers import admin, billing, challenges, sport_paths, trainer, trainings  # noqa: E402

configure_logging(os.getenv("LOG_LEVEL") or "INFO")
logger = structlog.get_logger(__name__)


# -------------------------------------------------
# APP SETUP
# -------------------------------------------------
app = FastAPI(title="IguanaFlow Backend", version="0.1.0")
app.add_exception_handler(StarletteHTTPException, http_exception_handler)

app.include_router(sport_paths.router)
app.include_router(challenges.router)
app.include_router(trainings.router)
app.include_router(billing.router)
app.include_router(trainer.router)
app.include_router(admin.router)


@app.get("/health")
def health():
    return {"status": "ok"}


# -------------------------------------------------
# STARTUP: CREATE TABLES + OPTIONAL DEFAULT ADMIN SEED
# -------------------------------------------------
def _env_flag(name: str) -> bool:
    return (os.getenv(name) or "").strip().lower() in ("1", "true", "yes", "on")


def seed_admin(db: Session) -> None:
    admin_exists = db.scalar(select(models.Profile).where(models.Profile.role == Role.ADMIN.value))
    if admin_exists:
        return

    admin_email = (os.getenv("SEED_ADMIN_EMAIL") or "admin@example.com").strip()
    admin_password = (os.getenv("SEED_ADMIN_PASSWORD") or "AdminPassword123!").strip()

    db.add(
        models.Profile(
            email=admin_email,
            hashed_password=auth.hash_password(admin_password),
            username="admin",
            role=Role.ADMIN.value,
            is_active=True,
        )
    )
    db.commit()
    logger.info("admin_seeded", email=admin_email)


@app.on_event("startup")
def bootstrap_startup():
    Base.metadata.create_all(bind=engine)

    # seed admin ONLY when explicitly enabled
    if not _env_flag("SEED_ADMIN"):
        return

    db = SessionLocal()
    try:
        seed_admin(db)
    finally:
        db.close()


# -------------------------------------------------
# AUTH / LOGIN
# -------------------------------------------------
@app.post("/auth/login", response_model=schemas.TokenOut)
def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
):
    email = (form_data.username or "").strip().lower()

    user = db.scalar(select(models.Profile).where(models.Profile.email == email))
    if not user or not auth.verify_password(form_data.password, user.hashed_password):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    if not user.is_active:
        raise HTTPException(status_code=403, detail="User is inactive")

    token = auth.create_access_token(user_id=user.id, role=user.role)
    return schemas.TokenOut(access_token=token, user_id=user.id, role=user.role)


# -------------------------------------------------
# PROFILE
# -------------------------------------------------
@app.get("/profile/me", response_model=schemas.ProfileOut)
def profile_me(user: models.Profile = Depends(auth.get_current_user)):
    return user


@app.put("/profile/me/sports", response_model=schemas.ProfileOut)
def profile_update_sports(
    payload: schemas.ProfileSportsIn,
    db: Session = Depends(get_db),
    user: models.Profile = Depends(auth.get_current_user),
):
    # keep order, drop blanks/duplicates
    seen: list[str] = []
    for s in payload.sports:
        key = (s or "").strip()
        if key and key not in seen:
            seen.append(key)

    user.sports = seen
    db.commit()
    db.refresh(user)
    return user

# iguanaflow/routers/trainings.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from iguanaflow import auth, models
from iguanaflow.access_guard import ensure_premium, require_premium
from iguanaflow.database import get_db
from iguanaflow.roles import is_premium_role

router = APIRouter(prefix="/trainings", tags=["trainings"])


def _training_out(t: models.Training, locked: bool) -> dict:
    return {
        "id": t.id,
        "title": t.title,
        "description": t.description,
        "duration_seconds": t.duration_seconds,
        "sport_category_id": t.sport_category_id,
        "premium": t.premium,
        "is_locked": locked,
        # video only for unlocked items
        "video_url": None if locked else t.video_url,
    }


def _published(db: Session, premium_only: bool = False):
    stmt = select(models.Training).where(models.Training.is_published == True)  # noqa: E712
    if premium_only:
        stmt = stmt.where(models.Training.premium == True)  # noqa: E712
    return db.scalars(stmt.order_by(models.Training.created_at.desc())).all()


@router.get("")
def list_trainings(
    db: Session = Depends(get_db),
    user: models.Profile = Depends(auth.get_current_user),
):
    premium_user = is_premium_role(user.role)
    return [_training_out(t, t.premium and not premium_user) for t in _published(db)]


@router.get("/premium")
def list_premium_trainings(
    db: Session = Depends(get_db),
    user: models.Profile = Depends(require_premium),
):
    return [_training_out(t, False) for t in _published(db, premium_only=True)]


@router.get("/{training_id}")
def get_training(
    training_id: str,
    db: Session = Depends(get_db),
    user: models.Profile = Depends(auth.get_current_user),
):
    t = db.get(models.Training, training_id)
    if not t or not t.is_published:
        raise HTTPException(status_code=404, detail="Training not found")

    if t.premium:
        ensure_premium(user)
    return _training_out(t, False)

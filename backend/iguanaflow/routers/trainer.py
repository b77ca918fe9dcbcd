# iguanaflow/routers/trainer.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from iguanaflow import auth, models
from iguanaflow.database import get_db

router = APIRouter(prefix="/trainer", tags=["trainer"])


@router.get("/sports")
def trainer_guarded_sports(
    db: Session = Depends(get_db),
    trainer: models.Profile = Depends(auth.require_trainer),
):
    """
    Sports this trainer guards (may edit levels/trainings for).
    """
    rows = db.scalars(
        select(models.SportGuardian).where(models.SportGuardian.trainer_id == trainer.id)
    ).all()
    return [
        {
            "sport_category_id": g.sport_category_id,
            "sport_name": g.sport_category.name if g.sport_category else None,
            "sport_key": g.sport_category.key_name if g.sport_category else None,
        }
        for g in rows
    ]

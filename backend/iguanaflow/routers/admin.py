# iguanaflow/routers/admin.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from iguanaflow import auth, models, schemas
from iguanaflow.database import get_db
from iguanaflow.roles import Role, is_trainer_role, role_badge_tone
from iguanaflow.routers.sport_paths import normalize_code

logger = structlog.get_logger(__name__)

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(auth.require_admin)],
)


def _as_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    # stored naive, compared against datetime.utcnow()
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _user_out(u: models.Profile) -> dict:
    return {
        "id": u.id,
        "email": u.email,
        "username": u.username,
        "role": u.role,
        "sports": u.sports or [],
        "is_active": u.is_active,
        "created_at": u.created_at,
        "badge_tone": role_badge_tone(u.role),
    }


# -------------------------------------------------
# USERS / ROLES
# -------------------------------------------------
@router.get("/users", response_model=list[schemas.AdminUserOut])
def admin_list_users(
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    stmt = select(models.Profile)
    term = (search or "").strip()
    if term:
        like = f"%{term}%"
        stmt = stmt.where(or_(models.Profile.email.ilike(like), models.Profile.username.ilike(like)))
    users = db.scalars(stmt.order_by(models.Profile.created_at.desc())).all()
    return [_user_out(u) for u in users]


@router.patch("/users/{user_id}/role", response_model=schemas.AdminUserOut)
def admin_update_role(
    user_id: str,
    payload: schemas.RoleUpdateIn,
    db: Session = Depends(get_db),
    admin: models.Profile = Depends(auth.require_admin),
):
    u = db.get(models.Profile, user_id)
    if not u:
        raise HTTPException(status_code=404, detail="User not found")

    if u.id == admin.id and payload.role != Role.ADMIN.value:
        raise HTTPException(status_code=400, detail="You cannot remove your own admin role")

    u.role = Role(payload.role).value
    db.commit()
    db.refresh(u)
    logger.info("user_role_updated", user_id=u.id, role=u.role, by=admin.id)
    return _user_out(u)


# -------------------------------------------------
# SPORT ACCESS
# -------------------------------------------------
@router.post("/sport-access", response_model=schemas.SportPurchaseOut, status_code=201)
def admin_grant_sport_access(
    payload: schemas.GrantSportAccessIn,
    db: Session = Depends(get_db),
    admin: models.Profile = Depends(auth.require_admin),
):
    if not db.get(models.Profile, payload.user_id):
        raise HTTPException(status_code=404, detail="User not found")
    if not db.get(models.SportCategory, payload.sport_category_id):
        raise HTTPException(status_code=404, detail="Sport category not found")

    existing = db.scalar(
        select(models.UserSportPurchase).where(
            models.UserSportPurchase.user_id == payload.user_id,
            models.UserSportPurchase.sport_category_id == payload.sport_category_id,
        )
    )
    if existing:
        raise HTTPException(status_code=400, detail="User already has access to this sport path")

    purchase = models.UserSportPurchase(
        user_id=payload.user_id,
        sport_category_id=payload.sport_category_id,
        purchase_type="admin_grant",
        notes=payload.notes or "Dostęp nadany przez admina",
    )
    db.add(purchase)
    db.commit()
    db.refresh(purchase)
    logger.info("sport_access_granted", user_id=payload.user_id, sport_category_id=payload.sport_category_id, by=admin.id)
    return purchase


@router.get("/sport-purchases", response_model=list[schemas.SportPurchaseOut])
def admin_list_sport_purchases(
    sport_category_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    stmt = select(models.UserSportPurchase)
    if sport_category_id:
        stmt = stmt.where(models.UserSportPurchase.sport_category_id == sport_category_id)
    return db.scalars(stmt.order_by(models.UserSportPurchase.purchased_at.desc())).all()


# -------------------------------------------------
# REDEMPTION CODES
# -------------------------------------------------
@router.get("/redemption-codes", response_model=list[schemas.RedemptionCodeOut])
def admin_list_codes(db: Session = Depends(get_db)):
    return db.scalars(
        select(models.SportRedemptionCode).order_by(models.SportRedemptionCode.created_at.desc())
    ).all()


@router.post("/redemption-codes", response_model=schemas.RedemptionCodeOut, status_code=201)
def admin_create_code(
    payload: schemas.RedemptionCodeCreateIn,
    db: Session = Depends(get_db),
    admin: models.Profile = Depends(auth.require_admin),
):
    if not db.get(models.SportCategory, payload.sport_category_id):
        raise HTTPException(status_code=404, detail="Sport category not found")

    code = models.SportRedemptionCode(
        code=normalize_code(payload.code),
        sport_category_id=payload.sport_category_id,
        max_uses=payload.max_uses,
        expires_at=_as_naive_utc(payload.expires_at),
        created_by=admin.id,
        is_active=True,
        current_uses=0,
    )
    db.add(code)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="Code already exists")
    db.refresh(code)
    return code


@router.patch("/redemption-codes/{code_id}/active", response_model=schemas.RedemptionCodeOut)
def admin_set_code_active(
    code_id: str,
    payload: schemas.RedemptionCodeActiveIn,
    db: Session = Depends(get_db),
):
    code = db.get(models.SportRedemptionCode, code_id)
    if not code:
        raise HTTPException(status_code=404, detail="Code not found")

    code.is_active = payload.is_active
    db.commit()
    db.refresh(code)
    return code


@router.delete("/redemption-codes/{code_id}", status_code=204)
def admin_delete_code(code_id: str, db: Session = Depends(get_db)):
    code = db.get(models.SportRedemptionCode, code_id)
    if not code:
        raise HTTPException(status_code=404, detail="Code not found")

    db.delete(code)
    db.commit()
    return


# -------------------------------------------------
# ORDERS
# -------------------------------------------------
@router.get("/orders", response_model=list[schemas.OrderOut])
def admin_list_orders(
    status_filter: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    stmt = select(models.Order)
    if status_filter:
        stmt = stmt.where(models.Order.status == status_filter)
    return db.scalars(stmt.order_by(models.Order.created_at.desc())).all()


# -------------------------------------------------
# SPORT GUARDIANS (trainers responsible for a sport)
# -------------------------------------------------
@router.post("/sport-guardians", status_code=201)
def admin_assign_guardian(payload: schemas.SportGuardianIn, db: Session = Depends(get_db)):
    trainer = db.get(models.Profile, payload.trainer_id)
    if not trainer:
        raise HTTPException(status_code=404, detail="User not found")
    if not is_trainer_role(trainer.role):
        raise HTTPException(status_code=400, detail="Only trainers can guard a sport")
    if not db.get(models.SportCategory, payload.sport_category_id):
        raise HTTPException(status_code=404, detail="Sport category not found")

    g = models.SportGuardian(trainer_id=payload.trainer_id, sport_category_id=payload.sport_category_id)
    db.add(g)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="Trainer already guards this sport")
    return {"ok": True, "id": g.id}


@router.delete("/sport-guardians/{guardian_id}", status_code=204)
def admin_remove_guardian(guardian_id: str, db: Session = Depends(get_db)):
    g = db.get(models.SportGuardian, guardian_id)
    if not g:
        raise HTTPException(status_code=404, detail="Guardian assignment not found")
    db.delete(g)
    db.commit()
    return

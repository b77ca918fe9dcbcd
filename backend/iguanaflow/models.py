# iguanaflow/models.py
from __future__ import annotations

import uuid
from datetime import datetime, date

from sqlalchemy import (
    JSON,
    String,
    DateTime,
    Boolean,
    ForeignKey,
    Integer,
    Date,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class Profile(Base):
    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)

    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    username: Mapped[str | None] = mapped_column(String(80), nullable=True)

    # Values: "free" | "premium" | "trainer" | "admin" (see roles.Role)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="free")

    # Self-declared sport interests, list of sport_categories.key_name
    sports: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    sport_purchases = relationship("UserSportPurchase", back_populates="user")


class SportCategory(Base):
    __tablename__ = "sport_categories"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    key_name: Mapped[str] = mapped_column(String(80), unique=True, index=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    is_published: Mapped[bool] = mapped_column(Boolean, default=False)
    free_levels_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Minor units (cents / grosze)
    price_usd: Mapped[int | None] = mapped_column(Integer, nullable=True)
    price_pln: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    levels = relationship("SportLevel", back_populates="sport_category", order_by="SportLevel.level_number")


class SportLevel(Base):
    __tablename__ = "sport_levels"
    __table_args__ = (UniqueConstraint("sport_category_id", "level_number", name="uq_sport_level_number"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    sport_category_id: Mapped[str] = mapped_column(ForeignKey("sport_categories.id"), nullable=False, index=True)
    level_number: Mapped[int] = mapped_column(Integer, nullable=False)
    level_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    point_limit: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")  # draft / published
    challenge_id: Mapped[str | None] = mapped_column(ForeignKey("challenges.id"), nullable=True)

    sport_category = relationship("SportCategory", back_populates="levels")


class UserSportPurchase(Base):
    __tablename__ = "user_sport_purchases"
    __table_args__ = (UniqueConstraint("user_id", "sport_category_id", name="uq_user_sport_purchase"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(ForeignKey("profiles.id"), nullable=False, index=True)
    sport_category_id: Mapped[str] = mapped_column(ForeignKey("sport_categories.id"), nullable=False)

    # payment / redemption / admin_grant
    purchase_type: Mapped[str] = mapped_column(String(20), nullable=False)

    payment_amount: Mapped[int | None] = mapped_column(Integer, nullable=True)
    currency: Mapped[str | None] = mapped_column(String(3), nullable=True)
    stripe_session_id: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    redemption_code: Mapped[str | None] = mapped_column(String(80), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    purchased_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    user = relationship("Profile", back_populates="sport_purchases")
    sport_category = relationship("SportCategory")


class SportRedemptionCode(Base):
    __tablename__ = "sport_redemption_codes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    code: Mapped[str] = mapped_column(String(80), unique=True, index=True, nullable=False)  # stored upper-case
    sport_category_id: Mapped[str] = mapped_column(ForeignKey("sport_categories.id"), nullable=False)

    max_uses: Mapped[int | None] = mapped_column(Integer, nullable=True)  # None = unlimited
    current_uses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_by: Mapped[str | None] = mapped_column(ForeignKey("profiles.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    sport_category = relationship("SportCategory")


class SportGuardian(Base):
    __tablename__ = "sport_guardians"
    __table_args__ = (UniqueConstraint("trainer_id", "sport_category_id", name="uq_sport_guardian"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    trainer_id: Mapped[str] = mapped_column(ForeignKey("profiles.id"), nullable=False, index=True)
    sport_category_id: Mapped[str] = mapped_column(ForeignKey("sport_categories.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    sport_category = relationship("SportCategory")


class Challenge(Base):
    __tablename__ = "challenges"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    premium: Mapped[bool] = mapped_column(Boolean, default=False)
    price_usd: Mapped[int | None] = mapped_column(Integer, nullable=True)
    price_pln: Mapped[int | None] = mapped_column(Integer, nullable=True)

    level: Mapped[int | None] = mapped_column(Integer, nullable=True)  # difficulty 1..n

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="published")
    created_by: Mapped[str | None] = mapped_column(ForeignKey("profiles.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class ChallengeDay(Base):
    __tablename__ = "user_challenge_calendar_days"
    __table_args__ = (
        UniqueConstraint("challenge_id", "user_id", "day_number", name="uq_challenge_day"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    challenge_id: Mapped[str] = mapped_column(ForeignKey("challenges.id"), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("profiles.id"), nullable=False, index=True)

    day_number: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")  # pending/completed/rest
    calendar_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    challenge = relationship("Challenge")


class UserChallengePurchase(Base):
    __tablename__ = "user_challenge_purchases"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(ForeignKey("profiles.id"), nullable=False, index=True)
    challenge_id: Mapped[str] = mapped_column(ForeignKey("challenges.id"), nullable=False)

    purchase_type: Mapped[str] = mapped_column(String(20), nullable=False, default="payment")
    payment_amount: Mapped[int | None] = mapped_column(Integer, nullable=True)
    currency: Mapped[str | None] = mapped_column(String(3), nullable=True)
    stripe_session_id: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)

    purchased_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class Order(Base):
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str | None] = mapped_column(ForeignKey("profiles.id"), nullable=True, index=True)

    # sport_path / sport_path_redemption / challenge / subscription
    order_type: Mapped[str] = mapped_column(String(40), nullable=False)
    item_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    amount: Mapped[int | None] = mapped_column(Integer, nullable=True)
    currency: Mapped[str | None] = mapped_column(String(3), nullable=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")  # pending/completed/expired
    stripe_session_id: Mapped[str | None] = mapped_column(String(255), index=True, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Training(Base):
    __tablename__ = "training_library"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    video_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    duration_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)

    sport_category_id: Mapped[str | None] = mapped_column(ForeignKey("sport_categories.id"), nullable=True)
    premium: Mapped[bool] = mapped_column(Boolean, default=False)
    is_published: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

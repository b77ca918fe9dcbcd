# iguanaflow/schemas.py
from datetime import datetime, date
from typing import Optional, Literal

from pydantic import BaseModel, EmailStr, Field

Currency = Literal["usd", "pln"]
RoleName = Literal["free", "premium", "trainer", "admin"]


# -----------------------------
# AUTH
# -----------------------------
class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"

    user_id: Optional[str] = None
    role: Optional[str] = None


# -----------------------------
# PROFILES
# -----------------------------
class ProfileOut(BaseModel):
    id: str
    email: EmailStr
    username: Optional[str] = None
    role: str
    sports: list[str] = []
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class AdminUserOut(ProfileOut):
    badge_tone: str


class RoleUpdateIn(BaseModel):
    role: RoleName


# -----------------------------
# SPORT PATHS
# -----------------------------
class SportPathAccessOut(BaseModel):
    sport_category_id: str
    sport_name: str
    sport_key_name: str
    has_full_access: bool
    has_demo_access: bool
    is_purchased: bool
    price_usd: Optional[int] = None
    price_pln: Optional[int] = None
    free_levels_count: int = 0


class SportAccessOut(BaseModel):
    is_premium_user: bool
    sports: list[SportPathAccessOut]


class SportLevelOut(BaseModel):
    id: str
    level_number: int
    level_name: Optional[str] = None
    point_limit: int = 0
    is_demo: bool
    access: Literal["full", "demo", "none"]
    can_access: bool


class SportPathPurchaseIn(BaseModel):
    sport_category_id: str
    currency: Currency = "usd"


class RedeemCodeIn(BaseModel):
    code: str = Field(min_length=1)


class RedeemCodeOut(BaseModel):
    success: bool = True
    sport_name: Optional[str] = None
    message: str


class CheckoutOut(BaseModel):
    url: str
    session_id: str


# -----------------------------
# CHALLENGES
# -----------------------------
class ChallengeListItemOut(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    level: Optional[int] = None
    premium: bool
    # participation: active / not-started / completed
    status: str
    can_access: bool


class ChallengeDayOut(BaseModel):
    day_number: int
    status: str
    calendar_date: Optional[date] = None
    is_locked: bool


class ChallengeCalendarOut(BaseModel):
    challenge_id: str
    days: list[ChallengeDayOut]


class ChallengePurchaseIn(BaseModel):
    currency: Currency = "usd"


# -----------------------------
# BILLING
# -----------------------------
class SubscriptionCheckoutIn(BaseModel):
    currency: Currency = "usd"


# -----------------------------
# ADMIN
# -----------------------------
class GrantSportAccessIn(BaseModel):
    user_id: str
    sport_category_id: str
    notes: Optional[str] = None


class SportPurchaseOut(BaseModel):
    id: str
    user_id: str
    sport_category_id: str
    purchase_type: str
    payment_amount: Optional[int] = None
    currency: Optional[str] = None
    redemption_code: Optional[str] = None
    notes: Optional[str] = None
    purchased_at: datetime

    class Config:
        from_attributes = True


class RedemptionCodeCreateIn(BaseModel):
    code: str = Field(min_length=3, max_length=80)
    sport_category_id: str
    max_uses: Optional[int] = Field(default=None, gt=0)
    expires_at: Optional[datetime] = None


class RedemptionCodeActiveIn(BaseModel):
    is_active: bool


class RedemptionCodeOut(BaseModel):
    id: str
    code: str
    sport_category_id: str
    max_uses: Optional[int] = None
    current_uses: int
    expires_at: Optional[datetime] = None
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class OrderOut(BaseModel):
    id: str
    user_id: Optional[str] = None
    order_type: str
    item_id: Optional[str] = None
    amount: Optional[int] = None
    currency: Optional[str] = None
    status: str
    stripe_session_id: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class SportGuardianIn(BaseModel):
    trainer_id: str
    sport_category_id: str


class ProfileSportsIn(BaseModel):
    sports: list[str] = []

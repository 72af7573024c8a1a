"""AppsumoCode model — pre-provisioned lifetime-deal codes."""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint
from sqlmodel import Field, SQLModel

from app.models.base import TimestampMixin, new_uuid


class AppsumoCode(TimestampMixin, SQLModel, table=True):
    __tablename__ = "appsumo_codes"
    __table_args__ = (
        CheckConstraint("tier IN (1, 2, 3)", name="ck_appsumo_codes_tier"),
    )

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    code: str = Field(max_length=100, unique=True, nullable=False, index=True)
    tier: int = Field(nullable=False)

    # Flips exactly once, never back
    is_redeemed: bool = Field(default=False, nullable=False, index=True)
    redeemed_by_org_id: uuid.UUID | None = Field(
        default=None, foreign_key="organizations.id", nullable=True,
    )
    redeemed_at: datetime | None = Field(default=None)

    notes: str | None = Field(default=None, max_length=500)


# ── Pydantic schemas ─────────────────────────────────────────

class AppsumoCodeCreate(SQLModel):
    code: str = Field(min_length=1, max_length=100)
    tier: int = Field(ge=1, le=3)
    notes: str | None = Field(default=None, max_length=500)

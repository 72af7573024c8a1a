"""Organization model — tenant boundary and holder of the billing plan."""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON
from sqlmodel import Column, Field, SQLModel

from app.core.plans import PlanType, SubscriptionTier
from app.models.base import TimestampMixin, new_uuid


class Organization(TimestampMixin, SQLModel, table=True):
    __tablename__ = "organizations"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    name: str = Field(max_length=255, nullable=False)
    slug: str = Field(max_length=100, unique=True, nullable=False, index=True)
    is_active: bool = Field(default=True)

    # ── Plan state ────────────────────────────────────────────
    # subscription_tier is only set for plan_type=subscription,
    # appsumo_tier only for plan_type=appsumo_lifetime.
    plan_type: PlanType = Field(default=PlanType.FREE, index=True)
    subscription_tier: SubscriptionTier | None = Field(default=None)
    appsumo_tier: int | None = Field(default=None)

    # Every redeemed lifetime code, in redemption order (append-only)
    appsumo_codes: list[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False, default=list),
    )

    # Per-organization limit overrides, e.g. {"projects": 50}
    plan_limits_override: dict[str, Any] | None = Field(
        default=None, sa_column=Column(JSON, nullable=True),
    )

    plan_changed_at: datetime | None = Field(default=None)


# ── Pydantic schemas (read / create) ─────────────────────────

class OrganizationCreate(SQLModel):
    name: str = Field(max_length=255)
    slug: str = Field(max_length=100)


class OrganizationRead(SQLModel):
    id: uuid.UUID
    name: str
    slug: str
    is_active: bool
    plan_type: PlanType
    subscription_tier: SubscriptionTier | None
    appsumo_tier: int | None
    appsumo_codes: list[str]
    plan_changed_at: datetime | None

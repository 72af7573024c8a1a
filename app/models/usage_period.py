"""UsagePeriod model — one calendar-month usage window per organization."""

import uuid
from datetime import date, datetime

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from app.models.base import TimestampMixin, new_uuid


class UsagePeriod(TimestampMixin, SQLModel, table=True):
    __tablename__ = "usage_tracking"
    __table_args__ = (
        UniqueConstraint("organization_id", "period_start", name="uq_usage_tracking_org_period"),
    )

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    organization_id: uuid.UUID = Field(
        foreign_key="organizations.id", nullable=False, index=True,
    )
    period_start: date = Field(nullable=False, index=True)  # first day of the month
    period_end: date = Field(nullable=False)  # last day of the month

    # Cumulative counters, zero at period creation
    emails_sent: int = Field(default=0, nullable=False)
    sms_sent: int = Field(default=0, nullable=False)
    ai_analyses_used: int = Field(default=0, nullable=False)

    # Snapshot counts, overwritten from live totals
    projects_count: int = Field(default=0, nullable=False)
    automations_count: int = Field(default=0, nullable=False)
    customers_count: int = Field(default=0, nullable=False)


# ── Pydantic schemas ─────────────────────────────────────────

class UsagePeriodRead(SQLModel):
    organization_id: uuid.UUID
    period_start: date
    period_end: date
    emails_sent: int
    sms_sent: int
    ai_analyses_used: int
    projects_count: int
    automations_count: int
    customers_count: int
    updated_at: datetime

"""Usage periods — monthly counters and live snapshot counts per organization.

One ``usage_tracking`` row exists per (organization, calendar month, UTC).
Rows are created lazily on first access and never deleted. Counter
increments are issued as ``col = col + n`` in the database so concurrent
increments are never lost.
"""

from __future__ import annotations

import calendar
import logging
import uuid
from dataclasses import dataclass
from datetime import date
from enum import StrEnum

from sqlalchemy import func, insert, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.database import UPSERT_DIALECTS, dialect_name
from app.core.exceptions import store_errors
from app.core.plans import PlanLimits
from app.models.base import new_uuid, utcnow, utctoday
from app.models.customer import Customer
from app.models.organization import Organization
from app.models.project import Automation, Project
from app.models.usage_period import UsagePeriod
from app.models.user import User
from app.services.limits import usage_percent, usage_status
from app.services.quota import usage_from_period

logger = logging.getLogger(__name__)


class CounterKind(StrEnum):
    EMAILS = "emails"
    SMS = "sms"
    AI_ANALYSES = "ai_analyses"


COUNTER_COLUMNS: dict[str, str] = {
    CounterKind.EMAILS.value: "emails_sent",
    CounterKind.SMS.value: "sms_sent",
    CounterKind.AI_ANALYSES.value: "ai_analyses_used",
}


@dataclass(frozen=True)
class IncrementResult:
    applied: bool
    kind: str
    amount: int
    value: int | None = None  # counter value after the increment
    period_start: date | None = None


def period_bounds(day: date) -> tuple[date, date]:
    """First and last day of the calendar month containing ``day``."""
    last = calendar.monthrange(day.year, day.month)[1]
    return day.replace(day=1), day.replace(day=last)


# ── Period access ─────────────────────────────────────────────

async def _fetch_period(
    session: AsyncSession, organization_id: uuid.UUID, period_start: date,
) -> UsagePeriod | None:
    stmt = (
        select(UsagePeriod)
        .where(
            UsagePeriod.organization_id == organization_id,
            UsagePeriod.period_start == period_start,
        )
        .execution_options(populate_existing=True)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def _insert_period_if_absent(
    session: AsyncSession, organization_id: uuid.UUID, start: date, end: date,
) -> bool:
    """Insert a zeroed period row. Returns False if another writer got there first."""
    now = utcnow()
    values = {
        "id": new_uuid(),
        "organization_id": organization_id,
        "period_start": start,
        "period_end": end,
        "emails_sent": 0,
        "sms_sent": 0,
        "ai_analyses_used": 0,
        "projects_count": 0,
        "automations_count": 0,
        "customers_count": 0,
        "created_at": now,
        "updated_at": now,
    }

    dialect = dialect_name(session)
    if dialect in UPSERT_DIALECTS:
        dialect_insert = pg_insert if dialect == "postgresql" else sqlite_insert
        stmt = dialect_insert(UsagePeriod).values(**values).on_conflict_do_nothing(
            index_elements=["organization_id", "period_start"],
        )
        result = await session.execute(stmt)
        return bool(result.rowcount)

    try:
        async with session.begin_nested():
            await session.execute(insert(UsagePeriod).values(**values))
    except IntegrityError:
        return False
    return True


async def get_current_period(
    session: AsyncSession,
    organization_id: uuid.UUID,
    today: date | None = None,
) -> UsagePeriod:
    """Return this month's usage row for the org, creating a zeroed one if needed.

    Safe when two callers race on the first access of a month: the losing
    insert is absorbed by the unique (organization_id, period_start)
    constraint and both callers re-read the same row.
    """
    start, end = period_bounds(today or utctoday())

    with store_errors("get_current_period"):
        period = await _fetch_period(session, organization_id, start)
        if period is not None:
            return period

        created = await _insert_period_if_absent(session, organization_id, start, end)
        await session.commit()
        if created:
            logger.info("Opened usage period %s for org %s", start, organization_id)
        else:
            logger.info(
                "Usage period %s for org %s was created concurrently; re-reading",
                start, organization_id,
            )

        period = await _fetch_period(session, organization_id, start)

    if period is None:
        raise LookupError(f"Usage period {start} for org {organization_id} vanished after insert")
    return period


async def increment_counter(
    session: AsyncSession,
    organization_id: uuid.UUID,
    kind: str,
    amount: int = 1,
    today: date | None = None,
) -> IncrementResult:
    """Atomically add ``amount`` to one of the period's cumulative counters.

    Unknown counter kinds are ignored (logged, ``applied=False``) rather
    than raised, so fire-and-forget callers never fail on them.
    """
    column_name = COUNTER_COLUMNS.get(str(kind))
    if column_name is None:
        logger.warning(
            "Ignoring increment of unknown usage counter %r for org %s", kind, organization_id,
        )
        return IncrementResult(applied=False, kind=str(kind), amount=amount)

    period = await get_current_period(session, organization_id, today=today)
    column = getattr(UsagePeriod, column_name)

    with store_errors("increment_counter"):
        await session.execute(
            update(UsagePeriod)
            .where(UsagePeriod.id == period.id)
            .values({column_name: column + amount, "updated_at": utcnow()})
            .execution_options(synchronize_session=False)
        )
        await session.commit()
        period = await _fetch_period(session, organization_id, period.period_start)

    return IncrementResult(
        applied=True,
        kind=str(kind),
        amount=amount,
        value=getattr(period, column_name) if period is not None else None,
        period_start=period.period_start if period is not None else None,
    )


# ── Snapshots ─────────────────────────────────────────────────

async def count_live_totals(
    session: AsyncSession, organization_id: uuid.UUID,
) -> dict[str, int]:
    """Authoritative current counts of the org's projects, automations and customers."""
    projects = (await session.execute(
        select(func.count()).select_from(Project)
        .where(Project.organization_id == organization_id)
    )).scalar_one()

    automations = (await session.execute(
        select(func.count()).select_from(Automation)
        .join(Project, Automation.project_id == Project.id)
        .where(Project.organization_id == organization_id)
    )).scalar_one()

    customers = (await session.execute(
        select(func.count()).select_from(Customer)
        .where(Customer.organization_id == organization_id)
    )).scalar_one()

    return {
        "projects_count": projects,
        "automations_count": automations,
        "customers_count": customers,
    }


async def count_active_members(session: AsyncSession, organization_id: uuid.UUID) -> int:
    return (await session.execute(
        select(func.count()).select_from(User)
        .where(User.organization_id == organization_id, User.is_active == True)  # noqa: E712
    )).scalar_one()


async def refresh_snapshots(
    session: AsyncSession,
    organization_id: uuid.UUID,
    today: date | None = None,
) -> UsagePeriod:
    """Overwrite the current period's snapshot counts with live totals.

    Idempotent; safe to call on every usage read.
    """
    period = await get_current_period(session, organization_id, today=today)

    with store_errors("refresh_snapshots"):
        totals = await count_live_totals(session, organization_id)
        await session.execute(
            update(UsagePeriod)
            .where(UsagePeriod.id == period.id)
            .values(**totals, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        await session.commit()
        refreshed = await _fetch_period(session, organization_id, period.period_start)

    return refreshed if refreshed is not None else period


async def current_usage(
    session: AsyncSession, org: Organization, today: date | None = None,
) -> tuple[UsagePeriod, dict[str, int]]:
    """Refreshed period plus its counters keyed by limit name (incl. team_members)."""
    period = await refresh_snapshots(session, org.id, today=today)
    with store_errors("count_active_members"):
        members = await count_active_members(session, org.id)
    return period, usage_from_period(period, team_members=members)


# ── Dashboard summary ─────────────────────────────────────────

# (key, label, limit field, period field, resets monthly, icon)
_DASHBOARD_METRICS: tuple[tuple[str, str, str, str, bool, str], ...] = (
    ("projects", "Projects", "projects", "projects_count", False, "folder"),
    ("automations", "Automations", "automations", "automations_count", False, "zap"),
    ("customers", "Customers", "customers", "customers_count", False, "users"),
    ("emails", "Emails This Month", "emails_monthly", "emails_sent", True, "mail"),
    ("ai_analyses", "AI Analyses", "ai_analyses", "ai_analyses_used", True, "brain"),
)


def build_usage_summary(
    org: Organization, limits: PlanLimits, period: UsagePeriod,
) -> dict:
    """Plan, per-metric usage and feature flags in the shape the dashboard renders."""
    metrics = []
    for key, label, limit_field, usage_field, resets, icon in _DASHBOARD_METRICS:
        used = getattr(period, usage_field) or 0
        limit = limits.limit_for(limit_field)
        percent = usage_percent(used, limit)
        metrics.append({
            "key": key,
            "label": label,
            "used": used,
            "limit": limit,
            "percent": percent,
            "status": usage_status(percent),
            "icon": icon,
            "resets": resets,
        })

    return {
        "plan": {
            "name": limits.name,
            "type": str(org.plan_type),
            "badge": limits.badge,
        },
        "period_start": period.period_start,
        "period_end": period.period_end,
        "metrics": metrics,
        "features": {
            "api_access": limits.api_access,
            "webhooks": limits.webhooks,
            "priority_support": limits.priority_support,
            "team_members": limits.team_members,
        },
    }

"""Periodic job — open this month's usage period for every active organization
and overwrite its snapshot counts with live totals."""

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from app.core.database import async_session_factory
from app.core.exceptions import StoreUnavailableError
from app.models.organization import Organization
from app.services.usage import refresh_snapshots

logger = logging.getLogger(__name__)


async def refresh_usage_snapshots(ctx: dict) -> dict:
    """Cron job: refresh every active org's current usage period.

    A store failure for one organization (connectivity or a database error
    such as the org being deleted mid-pass) is logged and skipped; the next
    run retries it.
    """
    async with async_session_factory() as session:
        result = await session.execute(
            select(Organization.id).where(Organization.is_active == True)  # noqa: E712
        )
        org_ids = list(result.scalars().all())

    refreshed = 0
    failed = 0
    for org_id in org_ids:
        async with async_session_factory() as session:
            try:
                await refresh_snapshots(session, org_id)
            except (StoreUnavailableError, SQLAlchemyError):
                logger.exception("Snapshot refresh failed for org %s", org_id)
                failed += 1
                continue
        refreshed += 1

    logger.info("Usage snapshots: refreshed %d organizations (%d failed)", refreshed, failed)
    return {"refreshed": refreshed, "failed": failed}

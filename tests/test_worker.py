"""Tests for the scheduled usage-snapshot refresh."""

import uuid

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.exceptions import StoreUnavailableError
from app.models.customer import Customer
from app.models.organization import Organization
from app.models.project import Automation, Project
from app.models.usage_period import UsagePeriod
from app.services import usage as usage_service
from app.workers import usage as usage_worker
from app.workers.main import WorkerSettings


async def _make_org(session: AsyncSession, *, active: bool = True) -> uuid.UUID:
    org = Organization(
        name="Cron Co", slug=f"cron-{uuid.uuid4().hex[:10]}", is_active=active,
    )
    session.add(org)
    await session.commit()
    return org.id


async def _period_for(session: AsyncSession, org_id: uuid.UUID) -> UsagePeriod | None:
    stmt = (
        select(UsagePeriod)
        .where(UsagePeriod.organization_id == org_id)
        .execution_options(populate_existing=True)
    )
    return (await session.execute(stmt)).scalar_one_or_none()


@pytest.fixture
def worker_sessions(monkeypatch, test_session_factory):
    monkeypatch.setattr(usage_worker, "async_session_factory", test_session_factory)


@pytest.mark.asyncio
async def test_refresh_opens_periods_with_live_counts(session: AsyncSession, worker_sessions):
    org_id = await _make_org(session)
    project = Project(organization_id=org_id, name="Pipeline")
    session.add(project)
    await session.commit()
    session.add_all([
        Automation(project_id=project.id, name="nightly"),
        Automation(project_id=project.id, name="weekly"),
        Customer(organization_id=org_id, email="c@cron.test"),
    ])
    await session.commit()

    result = await usage_worker.refresh_usage_snapshots({})

    assert result["failed"] == 0
    assert result["refreshed"] >= 1

    period = await _period_for(session, org_id)
    assert period is not None
    assert period.projects_count == 1
    assert period.automations_count == 2
    assert period.customers_count == 1
    assert period.emails_sent == 0


@pytest.mark.asyncio
async def test_refresh_skips_inactive_orgs(session: AsyncSession, worker_sessions):
    org_id = await _make_org(session, active=False)

    await usage_worker.refresh_usage_snapshots({})

    assert await _period_for(session, org_id) is None


@pytest.mark.asyncio
async def test_refresh_continues_past_a_failing_org(
    session: AsyncSession, worker_sessions, monkeypatch,
):
    broken = await _make_org(session)
    healthy = await _make_org(session)

    async def _flaky(sess, organization_id, today=None):
        if organization_id == broken:
            raise StoreUnavailableError("refresh_snapshots")
        return await usage_service.refresh_snapshots(sess, organization_id, today=today)

    monkeypatch.setattr(usage_worker, "refresh_snapshots", _flaky)

    result = await usage_worker.refresh_usage_snapshots({})

    assert result["failed"] == 1
    assert await _period_for(session, healthy) is not None


def test_worker_schedules_refresh_job():
    assert usage_worker.refresh_usage_snapshots in WorkerSettings.functions
    assert len(WorkerSettings.cron_jobs) == 1
    assert WorkerSettings.cron_jobs[0].coroutine is usage_worker.refresh_usage_snapshots


@pytest.mark.asyncio
async def test_refresh_skips_org_deleted_mid_pass(
    session: AsyncSession, worker_sessions, monkeypatch,
):
    vanished = await _make_org(session)
    healthy = await _make_org(session)

    async def _fk_violation(sess, organization_id, today=None):
        if organization_id == vanished:
            raise IntegrityError(
                "INSERT INTO usage_tracking", {}, Exception("foreign key constraint failed"),
            )
        return await usage_service.refresh_snapshots(sess, organization_id, today=today)

    monkeypatch.setattr(usage_worker, "refresh_snapshots", _fk_violation)

    result = await usage_worker.refresh_usage_snapshots({})

    assert result["failed"] == 1
    assert await _period_for(session, healthy) is not None

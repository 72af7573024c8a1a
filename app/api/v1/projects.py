"""Projects and their automations — creation is gated by the org's plan limits."""

import uuid

from fastapi import APIRouter, HTTPException, status
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.api.deps import Auth, CurrentOrg, Enforcer, Session, ensure_within_quota
from app.models.project import (
    Automation,
    AutomationCreate,
    AutomationRead,
    Project,
    ProjectCreate,
    ProjectRead,
)

router = APIRouter(prefix="/projects", tags=["projects"])


@router.post("", response_model=ProjectRead, status_code=status.HTTP_201_CREATED)
async def create_project(
    body: ProjectCreate,
    org: CurrentOrg,
    enforcer: Enforcer,
    session: Session,
) -> ProjectRead:
    await ensure_within_quota(session, org, enforcer, "projects")

    project = Project(organization_id=org.id, name=body.name, description=body.description)
    session.add(project)
    await session.commit()
    await session.refresh(project)
    return ProjectRead.model_validate(project)


@router.get("", response_model=list[ProjectRead])
async def list_projects(auth: Auth, session: Session) -> list[ProjectRead]:
    stmt = (
        select(Project)
        .where(Project.organization_id == auth.organization_id)
        .order_by(Project.created_at.desc())  # type: ignore[union-attr]
    )
    result = await session.execute(stmt)
    return [ProjectRead.model_validate(p) for p in result.scalars().all()]


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(
    project_id: uuid.UUID,
    auth: Auth,
    session: Session,
) -> None:
    """Delete a project and its automations; the freed capacity shows on the next usage read."""
    project = await _get_or_404(project_id, auth.organization_id, session)
    await session.execute(delete(Automation).where(Automation.project_id == project.id))
    await session.delete(project)
    await session.commit()


@router.post(
    "/{project_id}/automations",
    response_model=AutomationRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_automation(
    project_id: uuid.UUID,
    body: AutomationCreate,
    org: CurrentOrg,
    enforcer: Enforcer,
    session: Session,
) -> AutomationRead:
    project = await _get_or_404(project_id, org.id, session)
    await ensure_within_quota(session, org, enforcer, "automations")

    automation = Automation(project_id=project.id, name=body.name, trigger=body.trigger)
    session.add(automation)
    await session.commit()
    await session.refresh(automation)
    return AutomationRead.model_validate(automation)


@router.get("/{project_id}/automations", response_model=list[AutomationRead])
async def list_automations(
    project_id: uuid.UUID,
    auth: Auth,
    session: Session,
) -> list[AutomationRead]:
    project = await _get_or_404(project_id, auth.organization_id, session)
    stmt = (
        select(Automation)
        .where(Automation.project_id == project.id)
        .order_by(Automation.created_at.asc())  # type: ignore[union-attr]
    )
    result = await session.execute(stmt)
    return [AutomationRead.model_validate(a) for a in result.scalars().all()]


# ── Internal helper ───────────────────────────────────────────

async def _get_or_404(
    project_id: uuid.UUID, organization_id: uuid.UUID, session: AsyncSession
) -> Project:
    stmt = select(Project).where(
        Project.id == project_id,
        Project.organization_id == organization_id,
    )
    project = (await session.execute(stmt)).scalar_one_or_none()
    if project is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    return project

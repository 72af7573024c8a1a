"""Project and Automation models — quota-counted domain collections."""

import uuid
from datetime import datetime

from sqlmodel import Field, SQLModel

from app.models.base import TimestampMixin, new_uuid


class Project(TimestampMixin, SQLModel, table=True):
    __tablename__ = "projects"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    organization_id: uuid.UUID = Field(
        foreign_key="organizations.id", nullable=False, index=True,
    )
    name: str = Field(max_length=255, nullable=False)
    description: str = Field(default="", max_length=1000)


class Automation(TimestampMixin, SQLModel, table=True):
    """Automations belong to a project; they count against the project's org."""

    __tablename__ = "automations"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    project_id: uuid.UUID = Field(foreign_key="projects.id", nullable=False, index=True)
    name: str = Field(max_length=255, nullable=False)
    trigger: str = Field(default="manual", max_length=100)
    is_active: bool = Field(default=True)


# ── Pydantic schemas ─────────────────────────────────────────

class ProjectCreate(SQLModel):
    name: str = Field(max_length=255)
    description: str = Field(default="", max_length=1000)


class ProjectRead(SQLModel):
    id: uuid.UUID
    organization_id: uuid.UUID
    name: str
    description: str
    created_at: datetime


class AutomationCreate(SQLModel):
    name: str = Field(max_length=255)
    trigger: str = Field(default="manual", max_length=100)


class AutomationRead(SQLModel):
    id: uuid.UUID
    project_id: uuid.UUID
    name: str
    trigger: str
    is_active: bool
    created_at: datetime

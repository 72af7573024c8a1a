"""Customer model — end customers an organization keeps records for."""

import uuid
from datetime import datetime

from sqlmodel import Field, SQLModel

from app.models.base import TimestampMixin, new_uuid


class Customer(TimestampMixin, SQLModel, table=True):
    __tablename__ = "customers"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    organization_id: uuid.UUID = Field(
        foreign_key="organizations.id", nullable=False, index=True,
    )
    email: str = Field(max_length=320, nullable=False, index=True)
    name: str = Field(default="", max_length=255)


# ── Pydantic schemas ─────────────────────────────────────────

class CustomerCreate(SQLModel):
    email: str = Field(max_length=320)
    name: str = Field(default="", max_length=255)


class CustomerRead(SQLModel):
    id: uuid.UUID
    organization_id: uuid.UUID
    email: str
    name: str
    created_at: datetime

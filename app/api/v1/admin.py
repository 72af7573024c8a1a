"""Operator endpoints — code provisioning and manual plan changes (X-Admin-Key)."""

import logging
import uuid
from typing import Any

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field, model_validator

from app.api.deps import AdminKey, Session
from app.core.plans import PlanType, SubscriptionTier, override_entry_error
from app.models.appsumo_code import AppsumoCodeCreate
from app.models.base import utcnow
from app.models.organization import Organization, OrganizationRead
from app.services.redemption import provision_codes

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[AdminKey])


# ── Schemas ──────────────────────────────────────────────────

class ProvisionCodesRequest(BaseModel):
    codes: list[AppsumoCodeCreate] = Field(min_length=1, max_length=10_000)


class ProvisionCodesResponse(BaseModel):
    created: list[str]
    skipped: list[str]


class PlanChangeRequest(BaseModel):
    """Manual plan change. Lifetime tiers are only ever granted by redeeming codes."""

    plan_type: PlanType | None = None
    subscription_tier: SubscriptionTier | None = None
    plan_limits_override: dict[str, int | bool] | None = None
    clear_override: bool = False

    @model_validator(mode="after")
    def _consistent(self) -> "PlanChangeRequest":
        if self.plan_type == PlanType.APPSUMO_LIFETIME:
            raise ValueError("Lifetime plans are granted by redeeming codes")
        if self.plan_type == PlanType.SUBSCRIPTION and self.subscription_tier is None:
            raise ValueError("subscription_tier is required for subscription plans")
        if self.plan_type != PlanType.SUBSCRIPTION and self.subscription_tier is not None:
            raise ValueError("subscription_tier only applies to subscription plans")
        if self.clear_override and self.plan_limits_override is not None:
            raise ValueError("Pass either plan_limits_override or clear_override, not both")
        if self.plan_limits_override:
            errors = [
                error for key, value in self.plan_limits_override.items()
                if (error := override_entry_error(key, value)) is not None
            ]
            if errors:
                raise ValueError("; ".join(errors))
        return self


class AdminOrganizationRead(OrganizationRead):
    plan_limits_override: dict[str, Any] | None


# ── Routes ───────────────────────────────────────────────────

@router.post(
    "/appsumo-codes",
    response_model=ProvisionCodesResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Provision lifetime-deal codes",
)
async def create_appsumo_codes(
    body: ProvisionCodesRequest,
    session: Session,
) -> ProvisionCodesResponse:
    """Insert a batch of codes; codes that already exist are skipped and reported."""
    created, skipped = await provision_codes(session, body.codes)
    return ProvisionCodesResponse(created=created, skipped=skipped)


@router.put(
    "/organizations/{organization_id}/plan",
    response_model=AdminOrganizationRead,
    summary="Change an organization's plan or limit overrides",
)
async def change_organization_plan(
    organization_id: uuid.UUID,
    body: PlanChangeRequest,
    session: Session,
) -> AdminOrganizationRead:
    org = await session.get(Organization, organization_id)
    if org is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Organization not found")

    now = utcnow()

    if body.plan_type is not None:
        if org.plan_type == PlanType.APPSUMO_LIFETIME:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Organization holds a lifetime deal; its plan type cannot be changed",
            )
        org.plan_type = body.plan_type
        org.subscription_tier = body.subscription_tier
        org.appsumo_tier = None
        org.plan_changed_at = now
        logger.info(
            "Admin set org %s to %s/%s", org.id, body.plan_type, body.subscription_tier,
        )

    if body.clear_override:
        org.plan_limits_override = None
        org.plan_changed_at = now
    elif body.plan_limits_override is not None:
        org.plan_limits_override = dict(body.plan_limits_override)
        org.plan_changed_at = now
        logger.info("Admin set limit override on org %s: %s", org.id, body.plan_limits_override)

    org.updated_at = now
    session.add(org)
    await session.commit()
    await session.refresh(org)
    return AdminOrganizationRead.model_validate(org)

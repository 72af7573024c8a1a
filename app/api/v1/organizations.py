"""Organization registration (bootstrap) endpoint."""

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, EmailStr, Field
from sqlmodel import select

from app.api.deps import CurrentOrg, Session
from app.core.security import generate_api_token, hash_api_token, hash_password
from app.models.api_token import ApiToken
from app.models.organization import Organization, OrganizationRead
from app.models.user import User, UserRole

router = APIRouter(prefix="/organizations", tags=["organizations"])


# ── Bootstrap request / response schemas ──────────────────────

class OrganizationBootstrapRequest(BaseModel):
    """Everything needed to create a new organization + owner in one call."""
    organization_name: str = Field(max_length=255)
    organization_slug: str = Field(max_length=100, pattern=r"^[a-z0-9\-]+$")
    owner_email: EmailStr
    owner_password: str = Field(min_length=8, max_length=128)
    owner_display_name: str = Field(default="", max_length=255)


class OrganizationBootstrapResponse(BaseModel):
    organization: OrganizationRead
    api_token: str = Field(description="Shown once, store it securely")
    token_prefix: str


# ── Routes ────────────────────────────────────────────────────

@router.post(
    "",
    response_model=OrganizationBootstrapResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new organization (bootstrap)",
)
async def bootstrap_organization(
    body: OrganizationBootstrapRequest,
    session: Session,
) -> OrganizationBootstrapResponse:
    """Create an organization on the free plan, its owner, and a first API token.

    This is the only unauthenticated write endpoint.
    The raw API token is returned once and is not recoverable.
    """
    existing = await session.execute(
        select(Organization).where(Organization.slug == body.organization_slug)
    )
    if existing.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Slug '{body.organization_slug}' is already taken",
        )

    org = Organization(
        name=body.organization_name,
        slug=body.organization_slug,
    )
    session.add(org)
    await session.flush()  # populate org.id

    owner = User(
        organization_id=org.id,
        email=body.owner_email,
        password_hash=hash_password(body.owner_password),
        display_name=body.owner_display_name,
        role=UserRole.OWNER,
    )
    session.add(owner)
    await session.flush()

    raw_token = generate_api_token()
    prefix = raw_token[:8]
    session.add(ApiToken(
        organization_id=org.id,
        user_id=owner.id,
        name="default",
        token_hash=hash_api_token(raw_token),
        token_prefix=prefix,
    ))
    await session.commit()
    await session.refresh(org)

    return OrganizationBootstrapResponse(
        organization=OrganizationRead.model_validate(org),
        api_token=raw_token,
        token_prefix=prefix,
    )


@router.get(
    "/me",
    response_model=OrganizationRead,
    summary="Get current organization, including its plan",
)
async def get_current_organization(org: CurrentOrg) -> OrganizationRead:
    return OrganizationRead.model_validate(org)

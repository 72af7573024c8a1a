"""Authentication endpoints — login + current user with the plan in effect."""

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, EmailStr
from sqlmodel import select

from app.api.deps import Auth, CurrentOrg, Resolver, Session
from app.core.plans import PlanLimits
from app.core.security import create_jwt, verify_password
from app.models.organization import Organization, OrganizationRead
from app.models.user import User, UserRead

router = APIRouter(prefix="/auth", tags=["auth"])


# ── Schemas ──────────────────────────────────────────────────

class LoginRequest(BaseModel):
    email: EmailStr
    password: str
    # The same email may belong to several organizations
    organization_slug: str | None = None


class MeResponse(BaseModel):
    user: UserRead
    organization: OrganizationRead
    plan: PlanLimits


class LoginResponse(MeResponse):
    access_token: str
    token_type: str = "bearer"


# ── Routes ───────────────────────────────────────────────────

@router.post("/login", response_model=LoginResponse)
async def login(body: LoginRequest, session: Session, resolver: Resolver) -> LoginResponse:
    """Authenticate with email + password, receive a JWT scoped to one organization."""
    stmt = select(User).where(User.email == body.email)
    if body.organization_slug:
        stmt = stmt.join(Organization, User.organization_id == Organization.id).where(
            Organization.slug == body.organization_slug
        )
    candidates = (await session.execute(stmt.order_by(User.created_at))).scalars().all()

    user = next(
        (u for u in candidates if verify_password(body.password, u.password_hash)), None,
    )
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is disabled",
        )

    org = await session.get(Organization, user.organization_id)
    if org is None or not org.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Organization is disabled",
        )

    token = create_jwt(
        subject=str(user.id),
        organization_id=str(user.organization_id),
        role=user.role,
    )

    return LoginResponse(
        access_token=token,
        user=UserRead.model_validate(user),
        organization=OrganizationRead.model_validate(org),
        plan=resolver.resolve(org),
    )


@router.get("/me", response_model=MeResponse)
async def get_me(
    auth: Auth, org: CurrentOrg, resolver: Resolver, session: Session,
) -> MeResponse:
    """The caller, their organization and the limits currently applied to it."""
    user = await session.get(User, auth.user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    return MeResponse(
        user=UserRead.model_validate(user),
        organization=OrganizationRead.model_validate(org),
        plan=resolver.resolve(org),
    )

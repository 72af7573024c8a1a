"""Organization members — CRUD restricted to owner/admin, creation gated by team_members."""

import uuid

from fastapi import APIRouter, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.api.deps import Auth, CurrentOrg, Enforcer, Session, ensure_within_quota, require_elevated
from app.core.security import hash_password
from app.models.base import utcnow
from app.models.user import User, UserCreate, UserRead, UserUpdate

router = APIRouter(prefix="/users", tags=["users"])


@router.post("", response_model=UserRead, status_code=status.HTTP_201_CREATED)
async def create_user(
    body: UserCreate,
    auth: Auth,
    org: CurrentOrg,
    enforcer: Enforcer,
    session: Session,
) -> UserRead:
    require_elevated(auth, "manage users")

    stmt = select(User).where(
        User.organization_id == org.id,
        User.email == body.email,
    )
    result = await session.execute(stmt)
    if result.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A user with this email already exists in this organization",
        )

    await ensure_within_quota(session, org, enforcer, "team_members")

    user = User(
        organization_id=org.id,
        email=body.email,
        password_hash=hash_password(body.password),
        display_name=body.display_name,
        role=body.role,
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return UserRead.model_validate(user)


@router.get("", response_model=list[UserRead])
async def list_users(
    auth: Auth,
    session: Session,
) -> list[UserRead]:
    stmt = (
        select(User)
        .where(User.organization_id == auth.organization_id)
        .order_by(User.email.asc())  # type: ignore[union-attr]
    )
    result = await session.execute(stmt)
    return [UserRead.model_validate(u) for u in result.scalars().all()]


@router.patch("/{user_id}", response_model=UserRead)
async def update_user(
    user_id: uuid.UUID,
    body: UserUpdate,
    auth: Auth,
    session: Session,
) -> UserRead:
    require_elevated(auth, "manage users")
    user = await _get_or_404(user_id, auth.organization_id, session)

    update_data = body.model_dump(exclude_unset=True)
    if "password" in update_data:
        user.password_hash = hash_password(update_data.pop("password"))
    for field, value in update_data.items():
        setattr(user, field, value)

    user.updated_at = utcnow()
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return UserRead.model_validate(user)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def deactivate_user(
    user_id: uuid.UUID,
    auth: Auth,
    session: Session,
) -> None:
    """Deactivated members stop counting toward team_members."""
    require_elevated(auth, "manage users")
    user = await _get_or_404(user_id, auth.organization_id, session)
    user.is_active = False
    user.updated_at = utcnow()
    session.add(user)
    await session.commit()


# ── Internal helper ───────────────────────────────────────────

async def _get_or_404(
    user_id: uuid.UUID, organization_id: uuid.UUID, session: AsyncSession
) -> User:
    stmt = select(User).where(
        User.id == user_id,
        User.organization_id == organization_id,
    )
    result = await session.execute(stmt)
    user = result.scalar_one_or_none()
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user

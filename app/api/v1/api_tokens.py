"""API tokens — members manage their own; owners/admins see the whole organization's."""

import uuid
from datetime import timedelta

from fastapi import APIRouter, HTTPException, status
from sqlmodel import select

from app.api.deps import Auth, Session
from app.core.security import generate_api_token, hash_api_token
from app.models.api_token import ApiToken, ApiTokenCreate, ApiTokenCreated, ApiTokenRead
from app.models.base import utcnow

router = APIRouter(prefix="/api-tokens", tags=["api-tokens"])


@router.post(
    "",
    response_model=ApiTokenCreated,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new API token",
)
async def create_api_token(
    body: ApiTokenCreate,
    auth: Auth,
    session: Session,
    expires_in_days: int | None = None,
) -> ApiTokenCreated:
    """Issue a token acting as the calling user.

    The raw token is returned once and cannot be recovered.
    """
    raw_token = generate_api_token()
    token = ApiToken(
        organization_id=auth.organization_id,
        user_id=auth.user_id,
        name=body.name,
        token_hash=hash_api_token(raw_token),
        token_prefix=raw_token[:8],
        expires_at=utcnow() + timedelta(days=expires_in_days) if expires_in_days else None,
    )
    session.add(token)
    await session.commit()
    await session.refresh(token)

    return ApiTokenCreated(
        **ApiTokenRead.model_validate(token).model_dump(),
        raw_token=raw_token,
    )


@router.get("", response_model=list[ApiTokenRead], summary="List API tokens")
async def list_api_tokens(auth: Auth, session: Session) -> list[ApiTokenRead]:
    stmt = select(ApiToken).where(ApiToken.organization_id == auth.organization_id)
    if not auth.is_elevated:
        stmt = stmt.where(ApiToken.user_id == auth.user_id)
    stmt = stmt.order_by(ApiToken.created_at.desc())  # type: ignore[union-attr]

    result = await session.execute(stmt)
    return [ApiTokenRead.model_validate(t) for t in result.scalars().all()]


@router.delete(
    "/{token_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Revoke an API token",
)
async def revoke_api_token(
    token_id: uuid.UUID,
    auth: Auth,
    session: Session,
) -> None:
    stmt = select(ApiToken).where(
        ApiToken.id == token_id,
        ApiToken.organization_id == auth.organization_id,
    )
    token = (await session.execute(stmt)).scalar_one_or_none()

    # Members only see their own tokens, so someone else's is a 404 too
    if token is None or (not auth.is_elevated and token.user_id != auth.user_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Token not found",
        )

    token.is_active = False
    token.updated_at = utcnow()
    session.add(token)
    await session.commit()

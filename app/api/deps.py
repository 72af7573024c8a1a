"""FastAPI dependencies for authentication, organization and billing services."""

import uuid
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.database import get_session
from app.core.exceptions import QuotaExceededError, store_errors
from app.core.plans import get_plan_catalog
from app.core.security import admin_key_matches, decode_jwt, hash_api_token
from app.models.api_token import ApiToken
from app.models.base import utcnow
from app.models.organization import Organization
from app.models.user import User, UserRole
from app.services.limits import LimitResolver
from app.services.quota import QuotaDecision, QuotaEnforcer
from app.services.usage import current_usage

bearer_scheme = HTTPBearer()


class AuthContext:
    """Resolved identity carried through a request."""

    __slots__ = ("organization_id", "user_id", "token_id", "user_role")

    def __init__(
        self,
        organization_id: uuid.UUID,
        user_id: uuid.UUID,
        user_role: str,
        token_id: uuid.UUID | None = None,
    ) -> None:
        self.organization_id = organization_id
        self.user_id = user_id
        self.user_role = user_role
        self.token_id = token_id

    @property
    def is_elevated(self) -> bool:
        return self.user_role in (UserRole.OWNER, UserRole.ADMIN)


async def _resolve_api_token(
    raw_token: str, session: AsyncSession
) -> AuthContext:
    """Look up an API token by its SHA-256 hash."""
    token_hash = hash_api_token(raw_token)
    stmt = select(ApiToken).where(
        ApiToken.token_hash == token_hash,
        ApiToken.is_active.is_(True),  # type: ignore[union-attr]
    )
    with store_errors("resolve_api_token"):
        result = await session.execute(stmt)
    api_token = result.scalar_one_or_none()

    if api_token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or revoked API token",
        )

    if api_token.expires_at and api_token.expires_at < utcnow():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="API token has expired",
        )

    # The owning user's role scopes what the token may do
    user = await session.get(User, api_token.user_id)
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token owner account is disabled",
        )

    api_token.last_used_at = utcnow()
    session.add(api_token)
    await session.commit()

    return AuthContext(
        organization_id=api_token.organization_id,
        user_id=api_token.user_id,
        user_role=user.role,
        token_id=api_token.id,
    )


async def _resolve_jwt(token: str) -> AuthContext:
    """Decode a JWT and extract organization_id + user_id."""
    try:
        payload = decode_jwt(token)
    except JWTError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired JWT",
        ) from exc

    try:
        return AuthContext(
            organization_id=uuid.UUID(payload["oid"]),
            user_id=uuid.UUID(payload["sub"]),
            user_role=payload.get("role", UserRole.MEMBER),
        )
    except (KeyError, ValueError) as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Malformed JWT payload",
        ) from exc


async def get_auth_context(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(bearer_scheme)],
    session: Annotated[AsyncSession, Depends(get_session)],
) -> AuthContext:
    """Resolve a bearer token to an AuthContext.

    Supports two token types:
    - API tokens (opaque, ~43 chars from token_urlsafe(32))
    - JWTs (contain dots: header.payload.signature)
    """
    raw = credentials.credentials

    if "." in raw:
        return await _resolve_jwt(raw)
    return await _resolve_api_token(raw, session)


def require_elevated(auth: AuthContext, action: str = "perform this action") -> None:
    """Raise 403 if the caller is not owner or admin."""
    if not auth.is_elevated:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Only owners and admins can {action}",
        )


async def get_current_organization(
    auth: Annotated[AuthContext, Depends(get_auth_context)],
    session: Annotated[AsyncSession, Depends(get_session)],
) -> Organization:
    with store_errors("load_organization"):
        org = await session.get(Organization, auth.organization_id)
    if org is None or not org.is_active:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Organization not found")
    return org


async def require_admin_key(
    x_admin_key: Annotated[str, Header()] = "",
) -> None:
    """Gate operator endpoints on the X-Admin-Key header."""
    if not admin_key_matches(x_admin_key):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin key",
        )


# ── Billing services ──────────────────────────────────────────

def get_limit_resolver() -> LimitResolver:
    return LimitResolver(get_plan_catalog())


def get_quota_enforcer(
    resolver: Annotated[LimitResolver, Depends(get_limit_resolver)],
) -> QuotaEnforcer:
    return QuotaEnforcer(resolver)


async def ensure_within_quota(
    session: AsyncSession,
    org: Organization,
    enforcer: QuotaEnforcer,
    limit_key: str,
    increment: int = 1,
) -> QuotaDecision:
    """Check the org's refreshed usage against its plan; raise 402 on denial."""
    _, usage = await current_usage(session, org)
    decision = enforcer.check(org, usage, limit_key, increment)
    if decision.denied:
        raise QuotaExceededError(
            limit_key=decision.limit_key,
            message=decision.message or "",
            current=decision.current or 0,
            limit=decision.limit or 0,
        )
    return decision


# Typed shorthand for use in route signatures
Auth = Annotated[AuthContext, Depends(get_auth_context)]
Session = Annotated[AsyncSession, Depends(get_session)]
CurrentOrg = Annotated[Organization, Depends(get_current_organization)]
Resolver = Annotated[LimitResolver, Depends(get_limit_resolver)]
Enforcer = Annotated[QuotaEnforcer, Depends(get_quota_enforcer)]
AdminKey = Depends(require_admin_key)

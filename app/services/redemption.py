"""AppSumo lifetime-deal codes — checking, redeeming and provisioning.

A code moves from unredeemed to redeemed exactly once. Redemption claims
the code with a conditional ``UPDATE ... WHERE is_redeemed = false``; only
the caller whose update touched the row goes on to upgrade the
organization, and both writes commit together.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from dataclasses import asdict, dataclass
from enum import StrEnum

from sqlalchemy import exc as sa_exc
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.exceptions import StoreUnavailableError, store_errors
from app.core.plans import MAX_APPSUMO_TIER, PlanType
from app.models.appsumo_code import AppsumoCode, AppsumoCodeCreate
from app.models.base import utcnow
from app.models.organization import Organization

logger = logging.getLogger(__name__)

# serialization_failure, deadlock_detected, lock_not_available
_RETRYABLE_SQLSTATES = frozenset({"40001", "40P01", "55P03"})
_REDEEM_ATTEMPTS = 2


class RedemptionError(StrEnum):
    INVALID_CODE = "invalid_code"
    ALREADY_REDEEMED = "already_redeemed"
    ORGANIZATION_NOT_FOUND = "organization_not_found"


_ERROR_MESSAGES: dict[RedemptionError, str] = {
    RedemptionError.INVALID_CODE: "Invalid code",
    RedemptionError.ALREADY_REDEEMED: "Code already redeemed",
    RedemptionError.ORGANIZATION_NOT_FOUND: "Organization not found",
}


@dataclass(frozen=True)
class RedemptionResult:
    success: bool
    tier: int | None = None
    message: str | None = None
    error: RedemptionError | None = None

    @classmethod
    def failed(cls, error: RedemptionError) -> RedemptionResult:
        return cls(success=False, error=error, message=_ERROR_MESSAGES[error])

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class CodeCheck:
    """Pre-flight answer for a code: validity and tier only."""

    valid: bool
    tier: int | None = None
    error: str | None = None


def normalize_code(code: str) -> str:
    return code.strip().upper()


def stacked_tier(current_tier: int | None, code_tier: int) -> int:
    """Tier after redeeming a code: tiers add up, capped at the top tier."""
    if current_tier is None:
        return min(code_tier, MAX_APPSUMO_TIER)
    return min(current_tier + code_tier, MAX_APPSUMO_TIER)


def _is_retryable(exc: sa_exc.DBAPIError) -> bool:
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    return sqlstate in _RETRYABLE_SQLSTATES


async def _get_code(session: AsyncSession, code: str) -> AppsumoCode | None:
    stmt = (
        select(AppsumoCode)
        .where(AppsumoCode.code == code)
        .execution_options(populate_existing=True)
    )
    return (await session.execute(stmt)).scalar_one_or_none()


async def check_code(session: AsyncSession, code: str) -> CodeCheck:
    """Validate a code without touching it."""
    with store_errors("check_code"):
        record = await _get_code(session, normalize_code(code))

    if record is None:
        return CodeCheck(valid=False, error="Code not found")
    if record.is_redeemed:
        return CodeCheck(valid=False, error=_ERROR_MESSAGES[RedemptionError.ALREADY_REDEEMED])
    return CodeCheck(valid=True, tier=record.tier)


async def _redeem_once(
    session: AsyncSession, organization_id: uuid.UUID, code: str,
) -> RedemptionResult:
    record = await _get_code(session, code)
    if record is None:
        return RedemptionResult.failed(RedemptionError.INVALID_CODE)
    if record.is_redeemed:
        return RedemptionResult.failed(RedemptionError.ALREADY_REDEEMED)

    # Lock the org row so concurrent redemptions for one org stack serially
    org_stmt = (
        select(Organization)
        .where(Organization.id == organization_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    org = (await session.execute(org_stmt)).scalar_one_or_none()
    if org is None:
        await session.rollback()
        return RedemptionResult.failed(RedemptionError.ORGANIZATION_NOT_FOUND)

    new_tier = stacked_tier(org.appsumo_tier, record.tier)
    now = utcnow()

    claim = await session.execute(
        update(AppsumoCode)
        .where(
            AppsumoCode.id == record.id,
            AppsumoCode.is_redeemed == False,  # noqa: E712
        )
        .values(
            is_redeemed=True,
            redeemed_by_org_id=organization_id,
            redeemed_at=now,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    if claim.rowcount != 1:
        # Another redemption claimed it between our read and our update
        await session.rollback()
        return RedemptionResult.failed(RedemptionError.ALREADY_REDEEMED)

    org.plan_type = PlanType.APPSUMO_LIFETIME
    org.appsumo_tier = new_tier
    org.subscription_tier = None
    org.appsumo_codes = [*(org.appsumo_codes or []), code]
    org.plan_changed_at = now
    org.updated_at = now
    session.add(org)
    await session.commit()

    return RedemptionResult(
        success=True,
        tier=new_tier,
        message=f"Code redeemed successfully! Your plan has been upgraded to Tier {new_tier}",
    )


async def redeem_code(
    session: AsyncSession, organization_id: uuid.UUID, code: str,
) -> RedemptionResult:
    """Redeem ``code`` for the organization, stacking its AppSumo tier.

    Expected rejections (unknown code, already redeemed) come back as a
    failed RedemptionResult. Lock contention is retried once; other store
    failures raise StoreUnavailableError.
    """
    normalized = normalize_code(code)

    attempt = 1
    while True:
        try:
            result = await _redeem_once(session, organization_id, normalized)
        except sa_exc.DBAPIError as exc:
            await session.rollback()
            retryable = _is_retryable(exc)
            if retryable and attempt < _REDEEM_ATTEMPTS:
                logger.warning(
                    "Redemption for org %s hit lock contention; retrying", organization_id,
                )
                attempt += 1
                continue
            if retryable or isinstance(exc, (sa_exc.OperationalError, sa_exc.InterfaceError)):
                logger.exception("Redemption for org %s failed in the store", organization_id)
                raise StoreUnavailableError("redeem_code", exc) from exc
            raise

        if result.success:
            logger.info("Org %s redeemed a tier code; now at tier %s", organization_id, result.tier)
        else:
            logger.info("Redemption rejected for org %s: %s", organization_id, result.error)
        return result


async def provision_codes(
    session: AsyncSession, entries: Iterable[AppsumoCodeCreate],
) -> tuple[list[str], list[str]]:
    """Insert new codes; codes that already exist are skipped.

    Returns (created, skipped), both normalized.
    """
    batch: dict[str, AppsumoCodeCreate] = {}
    for entry in entries:
        batch.setdefault(normalize_code(entry.code), entry)

    if not batch:
        return [], []

    with store_errors("provision_codes"):
        existing_stmt = select(AppsumoCode.code).where(
            AppsumoCode.code.in_(list(batch)),  # type: ignore[attr-defined]
        )
        existing = set((await session.execute(existing_stmt)).scalars().all())

        created: list[str] = []
        for code, entry in batch.items():
            if code in existing:
                continue
            session.add(AppsumoCode(code=code, tier=entry.tier, notes=entry.notes))
            created.append(code)
        await session.commit()

    skipped = sorted(existing)
    logger.info("Provisioned %d codes (%d already present)", len(created), len(skipped))
    return created, skipped

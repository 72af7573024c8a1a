"""Billing endpoints — plans, limits, usage, quota checks and lifetime-code redemption."""

from dataclasses import asdict
from datetime import date

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator

from app.api.deps import Auth, CurrentOrg, Enforcer, Resolver, Session, require_elevated
from app.core.plans import QUOTA_KEYS, PlanLimits, PlanType, SubscriptionTier
from app.models.usage_period import UsagePeriodRead
from app.services.limits import upgrade_options
from app.services.redemption import RedemptionError, check_code, redeem_code
from app.services.usage import (
    CounterKind,
    build_usage_summary,
    current_usage,
    increment_counter,
    refresh_snapshots,
)

router = APIRouter(prefix="/billing", tags=["billing"])

_REDEMPTION_STATUS: dict[RedemptionError, int] = {
    RedemptionError.INVALID_CODE: status.HTTP_400_BAD_REQUEST,
    RedemptionError.ALREADY_REDEEMED: status.HTTP_409_CONFLICT,
    RedemptionError.ORGANIZATION_NOT_FOUND: status.HTTP_404_NOT_FOUND,
}

_NON_QUOTA_FIELDS = frozenset(PlanLimits.model_fields) - frozenset(QUOTA_KEYS)


# ── Schemas ──────────────────────────────────────────────────

class PlanCatalogResponse(BaseModel):
    free: PlanLimits
    subscription: dict[SubscriptionTier, PlanLimits]
    appsumo: dict[int, PlanLimits]


class LimitsResponse(BaseModel):
    plan_type: PlanType
    subscription_tier: SubscriptionTier | None
    appsumo_tier: int | None
    limits: PlanLimits


class QuotaCheckRequest(BaseModel):
    limit_key: str = Field(max_length=64)
    increment: int = Field(default=1, ge=1)

    @field_validator("limit_key")
    @classmethod
    def _countable(cls, value: str) -> str:
        if value in _NON_QUOTA_FIELDS:
            raise ValueError(f"'{value}' is a plan feature, not a countable quota")
        return value


class QuotaCheckResponse(BaseModel):
    allowed: bool
    limit_key: str
    warning: bool
    upgrade_required: bool
    message: str | None
    current: int | None
    limit: int | None
    percent: int | None


class UsageResponse(BaseModel):
    period: UsagePeriodRead
    usage: dict[str, int]


class IncrementRequest(BaseModel):
    kind: CounterKind
    amount: int = Field(default=1, ge=1)


class IncrementResponse(BaseModel):
    applied: bool
    kind: str
    amount: int
    value: int | None
    period_start: date | None


class CodeRequest(BaseModel):
    code: str = Field(min_length=1, max_length=100)


class CodeCheckResponse(BaseModel):
    valid: bool
    tier: int | None = None
    error: str | None = None


class RedeemResponse(BaseModel):
    success: bool
    tier: int
    message: str


# ── Plans & limits ───────────────────────────────────────────

@router.get("/plans", response_model=PlanCatalogResponse)
async def list_plans(resolver: Resolver) -> PlanCatalogResponse:
    """The full plan catalog; public so pricing pages can render it."""
    catalog = resolver.catalog
    return PlanCatalogResponse(
        free=catalog.free,
        subscription=dict(catalog.subscription_tiers),
        appsumo=dict(catalog.appsumo_tiers),
    )


@router.get("/limits", response_model=LimitsResponse)
async def get_limits(org: CurrentOrg, resolver: Resolver) -> LimitsResponse:
    return LimitsResponse(
        plan_type=org.plan_type,
        subscription_tier=org.subscription_tier,
        appsumo_tier=org.appsumo_tier,
        limits=resolver.resolve(org),
    )


@router.post("/quota/check", response_model=QuotaCheckResponse)
async def check_quota(
    body: QuotaCheckRequest,
    org: CurrentOrg,
    enforcer: Enforcer,
    session: Session,
) -> QuotaCheckResponse:
    """Would ``increment`` more units fit? Advisory; nothing is reserved."""
    _, usage = await current_usage(session, org)
    decision = enforcer.check(org, usage, body.limit_key, body.increment)
    return QuotaCheckResponse(**decision.to_dict())


@router.get("/upgrade-options")
async def get_upgrade_options(org: CurrentOrg) -> dict:
    return {"plan_type": org.plan_type, "options": upgrade_options(org)}


# ── Usage ────────────────────────────────────────────────────

@router.get("/usage", response_model=UsageResponse)
async def get_usage(org: CurrentOrg, session: Session) -> UsageResponse:
    """Current period, with snapshot counts refreshed from live totals."""
    period, usage = await current_usage(session, org)
    return UsageResponse(period=UsagePeriodRead.model_validate(period), usage=usage)


@router.post("/usage/increment", response_model=IncrementResponse)
async def increment_usage(
    body: IncrementRequest,
    auth: Auth,
    session: Session,
) -> IncrementResponse:
    result = await increment_counter(session, auth.organization_id, body.kind, body.amount)
    return IncrementResponse(**asdict(result))


@router.post("/usage/refresh", response_model=UsagePeriodRead)
async def refresh_usage(auth: Auth, session: Session) -> UsagePeriodRead:
    period = await refresh_snapshots(session, auth.organization_id)
    return UsagePeriodRead.model_validate(period)


@router.get("/summary")
async def get_summary(org: CurrentOrg, resolver: Resolver, session: Session) -> dict:
    """Dashboard payload: plan badge, per-metric usage bars, feature flags."""
    period = await refresh_snapshots(session, org.id)
    return build_usage_summary(org, resolver.resolve(org), period)


# ── Lifetime codes ───────────────────────────────────────────

@router.post("/codes/check", response_model=CodeCheckResponse)
async def check_lifetime_code(
    body: CodeRequest,
    _auth: Auth,
    session: Session,
) -> CodeCheckResponse:
    result = await check_code(session, body.code)
    return CodeCheckResponse(valid=result.valid, tier=result.tier, error=result.error)


@router.post(
    "/redeem",
    response_model=RedeemResponse,
    responses={
        400: {"description": "Unknown code"},
        404: {"description": "Organization not found"},
        409: {"description": "Code already redeemed"},
    },
)
async def redeem_lifetime_code(
    body: CodeRequest,
    auth: Auth,
    session: Session,
) -> RedeemResponse | JSONResponse:
    require_elevated(auth, "redeem codes")

    result = await redeem_code(session, auth.organization_id, body.code)
    if not result.success:
        return JSONResponse(
            status_code=_REDEMPTION_STATUS[result.error],
            content={"success": False, "error": str(result.error), "message": result.message},
        )
    return RedeemResponse(success=True, tier=result.tier, message=result.message)

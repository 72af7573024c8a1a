"""Quota enforcement — pure allow / warn / deny decisions.

``QuotaEnforcer.check`` never writes. Callers perform the domain write
(and any usage update) only after an allowed decision. Two requests
checking at the same instant can both pass, so a limit may be overshot
slightly under concurrency; quotas here are soft limits. Strict
admission control would need a single reserve-and-increment operation.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING

from app.core.plans import UNLIMITED, PlanType
from app.services.limits import (
    LimitResolver,
    format_limit,
    format_limit_name,
    usage_percent,
)

if TYPE_CHECKING:
    from app.models.organization import Organization
    from app.models.usage_period import UsagePeriod

logger = logging.getLogger(__name__)

WARNING_PERCENT = 80


@dataclass(frozen=True)
class QuotaDecision:
    allowed: bool
    limit_key: str
    warning: bool = False
    upgrade_required: bool = False
    message: str | None = None
    current: int | None = None
    limit: int | None = None
    percent: int | None = None  # of the limit, after the increment unless denied

    @property
    def denied(self) -> bool:
        return not self.allowed

    def to_dict(self) -> dict:
        return asdict(self)


def usage_from_period(period: UsagePeriod | None, team_members: int = 0) -> dict[str, int]:
    """Key a usage period's counters by the limit they count against."""
    if period is None:
        return {"team_members": team_members}
    return {
        "projects": period.projects_count,
        "automations": period.automations_count,
        "customers": period.customers_count,
        "emails_monthly": period.emails_sent,
        "sms_monthly": period.sms_sent,
        "ai_analyses": period.ai_analyses_used,
        "team_members": team_members,
    }


def limit_message(limit_key: str, limit: int, plan_type: PlanType | str | None) -> str:
    """Denial text; each plan family is pointed at its own upgrade path."""
    name = format_limit_name(limit_key)
    head = f"You've reached your {name} limit ({format_limit(limit)})."

    if plan_type == PlanType.APPSUMO_LIFETIME:
        return f"{head} Stack another AppSumo code or upgrade to a subscription for more capacity."
    if plan_type == PlanType.SUBSCRIPTION:
        return f"{head} Upgrade to a higher tier for more capacity."
    return f"{head} Upgrade to unlock more capacity."


class QuotaEnforcer:
    def __init__(self, resolver: LimitResolver | None = None) -> None:
        self.resolver = resolver or LimitResolver()

    def check(
        self,
        org: Organization | None,
        usage: Mapping[str, int],
        limit_key: str,
        increment: int = 1,
    ) -> QuotaDecision:
        """Decide whether ``increment`` more units of ``limit_key`` fit the org's plan."""
        limits = self.resolver.resolve(org)
        limit = limits.limit_for(limit_key)

        if limit == UNLIMITED:
            return QuotaDecision(allowed=True, limit_key=limit_key)

        current = usage.get(limit_key) or 0
        projected = current + increment

        if projected > limit:
            plan_type = org.plan_type if org is not None else PlanType.FREE
            logger.info(
                "Quota denied: org=%s key=%s usage=%d+%d limit=%d",
                getattr(org, "id", None), limit_key, current, increment, limit,
            )
            return QuotaDecision(
                allowed=False,
                limit_key=limit_key,
                upgrade_required=True,
                message=limit_message(limit_key, limit, plan_type),
                current=current,
                limit=limit,
                percent=usage_percent(current, limit),
            )

        percent = usage_percent(projected, limit)
        if WARNING_PERCENT <= percent < 100:
            return QuotaDecision(
                allowed=True,
                limit_key=limit_key,
                warning=True,
                message=f"You're at {percent}% of your {format_limit_name(limit_key)} limit.",
                current=projected,
                limit=limit,
                percent=percent,
            )

        return QuotaDecision(
            allowed=True,
            limit_key=limit_key,
            current=projected,
            limit=limit,
            percent=percent,
        )

"""Limit resolution — turns an organization's plan state into PlanLimits.

Also hosts the small pure helpers used to present limits and usage
(formatting, percentages, status buckets, upgrade paths).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

from app.core.exceptions import PlanNotFoundError
from app.core.plans import (
    MAX_APPSUMO_TIER,
    UNLIMITED,
    PlanCatalog,
    PlanLimits,
    PlanType,
    SubscriptionTier,
    get_plan_catalog,
)

if TYPE_CHECKING:
    from app.models.organization import Organization


# ── Plan state variant ────────────────────────────────────────

@dataclass(frozen=True, slots=True)
class FreePlan:
    pass


@dataclass(frozen=True, slots=True)
class SubscriptionPlan:
    tier: SubscriptionTier


@dataclass(frozen=True, slots=True)
class AppsumoPlan:
    tier: int


PlanState = FreePlan | SubscriptionPlan | AppsumoPlan


def plan_state_of(org: Organization | None) -> PlanState:
    """Normalize stored plan columns into a PlanState.

    Missing or invalid tiers fall back to the lowest tier of the family
    (AppSumo tier 1, Growth) rather than failing.
    """
    if org is None:
        return FreePlan()

    if org.plan_type == PlanType.APPSUMO_LIFETIME:
        tier = org.appsumo_tier
        if not isinstance(tier, int) or not 1 <= tier <= MAX_APPSUMO_TIER:
            tier = 1
        return AppsumoPlan(tier=tier)

    if org.plan_type == PlanType.SUBSCRIPTION:
        try:
            return SubscriptionPlan(tier=SubscriptionTier(org.subscription_tier))
        except ValueError:
            return SubscriptionPlan(tier=SubscriptionTier.GROWTH)

    return FreePlan()


# ── Resolver ──────────────────────────────────────────────────

class LimitResolver:
    """Resolves the effective limits for an organization."""

    def __init__(self, catalog: PlanCatalog | None = None) -> None:
        self.catalog = catalog or get_plan_catalog()

    def base_limits(self, state: PlanState) -> PlanLimits:
        match state:
            case AppsumoPlan(tier=tier):
                try:
                    return self.catalog.appsumo(tier)
                except PlanNotFoundError:
                    return self.catalog.appsumo(1)
            case SubscriptionPlan(tier=tier):
                try:
                    return self.catalog.subscription(tier)
                except PlanNotFoundError:
                    return self.catalog.subscription(SubscriptionTier.GROWTH)
            case FreePlan():
                return self.catalog.free

    def resolve(self, org: Organization | None) -> PlanLimits:
        """Catalog limits for the org's plan with any per-org override merged on top."""
        base = self.base_limits(plan_state_of(org))
        if org is None:
            return base
        return base.merged(org.plan_limits_override)


# ── Presentation helpers ──────────────────────────────────────

LIMIT_NAMES: dict[str, str] = {
    "projects": "projects",
    "automations": "automations",
    "customers": "customers",
    "emails_monthly": "monthly emails",
    "sms_monthly": "monthly SMS",
    "ai_analyses": "AI analyses",
    "team_members": "team members",
}


def is_unlimited(value: int) -> bool:
    return value == UNLIMITED


def format_limit(value: int) -> str:
    if value == UNLIMITED:
        return "Unlimited"
    if value == 0:
        return "—"
    return f"{value:,}"


def format_limit_name(limit_key: str) -> str:
    return LIMIT_NAMES.get(limit_key, limit_key)


def usage_percent(used: int, limit: int) -> int:
    """Usage as a whole percentage; may exceed 100. Unlimited is always 0."""
    if limit == UNLIMITED:
        return 0
    if limit == 0:
        return 100 if used > 0 else 0
    return math.floor(used / limit * 100 + 0.5)  # half-up


def usage_status(percent: int) -> str:
    if percent >= 100:
        return "critical"
    if percent >= 80:
        return "warning"
    if percent >= 50:
        return "moderate"
    return "healthy"


# Next subscription step: tier -> (tier, display name, monthly price)
_SUBSCRIPTION_UPGRADES: dict[SubscriptionTier, tuple[SubscriptionTier, str, int]] = {
    SubscriptionTier.GROWTH: (SubscriptionTier.BUSINESS, "Business", 99),
    SubscriptionTier.BUSINESS: (SubscriptionTier.ENTERPRISE, "Enterprise", 249),
}


def upgrade_options(org: Organization | None) -> list[dict]:
    """Upgrade paths open to the organization from its current plan."""
    options: list[dict] = []

    match plan_state_of(org):
        case AppsumoPlan(tier=tier):
            if tier < MAX_APPSUMO_TIER:
                options.append({
                    "type": "stack_code",
                    "label": "Stack Another Code",
                    "description": "Redeem another AppSumo code to increase your limits",
                    "action": "redeem",
                })
            options.append({
                "type": "subscription",
                "label": "Switch to Monthly",
                "description": "Get unlimited growth with a monthly subscription",
                "action": "upgrade",
            })
        case SubscriptionPlan(tier=tier):
            upgrade = _SUBSCRIPTION_UPGRADES.get(tier)
            if upgrade is not None:
                next_tier, name, price = upgrade
                options.append({
                    "type": "upgrade_tier",
                    "label": f"Upgrade to {name}",
                    "description": f"${price}/month - More projects, automations, and customers",
                    "action": "upgrade",
                    "tier": str(next_tier),
                })
        case FreePlan():
            options.append({
                "type": "subscription",
                "label": "Upgrade to Growth",
                "description": "$39/month - 5 projects, 2,000 customers, 5,000 emails",
                "action": "upgrade",
                "tier": str(SubscriptionTier.GROWTH),
            })
            options.append({
                "type": "appsumo",
                "label": "Redeem AppSumo Code",
                "description": "Have a lifetime deal code? Redeem it here",
                "action": "redeem",
            })

    return options

"""Plan catalog — quota values for every plan an organization can hold.

Single source of truth for free, subscription and AppSumo lifetime limits.
Served to clients via GET /v1/billing/plans. A value of -1 means
"unlimited" and 0 means "not included".
"""

import logging
from collections.abc import Mapping
from enum import StrEnum
from functools import lru_cache
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict

from app.core.exceptions import PlanNotFoundError

logger = logging.getLogger(__name__)

UNLIMITED = -1
MAX_APPSUMO_TIER = 3

# Countable quota keys (everything else on PlanLimits is a flag or metadata)
QUOTA_KEYS: tuple[str, ...] = (
    "projects",
    "automations",
    "customers",
    "emails_monthly",
    "sms_monthly",
    "ai_analyses",
    "team_members",
)

FEATURE_FLAGS: tuple[str, ...] = (
    "api_access",
    "webhooks",
    "priority_support",
    "dedicated_support",
    "sla",
    "white_label",
)


class PlanType(StrEnum):
    FREE = "free"
    SUBSCRIPTION = "subscription"
    APPSUMO_LIFETIME = "appsumo_lifetime"


class SubscriptionTier(StrEnum):
    GROWTH = "growth"
    BUSINESS = "business"
    ENTERPRISE = "enterprise"


class PlanLimits(BaseModel):
    """Resolved limits for one plan. Immutable; overrides produce a copy."""

    model_config = ConfigDict(frozen=True, extra="allow")

    name: str
    badge: str | None = None
    price_monthly: int | None = None
    price_annual: int | None = None

    projects: int
    automations: int
    customers: int
    emails_monthly: int
    sms_monthly: int
    ai_analyses: int
    team_members: int

    api_access: bool = False
    webhooks: bool = False
    priority_support: bool = False
    dedicated_support: bool = False
    sla: bool = False
    white_label: bool = False

    def limit_for(self, key: str) -> int:
        """Return the numeric limit for a quota key (0 if the plan has none)."""
        value = getattr(self, key, None)
        if isinstance(value, bool) or not isinstance(value, int):
            return 0
        return value

    def merged(self, override: Mapping[str, Any] | None) -> "PlanLimits":
        """Shallow-merge an override over these limits; override wins per key.

        Entries that could not legally apply (wrong type, metadata or unknown
        keys) are logged and skipped so a bad stored override never breaks
        resolution.
        """
        if not override:
            return self
        if not isinstance(override, Mapping):
            logger.warning("Ignoring plan override that is not a mapping: %r", override)
            return self

        accepted: dict[str, Any] = {}
        for key, value in override.items():
            error = override_entry_error(key, value)
            if error is not None:
                logger.warning("Ignoring plan override entry: %s", error)
                continue
            accepted[key] = value

        if not accepted:
            return self
        return self.model_copy(update=accepted)


def override_entry_error(key: str, value: Any) -> str | None:
    """Why ``key: value`` cannot be used as a limit override, or None if it can."""
    if key in QUOTA_KEYS:
        if isinstance(value, bool) or not isinstance(value, int) or value < UNLIMITED:
            return f"'{key}' must be an integer >= -1, got {value!r}"
        return None
    if key in FEATURE_FLAGS:
        if not isinstance(value, bool):
            return f"'{key}' must be true or false, got {value!r}"
        return None
    return f"'{key}' is not an overridable limit"


class PlanCatalog:
    """Immutable lookup over free, subscription and AppSumo plans."""

    __slots__ = ("_free", "_subscription", "_appsumo")

    def __init__(
        self,
        free: PlanLimits,
        subscription: Mapping[SubscriptionTier, PlanLimits],
        appsumo: Mapping[int, PlanLimits],
    ) -> None:
        self._free = free
        self._subscription = MappingProxyType(dict(subscription))
        self._appsumo = MappingProxyType(dict(appsumo))

    @property
    def free(self) -> PlanLimits:
        return self._free

    @property
    def subscription_tiers(self) -> Mapping[SubscriptionTier, PlanLimits]:
        return self._subscription

    @property
    def appsumo_tiers(self) -> Mapping[int, PlanLimits]:
        return self._appsumo

    def subscription(self, tier: SubscriptionTier | str) -> PlanLimits:
        try:
            return self._subscription[SubscriptionTier(tier)]
        except (KeyError, ValueError) as exc:
            raise PlanNotFoundError("subscription", tier) from exc

    def appsumo(self, tier: int) -> PlanLimits:
        try:
            return self._appsumo[tier]
        except (KeyError, TypeError) as exc:
            raise PlanNotFoundError("appsumo", tier) from exc


FREE_PLAN = PlanLimits(
    name="Free",
    projects=1,
    automations=3,
    customers=100,
    emails_monthly=500,
    sms_monthly=0,
    ai_analyses=10,
    team_members=1,
)

SUBSCRIPTION_PLANS: dict[SubscriptionTier, PlanLimits] = {
    SubscriptionTier.GROWTH: PlanLimits(
        name="Growth",
        price_monthly=39,
        price_annual=31,
        projects=5,
        automations=15,
        customers=2000,
        emails_monthly=5000,
        sms_monthly=0,
        ai_analyses=50,
        team_members=3,
    ),
    SubscriptionTier.BUSINESS: PlanLimits(
        name="Business",
        price_monthly=99,
        price_annual=79,
        projects=15,
        automations=50,
        customers=10000,
        emails_monthly=25000,
        sms_monthly=0,
        ai_analyses=200,
        team_members=10,
        api_access=True,
        webhooks=True,
        priority_support=True,
    ),
    SubscriptionTier.ENTERPRISE: PlanLimits(
        name="Enterprise",
        price_monthly=249,
        price_annual=199,
        projects=UNLIMITED,
        automations=UNLIMITED,
        customers=50000,
        emails_monthly=100000,
        sms_monthly=1000,
        ai_analyses=UNLIMITED,
        team_members=UNLIMITED,
        api_access=True,
        webhooks=True,
        priority_support=True,
        dedicated_support=True,
        sla=True,
    ),
}

APPSUMO_PLANS: dict[int, PlanLimits] = {
    1: PlanLimits(
        name="Lifetime Tier 1",
        badge="AppSumo",
        projects=3,
        automations=10,
        customers=1000,
        emails_monthly=3000,
        sms_monthly=0,
        ai_analyses=30,
        team_members=2,
    ),
    2: PlanLimits(
        name="Lifetime Tier 2",
        badge="AppSumo",
        projects=10,
        automations=30,
        customers=5000,
        emails_monthly=15000,
        sms_monthly=0,
        ai_analyses=100,
        team_members=5,
        api_access=True,
        priority_support=True,
    ),
    3: PlanLimits(
        name="Lifetime Tier 3",
        badge="AppSumo",
        projects=25,
        automations=UNLIMITED,
        customers=15000,
        emails_monthly=50000,
        sms_monthly=0,
        ai_analyses=300,
        team_members=10,
        api_access=True,
        webhooks=True,
        priority_support=True,
        white_label=True,
    ),
}


@lru_cache
def get_plan_catalog() -> PlanCatalog:
    """Process-wide catalog, built once. Inject it rather than importing the tables."""
    return PlanCatalog(
        free=FREE_PLAN,
        subscription=SUBSCRIPTION_PLANS,
        appsumo=APPSUMO_PLANS,
    )

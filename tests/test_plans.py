"""Tests for the plan catalog and limit resolution (no database)."""

import pytest

from app.core.exceptions import PlanNotFoundError
from app.core.plans import (
    UNLIMITED,
    PlanCatalog,
    PlanLimits,
    PlanType,
    SubscriptionTier,
    get_plan_catalog,
)
from app.models.organization import Organization
from app.services.limits import (
    AppsumoPlan,
    FreePlan,
    LimitResolver,
    SubscriptionPlan,
    format_limit,
    plan_state_of,
    upgrade_options,
    usage_percent,
    usage_status,
)


def _org(**fields) -> Organization:
    return Organization(name="Acme", slug="acme", **fields)


def test_catalog_is_immutable():
    catalog = get_plan_catalog()
    with pytest.raises(TypeError):
        catalog.appsumo_tiers[4] = catalog.free  # type: ignore[index]
    with pytest.raises(Exception):
        catalog.free.projects = 99  # type: ignore[misc]


def test_catalog_unknown_tier_raises():
    catalog = get_plan_catalog()
    with pytest.raises(PlanNotFoundError):
        catalog.appsumo(7)
    with pytest.raises(PlanNotFoundError):
        catalog.subscription("platinum")


def test_free_org_resolves_to_free_plan():
    limits = LimitResolver().resolve(_org())
    assert limits.name == "Free"
    assert limits.projects == 1
    assert limits.sms_monthly == 0


def test_missing_org_resolves_to_free_plan():
    assert LimitResolver().resolve(None) == get_plan_catalog().free


@pytest.mark.parametrize("tier", [1, 2, 3])
def test_appsumo_org_resolves_to_its_tier(tier):
    org = _org(plan_type=PlanType.APPSUMO_LIFETIME, appsumo_tier=tier)
    assert LimitResolver().resolve(org) == get_plan_catalog().appsumo(tier)


def test_appsumo_with_invalid_tier_falls_back_to_tier_one():
    org = _org(plan_type=PlanType.APPSUMO_LIFETIME, appsumo_tier=9)
    assert plan_state_of(org) == AppsumoPlan(tier=1)
    assert LimitResolver().resolve(org).name == "Lifetime Tier 1"

    org = _org(plan_type=PlanType.APPSUMO_LIFETIME, appsumo_tier=None)
    assert LimitResolver().resolve(org).name == "Lifetime Tier 1"


def test_subscription_resolves_and_falls_back_to_growth():
    org = _org(plan_type=PlanType.SUBSCRIPTION, subscription_tier=SubscriptionTier.BUSINESS)
    assert plan_state_of(org) == SubscriptionPlan(tier=SubscriptionTier.BUSINESS)
    assert LimitResolver().resolve(org).projects == 15

    org = _org(plan_type=PlanType.SUBSCRIPTION, subscription_tier=None)
    assert LimitResolver().resolve(org).name == "Growth"


def test_override_merges_without_touching_catalog():
    catalog = get_plan_catalog()
    org = _org(
        plan_type=PlanType.APPSUMO_LIFETIME,
        appsumo_tier=2,
        plan_limits_override={"projects": 50, "api_access": False},
    )

    limits = LimitResolver(catalog).resolve(org)

    assert limits.projects == 50
    assert limits.api_access is False
    assert limits.automations == catalog.appsumo(2).automations
    assert catalog.appsumo(2).projects == 10
    assert catalog.appsumo(2).api_access is True


@pytest.mark.parametrize("override", [
    {"api_access": 5},
    {"name": 1},
    {"projects": None},
    {"projects": -7},
    {"projects": True},
    {"custom_domains": 3},
    ["projects", 5],
])
def test_unusable_stored_override_falls_back_to_plan(override):
    org = _org(plan_type=PlanType.FREE, plan_limits_override=override)

    limits = LimitResolver().resolve(org)

    assert limits == get_plan_catalog().free


def test_bad_override_entries_do_not_discard_good_ones():
    org = _org(plan_limits_override={"projects": 12, "api_access": "yes", "name": "Hacked"})

    limits = LimitResolver().resolve(org)

    assert limits.projects == 12
    assert limits.api_access is False
    assert limits.name == "Free"


def test_limit_for_ignores_flags_and_unknown_keys():
    limits = get_plan_catalog().subscription(SubscriptionTier.ENTERPRISE)
    assert limits.limit_for("projects") == UNLIMITED
    assert limits.limit_for("api_access") == 0
    assert limits.limit_for("no_such_limit") == 0


def test_custom_catalog_is_injectable():
    tiny = PlanLimits(
        name="Tiny", projects=0, automations=0, customers=0, emails_monthly=0,
        sms_monthly=0, ai_analyses=0, team_members=1,
    )
    base = get_plan_catalog()
    catalog = PlanCatalog(free=tiny, subscription=base.subscription_tiers, appsumo=base.appsumo_tiers)
    assert LimitResolver(catalog).resolve(_org()).name == "Tiny"
    assert plan_state_of(_org()) == FreePlan()


# ── Presentation helpers ──────────────────────────────────────

def test_format_limit():
    assert format_limit(UNLIMITED) == "Unlimited"
    assert format_limit(0) == "—"
    assert format_limit(15000) == "15,000"


def test_usage_percent_and_status():
    assert usage_percent(5, UNLIMITED) == 0
    assert usage_percent(0, 0) == 0
    assert usage_percent(1, 0) == 100
    assert usage_percent(1, 8) == 13  # 12.5 rounds half-up
    assert usage_percent(150, 100) == 150
    assert usage_status(49) == "healthy"
    assert usage_status(50) == "moderate"
    assert usage_status(80) == "warning"
    assert usage_status(100) == "critical"


def test_upgrade_options_by_plan():
    free = [o["type"] for o in upgrade_options(_org())]
    assert free == ["subscription", "appsumo"]

    tier3 = _org(plan_type=PlanType.APPSUMO_LIFETIME, appsumo_tier=3)
    assert [o["type"] for o in upgrade_options(tier3)] == ["subscription"]

    tier1 = _org(plan_type=PlanType.APPSUMO_LIFETIME, appsumo_tier=1)
    assert [o["type"] for o in upgrade_options(tier1)] == ["stack_code", "subscription"]

    enterprise = _org(plan_type=PlanType.SUBSCRIPTION, subscription_tier=SubscriptionTier.ENTERPRISE)
    assert upgrade_options(enterprise) == []

    growth = _org(plan_type=PlanType.SUBSCRIPTION, subscription_tier=SubscriptionTier.GROWTH)
    assert upgrade_options(growth)[0]["tier"] == "business"

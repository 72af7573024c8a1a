"""Tests for quota decisions (no database)."""

from app.core.plans import PlanType, SubscriptionTier
from app.models.organization import Organization
from app.services.quota import QuotaEnforcer, limit_message


def _org(**fields) -> Organization:
    return Organization(name="Acme", slug="acme", **fields)


def _override_org(**limits) -> Organization:
    return _org(plan_limits_override=limits)


def test_warning_starts_at_eighty_percent():
    org = _override_org(emails_monthly=100)
    decision = QuotaEnforcer().check(org, {"emails_monthly": 79}, "emails_monthly")

    assert decision.allowed
    assert decision.warning
    assert decision.current == 80
    assert decision.limit == 100
    assert decision.percent == 80
    assert "80%" in decision.message


def test_no_warning_below_eighty_percent():
    org = _override_org(emails_monthly=100)
    decision = QuotaEnforcer().check(org, {"emails_monthly": 78}, "emails_monthly")

    assert decision.allowed
    assert not decision.warning
    assert decision.percent == 79
    assert decision.message is None


def test_reaching_the_limit_exactly_is_allowed_without_warning():
    org = _override_org(emails_monthly=100)
    decision = QuotaEnforcer().check(org, {"emails_monthly": 99}, "emails_monthly")

    assert decision.allowed
    assert not decision.warning
    assert decision.percent == 100


def test_exceeding_the_limit_is_denied():
    org = _override_org(emails_monthly=100)
    decision = QuotaEnforcer().check(org, {"emails_monthly": 100}, "emails_monthly")

    assert decision.denied
    assert decision.upgrade_required
    assert decision.current == 100  # usage before the attempted increment
    assert decision.limit == 100
    assert decision.percent == 100


def test_unlimited_is_always_allowed():
    org = _org(plan_type=PlanType.SUBSCRIPTION, subscription_tier=SubscriptionTier.ENTERPRISE)
    decision = QuotaEnforcer().check(org, {"projects": 10_000_000}, "projects", increment=500)

    assert decision.allowed
    assert not decision.warning
    assert decision.limit is None
    assert decision.percent is None


def test_free_org_second_project_is_denied():
    decision = QuotaEnforcer().check(_org(), {"projects": 1}, "projects")

    assert decision.denied
    assert decision.message == "You've reached your projects limit (1). Upgrade to unlock more capacity."


def test_not_included_feature_denies_first_use():
    # sms_monthly is 0 on the free plan
    decision = QuotaEnforcer().check(_org(), {}, "sms_monthly")

    assert decision.denied
    assert decision.current == 0
    assert decision.limit == 0


def test_unknown_limit_key_is_treated_as_not_included():
    decision = QuotaEnforcer().check(_org(), {}, "teleporters")
    assert decision.denied


def test_increment_larger_than_headroom_is_denied():
    org = _override_org(customers=100)
    decision = QuotaEnforcer().check(org, {"customers": 60}, "customers", increment=41)
    assert decision.denied

    decision = QuotaEnforcer().check(org, {"customers": 60}, "customers", increment=40)
    assert decision.allowed


def test_messages_point_each_plan_at_its_upgrade_path():
    appsumo = limit_message("projects", 3, PlanType.APPSUMO_LIFETIME)
    assert appsumo.startswith("You've reached your projects limit (3).")
    assert "Stack another AppSumo code" in appsumo

    subscription = limit_message("emails_monthly", 5000, PlanType.SUBSCRIPTION)
    assert subscription == (
        "You've reached your monthly emails limit (5,000). "
        "Upgrade to a higher tier for more capacity."
    )

    free = limit_message("team_members", 1, PlanType.FREE)
    assert free.endswith("Upgrade to unlock more capacity.")


def test_check_does_not_mutate_usage():
    usage = {"projects": 0}
    QuotaEnforcer().check(_org(), usage, "projects")
    assert usage == {"projects": 0}


def test_denied_percent_reflects_usage_before_increment():
    org = _override_org(customers=200)
    decision = QuotaEnforcer().check(org, {"customers": 150}, "customers", increment=60)

    assert decision.denied
    assert decision.current == 150
    assert decision.percent == 75

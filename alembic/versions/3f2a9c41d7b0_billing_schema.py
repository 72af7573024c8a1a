"""billing schema: organizations, members, plan state, usage periods, lifetime codes

Revision ID: 3f2a9c41d7b0
Revises:
Create Date: 2026-10-18 09:12:44.318205

"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '3f2a9c41d7b0'
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

# SQLModel persists enum member names
plan_type = sa.Enum("FREE", "SUBSCRIPTION", "APPSUMO_LIFETIME", name="plantype")
subscription_tier = sa.Enum("GROWTH", "BUSINESS", "ENTERPRISE", name="subscriptiontier")
user_role = sa.Enum("OWNER", "ADMIN", "MEMBER", name="userrole")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "organizations",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(100), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("plan_type", plan_type, nullable=False, server_default="FREE"),
        sa.Column("subscription_tier", subscription_tier, nullable=True),
        sa.Column("appsumo_tier", sa.Integer(), nullable=True),
        sa.Column("appsumo_codes", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column("plan_limits_override", sa.JSON(), nullable=True),
        sa.Column("plan_changed_at", sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_organizations_slug", "organizations", ["slug"], unique=True)
    op.create_index("ix_organizations_plan_type", "organizations", ["plan_type"])

    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("organization_id", sa.Uuid(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("password_hash", sa.String(), nullable=False),
        sa.Column("display_name", sa.String(255), nullable=False),
        sa.Column("role", user_role, nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_users_organization_id", "users", ["organization_id"])
    op.create_index("ix_users_email", "users", ["email"])

    op.create_table(
        "api_tokens",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("organization_id", sa.Uuid(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("token_hash", sa.String(), nullable=False),
        sa.Column("token_prefix", sa.String(12), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=True),
        sa.Column("last_used_at", sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_api_tokens_organization_id", "api_tokens", ["organization_id"])
    op.create_index("ix_api_tokens_user_id", "api_tokens", ["user_id"])
    op.create_index("ix_api_tokens_token_hash", "api_tokens", ["token_hash"], unique=True)

    op.create_table(
        "projects",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("organization_id", sa.Uuid(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.String(1000), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_projects_organization_id", "projects", ["organization_id"])

    op.create_table(
        "automations",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("project_id", sa.Uuid(), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("trigger", sa.String(100), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_automations_project_id", "automations", ["project_id"])

    op.create_table(
        "customers",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("organization_id", sa.Uuid(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_customers_organization_id", "customers", ["organization_id"])
    op.create_index("ix_customers_email", "customers", ["email"])

    op.create_table(
        "usage_tracking",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("organization_id", sa.Uuid(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("period_end", sa.Date(), nullable=False),
        sa.Column("emails_sent", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("sms_sent", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("ai_analyses_used", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("projects_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("automations_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("customers_count", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.UniqueConstraint(
            "organization_id", "period_start", name="uq_usage_tracking_org_period",
        ),
    )
    op.create_index("ix_usage_tracking_organization_id", "usage_tracking", ["organization_id"])
    op.create_index("ix_usage_tracking_period_start", "usage_tracking", ["period_start"])

    op.create_table(
        "appsumo_codes",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("code", sa.String(100), nullable=False),
        sa.Column("tier", sa.Integer(), nullable=False),
        sa.Column("is_redeemed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "redeemed_by_org_id", sa.Uuid(), sa.ForeignKey("organizations.id"), nullable=True,
        ),
        sa.Column("redeemed_at", sa.DateTime(), nullable=True),
        sa.Column("notes", sa.String(500), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("tier IN (1, 2, 3)", name="ck_appsumo_codes_tier"),
    )
    op.create_index("ix_appsumo_codes_code", "appsumo_codes", ["code"], unique=True)
    op.create_index("ix_appsumo_codes_is_redeemed", "appsumo_codes", ["is_redeemed"])


def downgrade() -> None:
    op.drop_table("appsumo_codes")
    op.drop_table("usage_tracking")
    op.drop_table("customers")
    op.drop_table("automations")
    op.drop_table("projects")
    op.drop_table("api_tokens")
    op.drop_table("users")
    op.drop_table("organizations")
    user_role.drop(op.get_bind(), checkfirst=True)
    subscription_tier.drop(op.get_bind(), checkfirst=True)
    plan_type.drop(op.get_bind(), checkfirst=True)

"""create sites, memberships, invitations, goals and funnels

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=True),
        sa.Column("trial_expiry_date", sa.Date(), nullable=True),
        sa.Column("grace_period", sa.JSON(), nullable=True),
        *_timestamps(),
    )
    op.create_index(op.f("ix_users_id"), "users", ["id"], unique=False)
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)

    op.create_table(
        "subscriptions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("plan_key", sa.String(), nullable=False),
        sa.Column("status", sa.String(length=8), nullable=False),
        sa.Column("next_bill_date", sa.Date(), nullable=True),
        sa.Column("last_bill_date", sa.Date(), nullable=True),
        *_timestamps(),
    )
    op.create_index(op.f("ix_subscriptions_id"), "subscriptions", ["id"], unique=False)
    op.create_index("ix_subscriptions_user_id", "subscriptions", ["user_id"], unique=False)
    op.create_index("ix_subscriptions_plan_key", "subscriptions", ["plan_key"], unique=False)

    op.create_table(
        "sites",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("domain", sa.String(), nullable=False),
        sa.Column("timezone", sa.String(), nullable=False),
        sa.Column("locked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("funnels_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("props_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("conversions_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index(op.f("ix_sites_id"), "sites", ["id"], unique=False)
    op.create_index(op.f("ix_sites_domain"), "sites", ["domain"], unique=True)

    op.create_table(
        "site_memberships",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("site_id", sa.Integer(), sa.ForeignKey("sites.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("role", sa.String(length=6), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("site_id", "user_id", name="uq_site_membership_site_user"),
    )
    op.create_index(op.f("ix_site_memberships_id"), "site_memberships", ["id"], unique=False)
    op.create_index("ix_site_memberships_user_id", "site_memberships", ["user_id"], unique=False)
    op.create_index(
        "uq_site_membership_owner",
        "site_memberships",
        ["site_id"],
        unique=True,
        sqlite_where=sa.text("role = 'owner'"),
        postgresql_where=sa.text("role = 'owner'"),
    )

    op.create_table(
        "invitations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("invitation_id", sa.String(), nullable=False),
        sa.Column("site_id", sa.Integer(), sa.ForeignKey("sites.id", ondelete="CASCADE"), nullable=False),
        sa.Column("inviter_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("role", sa.String(length=6), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("site_id", "email", name="uq_invitations_site_email"),
    )
    op.create_index(op.f("ix_invitations_id"), "invitations", ["id"], unique=False)
    op.create_index(op.f("ix_invitations_invitation_id"), "invitations", ["invitation_id"], unique=True)
    op.create_index("ix_invitations_email", "invitations", ["email"], unique=False)

    op.create_table(
        "goals",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("site_id", sa.Integer(), sa.ForeignKey("sites.id", ondelete="CASCADE"), nullable=False),
        sa.Column("event_name", sa.String(), nullable=True),
        sa.Column("page_path", sa.String(), nullable=True),
        sa.Column("currency", sa.String(length=3), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("site_id", "event_name", name="uq_goals_site_event_name"),
        sa.UniqueConstraint("site_id", "page_path", name="uq_goals_site_page_path"),
        sa.CheckConstraint(
            "(event_name IS NULL) <> (page_path IS NULL)",
            name="ck_goals_event_name_xor_page_path",
        ),
    )
    op.create_index(op.f("ix_goals_id"), "goals", ["id"], unique=False)
    op.create_index("ix_goals_site_id", "goals", ["site_id"], unique=False)

    op.create_table(
        "funnels",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("site_id", sa.Integer(), sa.ForeignKey("sites.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("site_id", "name", name="uq_funnels_site_name"),
    )
    op.create_index(op.f("ix_funnels_id"), "funnels", ["id"], unique=False)
    op.create_index("ix_funnels_site_id", "funnels", ["site_id"], unique=False)

    op.create_table(
        "funnel_steps",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("funnel_id", sa.Integer(), sa.ForeignKey("funnels.id", ondelete="CASCADE"), nullable=False),
        sa.Column("goal_id", sa.Integer(), sa.ForeignKey("goals.id", ondelete="CASCADE"), nullable=False),
        sa.Column("step_order", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("funnel_id", "goal_id", name="uq_funnel_steps_funnel_goal"),
    )
    op.create_index(op.f("ix_funnel_steps_id"), "funnel_steps", ["id"], unique=False)
    op.create_index("ix_funnel_steps_goal_id", "funnel_steps", ["goal_id"], unique=False)

    op.create_table(
        "email_queue",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("site_id", sa.Integer(), sa.ForeignKey("sites.id", ondelete="SET NULL"), nullable=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("to_email", sa.String(), nullable=False),
        sa.Column("to_name", sa.String(), nullable=True),
        sa.Column("from_email", sa.String(), nullable=True),
        sa.Column("template_key", sa.String(), nullable=False),
        sa.Column("subject", sa.String(), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("sent_at", sa.DateTime(), nullable=True),
        sa.Column("metadata_json", sa.JSON(), nullable=True),
        *_timestamps(),
    )
    op.create_index(op.f("ix_email_queue_id"), "email_queue", ["id"], unique=False)
    op.create_index("ix_email_queue_status_created", "email_queue", ["status", "created_at"], unique=False)
    op.create_index("ix_email_queue_template_key", "email_queue", ["template_key"], unique=False)


def downgrade() -> None:
    op.drop_table("email_queue")
    op.drop_table("funnel_steps")
    op.drop_table("funnels")
    op.drop_table("goals")
    op.drop_table("invitations")
    op.drop_index("uq_site_membership_owner", table_name="site_memberships")
    op.drop_table("site_memberships")
    op.drop_table("sites")
    op.drop_table("subscriptions")
    op.drop_table("users")

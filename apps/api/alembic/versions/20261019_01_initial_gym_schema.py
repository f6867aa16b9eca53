"""Initial gym schema: tenants, members, memberships, attendance and notifications.

Revision ID: 20261019_01
Revises:
Create Date: 2026-10-19
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "20261019_01"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


membership_status_enum = sa.Enum("ACTIVE", "EXPIRED", name="membership_status_enum")
notification_type_enum = sa.Enum("WELCOME", "EXPIRING_SOON", "EXPIRED", name="notification_type_enum")
notification_channel_enum = sa.Enum("TELEGRAM", name="notification_channel_enum")
notification_status_enum = sa.Enum("SENT", "FAILED", name="notification_status_enum")


def upgrade() -> None:
    op.create_table(
        "organizations",
        sa.Column("id", sa.dialects.postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("telegram_bot_token", sa.String(), nullable=True),
        sa.Column("telegram_bot_username", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "members",
        sa.Column("id", sa.dialects.postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("organization_id", sa.dialects.postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("code", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("telegram_chat_id", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(
            ["organization_id"],
            ["organizations.id"],
            name="fk_members_organization_id_organizations",
            ondelete="CASCADE",
        ),
        sa.UniqueConstraint("organization_id", "code", name="uq_members_organization_code"),
    )
    op.create_index("ix_members_organization_id", "members", ["organization_id"])

    op.create_table(
        "disciplines",
        sa.Column("id", sa.dialects.postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("organization_id", sa.dialects.postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(
            ["organization_id"],
            ["organizations.id"],
            name="fk_disciplines_organization_id_organizations",
            ondelete="CASCADE",
        ),
        sa.UniqueConstraint("organization_id", "name", name="uq_disciplines_organization_name"),
    )
    op.create_index("ix_disciplines_organization_id", "disciplines", ["organization_id"])

    op.create_table(
        "memberships",
        sa.Column("id", sa.dialects.postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("organization_id", sa.dialects.postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("member_id", sa.dialects.postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("discipline_id", sa.dialects.postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", membership_status_enum, nullable=False),
        sa.Column("amount_paid", sa.Numeric(12, 2), nullable=False),
        sa.Column("payment_method", sa.String(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(
            ["organization_id"],
            ["organizations.id"],
            name="fk_memberships_organization_id_organizations",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["member_id"],
            ["members.id"],
            name="fk_memberships_member_id_members",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["discipline_id"],
            ["disciplines.id"],
            name="fk_memberships_discipline_id_disciplines",
            ondelete="RESTRICT",
        ),
    )
    op.create_index("ix_memberships_status_end_date", "memberships", ["organization_id", "status", "end_date"])
    op.create_index("ix_memberships_member_discipline", "memberships", ["member_id", "discipline_id"])

    op.create_table(
        "attendances",
        sa.Column("id", sa.dialects.postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("organization_id", sa.dialects.postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("member_id", sa.dialects.postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("checked_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("checkin_day", sa.Date(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(
            ["organization_id"],
            ["organizations.id"],
            name="fk_attendances_organization_id_organizations",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["member_id"],
            ["members.id"],
            name="fk_attendances_member_id_members",
            ondelete="CASCADE",
        ),
        sa.UniqueConstraint("organization_id", "member_id", "checkin_day", name="uq_attendances_member_day"),
    )

    op.create_table(
        "notification_attempts",
        sa.Column("id", sa.dialects.postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("organization_id", sa.dialects.postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("member_id", sa.dialects.postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("type", notification_type_enum, nullable=False),
        sa.Column("channel", notification_channel_enum, nullable=False),
        sa.Column("status", notification_status_enum, nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("dedup_day", sa.Date(), nullable=True),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("error", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(
            ["organization_id"],
            ["organizations.id"],
            name="fk_notification_attempts_organization_id_organizations",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["member_id"],
            ["members.id"],
            name="fk_notification_attempts_member_id_members",
            ondelete="CASCADE",
        ),
    )
    op.create_index("ix_notification_attempts_organization_id", "notification_attempts", ["organization_id"])
    op.create_index(
        "ix_notification_attempts_member_type_sent_at",
        "notification_attempts",
        ["member_id", "type", "sent_at"],
    )
    op.create_index(
        "uq_notification_attempts_dedup",
        "notification_attempts",
        ["member_id", "type", "dedup_day"],
        unique=True,
    )


def downgrade() -> None:
    op.drop_index("uq_notification_attempts_dedup", table_name="notification_attempts")
    op.drop_index("ix_notification_attempts_member_type_sent_at", table_name="notification_attempts")
    op.drop_index("ix_notification_attempts_organization_id", table_name="notification_attempts")
    op.drop_table("notification_attempts")
    op.drop_table("attendances")
    op.drop_index("ix_memberships_member_discipline", table_name="memberships")
    op.drop_index("ix_memberships_status_end_date", table_name="memberships")
    op.drop_table("memberships")
    op.drop_index("ix_disciplines_organization_id", table_name="disciplines")
    op.drop_table("disciplines")
    op.drop_index("ix_members_organization_id", table_name="members")
    op.drop_table("members")
    op.drop_table("organizations")

    bind = op.get_bind()
    for enum_type in (
        notification_status_enum,
        notification_channel_enum,
        notification_type_enum,
        membership_status_enum,
    ):
        enum_type.drop(bind, checkfirst=True)

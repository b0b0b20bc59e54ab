"""create crm tables

Revision ID: 202610190001
Revises:
Create Date: 2026-10-19 00:01:00
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


revision: str = "202610190001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "crm_user",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("username", sa.String(length=128), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("password_hash", sa.String(length=128), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("username"),
    )

    op.create_table(
        "crm_user_session",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["crm_user.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_crm_user_session_user_id", "crm_user_session", ["user_id"], unique=False)

    op.create_table(
        "crm_partner",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("phone", sa.Text(), nullable=True),
        sa.Column("address", sa.JSON(), nullable=True),
        sa.Column("responsible_persons", sa.JSON(), nullable=False),
        sa.Column("contract", sa.JSON(), nullable=True),
        sa.Column("indicated_clients_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_volume", sa.Numeric(18, 2), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "crm_client",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("type", sa.String(length=8), nullable=False),
        sa.Column("phone", sa.Text(), nullable=True),
        sa.Column("cpf", sa.String(length=32), nullable=True),
        sa.Column("cnpj", sa.String(length=32), nullable=True),
        sa.Column("sector", sa.Text(), nullable=True),
        sa.Column("citizenship", sa.Text(), nullable=True),
        sa.Column("service_preferences", sa.JSON(), nullable=False),
        sa.Column("advisors", sa.JSON(), nullable=False),
        sa.Column("compliance_status", sa.String(length=32), nullable=False, server_default="Pendente"),
        sa.Column("wallet_value", sa.Numeric(18, 2), nullable=True),
        sa.Column("financial_profile", sa.JSON(), nullable=True),
        sa.Column("address", sa.JSON(), nullable=True),
        sa.Column("contact_persons", sa.JSON(), nullable=False),
        sa.Column("partner_data", sa.JSON(), nullable=False),
        sa.Column("interaction_history", sa.JSON(), nullable=False),
        sa.Column("reminders", sa.JSON(), nullable=False),
        sa.Column("partner_id", sa.Uuid(), nullable=True),
        sa.Column("last_activity", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["partner_id"], ["crm_partner.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "crm_opportunity",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("client_id", sa.Uuid(), nullable=False),
        sa.Column("source", sa.Text(), nullable=True),
        sa.Column("estimated_value", sa.Numeric(18, 2), nullable=True),
        sa.Column("stage", sa.String(length=32), nullable=False),
        sa.Column("probability", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("expected_close_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("responsible", sa.Text(), nullable=True),
        sa.Column("next_action", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["client_id"], ["crm_client.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_crm_opportunity_stage", "crm_opportunity", ["stage"], unique=False)

    op.create_table(
        "crm_activity",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("client_id", sa.Uuid(), nullable=True),
        sa.Column("opportunity_id", sa.Uuid(), nullable=True),
        sa.Column("assessor", sa.Text(), nullable=True),
        sa.Column("guests", sa.JSON(), nullable=False),
        sa.Column("location", sa.Text(), nullable=True),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("priority", sa.String(length=16), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["client_id"], ["crm_client.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["opportunity_id"], ["crm_opportunity.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_crm_activity_due_date", "crm_activity", ["due_date"], unique=False)

    op.create_table(
        "crm_transaction",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("client_id", sa.Uuid(), nullable=False),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("product", sa.JSON(), nullable=True),
        sa.Column("value", sa.Numeric(18, 2), nullable=True),
        sa.Column("unit_value", sa.Numeric(18, 6), nullable=True),
        sa.Column("quantity", sa.Numeric(18, 6), nullable=True),
        sa.Column("reservation_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("liquidation_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("institution", sa.Text(), nullable=True),
        sa.Column("doc_ref", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["client_id"], ["crm_client.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_crm_transaction_timestamp", "crm_transaction", ["timestamp"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_crm_transaction_timestamp", table_name="crm_transaction")
    op.drop_table("crm_transaction")
    op.drop_index("ix_crm_activity_due_date", table_name="crm_activity")
    op.drop_table("crm_activity")
    op.drop_index("ix_crm_opportunity_stage", table_name="crm_opportunity")
    op.drop_table("crm_opportunity")
    op.drop_table("crm_client")
    op.drop_table("crm_partner")
    op.drop_index("ix_crm_user_session_user_id", table_name="crm_user_session")
    op.drop_table("crm_user_session")
    op.drop_table("crm_user")

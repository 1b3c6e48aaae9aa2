"""Initial database schema

Revision ID: 000_initial_schema
Revises:
Create Date: 2026-10-18

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "000_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create commission rules, sale records and audit log tables."""

    # Commission rules table
    op.create_table(
        "commission_rules",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "scope",
            sa.Enum("specific", "supplier", "category", "global", name="scopetier"),
            nullable=False,
        ),
        sa.Column("scope_key", sa.String(64), nullable=False),
        sa.Column("category_id", sa.Integer(), nullable=True),
        sa.Column("supplier_id", sa.Integer(), nullable=True),
        sa.Column("product_id", sa.Integer(), nullable=True),
        sa.Column("rate", sa.Numeric(5, 2), nullable=False),
        sa.Column("active", sa.Boolean(), server_default="true", nullable=False),
        sa.Column("valid_until", sa.Date(), nullable=True),
        sa.Column("remarks", sa.String(255), nullable=True),
        sa.Column("created_by", sa.Integer(), nullable=True),
        sa.Column("deactivated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("rate > 0", name="ck_commission_rules_rate_positive"),
    )
    op.create_index("ix_commission_rules_scope", "commission_rules", ["scope"])
    op.create_index("ix_commission_rules_scope_key", "commission_rules", ["scope_key"])
    op.create_index("ix_commission_rules_category_id", "commission_rules", ["category_id"])
    op.create_index("ix_commission_rules_supplier_id", "commission_rules", ["supplier_id"])
    op.create_index("ix_commission_rules_product_id", "commission_rules", ["product_id"])
    # One active rule per scope
    op.create_index(
        "uq_commission_rules_active_scope",
        "commission_rules",
        ["scope_key"],
        unique=True,
        postgresql_where=sa.text("active"),
    )

    # Sale records table (append-only)
    op.create_table(
        "sale_records",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("supplier_id", sa.Integer(), nullable=False),
        sa.Column("category_id", sa.Integer(), nullable=False),
        sa.Column("buyer_id", sa.Integer(), nullable=True),
        sa.Column("quantity", sa.Integer(), server_default="1", nullable=False),
        sa.Column("gross_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("resolved_rate", sa.Numeric(5, 2), nullable=False),
        sa.Column("commission_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("net_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("resolved_scope", sa.String(20), nullable=False),
        sa.Column("rule_id", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(20), server_default="completed", nullable=False),
        sa.Column("settled_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint(
            "commission_amount + net_amount = gross_amount",
            name="ck_sale_records_split",
        ),
    )
    op.create_index("ix_sale_records_product_id", "sale_records", ["product_id"])
    op.create_index("ix_sale_records_supplier_id", "sale_records", ["supplier_id"])
    op.create_index("ix_sale_records_settled_at", "sale_records", ["settled_at"])

    # Audit logs table
    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("actor_id", sa.Integer(), nullable=True),
        sa.Column("actor_role", sa.String(20), nullable=True),
        sa.Column(
            "action",
            sa.Enum(
                "create_rule",
                "update_rule",
                "supersede_rule",
                "delete_rule",
                "settle_sale",
                name="auditaction",
            ),
            nullable=False,
        ),
        sa.Column("target_type", sa.String(50), nullable=True),
        sa.Column("target_id", sa.Integer(), nullable=True),
        sa.Column("action_metadata", sa.JSON(), nullable=True),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_audit_logs_actor_id", "audit_logs", ["actor_id"])
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_created_at", "audit_logs", ["created_at"])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table("audit_logs")
    op.drop_table("sale_records")
    op.drop_table("commission_rules")
    op.execute("DROP TYPE IF EXISTS auditaction")
    op.execute("DROP TYPE IF EXISTS scopetier")

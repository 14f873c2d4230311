"""Initial schema: rows, controls, control links and pending changes.

Revision ID: 001
Revises: None
Create Date: 2026-10-18
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "register_rows",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("risk_id", sa.String(64), nullable=False),
        sa.Column("process_id", sa.String(64), nullable=False),
        sa.Column("risk_name", sa.String(255), nullable=True),
        sa.Column("process_name", sa.String(255), nullable=True),
        sa.Column("gross_probability", sa.Integer, nullable=True),
        sa.Column("gross_impact", sa.Integer, nullable=True),
        sa.Column("risk_appetite", sa.Integer, nullable=True),
        sa.UniqueConstraint("risk_id", "process_id", name="uq_register_rows_pair"),
    )

    op.create_table(
        "register_controls",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("control_type", sa.String(20), nullable=True),
        sa.Column("net_probability", sa.Integer, nullable=True),
        sa.Column("net_impact", sa.Integer, nullable=True),
        sa.Column("assigned_tester_id", sa.String(64), nullable=True),
        sa.Column("test_frequency", sa.String(20), nullable=True),
        sa.Column("test_procedure", sa.Text, nullable=True),
        sa.Column("comment", sa.Text, nullable=True),
        sa.Column(
            "owner_row_id",
            sa.String(36),
            sa.ForeignKey("register_rows.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("position", sa.Integer, nullable=True),
    )
    op.create_index("idx_register_controls_owner", "register_controls", ["owner_row_id"])

    op.create_table(
        "register_control_links",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "row_id",
            sa.String(36),
            sa.ForeignKey("register_rows.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "control_id",
            sa.String(36),
            sa.ForeignKey("register_controls.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("net_probability", sa.Integer, nullable=True),
        sa.Column("net_impact", sa.Integer, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("row_id", "control_id", name="uq_register_control_links_pair"),
    )
    op.create_index("idx_register_control_links_control", "register_control_links", ["control_id"])

    op.create_table(
        "register_pending_changes",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("entity_type", sa.String(20), nullable=False),
        sa.Column("entity_id", sa.String(36), nullable=False),
        sa.Column("entity_name", sa.String(255), nullable=False),
        sa.Column("change_type", sa.String(20), nullable=False),
        sa.Column("proposed_values", sa.JSON, nullable=False),
        sa.Column("current_values", sa.JSON, nullable=False),
        sa.Column("submitted_by", sa.String(64), nullable=False),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(20), nullable=True),
        sa.Column("resolved_by", sa.String(64), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.Text, nullable=True),
        sa.CheckConstraint("status IN ('pending', 'approved', 'rejected')"),
        sa.CheckConstraint("change_type IN ('update')"),
    )
    op.create_index("idx_register_pending_changes_status", "register_pending_changes", ["status"])
    op.create_index("idx_register_pending_changes_entity", "register_pending_changes", ["entity_id"])


def downgrade() -> None:
    op.drop_index("idx_register_pending_changes_entity", table_name="register_pending_changes")
    op.drop_index("idx_register_pending_changes_status", table_name="register_pending_changes")
    op.drop_table("register_pending_changes")
    op.drop_index("idx_register_control_links_control", table_name="register_control_links")
    op.drop_table("register_control_links")
    op.drop_index("idx_register_controls_owner", table_name="register_controls")
    op.drop_table("register_controls")
    op.drop_table("register_rows")

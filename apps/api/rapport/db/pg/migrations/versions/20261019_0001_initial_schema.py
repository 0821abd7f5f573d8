"""initial schema

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "contacts",
        sa.Column("contact_id", sa.String(length=36), nullable=False),
        sa.Column("owner_user_id", sa.String(length=64), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("company", sa.String(length=255), nullable=True),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("relationship_strength", sa.String(length=16), nullable=False),
        sa.Column("last_contacted", sa.DateTime(timezone=True), nullable=True),
        sa.Column("recent_interaction_ids_json", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
        sa.PrimaryKeyConstraint("contact_id"),
    )
    op.create_index("ix_contacts_owner", "contacts", ["owner_user_id"])

    op.create_table(
        "interactions",
        sa.Column("interaction_id", sa.String(length=36), nullable=False),
        sa.Column("contact_id", sa.String(length=36), nullable=False),
        sa.Column("owner_user_id", sa.String(length=64), nullable=False),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("outcome", sa.String(length=32), nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=True),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("follow_up_required", sa.Boolean(), nullable=False),
        sa.Column("follow_up_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("follow_up_notes", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["contact_id"], ["contacts.contact_id"]),
        sa.PrimaryKeyConstraint("interaction_id"),
    )
    op.create_index("ix_interactions_owner_occurred", "interactions", ["owner_user_id", "occurred_at"])
    op.create_index("ix_interactions_contact", "interactions", ["contact_id"])

    op.create_table(
        "messages",
        sa.Column("message_id", sa.String(length=36), nullable=False),
        sa.Column("contact_id", sa.String(length=36), nullable=False),
        sa.Column("owner_user_id", sa.String(length=64), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("subject", sa.String(length=200), nullable=True),
        sa.Column("type", sa.String(length=16), nullable=False),
        sa.Column("priority", sa.String(length=16), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("reply_content", sa.String(length=1000), nullable=True),
        sa.Column("replied_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("fire_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["contact_id"], ["contacts.contact_id"]),
        sa.PrimaryKeyConstraint("message_id"),
    )
    op.create_index("ix_messages_owner_status", "messages", ["owner_user_id", "status"])
    op.create_index("ix_messages_status_fire_at", "messages", ["status", "fire_at"])

    op.create_table(
        "analytics_snapshots",
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("day", sa.Date(), nullable=False),
        sa.Column("contact_growth_json", sa.JSON(), nullable=False),
        sa.Column("interaction_metrics_json", sa.JSON(), nullable=False),
        sa.Column("relationship_distribution_json", sa.JSON(), nullable=False),
        sa.Column("engagement_metrics_json", sa.JSON(), nullable=False),
        sa.Column("growth_trends_json", sa.JSON(), nullable=False),
        sa.Column("follow_up_metrics_json", sa.JSON(), nullable=False),
        sa.Column("ai_insights_json", sa.JSON(), nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("user_id", "day"),
    )


def downgrade() -> None:
    op.drop_table("analytics_snapshots")
    op.drop_index("ix_messages_status_fire_at", table_name="messages")
    op.drop_index("ix_messages_owner_status", table_name="messages")
    op.drop_table("messages")
    op.drop_index("ix_interactions_contact", table_name="interactions")
    op.drop_index("ix_interactions_owner_occurred", table_name="interactions")
    op.drop_table("interactions")
    op.drop_index("ix_contacts_owner", table_name="contacts")
    op.drop_table("contacts")

"""Create notifications and web push subscription tables.

Revision ID: a1c3e5f7b9d2
Revises:
Create Date: 2026-10-18 08:00:00.000000
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "a1c3e5f7b9d2"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
  """Upgrade schema."""
  op.create_table(
    "notifications",
    sa.Column("id", sa.Uuid(), nullable=False),
    sa.Column("user_id", sa.Integer(), nullable=False),
    sa.Column("title", sa.String(length=255), nullable=False),
    sa.Column("message", sa.Text(), nullable=False),
    sa.Column("type", sa.String(length=64), nullable=False),
    sa.Column("is_read", sa.Boolean(), server_default=sa.text("false"), nullable=False),
    sa.Column("metadata", postgresql.JSONB(astext_type=sa.Text()), server_default=sa.text("'{}'::jsonb"), nullable=False),
    sa.Column("dedupe_key", sa.String(length=128), nullable=True),
    sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    sa.PrimaryKeyConstraint("id"),
    sa.UniqueConstraint("user_id", "type", "dedupe_key", name="ux_notifications_user_type_dedupe"),
  )
  op.create_index(op.f("ix_notifications_user_id"), "notifications", ["user_id"], unique=False)
  op.create_index(op.f("ix_notifications_type"), "notifications", ["type"], unique=False)
  op.create_index(op.f("ix_notifications_expires_at"), "notifications", ["expires_at"], unique=False)
  op.create_index("ix_notifications_user_unread", "notifications", ["user_id", "is_read"], unique=False)

  op.create_table(
    "web_push_subscriptions",
    sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
    sa.Column("user_id", sa.Integer(), nullable=False),
    sa.Column("endpoint", sa.Text(), nullable=False),
    sa.Column("p256dh", sa.Text(), nullable=False),
    sa.Column("auth", sa.Text(), nullable=False),
    sa.Column("expiration_time", sa.DateTime(timezone=True), nullable=True),
    sa.Column("user_agent", sa.Text(), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    sa.PrimaryKeyConstraint("id"),
  )
  op.create_index(op.f("ix_web_push_subscriptions_user_id"), "web_push_subscriptions", ["user_id"], unique=False)
  op.create_index("ux_web_push_subscriptions_endpoint", "web_push_subscriptions", ["endpoint"], unique=True)


def downgrade() -> None:
  """Downgrade schema."""
  op.drop_index("ux_web_push_subscriptions_endpoint", table_name="web_push_subscriptions")
  op.drop_index(op.f("ix_web_push_subscriptions_user_id"), table_name="web_push_subscriptions")
  op.drop_table("web_push_subscriptions")
  op.drop_index("ix_notifications_user_unread", table_name="notifications")
  op.drop_index(op.f("ix_notifications_expires_at"), table_name="notifications")
  op.drop_index(op.f("ix_notifications_type"), table_name="notifications")
  op.drop_index(op.f("ix_notifications_user_id"), table_name="notifications")
  op.drop_table("notifications")

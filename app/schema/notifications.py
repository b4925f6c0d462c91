"""SQLAlchemy model for persisted user notifications."""

from __future__ import annotations

import datetime
import uuid
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint, Uuid, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base

# JSONB on Postgres so metadata keys can be matched server-side; plain JSON elsewhere.
MetadataDocument = JSON().with_variant(JSONB(), "postgresql")


def _utcnow() -> datetime.datetime:
  return datetime.datetime.now(datetime.UTC)


class Notification(Base):
  """A single notification addressed to one user.

  `metadata` is an open document so new event kinds need no migration. `dedupe_key` is only set for
  derived events that must exist at most once per `(user_id, type)`; NULL keys never collide.
  """

  __tablename__ = "notifications"
  __table_args__ = (
    UniqueConstraint("user_id", "type", "dedupe_key", name="ux_notifications_user_type_dedupe"),
    Index("ix_notifications_user_unread", "user_id", "is_read"),
  )

  id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
  user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
  title: Mapped[str] = mapped_column(String(255), nullable=False)
  message: Mapped[str] = mapped_column(Text, nullable=False)
  type: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
  is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
  metadata_json: Mapped[dict[str, Any]] = mapped_column("metadata", MetadataDocument, nullable=False, default=dict)
  dedupe_key: Mapped[str | None] = mapped_column(String(128), nullable=True)
  expires_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now())

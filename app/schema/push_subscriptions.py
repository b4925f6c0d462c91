"""SQLAlchemy model for browser Web Push registrations."""

from __future__ import annotations

import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class WebPushSubscription(Base):
  """Persist a single browser push endpoint for a user; one user may own many."""

  __tablename__ = "web_push_subscriptions"
  __table_args__ = (Index("ux_web_push_subscriptions_endpoint", "endpoint", unique=True),)

  id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
  user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
  endpoint: Mapped[str] = mapped_column(Text, nullable=False)
  p256dh: Mapped[str] = mapped_column(Text, nullable=False)
  auth: Mapped[str] = mapped_column(Text, nullable=False)
  expiration_time: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

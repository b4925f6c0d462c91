"""Read-only mappings of the account tables owned by the core platform.

Only the columns the notification engine reads are mapped; migrations for these tables live with the
platform, not here.
"""

from __future__ import annotations

import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base


class User(Base):
  __tablename__ = "users"

  id: Mapped[int] = mapped_column(Integer, primary_key=True)
  email: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
  full_name: Mapped[str | None] = mapped_column("name", String, nullable=True)


class Plan(Base):
  __tablename__ = "plans"

  id: Mapped[int] = mapped_column(Integer, primary_key=True)
  name: Mapped[str] = mapped_column(String, nullable=False)


class Subscription(Base):
  __tablename__ = "subscriptions"

  id: Mapped[int] = mapped_column(Integer, primary_key=True)
  user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), index=True, nullable=False)
  plan_id: Mapped[int] = mapped_column(Integer, ForeignKey("plans.id"), nullable=False)
  start_date: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  end_date: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), index=True, nullable=False)
  status: Mapped[str] = mapped_column(String(32), nullable=False, index=True)

  plan: Mapped[Plan] = relationship(lazy="raise")

"""Read-only lookups against the account tables owned by the core platform."""

from __future__ import annotations

import datetime
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import joinedload

from app.core.database import get_session_factory
from app.schema.sql import Plan, Subscription, User

ACTIVE_STATUS = "active"


@dataclass(frozen=True)
class UserRecord:
  id: int
  email: str
  full_name: str | None


@dataclass(frozen=True)
class PlanRecord:
  id: int
  name: str


@dataclass(frozen=True)
class ExpiringSubscription:
  """An active subscription together with the plan it renews."""

  id: int
  user_id: int
  end_date: datetime.datetime
  plan: PlanRecord | None


class _DirectoryBase:
  def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
    self._session_factory = session_factory

  def _sessions(self) -> async_sessionmaker[AsyncSession]:
    session_factory = self._session_factory or get_session_factory()
    if session_factory is None:
      raise RuntimeError("Database connection is not configured (VCARD_PG_DSN is missing).")
    return session_factory


class UserDirectory(_DirectoryBase):
  async def find_by_id(self, user_id: int) -> UserRecord | None:
    async with self._sessions()() as session:
      user = await session.get(User, user_id)
      if user is None:
        return None
      return UserRecord(id=user.id, email=user.email, full_name=user.full_name)


class SubscriptionDirectory(_DirectoryBase):
  async def list_active_ending_between(self, start: datetime.datetime, end: datetime.datetime) -> list[ExpiringSubscription]:
    """Return active subscriptions whose `end_date` falls in `[start, end]`, oldest first."""
    async with self._sessions()() as session:
      stmt = (
        select(Subscription)
        .options(joinedload(Subscription.plan))
        .where(Subscription.status == ACTIVE_STATUS, Subscription.end_date >= start, Subscription.end_date <= end)
        .order_by(Subscription.end_date, Subscription.id)
      )
      rows = (await session.execute(stmt)).scalars().all()
      return [
        ExpiringSubscription(id=row.id, user_id=row.user_id, end_date=row.end_date, plan=PlanRecord(id=row.plan.id, name=row.plan.name) if row.plan is not None else None) for row in rows
      ]

  async def find_plan(self, plan_id: int) -> PlanRecord | None:
    async with self._sessions()() as session:
      plan = await session.get(Plan, plan_id)
      if plan is None:
        return None
      return PlanRecord(id=plan.id, name=plan.name)

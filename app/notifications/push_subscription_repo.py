"""Repository helpers for Web Push registration persistence."""

from __future__ import annotations

import datetime
from dataclasses import dataclass

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.database import get_session_factory
from app.schema.push_subscriptions import WebPushSubscription


@dataclass(frozen=True)
class PushSubscriptionEntry:
  """Capture a single web push registration; `id` is None until stored."""

  user_id: int
  endpoint: str
  p256dh: str
  auth: str
  expiration_time: datetime.datetime | None = None
  user_agent: str | None = None
  id: int | None = None


class PushSubscriptionRepository:
  """Persist and manage push registrations."""

  def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
    self._session_factory = session_factory

  def _sessions(self) -> async_sessionmaker[AsyncSession]:
    session_factory = self._session_factory or get_session_factory()
    if session_factory is None:
      raise RuntimeError("Database connection is not configured (VCARD_PG_DSN is missing).")
    return session_factory

  async def add(self, entry: PushSubscriptionEntry) -> None:
    """Insert or update a registration keyed by endpoint."""
    async with self._sessions()() as session:
      await self._upsert_with_session(session=session, entry=entry)

  async def _upsert_with_session(self, *, session: AsyncSession, entry: PushSubscriptionEntry) -> None:
    # Upsert by endpoint so a browser refresh rotates keys cleanly.
    insert = sqlite_insert if session.get_bind().dialect.name == "sqlite" else pg_insert
    values = {"user_id": entry.user_id, "endpoint": entry.endpoint, "p256dh": entry.p256dh, "auth": entry.auth, "expiration_time": entry.expiration_time, "user_agent": entry.user_agent}
    stmt = insert(WebPushSubscription).values(**values)
    stmt = stmt.on_conflict_do_update(index_elements=["endpoint"], set_={key: value for key, value in values.items() if key != "endpoint"})
    await session.execute(stmt)
    await session.commit()

  async def list_for_user(self, user_id: int) -> list[PushSubscriptionEntry]:
    """List all push registrations for a user."""
    async with self._sessions()() as session:
      stmt = select(WebPushSubscription).where(WebPushSubscription.user_id == user_id).order_by(WebPushSubscription.id)
      rows = (await session.execute(stmt)).scalars().all()
      return [
        PushSubscriptionEntry(id=row.id, user_id=row.user_id, endpoint=row.endpoint, p256dh=row.p256dh, auth=row.auth, expiration_time=row.expiration_time, user_agent=row.user_agent) for row in rows
      ]

  async def remove_by_ids(self, ids: list[int]) -> int:
    """Delete registrations by id in one statement and return how many were removed."""
    if not ids:
      return 0
    async with self._sessions()() as session:
      result = await session.execute(delete(WebPushSubscription).where(WebPushSubscription.id.in_(ids)))
      await session.commit()
      return int(result.rowcount or 0)

  async def delete_for_user_endpoint(self, *, user_id: int, endpoint: str) -> int:
    """Delete a registration for a specific user and endpoint."""
    async with self._sessions()() as session:
      # Constrain delete by user ownership so users cannot remove other devices.
      stmt = delete(WebPushSubscription).where(WebPushSubscription.user_id == user_id, WebPushSubscription.endpoint == endpoint)
      result = await session.execute(stmt)
      await session.commit()
      return int(result.rowcount or 0)

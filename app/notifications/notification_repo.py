"""Repository helpers for persisted notifications."""

from __future__ import annotations

import datetime
import logging
import uuid
from typing import Any

from sqlalchemy import ColumnElement, delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.database import get_session_factory
from app.notifications.contracts import NotificationEntry
from app.schema.notifications import Notification

logger = logging.getLogger(__name__)


def _metadata_equals(key: str, value: Any) -> ColumnElement[bool]:
  """Build a dialect-neutral equality test against one metadata key."""
  element = Notification.metadata_json[key]
  # bool must be checked before int because bool is an int subclass.
  if isinstance(value, bool):
    return element.as_boolean() == value
  if isinstance(value, int):
    return element.as_integer() == value
  if isinstance(value, float):
    return element.as_float() == value
  return element.as_string() == str(value)


class NotificationRepository:
  """Persist and query notifications in the relational store."""

  def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
    self._session_factory = session_factory

  def _sessions(self) -> async_sessionmaker[AsyncSession]:
    session_factory = self._session_factory or get_session_factory()
    if session_factory is None:
      raise RuntimeError("Database connection is not configured (VCARD_PG_DSN is missing).")
    return session_factory

  async def create(self, entry: NotificationEntry) -> Notification:
    """Insert a notification unconditionally and return the stored row."""
    async with self._sessions()() as session:
      return await self._create_with_session(session=session, entry=entry)

  async def _create_with_session(self, *, session: AsyncSession, entry: NotificationEntry) -> Notification:
    record = Notification(
      user_id=entry.user_id, title=entry.title, message=entry.message, type=entry.type, is_read=False, metadata_json=dict(entry.metadata), dedupe_key=entry.dedupe_key, expires_at=entry.expires_at
    )
    session.add(record)
    await session.commit()
    return record

  async def create_if_absent(self, entry: NotificationEntry) -> Notification | None:
    """Insert unless a row with the same `(user_id, type, dedupe_key)` exists; return None on conflict."""
    if entry.dedupe_key is None:
      raise ValueError("create_if_absent requires a dedupe_key")
    async with self._sessions()() as session:
      try:
        return await self._create_with_session(session=session, entry=entry)
      except IntegrityError:
        await session.rollback()
        # Only a row holding the same dedupe key is a collision; other violations (unknown user, nulls) propagate.
        stmt = select(Notification.id).where(Notification.user_id == entry.user_id, Notification.type == entry.type, Notification.dedupe_key == entry.dedupe_key)
        if (await session.execute(stmt.limit(1))).first() is None:
          raise
        logger.debug("Notification already present user_id=%s type=%s dedupe_key=%s", entry.user_id, entry.type, entry.dedupe_key)
        return None

  async def find_existing(self, *, user_id: int, notification_type: str, metadata_filter: dict[str, Any]) -> Notification | None:
    """Return one notification matching the user, type and every metadata key given."""
    async with self._sessions()() as session:
      stmt = select(Notification).where(Notification.user_id == user_id, Notification.type == notification_type)
      for key, value in metadata_filter.items():
        stmt = stmt.where(_metadata_equals(key, value))
      result = await session.execute(stmt.limit(1))
      return result.scalars().first()

  async def get(self, notification_id: uuid.UUID) -> Notification | None:
    async with self._sessions()() as session:
      return await session.get(Notification, notification_id)

  async def mark_read(self, notification_id: uuid.UUID, *, user_id: int | None = None) -> Notification | None:
    """Mark one notification read; ownership is enforced when `user_id` is given."""
    async with self._sessions()() as session:
      stmt = select(Notification).where(Notification.id == notification_id)
      if user_id is not None:
        stmt = stmt.where(Notification.user_id == user_id)
      record = (await session.execute(stmt)).scalars().first()
      if record is None:
        return None
      record.is_read = True
      await session.commit()
      return record

  async def mark_all_read(self, user_id: int) -> int:
    """Mark every unread notification of a user read and return how many changed."""
    async with self._sessions()() as session:
      stmt = update(Notification).where(Notification.user_id == user_id, Notification.is_read.is_(False)).values(is_read=True)
      result = await session.execute(stmt)
      await session.commit()
      return int(result.rowcount or 0)

  async def delete(self, notification_id: uuid.UUID, *, user_id: int) -> bool:
    """Delete a notification owned by the user; False when nothing matched."""
    async with self._sessions()() as session:
      stmt = delete(Notification).where(Notification.id == notification_id, Notification.user_id == user_id)
      result = await session.execute(stmt)
      await session.commit()
      return bool(result.rowcount)

  async def delete_expired(self, now: datetime.datetime | None = None) -> int:
    """Delete every notification whose `expires_at` has passed; rows without expiry are kept."""
    cutoff = now or datetime.datetime.now(datetime.UTC)
    async with self._sessions()() as session:
      stmt = delete(Notification).where(Notification.expires_at.is_not(None), Notification.expires_at < cutoff)
      result = await session.execute(stmt)
      await session.commit()
      return int(result.rowcount or 0)

  async def list_for_user(self, user_id: int, *, limit: int = 10, offset: int = 0, unread_only: bool = False, notification_type: str | None = None) -> tuple[list[Notification], int]:
    """Return a newest-first page of notifications and the user's total unread count."""
    async with self._sessions()() as session:
      stmt = select(Notification).where(Notification.user_id == user_id)
      if unread_only:
        stmt = stmt.where(Notification.is_read.is_(False))
      if notification_type:
        stmt = stmt.where(Notification.type == notification_type)
      stmt = stmt.order_by(Notification.created_at.desc()).limit(limit).offset(offset)
      items = list((await session.execute(stmt)).scalars().all())

      # The unread badge ignores the page filters.
      unread_stmt = select(func.count()).select_from(Notification).where(Notification.user_id == user_id, Notification.is_read.is_(False))
      total_unread = int((await session.execute(unread_stmt)).scalar_one())
      return items, total_unread

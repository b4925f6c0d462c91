from __future__ import annotations

import asyncio
import datetime

import pytest
from sqlalchemy.exc import IntegrityError

from app.notifications.contracts import NotificationEntry
from app.notifications.notification_repo import NotificationRepository

NOW = datetime.datetime(2026, 5, 10, 9, 30, tzinfo=datetime.UTC)


def _entry(user_id: int = 7, *, type: str = "welcome", metadata: dict | None = None, expires_at: datetime.datetime | None = None, dedupe_key: str | None = None) -> NotificationEntry:
  return NotificationEntry(user_id=user_id, title="Title", message="Message", type=type, metadata=metadata or {}, expires_at=expires_at, dedupe_key=dedupe_key)


@pytest.mark.anyio
async def test_delete_expired_keeps_future_and_unbounded_rows(session_factory):
  repo = NotificationRepository(session_factory)
  expired = await repo.create(_entry(expires_at=NOW - datetime.timedelta(seconds=1)))
  future = await repo.create(_entry(expires_at=NOW + datetime.timedelta(days=1)))
  forever = await repo.create(_entry(expires_at=None))

  assert await repo.delete_expired(NOW) == 1

  assert await repo.get(expired.id) is None
  assert await repo.get(future.id) is not None
  assert await repo.get(forever.id) is not None


@pytest.mark.anyio
async def test_create_if_absent_returns_none_on_duplicate_key(session_factory):
  repo = NotificationRepository(session_factory)
  entry = _entry(type="subscription_expiration", metadata={"subscription_id": 11, "days_left": 3}, dedupe_key="11:3")

  first = await repo.create_if_absent(entry)
  second = await repo.create_if_absent(entry)

  assert first is not None
  assert second is None
  _, total_unread = await repo.list_for_user(7)
  assert total_unread == 1


@pytest.mark.anyio
async def test_concurrent_conditional_inserts_store_one_row(session_factory):
  repo = NotificationRepository(session_factory)
  entry = _entry(type="subscription_expiration", metadata={"subscription_id": 11, "days_left": 1}, dedupe_key="11:1")

  results = await asyncio.gather(repo.create_if_absent(entry), repo.create_if_absent(entry))

  assert sum(result is not None for result in results) == 1


@pytest.mark.anyio
async def test_create_if_absent_requires_a_key(session_factory):
  with pytest.raises(ValueError):
    await NotificationRepository(session_factory).create_if_absent(_entry())


@pytest.mark.anyio
async def test_plain_create_never_collides(session_factory):
  repo = NotificationRepository(session_factory)
  await repo.create(_entry())
  await repo.create(_entry())

  items, _ = await repo.list_for_user(7)
  assert len(items) == 2


@pytest.mark.anyio
async def test_find_existing_matches_every_metadata_key(session_factory):
  repo = NotificationRepository(session_factory)
  await repo.create(_entry(type="subscription_expiration", metadata={"event": "subscription_expiration", "subscription_id": 11, "days_left": 3}))

  hit = await repo.find_existing(user_id=7, notification_type="subscription_expiration", metadata_filter={"subscription_id": 11, "days_left": 3})
  other_offset = await repo.find_existing(user_id=7, notification_type="subscription_expiration", metadata_filter={"subscription_id": 11, "days_left": 5})
  other_user = await repo.find_existing(user_id=8, notification_type="subscription_expiration", metadata_filter={"subscription_id": 11, "days_left": 3})
  by_string = await repo.find_existing(user_id=7, notification_type="subscription_expiration", metadata_filter={"event": "subscription_expiration"})

  assert hit is not None
  assert other_offset is None
  assert other_user is None
  assert by_string is not None


@pytest.mark.anyio
async def test_list_is_newest_first_with_unfiltered_unread_count(session_factory):
  repo = NotificationRepository(session_factory)
  first = await repo.create(_entry(type="welcome"))
  second = await repo.create(_entry(type="vcard_view"))
  third = await repo.create(_entry(type="vcard_view"))
  await repo.create(_entry(user_id=8))
  await repo.mark_read(first.id)

  items, total_unread = await repo.list_for_user(7, limit=2)
  assert [item.id for item in items] == [third.id, second.id]
  assert total_unread == 2

  unread, _ = await repo.list_for_user(7, unread_only=True)
  assert first.id not in {item.id for item in unread}

  views, total_unread = await repo.list_for_user(7, notification_type="welcome")
  assert [item.id for item in views] == [first.id]
  assert total_unread == 2

  page_two, _ = await repo.list_for_user(7, limit=2, offset=2)
  assert [item.id for item in page_two] == [first.id]


@pytest.mark.anyio
async def test_mutations_respect_ownership(session_factory):
  repo = NotificationRepository(session_factory)
  record = await repo.create(_entry(user_id=7))

  assert await repo.mark_read(record.id, user_id=8) is None
  assert await repo.delete(record.id, user_id=8) is False

  marked = await repo.mark_read(record.id, user_id=7)
  assert marked is not None and marked.is_read is True
  assert await repo.delete(record.id, user_id=7) is True
  assert await repo.get(record.id) is None


@pytest.mark.anyio
async def test_mark_all_read_counts_only_unread(session_factory):
  repo = NotificationRepository(session_factory)
  record = await repo.create(_entry())
  await repo.create(_entry())
  await repo.create(_entry())
  await repo.mark_read(record.id)

  assert await repo.mark_all_read(7) == 2
  _, total_unread = await repo.list_for_user(7)
  assert total_unread == 0


@pytest.mark.anyio
async def test_create_if_absent_reraises_violations_other_than_the_dedupe_key(session_factory):
  repo = NotificationRepository(session_factory)
  invalid = NotificationEntry(user_id=7, title=None, message="Message", type="subscription_expiration", metadata={}, expires_at=None, dedupe_key="11:5")

  with pytest.raises(IntegrityError):
    await repo.create_if_absent(invalid)

  _, total_unread = await repo.list_for_user(7)
  assert total_unread == 0

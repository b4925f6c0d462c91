"""Shared fixtures: a throwaway SQLite store and the in-process engine collaborators."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import app.schema  # noqa: F401  registers every mapped table on Base.metadata
from app.core.database import Base
from app.notifications.live_channel import ChannelRegistry


@pytest.fixture
def anyio_backend():
  # aiosqlite only runs on asyncio.
  return "asyncio"


@pytest.fixture
async def session_factory(tmp_path):
  # A file database lets background tasks open their own connections alongside the test.
  engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'notifications.db'}")
  async with engine.begin() as connection:
    await connection.run_sync(Base.metadata.create_all)
  yield async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)
  await engine.dispose()


@pytest.fixture
def registry():
  return ChannelRegistry()


@pytest.fixture
def push_sender():
  return MagicMock()


@pytest.fixture
def seed(session_factory):
  """Insert users, plans and subscriptions; returns an async callable."""

  async def _seed(*rows) -> None:
    async with session_factory() as session:
      session.add_all(rows)
      await session.commit()

  return _seed

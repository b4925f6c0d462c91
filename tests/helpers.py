"""Row builders for the account tables used across store-backed tests."""

from __future__ import annotations

import datetime

from app.schema.sql import Plan, Subscription, User


def make_user(user_id: int, *, email: str | None = None, full_name: str | None = None) -> User:
  return User(id=user_id, email=email or f"user{user_id}@example.com", full_name=full_name)


def make_plan(plan_id: int, name: str) -> Plan:
  return Plan(id=plan_id, name=name)


def make_subscription(subscription_id: int, *, user_id: int, plan_id: int, end_date: datetime.datetime, status: str = "active") -> Subscription:
  return Subscription(id=subscription_id, user_id=user_id, plan_id=plan_id, start_date=end_date - datetime.timedelta(days=30), end_date=end_date, status=status)

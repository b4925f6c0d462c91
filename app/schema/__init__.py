"""ORM models for notifications, push registrations and the read-only account tables."""

from .notifications import Notification
from .push_subscriptions import WebPushSubscription
from .sql import Plan, Subscription, User

__all__ = ["Notification", "Plan", "Subscription", "User", "WebPushSubscription"]

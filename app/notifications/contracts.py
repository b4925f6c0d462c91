"""Contracts for notification persistence and delivery channels."""

from __future__ import annotations

import datetime
import uuid
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol


@dataclass(frozen=True)
class NotificationEntry:
  """Values for a notification row that has not been written yet."""

  user_id: int
  title: str
  message: str
  type: str
  metadata: dict[str, Any]
  expires_at: datetime.datetime | None
  dedupe_key: str | None = None


@dataclass(frozen=True)
class PushNotification:
  """Represents a push payload addressed to one browser endpoint."""

  endpoint: str
  p256dh: str
  auth: str
  title: str
  body: str
  data: dict[str, str]


@dataclass(frozen=True)
class DeliveryResult:
  """Outcome of one push attempt; `pruned` marks endpoints removed from the registry."""

  endpoint: str
  status: Literal["sent", "failed"]
  error: str | None = None
  pruned: bool = False


DeliveryReport = list[DeliveryResult]


@dataclass(frozen=True)
class NotificationPage:
  """One page of a user's notifications plus their overall unread count."""

  items: list[Any] = field(default_factory=list)
  total_unread: int = 0


class NotificationError(Exception):
  """Base class for all notification engine failures."""


class NotFoundError(NotificationError):
  """Raised when an explicitly targeted record does not exist."""


class UserNotFoundError(NotFoundError):
  """Raised when an event needs user details and the user id does not resolve."""

  def __init__(self, user_id: int) -> None:
    super().__init__(f"User {user_id} not found")
    self.user_id = user_id


class NotificationNotFoundError(NotFoundError):
  """Raised when a notification id does not exist for the requesting user."""

  def __init__(self, notification_id: uuid.UUID) -> None:
    super().__init__(f"Notification {notification_id} not found")
    self.notification_id = notification_id


class NotificationProviderError(NotificationError):
  """Exception raised when a delivery provider returns an error."""


class InvalidPushSubscriptionError(NotificationProviderError):
  """Exception raised when a push endpoint is permanently gone (404/410)."""


class TransientPushProviderError(NotificationProviderError):
  """Exception raised when a push attempt fails for a reason that may not recur."""


class PushSender(Protocol):
  """Delivery contract for sending push notifications."""

  def send(self, notification: PushNotification) -> None:
    """Send a push notification synchronously."""


class LiveSendHandle(Protocol):
  """A single live connection able to receive JSON events."""

  async def send_json(self, data: Any) -> None:
    """Deliver one event to the connected client."""

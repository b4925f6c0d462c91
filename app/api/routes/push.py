"""Routes for Web Push registration lifecycle management."""

from __future__ import annotations

import datetime
import re
import urllib.parse
from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, Depends, Header, Response, status
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_core import PydanticCustomError

from app.api.deps import get_current_user_id, get_notification_service
from app.notifications.push_subscription_repo import PushSubscriptionEntry
from app.notifications.service import NotificationService

_ALLOWED_PUSH_HOSTS = {"fcm.googleapis.com", "updates.push.services.mozilla.com", "push.services.mozilla.com", "web.push.apple.com"}
_ALLOWED_PUSH_HOST_SUFFIXES = (".notify.windows.com",)
_BASE64URL_RE = re.compile(r"^[A-Za-z0-9_-]+={0,2}$")

router = APIRouter()


def _validate_endpoint(value: str) -> str:
  """Restrict endpoints to known push services over HTTPS."""
  normalized = value.strip()
  parsed = urllib.parse.urlparse(normalized)
  if parsed.scheme.lower() != "https":
    raise PydanticCustomError("push_endpoint_https", "endpoint must use https.")

  host = (parsed.hostname or "").lower()
  if host not in _ALLOWED_PUSH_HOSTS and not host.endswith(_ALLOWED_PUSH_HOST_SUFFIXES):
    raise PydanticCustomError("push_endpoint_host", "endpoint host is not allowed.")
  return normalized


class PushSubscriptionKeys(BaseModel):
  """Browser-provided key pair; stored as given and only checked for shape."""

  p256dh: str = Field(min_length=40, max_length=512)
  auth: str = Field(min_length=16, max_length=256)
  model_config = ConfigDict(extra="forbid")

  @field_validator("p256dh", "auth")
  @classmethod
  def validate_base64url(cls, value: str) -> str:
    normalized = value.strip()
    if not _BASE64URL_RE.fullmatch(normalized):
      raise PydanticCustomError("push_key_format", "push keys must be base64url encoded.")
    return normalized


class PushSubscribeRequest(BaseModel):
  """Standard browser `PushSubscription.toJSON()` payload."""

  endpoint: str = Field(min_length=1, max_length=2048)
  expiration_time: int | None = Field(default=None, alias="expirationTime")
  keys: PushSubscriptionKeys
  model_config = ConfigDict(extra="forbid", populate_by_name=True)

  @field_validator("endpoint")
  @classmethod
  def validate_endpoint(cls, value: str) -> str:
    return _validate_endpoint(value)

  def expiration_datetime(self) -> datetime.datetime | None:
    # Browsers report expirationTime as epoch milliseconds.
    if self.expiration_time is None:
      return None
    return datetime.datetime.fromtimestamp(self.expiration_time / 1000, tz=datetime.UTC)


class PushUnsubscribeRequest(BaseModel):
  endpoint: str = Field(min_length=1, max_length=2048)
  model_config = ConfigDict(extra="forbid")

  @field_validator("endpoint")
  @classmethod
  def validate_endpoint(cls, value: str) -> str:
    return _validate_endpoint(value)


@router.post("/subscribe", status_code=status.HTTP_204_NO_CONTENT)
async def subscribe_to_push(
  payload: PushSubscribeRequest,
  user_id: int = Depends(get_current_user_id),  # noqa: B008
  service: NotificationService = Depends(get_notification_service),  # noqa: B008
  user_agent: str | None = Header(default=None),  # noqa: B008
) -> Response:
  """Register (or rebind) the caller's browser endpoint."""
  normalized_user_agent = None
  if user_agent:
    # Clamp user agent size; it is only kept as device context.
    normalized_user_agent = user_agent.strip()[:512] or None

  entry = PushSubscriptionEntry(user_id=user_id, endpoint=payload.endpoint, p256dh=payload.keys.p256dh, auth=payload.keys.auth, expiration_time=payload.expiration_datetime(), user_agent=normalized_user_agent)
  await service.register_push(entry)
  return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/unsubscribe", status_code=status.HTTP_204_NO_CONTENT)
async def unsubscribe_from_push(payload: PushUnsubscribeRequest, user_id: int = Depends(get_current_user_id), service: NotificationService = Depends(get_notification_service)) -> Response:  # noqa: B008
  """Remove one of the caller's endpoints; unknown endpoints are not an error."""
  await service.unregister_push(user_id=user_id, endpoint=payload.endpoint)
  return Response(status_code=status.HTTP_204_NO_CONTENT)


class PushSendRequest(BaseModel):
  """Ad-hoc push message; omitted fields fall back to a generic title and body."""

  title: str | None = Field(default=None, max_length=255)
  body: str | None = Field(default=None, max_length=1024)
  url: str | None = Field(default=None, max_length=2048)
  model_config = ConfigDict(extra="forbid")

  @field_validator("url")
  @classmethod
  def validate_url(cls, value: str | None) -> str | None:
    # Click-through targets stay inside the app.
    if value is not None and (not value.startswith("/") or value.startswith("//")):
      raise PydanticCustomError("push_url_relative", "url must be an app-relative path.")
    return value


@router.post("/send")
async def send_push(payload: PushSendRequest, user_id: int = Depends(get_current_user_id), service: NotificationService = Depends(get_notification_service)) -> dict[str, Any]:  # noqa: B008
  """Push a message to each of the caller's browsers and return one result per endpoint."""
  report = await service.send_push(user_id, title=payload.title, body=payload.body, url=payload.url)
  return {"success": True, "results": [asdict(result) for result in report]}

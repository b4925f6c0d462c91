"""Shared FastAPI dependencies for caller identity and engine wiring."""

from __future__ import annotations

from fastapi import HTTPException, Request, WebSocket, status
from starlette.requests import HTTPConnection

from app.config import get_settings
from app.notifications.factory import build_expiration_scanner, build_notification_service
from app.notifications.live_channel import ChannelRegistry
from app.notifications.maintenance import ExpirationScanner
from app.notifications.service import NotificationService


def _user_id_from_state(state: object) -> int | None:
  raw = getattr(state, "user_id", None)
  if raw is None:
    return None
  try:
    return int(raw)
  except (TypeError, ValueError):
    return None


async def get_current_user_id(request: Request) -> int:
  """Return the caller's user id as set on `request.state` by the host's auth middleware."""
  user_id = _user_id_from_state(request.state)
  if user_id is None:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
  return user_id


async def get_websocket_user_id(websocket: WebSocket) -> int | None:
  """Websocket counterpart of `get_current_user_id`; None lets the route close with a policy code."""
  return _user_id_from_state(websocket.state)


def get_channel_registry(connection: HTTPConnection) -> ChannelRegistry:
  registry = getattr(connection.app.state, "channel_registry", None)
  if registry is None:
    registry = ChannelRegistry()
    connection.app.state.channel_registry = registry
  return registry


def get_notification_service(request: Request) -> NotificationService:
  """Return the service built at startup, building one on first use when lifespan did not run."""
  service = getattr(request.app.state, "notification_service", None)
  if service is None:
    service = build_notification_service(get_settings(), registry=get_channel_registry(request))
    request.app.state.notification_service = service
  return service


def get_expiration_scanner(request: Request) -> ExpirationScanner:
  scanner = getattr(request.app.state, "expiration_scanner", None)
  if scanner is None:
    scanner = build_expiration_scanner(get_settings(), get_notification_service(request))
    request.app.state.expiration_scanner = scanner
  return scanner

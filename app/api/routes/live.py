"""Websocket endpoint carrying live notification events to signed-in browsers."""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status

from app.api.deps import get_channel_registry, get_websocket_user_id
from app.notifications.live_channel import ChannelRegistry

router = APIRouter()
logger = logging.getLogger(__name__)


@router.websocket("/notifications")
async def notifications_socket(websocket: WebSocket, user_id: int | None = Depends(get_websocket_user_id), registry: ChannelRegistry = Depends(get_channel_registry)) -> None:  # noqa: B008
  """Register the socket for its user until the client disconnects; `PING` frames get a `PONG`."""
  if user_id is None:
    await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
    return

  await websocket.accept()
  await registry.connect(user_id, websocket)
  try:
    while True:
      frame = await websocket.receive()
      if frame["type"] == "websocket.disconnect":
        logger.debug("Live socket closed user_id=%s", user_id)
        break
      # Only text frames carry control messages; binary frames are ignored.
      text = frame.get("text")
      if text is None:
        continue
      try:
        message = json.loads(text)
      except json.JSONDecodeError:
        continue
      if isinstance(message, dict) and message.get("type") == "PING":
        await websocket.send_json({"type": "PONG"})
  except WebSocketDisconnect:
    logger.debug("Live socket closed user_id=%s", user_id)
  finally:
    await registry.disconnect(user_id, websocket)

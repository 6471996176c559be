"""WebSocket endpoint that streams row-level changes of the posts table."""
from __future__ import annotations

import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ..constants import POSTS_TABLE
from ..services import change_feed_publisher

router = APIRouter()
logger = logging.getLogger(__name__)


@router.websocket("/ws/posts")
async def posts_changes(websocket: WebSocket) -> None:
    """Register the socket on ``subscribe`` and keep it open until the client leaves."""

    await websocket.accept()
    logger.info("Change feed socket connected from %s", websocket.client)
    try:
        while True:
            try:
                raw = await websocket.receive_text()
            except WebSocketDisconnect:
                break
            except Exception:
                logger.exception("Change feed socket receive failed")
                break

            try:
                payload = json.loads(raw)
            except json.JSONDecodeError:
                payload = {"type": raw}
            if not isinstance(payload, dict):
                continue

            message_type = str(payload.get("type") or "").lower()
            if message_type == "subscribe":
                table = payload.get("table") or POSTS_TABLE
                if table != POSTS_TABLE:
                    await websocket.send_text(json.dumps({"type": "error", "detail": f"Unknown table {table}"}))
                    continue
                # Register before acknowledging so nothing committed after "ready" is missed.
                await change_feed_publisher.subscribe(websocket)
                await websocket.send_text(json.dumps({"type": "ready", "table": POSTS_TABLE}))
            elif message_type == "ping":
                await websocket.send_text(json.dumps({"type": "pong"}))
            # All other messages are ignored, but receiving them keeps the connection alive.
    finally:
        await change_feed_publisher.unsubscribe(websocket)
        logger.info("Change feed socket disconnected from %s", websocket.client)


__all__ = ["router"]

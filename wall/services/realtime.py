"""In-memory WebSocket fan-out that publishes change events for the posts table."""
from __future__ import annotations

import asyncio
import logging

from fastapi import WebSocket

from ..schemas import ChangeEvent

logger = logging.getLogger(__name__)


class ChangeFeedPublisher:
    """Tracks subscribed WebSocket connections and broadcasts change frames."""

    def __init__(self) -> None:
        self._connections: set[WebSocket] = set()
        self._lock = asyncio.Lock()
        # One broadcast at a time so subscribers see changes in commit order.
        self._publish_lock = asyncio.Lock()

    @property
    def subscriber_count(self) -> int:
        return len(self._connections)

    async def subscribe(self, websocket: WebSocket) -> None:
        async with self._lock:
            self._connections.add(websocket)

    async def unsubscribe(self, websocket: WebSocket) -> None:
        async with self._lock:
            self._connections.discard(websocket)

    async def publish(self, event: ChangeEvent) -> None:
        payload = event.model_dump_json()
        async with self._publish_lock:
            async with self._lock:
                targets = list(self._connections)
            for connection in targets:
                try:
                    await connection.send_text(payload)
                except Exception:
                    logger.warning("Dropping change feed subscriber after failed send", exc_info=True)
                    await self.unsubscribe(connection)


change_feed_publisher = ChangeFeedPublisher()


__all__ = ["change_feed_publisher", "ChangeFeedPublisher"]

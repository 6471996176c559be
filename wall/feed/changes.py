"""WebSocket subscription to the backend's row-level change feed."""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable

import aiohttp
from pydantic import ValidationError as SchemaError

from ..constants import POSTS_TABLE
from ..schemas import ChangeEvent, ChangeType
from .errors import SubscriptionLost

logger = logging.getLogger(__name__)

EventHandler = Callable[[ChangeEvent], None]
LostHandler = Callable[[SubscriptionLost], None]

_CLOSING_TYPES = (
    aiohttp.WSMsgType.CLOSE,
    aiohttp.WSMsgType.CLOSING,
    aiohttp.WSMsgType.CLOSED,
    aiohttp.WSMsgType.ERROR,
)
_CHANGE_TYPES = {change.value for change in ChangeType}


class ChangeFeedClient:
    """Delivers INSERT/UPDATE/DELETE events for one table in commit order.

    ``start`` returns once the server acknowledged the subscription. From then
    on every change frame is handed to ``on_event`` from a single reader task.
    If the transport ends without ``stop`` the reader records
    :class:`SubscriptionLost`, calls ``on_lost`` once and ``wait_closed``
    re-raises it. After ``stop`` returns no callback fires again.
    """

    def __init__(
        self,
        url: str,
        *,
        session: aiohttp.ClientSession,
        table: str = POSTS_TABLE,
        heartbeat: float | None = 20.0,
    ) -> None:
        self._url = url
        self._session = session
        self._table = table
        self._heartbeat = heartbeat
        self._ws: Any = None
        self._reader: asyncio.Task[None] | None = None
        self._on_event: EventHandler | None = None
        self._on_lost: LostHandler | None = None
        self._stopped = False
        self._lost: SubscriptionLost | None = None

    @property
    def active(self) -> bool:
        return self._reader is not None and not self._reader.done() and not self._stopped

    @property
    def lost(self) -> SubscriptionLost | None:
        return self._lost

    async def start(self, on_event: EventHandler, on_lost: LostHandler | None = None) -> None:
        """Connect and subscribe; returns without subscribing if :meth:`stop` runs meanwhile."""

        if self._reader is not None or self._stopped:
            raise RuntimeError("ChangeFeedClient can only be started once")

        try:
            self._ws = await self._session.ws_connect(self._url, heartbeat=self._heartbeat)
        except (aiohttp.ClientError, OSError, asyncio.TimeoutError) as exc:
            if self._stopped:
                return
            logger.error("Change feed connect failed | url=%s error=%s", self._url, type(exc).__name__)
            raise SubscriptionLost(f"Could not connect to the live feed at {self._url}") from exc

        try:
            if not self._stopped:
                await self._ws.send_json({"type": "subscribe", "table": self._table})
                await self._await_ready()
        except SubscriptionLost:
            await self._close_socket()
            if self._stopped:
                return
            raise
        except BaseException:
            await self._close_socket()
            raise

        # stop() ran while connecting; it could not see the socket yet.
        if self._stopped:
            await self._close_socket()
            logger.debug("Change feed for %s stopped before subscribing", self._table)
            return

        self._on_event = on_event
        self._on_lost = on_lost
        self._reader = asyncio.create_task(self._read_loop(), name=f"change-feed:{self._table}")
        logger.info("Subscribed to %s changes at %s", self._table, self._url)

    async def _await_ready(self) -> None:
        while True:
            message = await self._ws.receive()
            if message.type == aiohttp.WSMsgType.TEXT:
                frame = _decode(message.data)
                if frame is None:
                    continue
                frame_type = str(frame.get("type") or "").lower()
                if frame_type == "ready":
                    return
                if frame_type == "error":
                    raise SubscriptionLost(f"Live feed refused the subscription: {frame.get('detail')}")
                if frame_type.upper() in _CHANGE_TYPES:
                    # The snapshot fetched alongside the subscription covers these rows.
                    logger.debug("Dropping %s frame received before the subscription was ready", frame_type.upper())
            elif message.type in _CLOSING_TYPES:
                raise SubscriptionLost("Live feed closed before the subscription was ready")

    async def _read_loop(self) -> None:
        lost: SubscriptionLost | None = None
        try:
            while not self._stopped:
                message = await self._ws.receive()
                if message.type == aiohttp.WSMsgType.TEXT:
                    self._dispatch(message.data)
                elif message.type in _CLOSING_TYPES:
                    lost = SubscriptionLost("Live feed connection closed")
                    break
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("Change feed reader failed")
            lost = SubscriptionLost("Live feed connection failed")
            lost.__cause__ = exc

        if lost is None or self._stopped:
            return
        self._lost = lost
        logger.warning("Change feed for %s lost: %s", self._table, lost)
        await self._close_socket()
        if self._on_lost is not None and not self._stopped:
            try:
                self._on_lost(lost)
            except Exception:
                logger.exception("Subscription-lost handler failed")

    def _dispatch(self, raw: str) -> None:
        frame = _decode(raw)
        if frame is None:
            logger.warning("Ignoring malformed change feed frame")
            return
        frame_type = str(frame.get("type") or "").upper()
        if frame_type not in _CHANGE_TYPES:
            return  # ready / pong / other control frames
        try:
            event = ChangeEvent.model_validate(frame)
        except SchemaError:
            logger.warning("Ignoring invalid %s frame", frame_type, exc_info=True)
            return
        if event.table != self._table:
            return
        if self._stopped or self._on_event is None:
            return
        try:
            self._on_event(event)
        except Exception:
            logger.exception("Change handler failed for %s on %s", event.type.value, event.post_id)

    async def stop(self) -> None:
        """Cancel the subscription; no callbacks fire after this returns."""

        self._stopped = True
        reader = self._reader
        if reader is not None and not reader.done() and reader is not asyncio.current_task():
            reader.cancel()
            try:
                await reader
            except asyncio.CancelledError:
                pass
        await self._close_socket()

    async def wait_closed(self) -> None:
        """Block until the subscription ends; raise :class:`SubscriptionLost` if it was not stopped."""

        if self._reader is not None:
            await asyncio.wait({self._reader})
        if self._lost is not None and not self._stopped:
            raise self._lost

    async def _close_socket(self) -> None:
        ws, self._ws = self._ws, None
        if ws is None or ws.closed:
            return
        try:
            await ws.close()
        except Exception:  # pragma: no cover - transport already gone
            logger.debug("Closing change feed socket failed", exc_info=True)

    async def __aenter__(self) -> "ChangeFeedClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()


def _decode(raw: str) -> dict[str, Any] | None:
    try:
        frame = json.loads(raw)
    except (TypeError, json.JSONDecodeError):
        return None
    return frame if isinstance(frame, dict) else None


__all__ = ["ChangeFeedClient", "EventHandler", "LostHandler"]

"""Session wiring: shared transport handles plus the feed components built on them."""
from __future__ import annotations

import asyncio
import logging

import aiohttp
import httpx

from ..config import Settings, get_settings
from .changes import ChangeFeedClient
from .errors import FetchError, SubscriptionLost
from .notifications import LoggingNotifier, Notification, NotificationKind, Notifier
from .reconciler import FeedReconciler
from .repository import PostRepository
from .submission import SubmissionCoordinator
from .uploader import MediaUploader

logger = logging.getLogger(__name__)


class WallContext:
    """Transport handles owned by the process: HTTP client, WebSocket session, uploader.

    Handles passed in by the caller are used as-is and left open on exit;
    handles created here are closed by :meth:`aclose`.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        http: httpx.AsyncClient | None = None,
        ws_session: aiohttp.ClientSession | None = None,
        uploader: MediaUploader | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._http = http
        self._ws_session = ws_session
        self._owns_http = http is None
        self._owns_ws = ws_session is None
        self.uploader = uploader or MediaUploader()

    @property
    def http(self) -> httpx.AsyncClient:
        if self._http is None:
            raise RuntimeError("WallContext is not open")
        return self._http

    @property
    def ws_session(self) -> aiohttp.ClientSession:
        if self._ws_session is None:
            raise RuntimeError("WallContext is not open")
        return self._ws_session

    async def open(self) -> "WallContext":
        if self._http is None:
            self._http = httpx.AsyncClient(
                base_url=self.settings.api_url.rstrip("/"),
                timeout=self.settings.http_timeout,
            )
        if self._ws_session is None:
            self._ws_session = aiohttp.ClientSession()
        return self

    async def aclose(self) -> None:
        http, self._http = self._http, None
        ws_session, self._ws_session = self._ws_session, None
        try:
            if http is not None and self._owns_http:
                await http.aclose()
        finally:
            if ws_session is not None and self._owns_ws:
                await ws_session.close()

    async def __aenter__(self) -> "WallContext":
        return await self.open()

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


class WallSession:
    """One viewing session: snapshot plus live subscription feeding a reconciler.

    A lost subscription ends the session. Missed events cannot be replayed, so
    callers recover by opening a new session (fresh snapshot and subscription).
    """

    def __init__(
        self,
        context: WallContext,
        *,
        notifier: Notifier | None = None,
        reconciler: FeedReconciler | None = None,
        repository: PostRepository | None = None,
        changes: ChangeFeedClient | None = None,
    ) -> None:
        self.notifier: Notifier = notifier or LoggingNotifier()
        self.reconciler = reconciler or FeedReconciler()
        self.repository = repository or PostRepository(context.http)
        self.changes = changes or ChangeFeedClient(
            context.settings.feed_url,
            session=context.ws_session,
            heartbeat=context.settings.ws_heartbeat,
        )
        self.coordinator = SubmissionCoordinator(
            repository=self.repository,
            uploader=context.uploader,
            notifier=self.notifier,
        )
        self._tasks: set[asyncio.Task] = set()
        self._started = False
        self._closed = False

    @property
    def loading(self) -> bool:
        return not self.reconciler.loaded

    @property
    def closed(self) -> bool:
        return self._closed

    def _track(self, coro, *, name: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def start(self) -> None:
        """Subscribe and fetch the snapshot concurrently; returns once both settled."""

        if self._started:
            raise RuntimeError("WallSession can only be started once")
        self._started = True

        snapshot = self._track(self._load_snapshot(), name="feed-snapshot")
        try:
            await self.changes.start(self.reconciler.apply, on_lost=self._on_subscription_lost)
            await asyncio.wait({snapshot})
        except SubscriptionLost as exc:
            if not self._closed:
                self._notify(NotificationKind.SUBSCRIPTION_LOST, f"Live updates are unavailable: {exc}")
            await self.close()
            raise
        except BaseException:
            # Cancelled while starting: nothing may outlive the caller.
            await self.close()
            raise

    async def _load_snapshot(self) -> None:
        try:
            posts = await self.repository.fetch_all()
        except FetchError as exc:
            if not self._closed:
                self._notify(NotificationKind.FETCH_FAILED, str(exc))
            return
        if self._closed:
            return
        self.reconciler.load_snapshot(posts)
        logger.info("Feed loaded with %d posts", len(self.reconciler))

    def _on_subscription_lost(self, exc: SubscriptionLost) -> None:
        if not self._closed:
            self._notify(NotificationKind.SUBSCRIPTION_LOST, "Live updates stopped. Reload to reconnect.")

    async def submit(self) -> bool:
        """Run the coordinator's submission without blocking live event delivery."""

        if self._closed:
            return False
        task = self._track(self.coordinator.submit(), name="feed-submission")
        try:
            return await task
        except asyncio.CancelledError:
            if self._closed and task.cancelled():
                return False
            raise

    async def wait_closed(self) -> None:
        """Wait for the subscription to end; raises :class:`SubscriptionLost` if it dropped."""

        await self.changes.wait_closed()

    async def close(self) -> None:
        """Stop the subscription and abandon in-flight work; idempotent."""

        if self._closed:
            return
        self._closed = True
        self.coordinator.close()
        pending = [task for task in self._tasks if not task.done() and task is not asyncio.current_task()]
        for task in pending:
            task.cancel()
        try:
            await self.changes.stop()
        finally:
            if pending:
                await asyncio.wait(pending)
        logger.info("Feed session closed")

    def _notify(self, kind: NotificationKind, message: str) -> None:
        self.notifier.notify(Notification(kind=kind, message=message))

    async def __aenter__(self) -> "WallSession":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


__all__ = ["WallContext", "WallSession"]

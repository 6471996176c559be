"""Wall session: concurrent snapshot and subscription, failure notices and teardown."""
from __future__ import annotations

import asyncio
import json
from types import SimpleNamespace
from uuid import UUID

import aiohttp
import httpx
import pytest

from wall.config import Settings
from wall.feed.errors import SubscriptionLost
from wall.feed.notifications import Notification, NotificationKind
from wall.feed.session import WallContext, WallSession


def _row(number: int, minute: int, message: str | None = None) -> dict:
    return {
        "id": str(UUID(int=number)),
        "author_id": "anon",
        "message": message or f"post {number}",
        "display_name": None,
        "avatar_url": None,
        "image_url": None,
        "created_at": f"2025-01-01T12:{minute:02d}:00+00:00",
    }


class FakeSocket:
    def __init__(self) -> None:
        self.inbox: asyncio.Queue = asyncio.Queue()
        self.sent: list[dict] = []
        self.closed = False
        self.push({"type": "ready"})

    async def send_json(self, data: dict) -> None:
        self.sent.append(data)

    async def receive(self):
        return await self.inbox.get()

    async def close(self) -> None:
        self.closed = True

    def push(self, payload: dict) -> None:
        self.inbox.put_nowait(SimpleNamespace(type=aiohttp.WSMsgType.TEXT, data=json.dumps(payload)))

    def push_closed(self) -> None:
        self.inbox.put_nowait(SimpleNamespace(type=aiohttp.WSMsgType.CLOSED, data=None))


class FakeWsSession:
    def __init__(self, socket: FakeSocket | None = None, error: Exception | None = None) -> None:
        self.socket = socket
        self.error = error
        self.urls: list[str] = []

    async def ws_connect(self, url: str, heartbeat=None):
        self.urls.append(url)
        if self.error is not None:
            raise self.error
        return self.socket


class RecordingNotifier:
    def __init__(self) -> None:
        self.items: list[Notification] = []

    def notify(self, notification: Notification) -> None:
        self.items.append(notification)

    @property
    def kinds(self) -> list[NotificationKind]:
        return [item.kind for item in self.items]


SETTINGS = Settings(api_url="https://wall.test")


def _http(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=SETTINGS.api_url)


async def _settle(predicate, attempts: int = 200) -> None:
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


def test_feed_url_is_derived_from_api_url():
    assert SETTINGS.feed_url == "wss://wall.test/ws/posts"
    assert Settings(api_url="http://localhost:8000").feed_url == "ws://localhost:8000/ws/posts"


def test_event_arriving_before_snapshot_survives():
    async def scenario():
        gate = asyncio.Event()

        async def _handler(request: httpx.Request) -> httpx.Response:
            await gate.wait()
            return httpx.Response(200, json={"items": [_row(2, 2), _row(1, 1)]})

        socket = FakeSocket()
        notifier = RecordingNotifier()
        async with _http(_handler) as http:
            context = WallContext(SETTINGS, http=http, ws_session=FakeWsSession(socket))
            await context.open()
            session = WallSession(context, notifier=notifier)
            starting = asyncio.create_task(session.start())

            await _settle(lambda: socket.sent)
            socket.push({"type": "INSERT", "table": "posts", "new": _row(3, 3)})
            await _settle(lambda: len(session.reconciler) == 1)
            assert session.loading is True

            gate.set()
            await starting
            posts = [post.id.int for post in session.reconciler.posts]
            await session.close()
            await context.aclose()
        return posts, notifier, socket

    posts, notifier, socket = asyncio.run(scenario())

    assert posts == [3, 2, 1]
    assert notifier.items == []
    assert socket.closed is True


def test_fetch_failure_notifies_and_keeps_live_updates():
    async def scenario():
        def _handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500)

        socket = FakeSocket()
        notifier = RecordingNotifier()
        async with _http(_handler) as http:
            context = WallContext(SETTINGS, http=http, ws_session=FakeWsSession(socket))
            await context.open()
            async with WallSession(context, notifier=notifier) as session:
                socket.push({"type": "INSERT", "table": "posts", "new": _row(5, 5)})
                await _settle(lambda: len(session.reconciler) == 1)
                loading = session.loading
        return notifier, loading

    notifier, loading = asyncio.run(scenario())

    assert notifier.kinds == [NotificationKind.FETCH_FAILED]
    assert loading is True


def test_subscription_failure_at_start_is_raised_and_notified():
    async def scenario():
        def _handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"items": []})

        notifier = RecordingNotifier()
        async with _http(_handler) as http:
            ws_session = FakeWsSession(error=aiohttp.ClientConnectionError("refused"))
            context = WallContext(SETTINGS, http=http, ws_session=ws_session)
            await context.open()
            session = WallSession(context, notifier=notifier)
            with pytest.raises(SubscriptionLost):
                await session.start()
            return notifier, session, ws_session

    notifier, session, ws_session = asyncio.run(scenario())

    assert notifier.kinds == [NotificationKind.SUBSCRIPTION_LOST]
    assert session.closed is True
    assert ws_session.urls == ["wss://wall.test/ws/posts"]


def test_lost_subscription_is_terminal():
    async def scenario():
        def _handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"items": [_row(1, 1)]})

        socket = FakeSocket()
        notifier = RecordingNotifier()
        async with _http(_handler) as http:
            context = WallContext(SETTINGS, http=http, ws_session=FakeWsSession(socket))
            await context.open()
            async with WallSession(context, notifier=notifier) as session:
                socket.push_closed()
                with pytest.raises(SubscriptionLost):
                    await session.wait_closed()
        return notifier

    notifier = asyncio.run(scenario())

    assert notifier.kinds == [NotificationKind.SUBSCRIPTION_LOST]


def test_own_post_appears_only_through_its_echo():
    async def scenario():
        created: list[dict] = []

        def _handler(request: httpx.Request) -> httpx.Response:
            if request.method == "POST":
                created.append(json.loads(request.content))
                return httpx.Response(201, json={**_row(9, 9), **created[-1]})
            return httpx.Response(200, json={"items": []})

        socket = FakeSocket()
        notifier = RecordingNotifier()
        async with _http(_handler) as http:
            context = WallContext(SETTINGS, http=http, ws_session=FakeWsSession(socket))
            await context.open()
            async with WallSession(context, notifier=notifier) as session:
                session.coordinator.form.message = "mine"
                assert await session.submit() is True
                before_echo = len(session.reconciler)

                socket.push({"type": "INSERT", "table": "posts", "new": _row(9, 9, "mine")})
                socket.push({"type": "INSERT", "table": "posts", "new": _row(9, 9, "mine")})
                await _settle(lambda: len(session.reconciler) == 1)
                messages = [post.message for post in session.reconciler.posts]
        return before_echo, messages, created, notifier

    before_echo, messages, created, notifier = asyncio.run(scenario())

    assert before_echo == 0
    assert messages == ["mine"]
    assert created[0]["display_name"] == "guest"
    assert notifier.kinds == [NotificationKind.POSTED]


def test_close_abandons_in_flight_submission_and_snapshot():
    async def scenario():
        gate = asyncio.Event()

        async def _handler(request: httpx.Request) -> httpx.Response:
            await gate.wait()
            if request.method == "POST":
                return httpx.Response(201, json=_row(4, 4))
            return httpx.Response(200, json={"items": [_row(1, 1)]})

        socket = FakeSocket()
        notifier = RecordingNotifier()
        async with _http(_handler) as http:
            context = WallContext(SETTINGS, http=http, ws_session=FakeWsSession(socket))
            await context.open()
            session = WallSession(context, notifier=notifier)
            starting = asyncio.create_task(session.start())
            await _settle(lambda: socket.sent)

            session.coordinator.form.message = "half way"
            submitting = asyncio.create_task(session.submit())
            await _settle(lambda: session.coordinator.busy)

            await session.close()
            gate.set()
            submitted = await submitting
            await starting
        return session, submitted, notifier, socket

    session, submitted, notifier, socket = asyncio.run(scenario())

    assert submitted is False
    assert session.reconciler.posts == ()
    assert session.reconciler.loaded is False
    assert notifier.items == []
    assert socket.closed is True


def test_context_creates_and_releases_its_own_handles():
    async def scenario():
        context = WallContext(SETTINGS)
        async with context:
            http = context.http
            ws_session = context.ws_session
            assert str(http.base_url).startswith("https://wall.test")
        return context, http, ws_session

    context, http, ws_session = asyncio.run(scenario())

    assert http.is_closed is True
    assert ws_session.closed is True
    with pytest.raises(RuntimeError):
        context.http


class GatedWsSession(FakeWsSession):
    def __init__(self, socket: FakeSocket) -> None:
        super().__init__(socket)
        self.gate = asyncio.Event()

    async def ws_connect(self, url: str, heartbeat=None):
        self.urls.append(url)
        await self.gate.wait()
        return self.socket


def test_cancelled_start_tears_down_snapshot_and_subscription():
    async def scenario():
        http_gate = asyncio.Event()

        async def _handler(request: httpx.Request) -> httpx.Response:
            await http_gate.wait()
            return httpx.Response(200, json={"items": [_row(1, 1)]})

        socket = FakeSocket()
        ws_session = GatedWsSession(socket)
        notifier = RecordingNotifier()
        async with _http(_handler) as http:
            context = WallContext(SETTINGS, http=http, ws_session=ws_session)
            await context.open()
            session = WallSession(context, notifier=notifier)
            starting = asyncio.create_task(session.start())
            await _settle(lambda: ws_session.urls)

            starting.cancel()
            with pytest.raises(asyncio.CancelledError):
                await starting
            http_gate.set()
            ws_session.gate.set()
            for _ in range(20):
                await asyncio.sleep(0)
        return session, notifier, socket

    session, notifier, socket = asyncio.run(scenario())

    assert session.closed is True
    assert session.reconciler.loaded is False
    assert session.reconciler.posts == ()
    assert socket.sent == []
    assert notifier.items == []


def test_close_while_connecting_releases_the_socket():
    async def scenario():
        def _handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"items": []})

        socket = FakeSocket()
        ws_session = GatedWsSession(socket)
        notifier = RecordingNotifier()
        async with _http(_handler) as http:
            context = WallContext(SETTINGS, http=http, ws_session=ws_session)
            await context.open()
            session = WallSession(context, notifier=notifier)
            starting = asyncio.create_task(session.start())
            await _settle(lambda: ws_session.urls)

            await session.close()
            ws_session.gate.set()
            await starting
        return session, notifier, socket

    session, notifier, socket = asyncio.run(scenario())

    assert socket.closed is True
    assert session.changes.active is False
    assert notifier.items == []

"""Post repository against the real backend app and against failing transports."""
from __future__ import annotations

import asyncio
import os
from typing import Iterator

import httpx
import pytest
from sqlalchemy import delete

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///./test_wall.db")

from wall.database import Base, SessionLocal, engine  # noqa: E402
from wall.feed.errors import CreateError, FetchError  # noqa: E402
from wall.feed.repository import PostRepository  # noqa: E402
from wall.main import app  # noqa: E402
from wall.models import Post  # noqa: E402
from wall.schemas import PostDraft  # noqa: E402


@pytest.fixture(scope="module", autouse=True)
def _create_schema() -> Iterator[None]:
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def _clean_database() -> Iterator[None]:
    with SessionLocal() as session:
        session.execute(delete(Post))
        session.commit()
    yield


def _asgi_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://wall.test")


def _failing_client(status_code: int) -> httpx.AsyncClient:
    def _handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json={"detail": "boom"})

    return httpx.AsyncClient(transport=httpx.MockTransport(_handler), base_url="http://wall.test")


def test_create_then_fetch_round_trip():
    async def scenario():
        async with _asgi_client() as client:
            repository = PostRepository(client)
            assert await repository.create(PostDraft(message="one", display_name="guest")) is None
            await repository.create(PostDraft(message="two", image_url="https://cdn.test/x.png"))
            return await repository.fetch_all()

    posts = asyncio.run(scenario())

    assert [post.message for post in posts] == ["two", "one"]
    assert posts[0].image_url == "https://cdn.test/x.png"
    assert posts[1].label == "guest"
    assert all(post.created_at.tzinfo is not None for post in posts)


def test_fetch_all_on_empty_wall():
    async def scenario():
        async with _asgi_client() as client:
            return await PostRepository(client).fetch_all()

    assert asyncio.run(scenario()) == []


def test_fetch_failure_is_reported_as_fetch_error():
    async def scenario():
        async with _failing_client(503) as client:
            await PostRepository(client).fetch_all()

    with pytest.raises(FetchError, match="503"):
        asyncio.run(scenario())


def test_malformed_snapshot_is_a_fetch_error():
    def _handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"items": [{"id": "not-a-uuid"}]})

    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(_handler), base_url="http://wall.test") as client:
            await PostRepository(client).fetch_all()

    with pytest.raises(FetchError):
        asyncio.run(scenario())


def test_create_failure_is_reported_as_create_error():
    async def scenario():
        async with _failing_client(500) as client:
            await PostRepository(client).create(PostDraft(message="lost"))

    with pytest.raises(CreateError, match="500"):
        asyncio.run(scenario())


def test_transport_failure_is_not_retried():
    calls: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise httpx.ConnectError("offline", request=request)

    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(_handler), base_url="http://wall.test") as client:
            await PostRepository(client).create(PostDraft(message="offline"))

    with pytest.raises(CreateError):
        asyncio.run(scenario())
    assert len(calls) == 1

"""Service metadata and health endpoints."""
from __future__ import annotations

from fastapi import APIRouter

from ..config import get_settings
from ..services import change_feed_publisher

router = APIRouter(tags=["system"])


@router.get("/api")
def api_info() -> dict[str, str]:
    settings = get_settings()
    return {"service": settings.app_name, "version": settings.api_version}


@router.get("/health")
async def healthcheck() -> dict[str, object]:
    return {"status": "ok", "subscribers": change_feed_publisher.subscriber_count}


__all__ = ["router"]

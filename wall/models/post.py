"""SQLAlchemy ORM model for wall posts."""
from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String, Text, Uuid
from sqlalchemy.sql import func

from wall.constants import ANONYMOUS_AUTHOR_ID, MAX_DISPLAY_NAME_LENGTH, POSTS_TABLE
from wall.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Post(Base):
    __tablename__ = POSTS_TABLE

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    author_id = Column(String(64), nullable=True, default=ANONYMOUS_AUTHOR_ID)
    message = Column(Text, nullable=False)
    display_name = Column(String(MAX_DISPLAY_NAME_LENGTH), nullable=True)
    avatar_url = Column(String(1024), nullable=True)
    image_url = Column(String(2048), nullable=True)
    # Python-side default keeps sub-second ordering on SQLite
    created_at = Column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        nullable=False,
        index=True,
    )


__all__ = ["Post"]

"""Project-wide constant values."""
from __future__ import annotations

MAX_MESSAGE_LENGTH = 280
MAX_DISPLAY_NAME_LENGTH = 32
MAX_IMAGE_BYTES = 5 * 1024 * 1024

ANONYMOUS_AUTHOR_ID = "anon"  # no login, every post shares the sentinel
DEFAULT_DISPLAY_NAME = "guest"

POSTS_TABLE = "posts"

AVATAR_API = "https://api.dicebear.com/9.x/big-ears-neutral/svg"
AVATAR_COUNT = 10
AVATAR_URLS: tuple[str, ...] = tuple(f"{AVATAR_API}?seed=avatar{index}" for index in range(1, AVATAR_COUNT + 1))
DEFAULT_AVATAR_URL = AVATAR_URLS[0]

__all__ = [
    "MAX_MESSAGE_LENGTH",
    "MAX_DISPLAY_NAME_LENGTH",
    "MAX_IMAGE_BYTES",
    "ANONYMOUS_AUTHOR_ID",
    "DEFAULT_DISPLAY_NAME",
    "POSTS_TABLE",
    "AVATAR_API",
    "AVATAR_COUNT",
    "AVATAR_URLS",
    "DEFAULT_AVATAR_URL",
]

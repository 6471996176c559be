"""User-facing notifications emitted by the submission and session layers."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

logger = logging.getLogger(__name__)


class NotificationKind(str, Enum):
    POSTED = "posted"
    INVALID_INPUT = "invalid_input"
    BUSY = "busy"
    UPLOAD_FAILED = "upload_failed"
    CREATE_FAILED = "create_failed"
    FETCH_FAILED = "fetch_failed"
    SUBSCRIPTION_LOST = "subscription_lost"


@dataclass(frozen=True, slots=True)
class Notification:
    kind: NotificationKind
    message: str

    @property
    def is_error(self) -> bool:
        return self.kind is not NotificationKind.POSTED


class Notifier(Protocol):
    def notify(self, notification: Notification) -> None:
        """Show one human readable notification to the user."""
        ...


class LoggingNotifier:
    """Notifier that writes every notification to the application log."""

    def notify(self, notification: Notification) -> None:
        level = logging.WARNING if notification.is_error else logging.INFO
        logger.log(level, "[%s] %s", notification.kind.value, notification.message)


__all__ = ["Notification", "NotificationKind", "Notifier", "LoggingNotifier"]

"""Transient user notifications (toasts) raised by dashboard commands."""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Optional

from src.utils import utc_now

logger = logging.getLogger(__name__)


class NotificationType(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


@dataclass(frozen=True)
class Notification:
    """One toast message."""

    type: NotificationType
    message: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:7])
    created_at: datetime = field(default_factory=utc_now)


class NotificationCenter:
    """Collects notifications and forwards them to subscribers.

    Entries older than ``ttl_seconds`` are dropped from ``active()``.
    """

    def __init__(self, ttl_seconds: int = 3, clock: Callable[[], datetime] = utc_now) -> None:
        self._ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock
        self._items: list[Notification] = []
        self._subscribers: list[Callable[[Notification], None]] = []

    def subscribe(self, callback: Callable[[Notification], None]) -> None:
        self._subscribers.append(callback)

    def push(self, type: NotificationType, message: str) -> Notification:
        notification = Notification(type=type, message=message, created_at=self._clock())
        self._items.append(notification)
        log = logger.warning if type == NotificationType.ERROR else logger.info
        log("Notification [%s]: %s", type.value, message)
        for callback in self._subscribers:
            callback(notification)
        return notification

    def success(self, message: str) -> Notification:
        return self.push(NotificationType.SUCCESS, message)

    def error(self, message: str) -> Notification:
        return self.push(NotificationType.ERROR, message)

    def info(self, message: str) -> Notification:
        return self.push(NotificationType.INFO, message)

    def active(self) -> list[Notification]:
        cutoff = self._clock() - self._ttl
        self._items = [n for n in self._items if n.created_at > cutoff]
        return list(self._items)

    def latest(self) -> Optional[Notification]:
        return self._items[-1] if self._items else None

    def dismiss(self, notification_id: str) -> None:
        self._items = [n for n in self._items if n.id != notification_id]

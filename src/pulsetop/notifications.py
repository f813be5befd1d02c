"""User-facing notifications produced by actions and consumed by the TUI."""

import itertools
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from pulsetop.log import get_logger

logger = get_logger(__name__)

MAX_NOTIFICATIONS = 50


class NotificationKind(Enum):
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


_ids = itertools.count(1)


@dataclass(slots=True, frozen=True)
class Notification:
    """One toast-style message."""

    kind: NotificationKind
    title: str
    message: str
    duration_ms: int
    id: int = field(default_factory=lambda: next(_ids))
    created_at: float = field(default_factory=time.time)


def notify_success(message: str, title: str = "Success", duration_ms: int = 3000) -> Notification:
    return Notification(NotificationKind.SUCCESS, title, message, duration_ms)


def notify_error(message: str, title: str = "Error", duration_ms: int = 5000) -> Notification:
    return Notification(NotificationKind.ERROR, title, message, duration_ms)


def notify_warning(message: str, title: str = "Warning", duration_ms: int = 4000) -> Notification:
    return Notification(NotificationKind.WARNING, title, message, duration_ms)


def notify_info(message: str, title: str = "Information", duration_ms: int = 4000) -> Notification:
    return Notification(NotificationKind.INFO, title, message, duration_ms)


class NotificationCenter:
    """
    Bounded queue of pending notifications.

    Subscribers are called for every added notification; the oldest entry is
    dropped once ``capacity`` is exceeded.
    """

    def __init__(self, capacity: int = MAX_NOTIFICATIONS) -> None:
        self._items: deque[Notification] = deque(maxlen=capacity)
        self._subscribers: list[Callable[[Notification], None]] = []

    def subscribe(self, callback: Callable[[Notification], None]) -> None:
        self._subscribers.append(callback)

    def add(self, notification: Notification) -> Notification:
        self._items.append(notification)
        for callback in self._subscribers:
            try:
                callback(notification)
            except Exception:
                logger.exception("notification_subscriber_failed", notification_id=notification.id)
        return notification

    def remove(self, notification_id: int) -> None:
        self._items = deque(
            (n for n in self._items if n.id != notification_id), maxlen=self._items.maxlen
        )

    def clear(self) -> None:
        self._items.clear()

    @property
    def items(self) -> list[Notification]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

"""
Notification sinks.

Fire-and-forget user notifications (``push(message, kind)``). Sinks never
raise into the caller.
"""

import logging
import time
from collections import deque
from enum import Enum
from typing import List, Protocol

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class NotificationKind(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class Notification(BaseModel):
    message: str
    kind: NotificationKind
    timestamp: float


class NotificationSink(Protocol):
    def push(self, message: str, kind: NotificationKind = NotificationKind.INFO) -> None:
        ...


_LEVELS = {
    NotificationKind.INFO: logging.INFO,
    NotificationKind.SUCCESS: logging.INFO,
    NotificationKind.WARNING: logging.WARNING,
    NotificationKind.ERROR: logging.ERROR,
}


class LoggingNotificationSink:
    """Writes notifications to the ``form_monitor.notifications`` logger."""

    def __init__(self, name: str = "form_monitor.notifications"):
        self._logger = logging.getLogger(name)

    def push(self, message: str, kind: NotificationKind = NotificationKind.INFO) -> None:
        kind = NotificationKind(kind)
        self._logger.log(_LEVELS[kind], "[%s] %s", kind.value, message)


class QueueNotificationSink(LoggingNotificationSink):
    """Keeps the most recent notifications for a client to drain."""

    def __init__(self, maxlen: int = 50):
        super().__init__()
        self._pending: deque = deque(maxlen=maxlen)

    def push(self, message: str, kind: NotificationKind = NotificationKind.INFO) -> None:
        super().push(message, kind)
        self._pending.append(
            Notification(message=message, kind=NotificationKind(kind), timestamp=time.time())
        )

    def drain(self) -> List[Notification]:
        items = list(self._pending)
        self._pending.clear()
        return items

    def __len__(self) -> int:
        return len(self._pending)

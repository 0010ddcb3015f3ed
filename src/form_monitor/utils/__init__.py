from .io_utils import MonitorSettings, load_config, load_settings
from .notifications import (
    LoggingNotificationSink,
    Notification,
    NotificationKind,
    NotificationSink,
    QueueNotificationSink,
)

__all__ = [
    "MonitorSettings",
    "load_config",
    "load_settings",
    "LoggingNotificationSink",
    "Notification",
    "NotificationKind",
    "NotificationSink",
    "QueueNotificationSink",
]

"""Wires a ``FormMonitorEngine`` from ``MonitorSettings``."""

import logging
from typing import Callable, Optional

from ..backends import create_default_registry
from ..utils.io_utils import MonitorSettings
from ..utils.notifications import NotificationSink, QueueNotificationSink
from .access import AccessGate, JsonFileCounterStore
from .scheduler import AsyncioFrameClock, FormMonitorEngine, FrameClock
from .sources import CameraFrameSource, FrameSource

logger = logging.getLogger(__name__)


def build_engine(
    settings: Optional[MonitorSettings] = None,
    notifier: Optional[NotificationSink] = None,
    source_factory: Optional[Callable[[], FrameSource]] = None,
    overlay=None,
    clock: Optional[FrameClock] = None,
) -> FormMonitorEngine:
    """Build an engine with the default backends and a file-backed trial gate.

    Args:
        settings: Monitor settings; defaults to ``MonitorSettings()``.
        notifier: Notification sink shared by the registry and the engine.
        source_factory: Frame source factory; defaults to the configured camera.
        overlay: Optional preview renderer.
        clock: Frame clock; defaults to ``AsyncioFrameClock(settings.max_fps)``.
    """
    settings = settings or MonitorSettings()
    notifier = notifier or QueueNotificationSink()

    if source_factory is None:
        def source_factory():
            return CameraFrameSource(
                device=settings.camera_index,
                width=settings.camera_width,
                height=settings.camera_height,
            )

    registry = create_default_registry(notifier=notifier, configs=settings.backend_configs())
    gate = AccessGate(JsonFileCounterStore(settings.trial_counter_path), limit=settings.trial_limit)
    logger.info(
        "Engine configured: preferred backend '%s', trial limit %d",
        settings.preferred_backend,
        settings.trial_limit,
    )
    return FormMonitorEngine(
        registry=registry,
        source_factory=source_factory,
        gate=gate,
        notifier=notifier,
        clock=clock or AsyncioFrameClock(settings.max_fps),
        overlay=overlay,
        preferred_backend=settings.preferred_backend,
    )

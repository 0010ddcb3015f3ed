"""
Live session layer: frame sources, the pose estimator adapter, the frame
loop engine, session statistics and the trial access gate.
"""

from .access import AccessGate, GateDecision, InMemoryCounterStore, JsonFileCounterStore
from .builder import build_engine
from .estimator import PoseEstimator, best_pose, normalize_detection
from .scheduler import (
    AsyncioFrameClock,
    EngineState,
    FormMonitorEngine,
    FrameClock,
    MonitorSnapshot,
    MonitorStatus,
)
from .sources import (
    CameraFrameSource,
    FrameSource,
    FrameSourceError,
    StaticFrameSource,
    VideoFileFrameSource,
)
from .stats import SessionStatsAggregator, good_form_percentage

__all__ = [
    "build_engine",
    "AccessGate",
    "GateDecision",
    "InMemoryCounterStore",
    "JsonFileCounterStore",
    "PoseEstimator",
    "best_pose",
    "normalize_detection",
    "AsyncioFrameClock",
    "EngineState",
    "FormMonitorEngine",
    "FrameClock",
    "MonitorSnapshot",
    "MonitorStatus",
    "CameraFrameSource",
    "FrameSource",
    "FrameSourceError",
    "StaticFrameSource",
    "VideoFileFrameSource",
    "SessionStatsAggregator",
    "good_form_percentage",
]

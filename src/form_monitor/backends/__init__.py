"""
Pluggable pose-estimation backends.

Preference order: MediaPipe (GPU delegate), MediaPipe (CPU delegate),
MoveNet (TFLite), then the synthetic fallback that cannot fail.
"""

from typing import Optional

from .base import BackendKind, PoseBackend, RawDetection
from .mediapipe_backend import MediaPipeBackend, MediaPipeGpuBackend
from .movenet import MoveNetBackend
from .registry import BackendRegistry, BackendState, BackendStatus
from .synthetic import SyntheticBackend


def create_default_registry(notifier=None, configs: Optional[dict] = None) -> BackendRegistry:
    """Registry with every bundled backend in preference order."""
    return BackendRegistry(
        [
            MediaPipeGpuBackend(),
            MediaPipeBackend(),
            MoveNetBackend(),
            SyntheticBackend(),
        ],
        notifier=notifier,
        configs=configs,
    )


__all__ = [
    "BackendKind",
    "PoseBackend",
    "RawDetection",
    "MediaPipeBackend",
    "MediaPipeGpuBackend",
    "MoveNetBackend",
    "SyntheticBackend",
    "BackendRegistry",
    "BackendState",
    "BackendStatus",
    "create_default_registry",
]

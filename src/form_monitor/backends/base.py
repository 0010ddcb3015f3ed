"""Pose backend capability interface."""

from __future__ import annotations

import asyncio
import functools
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

import numpy as np

from ..pipelines.state import Frame


class BackendKind(str, Enum):
    ACCELERATED = "accelerated"
    STANDARD = "standard"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class RawDetection:
    """Backend-native output for one person.

    ``keypoints`` has shape (K, 3) holding ``x, y, score``. ``layout`` names
    the index convention (``"coco17"`` or ``"mediapipe33"``); ``normalized``
    marks coordinates in [0, 1] rather than pixels.
    """
    keypoints: np.ndarray
    layout: str = "coco17"
    normalized: bool = False


class PoseBackend(ABC):
    """Base class for pluggable pose-estimation backends."""

    name: str = "base"
    display_name: str = "Base backend"
    kind: BackendKind = BackendKind.STANDARD
    synthetic: bool = False

    def __init__(self):
        self.ready = False

    @abstractmethod
    async def initialize(self, config: Optional[Dict[str, Any]] = None) -> None:
        """Load models / allocate resources. Raises on failure."""

    @abstractmethod
    async def estimate(self, frame: Frame) -> List[RawDetection]:
        """Return zero or more detections for *frame*."""

    def close(self) -> None:
        self.ready = False

    async def _run_blocking(self, fn, *args):
        """Run blocking inference off the event loop."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(fn, *args))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, kind={self.kind.value})"

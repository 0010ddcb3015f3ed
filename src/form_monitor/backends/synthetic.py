"""
Synthetic fallback backend.

Generates a deterministic, slowly bobbing standing skeleton instead of
running inference. It needs no model file and no hardware acceleration, so
initialization cannot fail. Every pose it produces is flagged synthetic.
"""

import logging
import math
from typing import Any, Dict, List, Optional

import numpy as np

from ..pipelines.state import Frame
from .base import BackendKind, PoseBackend, RawDetection

logger = logging.getLogger(__name__)

# Normalized (x, y) template in canonical order, front view.
_TEMPLATE = np.array([
    [0.50, 0.15],  # nose
    [0.48, 0.13],  # left eye
    [0.52, 0.13],  # right eye
    [0.46, 0.14],  # left ear
    [0.54, 0.14],  # right ear
    [0.42, 0.25],  # left shoulder
    [0.58, 0.25],  # right shoulder
    [0.38, 0.38],  # left elbow
    [0.62, 0.38],  # right elbow
    [0.36, 0.50],  # left wrist
    [0.64, 0.50],  # right wrist
    [0.45, 0.55],  # left hip
    [0.55, 0.55],  # right hip
    [0.45, 0.72],  # left knee
    [0.55, 0.72],  # right knee
    [0.45, 0.90],  # left ankle
    [0.55, 0.90],  # right ankle
], dtype=np.float32)

# Rows that move with the hips when the figure dips.
_UPPER_BODY = slice(0, 13)


class SyntheticBackend(PoseBackend):
    """Never-failing placeholder backend."""

    name = "synthetic"
    display_name = "Synthetic motion (no ML)"
    kind = BackendKind.FALLBACK
    synthetic = True

    def __init__(self, period_frames: int = 60, amplitude: float = 0.06, confidence: float = 0.9):
        super().__init__()
        self.period_frames = max(int(period_frames), 1)
        self.amplitude = amplitude
        self.confidence = confidence
        self._tick = 0

    async def initialize(self, config: Optional[Dict[str, Any]] = None) -> None:
        self._tick = 0
        self.ready = True

    def generate(self, tick: int) -> np.ndarray:
        """Return the normalized (17, 3) skeleton for *tick*."""
        phase = 2.0 * math.pi * (tick % self.period_frames) / self.period_frames
        dip = self.amplitude * (1.0 - math.cos(phase)) / 2.0

        xy = _TEMPLATE.copy()
        xy[_UPPER_BODY, 1] += dip
        # Knees drift forward/outward as the figure dips.
        xy[13, 0] -= dip * 0.3
        xy[14, 0] += dip * 0.3

        scores = np.full((xy.shape[0], 1), self.confidence, dtype=np.float32)
        return np.hstack([xy, scores])

    async def estimate(self, frame: Frame) -> List[RawDetection]:
        keypoints = self.generate(self._tick)
        self._tick += 1
        return [RawDetection(keypoints=keypoints, layout="coco17", normalized=True)]

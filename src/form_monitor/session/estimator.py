"""
Pose estimator adapter.

Wraps the registry's active backend and normalizes its raw output to the
canonical 17-keypoint layout in frame pixels. A failing backend call is
treated as "no detection" for that frame.
"""

import asyncio
import logging
from typing import List, Optional

import numpy as np

from ..backends.base import RawDetection
from ..backends.registry import BackendRegistry
from ..pipelines.config import MEDIAPIPE_TO_CANONICAL, NUM_KEYPOINTS
from ..pipelines.state import Frame, Keypoint, Pose

logger = logging.getLogger(__name__)


def _canonical_rows(detection: RawDetection) -> np.ndarray:
    """Return a (17, 3) array in canonical order, zero-padded where missing."""
    raw = np.asarray(detection.keypoints, dtype=np.float64)
    if raw.ndim != 2 or raw.shape[1] < 2:
        raise ValueError(f"Keypoints must have shape (K, 2|3), got {raw.shape}.")
    if raw.shape[1] == 2:
        raw = np.hstack([raw, np.ones((raw.shape[0], 1))])

    out = np.zeros((NUM_KEYPOINTS, 3), dtype=np.float64)
    if detection.layout == "coco17":
        n = min(raw.shape[0], NUM_KEYPOINTS)
        out[:n] = raw[:n, :3]
    elif detection.layout == "mediapipe33":
        for src, dst in MEDIAPIPE_TO_CANONICAL.items():
            if src < raw.shape[0]:
                out[dst] = raw[src, :3]
    else:
        raise ValueError(f"Unknown keypoint layout '{detection.layout}'.")
    return out


def normalize_detection(
    detection: RawDetection,
    frame_width: int,
    frame_height: int,
    synthetic: bool = False,
) -> Pose:
    """Convert one raw detection into a canonical Pose.

    Args:
        detection: Backend-native detection.
        frame_width, frame_height: Native frame size, used to scale
            normalized coordinates to pixels.
        synthetic: Flag the pose as placeholder output.

    Returns:
        Pose with exactly 17 keypoints; missing ones have confidence 0.
    """
    rows = _canonical_rows(detection)
    if detection.normalized:
        rows[:, 0] *= frame_width
        rows[:, 1] *= frame_height

    scores = np.nan_to_num(rows[:, 2], nan=0.0)
    scores = np.clip(scores, 0.0, 1.0)
    xy = np.nan_to_num(rows[:, :2], nan=0.0)
    # Missing coordinates make the keypoint unusable.
    scores[~np.isfinite(rows[:, :2]).all(axis=1)] = 0.0

    keypoints = tuple(
        Keypoint(index=i, x=float(xy[i, 0]), y=float(xy[i, 1]), confidence=float(scores[i]))
        for i in range(NUM_KEYPOINTS)
    )
    return Pose(keypoints=keypoints, synthetic=synthetic)


def best_pose(poses: List[Pose]) -> Optional[Pose]:
    """Highest-confidence pose of a frame, or None."""
    if not poses:
        return None
    return max(poses, key=lambda p: p.score)


class PoseEstimator:
    """Adapter between the frame loop and the active backend.

    Calls are serialized: an estimate left running by a stopped session
    settles before the next session's first call reaches the backend.
    """

    def __init__(self, registry: BackendRegistry):
        self.registry = registry
        self._lock = asyncio.Lock()

    async def estimate(self, frame: Frame) -> List[Pose]:
        async with self._lock:
            return await self._estimate(frame)

    async def _estimate(self, frame: Frame) -> List[Pose]:
        backend = self.registry.active
        if backend is None:
            return []
        try:
            detections = await backend.estimate(frame)
            return [
                normalize_detection(d, frame.width, frame.height, synthetic=backend.synthetic)
                for d in detections
            ]
        except Exception as exc:
            logger.warning("Pose estimation failed on frame %d: %s", frame.index, exc)
            return []

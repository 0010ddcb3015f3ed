"""
Stage 1: Geometric Feature Extraction.

Turns one canonical Pose into a FeatureSet of joint angles, symmetry
differences and offsets (frame pixels).

Gating policy: keypoints below ``KEYPOINT_CONFIDENCE_THRESHOLD`` are dropped
before any computation. A feature that needs a dropped keypoint is ``None``.
"""

import logging
from typing import Optional, Sequence

import numpy as np

from .config import (
    HIP_SAG_TORSO_FACTOR,
    KEYPOINT_CONFIDENCE_THRESHOLD,
    KEYPOINT_INDEX,
    MIN_VISIBLE_KEYPOINTS,
)
from .state import FeatureSet, Pose

logger = logging.getLogger(__name__)

_EPS = 1e-6


def calculate_angle(a: Sequence[float], b: Sequence[float], c: Sequence[float]) -> float:
    """Calculate angle at vertex b formed by points a-b-c.

    Uses the dot product formula: cos(θ) = (v1·v2) / (|v1||v2|)
    where v1 = vector from b to a, v2 = vector from b to c.

    Args:
        a, b, c: ``(x, y)`` points.

    Returns:
        float: Angle in degrees (0-180). 0.0 when either ray is degenerate.
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    c = np.asarray(c, dtype=np.float64)

    ba = a - b
    bc = c - b

    magnitude_ba = np.linalg.norm(ba)
    magnitude_bc = np.linalg.norm(bc)
    if magnitude_ba < _EPS or magnitude_bc < _EPS:
        return 0.0

    cos_angle = np.dot(ba, bc) / (magnitude_ba * magnitude_bc)
    cos_angle = np.clip(cos_angle, -1.0, 1.0)
    return float(np.degrees(np.arccos(cos_angle)))


def gated_points(
    pose: Pose,
    threshold: float = KEYPOINT_CONFIDENCE_THRESHOLD,
) -> dict[str, tuple[float, float]]:
    """Return ``name -> (x, y)`` for keypoints at or above *threshold*."""
    return {
        name: (pose.keypoints[idx].x, pose.keypoints[idx].y)
        for name, idx in KEYPOINT_INDEX.items()
        if pose.keypoints[idx].confidence >= threshold
    }


def is_usable_pose(pose: Optional[Pose]) -> bool:
    """A pose is usable when enough keypoints survive gating, both shoulders included."""
    if pose is None:
        return False
    pts = gated_points(pose)
    return (
        len(pts) >= MIN_VISIBLE_KEYPOINTS
        and "left_shoulder" in pts
        and "right_shoulder" in pts
    )


def _angle(pts: dict, a: str, b: str, c: str) -> Optional[float]:
    if a in pts and b in pts and c in pts:
        return calculate_angle(pts[a], pts[b], pts[c])
    return None


def _pair_mean_y(pts: dict, left: str, right: str) -> Optional[float]:
    if left in pts and right in pts:
        return (pts[left][1] + pts[right][1]) / 2.0
    return None


def _pair_diff(pts: dict, left: str, right: str, axis: int) -> Optional[float]:
    if left in pts and right in pts:
        return abs(pts[left][axis] - pts[right][axis])
    return None


def extract_features(pose: Pose) -> FeatureSet:
    """Compute the full FeatureSet for *pose* after confidence gating.

    Args:
        pose: Canonical 17-keypoint pose in frame pixels.

    Returns:
        FeatureSet with ``None`` for every measurement whose inputs were gated.
    """
    pts = gated_points(pose)

    shoulder_avg_y = _pair_mean_y(pts, "left_shoulder", "right_shoulder")
    hip_avg_y = _pair_mean_y(pts, "left_hip", "right_hip")

    torso_length = None
    hip_sag = None
    if shoulder_avg_y is not None and hip_avg_y is not None:
        torso_length = max(abs(shoulder_avg_y - hip_avg_y), _EPS)
        hip_sag = hip_avg_y - (shoulder_avg_y + HIP_SAG_TORSO_FACTOR * torso_length)

    torso_lean = None
    if all(k in pts for k in ("left_shoulder", "right_shoulder", "left_hip", "right_hip")):
        shoulder_center_x = (pts["left_shoulder"][0] + pts["right_shoulder"][0]) / 2.0
        hip_center_x = (pts["left_hip"][0] + pts["right_hip"][0]) / 2.0
        torso_lean = abs(shoulder_center_x - hip_center_x)

    knee_width = _pair_diff(pts, "left_knee", "right_knee", axis=0)
    ankle_width = _pair_diff(pts, "left_ankle", "right_ankle", axis=0)
    knee_ankle_ratio = None
    if knee_width is not None and ankle_width is not None and ankle_width > _EPS:
        knee_ankle_ratio = knee_width / ankle_width

    wrist_width = _pair_diff(pts, "left_wrist", "right_wrist", axis=0)
    shoulder_width = _pair_diff(pts, "left_shoulder", "right_shoulder", axis=0)
    hand_width_ratio = None
    if wrist_width is not None and shoulder_width is not None and shoulder_width > _EPS:
        hand_width_ratio = wrist_width / shoulder_width

    return FeatureSet(
        left_elbow_angle=_angle(pts, "left_shoulder", "left_elbow", "left_wrist"),
        right_elbow_angle=_angle(pts, "right_shoulder", "right_elbow", "right_wrist"),
        left_body_line_angle=_angle(pts, "left_shoulder", "left_hip", "left_ankle"),
        right_body_line_angle=_angle(pts, "right_shoulder", "right_hip", "right_ankle"),
        left_knee_angle=_angle(pts, "left_hip", "left_knee", "left_ankle"),
        right_knee_angle=_angle(pts, "right_hip", "right_knee", "right_ankle"),
        shoulder_levelness=_pair_diff(pts, "left_shoulder", "right_shoulder", axis=1),
        hip_levelness=_pair_diff(pts, "left_hip", "right_hip", axis=1),
        shoulder_avg_y=shoulder_avg_y,
        hip_avg_y=hip_avg_y,
        knee_avg_y=_pair_mean_y(pts, "left_knee", "right_knee"),
        ankle_avg_y=_pair_mean_y(pts, "left_ankle", "right_ankle"),
        torso_length=torso_length,
        hip_sag=hip_sag,
        torso_lean=torso_lean,
        left_wrist_offset=_pair_diff(pts, "left_wrist", "left_shoulder", axis=1),
        right_wrist_offset=_pair_diff(pts, "right_wrist", "right_shoulder", axis=1),
        knee_width=knee_width,
        ankle_width=ankle_width,
        knee_ankle_ratio=knee_ankle_ratio,
        wrist_width=wrist_width,
        shoulder_width=shoulder_width,
        hand_width_ratio=hand_width_ratio,
    )

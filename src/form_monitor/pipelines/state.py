"""
Data model for the live form monitor.

Pydantic models for keypoints, poses, per-frame features, exercise labels,
feedback verdicts and session statistics.
"""

from enum import Enum
from typing import Optional

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .config import KEYPOINT_CONFIDENCE_THRESHOLD, NUM_KEYPOINTS


# ============================================================================
# Frames
# ============================================================================

class Frame(BaseModel):
    """A decoded video frame (BGR, as delivered by OpenCV)."""
    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    image: np.ndarray
    index: int = 0
    timestamp: float = 0.0

    @property
    def width(self) -> int:
        return int(self.image.shape[1])

    @property
    def height(self) -> int:
        return int(self.image.shape[0])


# ============================================================================
# Pose Models
# ============================================================================

class Keypoint(BaseModel):
    """A single body landmark in frame pixels."""
    model_config = ConfigDict(frozen=True)

    index: int = Field(ge=0, lt=NUM_KEYPOINTS, description="Canonical skeleton index")
    x: float
    y: float
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)

    def is_visible(self, threshold: float = KEYPOINT_CONFIDENCE_THRESHOLD) -> bool:
        return self.confidence >= threshold


class Pose(BaseModel):
    """One detected person: exactly 17 canonically ordered keypoints."""
    model_config = ConfigDict(frozen=True)

    keypoints: tuple[Keypoint, ...]
    synthetic: bool = Field(
        default=False,
        description="True when produced by a non-ML placeholder backend",
    )

    @field_validator("keypoints")
    @classmethod
    def _check_layout(cls, keypoints):
        if len(keypoints) != NUM_KEYPOINTS:
            raise ValueError(
                f"Pose requires {NUM_KEYPOINTS} keypoints, got {len(keypoints)}."
            )
        for i, kp in enumerate(keypoints):
            if kp.index != i:
                raise ValueError(f"Keypoint at position {i} has index {kp.index}.")
        return keypoints

    @property
    def score(self) -> float:
        """Mean keypoint confidence."""
        return sum(kp.confidence for kp in self.keypoints) / NUM_KEYPOINTS

    def visible_count(self, threshold: float = KEYPOINT_CONFIDENCE_THRESHOLD) -> int:
        return sum(1 for kp in self.keypoints if kp.is_visible(threshold))


# ============================================================================
# Per-frame Features
# ============================================================================

class FeatureSet(BaseModel):
    """Geometric measurements derived from one Pose.

    Every field is optional: ``None`` means an input keypoint was below the
    confidence threshold, so the measurement was not computed.
    """
    model_config = ConfigDict(frozen=True)

    # Joint angles (degrees)
    left_elbow_angle: Optional[float] = None
    right_elbow_angle: Optional[float] = None
    left_body_line_angle: Optional[float] = None
    right_body_line_angle: Optional[float] = None
    left_knee_angle: Optional[float] = None
    right_knee_angle: Optional[float] = None

    # Symmetry (pixels)
    shoulder_levelness: Optional[float] = None
    hip_levelness: Optional[float] = None

    # Vertical positions / offsets (pixels)
    shoulder_avg_y: Optional[float] = None
    hip_avg_y: Optional[float] = None
    knee_avg_y: Optional[float] = None
    ankle_avg_y: Optional[float] = None
    torso_length: Optional[float] = None
    hip_sag: Optional[float] = None
    torso_lean: Optional[float] = None
    left_wrist_offset: Optional[float] = None
    right_wrist_offset: Optional[float] = None

    # Widths (pixels)
    knee_width: Optional[float] = None
    ankle_width: Optional[float] = None
    knee_ankle_ratio: Optional[float] = None
    wrist_width: Optional[float] = None
    shoulder_width: Optional[float] = None
    hand_width_ratio: Optional[float] = None


# ============================================================================
# Exercise Labels
# ============================================================================

class ExerciseKind(str, Enum):
    PUSH_UP = "pushup"
    SQUAT = "squat"
    GENERIC = "general"
    UNKNOWN = "unknown"
    MANUAL = "manual"


class ExerciseLabel(BaseModel):
    """Tagged exercise label; ``name`` is only meaningful for MANUAL."""
    model_config = ConfigDict(frozen=True)

    kind: ExerciseKind
    name: Optional[str] = None

    @classmethod
    def manual(cls, name: str) -> "ExerciseLabel":
        return cls(kind=ExerciseKind.MANUAL, name=name)

    @property
    def display_name(self) -> Optional[str]:
        if self.kind is ExerciseKind.MANUAL:
            return self.name
        if self.kind is ExerciseKind.UNKNOWN:
            return None
        return self.kind.value


PUSH_UP = ExerciseLabel(kind=ExerciseKind.PUSH_UP)
SQUAT = ExerciseLabel(kind=ExerciseKind.SQUAT)
GENERIC = ExerciseLabel(kind=ExerciseKind.GENERIC)
UNKNOWN = ExerciseLabel(kind=ExerciseKind.UNKNOWN)


# ============================================================================
# Feedback
# ============================================================================

class Severity(str, Enum):
    GOOD = "good"
    WARNING = "warning"
    ERROR = "error"


class ReferenceVideo(BaseModel):
    """Static tutorial link attached to a corrective rule."""
    model_config = ConfigDict(frozen=True)

    title: str
    url: str


class FeedbackResult(BaseModel):
    """Per-frame verdict. Never mutated after creation."""
    model_config = ConfigDict(frozen=True)

    message: str
    severity: Severity
    confidence: float = Field(ge=0.0, le=1.0)
    exercise_type: Optional[str] = None
    reference_video: Optional[ReferenceVideo] = None


# ============================================================================
# Session Statistics
# ============================================================================

class SessionStats(BaseModel):
    """Rolling statistics for one monitoring session."""
    model_config = ConfigDict(frozen=True)

    start_timestamp: Optional[float] = None
    duration_seconds: float = 0.0
    feedback_count: int = 0
    good_form_percentage: float = 0.0
    finalized: bool = False

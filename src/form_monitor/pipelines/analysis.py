"""
Per-frame analysis chain: features -> recognition -> assessment.

Runs synchronously inside one scheduler callback. An unusable pose (too few
confident keypoints) yields no feedback for that frame.
"""

import logging
from typing import NamedTuple, Optional

from .assessment import evaluate_form
from .features import extract_features, is_usable_pose
from .recognition import classify_exercise
from .state import ExerciseLabel, FeatureSet, FeedbackResult, Pose

logger = logging.getLogger(__name__)


class FrameAnalysis(NamedTuple):
    feedback: FeedbackResult
    features: FeatureSet
    label: ExerciseLabel
    detected: ExerciseLabel


def analyze_pose(
    pose: Optional[Pose],
    pinned: Optional[ExerciseLabel] = None,
) -> Optional[FrameAnalysis]:
    """Analyze one pose.

    Args:
        pose: Best pose of the frame, or ``None`` when nothing was detected.
        pinned: Manual label; when set it drives rule selection while the
            auto-classified label is still computed as a diagnostic.

    Returns:
        FrameAnalysis, or ``None`` when the pose is not usable.
    """
    if not is_usable_pose(pose):
        return None

    features = extract_features(pose)
    detected = classify_exercise(features)
    label = pinned if pinned is not None else detected
    feedback = evaluate_form(label, features)

    return FrameAnalysis(feedback=feedback, features=features, label=label, detected=detected)

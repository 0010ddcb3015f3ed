"""
Stage 2: Exercise Recognition.

Heuristic, first-match-wins mapping from a FeatureSet to an ExerciseLabel.
Squat is a reserved label: it has a rule set in the assessment stage but is
only selected through a manual pin.
"""

import logging
from typing import Callable, Optional

from .config import PUSHUP_LEVEL_TOLERANCE_PX, PUSHUP_WRIST_BAND_PX
from .state import (
    GENERIC,
    PUSH_UP,
    SQUAT,
    UNKNOWN,
    ExerciseKind,
    ExerciseLabel,
    FeatureSet,
)

logger = logging.getLogger(__name__)

ClassifierRule = tuple[str, Callable[[FeatureSet], bool], ExerciseLabel]

# Manual names that resolve to a dedicated rule set
MANUAL_ALIASES: dict[str, ExerciseLabel] = {
    "pushup": PUSH_UP,
    "push-up": PUSH_UP,
    "push up": PUSH_UP,
    "pushups": PUSH_UP,
    "squat": SQUAT,
    "squats": SQUAT,
}


def _below(value: Optional[float], limit: float) -> bool:
    return value is not None and value < limit


def _looks_like_pushup(f: FeatureSet) -> bool:
    return (
        _below(f.shoulder_levelness, PUSHUP_LEVEL_TOLERANCE_PX)
        and _below(f.hip_levelness, PUSHUP_LEVEL_TOLERANCE_PX)
        and _below(f.left_wrist_offset, PUSHUP_WRIST_BAND_PX)
        and _below(f.right_wrist_offset, PUSHUP_WRIST_BAND_PX)
    )


def _looks_upright(f: FeatureSet) -> bool:
    if f.shoulder_avg_y is None or f.hip_avg_y is None or f.ankle_avg_y is None:
        return False
    return f.shoulder_avg_y < f.hip_avg_y < f.ankle_avg_y


CLASSIFIER_RULES: list[ClassifierRule] = [
    ("pushup_plank", _looks_like_pushup, PUSH_UP),
    ("upright_stance", _looks_upright, GENERIC),
]


def classify_exercise(features: FeatureSet) -> ExerciseLabel:
    """Return the label of the first matching rule, ``UNKNOWN`` otherwise."""
    for name, predicate, label in CLASSIFIER_RULES:
        if predicate(features):
            logger.debug("Classifier rule '%s' matched -> %s", name, label.kind.value)
            return label
    return UNKNOWN


def resolve_rule_label(label: ExerciseLabel) -> ExerciseLabel:
    """Map a (possibly manual) label to the label whose rule set applies."""
    if label.kind is not ExerciseKind.MANUAL:
        return label
    key = (label.name or "").strip().lower()
    return MANUAL_ALIASES.get(key, GENERIC)

"""
Stage 3: Form Rule Evaluation.

Each exercise owns an ordered rule list. The first rule whose predicate is
true produces the FeedbackResult; when none matches the exercise default
applies. Rule order is the only tie-break.

Confidence values are fixed certainty tiers per rule, not model outputs.
A predicate whose features were gated out (``None``) never matches.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from .config import (
    BODY_LINE_MIN_ANGLE,
    ELBOW_DEEP_BEND_ANGLE,
    ELBOW_LOCKOUT_ANGLE,
    HAND_WIDTH_RATIO,
    KNEE_CAVE_RATIO,
    SHOULDER_LEVEL_TOLERANCE_PX,
    SQUAT_DEPTH_MARGIN_PX,
    SQUAT_KNEE_BENT_ANGLE,
    SQUAT_SHALLOW_MARGIN_PX,
    SQUAT_TORSO_LEAN_PX,
)
from .recognition import resolve_rule_label
from .state import (
    ExerciseKind,
    ExerciseLabel,
    FeatureSet,
    FeedbackResult,
    ReferenceVideo,
    Severity,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FormRule:
    """One ordered form check."""
    name: str
    predicate: Callable[[FeatureSet], bool]
    severity: Severity
    message: str
    confidence: float
    video: Optional[ReferenceVideo] = None


@dataclass(frozen=True)
class RuleSet:
    rules: tuple[FormRule, ...]
    default: FormRule


def _both(left: Optional[float], right: Optional[float], test: Callable[[float], bool]) -> bool:
    return left is not None and right is not None and test(left) and test(right)


def _always(_: FeatureSet) -> bool:
    return True


# ============================================================================
# Push-up
# ============================================================================

def _body_line_broken(f: FeatureSet) -> bool:
    if f.left_body_line_angle is None or f.right_body_line_angle is None:
        return False
    return not _both(
        f.left_body_line_angle, f.right_body_line_angle,
        lambda a: a > BODY_LINE_MIN_ANGLE,
    )


def _hips_sagging(f: FeatureSet) -> bool:
    return f.hip_sag is not None and f.hip_sag > 0


def _elbows_locked_out(f: FeatureSet) -> bool:
    return _both(f.left_elbow_angle, f.right_elbow_angle, lambda a: a > ELBOW_LOCKOUT_ANGLE)


def _elbows_deep_bend(f: FeatureSet) -> bool:
    return _both(f.left_elbow_angle, f.right_elbow_angle, lambda a: a < ELBOW_DEEP_BEND_ANGLE)


def _hands_too_wide(f: FeatureSet) -> bool:
    return f.hand_width_ratio is not None and f.hand_width_ratio > HAND_WIDTH_RATIO


PUSH_UP_RULES = RuleSet(
    rules=(
        FormRule(
            "body_line", _body_line_broken, Severity.WARNING,
            "Keep a straight line from shoulders to ankles", 0.85,
            ReferenceVideo(
                title="Perfect Push-Up Form: How to Keep Your Body Straight",
                url="https://www.youtube.com/watch?v=IODxDxX7oi4",
            ),
        ),
        FormRule(
            "hip_sag", _hips_sagging, Severity.WARNING,
            "Your hips are sagging, brace your core", 0.8,
            ReferenceVideo(
                title="Perfect Push-Up Form: How to Keep Your Body Straight",
                url="https://www.youtube.com/watch?v=IODxDxX7oi4",
            ),
        ),
        FormRule(
            "lockout", _elbows_locked_out, Severity.GOOD,
            "Good plank position at the top", 0.9,
        ),
        FormRule(
            "deep_bend", _elbows_deep_bend, Severity.WARNING,
            "Keep your elbows about 45° from your body", 0.75,
        ),
        FormRule(
            "hand_width", _hands_too_wide, Severity.WARNING,
            "Hands are too wide, place them about shoulder-width apart", 0.8,
            ReferenceVideo(
                title="Push-Up Hand Placement: Finding the Perfect Position",
                url="https://www.youtube.com/watch?v=4dF1DOWzf20",
            ),
        ),
    ),
    default=FormRule("solid", _always, Severity.GOOD, "Solid push-up form", 0.85),
)


# ============================================================================
# Squat
# ============================================================================

def _knees_caving(f: FeatureSet) -> bool:
    return f.knee_ankle_ratio is not None and f.knee_ankle_ratio < KNEE_CAVE_RATIO


def _torso_leaning(f: FeatureSet) -> bool:
    return f.torso_lean is not None and f.torso_lean > SQUAT_TORSO_LEAN_PX


def _deep_enough(f: FeatureSet) -> bool:
    if f.hip_avg_y is None or f.knee_avg_y is None:
        return False
    return f.hip_avg_y >= f.knee_avg_y - SQUAT_DEPTH_MARGIN_PX


def _too_shallow(f: FeatureSet) -> bool:
    if f.hip_avg_y is None or f.knee_avg_y is None:
        return False
    knees = [a for a in (f.left_knee_angle, f.right_knee_angle) if a is not None]
    bending = any(a < SQUAT_KNEE_BENT_ANGLE for a in knees)
    return bending and f.hip_avg_y < f.knee_avg_y - SQUAT_SHALLOW_MARGIN_PX


SQUAT_RULES = RuleSet(
    rules=(
        FormRule(
            "knee_cave", _knees_caving, Severity.ERROR,
            "Keep your knees aligned over your feet, they're caving inward", 0.7,
            ReferenceVideo(
                title="How to Fix Knee Valgus (Knee Cave) During Squats",
                url="https://www.youtube.com/watch?v=ZcA0mIRnJiU",
            ),
        ),
        FormRule(
            "torso_lean", _torso_leaning, Severity.WARNING,
            "Keep your torso more upright, avoid leaning too far forward", 0.75,
            ReferenceVideo(
                title="Perfect Squat Form: How to Keep Your Back Straight",
                url="https://www.youtube.com/watch?v=ultWZbUMPL8",
            ),
        ),
        FormRule(
            "depth", _deep_enough, Severity.GOOD,
            "Excellent squat depth, keep it up", 0.9,
        ),
        FormRule(
            "shallow", _too_shallow, Severity.WARNING,
            "Try to squat deeper, aim to get your hips to knee level", 0.85,
            ReferenceVideo(
                title="How to Improve Squat Depth and Mobility",
                url="https://www.youtube.com/watch?v=zvGr7wXQfwE",
            ),
        ),
    ),
    default=FormRule("solid", _always, Severity.GOOD, "Solid squat form", 0.85),
)


# ============================================================================
# Generic posture
# ============================================================================

def _shoulders_uneven(f: FeatureSet) -> bool:
    return (
        f.shoulder_levelness is not None
        and f.shoulder_levelness >= SHOULDER_LEVEL_TOLERANCE_PX
    )


GENERIC_RULES = RuleSet(
    rules=(
        FormRule(
            "shoulder_level", _shoulders_uneven, Severity.WARNING,
            "Keep your shoulders level and avoid tilting", 0.7,
            ReferenceVideo(
                title="How to Fix Uneven Shoulders and Improve Posture",
                url="https://www.youtube.com/watch?v=FTV6UCh-yhs",
            ),
        ),
    ),
    default=FormRule("level", _always, Severity.GOOD, "Good posture, shoulders level", 0.8),
)


RULE_SETS: dict[ExerciseKind, RuleSet] = {
    ExerciseKind.PUSH_UP: PUSH_UP_RULES,
    ExerciseKind.SQUAT: SQUAT_RULES,
    ExerciseKind.GENERIC: GENERIC_RULES,
    ExerciseKind.UNKNOWN: GENERIC_RULES,
}


def select_rule(rule_set: RuleSet, features: FeatureSet) -> FormRule:
    """Return the first rule whose predicate holds, else the default."""
    for rule in rule_set.rules:
        if rule.predicate(features):
            return rule
    return rule_set.default


def evaluate_form(label: ExerciseLabel, features: FeatureSet) -> FeedbackResult:
    """Evaluate *features* against the rule set for *label*.

    Args:
        label: Classified or manually pinned exercise label.
        features: FeatureSet for the current frame.

    Returns:
        Exactly one FeedbackResult. ``exercise_type`` carries the label's
        display name (the manual name for pinned labels).
    """
    rule_label = resolve_rule_label(label)
    rule_set = RULE_SETS.get(rule_label.kind, GENERIC_RULES)
    rule = select_rule(rule_set, features)
    logger.debug("Rule '%s' fired for %s", rule.name, rule_label.kind.value)

    return FeedbackResult(
        message=rule.message,
        severity=rule.severity,
        confidence=rule.confidence,
        exercise_type=label.display_name,
        reference_video=rule.video,
    )

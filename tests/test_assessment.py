"""Tests for Stage 3 form rule evaluation and the per-frame analysis chain."""

import sys
from pathlib import Path

import numpy as np
import pytest

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from form_monitor.pipelines.analysis import analyze_pose
from form_monitor.pipelines.assessment import (
    GENERIC_RULES,
    PUSH_UP_RULES,
    SQUAT_RULES,
    evaluate_form,
    select_rule,
)
from form_monitor.pipelines.config import KEYPOINT_NAMES
from form_monitor.pipelines.features import extract_features
from form_monitor.pipelines.state import (
    GENERIC,
    PUSH_UP,
    SQUAT,
    UNKNOWN,
    ExerciseLabel,
    FeatureSet,
    Keypoint,
    Pose,
    Severity,
)


# ============================================================================
# Fixtures
# ============================================================================

STANDING = {
    "nose": (320, 60),
    "left_shoulder": (280, 120),
    "right_shoulder": (360, 120),
    "left_elbow": (270, 180),
    "right_elbow": (370, 180),
    "left_wrist": (265, 240),
    "right_wrist": (375, 240),
    "left_hip": (290, 250),
    "right_hip": (350, 250),
    "left_knee": (290, 350),
    "right_knee": (350, 350),
    "left_ankle": (290, 450),
    "right_ankle": (350, 450),
}


def _make_pose(points: dict, confidence: float = 0.9) -> Pose:
    keypoints = []
    for i, name in enumerate(KEYPOINT_NAMES):
        x, y = points.get(name, (0.0, 0.0))
        keypoints.append(
            Keypoint(index=i, x=x, y=y, confidence=confidence if name in points else 0.0)
        )
    return Pose(keypoints=tuple(keypoints))


def _make_pushup_pose(elbow_angle: float) -> Pose:
    """Side-view plank: shoulders, hips and ankles on one horizontal line.

    The forearm is rotated so the shoulder-elbow-wrist angle equals
    *elbow_angle*. Both sides overlap, as seen from the side.
    """
    shoulder, hip, ankle, elbow = (100.0, 200.0), (300.0, 200.0), (500.0, 200.0), (100.0, 300.0)
    phi = np.radians(elbow_angle)
    wrist = (elbow[0] + 100.0 * np.sin(phi), elbow[1] - 100.0 * np.cos(phi))
    points = {"nose": (60.0, 190.0)}
    for side in ("left", "right"):
        points[f"{side}_shoulder"] = shoulder
        points[f"{side}_elbow"] = elbow
        points[f"{side}_wrist"] = wrist
        points[f"{side}_hip"] = hip
        points[f"{side}_knee"] = (400.0, 200.0)
        points[f"{side}_ankle"] = ankle
    return _make_pose(points)


def _with_shoulder_gap(gap: float) -> Pose:
    pts = dict(STANDING)
    pts["right_shoulder"] = (360, 120 + gap)
    return _make_pose(pts)


# ============================================================================
# Test: Rule Ordering
# ============================================================================

class TestRuleSelection:

    def test_first_match_wins(self):
        # Broken body line and sagging hips both hold; body line comes first.
        f = FeatureSet(left_body_line_angle=120.0, right_body_line_angle=120.0, hip_sag=40.0)
        assert select_rule(PUSH_UP_RULES, f).name == "body_line"

    def test_default_when_nothing_matches(self):
        assert select_rule(PUSH_UP_RULES, FeatureSet()) is PUSH_UP_RULES.default
        assert select_rule(SQUAT_RULES, FeatureSet()) is SQUAT_RULES.default
        assert select_rule(GENERIC_RULES, FeatureSet()) is GENERIC_RULES.default

    def test_one_straight_side_is_not_enough(self):
        f = FeatureSet(left_body_line_angle=170.0, right_body_line_angle=150.0)
        assert select_rule(PUSH_UP_RULES, f).name == "body_line"

    def test_deterministic(self):
        f = extract_features(_make_pushup_pose(75.0))
        results = {evaluate_form(PUSH_UP, f) for _ in range(5)}
        assert len(results) == 1


# ============================================================================
# Test: Push-up Rules
# ============================================================================

class TestPushUpRules:

    def test_lockout_bend_lockout_sequence(self):
        verdicts = [
            evaluate_form(PUSH_UP, extract_features(_make_pushup_pose(angle)))
            for angle in (170.0, 75.0, 170.0)
        ]
        assert [v.severity for v in verdicts] == [Severity.GOOD, Severity.WARNING, Severity.GOOD]
        assert verdicts[0].message == "Good plank position at the top"
        assert verdicts[1].message == "Keep your elbows about 45° from your body"
        assert verdicts[1].reference_video is None
        assert verdicts[0].confidence == pytest.approx(0.9)
        assert verdicts[1].confidence == pytest.approx(0.75)

    def test_mid_range_is_default(self):
        fb = evaluate_form(PUSH_UP, extract_features(_make_pushup_pose(120.0)))
        assert fb.message == "Solid push-up form"
        assert fb.severity is Severity.GOOD
        assert fb.exercise_type == "pushup"

    def test_hips_below_shoulders_sag(self):
        fb = evaluate_form(PUSH_UP, FeatureSet(hip_sag=12.0))
        assert fb.severity is Severity.WARNING
        assert "hips" in fb.message

    def test_piked_body_line(self):
        f = FeatureSet(left_body_line_angle=140.0, right_body_line_angle=142.0)
        fb = evaluate_form(PUSH_UP, f)
        assert fb.message == "Keep a straight line from shoulders to ankles"
        assert fb.confidence == pytest.approx(0.85)

    def test_hands_too_wide(self):
        f = extract_features(_make_pose(STANDING))
        assert f.hand_width_ratio == pytest.approx(110.0 / 80.0)
        fb = evaluate_form(PUSH_UP, FeatureSet(hand_width_ratio=f.hand_width_ratio))
        assert fb.severity is Severity.WARNING
        assert fb.message.startswith("Hands are too wide")
        assert fb.confidence == pytest.approx(0.8)
        assert "4dF1DOWzf20" in fb.reference_video.url

    def test_deep_bend_outranks_hand_width(self):
        f = FeatureSet(left_elbow_angle=70.0, right_elbow_angle=70.0, hand_width_ratio=1.6)
        assert select_rule(PUSH_UP_RULES, f).name == "deep_bend"

    def test_shoulder_width_hands_are_default(self):
        fb = evaluate_form(PUSH_UP, FeatureSet(hand_width_ratio=1.1))
        assert fb.message == "Solid push-up form"


# ============================================================================
# Test: Squat Rules
# ============================================================================

class TestSquatRules:

    def _squat_points(self, hip_y=250.0, knee_x=(290.0, 350.0), ankle_x=(350.0, 410.0)):
        return {
            "nose": (320, 60),
            "left_shoulder": (290, 120),
            "right_shoulder": (350, 120),
            "left_hip": (290, hip_y),
            "right_hip": (350, hip_y),
            "left_knee": (knee_x[0], 350),
            "right_knee": (knee_x[1], 350),
            "left_ankle": (ankle_x[0], 440),
            "right_ankle": (ankle_x[1], 440),
        }

    def test_knee_cave_is_error(self):
        pts = self._squat_points(knee_x=(300.0, 340.0), ankle_x=(270.0, 370.0))
        fb = evaluate_form(SQUAT, extract_features(_make_pose(pts)))
        assert fb.severity is Severity.ERROR
        assert fb.confidence == pytest.approx(0.7)

    def test_torso_lean(self):
        pts = self._squat_points()
        pts["left_shoulder"] = (370, 120)
        pts["right_shoulder"] = (430, 120)
        fb = evaluate_form(SQUAT, extract_features(_make_pose(pts)))
        assert fb.severity is Severity.WARNING
        assert "upright" in fb.message

    def test_depth_reached(self):
        fb = evaluate_form(SQUAT, extract_features(_make_pose(self._squat_points(hip_y=340.0))))
        assert fb.message == "Excellent squat depth, keep it up"
        assert fb.severity is Severity.GOOD

    def test_shallow_with_bent_knees(self):
        fb = evaluate_form(SQUAT, extract_features(_make_pose(self._squat_points(hip_y=250.0))))
        assert fb.severity is Severity.WARNING
        assert "deeper" in fb.message
        assert fb.confidence == pytest.approx(0.85)

    def test_standing_straight_is_default(self):
        fb = evaluate_form(SQUAT, extract_features(_make_pose(STANDING)))
        assert fb.message == "Solid squat form"


# ============================================================================
# Test: Generic Rules
# ============================================================================

class TestGenericRules:

    def test_level_shoulders_good(self):
        fb = evaluate_form(GENERIC, extract_features(_with_shoulder_gap(5)))
        assert fb.severity is Severity.GOOD
        assert fb.message == "Good posture, shoulders level"

    def test_tilted_shoulders_warning(self):
        fb = evaluate_form(GENERIC, extract_features(_with_shoulder_gap(50)))
        assert fb.severity is Severity.WARNING
        assert fb.confidence == pytest.approx(0.7)
        assert "shoulder" in fb.message.lower()

    def test_unknown_uses_generic_rules(self):
        fb = evaluate_form(UNKNOWN, extract_features(_with_shoulder_gap(50)))
        assert fb.severity is Severity.WARNING
        assert fb.exercise_type is None


# ============================================================================
# Test: Analysis Chain
# ============================================================================

class TestAnalyzePose:

    def test_unusable_pose_yields_nothing(self):
        assert analyze_pose(None) is None
        pts = {k: STANDING[k] for k in ("nose", "left_shoulder", "right_shoulder")}
        assert analyze_pose(_make_pose(pts)) is None

    def test_auto_classified_standing(self):
        result = analyze_pose(_with_shoulder_gap(50))
        assert result.detected == GENERIC
        assert result.label == GENERIC
        assert result.feedback.exercise_type == "general"
        assert result.feedback.severity is Severity.WARNING

    def test_pinned_label_drives_rules(self):
        result = analyze_pose(_make_pose(STANDING), pinned=ExerciseLabel.manual("Squat"))
        assert result.detected == GENERIC
        assert result.feedback.message == "Solid squat form"
        assert result.feedback.exercise_type == "Squat"

    def test_unknown_manual_name_uses_generic_rules(self):
        result = analyze_pose(_with_shoulder_gap(50), pinned=ExerciseLabel.manual("yoga"))
        assert result.feedback.message == "Keep your shoulders level and avoid tilting"
        assert result.feedback.exercise_type == "yoga"

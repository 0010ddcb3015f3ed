"""Tests for the OpenCV preview overlay (drawing only, no window)."""

import sys
from pathlib import Path

import numpy as np

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from form_monitor.pipelines.state import FeedbackResult, Frame, Keypoint, Pose, Severity
from form_monitor.session.overlay import OpenCVOverlay


def _make_frame() -> Frame:
    return Frame(image=np.zeros((240, 320, 3), dtype=np.uint8))


def _make_pose(confidence: float, synthetic: bool = False) -> Pose:
    keypoints = tuple(
        Keypoint(index=i, x=40.0 + 10 * i, y=60.0 + 8 * i, confidence=confidence)
        for i in range(17)
    )
    return Pose(keypoints=keypoints, synthetic=synthetic)


class TestOpenCVOverlay:

    def test_draw_leaves_input_untouched(self):
        frame = _make_frame()
        canvas = OpenCVOverlay(window=None).draw(frame, _make_pose(0.9), None)
        assert canvas.shape == frame.image.shape
        assert canvas.any()
        assert not frame.image.any()

    def test_low_confidence_keypoints_not_drawn(self):
        canvas = OpenCVOverlay(window=None).draw(_make_frame(), _make_pose(0.2), None)
        assert not canvas.any()

    def test_feedback_bar(self):
        feedback = FeedbackResult(message="Good posture", severity=Severity.GOOD, confidence=0.8)
        canvas = OpenCVOverlay(window=None).draw(_make_frame(), None, feedback)
        assert canvas[:40].any()
        assert not canvas[60:].any()

    def test_render_without_window_never_quits(self):
        calls = []
        overlay = OpenCVOverlay(window=None, on_quit=lambda: calls.append(1))
        overlay.render(_make_frame(), _make_pose(0.9), None)
        overlay.close()
        assert calls == []

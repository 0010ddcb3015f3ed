"""OpenCV preview overlay: confident keypoints plus the current feedback line."""

import logging
from typing import Callable, Optional

from ..pipelines.config import KEYPOINT_CONFIDENCE_THRESHOLD
from ..pipelines.state import FeedbackResult, Frame, Pose, Severity

logger = logging.getLogger(__name__)

# BGR
_SEVERITY_COLORS = {
    Severity.GOOD: (80, 200, 80),
    Severity.WARNING: (0, 190, 255),
    Severity.ERROR: (60, 60, 230),
}

SKELETON_EDGES = [
    (5, 6), (5, 7), (7, 9), (6, 8), (8, 10),
    (5, 11), (6, 12), (11, 12),
    (11, 13), (13, 15), (12, 14), (14, 16),
]


class OpenCVOverlay:
    """Draws onto a copy of the frame and shows it in a window.

    Args:
        window: Window title; ``None`` draws without showing.
        on_quit: Called when the user presses ``q`` or ``Esc``.
    """

    def __init__(self, window: Optional[str] = "Form Monitor", on_quit: Optional[Callable[[], None]] = None):
        self.window = window
        self.on_quit = on_quit

    def draw(self, frame: Frame, pose: Optional[Pose], feedback: Optional[FeedbackResult]):
        import cv2

        canvas = frame.image.copy()
        if pose is not None:
            kps = pose.keypoints
            for a, b in SKELETON_EDGES:
                if kps[a].confidence > KEYPOINT_CONFIDENCE_THRESHOLD and kps[b].confidence > KEYPOINT_CONFIDENCE_THRESHOLD:
                    cv2.line(canvas, (int(kps[a].x), int(kps[a].y)), (int(kps[b].x), int(kps[b].y)), (255, 255, 255), 2)
            for kp in kps:
                if kp.confidence > KEYPOINT_CONFIDENCE_THRESHOLD:
                    center = (int(kp.x), int(kp.y))
                    cv2.circle(canvas, center, 8, (0, 255, 0), -1)
                    cv2.circle(canvas, center, 8, (255, 255, 255), 2)
            if pose.synthetic:
                cv2.putText(canvas, "SYNTHETIC", (10, canvas.shape[0] - 15),
                            cv2.FONT_HERSHEY_SIMPLEX, 0.6, (0, 0, 255), 2)

        if feedback is not None:
            color = _SEVERITY_COLORS[feedback.severity]
            text = f"{feedback.message} ({feedback.confidence:.0%})"
            cv2.rectangle(canvas, (0, 0), (canvas.shape[1], 40), (0, 0, 0), -1)
            cv2.putText(canvas, text, (10, 28), cv2.FONT_HERSHEY_SIMPLEX, 0.7, color, 2)
        return canvas

    def render(self, frame: Frame, pose: Optional[Pose], feedback: Optional[FeedbackResult]) -> None:
        canvas = self.draw(frame, pose, feedback)
        if self.window is None:
            return

        import cv2

        cv2.imshow(self.window, canvas)
        key = cv2.waitKey(1) & 0xFF
        if key in (ord("q"), 27) and self.on_quit is not None:
            self.on_quit()

    def close(self) -> None:
        if self.window is None:
            return
        import cv2

        cv2.destroyWindow(self.window)

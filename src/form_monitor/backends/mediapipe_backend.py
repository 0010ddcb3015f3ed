"""
MediaPipe PoseLandmarker backends (GPU and CPU delegates).

Outputs the 33-landmark MediaPipe layout in normalized coordinates; the
estimator adapter maps it onto the canonical 17-keypoint skeleton.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np

from ..pipelines.config import POSE_LANDMARKER_MODEL_PATH
from ..pipelines.state import Frame
from .base import BackendKind, PoseBackend, RawDetection

logger = logging.getLogger(__name__)


class MediaPipeBackend(PoseBackend):
    """PoseLandmarker (Tasks API) running in VIDEO mode."""

    name = "mediapipe_cpu"
    display_name = "MediaPipe Pose (CPU)"
    kind = BackendKind.STANDARD
    use_gpu = False

    def __init__(self, model_path: Optional[Path] = None):
        super().__init__()
        self.model_path = Path(model_path or POSE_LANDMARKER_MODEL_PATH)
        self._landmarker = None
        self._timestamp_ms = 0

    async def initialize(self, config: Optional[Dict[str, Any]] = None) -> None:
        if self.ready:
            return
        config = config or {}
        model_path = Path(config.get("model_path", self.model_path))
        if not model_path.exists():
            raise FileNotFoundError(
                f"Pose landmarker model not found at {model_path}. "
                "Download from: https://storage.googleapis.com/mediapipe-models/"
                "pose_landmarker/pose_landmarker_full/float16/latest/pose_landmarker_full.task"
            )

        try:
            from mediapipe.tasks import python as mp_python
            from mediapipe.tasks.python import vision
        except ImportError as exc:
            raise ImportError(
                "mediapipe is required. Install with: pip install mediapipe"
            ) from exc

        delegate = (
            mp_python.BaseOptions.Delegate.GPU
            if self.use_gpu
            else mp_python.BaseOptions.Delegate.CPU
        )
        options = vision.PoseLandmarkerOptions(
            base_options=mp_python.BaseOptions(
                model_asset_path=str(model_path),
                delegate=delegate,
            ),
            running_mode=vision.RunningMode.VIDEO,
            num_poses=int(config.get("num_poses", 1)),
            min_pose_detection_confidence=float(config.get("min_detection_confidence", 0.5)),
            min_tracking_confidence=float(config.get("min_tracking_confidence", 0.5)),
        )
        self._landmarker = await self._run_blocking(
            vision.PoseLandmarker.create_from_options, options
        )
        self._timestamp_ms = 0
        self.ready = True
        logger.info("%s ready (model=%s)", self.display_name, model_path)

    def _detect(self, frame: Frame) -> List[RawDetection]:
        import cv2
        import mediapipe as mp

        rgb = cv2.cvtColor(frame.image, cv2.COLOR_BGR2RGB)
        mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=rgb)
        # VIDEO mode requires strictly increasing timestamps.
        self._timestamp_ms = max(self._timestamp_ms + 1, int(frame.timestamp * 1000))
        result = self._landmarker.detect_for_video(mp_image, self._timestamp_ms)

        detections = []
        for landmarks in result.pose_landmarks or []:
            arr = np.array(
                [[lm.x, lm.y, lm.visibility if lm.visibility is not None else 0.0]
                 for lm in landmarks],
                dtype=np.float32,
            )
            detections.append(RawDetection(keypoints=arr, layout="mediapipe33", normalized=True))
        return detections

    async def estimate(self, frame: Frame) -> List[RawDetection]:
        if self._landmarker is None:
            raise RuntimeError(f"{self.name} backend is not initialized.")
        return await self._run_blocking(self._detect, frame)

    def close(self) -> None:
        if self._landmarker is not None:
            self._landmarker.close()
            self._landmarker = None
        super().close()


class MediaPipeGpuBackend(MediaPipeBackend):
    """Same landmarker with the GPU delegate (not available on every platform)."""

    name = "mediapipe_gpu"
    display_name = "MediaPipe Pose (GPU)"
    kind = BackendKind.ACCELERATED
    use_gpu = True

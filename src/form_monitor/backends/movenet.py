"""
MoveNet SinglePose backend running a TFLite model through TensorFlow.

MoveNet already emits the canonical 17-keypoint COCO layout as
``[y, x, score]`` in normalized coordinates.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np

from ..pipelines.config import MOVENET_MODEL_PATH
from ..pipelines.state import Frame
from .base import BackendKind, PoseBackend, RawDetection

logger = logging.getLogger(__name__)


class MoveNetBackend(PoseBackend):
    name = "movenet"
    display_name = "MoveNet Lightning (TFLite)"
    kind = BackendKind.STANDARD

    def __init__(self, model_path: Optional[Path] = None, num_threads: int = 2):
        super().__init__()
        self.model_path = Path(model_path or MOVENET_MODEL_PATH)
        self.num_threads = num_threads
        self._interpreter = None
        self._input = None
        self._output = None

    async def initialize(self, config: Optional[Dict[str, Any]] = None) -> None:
        if self.ready:
            return
        config = config or {}
        model_path = Path(config.get("model_path", self.model_path))
        if not model_path.exists():
            raise FileNotFoundError(
                f"MoveNet model not found at {model_path}. "
                "Download a singlepose-lightning .tflite from TensorFlow Hub / Kaggle Models."
            )

        import tensorflow as tf

        interpreter = tf.lite.Interpreter(
            model_path=str(model_path),
            num_threads=int(config.get("num_threads", self.num_threads)),
        )
        interpreter.allocate_tensors()
        self._interpreter = interpreter
        self._input = interpreter.get_input_details()[0]
        self._output = interpreter.get_output_details()[0]
        self.ready = True
        logger.info(
            "%s ready (input=%s, dtype=%s)",
            self.display_name, tuple(self._input["shape"]), self._input["dtype"],
        )

    def _infer(self, frame: Frame) -> List[RawDetection]:
        import cv2

        _, height, width, _ = self._input["shape"]
        rgb = cv2.cvtColor(frame.image, cv2.COLOR_BGR2RGB)
        resized = cv2.resize(rgb, (int(width), int(height)))
        tensor = np.expand_dims(resized, axis=0).astype(self._input["dtype"])

        self._interpreter.set_tensor(self._input["index"], tensor)
        self._interpreter.invoke()
        out = self._interpreter.get_tensor(self._output["index"])  # (1, 1, 17, 3)

        yxs = np.asarray(out, dtype=np.float32).reshape(-1, 3)
        keypoints = yxs[:, [1, 0, 2]]  # -> x, y, score
        return [RawDetection(keypoints=keypoints, layout="coco17", normalized=True)]

    async def estimate(self, frame: Frame) -> List[RawDetection]:
        if self._interpreter is None:
            raise RuntimeError("movenet backend is not initialized.")
        return await self._run_blocking(self._infer, frame)

    def close(self) -> None:
        self._interpreter = None
        super().close()

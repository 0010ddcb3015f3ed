"""
Frame sources.

A frame source is opened once per session, read once per cycle and released
on stop. ``read()`` returns ``None`` when no new frame is available.
"""

import logging
import time
from pathlib import Path
from typing import Iterable, List, Optional, Protocol

import numpy as np

from ..pipelines.config import CAMERA_HEIGHT, CAMERA_INDEX, CAMERA_WIDTH
from ..pipelines.state import Frame

logger = logging.getLogger(__name__)


class FrameSourceError(RuntimeError):
    """The frame source could not be acquired (no camera, permission, ...)."""


class FrameSource(Protocol):
    def open(self) -> None:
        ...

    def read(self) -> Optional[Frame]:
        ...

    def release(self) -> None:
        ...


class CameraFrameSource:
    """OpenCV ``VideoCapture`` on a local camera or a video file."""

    def __init__(
        self,
        device=CAMERA_INDEX,
        width: int = CAMERA_WIDTH,
        height: int = CAMERA_HEIGHT,
    ):
        self.device = device
        self.width = width
        self.height = height
        self._capture = None
        self._index = 0
        self.exhausted = False

    @property
    def is_open(self) -> bool:
        return self._capture is not None

    def open(self) -> None:
        import cv2

        capture = cv2.VideoCapture(self.device)
        if not capture.isOpened():
            capture.release()
            raise FrameSourceError(f"Could not open video source {self.device!r}.")
        if isinstance(self.device, int):
            capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
            capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        self._capture = capture
        self._index = 0
        self.exhausted = False
        logger.info(
            "Opened video source %r (%dx%d)",
            self.device,
            int(capture.get(cv2.CAP_PROP_FRAME_WIDTH)),
            int(capture.get(cv2.CAP_PROP_FRAME_HEIGHT)),
        )

    def read(self) -> Optional[Frame]:
        if self._capture is None:
            return None
        ok, image = self._capture.read()
        if not ok or image is None:
            # Cameras drop frames; a file at EOF stays empty.
            if isinstance(self.device, str):
                self.exhausted = True
            return None
        frame = Frame(image=image, index=self._index, timestamp=time.monotonic())
        self._index += 1
        return frame

    def release(self) -> None:
        if self._capture is not None:
            self._capture.release()
            self._capture = None
            logger.info("Released video source %r", self.device)


class VideoFileFrameSource(CameraFrameSource):
    def __init__(self, path):
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Video file not found: {path}")
        super().__init__(device=str(path))


class StaticFrameSource:
    """Replays in-memory images; loops when ``loop`` is set."""

    def __init__(self, images: Iterable[np.ndarray], loop: bool = True):
        self.images: List[np.ndarray] = list(images)
        if not self.images:
            raise ValueError("StaticFrameSource needs at least one image.")
        self.loop = loop
        self.opened = False
        self.released = False
        self.exhausted = False
        self._index = 0

    @classmethod
    def blank(cls, width: int = 640, height: int = 480) -> "StaticFrameSource":
        return cls([np.zeros((height, width, 3), dtype=np.uint8)])

    def open(self) -> None:
        self.opened = True
        self.released = False
        self._index = 0

    def read(self) -> Optional[Frame]:
        if not self.opened:
            return None
        if self._index >= len(self.images) and not self.loop:
            self.exhausted = True
            return None
        image = self.images[self._index % len(self.images)]
        frame = Frame(image=image, index=self._index, timestamp=time.monotonic())
        self._index += 1
        return frame

    def release(self) -> None:
        self.opened = False
        self.released = True

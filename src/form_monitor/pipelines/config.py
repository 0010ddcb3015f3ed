"""
Configuration constants for the live form monitor.

Centralizes model paths, skeleton layout, rule thresholds, trial limits and
environment variable loading.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Project paths
# ---------------------------------------------------------------------------
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent.parent
_ENV_PATH = PROJECT_ROOT / ".env"
load_dotenv(_ENV_PATH)

DEFAULT_CONFIG_PATH = PROJECT_ROOT / "config" / "monitor.yaml"
MODELS_DIR = Path(os.environ.get("FORM_MONITOR_MODELS_DIR", str(PROJECT_ROOT / "models")))
DATA_DIR = Path(
    os.environ.get("FORM_MONITOR_DATA_DIR", str(Path.home() / ".form_monitor"))
)

# ---------------------------------------------------------------------------
# Model paths
# ---------------------------------------------------------------------------
# Download from:
#   https://storage.googleapis.com/mediapipe-models/pose_landmarker/pose_landmarker_full/float16/latest/pose_landmarker_full.task
POSE_LANDMARKER_MODEL_PATH = Path(
    os.environ.get(
        "FORM_MONITOR_POSE_LANDMARKER_MODEL",
        str(MODELS_DIR / "pose_landmarker_full.task"),
    )
)
# MoveNet SinglePose Lightning (int8 / float16 TFLite, 192x192 input).
MOVENET_MODEL_PATH = Path(
    os.environ.get(
        "FORM_MONITOR_MOVENET_MODEL",
        str(MODELS_DIR / "movenet_singlepose_lightning.tflite"),
    )
)

# ---------------------------------------------------------------------------
# Canonical skeleton (COCO / MoveNet order)
# ---------------------------------------------------------------------------
NUM_KEYPOINTS: int = 17

KEYPOINT_NAMES: list[str] = [
    "nose",
    "left_eye",
    "right_eye",
    "left_ear",
    "right_ear",
    "left_shoulder",
    "right_shoulder",
    "left_elbow",
    "right_elbow",
    "left_wrist",
    "right_wrist",
    "left_hip",
    "right_hip",
    "left_knee",
    "right_knee",
    "left_ankle",
    "right_ankle",
]

KEYPOINT_INDEX: dict[str, int] = {name: i for i, name in enumerate(KEYPOINT_NAMES)}

# MediaPipe 33-landmark index -> canonical index
MEDIAPIPE_TO_CANONICAL: dict[int, int] = {
    0: 0,    # nose
    2: 1,    # left eye
    5: 2,    # right eye
    7: 3,    # left ear
    8: 4,    # right ear
    11: 5,   # left shoulder
    12: 6,   # right shoulder
    13: 7,   # left elbow
    14: 8,   # right elbow
    15: 9,   # left wrist
    16: 10,  # right wrist
    23: 11,  # left hip
    24: 12,  # right hip
    25: 13,  # left knee
    26: 14,  # right knee
    27: 15,  # left ankle
    28: 16,  # right ankle
}

# ---------------------------------------------------------------------------
# Keypoint gating
# ---------------------------------------------------------------------------
KEYPOINT_CONFIDENCE_THRESHOLD: float = 0.3
MIN_VISIBLE_KEYPOINTS: int = 5

# ---------------------------------------------------------------------------
# Exercise classification thresholds (pixels)
# ---------------------------------------------------------------------------
PUSHUP_LEVEL_TOLERANCE_PX: float = 30.0
PUSHUP_WRIST_BAND_PX: float = 80.0

# ---------------------------------------------------------------------------
# Form rule thresholds
# ---------------------------------------------------------------------------
BODY_LINE_MIN_ANGLE: float = 160.0
HIP_SAG_TORSO_FACTOR: float = 0.6
ELBOW_LOCKOUT_ANGLE: float = 160.0
ELBOW_DEEP_BEND_ANGLE: float = 80.0
HAND_WIDTH_RATIO: float = 1.3
SHOULDER_LEVEL_TOLERANCE_PX: float = 20.0

KNEE_CAVE_RATIO: float = 0.7
SQUAT_TORSO_LEAN_PX: float = 50.0
SQUAT_DEPTH_MARGIN_PX: float = 20.0
SQUAT_SHALLOW_MARGIN_PX: float = 30.0
SQUAT_KNEE_BENT_ANGLE: float = 160.0

# ---------------------------------------------------------------------------
# Backends
# ---------------------------------------------------------------------------
FALLBACK_BACKEND: str = "synthetic"
PREFERRED_BACKEND: str = os.environ.get("FORM_MONITOR_PREFERRED_BACKEND", "mediapipe_gpu")

# ---------------------------------------------------------------------------
# Access gate
# ---------------------------------------------------------------------------
TRIAL_COUNTER_KEY: str = "workout_monitor_trials"
TRIAL_LIMIT: int = int(os.environ.get("FORM_MONITOR_TRIAL_LIMIT", "2"))
TRIAL_COUNTER_PATH = Path(
    os.environ.get("FORM_MONITOR_TRIAL_COUNTER", str(DATA_DIR / "trials.json"))
)

# ---------------------------------------------------------------------------
# Frame source / loop
# ---------------------------------------------------------------------------
CAMERA_INDEX: int = int(os.environ.get("FORM_MONITOR_CAMERA_INDEX", "0"))
CAMERA_WIDTH: int = 1280
CAMERA_HEIGHT: int = 720
_max_fps = os.environ.get("FORM_MONITOR_MAX_FPS", "")
MAX_FPS: float | None = float(_max_fps) if _max_fps else None

"""
Configuration file loading.

``MonitorSettings`` defaults come from ``pipelines.config`` (and therefore
from the environment / ``.env``); a YAML file may override any of them.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field

from ..pipelines.config import (
    CAMERA_HEIGHT,
    CAMERA_INDEX,
    CAMERA_WIDTH,
    DEFAULT_CONFIG_PATH,
    MAX_FPS,
    MOVENET_MODEL_PATH,
    POSE_LANDMARKER_MODEL_PATH,
    PREFERRED_BACKEND,
    TRIAL_COUNTER_PATH,
    TRIAL_LIMIT,
)

logger = logging.getLogger(__name__)


def load_config(config_path) -> Dict:
    """
    Loads a configuration mapping from a YAML file.

    Args:
        config_path: Path to the YAML configuration file.

    Returns:
        Dict: The loaded configuration (empty for an empty file).
    """
    with open(config_path, "r") as f:
        config = yaml.safe_load(f)
    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ValueError(f"Config file {config_path} must contain a mapping.")
    return config


class MonitorSettings(BaseModel):
    preferred_backend: str = Field(PREFERRED_BACKEND, description="Backend selected on initialize")
    trial_limit: int = Field(TRIAL_LIMIT, ge=0, description="Free sessions for unauthenticated callers")
    trial_counter_path: Path = Field(TRIAL_COUNTER_PATH, description="JSON file holding the trial counter")
    camera_index: int = CAMERA_INDEX
    camera_width: int = Field(CAMERA_WIDTH, gt=0)
    camera_height: int = Field(CAMERA_HEIGHT, gt=0)
    max_fps: Optional[float] = Field(MAX_FPS, gt=0, description="Cycle rate cap; None = unpaced")
    pose_landmarker_model: Path = POSE_LANDMARKER_MODEL_PATH
    movenet_model: Path = MOVENET_MODEL_PATH
    backends: Dict[str, Dict[str, Any]] = Field(
        default_factory=dict, description="Per-backend initialize() options keyed by backend name"
    )

    def backend_configs(self) -> Dict[str, Dict[str, Any]]:
        """Per-backend configs with the model paths filled in."""
        configs = {name: dict(options) for name, options in self.backends.items()}
        for name in ("mediapipe_gpu", "mediapipe_cpu"):
            configs.setdefault(name, {}).setdefault("model_path", str(self.pose_landmarker_model))
        configs.setdefault("movenet", {}).setdefault("model_path", str(self.movenet_model))
        return configs


def load_settings(path=None) -> MonitorSettings:
    """Build settings from defaults, overlaid with the YAML file at *path*.

    Without *path* the default ``config/monitor.yaml`` is used when present.
    An explicit *path* that does not exist raises ``FileNotFoundError``.
    """
    if path is None:
        path = DEFAULT_CONFIG_PATH
        if not Path(path).exists():
            return MonitorSettings()
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    overrides = load_config(path)
    logger.info("Loaded monitor settings from %s", path)
    return MonitorSettings(**overrides)

"""Tests for YAML settings loading."""

import sys
from pathlib import Path

import pytest
import yaml

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from form_monitor.utils.io_utils import MonitorSettings, load_config, load_settings


class TestLoadSettings:

    def test_overrides_from_yaml(self, tmp_path):
        path = tmp_path / "monitor.yaml"
        path.write_text(yaml.safe_dump({
            "preferred_backend": "movenet",
            "trial_limit": 5,
            "max_fps": 15,
            "backends": {"movenet": {"num_threads": 4}},
        }))
        settings = load_settings(path)
        assert settings.preferred_backend == "movenet"
        assert settings.trial_limit == 5
        assert settings.max_fps == 15.0
        assert settings.backend_configs()["movenet"]["num_threads"] == 4

    def test_missing_explicit_file(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="Config file not found"):
            load_settings(tmp_path / "absent.yaml")

    def test_invalid_value_rejected(self, tmp_path):
        path = tmp_path / "monitor.yaml"
        path.write_text("trial_limit: -1\n")
        with pytest.raises(ValueError):
            load_settings(path)

    def test_repository_default_file_loads(self):
        settings = load_settings(PROJECT_ROOT / "config" / "monitor.yaml")
        assert settings.trial_limit == 2
        assert settings.camera_width == 1280

    def test_backend_configs_carry_model_paths(self):
        settings = MonitorSettings(
            pose_landmarker_model=Path("/models/pose.task"),
            movenet_model=Path("/models/movenet.tflite"),
        )
        configs = settings.backend_configs()
        assert configs["mediapipe_gpu"]["model_path"] == str(Path("/models/pose.task"))
        assert configs["mediapipe_cpu"]["model_path"] == str(Path("/models/pose.task"))
        assert configs["movenet"]["model_path"] == str(Path("/models/movenet.tflite"))


class TestLoadConfig:

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_config(path) == {}

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ValueError, match="mapping"):
            load_config(path)

"""Tests for the live monitor command line."""

import sys
from pathlib import Path

import yaml

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from form_monitor.scripts.live_monitor import build_parser, main


def test_parser_defaults():
    args = build_parser().parse_args([])
    assert args.camera is None
    assert args.video is None
    assert args.authenticated is False
    assert args.no_window is False


def test_parser_options():
    args = build_parser().parse_args(
        ["--camera", "1", "--exercise", "squat", "--max-fps", "12.5", "--no-window"]
    )
    assert args.camera == 1
    assert args.exercise == "squat"
    assert args.max_fps == 12.5
    assert args.no_window


def test_missing_video_fails_to_start(tmp_path, capsys):
    config = tmp_path / "monitor.yaml"
    config.write_text(yaml.safe_dump({
        "trial_counter_path": str(tmp_path / "trials.json"),
        "preferred_backend": "synthetic",
    }))
    code = main([
        "--config", str(config),
        "--video", str(tmp_path / "missing.mp4"),
        "--no-window",
    ])
    assert code == 1
    assert "camera_unavailable" in capsys.readouterr().err
    assert not (tmp_path / "trials.json").exists()

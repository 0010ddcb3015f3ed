"""Live exercise-form monitor: pose estimation to per-frame form feedback."""

__version__ = "0.1.0"

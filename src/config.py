"""Configuration module for demscene.

Centralizes data paths and default scene settings.
"""
from pathlib import Path

# Project root
PROJECT_ROOT = Path(__file__).parent.parent

# Data directories
DATA_DIR = PROJECT_ROOT / "data"
OUTPUT_DIR = PROJECT_ROOT / "output"

# Default scene settings
DEFAULT_HEIGHT_SCALE = 2.0
DEFAULT_MAP_SCALE = 1.0
DEFAULT_COLOR_MAP = "colorMap.png"
DEFAULT_OUTPUT_FILE = OUTPUT_DIR / "scene.npz"
DEFAULT_LOG_LEVEL = "INFO"

# Camera defaults
DEFAULT_CAMERA_SPEED = 5.0
DEFAULT_CAMERA_SENSITIVITY = 0.1
DEFAULT_FIELD_OF_VIEW_DEG = 45.0
DEFAULT_NEAR_PLANE = 0.01
DEFAULT_FAR_PLANE = 5000.0

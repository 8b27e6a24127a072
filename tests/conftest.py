"""
Pytest configuration and shared fixtures.
"""

import os
import sys

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create a temporary config directory with default.yaml."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    default_yaml = config_dir / "default.yaml"
    default_yaml.write_text("""
camera:
  device_id: 0
  resolution: [640, 480]
  fps: 30

model:
  path: "models/barcode.onnx"
  input_size: 640

detection:
  conf_threshold: 0.25
  iou_threshold: 0.45

sampling:
  interval_ms: 150

decoding:
  roi_padding_px: 40
  cooldown_ms: 3000
  history_size: 5

log_path: "logs/test.log"
log_level: "INFO"
""")

    return config_dir


@pytest.fixture
def valid_config():
    """Return a valid configuration dictionary."""
    return {
        "camera": {
            "device_id": 0,
            "resolution": [1280, 720],
            "fps": 30,
        },
        "model": {
            "path": "models/barcode.onnx",
            "input_size": 640,
            "load_timeout_s": 5,
        },
        "detection": {
            "conf_threshold": 0.25,
            "iou_threshold": 0.45,
        },
        "sampling": {
            "interval_ms": 150,
        },
        "decoding": {
            "roi_padding_px": 40,
            "cooldown_ms": 3000,
            "history_size": 5,
        },
        "pipeline": {
            "poll_interval_ms": 1,
        },
        "log_path": "logs/test.log",
        "log_level": "INFO",
    }

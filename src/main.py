"""
Barcode scan pipeline entry point.

Loads the layered configuration, starts the optional status API, and runs
the scan loop until interrupted.

Usage:
    python src/main.py --config config/config.yaml
    python src/main.py --model models/barcode.onnx --device 1 --web

Arguments:
    --config: Path to configuration file
    --model: Override model.path
    --device: Override camera.device_id
    --web: Serve the status API
    --list-cameras: Print usable camera indices and exit
"""

import argparse
import logging
import os
import sys
import threading
from typing import Any, Dict, Optional, Tuple

import uvicorn
import yaml

from observation.opencv_source import create_source_from_config, probe_cameras
from ops.logging import setup_logging
from pipeline.engine import create_engine_from_config
from web.app import create_app


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base and return base."""
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
    return base


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration with layering:
    - `config/default.yaml` (checked in)
    - `config/config.yaml` (local overrides)
    - plus any explicitly provided `--config` path (treated as overrides)
    """
    try:
        base_path = os.path.join(os.path.dirname(config_path), "default.yaml")
        base_cfg: Dict[str, Any] = {}
        if os.path.exists(base_path):
            with open(base_path, "r") as f:
                base_cfg = yaml.safe_load(f) or {}

        local_overrides_path = os.path.join(os.path.dirname(config_path), "config.yaml")
        local_cfg: Dict[str, Any] = {}
        if os.path.exists(local_overrides_path):
            with open(local_overrides_path, "r") as f:
                local_cfg = yaml.safe_load(f) or {}

        merged = _deep_merge(base_cfg, local_cfg)

        if os.path.exists(config_path) and os.path.abspath(config_path) != os.path.abspath(local_overrides_path):
            with open(config_path, "r") as f:
                explicit_cfg = yaml.safe_load(f) or {}
            merged = _deep_merge(merged, explicit_cfg)

        return merged
    except Exception as e:
        logging.error(f"Failed to load configuration: {e}")
        sys.exit(1)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def validate_config(config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate configuration file structure and values.

    Args:
        config: Configuration dictionary

    Returns:
        Tuple of (is_valid, error_message)
    """
    required_sections = ['camera', 'model', 'detection', 'log_path', 'log_level']
    for section in required_sections:
        if section not in config:
            return False, f"Missing required configuration section: {section}"

    # Camera
    camera = config.get('camera') or {}
    if 'device_id' not in camera:
        return False, "Missing camera.device_id"
    if isinstance(camera['device_id'], bool) or not isinstance(camera['device_id'], (int, str)):
        return False, "camera.device_id must be an integer (index) or string (path/URL)"
    if isinstance(camera['device_id'], int) and camera['device_id'] < 0:
        return False, "camera.device_id integer must be non-negative"
    if 'resolution' in camera:
        resolution = camera['resolution']
        if not isinstance(resolution, list) or len(resolution) != 2:
            return False, "camera.resolution must be a list of [width, height]"
        if not all(_is_positive_int(x) for x in resolution):
            return False, "camera.resolution values must be positive integers"
    if 'fps' in camera and not _is_positive_int(camera['fps']):
        return False, "camera.fps must be a positive integer"
    if 'rotate' in camera and camera['rotate'] not in (0, 90, 180, 270, None):
        return False, "camera.rotate must be one of: 0, 90, 180, 270"

    # Model
    model = config.get('model') or {}
    if not isinstance(model.get('path'), str) or not model.get('path'):
        return False, "model.path is required"
    if 'input_size' in model and not _is_positive_int(model['input_size']):
        return False, "model.input_size must be a positive integer"
    if 'load_timeout_s' in model and (not _is_number(model['load_timeout_s']) or model['load_timeout_s'] <= 0):
        return False, "model.load_timeout_s must be a positive number"

    # Detection thresholds
    detection = config.get('detection') or {}
    for key in ('conf_threshold', 'iou_threshold'):
        if key in detection:
            value = detection[key]
            if not _is_number(value) or not (0 <= value <= 1):
                return False, f"detection.{key} must be between 0 and 1"

    # Sampling
    sampling = config.get('sampling') or {}
    if 'interval_ms' in sampling and not _is_positive_int(sampling['interval_ms']):
        return False, "sampling.interval_ms must be a positive integer"

    # Decoding
    decoding = config.get('decoding') or {}
    if 'roi_padding_px' in decoding:
        pad = decoding['roi_padding_px']
        if not isinstance(pad, int) or isinstance(pad, bool) or pad < 0:
            return False, "decoding.roi_padding_px must be a non-negative integer"
    if 'cooldown_ms' in decoding:
        cooldown = decoding['cooldown_ms']
        if not _is_number(cooldown) or cooldown < 0:
            return False, "decoding.cooldown_ms must be a non-negative number"
    if 'history_size' in decoding and not _is_positive_int(decoding['history_size']):
        return False, "decoding.history_size must be a positive integer"

    # Web
    web = config.get('web') or {}
    if 'port' in web and not _is_positive_int(web['port']):
        return False, "web.port must be a positive integer"

    valid_log_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
    if config['log_level'] not in valid_log_levels:
        return False, f"log_level must be one of: {', '.join(valid_log_levels)}"

    return True, None


def main():
    """Main application function."""
    parser = argparse.ArgumentParser(description='Barcode Scan Pipeline')
    parser.add_argument('--config', type=str, default='config/config.yaml',
                        help='Path to configuration file')
    parser.add_argument('--model', type=str, default=None,
                        help='Path to the ONNX detection model (overrides model.path)')
    parser.add_argument('--device', type=str, default=None,
                        help='Camera index, video file or stream URL (overrides camera.device_id)')
    parser.add_argument('--web', action='store_true',
                        help='Serve the status API')
    parser.add_argument('--list-cameras', action='store_true',
                        help='List usable camera indices and exit')
    args = parser.parse_args()

    if args.list_cameras:
        print(probe_cameras())
        return

    config = load_config(args.config)
    if args.model:
        config.setdefault('model', {})['path'] = args.model
    if args.device is not None:
        device = args.device
        config.setdefault('camera', {})['device_id'] = int(device) if device.isdigit() else device
    if args.web:
        config.setdefault('web', {})['enabled'] = True

    is_valid, error_msg = validate_config(config)
    if not is_valid:
        logging.error(f"Configuration validation failed: {error_msg}")
        sys.exit(1)

    setup_logging(config['log_path'], config['log_level'])
    logging.info("Starting Barcode Scan Pipeline")

    web_cfg = config.get('web') or {}
    if web_cfg.get('enabled'):
        # Keep the loop alive after a load failure so the API can request a reload.
        config.setdefault('pipeline', {}).setdefault('wait_for_reload', True)

    engine = create_engine_from_config(config)
    engine.add_result_callback(lambda result: print(result.payload, flush=True))

    if web_cfg.get('enabled'):
        camera_cfg = dict(config['camera'])

        def source_factory(device_id: int):
            return create_source_from_config({**camera_cfg, 'device_id': device_id})

        app = create_app(engine, source_factory=source_factory)
        host = web_cfg.get('host', '0.0.0.0')
        port = int(web_cfg.get('port', 5000))

        def run_web_app():
            uvicorn.run(app, host=host, port=port, log_level="info")

        web_thread = threading.Thread(target=run_web_app, name="status-api", daemon=True)
        web_thread.start()
        logging.info(f"Status API started on {host}:{port}")

    engine.run()

    if engine.status.level.value == "error":
        logging.error(f"Exiting with model error: {engine.status.message}")
        sys.exit(1)


if __name__ == "__main__":
    main()

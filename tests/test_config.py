"""
Smoke tests for configuration loading and validation.
"""

import pytest

from main import _deep_merge, load_config, validate_config
from models.config import Config


class TestValidateConfig:
    """Tests for validate_config function."""

    def test_valid_config_passes(self, valid_config):
        """A complete valid config passes validation."""
        is_valid, error = validate_config(valid_config)

        assert is_valid is True
        assert error is None

    @pytest.mark.parametrize("section", ["camera", "model", "detection", "log_path", "log_level"])
    def test_missing_required_section(self, valid_config, section):
        del valid_config[section]

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert section in error.lower()

    def test_optional_sections_may_be_omitted(self, valid_config):
        for section in ("sampling", "decoding", "pipeline"):
            del valid_config[section]

        is_valid, error = validate_config(valid_config)

        assert is_valid is True

    def test_invalid_device_id_type(self, valid_config):
        """device_id with invalid type fails."""
        valid_config["camera"]["device_id"] = [1, 2, 3]

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "device_id" in error.lower()

    def test_negative_device_id(self, valid_config):
        valid_config["camera"]["device_id"] = -1

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "device_id" in error.lower()

    def test_string_device_id_valid(self, valid_config):
        """String device_id (video file) is valid."""
        valid_config["camera"]["device_id"] = "samples/shelf.mp4"

        is_valid, error = validate_config(valid_config)

        assert is_valid is True

    def test_invalid_resolution_length(self, valid_config):
        valid_config["camera"]["resolution"] = [1920]

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "resolution" in error.lower()

    def test_invalid_fps(self, valid_config):
        valid_config["camera"]["fps"] = 0

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "fps" in error.lower()

    def test_model_path_required(self, valid_config):
        valid_config["model"]["path"] = ""

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "model.path" in error

    @pytest.mark.parametrize("key,value", [
        ("conf_threshold", 1.5),
        ("conf_threshold", -0.1),
        ("iou_threshold", "high"),
    ])
    def test_invalid_thresholds(self, valid_config, key, value):
        valid_config["detection"][key] = value

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert key in error

    def test_invalid_sampling_interval(self, valid_config):
        valid_config["sampling"]["interval_ms"] = 0

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "interval_ms" in error

    def test_negative_padding(self, valid_config):
        valid_config["decoding"]["roi_padding_px"] = -5

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "roi_padding_px" in error

    def test_zero_history(self, valid_config):
        valid_config["decoding"]["history_size"] = 0

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "history_size" in error

    def test_invalid_log_level(self, valid_config):
        valid_config["log_level"] = "VERBOSE"

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "log_level" in error.lower()


class TestLoadConfig:
    """Tests for load_config function."""

    def test_loads_default_yaml(self, temp_config_dir):
        """Config loads from default.yaml when only it exists."""
        config_path = str(temp_config_dir / "config.yaml")

        config = load_config(config_path)

        assert config["camera"]["device_id"] == 0
        assert config["camera"]["resolution"] == [640, 480]
        assert config["decoding"]["cooldown_ms"] == 3000

    def test_local_overrides_merge(self, temp_config_dir):
        """Local config.yaml overrides default.yaml."""
        config_yaml = temp_config_dir / "config.yaml"
        config_yaml.write_text("""
camera:
  resolution: [1920, 1080]
sampling:
  interval_ms: 250
""")

        config = load_config(str(config_yaml))

        assert config["camera"]["resolution"] == [1920, 1080]
        assert config["sampling"]["interval_ms"] == 250
        assert config["camera"]["fps"] == 30
        assert config["camera"]["device_id"] == 0

    def test_explicit_config_applied_last(self, temp_config_dir):
        (temp_config_dir / "config.yaml").write_text("""
model:
  path: "local.onnx"
""")
        explicit = temp_config_dir / "bench.yaml"
        explicit.write_text("""
model:
  path: "bench.onnx"
detection:
  conf_threshold: 0.5
""")

        config = load_config(str(explicit))

        assert config["model"]["path"] == "bench.onnx"
        assert config["model"]["input_size"] == 640
        assert config["detection"]["conf_threshold"] == 0.5
        assert config["detection"]["iou_threshold"] == 0.45

    def test_deep_merge_replaces_lists(self):
        merged = _deep_merge({"a": {"b": [1, 2], "c": 1}}, {"a": {"b": [3]}})
        assert merged == {"a": {"b": [3], "c": 1}}


class TestConfigModel:
    def test_defaults_from_empty_dict(self):
        cfg = Config.from_dict({})

        assert cfg.model.input_size == 640
        assert cfg.detection.conf_threshold == 0.25
        assert cfg.detection.iou_threshold == 0.45
        assert cfg.sampling.interval_ms == 150
        assert cfg.decoding.roi_padding_px == 40
        assert cfg.decoding.cooldown_ms == 3000
        assert cfg.decoding.history_size == 5

    def test_class_names_keys_become_ints(self):
        cfg = Config.from_dict({"model": {"class_names": {"0": "qr", "1": "ean13"}}})
        assert cfg.model.class_names == {0: "qr", 1: "ean13"}

    def test_round_trip(self, valid_config):
        cfg = Config.from_dict(valid_config)
        assert Config.from_dict(cfg.to_dict()) == cfg

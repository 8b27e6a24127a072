"""
Typed configuration models matching the YAML config structure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Union


@dataclass
class CameraConfig:
    """Camera configuration."""
    device_id: Union[int, str] = 0
    resolution: List[int] = field(default_factory=lambda: [1280, 720])
    fps: int = 30
    rotate: int = 0
    flip_horizontal: bool = False
    flip_vertical: bool = False

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CameraConfig":
        """Adapter: Create from config dictionary."""
        return cls(
            device_id=d.get("device_id", 0),
            resolution=d.get("resolution", [1280, 720]),
            fps=d.get("fps", 30),
            rotate=d.get("rotate", 0) or 0,
            flip_horizontal=d.get("flip_horizontal", False),
            flip_vertical=d.get("flip_vertical", False),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "device_id": self.device_id,
            "resolution": self.resolution,
            "fps": self.fps,
            "rotate": self.rotate,
            "flip_horizontal": self.flip_horizontal,
            "flip_vertical": self.flip_vertical,
        }


@dataclass
class ModelConfig:
    """Detection model configuration."""
    path: str = ""
    input_size: int = 640
    providers: List[str] = field(default_factory=lambda: ["CPUExecutionProvider"])
    load_timeout_s: float = 60.0
    class_names: Dict[int, str] = field(default_factory=lambda: {0: "barcode"})

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ModelConfig":
        names = d.get("class_names") or {0: "barcode"}
        return cls(
            path=d.get("path", ""),
            input_size=d.get("input_size", 640),
            providers=list(d.get("providers") or ["CPUExecutionProvider"]),
            load_timeout_s=float(d.get("load_timeout_s", 60.0)),
            class_names={int(k): str(v) for k, v in names.items()},
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "input_size": self.input_size,
            "providers": self.providers,
            "load_timeout_s": self.load_timeout_s,
            "class_names": self.class_names,
        }


@dataclass
class DetectionConfig:
    """Output decoding and suppression thresholds."""
    conf_threshold: float = 0.25
    iou_threshold: float = 0.45

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DetectionConfig":
        return cls(
            conf_threshold=float(d.get("conf_threshold", 0.25)),
            iou_threshold=float(d.get("iou_threshold", 0.45)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "conf_threshold": self.conf_threshold,
            "iou_threshold": self.iou_threshold,
        }


@dataclass
class SamplingConfig:
    """Frame sampling cadence."""
    interval_ms: int = 150

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "SamplingConfig":
        return cls(interval_ms=d.get("interval_ms", 150))

    def to_dict(self) -> Dict[str, Any]:
        return {"interval_ms": self.interval_ms}


@dataclass
class DecodingConfig:
    """Secondary decode and result deduplication."""
    roi_padding_px: int = 40
    cooldown_ms: int = 3000
    history_size: int = 5

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DecodingConfig":
        return cls(
            roi_padding_px=d.get("roi_padding_px", 40),
            cooldown_ms=d.get("cooldown_ms", 3000),
            history_size=d.get("history_size", 5),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "roi_padding_px": self.roi_padding_px,
            "cooldown_ms": self.cooldown_ms,
            "history_size": self.history_size,
        }


@dataclass
class PipelineSettings:
    """Main loop behaviour."""
    max_consecutive_failures: int = 10
    stats_log_interval: float = 60.0
    poll_interval_ms: int = 5
    wait_for_reload: bool = False

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "PipelineSettings":
        return cls(
            max_consecutive_failures=d.get("max_consecutive_failures", 10),
            stats_log_interval=float(d.get("stats_log_interval", 60.0)),
            poll_interval_ms=d.get("poll_interval_ms", 5),
            wait_for_reload=d.get("wait_for_reload", False),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "max_consecutive_failures": self.max_consecutive_failures,
            "stats_log_interval": self.stats_log_interval,
            "poll_interval_ms": self.poll_interval_ms,
            "wait_for_reload": self.wait_for_reload,
        }


@dataclass
class WebConfig:
    """Status API server."""
    enabled: bool = False
    host: str = "0.0.0.0"
    port: int = 5000

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "WebConfig":
        return cls(
            enabled=d.get("enabled", False),
            host=d.get("host", "0.0.0.0"),
            port=d.get("port", 5000),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"enabled": self.enabled, "host": self.host, "port": self.port}


@dataclass
class Config:
    """
    Complete application configuration.

    This is a typed representation of the YAML config structure.
    """
    camera: CameraConfig = field(default_factory=CameraConfig)
    model: ModelConfig = field(default_factory=ModelConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    sampling: SamplingConfig = field(default_factory=SamplingConfig)
    decoding: DecodingConfig = field(default_factory=DecodingConfig)
    pipeline: PipelineSettings = field(default_factory=PipelineSettings)
    web: WebConfig = field(default_factory=WebConfig)
    log_path: str = "logs/scanner.log"
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Config":
        """Adapter: Create Config from raw dictionary (e.g., from load_config)."""
        return cls(
            camera=CameraConfig.from_dict(d.get("camera") or {}),
            model=ModelConfig.from_dict(d.get("model") or {}),
            detection=DetectionConfig.from_dict(d.get("detection") or {}),
            sampling=SamplingConfig.from_dict(d.get("sampling") or {}),
            decoding=DecodingConfig.from_dict(d.get("decoding") or {}),
            pipeline=PipelineSettings.from_dict(d.get("pipeline") or {}),
            web=WebConfig.from_dict(d.get("web") or {}),
            log_path=d.get("log_path", "logs/scanner.log"),
            log_level=d.get("log_level", "INFO"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to dictionary."""
        return {
            "camera": self.camera.to_dict(),
            "model": self.model.to_dict(),
            "detection": self.detection.to_dict(),
            "sampling": self.sampling.to_dict(),
            "decoding": self.decoding.to_dict(),
            "pipeline": self.pipeline.to_dict(),
            "web": self.web.to_dict(),
            "log_path": self.log_path,
            "log_level": self.log_level,
        }

"""
Configuration for the start and stop phases.

Values come from defaults, then an optional YAML file, then CLI options.
"""
import os
import tempfile
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

OUTPUT_FORMATS = ("summary", "json", "both")
METRICS_DIR_NAME = "telemetry-metrics"
NUMERIC_FIELDS = {
    "sampling_interval": float,
    "drain_window_s": float,
    "max_chart_points": int,
    "retention_days": int,
}


class ConfigError(ValueError):
    pass


def default_metrics_dir() -> Path:
    runner_temp = os.environ.get("RUNNER_TEMP") or tempfile.gettempdir()
    return Path(runner_temp) / METRICS_DIR_NAME


@dataclass
class TelemetryConfig:
    sampling_interval: float = 1
    metrics_dir: Path = None  # type: ignore
    output_format: str = "summary"
    artifact_name: Optional[str] = None
    artifact_dir: Optional[Path] = None
    drain_window_s: float = 1.0
    max_chart_points: int = 60
    retention_days: int = 30

    def __post_init__(self):
        self.metrics_dir = Path(self.metrics_dir) if self.metrics_dir else default_metrics_dir()
        if self.artifact_dir is not None:
            self.artifact_dir = Path(self.artifact_dir)
        self._coerce_numbers()
        self.validate()

    def _coerce_numbers(self):
        """YAML may hand us strings ("2") or bools; numbers must end up as numbers"""
        for name, kind in NUMERIC_FIELDS.items():
            value = getattr(self, name)
            if isinstance(value, bool):
                raise ConfigError(f"{name} must be a number, got {value!r}")
            try:
                number = kind(value)
            except (TypeError, ValueError):
                raise ConfigError(f"{name} must be a number, got {value!r}") from None
            if kind is int and not isinstance(value, str) and number != value:
                raise ConfigError(f"{name} must be a whole number, got {value!r}")
            setattr(self, name, number)

    def validate(self):
        if self.sampling_interval < 1:
            raise ConfigError(f"sampling_interval must be >= 1, got {self.sampling_interval}")
        if self.output_format not in OUTPUT_FORMATS:
            raise ConfigError(
                f"output_format must be one of {', '.join(OUTPUT_FORMATS)}, got {self.output_format!r}"
            )
        if self.drain_window_s < 0:
            raise ConfigError("drain_window_s cannot be negative")
        if self.max_chart_points < 2:
            raise ConfigError("max_chart_points must be at least 2")

    @property
    def file_prefix(self) -> str:
        return self.artifact_name or "metrics"

    def with_overrides(self, **overrides: Any) -> "TelemetryConfig":
        """Copy with every non-None override applied"""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TelemetryConfig":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigError(f"unknown config keys: {', '.join(sorted(unknown))}")
        return cls(**data)

    @classmethod
    def from_yaml(cls, path: Path) -> "TelemetryConfig":
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ConfigError(f"{path} must contain a mapping")
        return cls.from_dict(data)


def load_config(path: Optional[Path] = None, **overrides: Any) -> TelemetryConfig:
    base = TelemetryConfig.from_yaml(path) if path else TelemetryConfig()
    return base.with_overrides(**overrides)

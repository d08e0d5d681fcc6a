"""Configuration management with YAML and JSON support."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from orthotiler.core.models import LoggingConfig, TilingConfig


@dataclass
class PipelineConfig:
    """Top-level configuration object for a tiling run."""

    tiling: TilingConfig = field(default_factory=TilingConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def resolve_relative_paths(self, base_dir: Path) -> None:
        """Resolve the log file path against the provided base directory."""

        if self.logging.log_file and not Path(self.logging.log_file).is_absolute():
            self.logging.log_file = str(base_dir / self.logging.log_file)


class ConfigLoader:
    """Load tiling configuration files in YAML or JSON format."""

    def __init__(self, base_dir: Optional[Path] = None) -> None:
        self._base_dir = base_dir or Path.cwd()

    def load(self, path: Path | str) -> PipelineConfig:
        """Parse a configuration file and return a populated dataclass."""

        config_path = self._resolve_path(Path(path))
        payload = self._load_payload(config_path)
        config = self._build_config(payload)
        config.resolve_relative_paths(config_path.parent)
        config.tiling.validate()
        return config

    def _resolve_path(self, path: Path) -> Path:
        if path.is_absolute():
            return path
        return (self._base_dir / path).resolve()

    def _load_payload(self, path: Path) -> Dict[str, Any]:
        suffix = path.suffix.lower()
        if suffix in {".yaml", ".yml"}:
            with path.open("r", encoding="utf-8") as handle:
                payload = yaml.safe_load(handle) or {}
        elif suffix == ".json":
            with path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle) or {}
        else:
            raise ValueError(f"Unsupported configuration format: {suffix}")
        if not isinstance(payload, dict):
            raise ValueError(f"configuration root must be a mapping: {path}")
        return payload

    def _build_config(self, payload: Dict[str, Any]) -> PipelineConfig:
        tiling_payload = payload.get("tiling") or {}
        if not isinstance(tiling_payload, dict):
            raise ValueError("tiling section must be a mapping")
        tiling_data = _known_keys(TilingConfig, tiling_payload, "tiling")
        for key in ("tile_size", "query_size", "gdal_cachemax"):
            if key in tiling_data and tiling_data[key] is not None:
                tiling_data[key] = int(tiling_data[key])
        if tiling_data.get("gdal_num_threads") is not None:
            tiling_data["gdal_num_threads"] = str(tiling_data["gdal_num_threads"])
        if "tms" in tiling_data:
            tiling_data["tms"] = bool(tiling_data["tms"])
        tiling = TilingConfig(**tiling_data)

        logging_payload = payload.get("logging") or {}
        if not isinstance(logging_payload, dict):
            raise ValueError("logging section must be a mapping")
        logging_data = _known_keys(LoggingConfig, logging_payload, "logging")
        if "json_logs" in logging_data:
            logging_data["json_logs"] = bool(logging_data["json_logs"])
        logging_config = LoggingConfig(**logging_data)

        return PipelineConfig(tiling=tiling, logging=logging_config)


def _known_keys(model: type, payload: Dict[str, Any], section: str) -> Dict[str, Any]:
    allowed = {item.name for item in fields(model)}
    unknown = sorted(set(payload) - allowed)
    if unknown:
        raise ValueError(f"unknown {section} option(s): {', '.join(unknown)}")
    return dict(payload)


def load_config(path: Path | str, *, base_dir: Optional[Path] = None) -> PipelineConfig:
    """Convenience wrapper around :class:`ConfigLoader`."""

    loader = ConfigLoader(base_dir=base_dir)
    return loader.load(path)

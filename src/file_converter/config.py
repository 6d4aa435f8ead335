"""Centralized settings and configuration loading utilities."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseModel):
    intake_dir: str = "./uploads"
    converted_dir: str = "./converted"
    retention_hours: float = Field(24, gt=0)
    sweep_interval_sec: int = Field(3600, ge=1)


class BatchLimitSettings(BaseModel):
    max_files_per_batch: int = Field(5, ge=1)
    max_file_size_mb: int = Field(100, ge=1)


class ConversionSettings(BaseModel):
    timeout_sec: float = Field(120, gt=0)
    cancel_grace_sec: float = Field(5, ge=0)
    max_stages: int = Field(2, ge=1)


class CleanupSettings(BaseModel):
    max_attempts: int = Field(3, ge=1)
    retry_delay_sec: float = Field(1.0, ge=0)


class ToolSettings(BaseModel):
    """Executables used by the capability adapters."""

    imagemagick: str = "convert"
    svgo: str = "svgo"
    soffice: str = "soffice"
    pdftoppm: str = "pdftoppm"
    ffmpeg: str = "ffmpeg"
    sevenzip: str = "7z"
    ebook_convert: str = "ebook-convert"
    pdf_render_dpi: int = Field(150, ge=36)


class LoggingSettings(BaseModel):
    level: str = "INFO"
    log_dir: str = "./logs"
    max_log_file_size_mb: int = 100
    backup_count: int = 7
    json_format: bool = False


class MonitoringSettings(BaseModel):
    prometheus_port: int = 9091


class CeleryQueueSettings(BaseModel):
    broker_url: str = "redis://localhost:6379/0"
    result_backend: str = "redis://localhost:6379/1"
    default_queue: str = "conversion"
    task_time_limit_sec: int = 900
    prefetch_multiplier: int = 1


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="FC_", env_nested_delimiter="__", extra="allow")

    service_name: str = "file-conversion-engine"
    environment: str = "dev"

    storage: StorageSettings = StorageSettings()
    limits: BatchLimitSettings = BatchLimitSettings()
    conversion: ConversionSettings = ConversionSettings()
    cleanup: CleanupSettings = CleanupSettings()
    tools: ToolSettings = ToolSettings()
    logging: LoggingSettings = LoggingSettings()
    monitoring: MonitoringSettings = MonitoringSettings()
    celery: CeleryQueueSettings = CeleryQueueSettings()
    plugin_modules: list[str] = Field(default_factory=list)
    plugin_modules_file: str | None = "./config/plugins.yaml"

    @staticmethod
    def load_yaml_config_file(file_path: str | Path | None) -> Dict[str, Any]:
        if not file_path:
            return {}
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")
        import yaml  # lazy import for optional dependency

        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
        if not isinstance(data, dict):
            raise ValueError("Configuration YAML must produce a mapping")
        return data

    @classmethod
    def from_source(cls, *, config_file: str | None = None, **overrides: Any) -> "Settings":
        base_data = cls.load_yaml_config_file(config_file)
        base_data.update(overrides)
        return cls(**base_data)


@lru_cache
def get_settings() -> Settings:
    cfg_file = os.getenv("FC_CONFIG_FILE")
    if cfg_file:
        return Settings.from_source(config_file=cfg_file)

    default_path = Path.cwd() / "config" / "settings.yaml"
    if default_path.exists():
        return Settings.from_source(config_file=str(default_path))

    return Settings()


def reload_settings() -> None:
    get_settings.cache_clear()

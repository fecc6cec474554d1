"""Service configuration loaded from YAML."""

import os
import re
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, field_validator

from .reservations.plates import DEFAULT_PLATE_PATTERN


def _resolve_env_var(v):
    """Resolve environment variable references like ${VAR_NAME}."""
    if isinstance(v, str) and v.startswith("${") and v.endswith("}"):
        env_var = v[2:-1]
        return os.environ.get(env_var, "")
    return v


class GarageConfig(BaseModel):
    """Physical garage layout."""

    rows: int = 5  # Each row holds an A and a B spot
    plate_pattern: str = DEFAULT_PLATE_PATTERN

    @field_validator("rows")
    @classmethod
    def check_rows(cls, v: int) -> int:
        if v < 1:
            raise ValueError("garage must have at least one row")
        return v

    @field_validator("plate_pattern")
    @classmethod
    def check_pattern(cls, v: str) -> str:
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"invalid plate pattern: {e}") from e
        return v


class BackendConfig(BaseModel):
    """Reservation backend connection configuration."""

    base_url: str
    api_token: Optional[str] = None
    timeout_seconds: float = 10.0

    @field_validator("api_token", mode="before")
    @classmethod
    def resolve_env_var(cls, v):
        return _resolve_env_var(v) or None


class VisionConfig(BaseModel):
    """Vision service endpoints."""

    detector_url: str
    plate_url: str
    timeout_seconds: float = 30.0


class DetectionConfig(BaseModel):
    """Detection processing configuration."""

    min_confidence: float = 0.0  # Vehicles below this are ignored
    max_workers: int = 4  # Concurrent compensating writes


class APIConfig(BaseModel):
    """HTTP listener settings."""

    host: str = "0.0.0.0"
    port: int = 8000


class AppConfig(BaseModel):
    """Top-level service configuration."""

    backend: BackendConfig
    vision: VisionConfig
    garage: GarageConfig = GarageConfig()
    detection: DetectionConfig = DetectionConfig()
    api: APIConfig = APIConfig()


def load_config(path: str | Path) -> AppConfig:
    """
    Read and validate a YAML config file.

    Args:
        path: YAML file to read

    Returns:
        The parsed AppConfig

    Raises:
        FileNotFoundError: If the file is missing
        pydantic.ValidationError: If required sections are absent or invalid
    """
    config_path = Path(path)
    if not config_path.is_file():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    data = yaml.safe_load(config_path.read_text()) or {}
    return AppConfig(**data)


CONFIG_ENV_VAR = "GARAGE_CONFIG"
DEFAULT_CONFIG_PATHS = (Path("config/config.yaml"), Path("/app/config/config.yaml"))


def get_config_path() -> Path:
    """Locate the config file: $GARAGE_CONFIG first, then the default locations."""
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override)

    for candidate in DEFAULT_CONFIG_PATHS:
        if candidate.exists():
            return candidate

    return DEFAULT_CONFIG_PATHS[0]

# src/medshare/config/settings.py
"""
Application settings (Pydantic).

Settings are loaded from `src/medshare/config/defaults.yaml`, then optionally overridden by:
- environment variables (e.g., `SUPABASE_URL`, `SUPABASE_ANON_KEY`)
- an external YAML file via `MEDSHARE_CONFIG_PATH`

Design rule:
- Tuning knobs (buckets, radii, upload limits, categories) live in YAML, not in business logic.
"""

from __future__ import annotations

import os
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field

from medshare.core.env import load_dotenv_if_present


def _read_package_yaml(filename: str) -> dict[str, Any]:
    """Read a YAML file packaged inside `medshare.config`."""
    text = resources.files("medshare.config").joinpath(filename).read_text(encoding="utf-8")
    data = yaml.safe_load(text) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {filename}; expected a mapping.")
    return data


def _read_yaml_file(path: str | Path) -> dict[str, Any]:
    """Read a YAML file from disk and return its mapping root."""
    data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {path}; expected a mapping.")
    return data


class AppSettings(BaseModel):
    name: str = "MedShare"
    http_timeout_seconds: float = 15
    log_level: str = "INFO"


class BackendSettings(BaseModel):
    mode: Literal["supabase", "memory"] = "supabase"
    url: str = ""
    anon_key: str = ""
    medicines_table: str = "medicines"
    saved_table: str = "saved_medicines"
    user_info_view: str = "auth_users_info"
    medicine_bucket: str = "medicines"
    avatar_bucket: str = "avatars"


class RepositorySettings(BaseModel):
    sample_fallback: bool = False
    featured_limit: int = Field(4, ge=1)


class DefaultLocation(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class LocationSettings(BaseModel):
    high_accuracy: bool = True
    timeout_seconds: float = Field(10, gt=0)
    maximum_age_seconds: float = Field(60, ge=0)
    default: DefaultLocation | None = None


class ListingSettings(BaseModel):
    currency_symbol: str = "₹"
    default_distance_km: float = Field(10, ge=0)


class UploadSettings(BaseModel):
    max_image_bytes: int = 5 * 1024 * 1024
    allowed_content_types: list[str] = Field(
        default_factory=lambda: ["image/jpeg", "image/png", "image/gif", "image/webp"]
    )


class Settings(BaseModel):
    app: AppSettings = Field(default_factory=AppSettings)
    backend: BackendSettings = Field(default_factory=BackendSettings)
    repository: RepositorySettings = Field(default_factory=RepositorySettings)
    location: LocationSettings = Field(default_factory=LocationSettings)
    listing: ListingSettings = Field(default_factory=ListingSettings)
    uploads: UploadSettings = Field(default_factory=UploadSettings)
    categories: list[str] = Field(default_factory=list)


_TRUTHY = {"1", "true", "yes", "y", "on"}


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Overlay selected environment variables onto raw settings payload.

    Note: We intentionally keep this whitelist small to avoid exposing unsafe overrides.
    """
    load_dotenv_if_present()
    data = dict(data)

    log_level = os.getenv("MEDSHARE_LOG_LEVEL")
    if log_level:
        data.setdefault("app", {})["log_level"] = log_level

    mode = os.getenv("MEDSHARE_BACKEND_MODE")
    if mode:
        data.setdefault("backend", {})["mode"] = mode.strip().lower()

    url = os.getenv("SUPABASE_URL")
    key = os.getenv("SUPABASE_ANON_KEY")
    if url:
        data.setdefault("backend", {})["url"] = url.rstrip("/")
    if key:
        data.setdefault("backend", {})["anon_key"] = key

    fallback = os.getenv("MEDSHARE_SAMPLE_FALLBACK")
    if fallback is not None and fallback.strip():
        data.setdefault("repository", {})["sample_fallback"] = fallback.strip().lower() in _TRUTHY

    return data


@lru_cache
def get_settings() -> Settings:
    """Load and validate settings (cached)."""
    load_dotenv_if_present()
    config_path = os.getenv("MEDSHARE_CONFIG_PATH")
    raw = _read_yaml_file(config_path) if config_path else _read_package_yaml("defaults.yaml")
    raw = _apply_env_overrides(raw)
    return Settings.model_validate(raw)


@lru_cache
def get_logging_config() -> dict[str, Any]:
    """Load logging configuration (cached)."""
    return _read_package_yaml("logging.yaml")

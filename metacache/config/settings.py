"""Cache configuration models and loading."""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

from .config_loader import cache_section, config_log_level, load_config

logger = logging.getLogger(__name__)

ENV_PREFIX = "METACACHE_CACHE_"

# Environment variable suffix -> CacheConfig field
ENV_FIELDS = {
    "ENABLED": "enabled",
    "STORAGE": "storage",
    "TTL": "ttl",
    "MAX_SIZE": "max_size",
    "FILE_PATH": "file_path",
    "ENCRYPTION_KEY": "encryption_key",
    "CLEANUP_INTERVAL": "cleanup_interval",
}


class CacheConfig(BaseModel):
    """Application-level cache settings consumed by the cache factory."""

    enabled: bool = True
    storage: Literal["memory", "file"] = "memory"
    ttl: float = Field(default=3600, description="Default entry lifetime in seconds, <= 0 never expires")
    max_size: int = Field(default=100, gt=0, description="Entry cap per namespace instance")
    file_path: Optional[str] = "./cache"
    encryption_key: Optional[str] = Field(default=None, repr=False)
    cleanup_interval: Optional[float] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _file_storage_needs_path(self) -> "CacheConfig":
        if self.storage == "file" and not self.file_path:
            raise ValueError("file_path is required when storage is 'file'")
        return self


class AppConfig(BaseModel):
    cache: CacheConfig = Field(default_factory=CacheConfig)
    log_level: str = "INFO"


def _env_overrides() -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    for suffix, field_name in ENV_FIELDS.items():
        value = os.getenv(f"{ENV_PREFIX}{suffix}")
        if value is None:
            continue
        value = value.strip()
        if field_name in ("file_path", "encryption_key", "cleanup_interval") and not value:
            overrides[field_name] = None
        else:
            overrides[field_name] = value
    return overrides


def load_app_config(use_dotenv: bool = True) -> AppConfig:
    """Build the application config from defaults, TOML file and environment.

    Environment variables win over the ``[cache]`` table of the config file.

    Raises:
        pydantic.ValidationError: If a value is invalid
    """
    if use_dotenv:
        load_dotenv()

    file_cfg = load_config()
    cache_data = cache_section(file_cfg)
    cache_data.update(_env_overrides())

    log_level = os.getenv("LOG_LEVEL") or config_log_level(file_cfg) or "INFO"
    config = AppConfig(cache=CacheConfig(**cache_data), log_level=str(log_level))
    logger.debug(
        f"Loaded cache config: enabled={config.cache.enabled}, storage={config.cache.storage}"
    )
    return config


def setup_logging(level_override: Optional[str] = None) -> None:
    """Configure root logging using the configured level or an override."""

    level_name = (level_override or os.getenv("LOG_LEVEL") or "INFO").upper()

    if level_name in {"NO", "NONE", "OFF"}:
        # Use a level above CRITICAL to ensure all logging is effectively disabled
        level = logging.CRITICAL + 10
    else:
        level = getattr(logging, level_name, logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        force=True,
    )

    logging.getLogger("metacache").setLevel(level)

from .config_loader import cache_section, config_search_paths, load_config
from .settings import AppConfig, CacheConfig, load_app_config, setup_logging

__all__ = [
    "AppConfig",
    "CacheConfig",
    "cache_section",
    "config_search_paths",
    "load_app_config",
    "load_config",
    "setup_logging",
]

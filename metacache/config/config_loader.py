"""Locate and read the metacache TOML config file."""

import logging
import os
import tomllib
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "metacache.toml"
CONFIG_ENV_VAR = "METACACHE_CONFIG"


def config_search_paths() -> List[str]:
    """Candidate config files, highest priority first.

    1) METACACHE_CONFIG env var (file path)
    2) ./metacache.toml (cwd)
    3) $XDG_CONFIG_HOME/metacache/metacache.toml
    4) ~/.config/metacache/metacache.toml
    """
    paths = []
    env_path = os.getenv(CONFIG_ENV_VAR)
    if env_path:
        paths.append(os.path.expanduser(env_path))

    paths.append(os.path.abspath(os.path.join(os.getcwd(), CONFIG_FILENAME)))

    xdg = os.getenv("XDG_CONFIG_HOME")
    if xdg:
        paths.append(os.path.join(xdg, "metacache", CONFIG_FILENAME))

    home = os.path.expanduser("~")
    paths.append(os.path.join(home, ".config", "metacache", CONFIG_FILENAME))
    return paths


def _read_toml(path: str) -> Optional[Dict[str, Any]]:
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except FileNotFoundError:
        return None
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning(f"Failed to parse TOML at {path}: {e}")
        return None


def load_config() -> Dict[str, Any]:
    """Load the first readable config file from :func:`config_search_paths`.

    Unparseable files are skipped with a warning. Returns an empty dict when
    no config is present.
    """
    for path in config_search_paths():
        cfg = _read_toml(path)
        if cfg is not None:
            logger.debug(f"Loaded config from {path}")
            return cfg
    return {}


def cache_section(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """The ``[cache]`` table of a loaded config, or an empty dict."""
    section = cfg.get("cache")
    if section is None:
        return {}
    if not isinstance(section, dict):
        logger.warning(f"Ignoring [cache] config: expected a table, got {type(section).__name__}")
        return {}
    return dict(section)


def config_log_level(cfg: Dict[str, Any]) -> Optional[str]:
    """Top-level ``log_level`` of a loaded config, if set."""
    level = cfg.get("log_level")
    return str(level) if level else None

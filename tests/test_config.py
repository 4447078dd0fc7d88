import logging

import pytest
from pydantic import ValidationError

from metacache.config import (
    AppConfig,
    CacheConfig,
    cache_section,
    config_search_paths,
    load_app_config,
    load_config,
    setup_logging,
)


@pytest.fixture
def config_home(tmp_path, monkeypatch):
    """Point every config search location at an empty temp dir."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    return tmp_path


def test_defaults(config_home):
    config = load_app_config(use_dotenv=False)

    assert config.cache.enabled is True
    assert config.cache.storage == "memory"
    assert config.cache.ttl == 3600
    assert config.cache.max_size == 100
    assert config.cache.file_path == "./cache"
    assert config.log_level == "INFO"


def test_toml_file_from_env_path(config_home, monkeypatch):
    path = config_home / "custom.toml"
    path.write_text(
        'log_level = "DEBUG"\n'
        "[cache]\n"
        'storage = "file"\n'
        'file_path = "/var/cache/metacache"\n'
        "ttl = 120\n"
    )
    monkeypatch.setenv("METACACHE_CONFIG", str(path))

    config = load_app_config(use_dotenv=False)

    assert config.cache.storage == "file"
    assert config.cache.file_path == "/var/cache/metacache"
    assert config.cache.ttl == 120
    assert config.log_level == "DEBUG"


def test_toml_file_in_working_directory(config_home):
    (config_home / "metacache.toml").write_text("[cache]\nenabled = false\n")

    assert load_config() == {"cache": {"enabled": False}}
    assert load_app_config(use_dotenv=False).cache.enabled is False


def test_xdg_config_location(config_home):
    xdg_dir = config_home / "xdg" / "metacache"
    xdg_dir.mkdir(parents=True)
    (xdg_dir / "metacache.toml").write_text("[cache]\nmax_size = 9\n")

    assert load_app_config(use_dotenv=False).cache.max_size == 9


def test_invalid_toml_is_ignored(config_home):
    (config_home / "metacache.toml").write_text("[cache\nbroken")

    assert load_config() == {}


def test_search_paths_in_priority_order(config_home, monkeypatch):
    monkeypatch.setenv("METACACHE_CONFIG", str(config_home / "explicit.toml"))

    assert config_search_paths() == [
        str(config_home / "explicit.toml"),
        str(config_home / "metacache.toml"),
        str(config_home / "xdg" / "metacache" / "metacache.toml"),
        str(config_home / "home" / ".config" / "metacache" / "metacache.toml"),
    ]


def test_working_directory_file_wins_over_xdg(config_home):
    (config_home / "metacache.toml").write_text("[cache]\nmax_size = 3\n")
    xdg_dir = config_home / "xdg" / "metacache"
    xdg_dir.mkdir(parents=True)
    (xdg_dir / "metacache.toml").write_text("[cache]\nmax_size = 9\n")

    assert load_app_config(use_dotenv=False).cache.max_size == 3


def test_cache_section_must_be_a_table(config_home):
    (config_home / "metacache.toml").write_text('cache = "file"\nlog_level = "DEBUG"\n')

    config = load_app_config(use_dotenv=False)

    assert cache_section(load_config()) == {}
    assert config.cache.storage == "memory"
    assert config.log_level == "DEBUG"


def test_environment_overrides_file(config_home, monkeypatch):
    (config_home / "metacache.toml").write_text('[cache]\nstorage = "file"\nttl = 10\n')
    monkeypatch.setenv("METACACHE_CACHE_TTL", "0")
    monkeypatch.setenv("METACACHE_CACHE_ENABLED", "false")
    monkeypatch.setenv("METACACHE_CACHE_MAX_SIZE", "25")
    monkeypatch.setenv("METACACHE_CACHE_ENCRYPTION_KEY", "s3cret")
    monkeypatch.setenv("LOG_LEVEL", "warning")

    config = load_app_config(use_dotenv=False)

    assert config.cache.storage == "file"
    assert config.cache.ttl == 0
    assert config.cache.enabled is False
    assert config.cache.max_size == 25
    assert config.cache.encryption_key == "s3cret"
    assert config.log_level == "warning"


def test_invalid_environment_value_raises(config_home, monkeypatch):
    monkeypatch.setenv("METACACHE_CACHE_MAX_SIZE", "lots")

    with pytest.raises(ValidationError):
        load_app_config(use_dotenv=False)


def test_file_storage_requires_path():
    with pytest.raises(ValidationError):
        CacheConfig(storage="file", file_path=None)


def test_max_size_must_be_positive():
    with pytest.raises(ValidationError):
        CacheConfig(max_size=0)


def test_encryption_key_hidden_from_repr():
    config = AppConfig(cache=CacheConfig(encryption_key="top-secret"))

    assert "top-secret" not in repr(config)


def test_setup_logging_levels():
    setup_logging("debug")
    assert logging.getLogger("metacache").level == logging.DEBUG

    setup_logging("off")
    assert logging.getLogger("metacache").level > logging.CRITICAL

    setup_logging("ERROR")
    assert logging.getLogger("metacache").level == logging.ERROR

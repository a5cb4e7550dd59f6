"""
Tests for configuration management.

Tests the Config class and configuration loading from files and environment variables.
"""

from pathlib import Path

import pytest

from haku.config import DEFAULT_DATABASE_URL, DEFAULT_MAX_VALUE_BYTES, Config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Remove HAKU_* overrides inherited from the environment."""
    for name in (
        "HAKU_DATABASE_URL",
        "HAKU_STORAGE_KEY",
        "HAKU_STORAGE_MAX_BYTES",
        "HAKU_PERSIST_DEBOUNCE_MS",
        "HAKU_EXPORT_DIR",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_file(tmp_path):
    """Write a config.ini and return its path."""
    def _write(content: str) -> Path:
        path = tmp_path / "config.ini"
        path.write_text(content, encoding="utf-8")
        return path
    return _write


class TestConfig:
    """Tests for Config class."""

    def test_default_config_path(self):
        """Default config path is ~/.haku/config.ini."""
        config = Config()
        assert config.config_path == Path.home() / ".haku" / "config.ini"

    def test_missing_config_file_uses_defaults(self, tmp_path):
        config = Config(tmp_path / "nonexistent.ini")

        storage = config.get_storage_config()
        assert storage['database_url'] == DEFAULT_DATABASE_URL
        assert storage['storage_key'] == "haku:v1:state"
        assert storage['max_value_bytes'] == DEFAULT_MAX_VALUE_BYTES
        assert config.get_persistence_config()['debounce_seconds'] == pytest.approx(0.3)
        assert config.get_export_config()['directory'] == Path(".")

    def test_config_file_parsing(self, config_file):
        config = Config(config_file("""
[storage]
database_url = sqlite+aiosqlite:////tmp/haku-test.db
storage_key = test:state
max_value_bytes = 1024

[persistence]
debounce_ms = 50

[export]
directory = /tmp/exports
"""))

        storage = config.get_storage_config()
        assert storage['database_url'] == "sqlite+aiosqlite:////tmp/haku-test.db"
        assert storage['storage_key'] == "test:state"
        assert storage['max_value_bytes'] == 1024
        assert config.get_persistence_config()['debounce_seconds'] == pytest.approx(0.05)
        assert config.get_export_config()['directory'] == Path("/tmp/exports")

    def test_environment_overrides_file(self, config_file, monkeypatch):
        config = Config(config_file("""
[storage]
storage_key = file:state
max_value_bytes = 1024
"""))
        monkeypatch.setenv("HAKU_STORAGE_KEY", "env:state")
        monkeypatch.setenv("HAKU_STORAGE_MAX_BYTES", "2048")
        monkeypatch.setenv("HAKU_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
        monkeypatch.setenv("HAKU_PERSIST_DEBOUNCE_MS", "1000")
        monkeypatch.setenv("HAKU_EXPORT_DIR", "~/backups")

        storage = config.get_storage_config()
        assert storage['storage_key'] == "env:state"
        assert storage['max_value_bytes'] == 2048
        assert storage['database_url'] == "sqlite+aiosqlite:///:memory:"
        assert config.get_persistence_config()['debounce_seconds'] == pytest.approx(1.0)
        assert config.get_export_config()['directory'] == Path.home() / "backups"

    def test_zero_quota_disables_limit(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HAKU_STORAGE_MAX_BYTES", "0")
        config = Config(tmp_path / "nonexistent.ini")
        assert config.get_storage_config()['max_value_bytes'] is None

    def test_malformed_file_uses_defaults(self, config_file):
        config = Config(config_file("this is not an ini file"))
        assert config.get_storage_config()['storage_key'] == "haku:v1:state"


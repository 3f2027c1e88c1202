"""Tests for configuration and environment overrides."""

from decimal import Decimal

from bakery_costing.utils.config import (
    ENV_BULK_WORKERS,
    ENV_CACHE_TTL,
    ENV_DATABASE_URL,
    ENV_ENVIRONMENT,
    Config,
    get_config,
    reset_config,
)
from bakery_costing.utils.constants import DEFAULT_CACHE_TTL_SECONDS


class TestConfigDefaults:
    def test_defaults(self):
        config = Config()

        assert config.is_production
        assert config.default_markup_percent == Decimal("60")
        assert config.bulk_update_workers == 4
        assert config.cache_ttl_seconds > 0
        assert config.database_url.startswith("sqlite:///")
        assert config.database_url.endswith(config.database_path.name)

    def test_development_uses_project_data_dir(self):
        config = Config("development")
        assert config.is_development
        assert config.database_path.parent.name == "data"


class TestEnvironmentOverrides:
    def test_database_url(self, monkeypatch):
        monkeypatch.setenv(ENV_DATABASE_URL, "sqlite:///:memory:")
        assert Config().database_url == "sqlite:///:memory:"

    def test_integer_settings(self, monkeypatch):
        monkeypatch.setenv(ENV_BULK_WORKERS, "8")
        monkeypatch.setenv(ENV_CACHE_TTL, "30")

        config = Config()

        assert config.bulk_update_workers == 8
        assert config.cache_ttl_seconds == 30

    def test_invalid_integers_fall_back(self, monkeypatch, caplog):
        monkeypatch.setenv(ENV_BULK_WORKERS, "lots")
        monkeypatch.setenv(ENV_CACHE_TTL, "0")

        config = Config()

        assert config.bulk_update_workers == 4
        assert config.cache_ttl_seconds == DEFAULT_CACHE_TTL_SECONDS
        assert "lots" in caplog.text

    def test_environment_variable_selects_mode(self, monkeypatch):
        monkeypatch.setenv(ENV_ENVIRONMENT, "development")
        assert get_config().is_development


class TestSingleton:
    def test_same_instance(self):
        assert get_config() is get_config()

    def test_environment_is_fixed_after_creation(self):
        config = get_config("production")
        assert get_config("development") is config
        assert config.is_production

    def test_reset(self):
        first = get_config()
        reset_config()
        assert get_config() is not first

"""Tests for environment-driven configuration."""

import logging

import pytest

from hospital_mpi.core.config import (
    ApplicationConfig,
    LoggingConfig,
    SecurityConfig,
    configure_logging,
)


class TestApplicationConfig:
    """Loading and validation."""

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("HOSPITAL_BASE", raising=False)
        monkeypatch.delenv("HOSPITAL_PROVIDER", raising=False)
        monkeypatch.delenv("STORE_BACKEND", raising=False)

        config = ApplicationConfig()

        assert config.store_backend == "mongo"
        assert config.hospital_source.provider_name == "hospital"
        assert config.hospital_source.base_url == "http://hospital-a.api.co.th"
        assert config.hospital_source.timeout_seconds == 2
        assert config.search.legacy_default_limit == 10
        assert config.search.default_limit == 20
        assert config.search.max_limit == 100
        assert config.get_database_collections() == {
            "patients": "patients",
            "search_events": "search_events",
            "staff": "staff",
        }

    def test_unknown_backend_is_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STORE_BACKEND", "postgres")

        with pytest.raises(ValueError, match="Unknown store backend"):
            ApplicationConfig()

    def test_production_requires_secret(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ENVIRONMENT", "production")
        monkeypatch.setenv("JWT_SECRET", "")

        with pytest.raises(ValueError, match="JWT secret"):
            ApplicationConfig()

    def test_bcrypt_rounds_are_bounded(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BCRYPT_ROUNDS", "3")

        with pytest.raises(ValueError, match="BCRYPT_ROUNDS"):
            ApplicationConfig()

    def test_to_dict_masks_secrets(self) -> None:
        config = ApplicationConfig(security=SecurityConfig(jwt_secret_key="s3cret"))

        data = config.to_dict()

        assert data["security"]["jwt_secret_key"] == "***masked***"
        assert config.security.jwt_secret_key == "s3cret"


def test_configure_logging_sets_level() -> None:
    configure_logging(LoggingConfig(level="WARNING", log_file=None))

    assert logging.getLogger().level == logging.WARNING

    configure_logging(LoggingConfig(level="INFO", log_file=None))

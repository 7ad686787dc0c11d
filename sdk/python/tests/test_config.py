"""Tests for settings and logging setup."""

from datetime import timedelta

import pytest
import structlog
from pydantic import ValidationError

from cel_did.config import Settings
from cel_did.logging import configure_logging, get_logger


class TestSettings:
    def test_defaults(self, monkeypatch) -> None:
        for name in ("CEL_C14N", "CEL_WITNESS_THRESHOLD", "CEL_HEARTBEAT_INTERVAL"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings(_env_file=None)

        assert settings.c14n == "JCS"
        assert settings.witness_threshold == 0
        assert settings.heartbeat_interval == timedelta(days=1)
        assert settings.witnesses is None

    def test_environment(self, monkeypatch) -> None:
        monkeypatch.setenv("CEL_C14N", "RDFC")
        monkeypatch.setenv("CEL_WITNESS_THRESHOLD", "2")
        monkeypatch.setenv("CEL_HEARTBEAT_INTERVAL", "PT1H")
        monkeypatch.setenv(
            "CEL_WITNESSES",
            '["did:key:z6MkhaXgBZDvotDkL5257faiztiGiC2QtKLGpbnnEGta2doK"]',
        )

        settings = Settings(_env_file=None)

        assert settings.c14n == "RDFC"
        assert settings.witness_threshold == 2
        assert settings.heartbeat_interval == timedelta(hours=1)
        assert settings.witnesses == ["did:key:z6MkhaXgBZDvotDkL5257faiztiGiC2QtKLGpbnnEGta2doK"]

    @pytest.mark.parametrize(
        "overrides",
        [{"c14n": "URDNA"}, {"witness_threshold": -1}, {"signing_timeout": 0}],
        ids=["c14n", "threshold", "timeout"],
    )
    def test_rejects_invalid(self, overrides: dict) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, **overrides)

    def test_frozen(self) -> None:
        settings = Settings(_env_file=None)

        with pytest.raises(ValidationError):
            settings.c14n = "RDFC"


class TestLogging:
    @pytest.mark.parametrize("environment", ["development", "production"])
    def test_configure(self, environment: str) -> None:
        configure_logging(Settings(_env_file=None, environment=environment, log_level="DEBUG"))

        logger = get_logger("cel_did.test")
        logger.info("configured", environment=environment)

        assert structlog.is_configured()
        structlog.reset_defaults()

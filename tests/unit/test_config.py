"""
Unit tests for SDK configuration and logging setup.
"""

import json
import logging

import pytest
from pydantic import ValidationError as PydanticValidationError

from tsn_sdk.config import ClientSettings, setup_logging


class TestClientSettings:
    """Tests for ClientSettings."""

    def test_defaults(self, monkeypatch):
        """Defaults apply without environment."""
        for name in ("TSN_TX_POLL_INTERVAL", "TSN_LOG_LEVEL", "TSN_LOG_FORMAT"):
            monkeypatch.delenv(name, raising=False)
        settings = ClientSettings()
        assert settings.tx_poll_interval == 1.0
        assert settings.log_level == "INFO"
        assert settings.log_format == "text"
        assert settings.max_composition_depth == 16

    def test_env_prefix(self, monkeypatch):
        """TSN_ variables override defaults."""
        monkeypatch.setenv("TSN_TX_POLL_INTERVAL", "0.25")
        monkeypatch.setenv("TSN_MAX_COMPOSITION_DEPTH", "4")
        settings = ClientSettings()
        assert settings.tx_poll_interval == 0.25
        assert settings.max_composition_depth == 4

    def test_rejects_zero_interval(self):
        """Poll interval must be positive."""
        with pytest.raises(PydanticValidationError):
            ClientSettings(tx_poll_interval=0)

    def test_rejects_unknown_format(self):
        """Only text and json formats exist."""
        with pytest.raises(PydanticValidationError):
            ClientSettings(log_format="xml")


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_configures_given_logger(self):
        """Level and a single handler are applied."""
        logger = logging.getLogger("tsn_sdk.tests.config")
        setup_logging(ClientSettings(log_level="debug"), logger)
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1

    def test_json_format(self):
        """JSON format emits one parseable JSON object per line, quotes included."""
        logger = logging.getLogger("tsn_sdk.tests.json")
        setup_logging(ClientSettings(log_format="json"), logger)
        formatter = logger.handlers[0].formatter
        message = 'Address does not match "0x12"'
        record = logging.LogRecord("x", logging.INFO, __file__, 1, message, None, None)

        payload = json.loads(formatter.format(record))

        assert payload["message"] == message
        assert "time" in payload

    def test_default_logger(self):
        """Without a logger, the package logger is configured."""
        assert setup_logging(ClientSettings()).name == "tsn_sdk"

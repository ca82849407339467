"""Tests for settings loading and logging setup."""

import logging
from datetime import datetime

import pytest

from zephyr_mcp.config import DEFAULT_TIMEOUT, load_settings, setup_logging
from zephyr_mcp.errors import ConfigError

ENV = {"ZEPHYR_API_KEY": "secret-key", "ZEPHYR_BASE_URL": "https://zephyr.example.com/v2"}


class TestLoadSettings:

    def test_complete_environment(self):
        settings = load_settings(ENV)
        assert settings.api_key == "secret-key"
        assert settings.base_url == "https://zephyr.example.com/v2"
        assert settings.timeout == DEFAULT_TIMEOUT

    def test_missing_api_key(self):
        with pytest.raises(ConfigError) as exc_info:
            load_settings({"ZEPHYR_BASE_URL": ENV["ZEPHYR_BASE_URL"]})
        assert exc_info.value.code == -32093

    def test_blank_base_url(self):
        with pytest.raises(ConfigError) as exc_info:
            load_settings({"ZEPHYR_API_KEY": "secret-key", "ZEPHYR_BASE_URL": "   "})
        assert exc_info.value.code == -32094

    @pytest.mark.parametrize("raw, expected", [("12.5", 12.5), ("0", None), ("-1", None)])
    def test_timeout(self, raw, expected):
        assert load_settings(dict(ENV, ZEPHYR_TIMEOUT=raw)).timeout == expected

    def test_invalid_timeout(self):
        with pytest.raises(ConfigError):
            load_settings(dict(ENV, ZEPHYR_TIMEOUT="soon"))


class TestSetupLogging:

    def test_dated_log_file(self, tmp_path):
        logger = setup_logging(level="debug", log_file=str(tmp_path / "zephyr-mcp.log"))
        try:
            logger.info("hello from the test")
            for handler in logger.handlers:
                handler.flush()

            log_date = datetime.now().strftime("%Y-%m-%d")
            written = (tmp_path / f"zephyr-mcp.{log_date}.log").read_text()
            assert "zephyr_mcp - INFO - hello from the test" in written
            assert logger.level == logging.DEBUG
            assert logging.getLogger("urllib3").level == logging.WARNING
        finally:
            setup_logging(level="INFO", log_file="")

    def test_repeated_setup_does_not_duplicate_handlers(self):
        setup_logging(level="INFO", log_file="")
        logger = setup_logging(level="INFO", log_file="")
        assert len(logger.handlers) == 1

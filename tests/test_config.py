"""Tests for settings, error types and log censoring."""

import importlib
import logging

import pytest
import structlog
from pydantic import SecretStr
from pydantic import ValidationError as PydanticValidationError

from torznab_search import logger as logger_module
from torznab_search.config import Settings, TorznabCategory
from torznab_search.errors import (
    APIError,
    AppError,
    ConfigurationError,
    ValidationError,
)
from torznab_search.logger import PACKAGE_LOGGER, censor_sensitive_data, configure_logging

# =============================================================================
# Tests for Settings
# =============================================================================


class TestSettings:
    """Tests for Settings validation."""

    def test_defaults(self):
        config = Settings(_env_file=None)
        assert config.jackett_url == "http://localhost:9117"
        assert config.torrent_max_concurrency == 5
        assert config.torrent_fetch_timeout == 5.0
        assert config.torrent_batch_timeout == 10.0

    def test_log_level_normalized(self):
        assert Settings(_env_file=None, log_level="debug").log_level == "DEBUG"

    def test_invalid_log_level(self):
        with pytest.raises(PydanticValidationError):
            Settings(_env_file=None, log_level="verbose")

    def test_environment(self):
        config = Settings(_env_file=None, environment="Development")
        assert config.environment == "development"
        assert config.is_production is False

    def test_invalid_environment(self):
        with pytest.raises(PydanticValidationError):
            Settings(_env_file=None, environment="staging")

    def test_invalid_concurrency(self):
        with pytest.raises(PydanticValidationError):
            Settings(_env_file=None, torrent_max_concurrency=0)

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("JACKETT_URL", "http://jackett.lan:9117")
        monkeypatch.setenv("JACKETT_API_KEY", "abc123")
        config = Settings(_env_file=None)
        assert config.jackett_url == "http://jackett.lan:9117"
        assert config.jackett_api_key.get_secret_value() == "abc123"

    def test_safe_dict_masks_secret(self):
        config = Settings(_env_file=None, jackett_api_key=SecretStr("abc123"))
        safe = config.get_safe_dict()
        assert safe["jackett_api_key"] == "***"
        assert "abc123" not in str(safe)


class TestTorznabCategory:
    """Tests for category codes."""

    @pytest.mark.parametrize(
        ("category", "code"),
        [
            (TorznabCategory.MOVIES, "2000"),
            (TorznabCategory.MOVIES_HD, "2040"),
            (TorznabCategory.MOVIES_4K, "2045"),
            (TorznabCategory.TV, "5000"),
            (TorznabCategory.TV_HD, "5040"),
            (TorznabCategory.TV_4K, "5045"),
        ],
    )
    def test_codes(self, category, code):
        assert category.code == code

    def test_lookup_by_value(self):
        assert TorznabCategory("moviesHD") is TorznabCategory.MOVIES_HD


# =============================================================================
# Tests for errors
# =============================================================================


class TestErrors:
    """Tests for the application error hierarchy."""

    def test_api_error(self):
        error = APIError("Jackett search timed out", 504)
        assert error.code == "API_ERROR"
        assert error.status_code == 504
        assert str(error) == "Jackett search timed out"

    def test_validation_and_configuration_errors(self):
        assert ValidationError("bad").status_code == 400
        assert ConfigurationError("missing").code == "CONFIGURATION_ERROR"

    def test_hierarchy(self):
        assert isinstance(APIError("x"), AppError)
        assert isinstance(ConfigurationError("x"), AppError)
        assert isinstance(ValidationError("x"), AppError)


# =============================================================================
# Tests for log censoring
# =============================================================================


class TestCensorSensitiveData:
    """Tests for censor_sensitive_data processor."""

    def test_sensitive_keys_masked(self):
        event = censor_sensitive_data(None, "info", {"event": "x", "api_key": "abc"})
        assert event["api_key"] == "***"
        assert event["event"] == "x"

    def test_apikey_scrubbed_from_urls(self):
        event = censor_sensitive_data(
            None,
            "error",
            {"url": "http://jackett:9117/api?apikey=abc123&t=search&q=dune"},
        )
        assert event["url"] == "http://jackett:9117/api?apikey=***&t=search&q=dune"

    def test_nested_values(self):
        event = censor_sensitive_data(
            None,
            "info",
            {"request": {"params": "apikey=abc", "password": "hunter2"}, "count": 3},
        )
        assert event["request"] == {"params": "apikey=***", "password": "***"}
        assert event["count"] == 3


# =============================================================================
# Tests for logging setup
# =============================================================================


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    root_handlers = list(root.handlers)
    package_handlers = list(package_logger.handlers)
    propagate = package_logger.propagate
    yield root
    package_logger.handlers[:] = package_handlers
    package_logger.propagate = propagate
    root.handlers[:] = root_handlers
    structlog.reset_defaults()


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_import_leaves_root_handlers_alone(self, restore_logging):
        marker = logging.NullHandler()
        restore_logging.addHandler(marker)

        importlib.reload(logger_module)

        assert marker in restore_logging.handlers

    def test_configure_does_not_touch_root(self, restore_logging):
        marker = logging.NullHandler()
        restore_logging.addHandler(marker)

        configure_logging(Settings(_env_file=None, log_level="DEBUG"))

        assert marker in restore_logging.handlers
        package_logger = logging.getLogger(PACKAGE_LOGGER)
        assert package_logger.level == logging.DEBUG
        assert package_logger.propagate is False

    def test_configure_twice_keeps_one_handler(self, restore_logging):
        first = configure_logging(Settings(_env_file=None))
        second = configure_logging(Settings(_env_file=None))

        handlers = logging.getLogger(PACKAGE_LOGGER).handlers
        assert second in handlers
        assert first not in handlers

"""
Unit tests for logging setup.
"""
import json
import logging
from typing import Iterator

import pytest
import structlog
from pythonjsonlogger.json import JsonFormatter

from payment_reconciler.config import Settings
from payment_reconciler.monitoring.logging import add_app_context, setup_logging


@pytest.fixture
def root_logger() -> Iterator[logging.Logger]:
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield root
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
    structlog.reset_defaults()


class TestSetupLogging:
    """Test suite for setup_logging."""

    @pytest.mark.unit
    def test_installs_json_handler(self, test_settings: Settings, root_logger: logging.Logger) -> None:
        setup_logging(test_settings)

        assert len(root_logger.handlers) == 1
        formatter = root_logger.handlers[0].formatter
        assert isinstance(formatter, JsonFormatter)
        assert root_logger.level == getattr(logging, test_settings.log_level)

        record = logging.LogRecord("payments", logging.WARNING, __file__, 1, "payment_event", None, None)
        line = json.loads(formatter.format(record))

        assert line["level"] == "WARNING"
        assert line["logger"] == "payments"
        assert line["message"] == "payment_event"
        assert "@timestamp" in line

    @pytest.mark.unit
    def test_app_context_processor(self, test_settings: Settings) -> None:
        processor = add_app_context(test_settings)

        event = processor(None, "info", {"event": "payment_inserted"})

        assert event["app_name"] == test_settings.app_name
        assert event["app_env"] == test_settings.app_env

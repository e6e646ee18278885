"""Tests for structlog configuration."""

import json
import logging

import pytest

from privault.logging import configure_logging


@pytest.fixture(autouse=True)
def _restore_logging():
    """Restore root logger state after each test."""
    root = logging.getLogger()
    original_handlers = root.handlers[:]
    original_level = root.level
    privault_logger = logging.getLogger("privault")
    privault_level = privault_logger.level
    yield
    root.handlers = original_handlers
    root.setLevel(original_level)
    privault_logger.setLevel(privault_level)


class TestConfigureLogging:

    def test_verbose_enables_debug(self):
        configure_logging(verbose=True)
        assert logging.getLogger("privault").level == logging.DEBUG
        assert logging.getLogger().level == logging.WARNING

    def test_non_verbose_sets_warning(self):
        configure_logging(verbose=False)
        assert logging.getLogger("privault").level == logging.WARNING

    def test_json_mode_output(self, capfd):
        configure_logging(verbose=True, log_json=True)
        logging.getLogger("privault.test").warning("json test")
        parsed = json.loads(capfd.readouterr().err.strip())
        assert parsed["event"] == "json test"
        assert parsed["level"] == "warning"
        assert parsed["logger"] == "privault.test"
        assert "timestamp" in parsed

    def test_library_records_are_structured(self, capfd):
        configure_logging(verbose=True, log_json=True)
        logging.getLogger("privault.vault.ledger").info("deposit completed")
        parsed = json.loads(capfd.readouterr().err.strip())
        assert parsed["event"] == "deposit completed"
        assert parsed["level"] == "info"
        assert parsed["logger"] == "privault.vault.ledger"

    def test_idempotent_calls(self):
        configure_logging()
        configure_logging()
        assert len(logging.getLogger().handlers) == 1

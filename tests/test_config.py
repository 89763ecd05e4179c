"""
Tests for configuration and structured logging
"""

import json
import logging

from core_savings import config as config_module
from core_savings.config import SavingsConfig, get_config, reload_config
from core_savings.logging_config import JSONFormatter, setup_logging, log_action


class TestSavingsConfig:
    """Test environment-driven configuration"""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("SAVINGS_ADMIN_IDENTITY", raising=False)
        monkeypatch.delenv("SAVINGS_STORAGE_BACKEND", raising=False)

        cfg = SavingsConfig(_env_file=None)

        assert cfg.admin_identity == "admin"
        assert cfg.storage_backend == "memory"
        assert cfg.api_port == 8095
        assert cfg.enable_audit_logging
        assert cfg.enable_events

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("SAVINGS_ADMIN_IDENTITY", "treasury")
        monkeypatch.setenv("SAVINGS_ENABLE_EVENTS", "false")

        cfg = SavingsConfig(_env_file=None)

        assert cfg.admin_identity == "treasury"
        assert not cfg.enable_events

    def test_reload_config(self, monkeypatch):
        original = get_config()
        monkeypatch.setenv("SAVINGS_API_PORT", "9000")
        try:
            reloaded = reload_config()
            assert reloaded.api_port == 9000
            assert get_config() is reloaded
        finally:
            config_module.config = original


class TestStructuredLogging:
    """Test JSON formatting and action logging"""

    def test_json_formatter_drops_empty_fields(self):
        record = logging.LogRecord("savings.vault", logging.INFO, __file__, 1,
                                   "Deposit posted", (), None)
        record.identity = "alice"
        record.action = "deposit"

        entry = json.loads(JSONFormatter().format(record))

        assert entry["message"] == "Deposit posted"
        assert entry["level"] == "INFO"
        assert entry["identity"] == "alice"
        assert entry["action"] == "deposit"
        assert "resource" not in entry
        assert "extra" not in entry

    def test_setup_logging_to_file(self, tmp_path):
        log_file = tmp_path / "savings.log"
        logger = setup_logging(level="DEBUG", fmt="json", log_file=str(log_file),
                               logger_name="savings-test")
        try:
            log_action(logger, "info", "Bank created", identity="alice",
                       action="create_bank", resource="vault-1/base/0",
                       extra={"lock_duration_seconds": 60})
            for handler in logger.handlers:
                handler.flush()

            entry = json.loads(log_file.read_text().strip())
            assert entry["resource"] == "vault-1/base/0"
            assert entry["extra"] == {"lock_duration_seconds": 60}
        finally:
            for handler in logger.handlers[:]:
                handler.close()
                logger.removeHandler(handler)

    def test_setup_logging_replaces_handlers(self):
        logger = setup_logging(fmt="text", logger_name="savings-test-text")
        logger = setup_logging(fmt="text", logger_name="savings-test-text")
        try:
            assert len(logger.handlers) == 1
            assert not isinstance(logger.handlers[0].formatter, JSONFormatter)
        finally:
            for handler in logger.handlers[:]:
                logger.removeHandler(handler)

    def test_log_action_respects_level(self, tmp_path):
        log_file = tmp_path / "quiet.log"
        logger = setup_logging(level="WARNING", log_file=str(log_file),
                               logger_name="savings-test-quiet")
        try:
            log_action(logger, "info", "Not written")
            log_action(logger, "warning", "Rejected", action="withdraw")
            for handler in logger.handlers:
                handler.flush()

            lines = log_file.read_text().strip().splitlines()
            assert len(lines) == 1
            assert json.loads(lines[0])["message"] == "Rejected"
        finally:
            for handler in logger.handlers[:]:
                handler.close()
                logger.removeHandler(handler)

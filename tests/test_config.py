"""
Tests for configuration and structured logging
"""

import json
import logging

import pytest
from pydantic import ValidationError

from token_ledger.config import LedgerConfig, get_config, reload_config
from token_ledger.logging_config import JSONFormatter, setup_logging, log_action, get_logger
from token_ledger.ledger import TokenLedger
from token_ledger.address import Address
from token_ledger.errors import UnauthorizedError
from token_ledger.storage import InMemoryStorage


class TestLedgerConfig:
    """Test environment-driven configuration"""

    def test_defaults(self):
        config = LedgerConfig()

        assert config.token_symbol == "mUSDT"
        assert config.token_decimals == 6
        assert config.integer_bits == 256
        assert config.max_value == (1 << 256) - 1
        assert config.enable_audit_logging

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("LEDGER_TOKEN_SYMBOL", "XTK")
        monkeypatch.setenv("LEDGER_INTEGER_BITS", "128")
        monkeypatch.setenv("LEDGER_ENABLE_EVENTS", "false")

        config = LedgerConfig()

        assert config.token_symbol == "XTK"
        assert config.max_value == (1 << 128) - 1
        assert not config.enable_events

    def test_integer_bits_must_be_positive(self, monkeypatch):
        for bits in ("0", "-8"):
            monkeypatch.setenv("LEDGER_INTEGER_BITS", bits)
            with pytest.raises(ValidationError):
                LedgerConfig()

        with pytest.raises(ValidationError):
            LedgerConfig(integer_bits=0)

    def test_reload(self, monkeypatch):
        monkeypatch.setenv("LEDGER_LOG_LEVEL", "DEBUG")

        reloaded = reload_config()

        assert reloaded.log_level == "DEBUG"
        assert get_config() is reloaded

        monkeypatch.delenv("LEDGER_LOG_LEVEL")
        reload_config()


class CapturingHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


class TestStructuredLogging:
    """Test JSON logging helpers"""

    def test_json_formatter_includes_structured_fields(self):
        logger = logging.getLogger("token_ledger.test.formatter")
        handler = CapturingHandler()
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)

        log_action(logger, "info", "Minted 5", user_id="0xabc", action="mint",
                   resource="account:0xdef", extra={"amount": "5"})

        entry = json.loads(JSONFormatter().format(handler.records[0]))
        assert entry["message"] == "Minted 5"
        assert entry["level"] == "INFO"
        assert entry["action"] == "mint"
        assert entry["user_id"] == "0xabc"
        assert entry["extra"] == {"amount": "5"}
        logger.removeHandler(handler)

    def test_formatter_omits_missing_fields(self):
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "plain", (), None)

        entry = json.loads(JSONFormatter().format(record))

        assert "action" not in entry
        assert entry["message"] == "plain"

    def test_setup_logging_replaces_handlers(self, tmp_path):
        log_file = tmp_path / "ledger.log"

        logger = setup_logging("WARNING", logger_name="token_ledger.test.setup",
                               log_file=str(log_file))
        logger = setup_logging("WARNING", logger_name="token_ledger.test.setup",
                               log_file=str(log_file))

        assert len(logger.handlers) == 1
        assert logger.level == logging.WARNING
        logger.warning("written")
        logger.handlers[0].flush()
        assert json.loads(log_file.read_text().strip())["message"] == "written"
        logger.handlers[0].close()

    def test_ledger_logs_rejections(self):
        handler = CapturingHandler()
        logger = get_logger("token_ledger.ledger")
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)

        admin = Address("0x" + "a1" * 20)
        intruder = Address("0x" + "b2" * 20)
        ledger = TokenLedger(InMemoryStorage(), admin, 10)

        with pytest.raises(UnauthorizedError):
            ledger.pause(intruder)

        warnings = [r for r in handler.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1
        assert warnings[0].action == "pause"
        assert warnings[0].extra == {"code": "UNAUTHORIZED"}
        logger.removeHandler(handler)

    def test_reopen_warns_about_ignored_arguments(self):
        handler = CapturingHandler()
        logger = get_logger("token_ledger.ledger")
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)

        admin = Address("0x" + "a1" * 20)
        storage = InMemoryStorage()
        TokenLedger(storage, admin, 10)

        TokenLedger(storage, admin)
        assert [r for r in handler.records if r.levelno == logging.WARNING] == []

        reopened = TokenLedger(storage, admin, 500, symbol="XTK")

        warnings = [r for r in handler.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1
        assert warnings[0].action == "reopen"
        assert warnings[0].extra == {"initial_supply": "500", "symbol": "XTK"}
        assert reopened.total_supply == 10
        assert reopened.symbol == "mUSDT"
        logger.removeHandler(handler)

"""Tests for settings loading, logging setup and money parsing."""

import logging
from decimal import Decimal

import pytest

from ledger.config import DEFAULT_DATABASE_URL, Settings, load_settings
from ledger.domain import to_money
from ledger.errors import ConfigurationError, InvalidAmountError
from ledger.logging_config import LEDGER_LOGGER, setup_logging


class TestSettings:
    def test_defaults(self):
        settings = load_settings({})

        assert settings == Settings()
        assert settings.database_url == DEFAULT_DATABASE_URL
        assert settings.search_result_limit == 10
        assert settings.search_min_length == 3
        assert settings.jwt_secret is None

    def test_reads_values(self):
        settings = load_settings(
            {
                "DATABASE_URL": "postgresql+asyncpg://u:p@db/ledger",
                "DB_ECHO": "yes",
                "CREATE_SCHEMA": "0",
                "JWT_SECRET": "s3cret",
                "SEARCH_RESULT_LIMIT": "25",
                "TRANSFER_TIMEOUT_SECONDS": "2.5",
                "OPENING_BALANCE": "250",
                "LOG_LEVEL": "debug",
            }
        )

        assert settings.database_url.startswith("postgresql+asyncpg://")
        assert settings.db_echo is True
        assert settings.create_schema is False
        assert settings.jwt_secret == "s3cret"
        assert settings.search_result_limit == 25
        assert settings.transfer_timeout_seconds == 2.5
        assert settings.opening_balance == Decimal("250.00")
        assert settings.log_level == "DEBUG"

    @pytest.mark.parametrize(
        "env",
        [
            {"SEARCH_RESULT_LIMIT": "ten"},
            {"SEARCH_MIN_LENGTH": "0"},
            {"DB_ECHO": "maybe"},
            {"TRANSFER_TIMEOUT_SECONDS": "-1"},
            {"OPENING_BALANCE": "-5"},
            {"OPENING_BALANCE": "lots"},
        ],
    )
    def test_invalid_values(self, env):
        with pytest.raises(ConfigurationError):
            load_settings(env)


class TestLogging:
    def test_setup_twice_keeps_one_handler_pair(self, tmp_path):
        setup_logging("INFO", tmp_path)
        logger = setup_logging("INFO", tmp_path)

        assert len(logger.handlers) == 2
        assert (tmp_path / "ledger.log").exists()

    def test_child_loggers_write_to_file(self, tmp_path):
        setup_logging("DEBUG", tmp_path)
        logging.getLogger(f"{LEDGER_LOGGER}.tests").info("hello ledger")
        for handler in logging.getLogger(LEDGER_LOGGER).handlers:
            handler.flush()

        assert "hello ledger" in (tmp_path / "ledger.log").read_text(encoding="utf-8")


class TestToMoney:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            (0.1, Decimal("0.10")),
            ("10", Decimal("10.00")),
            (Decimal("1.005"), Decimal("1.01")),
            (7, Decimal("7.00")),
            ("9999999999999.99", Decimal("9999999999999.99")),
        ],
    )
    def test_converts(self, raw, expected):
        assert to_money(raw) == expected

    @pytest.mark.parametrize("raw", [None, False, "", "1,5", [1], "sNaN", "1e30", "-1e30", "10000000000000.00"])
    def test_rejects(self, raw):
        with pytest.raises(InvalidAmountError):
            to_money(raw)

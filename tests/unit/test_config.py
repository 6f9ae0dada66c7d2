"""
Тесты для EngineConfig / load_config и configure_logging
"""

import io

import pytest
from loguru import logger

from src.core import logs
from src.core.config import DEFAULT_DATABASE_URL, DEFAULT_RPC_URL, EngineConfig, load_config

ENV_VARS = (
    "LEDGER_RPC_URL",
    "LEDGER_RPC_TIMEOUT",
    "RECONCILE_TIMEOUT",
    "FETCH_CONCURRENCY",
    "POOL_CACHE_DB_URL",
    "LOG_LEVEL",
    "VIEW_RECONCILE",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestEngineConfig:
    """Тесты для EngineConfig"""

    def test_defaults(self, clean_env) -> None:
        config = load_config()

        assert config == EngineConfig()
        assert config.rpc_url == DEFAULT_RPC_URL
        assert config.database_url == DEFAULT_DATABASE_URL
        assert config.rpc_timeout_seconds == 3.0
        assert config.reconcile_timeout_seconds == 5.0
        assert config.fetch_concurrency == 8
        assert config.view_reconcile is True

    def test_from_environment(self, clean_env) -> None:
        clean_env.setenv("LEDGER_RPC_URL", "http://ledger:8899")
        clean_env.setenv("LEDGER_RPC_TIMEOUT", "1.5")
        clean_env.setenv("FETCH_CONCURRENCY", "16")
        clean_env.setenv("POOL_CACHE_DB_URL", "sqlite:///tmp/x.db")
        clean_env.setenv("LOG_LEVEL", " debug ")
        clean_env.setenv("VIEW_RECONCILE", "off")

        config = load_config()

        assert config.rpc_url == "http://ledger:8899"
        assert config.rpc_timeout_seconds == 1.5
        assert config.fetch_concurrency == 16
        assert config.database_url == "sqlite:///tmp/x.db"
        assert config.log_level == "DEBUG"
        assert config.view_reconcile is False

    @pytest.mark.parametrize("raw", ["abc", "0", "-2", "nan"])
    def test_invalid_timeout_falls_back(self, clean_env, raw: str) -> None:
        clean_env.setenv("RECONCILE_TIMEOUT", raw)
        assert load_config().reconcile_timeout_seconds == 5.0

    @pytest.mark.parametrize("raw", ["many", "0", "2.5"])
    def test_invalid_concurrency_falls_back(self, clean_env, raw: str) -> None:
        clean_env.setenv("FETCH_CONCURRENCY", raw)
        assert load_config().fetch_concurrency == 8

    def test_frozen(self) -> None:
        config = EngineConfig()
        with pytest.raises(AttributeError):
            config.rpc_url = "http://elsewhere"

    @pytest.mark.parametrize(
        "kwargs",
        [{"rpc_timeout_seconds": 0}, {"reconcile_timeout_seconds": -1}, {"fetch_concurrency": 0}],
    )
    def test_direct_construction_validated(self, kwargs) -> None:
        with pytest.raises(ValueError):
            EngineConfig(**kwargs)


class TestConfigureLogging:
    """Тесты для configure_logging"""

    def test_installs_single_sink(self, monkeypatch) -> None:
        monkeypatch.setattr(logs, "_LOGGER_CONFIGURED", False)
        stream = io.StringIO()

        logs.configure_logging("WARNING", sink=stream)
        logger.info("[Test] hidden")
        logger.warning("[Test] shown")

        output = stream.getvalue()
        assert "[Test] shown" in output
        assert "[Test] hidden" not in output
        assert "| WARNING |" in output

    def test_configured_once(self, monkeypatch) -> None:
        monkeypatch.setattr(logs, "_LOGGER_CONFIGURED", False)
        first, second = io.StringIO(), io.StringIO()

        logs.configure_logging("INFO", sink=first)
        logs.configure_logging("INFO", sink=second)
        logger.info("[Test] message")

        assert "[Test] message" in first.getvalue()
        assert second.getvalue() == ""

    def test_force_reinstalls(self, monkeypatch) -> None:
        monkeypatch.setattr(logs, "_LOGGER_CONFIGURED", False)
        first, second = io.StringIO(), io.StringIO()

        logs.configure_logging("INFO", sink=first)
        logs.configure_logging("INFO", sink=second, force=True)
        logger.info("[Test] message")

        assert first.getvalue() == ""
        assert "[Test] message" in second.getvalue()

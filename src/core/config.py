"""
EngineConfig — конфигурация движка пулов

Frozen dataclass с дефолтами; load_config() читает переменные окружения.
Некорректные числовые значения окружения заменяются дефолтами.
"""

import os
from dataclasses import dataclass
from typing import Final

DEFAULT_RPC_URL: Final[str] = "http://127.0.0.1:8899"
DEFAULT_DATABASE_URL: Final[str] = "sqlite:///data/pool_cache.db"


@dataclass(frozen=True)
class EngineConfig:
    """
    Конфигурация движка.

    Attributes:
        rpc_url: JSON-RPC endpoint ledger-а
        rpc_timeout_seconds: Таймаут одного RPC-вызова
        reconcile_timeout_seconds: Бюджет одного reconcile (fetch + запись)
        fetch_concurrency: Лимит параллельных fetch при fallback fan-out
        database_url: SQLAlchemy URL локального кэша
        log_level: Уровень логирования loguru
        view_reconcile: Запускать reconcile при чтении view
    """

    rpc_url: str = DEFAULT_RPC_URL
    rpc_timeout_seconds: float = 3.0
    reconcile_timeout_seconds: float = 5.0
    fetch_concurrency: int = 8
    database_url: str = DEFAULT_DATABASE_URL
    log_level: str = "INFO"
    view_reconcile: bool = True

    def __post_init__(self) -> None:
        if self.rpc_timeout_seconds <= 0:
            raise ValueError(f"rpc_timeout_seconds must be > 0, got {self.rpc_timeout_seconds}")
        if self.reconcile_timeout_seconds <= 0:
            raise ValueError(
                f"reconcile_timeout_seconds must be > 0, got {self.reconcile_timeout_seconds}"
            )
        if self.fetch_concurrency < 1:
            raise ValueError(f"fetch_concurrency must be >= 1, got {self.fetch_concurrency}")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value >= 1 else default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "y", "on"}


def load_config() -> EngineConfig:
    """Конфигурация из окружения (LEDGER_RPC_URL, POOL_CACHE_DB_URL, ...)."""
    return EngineConfig(
        rpc_url=os.getenv("LEDGER_RPC_URL", DEFAULT_RPC_URL),
        rpc_timeout_seconds=_env_float("LEDGER_RPC_TIMEOUT", 3.0),
        reconcile_timeout_seconds=_env_float("RECONCILE_TIMEOUT", 5.0),
        fetch_concurrency=_env_int("FETCH_CONCURRENCY", 8),
        database_url=os.getenv("POOL_CACHE_DB_URL", DEFAULT_DATABASE_URL),
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
        view_reconcile=_env_bool("VIEW_RECONCILE", True),
    )

"""
CacheStore — доступ к локальному кэшу пулов (SQLAlchemy)

Синхронные сессии SQLAlchemy выполняются в потоке через
asyncio.to_thread; движок (Engine) внедряется вызывающим.
Каждый apply — одна транзакция: читатели видят строку либо до, либо
целиком после обновления.
"""

import asyncio
from collections.abc import Mapping
from datetime import datetime
from pathlib import Path
from typing import Any, Final

from loguru import logger
from sqlalchemy import Engine, create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker

from src.cache.models import Base, PoolCacheRow
from src.core.domain.pool import PoolCacheRecord

# Поля, которые можно писать через apply
CACHE_FIELDS: Final[tuple[str, ...]] = (
    "content_id",
    "s_long",
    "s_short",
    "r_long",
    "r_short",
    "sqrt_price_long_x96",
    "sqrt_price_short_x96",
    "f",
    "beta_num",
    "beta_den",
    "vault_balance",
    "last_settle_ts",
    "min_settle_interval",
    "current_epoch",
    "expiration_timestamp",
    "last_decay_update",
)

# Поля шире 64 бит (хранятся текстом)
WIDE_FIELDS: Final[frozenset[str]] = frozenset({"sqrt_price_long_x96", "sqrt_price_short_x96"})


def _to_column(name: str, value: Any) -> Any:
    if value is None or name not in WIDE_FIELDS:
        return value
    return str(value)


def _from_column(name: str, value: Any) -> Any:
    if value is None or name not in WIDE_FIELDS:
        return value
    return int(value)


def _to_record(row: PoolCacheRow) -> PoolCacheRecord:
    values = {name: _from_column(name, getattr(row, name)) for name in CACHE_FIELDS}
    return PoolCacheRecord(
        pool_address=row.pool_address,
        last_synced_at=row.last_synced_at,
        **values,
    )


class CacheStore:
    """
    Keyed record store по адресу пула.

    Args:
        engine: SQLAlchemy Engine (создаётся один раз при старте процесса)
    """

    def __init__(self, engine: Engine):
        self._engine = engine
        self._sessions = sessionmaker(engine, expire_on_commit=False)

    @classmethod
    def from_url(cls, database_url: str) -> "CacheStore":
        """Store по URL; для файлового SQLite создаёт родительский каталог."""
        url = make_url(database_url)
        if url.get_backend_name() == "sqlite" and url.database not in (None, "", ":memory:"):
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)
        return cls(create_engine(database_url))

    @property
    def engine(self) -> Engine:
        return self._engine

    def create_schema(self) -> None:
        """Создание таблиц (без миграций)."""
        Base.metadata.create_all(self._engine)

    # =========================================================================
    # SYNC
    # =========================================================================

    def get_sync(self, pool_address: str) -> PoolCacheRecord | None:
        with self._sessions() as session:
            row = session.get(PoolCacheRow, pool_address)
            return _to_record(row) if row is not None else None

    def apply_sync(
        self,
        pool_address: str,
        fields: Mapping[str, Any],
        synced_at: datetime,
    ) -> PoolCacheRecord:
        """
        Частичный upsert в одной транзакции.

        Args:
            pool_address: Ключ строки
            fields: Поля для записи (только из CACHE_FIELDS)
            synced_at: Момент синхронизации

        Returns:
            Строка после записи

        Raises:
            ValueError: Неизвестное поле
        """
        unknown = set(fields) - set(CACHE_FIELDS)
        if unknown:
            raise ValueError(f"unknown cache fields: {sorted(unknown)}")

        with self._sessions.begin() as session:
            row = session.get(PoolCacheRow, pool_address)
            if row is None:
                row = PoolCacheRow(pool_address=pool_address)
                session.add(row)
            for name, value in fields.items():
                setattr(row, name, _to_column(name, value))
            row.last_synced_at = synced_at
            session.flush()
            record = _to_record(row)

        logger.debug("[CacheStore] applied {} field(s) pool={}", len(fields), pool_address)
        return record

    # =========================================================================
    # ASYNC
    # =========================================================================

    async def get(self, pool_address: str) -> PoolCacheRecord | None:
        return await asyncio.to_thread(self.get_sync, pool_address)

    async def apply(
        self,
        pool_address: str,
        fields: Mapping[str, Any],
        synced_at: datetime,
    ) -> PoolCacheRecord:
        return await asyncio.to_thread(self.apply_sync, pool_address, dict(fields), synced_at)

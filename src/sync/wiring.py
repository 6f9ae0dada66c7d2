"""
Сборка сервисов движка из EngineConfig.

httpx-клиент и CacheStore создаются вызывающим один раз на процесс и
передаются сюда по ссылке.
"""

import httpx

from src.cache.store import CacheStore
from src.core.config import EngineConfig
from src.ledger.reader import LedgerReader
from src.ledger.rpc_client import LedgerRpcClient
from src.sync.decay_service import DecayService
from src.sync.pool_view import PoolViewService
from src.sync.reconciler import Reconciler


def build_reader(config: EngineConfig, http: httpx.AsyncClient) -> LedgerReader:
    rpc = LedgerRpcClient(http, config.rpc_url, timeout=config.rpc_timeout_seconds)
    return LedgerReader(
        rpc,
        fetch_concurrency=config.fetch_concurrency,
        default_timeout=config.rpc_timeout_seconds,
    )


def build_reconciler(config: EngineConfig, reader: LedgerReader, store: CacheStore) -> Reconciler:
    return Reconciler(reader, store, default_timeout=config.reconcile_timeout_seconds)


def build_view_service(
    config: EngineConfig,
    reader: LedgerReader,
    store: CacheStore | None = None,
) -> PoolViewService:
    """
    PoolViewService с decay-проекцией через ledger.

    Сверка кэша при чтении включается, только если задан store и
    config.view_reconcile.
    """
    reconciler = None
    if store is not None and config.view_reconcile:
        reconciler = build_reconciler(config, reader, store)
    return PoolViewService(
        reader,
        reconciler=reconciler,
        decay_service=DecayService(reader),
        timeout=config.reconcile_timeout_seconds,
    )

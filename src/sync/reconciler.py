"""
Reconciler — слияние авторитетного состояния ledger-а в локальный кэш

КРИТИЧЕСКИЕ ИНВАРИАНТЫ:
1. Single-flight по адресу пула: параллельные reconcile одного пула ждут
   одну операцию; запись карты in-flight удаляется в finally при любом
   исходе (успех, отказ, таймаут)
2. Volatile-поля (supplies, reserves, prices, vault, timestamps, epoch)
   перезаписываются всегда; content_id и параметры кривой только
   дозаполняются, когда в кэше пусто. force=True (repair) перезаписывает
   всё, что прислал ledger
3. Таймаут или ошибка → NOOP без частичной записи; запись — одна транзакция
4. Бюджет таймаута покрывает чтение ledger-а и кэша; начатая запись
   доводится до конца, чтобы результат соответствовал строке в кэше
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Final

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from src.cache.store import CacheStore
from src.core.domain.errors import Failure, FailureKind
from src.core.domain.pool import PoolCacheRecord, PoolSnapshot
from src.core.math.reserves import check_vault_invariant
from src.ledger.reader import LedgerReader

DEFAULT_RECONCILE_TIMEOUT_SECONDS: Final[float] = 5.0

VOLATILE_FIELDS: Final[tuple[str, ...]] = (
    "s_long",
    "s_short",
    "r_long",
    "r_short",
    "sqrt_price_long_x96",
    "sqrt_price_short_x96",
    "vault_balance",
    "last_settle_ts",
    "min_settle_interval",
    "current_epoch",
    "expiration_timestamp",
    "last_decay_update",
)

BACKFILL_FIELDS: Final[tuple[str, ...]] = ("content_id", "f", "beta_num", "beta_den")


class ReconcileStatus(str, Enum):
    """Исход reconcile"""

    APPLIED = "applied"
    NOOP = "noop"


@dataclass(frozen=True)
class ReconcileOutcome:
    """
    Результат reconcile.

    Attributes:
        pool_address: Адрес пула
        status: APPLIED или NOOP
        applied_fields: Записанные поля
        changed_fields: Записанные поля, значение которых отличалось от кэша
        record: Строка кэша после записи
        snapshot: Snapshot, который был применён
        failure: Причина NOOP
        inconsistency: Failure(INCONSISTENT), если snapshot нарушает vault-инвариант
    """

    pool_address: str
    status: ReconcileStatus
    applied_fields: tuple[str, ...] = ()
    changed_fields: tuple[str, ...] = ()
    record: PoolCacheRecord | None = None
    snapshot: PoolSnapshot | None = None
    failure: Failure | None = None
    inconsistency: Failure | None = None

    @property
    def applied(self) -> bool:
        return self.status is ReconcileStatus.APPLIED

    @classmethod
    def noop(cls, pool_address: str, failure: Failure) -> "ReconcileOutcome":
        return cls(pool_address=pool_address, status=ReconcileStatus.NOOP, failure=failure)


def _snapshot_backfill_values(snapshot: PoolSnapshot) -> dict[str, Any]:
    curve = snapshot.curve
    return {
        "content_id": snapshot.content_id,
        "f": curve.f if curve else None,
        "beta_num": curve.beta_num if curve else None,
        "beta_den": curve.beta_den if curve else None,
    }


def plan_cache_update(
    snapshot: PoolSnapshot,
    current: PoolCacheRecord | None,
    force: bool = False,
) -> dict[str, Any]:
    """
    Набор полей для частичного upsert.

    Args:
        snapshot: Авторитетный snapshot
        current: Текущая строка кэша (None если строки нет)
        force: Перезаписать backfill-поля даже если они заданы

    Returns:
        {field: value}; значения None из ledger никогда не стирают кэш
    """
    fields: dict[str, Any] = {name: getattr(snapshot, name) for name in VOLATILE_FIELDS}

    for name, value in _snapshot_backfill_values(snapshot).items():
        if value is None:
            continue
        if force or current is None or getattr(current, name) is None:
            fields[name] = value

    return fields


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Reconciler:
    """
    Single-flight reconcile пулов.

    Args:
        reader: LedgerReader
        store: CacheStore
        default_timeout: Бюджет по умолчанию (секунды)
        clock: Источник времени для last_synced_at
    """

    def __init__(
        self,
        reader: LedgerReader,
        store: CacheStore,
        default_timeout: float = DEFAULT_RECONCILE_TIMEOUT_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._reader = reader
        self._store = store
        self._default_timeout = default_timeout
        self._clock = clock
        self._in_flight: dict[str, asyncio.Task[ReconcileOutcome]] = {}

    @property
    def in_flight_count(self) -> int:
        return len(self._in_flight)

    async def reconcile(
        self,
        pool_address: str,
        snapshot: PoolSnapshot | None = None,
        timeout: float | None = None,
        force: bool = False,
    ) -> ReconcileOutcome:
        """
        Reconcile одного пула.

        Параллельные вызовы для одного адреса ждут одну операцию, каждый
        не дольше своего бюджета: по его истечении вызывающий получает
        NOOP(TIMEOUT), а общая операция продолжается.
        force-вызов дожидается текущей операции и запускает свою в
        пределах оставшегося бюджета.

        Args:
            pool_address: Адрес пула
            snapshot: Уже прочитанный snapshot (без повторного fetch)
            timeout: Бюджет вызывающего (секунды)
            force: Перезаписать backfill-поля (repair)
        """
        budget = timeout if timeout is not None else self._default_timeout
        loop = asyncio.get_running_loop()
        deadline = loop.time() + budget

        task = self._in_flight.get(pool_address)
        while task is not None and force:
            try:
                await asyncio.wait_for(asyncio.shield(task), max(deadline - loop.time(), 0.0))
            except TimeoutError:
                return self._timed_out(pool_address, budget)
            task = self._in_flight.get(pool_address)

        if task is not None:
            logger.debug("[Reconciler] joined in-flight reconcile pool={}", pool_address)
            try:
                return await asyncio.wait_for(asyncio.shield(task), max(deadline - loop.time(), 0.0))
            except TimeoutError:
                return self._timed_out(pool_address, budget)

        remaining = deadline - loop.time()
        if remaining <= 0:
            return self._timed_out(pool_address, budget)
        task = asyncio.create_task(self._run(pool_address, snapshot, remaining, force))
        self._in_flight[pool_address] = task
        return await asyncio.shield(task)

    async def reconcile_many(
        self,
        pool_addresses: list[str],
        timeout: float | None = None,
    ) -> dict[str, ReconcileOutcome]:
        """
        Reconcile набора пулов: один batch fetch, затем reconcile каждого.

        Пулы, которые batch не вернул, получают NOOP(NOT_FOUND).
        Reconcile каждого пула получает остаток бюджета после fetch.
        """
        budget = timeout if timeout is not None else self._default_timeout
        loop = asyncio.get_running_loop()
        deadline = loop.time() + budget
        snapshots = await self._reader.fetch_many(pool_addresses, timeout=budget)

        async def one(address: str) -> ReconcileOutcome:
            snapshot = snapshots.get(address)
            if snapshot is None:
                return ReconcileOutcome.noop(
                    address,
                    Failure(FailureKind.NOT_FOUND, "no snapshot in batch read", pool_address=address),
                )
            return await self.reconcile(
                address, snapshot=snapshot, timeout=max(deadline - loop.time(), 0.0)
            )

        addresses = list(snapshots)
        outcomes = await asyncio.gather(*(one(address) for address in addresses))
        return dict(zip(addresses, outcomes))

    async def _run(
        self,
        pool_address: str,
        snapshot: PoolSnapshot | None,
        timeout: float | None,
        force: bool,
    ) -> ReconcileOutcome:
        budget = timeout if timeout is not None else self._default_timeout
        loop = asyncio.get_running_loop()
        deadline = loop.time() + budget

        try:
            if snapshot is None:
                result = await self._reader.fetch(pool_address, timeout=budget)
                if isinstance(result, Failure):
                    logger.info(
                        "[Reconciler] NOOP pool={} reason={} ({})",
                        pool_address,
                        result.kind.value,
                        result.message,
                    )
                    return ReconcileOutcome.noop(pool_address, result)
                snapshot = result

            remaining = deadline - loop.time()
            if remaining <= 0:
                return self._timed_out(pool_address, budget)

            try:
                current = await asyncio.wait_for(self._store.get(pool_address), remaining)
            except TimeoutError:
                return self._timed_out(pool_address, budget)

            if loop.time() >= deadline:
                return self._timed_out(pool_address, budget)

            fields = plan_cache_update(snapshot, current, force=force)
            record = await self._store.apply(pool_address, fields, self._clock())

        except SQLAlchemyError as e:
            logger.opt(exception=e).error("[Reconciler] cache failure pool={}", pool_address)
            return ReconcileOutcome.noop(
                pool_address,
                Failure(FailureKind.TRANSPORT, f"cache failure: {e}", pool_address=pool_address),
            )
        finally:
            if self._in_flight.get(pool_address) is asyncio.current_task():
                del self._in_flight[pool_address]

        changed = tuple(
            name
            for name, value in fields.items()
            if current is None or getattr(current, name) != value
        )
        inconsistency = check_vault_invariant(snapshot)

        logger.debug(
            "[Reconciler] APPLIED pool={} fields={} changed={} force={}",
            pool_address,
            len(fields),
            len(changed),
            force,
        )
        return ReconcileOutcome(
            pool_address=pool_address,
            status=ReconcileStatus.APPLIED,
            applied_fields=tuple(fields),
            changed_fields=changed,
            record=record,
            snapshot=snapshot,
            inconsistency=inconsistency,
        )

    @staticmethod
    def _timed_out(pool_address: str, budget: float) -> ReconcileOutcome:
        logger.warning("[Reconciler] NOOP pool={} reason=timeout budget={}s", pool_address, budget)
        return ReconcileOutcome.noop(
            pool_address,
            Failure(FailureKind.TIMEOUT, f"reconcile exceeded {budget}s", pool_address=pool_address),
        )

"""
PoolViewService — presentation read API

Читает авторитетный snapshot, (опционально) сверяет кэш, проецирует
decay и собирает PoolView с human-scale Decimal значениями.
NotFound/Timeout/Transport/Decode → PoolView.unavailable без сырых ошибок.
Нарушение vault-инварианта логируется на ERROR и отмечается флагом
inconsistent; значения всё равно возвращаются.
"""

import asyncio
from decimal import Decimal

from loguru import logger

from src.core.domain.errors import Failure, FailureKind
from src.core.domain.pool import DecayProjection, PoolSnapshot, PoolView
from src.core.domain.units import micro_to_usdc
from src.core.math.decay import project_decay
from src.core.math.fixed_point import decode_price
from src.core.math.reserves import check_vault_invariant
from src.ledger.reader import LedgerReader
from src.sync.decay_service import DecayService
from src.sync.reconciler import Reconciler


def build_pool_view(snapshot: PoolSnapshot, projection: DecayProjection) -> PoolView:
    """
    PoolView из snapshot и проекции decay (чистая функция).

    Supplies ledger-а уже в целых токенах (reserve = supply * price_micro),
    поэтому market_cap = price_long * s_long + price_short * s_short
    совпадает с суммой резервов в USDC с точностью до округления цены.

    Examples:
        >>> snap = PoolSnapshot(pool_address="P", s_long=0, s_short=0, r_long=0, r_short=0,
        ...     sqrt_price_long_x96=0, sqrt_price_short_x96=0, vault_balance=0)
        >>> build_pool_view(snap, project_decay(snap, 0)).price_long
        Decimal('1')
    """
    price_long = decode_price(snapshot.sqrt_price_long_x96)
    price_short = decode_price(snapshot.sqrt_price_short_x96)
    supply_long = Decimal(snapshot.s_long)
    supply_short = Decimal(snapshot.s_short)

    inconsistency = check_vault_invariant(snapshot)

    return PoolView(
        pool_address=snapshot.pool_address,
        price_long=price_long,
        price_short=price_short,
        supply_long=supply_long,
        supply_short=supply_short,
        relevance=projection.relevance,
        market_cap=price_long * supply_long + price_short * supply_short,
        vault_balance_display=micro_to_usdc(snapshot.vault_balance),
        decay_pending=projection.decay_pending,
        inconsistent=inconsistency is not None,
        failure_kind=inconsistency.kind if inconsistency is not None else None,
    )


class PoolViewService:
    """
    Args:
        reader: LedgerReader
        reconciler: Reconciler для сверки кэша при чтении (None — без записи)
        decay_service: DecayService (None — локальный закон)
        timeout: Бюджет одного вызова get_view/get_views (секунды);
            fetch, сверка кэша и симуляция делят один дедлайн
    """

    def __init__(
        self,
        reader: LedgerReader,
        reconciler: Reconciler | None = None,
        decay_service: DecayService | None = None,
        timeout: float = 5.0,
    ):
        self._reader = reader
        self._reconciler = reconciler
        self._decay_service = decay_service
        self._timeout = timeout

    async def get_view(self, pool_address: str, now: int) -> PoolView:
        """View одного пула на момент now (unix, сек)."""
        deadline = self._deadline()
        result = await self._reader.fetch(pool_address, timeout=self._timeout)
        if isinstance(result, Failure):
            return self._unavailable(pool_address, result)
        return await self._build(result, now, deadline)

    async def get_views(self, pool_addresses: list[str], now: int) -> dict[str, PoolView]:
        """
        Views нескольких пулов одним batch-чтением.

        Пул без snapshot (отказ элемента или таймаут) → unavailable.
        """
        deadline = self._deadline()
        snapshots = await self._reader.fetch_many(pool_addresses, timeout=self._timeout)

        async def one(address: str) -> PoolView:
            snapshot = snapshots.get(address)
            if snapshot is None:
                return PoolView.unavailable(address)
            return await self._build(snapshot, now, deadline)

        addresses = list(snapshots)
        views = await asyncio.gather(*(one(address) for address in addresses))
        return dict(zip(addresses, views))

    def _deadline(self) -> float:
        return asyncio.get_running_loop().time() + self._timeout

    @staticmethod
    def _remaining(deadline: float) -> float:
        return max(deadline - asyncio.get_running_loop().time(), 0.0)

    async def _build(self, snapshot: PoolSnapshot, now: int, deadline: float) -> PoolView:
        if self._reconciler is not None:
            outcome = await self._reconciler.reconcile(
                snapshot.pool_address, snapshot=snapshot, timeout=self._remaining(deadline)
            )
            if not outcome.applied and outcome.failure is not None:
                logger.warning(
                    "[PoolViewService] cache not refreshed pool={} ({})",
                    snapshot.pool_address,
                    outcome.failure.kind.value,
                )

        if self._decay_service is not None:
            projection = await self._decay_service.project(
                snapshot, now, timeout=self._remaining(deadline)
            )
            if isinstance(projection, Failure):
                return self._unavailable(snapshot.pool_address, projection)
        else:
            projection = project_decay(snapshot, now)

        return build_pool_view(snapshot, projection)

    @staticmethod
    def _unavailable(pool_address: str, failure: Failure) -> PoolView:
        if failure.kind is FailureKind.DECODE_ERROR:
            logger.error("[PoolViewService] undecodable pool state pool={}: {}", pool_address, failure.message)
        else:
            logger.info("[PoolViewService] data unavailable pool={} ({})", pool_address, failure.kind.value)
        return PoolView.unavailable(pool_address, failure_kind=failure.kind)

"""
DecayService — read-only проекция decay

Источник истины — view-симуляция ledger-а (simulateCurrentState).
Если она недоступна (не поддерживается, таймаут, ошибка транспорта),
проекция считается по локальному закону src.core.math.decay.
NOT_FOUND не маскируется: пул, которого нет в ledger, не проецируется.
"""

from loguru import logger

from src.core.domain.errors import Failure, FailureKind
from src.core.domain.pool import DecayProjection, PoolSnapshot, ProjectionSource
from src.core.math.decay import project_decay
from src.core.math.reserves import relevance
from src.ledger.reader import LedgerReader


class DecayService:
    """
    Args:
        reader: LedgerReader (None — только локальный закон)
    """

    def __init__(self, reader: LedgerReader | None = None):
        self._reader = reader

    async def project(
        self,
        snapshot: PoolSnapshot,
        now: int,
        timeout: float | None = None,
    ) -> DecayProjection | Failure:
        """
        Проекция decay на момент now.

        Args:
            snapshot: Авторитетный snapshot пула
            now: Текущее время (unix, сек)
            timeout: Бюджет ledger-симуляции

        Returns:
            DecayProjection (source=LEDGER или LOCAL) или Failure(NOT_FOUND)
        """
        if self._reader is None:
            return project_decay(snapshot, now)

        simulated = await self._reader.simulate_current_state(snapshot.pool_address, timeout=timeout)

        if isinstance(simulated, Failure):
            if simulated.kind is FailureKind.NOT_FOUND:
                return simulated
            logger.debug(
                "[DecayService] ledger simulation unavailable pool={} ({}), using local law",
                snapshot.pool_address,
                simulated.kind.value,
            )
            return project_decay(snapshot, now)

        return DecayProjection(
            pool_address=snapshot.pool_address,
            now=now,
            days_expired=simulated.days_expired,
            days_since_last_update=simulated.days_since_last_update,
            decay_pending=simulated.decay_pending,
            r_long=simulated.r_long,
            r_short=simulated.r_short,
            vault_balance=snapshot.vault_balance,
            relevance=relevance(simulated.r_long, simulated.r_short),
            source=ProjectionSource.LEDGER,
        )

"""
SettlementEngine — эксклюзивный settlement пулов на границе эпохи

КРИТИЧЕСКИЕ ИНВАРИАНТЫ:
1. Один settlement пула в момент времени (asyncio.Lock на адрес)
2. Cooldown проверяется против max(snapshot.last_settle_ts, последний
   settlement, выполненный этим движком): устаревший snapshot не
   позволяет повторить settlement в той же эпохе
3. TOO_EARLY не меняет резервы
4. Сумма резервов сохраняется точно
5. Состояние движка ограничено активными пулами: lock живёт, пока его
   кто-то держит или ждёт; запись о settlement живёт до конца cooldown
"""

import asyncio

from loguru import logger

from src.core.domain.pool import PoolSnapshot
from src.core.math.settlement import SettlementResult, compute_settlement, is_settle_allowed


class SettlementEngine:
    """Применяет закон settlement к авторитетным snapshot-ам ledger-а."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}
        # address -> (settled_at, min_settle_interval)
        self._last_settled: dict[str, tuple[int, int]] = {}

    @property
    def tracked_pool_count(self) -> int:
        """Число пулов, о которых движок хранит состояние."""
        return len(self._locks.keys() | self._last_settled.keys())

    def last_settled_at(self, pool_address: str) -> int:
        """Последний settlement пула, выполненный движком (0 — не было или cooldown истёк)."""
        entry = self._last_settled.get(pool_address)
        return entry[0] if entry is not None else 0

    def _acquire_slot(self, pool_address: str) -> asyncio.Lock:
        lock = self._locks.get(pool_address)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[pool_address] = lock
        self._lock_users[pool_address] = self._lock_users.get(pool_address, 0) + 1
        return lock

    def _release_slot(self, pool_address: str) -> None:
        users = self._lock_users[pool_address] - 1
        if users:
            self._lock_users[pool_address] = users
            return
        del self._lock_users[pool_address]
        del self._locks[pool_address]

    def _forget_elapsed(self, now: int) -> None:
        elapsed = [
            address
            for address, (settled_at, interval) in self._last_settled.items()
            if is_settle_allowed(settled_at, interval, now)
        ]
        for address in elapsed:
            del self._last_settled[address]

    async def settle(self, snapshot: PoolSnapshot, score_millionths: int, now: int) -> SettlementResult:
        """
        Settlement пула.

        Args:
            snapshot: Авторитетный snapshot (резервы ledger-а, не кэша)
            score_millionths: Реализованный score в [0, 1_000_000]
            now: Текущее время (unix, сек)

        Returns:
            SettlementResult (applied=False + Failure(TOO_EARLY) при cooldown)

        Raises:
            ValueError: Если score вне [0, 1_000_000]
        """
        address = snapshot.pool_address
        self._forget_elapsed(now)
        lock = self._acquire_slot(address)
        try:
            async with lock:
                return self._settle_locked(snapshot, score_millionths, now)
        finally:
            self._release_slot(address)

    def _settle_locked(self, snapshot: PoolSnapshot, score_millionths: int, now: int) -> SettlementResult:
        address = snapshot.pool_address
        recorded = self.last_settled_at(address)
        if recorded > snapshot.last_settle_ts:
            snapshot = snapshot.model_copy(update={"last_settle_ts": recorded})

        result = compute_settlement(snapshot, score_millionths, now)

        if not result.applied:
            logger.info(
                "[SettlementEngine] TOO_EARLY pool={} ({})",
                address,
                result.failure.message if result.failure else "cooldown",
            )
            return result

        self._last_settled[address] = (now, snapshot.min_settle_interval)
        logger.info(
            "[SettlementEngine] settled pool={} epoch={} score={} q={} "
            "f_long={} f_short={} r_long {}->{} r_short {}->{}",
            address,
            result.epoch,
            score_millionths,
            result.q_millionths,
            result.f_long,
            result.f_short,
            result.r_long_before,
            result.r_long,
            result.r_short_before,
            result.r_short,
        )
        return result

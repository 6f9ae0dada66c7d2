"""
LedgerReader — чтение авторитетного состояния пулов из ledger

Все сетевые и декодирующие ошибки возвращаются как типизированные
Failure; fetch_many изолирует плохой элемент (None для него) и никогда
не ждёт самый медленный элемент дольше бюджета вызывающего.
"""

import asyncio
from typing import Final

from loguru import logger

from src.core.contracts import PoolDecayStateValidator, PoolStateValidator
from src.core.domain.errors import Failure, FailureKind, LedgerDecodeError, LedgerRpcError
from src.core.domain.pool import LedgerDecayState, PoolSnapshot
from src.ledger.decoding import decode_decay_state, decode_pool_state
from src.ledger.rpc_client import METHOD_NOT_FOUND_CODE, POOL_NOT_FOUND_CODE, LedgerRpcClient

DEFAULT_FETCH_CONCURRENCY: Final[int] = 8
DEFAULT_TIMEOUT_SECONDS: Final[float] = 3.0


class LedgerReader:
    """
    Reader поверх LedgerRpcClient.

    Args:
        rpc: Внедрённый JSON-RPC клиент
        fetch_concurrency: Лимит параллельных запросов fallback fan-out
        default_timeout: Бюджет по умолчанию (секунды)
    """

    def __init__(
        self,
        rpc: LedgerRpcClient,
        fetch_concurrency: int = DEFAULT_FETCH_CONCURRENCY,
        default_timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        if fetch_concurrency < 1:
            raise ValueError(f"fetch_concurrency must be >= 1, got {fetch_concurrency}")
        self._rpc = rpc
        self._fetch_concurrency = fetch_concurrency
        self._default_timeout = default_timeout
        self._pool_validator = PoolStateValidator()
        self._decay_validator = PoolDecayStateValidator()
        # None: неизвестно; False: ledger ответил -32601
        self._multi_supported: bool | None = None

    # =========================================================================
    # SINGLE
    # =========================================================================

    async def fetch(self, address: str, timeout: float | None = None) -> PoolSnapshot | Failure:
        """
        Snapshot одного пула.

        Returns:
            PoolSnapshot или Failure(NOT_FOUND | TIMEOUT | TRANSPORT | DECODE_ERROR)
        """
        budget = timeout if timeout is not None else self._default_timeout
        try:
            payload = await asyncio.wait_for(self._rpc.get_pool_state(address, timeout=budget), budget)
        except TimeoutError:
            logger.warning("[LedgerReader] fetch timed out pool={} budget={}s", address, budget)
            return Failure(FailureKind.TIMEOUT, f"fetch exceeded {budget}s", pool_address=address)
        except LedgerRpcError as e:
            return self._rpc_failure(address, e)
        except LedgerDecodeError as e:
            return self._decode_failure(address, e)

        if payload is None:
            return Failure(FailureKind.NOT_FOUND, "pool not found on ledger", pool_address=address)

        try:
            return decode_pool_state(address, payload, self._pool_validator)
        except LedgerDecodeError as e:
            return self._decode_failure(address, e)

    # =========================================================================
    # BATCH
    # =========================================================================

    async def fetch_many(
        self,
        addresses: list[str],
        timeout: float | None = None,
    ) -> dict[str, PoolSnapshot | None]:
        """
        Snapshots нескольких пулов.

        Сначала один multi-item вызов; если ledger его не поддерживает
        или вызов не удался — bounded fan-out, соединённый через
        asyncio.wait с остатком бюджета. Незавершённые элементы отменяются.

        Returns:
            {address: PoolSnapshot | None}; None для любого отказа элемента
        """
        unique = list(dict.fromkeys(addresses))
        if not unique:
            return {}

        budget = timeout if timeout is not None else self._default_timeout
        loop = asyncio.get_running_loop()
        deadline = loop.time() + budget

        if self._multi_supported is not False:
            batch = await self._fetch_batch(unique, budget)
            if batch is not None:
                return batch

        remaining = max(deadline - loop.time(), 0.0)
        if remaining == 0.0:
            return {address: None for address in unique}
        return await self._fan_out(unique, remaining)

    async def _fetch_batch(
        self, addresses: list[str], budget: float
    ) -> dict[str, PoolSnapshot | None] | None:
        try:
            payloads = await asyncio.wait_for(
                self._rpc.get_multiple_pool_states(addresses, timeout=budget), budget
            )
        except TimeoutError:
            logger.warning("[LedgerReader] batch fetch timed out n={} budget={}s", len(addresses), budget)
            return {address: None for address in addresses}
        except LedgerRpcError as e:
            if e.code == METHOD_NOT_FOUND_CODE:
                logger.info("[LedgerReader] ledger has no multi-item call, using fan-out")
                self._multi_supported = False
            else:
                logger.warning("[LedgerReader] batch fetch failed: {}, using fan-out", e)
            return None
        except LedgerDecodeError as e:
            logger.warning("[LedgerReader] batch response undecodable: {}, using fan-out", e)
            return None

        if not isinstance(payloads, list) or len(payloads) != len(addresses):
            logger.warning("[LedgerReader] batch response shape mismatch, using fan-out")
            return None

        self._multi_supported = True
        results: dict[str, PoolSnapshot | None] = {}
        for address, payload in zip(addresses, payloads):
            if payload is None:
                results[address] = None
                continue
            try:
                results[address] = decode_pool_state(address, payload, self._pool_validator)
            except LedgerDecodeError as e:
                self._decode_failure(address, e)
                results[address] = None
        return results

    async def _fan_out(self, addresses: list[str], budget: float) -> dict[str, PoolSnapshot | None]:
        semaphore = asyncio.Semaphore(self._fetch_concurrency)

        async def fetch_one(address: str) -> PoolSnapshot | Failure:
            async with semaphore:
                return await self.fetch(address, timeout=budget)

        tasks = {asyncio.create_task(fetch_one(address)): address for address in addresses}
        done, pending = await asyncio.wait(tasks, timeout=budget)

        for task in pending:
            task.cancel()
        if pending:
            await asyncio.wait(pending)
            logger.warning("[LedgerReader] {} fetch(es) abandoned after {}s", len(pending), budget)

        results: dict[str, PoolSnapshot | None] = {}
        for task, address in tasks.items():
            if task not in done or task.cancelled():
                results[address] = None
                continue
            error = task.exception()
            if error is not None:
                logger.opt(exception=error).error("[LedgerReader] fetch crashed pool={}", address)
                results[address] = None
                continue
            outcome = task.result()
            results[address] = outcome if isinstance(outcome, PoolSnapshot) else None
        return results

    # =========================================================================
    # DECAY SIMULATION
    # =========================================================================

    async def simulate_current_state(
        self, address: str, timeout: float | None = None
    ) -> LedgerDecayState | Failure:
        """
        Read-only симуляция decay на стороне ledger.

        Returns:
            LedgerDecayState или Failure (TRANSPORT с details.unsupported=True
            если ledger не предоставляет view)
        """
        budget = timeout if timeout is not None else self._default_timeout
        try:
            payload = await asyncio.wait_for(
                self._rpc.simulate_current_state(address, timeout=budget), budget
            )
        except TimeoutError:
            return Failure(FailureKind.TIMEOUT, f"simulation exceeded {budget}s", pool_address=address)
        except LedgerRpcError as e:
            return self._rpc_failure(address, e)
        except LedgerDecodeError as e:
            return self._decode_failure(address, e)

        if payload is None:
            return Failure(FailureKind.NOT_FOUND, "pool not found on ledger", pool_address=address)

        try:
            return decode_decay_state(address, payload, self._decay_validator)
        except LedgerDecodeError as e:
            return self._decode_failure(address, e)

    # =========================================================================
    # FAILURES
    # =========================================================================

    @staticmethod
    def _rpc_failure(address: str, error: LedgerRpcError) -> Failure:
        if error.code == POOL_NOT_FOUND_CODE:
            return Failure(FailureKind.NOT_FOUND, error.message, pool_address=address)
        logger.warning("[LedgerReader] rpc failure pool={}: {}", address, error)
        return Failure(
            FailureKind.TRANSPORT,
            str(error),
            pool_address=address,
            details={"code": error.code, "unsupported": error.code == METHOD_NOT_FOUND_CODE},
        )

    @staticmethod
    def _decode_failure(address: str, error: LedgerDecodeError) -> Failure:
        logger.warning("[LedgerReader] decode failure pool={}: {}", address, error)
        return Failure(FailureKind.DECODE_ERROR, str(error), pool_address=address)

"""
LedgerRpcClient — JSON-RPC 2.0 клиент ledger-а

Тонкая обёртка над внедрённым httpx.AsyncClient: клиент создаётся один
раз при старте процесса и передаётся по ссылке, глобального соединения
нет. Жизненным циклом httpx-клиента владеет вызывающий.
"""

from typing import Any, Final

import httpx
from loguru import logger

from src.core.domain.errors import LedgerDecodeError, LedgerRpcError

# JSON-RPC: метод не поддерживается сервером
METHOD_NOT_FOUND_CODE: Final[int] = -32601

# Ledger: аккаунт пула не существует
POOL_NOT_FOUND_CODE: Final[int] = -32004

METHOD_GET_POOL_STATE: Final[str] = "getPoolState"
METHOD_GET_MULTIPLE_POOL_STATES: Final[str] = "getMultiplePoolStates"
METHOD_SIMULATE_CURRENT_STATE: Final[str] = "simulateCurrentState"


class LedgerRpcClient:
    """
    JSON-RPC клиент ledger-а.

    Usage:
        async with httpx.AsyncClient() as http:
            rpc = LedgerRpcClient(http, "http://127.0.0.1:8899")
            payload = await rpc.get_pool_state("Pool1111")

    Ошибки:
        TimeoutError — истёк таймаут HTTP-запроса
        LedgerRpcError — транспортная ошибка или JSON-RPC error (с code)
        LedgerDecodeError — ответ не является JSON-RPC объектом
    """

    def __init__(self, client: httpx.AsyncClient, url: str, timeout: float = 3.0):
        self._client = client
        self.url = url
        self.timeout = timeout
        self._id = 0

    async def call(self, method: str, params: list | None = None, timeout: float | None = None) -> Any:
        """Один JSON-RPC вызов; возвращает поле result."""
        self._id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._id,
            "method": method,
            "params": params or [],
        }

        try:
            response = await self._client.post(
                self.url,
                json=payload,
                timeout=timeout if timeout is not None else self.timeout,
            )
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise TimeoutError(f"{method} timed out") from e
        except httpx.HTTPError as e:
            raise LedgerRpcError(f"Connection failed: {e}") from e

        try:
            body = response.json()
        except ValueError as e:
            raise LedgerDecodeError(f"{method}: response is not JSON") from e

        if not isinstance(body, dict):
            raise LedgerDecodeError(f"{method}: response is not a JSON-RPC object")

        error = body.get("error")
        if error:
            code = error.get("code") if isinstance(error, dict) else None
            message = error.get("message", "unknown error") if isinstance(error, dict) else str(error)
            logger.debug("[LedgerRpc] {} failed code={} message={}", method, code, message)
            raise LedgerRpcError(message, code=code)

        return body.get("result")

    # =========================================================================
    # LEDGER METHODS
    # =========================================================================

    async def get_pool_state(self, address: str, timeout: float | None = None) -> Any:
        """Состояние одного пула (None если пул не найден)."""
        return await self.call(METHOD_GET_POOL_STATE, [address], timeout=timeout)

    async def get_multiple_pool_states(self, addresses: list[str], timeout: float | None = None) -> Any:
        """Состояния нескольких пулов одним вызовом (список, null для отсутствующих)."""
        return await self.call(METHOD_GET_MULTIPLE_POOL_STATES, [addresses], timeout=timeout)

    async def simulate_current_state(self, address: str, timeout: float | None = None) -> Any:
        """Read-only симуляция текущего состояния пула с учётом decay."""
        return await self.call(METHOD_SIMULATE_CURRENT_STATE, [address], timeout=timeout)

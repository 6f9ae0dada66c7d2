"""
Failure taxonomy движка пулов

Recoverable условия (сеть, парсинг, cooldown, рассогласование инвариантов)
возвращаются как типизированные значения Failure, а не как исключения —
batch-операции изолируют один плохой элемент.

Исключения ниже существуют только внутри границ модулей:
- LedgerDecodeError поднимается декодером и конвертируется reader-ом в Failure
- LedgerRpcError поднимается RPC-клиентом и конвертируется reader-ом в Failure
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class FailureKind(str, Enum):
    """Тип recoverable-отказа"""

    NOT_FOUND = "not_found"
    DECODE_ERROR = "decode_error"
    TOO_EARLY = "too_early"
    TIMEOUT = "timeout"
    INCONSISTENT = "inconsistent"
    TRANSPORT = "transport"


@dataclass(frozen=True)
class Failure:
    """
    Типизированный отказ операции.

    Attributes:
        kind: Тип отказа
        message: Человекочитаемое описание (для логов и repair-диагностики)
        pool_address: Адрес пула, если применимо
        details: Дополнительная диагностика
    """

    kind: FailureKind
    message: str
    pool_address: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def is_unavailable(self) -> bool:
        """True для отказов, которые presentation показывает как 'data unavailable'."""
        return self.kind in (FailureKind.NOT_FOUND, FailureKind.TIMEOUT, FailureKind.TRANSPORT)


class LedgerDecodeError(ValueError):
    """
    Некорректное числовое кодирование в payload ledger-а.

    Возникает на единственной границе декодирования (parse_wide_int, схемы
    payload-ов, sqrt-price вне u128). Reader конвертирует её в
    Failure(DECODE_ERROR); наружу из reader-а не пропагирует.
    """

    pass


class LedgerRpcError(Exception):
    """
    Ошибка JSON-RPC вызова ledger-а.

    code повторяет JSON-RPC error code (-32601 — метод не поддерживается,
    None — транспортная ошибка без ответа сервера).
    """

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    def __str__(self) -> str:
        if self.code is None:
            return self.message
        return f"RPC Error {self.code}: {self.message}"

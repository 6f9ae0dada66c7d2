"""
Numerical Safeguards — Safe Math Primitives

Модуль обеспечивает численную устойчивость всех вычислений движка пулов:
- Целочисленный корень (floor) без float
- mul_div для fixed-point арифметики (Q32, Q96)
- Валидация входов (неотрицательные целые, диапазоны)

КРИТИЧЕСКИЕ ИНВАРИАНТЫ:
1. Нарушение предусловий (деление на ноль, отрицательный подкоренной
   аргумент) — ошибка программы → CurveDomainError, а не fallback
2. Целочисленные операции детерминированы и совпадают с ledger бит-в-бит
"""

import math


# =============================================================================
# EXCEPTIONS
# =============================================================================


class CurveDomainError(ArithmeticError):
    """
    Нарушение математического предусловия (programming error).

    Возникает при делении на ноль, отрицательном подкоренном выражении,
    отрицательной supply или нулевом lambda при инверсии cost function.
    Никогда не перехватывается библиотечным кодом: это не runtime/network
    условие, а нарушенный контракт вызывающего.
    """

    pass


# =============================================================================
# ЦЕЛОЧИСЛЕННЫЕ ПРИМИТИВЫ
# =============================================================================


def isqrt_floor(n: int) -> int:
    """
    Целочисленный квадратный корень (floor).

    Args:
        n: Неотрицательное целое

    Returns:
        floor(sqrt(n))

    Raises:
        CurveDomainError: Если n < 0

    Examples:
        >>> isqrt_floor(10)
        3
        >>> isqrt_floor(0)
        0
    """
    if n < 0:
        raise CurveDomainError(f"negative radicand: {n}")
    return math.isqrt(n)


def mul_div(a: int, b: int, d: int) -> int:
    """
    floor((a * b) / d) без промежуточного переполнения.

    В Python целые произвольной точности, поэтому 256-битный промежуточный
    результат ledger-а получается естественно; функция фиксирует семантику
    floor и запрет d == 0.

    Raises:
        CurveDomainError: Если d == 0
    """
    if d == 0:
        raise CurveDomainError("division by zero in mul_div")
    return (a * b) // d


def clamp(value, min_value=None, max_value=None):
    """
    Ограничение значения диапазоном [min_value, max_value].

    Работает для int и Decimal одинаково.

    Examples:
        >>> clamp(5, 0, 10)
        5
        >>> clamp(-1, 0, 1)
        0
    """
    result = value
    if min_value is not None:
        result = max(result, min_value)
    if max_value is not None:
        result = min(result, max_value)
    return result


# =============================================================================
# ВАЛИДАЦИЯ
# =============================================================================


def validate_non_negative_int(value: int, name: str) -> None:
    """
    Валидация неотрицательного целого (supply, reserve, amount).

    Raises:
        CurveDomainError: Если value не int (bool не допускается) или < 0
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise CurveDomainError(f"{name} must be an int, got {type(value).__name__}")
    if value < 0:
        raise CurveDomainError(f"{name} must be non-negative, got {value}")


def validate_in_range(
    value: int,
    name: str,
    min_value: int | None = None,
    max_value: int | None = None,
) -> None:
    """
    Валидация целого входа (score, bps) по диапазону.

    Raises:
        ValueError: Если value не int или вне диапазона
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an int, got {type(value).__name__}")

    if min_value is not None and value < min_value:
        raise ValueError(f"{name} must be >= {min_value}, got {value}")

    if max_value is not None and value > max_value:
        raise ValueError(f"{name} must be <= {max_value}, got {value}")

"""
FixedPoint — кодек sqrt-price X96 и fixed-point константы

Ledger хранит цену стороны как sqrt(price) * 2^96, где price — micro-USDC
за токен. Возведение в квадрат даёт price * 2^192, что не помещается в
128-битное целое ledger-а, поэтому деление выполняется двумя
последовательными сдвигами по 96 бит.

ИНВАРИАНТЫ:
1. Encode/decode ядро — только целые числа (никакого float)
2. decode(encode(p)) == p с точностью до 1 micro-USDC для p, заданной
   в micro-единицах (до 2 micro-USDC для цен с более мелкой дробной частью)
3. Нулевая/отсутствующая sqrt-price декодируется в bootstrap fallback
"""

from decimal import ROUND_FLOOR, Decimal
from typing import Final

from src.core.domain.errors import LedgerDecodeError
from src.core.domain.units import USDC_PRECISION, micro_to_usdc
from src.core.math.numerical_safeguards import isqrt_floor

# =============================================================================
# FIXED-POINT КОНСТАНТЫ
# =============================================================================

Q96_SHIFT: Final[int] = 96
Q96: Final[int] = 1 << Q96_SHIFT

Q32_ONE: Final[int] = 1 << 32

# sqrt-price обязана помещаться в u128 ledger-а
MAX_SQRT_PRICE_X96: Final[int] = 1 << 128

# Цена при нулевой supply (view-функция ledger-а отдаёт 1.0 USDC)
BOOTSTRAP_PRICE_USDC: Final[Decimal] = Decimal("1")


# =============================================================================
# ВАЛИДАЦИЯ
# =============================================================================


def is_valid_sqrt_price(sqrt_price_x96: int) -> bool:
    """True если 0 < sqrt_price_x96 < 2^128."""
    return 0 < sqrt_price_x96 < MAX_SQRT_PRICE_X96


def _check_range(sqrt_price_x96: int) -> None:
    if sqrt_price_x96 < 0 or sqrt_price_x96 >= MAX_SQRT_PRICE_X96:
        raise LedgerDecodeError(
            f"sqrt_price_x96 out of u128 range: {sqrt_price_x96}"
        )


# =============================================================================
# DECODE
# =============================================================================


def decode_price_micro(sqrt_price_x96: int) -> int:
    """
    sqrt-price X96 → цена в micro-USDC за токен (floor).

    price = (sqrt_price_x96)^2 / 2^192, деление двумя сдвигами по 96 бит.

    Raises:
        LedgerDecodeError: Если значение вне диапазона u128
    """
    _check_range(sqrt_price_x96)

    price_x96 = mul_shift_right_96(sqrt_price_x96, sqrt_price_x96)
    return price_x96 >> Q96_SHIFT


def decode_price(
    sqrt_price_x96: int | None,
    fallback: Decimal = BOOTSTRAP_PRICE_USDC,
) -> Decimal:
    """
    sqrt-price X96 → человекочитаемая цена (USDC за токен, Decimal).

    Args:
        sqrt_price_x96: Значение из ledger (None/0 — не задано)
        fallback: Цена для нулевой/незаданной sqrt-price

    Returns:
        Decimal цена; fallback вместо NaN или деления на ноль

    Examples:
        >>> decode_price(0)
        Decimal('1')
        >>> decode_price(Q96)
        Decimal('0.000001')
    """
    if not sqrt_price_x96:
        return fallback
    return micro_to_usdc(decode_price_micro(sqrt_price_x96))


# =============================================================================
# ENCODE
# =============================================================================


def encode_price_micro(price_micro: int) -> int:
    """
    Цена в micro-USDC → sqrt-price X96: floor(sqrt(price_micro) * 2^96).

    Считается как isqrt(price_micro << 192) — точно, без float.
    """
    if price_micro < 0:
        raise ValueError(f"price must be non-negative, got {price_micro}")
    return isqrt_floor(price_micro << (2 * Q96_SHIFT))


def encode_price(price: Decimal | int | str) -> int:
    """
    Человекочитаемая цена (USDC за токен) → sqrt-price X96.

    Цена переводится в micro-USDC (floor), затем берётся целочисленный
    корень от price_micro * 2^192.

    Raises:
        ValueError: Если цена отрицательная или не число
    """
    if isinstance(price, float):
        price = Decimal(repr(price))
    price_dec = Decimal(price)
    if not price_dec.is_finite() or price_dec < 0:
        raise ValueError(f"price must be a finite non-negative number, got {price}")

    price_micro = int((price_dec * USDC_PRECISION).to_integral_value(rounding=ROUND_FLOOR))
    return encode_price_micro(price_micro)


# =============================================================================
# Q32 / Q96 ПОМОЩНИКИ
# =============================================================================


def ratio_to_q32(numerator: int, denominator: int) -> int:
    """floor(numerator * 2^32 / denominator); denominator обязан быть > 0."""
    if denominator <= 0:
        raise ValueError(f"denominator must be positive, got {denominator}")
    return (numerator * Q32_ONE) // denominator


def mul_shift_right_96(a_q96: int, b: int) -> int:
    """(a_q96 * b) >> 96 — умножение на Q96-множитель с floor."""
    if a_q96 < 0 or b < 0:
        raise ValueError("mul_shift_right_96 expects non-negative operands")
    return (a_q96 * b) >> Q96_SHIFT


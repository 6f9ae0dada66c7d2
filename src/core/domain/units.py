"""
PoolUnits — Централизованный модуль конверсии единиц пула

Единственный допустимый способ преобразований между:
- micro-USDC (целые, 6 знаков) ↔ USDC (Decimal)
- атомарные единицы токена ↔ display-токены (Decimal)
- score в [0, 1] ↔ millionths (целые, 1_000_000 = 1.0)
- basis points ↔ доли

ЗАПРЕЩЕНО смешивать единицы без явного конвертера из этого модуля.
Float в этом модуле не используется: все human-scale значения — Decimal.
"""

from decimal import ROUND_FLOOR, Decimal
from typing import Final

# =============================================================================
# КОНСТАНТЫ ЕДИНИЦ
# =============================================================================

# USDC имеет 6 знаков после запятой
USDC_DECIMALS: Final[int] = 6
USDC_PRECISION: Final[int] = 10**USDC_DECIMALS

# Токены пула также имеют 6 знаков
TOKEN_DECIMALS: Final[int] = 6
TOKEN_PRECISION: Final[int] = 10**TOKEN_DECIMALS

# Score / relevance / factors в millionths
MILLIONTHS: Final[int] = 1_000_000

# Basis points
BPS_DENOMINATOR: Final[int] = 10_000

SECONDS_PER_DAY: Final[int] = 86_400


# =============================================================================
# USDC
# =============================================================================


def micro_to_usdc(amount_micro: int) -> Decimal:
    """
    micro-USDC → USDC (точно, без округления).

    Examples:
        >>> micro_to_usdc(1_500_000)
        Decimal('1.500000')
    """
    return Decimal(amount_micro).scaleb(-USDC_DECIMALS)


def usdc_to_micro(amount_usdc: Decimal | int | str) -> int:
    """
    USDC → micro-USDC (floor).

    Raises:
        ValueError: Если сумма отрицательная или не конечна
    """
    value = Decimal(amount_usdc)
    if not value.is_finite() or value < 0:
        raise ValueError(f"USDC amount must be finite and non-negative, got {amount_usdc}")
    return int(value.scaleb(USDC_DECIMALS).to_integral_value(rounding=ROUND_FLOOR))


# =============================================================================
# ТОКЕНЫ
# =============================================================================


def atomic_to_display(amount_atomic: int, decimals: int = TOKEN_DECIMALS) -> Decimal:
    """Атомарные единицы → display-токены."""
    return Decimal(amount_atomic).scaleb(-decimals)


def display_to_atomic(amount_display: Decimal | int | str, decimals: int = TOKEN_DECIMALS) -> int:
    """Display-токены → атомарные единицы (floor)."""
    value = Decimal(amount_display)
    if not value.is_finite() or value < 0:
        raise ValueError(f"token amount must be finite and non-negative, got {amount_display}")
    return int(value.scaleb(decimals).to_integral_value(rounding=ROUND_FLOOR))


# =============================================================================
# SCORE / MILLIONTHS / BPS
# =============================================================================


def score_to_millionths(score: Decimal | int | str) -> int:
    """
    Score в [0, 1] → millionths (floor).

    Raises:
        ValueError: Если score вне [0, 1]
    """
    value = Decimal(score)
    if not value.is_finite() or value < 0 or value > 1:
        raise ValueError(f"score must be in [0, 1], got {score}")
    return int((value * MILLIONTHS).to_integral_value(rounding=ROUND_FLOOR))


def millionths_to_score(value_millionths: int) -> Decimal:
    """Millionths → Decimal в [0, 1]."""
    return Decimal(value_millionths).scaleb(-6)


def bps_to_fraction(value_bps: int) -> Decimal:
    """Basis points → доля (100 bps = 0.01)."""
    return Decimal(value_bps) / BPS_DENOMINATOR


def whole_days_between(start_ts: int, end_ts: int) -> int:
    """Число полных суток между двумя unix-timestamp (0 если end <= start)."""
    if end_ts <= start_ts:
        return 0
    return (end_ts - start_ts) // SECONDS_PER_DAY

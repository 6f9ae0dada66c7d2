"""
ReserveModel — виртуальные резервы, relevance и торговые quote-ы

Инвариант сущности: reserve_side = supply_side * price_side (в пределах
округления). Relevance — нормированная доля резерва LONG.

Buy/sell quote-ы — локальные оценки для display и pre-trade симуляции.
Единственный источник истины о пост-трейдовом состоянии — ledger;
расхождение после реальной сделки обрабатывается reconcile-чтением,
а не локальной коррекцией.
"""

from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal, localcontext
from typing import Final

from loguru import logger

from src.core.domain.errors import Failure, FailureKind
from src.core.domain.pool import CANONICAL_CURVE, CurveParams, PoolSnapshot, TokenSide
from src.core.domain.units import micro_to_usdc
from src.core.math.curve import CURVE_PRECISION, cost, invert_cost, marginal_price, validate_curve_params
from src.core.math.fixed_point import Q96, Q96_SHIFT, decode_price_micro
from src.core.math.numerical_safeguards import (
    CurveDomainError,
    clamp,
    isqrt_floor,
    validate_non_negative_int,
)

# =============================================================================
# КОНСТАНТЫ
# =============================================================================

# Relevance при пустом пуле
DEFAULT_RELEVANCE: Final[Decimal] = Decimal("0.5")

# Допуск инварианта reserve == supply * price (единицы micro-USDC)
RESERVE_TOLERANCE_UNITS: Final[int] = 1


# =============================================================================
# RELEVANCE / VIRTUAL RESERVES
# =============================================================================


def relevance(r_long: int | Decimal, r_short: int | Decimal) -> Decimal:
    """
    Relevance = r_long / (r_long + r_short), clamp в [0, 1].

    Examples:
        >>> relevance(0, 0)
        Decimal('0.5')
        >>> relevance(1, 3)
        Decimal('0.25')
    """
    total = Decimal(r_long) + Decimal(r_short)
    if total <= 0:
        return DEFAULT_RELEVANCE
    return clamp(Decimal(r_long) / total, Decimal(0), Decimal(1))


def virtual_reserve(supply: int, sqrt_price_x96: int) -> int:
    """Резерв стороны в micro-USDC: supply * floor(price_micro)."""
    validate_non_negative_int(supply, "supply")
    return supply * decode_price_micro(sqrt_price_x96)


def virtual_reserves(
    s_long: int,
    s_short: int,
    lam: Decimal | int = 1,
    params: CurveParams = CANONICAL_CURVE,
) -> tuple[Decimal, Decimal]:
    """(s_long * p_long, s_short * p_short) в единицах λ."""
    p_long = marginal_price(s_long, s_short, TokenSide.LONG, lam, params)
    p_short = marginal_price(s_long, s_short, TokenSide.SHORT, lam, params)
    return Decimal(s_long) * p_long, Decimal(s_short) * p_short


# =============================================================================
# ИНВАРИАНТЫ
# =============================================================================


def check_reserve_invariant(
    supply: int,
    sqrt_price_x96: int,
    reserve: int,
    tolerance: int = RESERVE_TOLERANCE_UNITS,
) -> bool:
    """
    Проверка reserve == supply * price в пределах округления.

    Цена декодируется с floor до micro-USDC, поэтому точное значение
    supply * price лежит в [supply * p, supply * (p + 1)); tolerance
    расширяет интервал на заданное число единиц с обеих сторон.
    """
    price_micro = decode_price_micro(sqrt_price_x96)
    lower = supply * price_micro - tolerance
    upper = supply * (price_micro + 1) + tolerance
    return lower <= reserve <= upper


def check_vault_invariant(snapshot: PoolSnapshot) -> Failure | None:
    """
    vault_balance >= r_long + r_short.

    Нарушение логируется на уровне ERROR и возвращается как
    Failure(INCONSISTENT); значения snapshot не исправляются.
    """
    if snapshot.vault_balance >= snapshot.total_reserve:
        return None

    logger.error(
        "[ReserveModel] Vault invariant violated pool={} vault={} reserves={}",
        snapshot.pool_address,
        snapshot.vault_balance,
        snapshot.total_reserve,
    )
    return Failure(
        kind=FailureKind.INCONSISTENT,
        message="vault balance below total virtual reserve",
        pool_address=snapshot.pool_address,
        details={
            "vault_balance": snapshot.vault_balance,
            "r_long": snapshot.r_long,
            "r_short": snapshot.r_short,
        },
    )


# =============================================================================
# QUOTES
# =============================================================================


@dataclass(frozen=True)
class BuyQuote:
    """
    Оценка покупки.

    Attributes:
        side: Сторона покупки
        amount_in: USDC на входе (micro)
        tokens_out: Токены на выходе (floor, >= 0)
        supply_before: Supply стороны до сделки
        supply_after: supply_before + tokens_out
        cost_before: Cost пула до сделки (micro, floor)
        cost_after: Cost пула после сделки (micro, floor)
        avg_price: Средняя цена (USDC за токен), None при tokens_out == 0
    """

    side: TokenSide
    amount_in: int
    tokens_out: int
    supply_before: int
    supply_after: int
    cost_before: int
    cost_after: int
    avg_price: Decimal | None


@dataclass(frozen=True)
class SellQuote:
    """
    Оценка продажи.

    tokens_in — фактически продаваемое количество (не больше supply).
    """

    side: TokenSide
    tokens_in: int
    usdc_out: int
    supply_before: int
    supply_after: int
    cost_before: int
    cost_after: int
    avg_price: Decimal | None


def _split(s_long: int, s_short: int, side: TokenSide) -> tuple[int, int]:
    validate_non_negative_int(s_long, "s_long")
    validate_non_negative_int(s_short, "s_short")
    if side is TokenSide.LONG:
        return s_long, s_short
    return s_short, s_long


def _avg_price(usdc_micro: int, tokens: int) -> Decimal | None:
    if tokens == 0:
        return None
    return micro_to_usdc(usdc_micro) / Decimal(tokens)


def _decimal_lambda(lambda_q96: int) -> Decimal:
    with localcontext() as ctx:
        ctx.prec = CURVE_PRECISION
        return Decimal(lambda_q96) / Decimal(Q96)


def quote_buy(
    s_long: int,
    s_short: int,
    side: TokenSide,
    amount_in: int,
    lambda_q96: int,
    params: CurveParams = CANONICAL_CURVE,
) -> BuyQuote:
    """
    Оценка покупки инверсией cost function.

    cost_after = cost_before + amount_in; новая supply стороны решается
    при фиксированной противоположной. Канонический путь — целочисленный
    Q96 (как в ledger):
        C_before = isqrt(λ² * (s² + o²))
        C_after  = C_before + (amount_in << 96)
        s_new    = isqrt(C_after² / λ² - o²)

    Args:
        s_long: Supply LONG
        s_short: Supply SHORT
        side: Покупаемая сторона
        amount_in: USDC на входе (micro)
        lambda_q96: λ * 2^96 (см. derive_lambda_q96)
        params: Параметры кривой

    Returns:
        BuyQuote; tokens_out floor, никогда не отрицательный

    Raises:
        CurveDomainError: λ == 0 или отрицательные входы
    """
    s, other = _split(s_long, s_short, side)
    validate_non_negative_int(amount_in, "amount_in")
    validate_non_negative_int(lambda_q96, "lambda_q96")
    if lambda_q96 == 0:
        raise CurveDomainError("cannot invert cost function with zero lambda")

    if validate_curve_params(params):
        lam_sq = lambda_q96 * lambda_q96
        c_before = isqrt_floor(lam_sq * (s * s + other * other))
        c_after = c_before + (amount_in << Q96_SHIFT)
        s_new = isqrt_floor(max(c_after * c_after // lam_sq - other * other, 0))
        cost_before_micro = c_before >> Q96_SHIFT
        cost_after_micro = c_after >> Q96_SHIFT
    else:
        lam = _decimal_lambda(lambda_q96)
        c_before_dec = cost(*_ordered(s, other, side), lam, params)
        c_after_dec = c_before_dec + Decimal(amount_in)
        s_new = int(invert_cost(c_after_dec, other, lam, params).to_integral_value(rounding=ROUND_FLOOR))
        # дробная степень может недобрать до целой supply
        if cost(*_ordered(s_new + 1, other, side), lam, params) <= c_after_dec:
            s_new += 1
        cost_before_micro = int(c_before_dec.to_integral_value(rounding=ROUND_FLOOR))
        cost_after_micro = int(c_after_dec.to_integral_value(rounding=ROUND_FLOOR))

    tokens_out = max(0, s_new - s)

    return BuyQuote(
        side=side,
        amount_in=amount_in,
        tokens_out=tokens_out,
        supply_before=s,
        supply_after=s + tokens_out,
        cost_before=cost_before_micro,
        cost_after=cost_after_micro,
        avg_price=_avg_price(amount_in, tokens_out),
    )


def quote_sell(
    s_long: int,
    s_short: int,
    side: TokenSide,
    tokens_in: int,
    lambda_q96: int,
    params: CurveParams = CANONICAL_CURVE,
) -> SellQuote:
    """
    Оценка продажи: usdc_out = cost_before - cost_after (floor, >= 0).

    tokens_in больше supply стороны ограничивается supply.
    """
    s, other = _split(s_long, s_short, side)
    validate_non_negative_int(tokens_in, "tokens_in")
    validate_non_negative_int(lambda_q96, "lambda_q96")

    sold = min(tokens_in, s)
    s_new = s - sold

    if validate_curve_params(params):
        lam_sq = lambda_q96 * lambda_q96
        c_before = isqrt_floor(lam_sq * (s * s + other * other))
        c_after = isqrt_floor(lam_sq * (s_new * s_new + other * other))
        usdc_out = max(0, (c_before - c_after) >> Q96_SHIFT)
        cost_before_micro = c_before >> Q96_SHIFT
        cost_after_micro = c_after >> Q96_SHIFT
    else:
        lam = _decimal_lambda(lambda_q96)
        c_before_dec = cost(*_ordered(s, other, side), lam, params)
        c_after_dec = cost(*_ordered(s_new, other, side), lam, params)
        usdc_out = max(0, int((c_before_dec - c_after_dec).to_integral_value(rounding=ROUND_FLOOR)))
        cost_before_micro = int(c_before_dec.to_integral_value(rounding=ROUND_FLOOR))
        cost_after_micro = int(c_after_dec.to_integral_value(rounding=ROUND_FLOOR))

    return SellQuote(
        side=side,
        tokens_in=sold,
        usdc_out=usdc_out,
        supply_before=s,
        supply_after=s_new,
        cost_before=cost_before_micro,
        cost_after=cost_after_micro,
        avg_price=_avg_price(usdc_out, sold),
    )


def _ordered(s_side: int, s_other: int, side: TokenSide) -> tuple[int, int]:
    if side is TokenSide.LONG:
        return s_side, s_other
    return s_other, s_side

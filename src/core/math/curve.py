"""
CurveMath — Coupled bonding surface (ICBS)

Формулы двусторонней кривой: marginal price, cost function и
целочисленный путь с паритетом ledger-у (Q96).

Общая формула (F — показатель, β — коэффициент связи, e = F/β):
    cost(sL, sS)  = λ * (sL^e + sS^e)^β
    price_side    = λ * F * s_side^(e-1) * (sL^e + sS^e)^(β-1)

Канонические параметры F=1, β=1/2 (единственные в production):
    norm          = sqrt(sL^2 + sS^2)
    cost          = λ * norm
    price_side    = λ * s_side / norm

Свойство обратной связи: рост supply одной стороны повышает её цену и,
через общую норму, понижает цену противоположной стороны.

Общий путь — медленный (Decimal pow с дробной степенью); параметры
проверяются на границе и несоответствие логируется, а не исправляется.
Исторические варианты формул (кубическая кривая и т.п.) не угадываются:
detect_price_discrepancy только сообщает об отклонении.
"""

from dataclasses import dataclass
from decimal import Decimal, localcontext
from typing import Final

from loguru import logger

from src.core.domain.pool import CANONICAL_CURVE, CurveParams, PoolSnapshot, TokenSide
from src.core.math.fixed_point import Q96, Q96_SHIFT, decode_price_micro
from src.core.math.numerical_safeguards import (
    CurveDomainError,
    isqrt_floor,
    validate_non_negative_int,
)

# =============================================================================
# КОНСТАНТЫ
# =============================================================================

# Точность Decimal-контекста для вычислений кривой
CURVE_PRECISION: Final[int] = 50

# Допустимое относительное отклонение ledger-цены от локально выведенной
DEFAULT_DISCREPANCY_TOLERANCE: Final[Decimal] = Decimal("0.01")


# =============================================================================
# ВАЛИДАЦИЯ ПАРАМЕТРОВ
# =============================================================================


def validate_curve_params(params: CurveParams | None) -> bool:
    """
    Проверка канонических параметров кривой на границе.

    Args:
        params: Параметры кривой (None — ledger их не прислал, считаем каноническими)

    Returns:
        True если параметры канонические (F=1, β=1/2)
    """
    if params is None or params.is_canonical:
        return True

    logger.warning(
        "[CurveMath] Non-canonical curve params F={} beta={}/{}: slow general path in use",
        params.f,
        params.beta_num,
        params.beta_den,
    )
    return False


def _supply_exponent(params: CurveParams) -> Decimal:
    # e = F / β = F * beta_den / beta_num
    return Decimal(params.f * params.beta_den) / Decimal(params.beta_num)


def _pow(base: Decimal, exponent: Decimal) -> Decimal:
    if exponent == 0:
        return Decimal(1)
    if base == 0:
        if exponent > 0:
            return Decimal(0)
        raise CurveDomainError("zero supply raised to a non-positive power")
    return base**exponent


def _check_inputs(s_long: int, s_short: int, lam: Decimal) -> None:
    validate_non_negative_int(s_long, "s_long")
    validate_non_negative_int(s_short, "s_short")
    if not lam.is_finite() or lam < 0:
        raise CurveDomainError(f"lambda must be finite and non-negative, got {lam}")


def is_bootstrap(s_long: int, s_short: int) -> bool:
    """True если обе supply нулевые (норма вырождена)."""
    return s_long == 0 and s_short == 0


# =============================================================================
# MARGINAL PRICE / COST (Decimal)
# =============================================================================


def marginal_price(
    s_long: int,
    s_short: int,
    side: TokenSide,
    lam: Decimal | int = 1,
    params: CurveParams = CANONICAL_CURVE,
) -> Decimal:
    """
    Marginal price стороны.

    Args:
        s_long: Supply LONG
        s_short: Supply SHORT
        side: Сторона, для которой считается цена
        lam: Масштаб кривой λ
        params: Параметры кривой

    Returns:
        Цена в единицах λ; при нулевых supply — λ (bootstrap price)

    Raises:
        CurveDomainError: Отрицательная supply/λ или вырожденная степень

    Examples:
        >>> marginal_price(3, 4, TokenSide.LONG)
        Decimal('0.6')
        >>> marginal_price(0, 0, TokenSide.SHORT, lam=2)
        Decimal('2')
    """
    lam = Decimal(lam)
    _check_inputs(s_long, s_short, lam)

    if is_bootstrap(s_long, s_short):
        return lam

    s_side = s_long if side is TokenSide.LONG else s_short

    with localcontext() as ctx:
        ctx.prec = CURVE_PRECISION
        if validate_curve_params(params):
            norm = (Decimal(s_long) ** 2 + Decimal(s_short) ** 2).sqrt()
            price = lam * Decimal(s_side) / norm
        else:
            e = _supply_exponent(params)
            total = _pow(Decimal(s_long), e) + _pow(Decimal(s_short), e)
            price = (
                lam
                * Decimal(params.f)
                * _pow(Decimal(s_side), e - 1)
                * _pow(total, params.beta - 1)
            )

    return price


def marginal_prices(
    s_long: int,
    s_short: int,
    lam: Decimal | int = 1,
    params: CurveParams = CANONICAL_CURVE,
) -> tuple[Decimal, Decimal]:
    """(price_long, price_short) для одной пары supply."""
    return (
        marginal_price(s_long, s_short, TokenSide.LONG, lam, params),
        marginal_price(s_long, s_short, TokenSide.SHORT, lam, params),
    )


def cost(
    s_long: int,
    s_short: int,
    lam: Decimal | int = 1,
    params: CurveParams = CANONICAL_CURVE,
) -> Decimal:
    """
    Cost function кривой.

    Канонически cost = λ * sqrt(sL^2 + sS^2); для канонической кривой
    cost равна сумме виртуальных резервов sL*pL + sS*pS (теорема Эйлера
    для однородной функции первой степени).

    Buy/sell quote-ы строятся на разности cost, а не на интеграле цены.
    """
    lam = Decimal(lam)
    _check_inputs(s_long, s_short, lam)

    with localcontext() as ctx:
        ctx.prec = CURVE_PRECISION
        if validate_curve_params(params):
            return lam * (Decimal(s_long) ** 2 + Decimal(s_short) ** 2).sqrt()

        e = _supply_exponent(params)
        total = _pow(Decimal(s_long), e) + _pow(Decimal(s_short), e)
        return lam * _pow(total, params.beta)


def invert_cost(
    cost_value: Decimal,
    s_other: int,
    lam: Decimal | int = 1,
    params: CurveParams = CANONICAL_CURVE,
) -> Decimal:
    """
    Supply стороны, при которой cost(s, s_other) == cost_value.

    s = ((C/λ)^(1/β) - s_other^e)^(1/e). Результат не отрицательный:
    если cost_value меньше cost при s=0, возвращается 0.

    Raises:
        CurveDomainError: λ == 0
    """
    lam = Decimal(lam)
    _check_inputs(0, s_other, lam)
    if lam == 0:
        raise CurveDomainError("cannot invert cost function with zero lambda")

    with localcontext() as ctx:
        ctx.prec = CURVE_PRECISION
        e = _supply_exponent(params)
        inner = _pow(Decimal(cost_value) / lam, Decimal(1) / params.beta) - _pow(Decimal(s_other), e)
        if inner <= 0:
            return Decimal(0)
        return _pow(inner, Decimal(1) / e)


# =============================================================================
# ЦЕЛОЧИСЛЕННЫЙ ПУТЬ (паритет с ledger, Q96)
# =============================================================================


def l2_norm(s_long: int, s_short: int) -> int:
    """floor(sqrt(sL^2 + sS^2))."""
    validate_non_negative_int(s_long, "s_long")
    validate_non_negative_int(s_short, "s_short")
    return isqrt_floor(s_long * s_long + s_short * s_short)


def derive_lambda_q96(vault_balance: int, s_long: int, s_short: int) -> int:
    """
    λ в Q96 из баланса vault: λ = vault / norm.

    Деление выполняется до умножения на 2^96 (как в ledger), норма
    ограничена снизу единицей.

    Args:
        vault_balance: Баланс vault (micro-USDC)
        s_long: Supply LONG
        s_short: Supply SHORT

    Returns:
        λ * 2^96 (floor)
    """
    validate_non_negative_int(vault_balance, "vault_balance")
    norm = max(l2_norm(s_long, s_short), 1)
    return (vault_balance // norm) * Q96 + ((vault_balance % norm) * Q96) // norm


def sqrt_marginal_price_x96(lambda_q96: int, s_side: int, s_other: int) -> int:
    """
    sqrt(price_side) * 2^96 для канонической кривой.

    price_q96 = λ_q96 * s_side / norm; sqrt_x96 = isqrt(price_q96 << 96).
    При нулевой норме цена равна λ (bootstrap).
    """
    validate_non_negative_int(lambda_q96, "lambda_q96")
    norm = l2_norm(s_side, s_other)
    if norm == 0:
        price_q96 = lambda_q96
    else:
        price_q96 = (lambda_q96 * s_side) // norm
    return isqrt_floor(price_q96 << Q96_SHIFT)


def cost_q96(lambda_q96: int, s_long: int, s_short: int) -> int:
    """Cost * 2^96 = floor(λ_q96 * sqrt(sL^2 + sS^2)), без промежуточного округления нормы."""
    validate_non_negative_int(lambda_q96, "lambda_q96")
    validate_non_negative_int(s_long, "s_long")
    validate_non_negative_int(s_short, "s_short")
    return isqrt_floor(lambda_q96 * lambda_q96 * (s_long * s_long + s_short * s_short))


# =============================================================================
# DISCREPANCY DETECTION
# =============================================================================


@dataclass(frozen=True)
class PriceDiscrepancy:
    """
    Отклонение ledger-цены от локально выведенной.

    Attributes:
        side: Сторона пула
        ledger_price_micro: Цена из sqrt-price ledger-а (micro-USDC)
        local_price_micro: Цена по L2-кривой с λ из vault (micro-USDC)
        deviation: |ledger - local| / local
    """

    side: TokenSide
    ledger_price_micro: int
    local_price_micro: int
    deviation: Decimal


def detect_price_discrepancy(
    snapshot: PoolSnapshot,
    tolerance: Decimal = DEFAULT_DISCREPANCY_TOLERANCE,
) -> list[PriceDiscrepancy]:
    """
    Сравнение sqrt-prices ledger-а с выведенными по канонической кривой.

    Ничего не исправляет: отклонения логируются и возвращаются вызывающему.
    Пулы без supply и стороны с нулевой ledger-ценой пропускаются.
    """
    if is_bootstrap(snapshot.s_long, snapshot.s_short):
        return []

    lambda_q96 = derive_lambda_q96(snapshot.vault_balance, snapshot.s_long, snapshot.s_short)
    discrepancies: list[PriceDiscrepancy] = []

    for side in (TokenSide.LONG, TokenSide.SHORT):
        ledger_sqrt = snapshot.sqrt_price_x96(side)
        if ledger_sqrt == 0:
            continue

        local_sqrt = sqrt_marginal_price_x96(
            lambda_q96, snapshot.supply(side), snapshot.supply(side.opposite)
        )
        ledger_micro = decode_price_micro(ledger_sqrt)
        local_micro = decode_price_micro(local_sqrt)
        if ledger_micro == local_micro:
            continue

        deviation = Decimal(abs(ledger_micro - local_micro)) / Decimal(max(local_micro, 1))
        if deviation > tolerance:
            logger.warning(
                "[CurveMath] Price discrepancy pool={} side={} ledger={} local={} deviation={}",
                snapshot.pool_address,
                side.value,
                ledger_micro,
                local_micro,
                deviation,
            )
            discrepancies.append(
                PriceDiscrepancy(
                    side=side,
                    ledger_price_micro=ledger_micro,
                    local_price_micro=local_micro,
                    deviation=deviation,
                )
            )

    return discrepancies

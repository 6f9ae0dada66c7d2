"""
Settlement — чистый закон epoch settlement

Внешний score x (millionths) сравнивается с implied relevance пула q:

    q   = r_long / (r_long + r_short)          (millionths, 0.5 для пустого пула)
    q   ← clamp(q, 0.1%, 99.9%)
    f_L = x / q,  f_S = (1 - x) / (1 - q)      (millionths)
    f   ← clamp(f, 0.01, 100)
    R'  = R * f / 1e6

Сторона, чья implied relevance ближе к реализованному score,
вознаграждается; затем резервы пропорционально сводятся к сумме до
settlement, поэтому r_long + r_short сохраняется точно (dust = 0).

Settlement разрешён только при now - last_settle_ts >= min_settle_interval
(если settlement уже был). Иначе — Failure(TOO_EARLY), резервы не меняются.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Final

from src.core.domain.errors import Failure, FailureKind
from src.core.domain.pool import PoolSnapshot
from src.core.domain.units import MILLIONTHS, micro_to_usdc
from src.core.math.fixed_point import encode_price_micro
from src.core.math.numerical_safeguards import clamp, mul_div, validate_in_range

# =============================================================================
# КОНСТАНТЫ
# =============================================================================

DEFAULT_Q_MILLIONTHS: Final[int] = 500_000

Q_MIN_MILLIONTHS: Final[int] = 1_000
Q_MAX_MILLIONTHS: Final[int] = 999_000

# Жёсткие границы факторов: [0.01, 100]
F_MIN: Final[int] = 10_000
F_MAX: Final[int] = 100_000_000


# =============================================================================
# РЕЗУЛЬТАТ
# =============================================================================


@dataclass(frozen=True)
class SettlementResult:
    """
    Результат попытки settlement.

    При applied=False (TOO_EARLY) резервы и snapshot совпадают с исходными,
    failure содержит причину.

    Attributes:
        applied: Применён ли settlement
        snapshot: Snapshot после settlement (или исходный)
        score_millionths: Реализованный score
        q_millionths: Implied relevance до settlement (до clamp)
        f_long: Фактор LONG (millionths, после clamp)
        f_short: Фактор SHORT (millionths, после clamp)
        r_long_before: Резерв LONG до settlement
        r_short_before: Резерв SHORT до settlement
        implied_price_long: r_long / s_long после settlement (USDC), None при s == 0
        implied_price_short: r_short / s_short после settlement (USDC), None при s == 0
        failure: Причина отказа (TOO_EARLY)
    """

    applied: bool
    snapshot: PoolSnapshot
    score_millionths: int
    q_millionths: int
    f_long: int
    f_short: int
    r_long_before: int
    r_short_before: int
    implied_price_long: Decimal | None = None
    implied_price_short: Decimal | None = None
    failure: Failure | None = None

    @property
    def r_long(self) -> int:
        return self.snapshot.r_long

    @property
    def r_short(self) -> int:
        return self.snapshot.r_short

    @property
    def epoch(self) -> int:
        return self.snapshot.current_epoch


# =============================================================================
# ЗАКОН
# =============================================================================


def settle_earliest_at(last_settle_ts: int, min_settle_interval: int) -> int:
    """Первый момент, когда settlement разрешён (0 — разрешён сразу)."""
    if last_settle_ts <= 0:
        return 0
    return last_settle_ts + min_settle_interval


def is_settle_allowed(last_settle_ts: int, min_settle_interval: int, now: int) -> bool:
    """Cooldown применяется только если settlement уже выполнялся."""
    if last_settle_ts <= 0:
        return True
    return now - last_settle_ts >= min_settle_interval


def implied_q_millionths(r_long: int, r_short: int) -> int:
    """Доля LONG в millionths; 500_000 для пустого пула."""
    total = r_long + r_short
    if total == 0:
        return DEFAULT_Q_MILLIONTHS
    return (r_long * MILLIONTHS) // total


def settlement_factors(score_millionths: int, q_millionths: int) -> tuple[int, int]:
    """
    Факторы (f_long, f_short) в millionths.

    q ограничивается [0.1%, 99.9%], факторы — [0.01, 100].
    """
    q = clamp(q_millionths, Q_MIN_MILLIONTHS, Q_MAX_MILLIONTHS)
    f_long = (score_millionths * MILLIONTHS) // q
    f_short = ((MILLIONTHS - score_millionths) * MILLIONTHS) // (MILLIONTHS - q)
    return clamp(f_long, F_MIN, F_MAX), clamp(f_short, F_MIN, F_MAX)


def recouple(r_long: int, r_short: int, target_total: int) -> tuple[int, int]:
    """
    Пропорциональное сведение резервов к target_total.

    r_long' = floor(r_long * target / total), r_short' = target - r_long'.
    Пустые резервы не меняются.
    """
    total = r_long + r_short
    if total == 0 or total == target_total:
        return r_long, r_short
    new_long = mul_div(r_long, target_total, total)
    return new_long, target_total - new_long


def _implied_sqrt_price(reserve: int, supply: int, fallback: int) -> int:
    if supply == 0:
        return fallback
    return encode_price_micro(reserve // supply)


def _implied_price(reserve: int, supply: int) -> Decimal | None:
    if supply == 0:
        return None
    return micro_to_usdc(reserve) / Decimal(supply)


def compute_settlement(snapshot: PoolSnapshot, score_millionths: int, now: int) -> SettlementResult:
    """
    Чистый расчёт settlement для snapshot.

    Args:
        snapshot: Авторитетный snapshot пула (резервы ledger-а, не кэша)
        score_millionths: Реализованный score в [0, 1_000_000]
        now: Текущее время (unix, сек)

    Returns:
        SettlementResult; при cooldown — applied=False и Failure(TOO_EARLY)

    Raises:
        ValueError: Если score вне [0, 1_000_000]
    """
    validate_in_range(score_millionths, "score_millionths", 0, MILLIONTHS)

    r_long_before = snapshot.r_long
    r_short_before = snapshot.r_short
    q = implied_q_millionths(r_long_before, r_short_before)

    if not is_settle_allowed(snapshot.last_settle_ts, snapshot.min_settle_interval, now):
        earliest = settle_earliest_at(snapshot.last_settle_ts, snapshot.min_settle_interval)
        return SettlementResult(
            applied=False,
            snapshot=snapshot,
            score_millionths=score_millionths,
            q_millionths=q,
            f_long=MILLIONTHS,
            f_short=MILLIONTHS,
            r_long_before=r_long_before,
            r_short_before=r_short_before,
            failure=Failure(
                kind=FailureKind.TOO_EARLY,
                message=f"settlement cooldown active until {earliest}",
                pool_address=snapshot.pool_address,
                details={"now": now, "earliest": earliest},
            ),
        )

    f_long, f_short = settlement_factors(score_millionths, q)

    scaled_long = mul_div(r_long_before, f_long, MILLIONTHS)
    scaled_short = mul_div(r_short_before, f_short, MILLIONTHS)
    r_long, r_short = recouple(scaled_long, scaled_short, r_long_before + r_short_before)

    settled = snapshot.model_copy(
        update={
            "r_long": r_long,
            "r_short": r_short,
            "sqrt_price_long_x96": _implied_sqrt_price(
                r_long, snapshot.s_long, snapshot.sqrt_price_long_x96
            ),
            "sqrt_price_short_x96": _implied_sqrt_price(
                r_short, snapshot.s_short, snapshot.sqrt_price_short_x96
            ),
            "last_settle_ts": now,
            "current_epoch": snapshot.current_epoch + 1,
        }
    )

    return SettlementResult(
        applied=True,
        snapshot=settled,
        score_millionths=score_millionths,
        q_millionths=q,
        f_long=f_long,
        f_short=f_short,
        r_long_before=r_long_before,
        r_short_before=r_short_before,
        implied_price_long=_implied_price(r_long, snapshot.s_long),
        implied_price_short=_implied_price(r_short, snapshot.s_short),
    )

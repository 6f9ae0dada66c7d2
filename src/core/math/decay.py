"""
DecayEngine — локальный закон time-based decay (best-effort)

После expiration_timestamp виртуальные резервы масштабируются в стиле
settlement так, что доля LONG (q) смещается вниз к полу 0.1 с
темпом, зависящим от числа полных суток после истечения:

    days < 7   → 1% в сутки (100 bps)
    days < 30  → 2% в сутки (200 bps)
    иначе      → 3% в сутки (300 bps)

    x   = max(1000 bps, q_bps - days * rate)
    f_L = x / q,  f_S = (1 - x) / (1 - q)          (Q32)
    R'  = R * f / 2^32

Ground truth — read-only симуляция ledger-а (simulateCurrentState);
этот модуль используется как fallback, когда симуляция недоступна.

ИНВАРИАНТЫ:
1. Чистая функция: хранимое состояние не мутируется
2. vault_balance decay не уменьшает
3. Проекция формируется одним immutable объектом
"""

from typing import Final

from src.core.domain.pool import DecayProjection, PoolSnapshot, ProjectionSource
from src.core.domain.units import BPS_DENOMINATOR, whole_days_between
from src.core.math.fixed_point import Q32_ONE, ratio_to_q32
from src.core.math.numerical_safeguards import mul_div
from src.core.math.reserves import relevance

# =============================================================================
# КОНСТАНТЫ ЗАКОНА DECAY
# =============================================================================

DECAY_TIER_1_BPS: Final[int] = 100
DECAY_TIER_2_BPS: Final[int] = 200
DECAY_TIER_3_BPS: Final[int] = 300

DECAY_TIER_1_MAX_DAYS: Final[int] = 7
DECAY_TIER_2_MAX_DAYS: Final[int] = 30

# Пол целевой доли LONG: 0.1
DECAY_MIN_Q_BPS: Final[int] = 1_000


# =============================================================================
# ЗАКОН
# =============================================================================


def decay_rate_bps(days_expired: int) -> int:
    """Дневной темп decay (bps) для числа суток после истечения."""
    if days_expired < DECAY_TIER_1_MAX_DAYS:
        return DECAY_TIER_1_BPS
    if days_expired < DECAY_TIER_2_MAX_DAYS:
        return DECAY_TIER_2_BPS
    return DECAY_TIER_3_BPS


def days_expired_at(expiration_timestamp: int, now: int) -> int:
    """Полные сутки после expiration; 0 до истечения или если expiration не задан."""
    if expiration_timestamp <= 0:
        return 0
    return whole_days_between(expiration_timestamp, now)


def calculate_decayed_reserves(
    r_long: int,
    r_short: int,
    expiration_timestamp: int,
    now: int,
) -> tuple[int, int]:
    """
    Резервы после decay на момент now.

    Args:
        r_long: Резерв LONG (micro-USDC)
        r_short: Резерв SHORT (micro-USDC)
        expiration_timestamp: Момент истечения (unix, сек; 0 — не истекает)
        now: Текущее время (unix, сек)

    Returns:
        (r_long', r_short'); без изменений до истечения и до полных суток;
        (0, 0) для пустого пула; без изменений для одностороннего пула
        (q == 0 или q == 1 нельзя перемасштабировать)
    """
    days = days_expired_at(expiration_timestamp, now)
    if days == 0:
        return r_long, r_short

    total = r_long + r_short
    if total == 0:
        return 0, 0

    q = ratio_to_q32(r_long, total)
    if q == 0 or q >= Q32_ONE:
        return r_long, r_short

    q_bps = mul_div(q, BPS_DENOMINATOR, Q32_ONE)
    total_decay_bps = days * decay_rate_bps(days)
    x_bps = max(q_bps - total_decay_bps, DECAY_MIN_Q_BPS)
    x = ratio_to_q32(x_bps, BPS_DENOMINATOR)

    f_long = ratio_to_q32(x, q)
    f_short = ratio_to_q32(Q32_ONE - x, Q32_ONE - q)

    return mul_div(r_long, f_long, Q32_ONE), mul_div(r_short, f_short, Q32_ONE)


def is_decay_pending(snapshot: PoolSnapshot, now: int) -> bool:
    """True если пул истёк хотя бы на сутки и с last_decay_update прошли сутки."""
    days = days_expired_at(snapshot.expiration_timestamp, now)
    since_update = whole_days_between(snapshot.last_decay_update, now)
    return days >= 1 and since_update >= 1


def project_decay(snapshot: PoolSnapshot, now: int) -> DecayProjection:
    """
    Атомарная read-only проекция decay по локальному закону.

    Args:
        snapshot: Авторитетный snapshot пула
        now: Текущее время (unix, сек)

    Returns:
        DecayProjection с source=LOCAL
    """
    days = days_expired_at(snapshot.expiration_timestamp, now)
    since_update = whole_days_between(snapshot.last_decay_update, now)
    r_long, r_short = calculate_decayed_reserves(
        snapshot.r_long, snapshot.r_short, snapshot.expiration_timestamp, now
    )

    return DecayProjection(
        pool_address=snapshot.pool_address,
        now=now,
        days_expired=days,
        days_since_last_update=since_update,
        decay_pending=is_decay_pending(snapshot, now),
        r_long=r_long,
        r_short=r_short,
        vault_balance=snapshot.vault_balance,
        relevance=relevance(r_long, r_short),
        source=ProjectionSource.LOCAL,
    )

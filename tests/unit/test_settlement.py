"""
Тесты для закона settlement и SettlementEngine

Проверяет:
1. Cooldown (TooEarly на last + interval - 1) без изменения резервов
2. Направление перераспределения и точное сохранение суммы
3. Clamp q и факторов
4. Эпоху, timestamp и sqrt-prices после settlement
5. Эксклюзивность и идемпотентность SettlementEngine
"""

import asyncio
from decimal import Decimal

import pytest

from src.core.domain.errors import FailureKind
from src.core.math.fixed_point import encode_price_micro
from src.core.math.settlement import (
    DEFAULT_Q_MILLIONTHS,
    F_MAX,
    F_MIN,
    compute_settlement,
    implied_q_millionths,
    is_settle_allowed,
    recouple,
    settle_earliest_at,
    settlement_factors,
)
from src.settlement.engine import SettlementEngine

LAST_SETTLE = 1_700_000_000
INTERVAL = 3_600


@pytest.fixture
def settled_pool(snapshot_factory):
    """Пул 60/40, уже прошедший одну эпоху"""
    return snapshot_factory(
        s_long=1_000,
        s_short=2_000,
        r_long=600_000,
        r_short=400_000,
        sqrt_price_long_x96=encode_price_micro(600),
        sqrt_price_short_x96=encode_price_micro(200),
        vault_balance=1_000_000,
        last_settle_ts=LAST_SETTLE,
        min_settle_interval=INTERVAL,
        current_epoch=1,
    )


# =============================================================================
# ПОМОЩНИКИ ЗАКОНА
# =============================================================================


class TestSettlementHelpers:
    """Тесты для cooldown, q и факторов"""

    def test_cooldown(self) -> None:
        assert not is_settle_allowed(LAST_SETTLE, INTERVAL, LAST_SETTLE + INTERVAL - 1)
        assert is_settle_allowed(LAST_SETTLE, INTERVAL, LAST_SETTLE + INTERVAL)
        assert settle_earliest_at(LAST_SETTLE, INTERVAL) == LAST_SETTLE + INTERVAL

    def test_never_settled_pool_has_no_cooldown(self) -> None:
        assert is_settle_allowed(0, INTERVAL, 1)
        assert settle_earliest_at(0, INTERVAL) == 0

    def test_implied_q(self) -> None:
        assert implied_q_millionths(600_000, 400_000) == 600_000
        assert implied_q_millionths(0, 0) == DEFAULT_Q_MILLIONTHS

    def test_factors(self) -> None:
        assert settlement_factors(800_000, 600_000) == (1_333_333, 500_000)
        assert settlement_factors(600_000, 600_000) == (1_000_000, 1_000_000)

    def test_factors_clamped(self) -> None:
        f_long, f_short = settlement_factors(0, 600_000)
        assert f_long == F_MIN
        f_long, _ = settlement_factors(500_000, 0)
        assert f_long == F_MAX

    def test_recouple(self) -> None:
        assert recouple(799_999, 200_000, 1_000_000) == (799_999, 200_001)
        assert recouple(0, 0, 1_000) == (0, 0)
        assert recouple(3, 7, 10) == (3, 7)


# =============================================================================
# ЗАКОН
# =============================================================================


class TestComputeSettlement:
    """Тесты для compute_settlement"""

    def test_too_early_leaves_reserves_unchanged(self, settled_pool) -> None:
        result = compute_settlement(settled_pool, 800_000, LAST_SETTLE + INTERVAL - 1)

        assert not result.applied
        assert result.failure is not None
        assert result.failure.kind is FailureKind.TOO_EARLY
        assert result.failure.details["earliest"] == LAST_SETTLE + INTERVAL
        assert result.snapshot is settled_pool
        assert (result.r_long, result.r_short) == (600_000, 400_000)
        assert result.epoch == 1

    def test_score_above_q_rewards_long(self, settled_pool) -> None:
        now = LAST_SETTLE + INTERVAL
        result = compute_settlement(settled_pool, 800_000, now)

        assert result.applied
        assert result.failure is None
        assert (result.f_long, result.f_short) == (1_333_333, 500_000)
        assert (result.r_long, result.r_short) == (799_999, 200_001)
        assert result.r_long_before == 600_000

    def test_score_below_q_rewards_short(self, settled_pool) -> None:
        result = compute_settlement(settled_pool, 200_000, LAST_SETTLE + INTERVAL)
        assert result.r_long < 600_000
        assert result.r_short > 400_000

    @pytest.mark.parametrize("score", [0, 1, 250_000, 600_000, 999_999, 1_000_000])
    def test_total_conserved_exactly(self, settled_pool, score: int) -> None:
        result = compute_settlement(settled_pool, score, LAST_SETTLE + INTERVAL)
        assert result.r_long + result.r_short == 1_000_000

    def test_score_equal_to_q_is_neutral(self, settled_pool) -> None:
        result = compute_settlement(settled_pool, 600_000, LAST_SETTLE + INTERVAL)
        assert (result.r_long, result.r_short) == (600_000, 400_000)

    def test_epoch_and_prices_updated(self, settled_pool) -> None:
        now = LAST_SETTLE + INTERVAL + 5
        result = compute_settlement(settled_pool, 800_000, now)
        settled = result.snapshot

        assert settled.current_epoch == 2
        assert settled.last_settle_ts == now
        assert settled.sqrt_price_long_x96 == encode_price_micro(799)
        assert settled.sqrt_price_short_x96 == encode_price_micro(100)
        assert settled.vault_balance == settled_pool.vault_balance
        assert result.implied_price_long == Decimal("0.000799999")

    def test_zero_supply_side_keeps_price(self, snapshot_factory) -> None:
        snapshot = snapshot_factory(r_long=500, r_short=500, vault_balance=1_000, sqrt_price_long_x96=77)
        result = compute_settlement(snapshot, 700_000, 10)
        assert result.snapshot.sqrt_price_long_x96 == 77
        assert result.implied_price_long is None

    def test_first_settlement_ignores_interval(self, snapshot_factory) -> None:
        snapshot = snapshot_factory(r_long=500, r_short=500, vault_balance=1_000, min_settle_interval=10**9)
        assert compute_settlement(snapshot, 500_000, 1).applied

    def test_empty_pool(self, snapshot_factory) -> None:
        result = compute_settlement(snapshot_factory(), 900_000, 1)
        assert result.applied
        assert (result.r_long, result.r_short) == (0, 0)
        assert result.q_millionths == DEFAULT_Q_MILLIONTHS

    @pytest.mark.parametrize("score", [-1, 1_000_001])
    def test_score_out_of_range(self, settled_pool, score: int) -> None:
        with pytest.raises(ValueError):
            compute_settlement(settled_pool, score, LAST_SETTLE + INTERVAL)


# =============================================================================
# ENGINE
# =============================================================================


class TestSettlementEngine:
    """Тесты для SettlementEngine"""

    def test_too_early_scenario(self, settled_pool) -> None:
        engine = SettlementEngine()
        result = asyncio.run(engine.settle(settled_pool, 800_000, LAST_SETTLE + INTERVAL - 1))

        assert not result.applied
        assert (result.r_long, result.r_short) == (600_000, 400_000)
        assert engine.last_settled_at(settled_pool.pool_address) == 0

    def test_second_call_with_stale_snapshot_is_noop(self, settled_pool) -> None:
        engine = SettlementEngine()
        now = LAST_SETTLE + INTERVAL

        async def run():
            first = await engine.settle(settled_pool, 800_000, now)
            second = await engine.settle(settled_pool, 800_000, now + 1)
            return first, second

        first, second = asyncio.run(run())

        assert first.applied
        assert not second.applied
        assert second.failure.kind is FailureKind.TOO_EARLY
        assert (second.r_long, second.r_short) == (600_000, 400_000)
        assert engine.last_settled_at(settled_pool.pool_address) == now

    def test_concurrent_settles_apply_once(self, settled_pool) -> None:
        engine = SettlementEngine()
        now = LAST_SETTLE + INTERVAL

        async def run():
            return await asyncio.gather(*(engine.settle(settled_pool, 800_000, now) for _ in range(5)))

        results = asyncio.run(run())
        assert sum(1 for result in results if result.applied) == 1
        assert engine._locks == {}

    def test_independent_pools(self, settled_pool) -> None:
        engine = SettlementEngine()
        other = settled_pool.model_copy(update={"pool_address": "Pool2222"})
        now = LAST_SETTLE + INTERVAL

        async def run():
            return await asyncio.gather(
                engine.settle(settled_pool, 800_000, now),
                engine.settle(other, 800_000, now),
            )

        results = asyncio.run(run())
        assert all(result.applied for result in results)

    def test_state_bounded_to_active_pools(self, settled_pool) -> None:
        """Lock освобождается после settle, запись забывается по истечении cooldown"""
        engine = SettlementEngine()
        other = settled_pool.model_copy(update={"pool_address": "Pool2222"})
        now = LAST_SETTLE + INTERVAL

        async def run():
            await engine.settle(settled_pool, 800_000, now)
            during_cooldown = engine.tracked_pool_count
            await engine.settle(other, 800_000, now + INTERVAL)
            return during_cooldown

        during_cooldown = asyncio.run(run())

        assert during_cooldown == 1
        assert engine._locks == {}
        assert engine.last_settled_at(settled_pool.pool_address) == 0
        assert engine.last_settled_at(other.pool_address) == now + INTERVAL
        assert engine.tracked_pool_count == 1

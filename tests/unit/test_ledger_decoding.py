"""
Тесты границы декодирования payload-ов ledger-а

Проверяет:
1. parse_wide_int: int, десятичные и hex-строки; отказ для float/bool/мусора
2. parse_content_id: нормализация и отказ
3. decode_pool_state: кривая только при наличии всех трёх параметров
4. decode_decay_state
"""

import pytest

from src.core.domain.errors import LedgerDecodeError
from src.core.domain.pool import CurveParams, PoolLifecycle
from src.core.math.fixed_point import Q96
from src.ledger.decoding import (
    decode_decay_state,
    decode_pool_state,
    parse_content_id,
    parse_wide_int,
)

CONTENT_ID = "ab" * 32


@pytest.fixture
def pool_payload():
    return {
        "contentId": "0x" + CONTENT_ID.upper(),
        "sLong": 710,
        "sShort": "1575",
        "rLong": "0x7a120",
        "rShort": 500_000,
        "sqrtPriceLongX96": str(1000 * Q96),
        "sqrtPriceShortX96": hex(1000 * Q96),
        "f": 1,
        "betaNum": "1",
        "betaDen": "0x2",
        "vaultBalance": 1_000_000,
        "lastSettleTs": 0,
        "minSettleInterval": 3_600,
        "currentEpoch": 0,
    }


@pytest.fixture
def decay_payload():
    return {
        "rLong": 489_999,
        "rShort": 510_000,
        "q": 2_104_533_975,
        "sLong": 710,
        "sShort": 1_575,
        "sqrtPriceLongX96": "0",
        "sqrtPriceShortX96": "0",
        "daysExpired": 1,
        "daysSinceLastUpdate": 1,
        "decayPending": True,
        "expirationTimestamp": 1_700_000_000,
    }


# =============================================================================
# WIDE INT
# =============================================================================


class TestParseWideInt:
    """Тесты для parse_wide_int"""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            (0, 0),
            (12345, 12345),
            ("12345", 12345),
            (" 42 ", 42),
            ("0x3039", 12345),
            ("0X3039", 12345),
            (str(2**200), 2**200),
        ],
    )
    def test_accepted(self, raw, expected: int) -> None:
        assert parse_wide_int(raw) == expected

    @pytest.mark.parametrize("raw", [True, False, 1.0, 1.5, None, [1], "", "-5", "1e6", "12abc", "0x", "0xzz"])
    def test_rejected(self, raw) -> None:
        with pytest.raises(LedgerDecodeError):
            parse_wide_int(raw)

    def test_negative_int_rejected(self) -> None:
        with pytest.raises(LedgerDecodeError, match="negative"):
            parse_wide_int(-1, "sLong")

    def test_field_name_in_message(self) -> None:
        with pytest.raises(LedgerDecodeError, match="^vaultBalance:"):
            parse_wide_int("oops", "vaultBalance")


class TestParseContentId:
    """Тесты для parse_content_id"""

    def test_normalized(self) -> None:
        assert parse_content_id("0x" + CONTENT_ID.upper()) == CONTENT_ID
        assert parse_content_id(CONTENT_ID) == CONTENT_ID

    def test_absent(self) -> None:
        assert parse_content_id(None) is None

    @pytest.mark.parametrize("raw", ["ab", "zz" * 32, 12])
    def test_rejected(self, raw) -> None:
        with pytest.raises(LedgerDecodeError):
            parse_content_id(raw)


# =============================================================================
# POOL STATE
# =============================================================================


class TestDecodePoolState:
    """Тесты для decode_pool_state"""

    def test_full_payload(self, pool_payload) -> None:
        snapshot = decode_pool_state("Pool1111", pool_payload)

        assert snapshot.pool_address == "Pool1111"
        assert snapshot.content_id == CONTENT_ID
        assert (snapshot.s_long, snapshot.s_short) == (710, 1575)
        assert (snapshot.r_long, snapshot.r_short) == (500_000, 500_000)
        assert snapshot.sqrt_price_long_x96 == snapshot.sqrt_price_short_x96 == 1000 * Q96
        assert snapshot.curve == CurveParams(f=1, beta_num=1, beta_den=2)
        assert snapshot.min_settle_interval == 3_600
        assert snapshot.lifecycle is PoolLifecycle.DEPLOYED

    def test_partial_curve_is_dropped(self, pool_payload) -> None:
        del pool_payload["betaDen"]
        assert decode_pool_state("Pool1111", pool_payload).curve is None

    def test_optional_fields_default(self, pool_payload) -> None:
        for key in ("contentId", "lastSettleTs", "minSettleInterval", "currentEpoch"):
            del pool_payload[key]
        snapshot = decode_pool_state("Pool1111", pool_payload)
        assert snapshot.content_id is None
        assert snapshot.last_settle_ts == 0
        assert snapshot.current_epoch == 0

    def test_sqrt_price_beyond_u128(self, pool_payload) -> None:
        pool_payload["sqrtPriceLongX96"] = str(2**128)
        with pytest.raises(LedgerDecodeError, match="u128"):
            decode_pool_state("Pool1111", pool_payload)

    def test_float_rejected(self, pool_payload) -> None:
        pool_payload["sLong"] = 710.5
        with pytest.raises(LedgerDecodeError):
            decode_pool_state("Pool1111", pool_payload)

    def test_integral_float_rejected(self, pool_payload) -> None:
        pool_payload["rShort"] = 500_000.0
        with pytest.raises(LedgerDecodeError):
            decode_pool_state("Pool1111", pool_payload)

    def test_missing_required_field(self, pool_payload) -> None:
        del pool_payload["vaultBalance"]
        with pytest.raises(LedgerDecodeError, match="vaultBalance"):
            decode_pool_state("Pool1111", pool_payload)

    def test_zero_curve_param_rejected(self, pool_payload) -> None:
        pool_payload["betaDen"] = 0
        with pytest.raises(LedgerDecodeError):
            decode_pool_state("Pool1111", pool_payload)

    def test_not_an_object(self) -> None:
        with pytest.raises(LedgerDecodeError, match="expected object"):
            decode_pool_state("Pool1111", ["not", "a", "dict"])


# =============================================================================
# DECAY STATE
# =============================================================================


class TestDecodeDecayState:
    """Тесты для decode_decay_state"""

    def test_full_payload(self, decay_payload) -> None:
        state = decode_decay_state("Pool1111", decay_payload)

        assert (state.r_long, state.r_short) == (489_999, 510_000)
        assert state.q_q32 == 2_104_533_975
        assert state.decay_pending is True
        assert state.days_expired == 1
        assert state.expiration_timestamp == 1_700_000_000
        assert state.last_decay_update == 0

    def test_q_above_one_rejected(self, decay_payload) -> None:
        decay_payload["q"] = str((1 << 32) + 1)
        with pytest.raises(LedgerDecodeError):
            decode_decay_state("Pool1111", decay_payload)

    def test_pending_flag_must_be_boolean(self, decay_payload) -> None:
        decay_payload["decayPending"] = "yes"
        with pytest.raises(LedgerDecodeError):
            decode_decay_state("Pool1111", decay_payload)

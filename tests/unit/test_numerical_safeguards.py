"""
Тесты для модуля Numerical Safeguards

Проверяет:
1. Целочисленный корень floor
2. mul_div и запрет деления на ноль
3. clamp для int и Decimal
4. Валидацию входов
"""

from decimal import Decimal

import pytest

from src.core.math.numerical_safeguards import (
    CurveDomainError,
    clamp,
    isqrt_floor,
    mul_div,
    validate_in_range,
    validate_non_negative_int,
)

# =============================================================================
# ЦЕЛОЧИСЛЕННЫЕ ПРИМИТИВЫ
# =============================================================================


class TestIsqrt:
    """Тесты для isqrt_floor"""

    def test_perfect_squares_exact(self) -> None:
        for root in (0, 1, 2, 12, 10**20):
            assert isqrt_floor(root * root) == root

    def test_non_square_floors(self) -> None:
        assert isqrt_floor(10) == 3
        assert isqrt_floor(15) == 3

    def test_huge_values_beyond_float_precision(self) -> None:
        """Корень от 2^256 точен (float потерял бы младшие биты)"""
        n = (1 << 256) + 1
        root = isqrt_floor(n)
        assert root == 1 << 128
        assert root * root <= n < (root + 1) * (root + 1)

    def test_negative_radicand_raises(self) -> None:
        with pytest.raises(CurveDomainError):
            isqrt_floor(-1)


class TestMulDiv:
    """Тесты для mul_div"""

    def test_floors(self) -> None:
        assert mul_div(7, 3, 2) == 10
        assert mul_div(0, 5, 3) == 0

    def test_wide_intermediate(self) -> None:
        """Промежуточный результат шире 256 бит не теряется"""
        a = (1 << 200) + 3
        assert mul_div(a, 1 << 100, 1 << 100) == a

    def test_zero_denominator_raises(self) -> None:
        with pytest.raises(CurveDomainError):
            mul_div(1, 1, 0)


# =============================================================================
# CLAMP
# =============================================================================


class TestClamp:
    """Тесты для clamp"""

    def test_int_and_decimal(self) -> None:
        assert clamp(5, 0, 3) == 3
        assert clamp(Decimal("1.5"), Decimal(0), Decimal(1)) == Decimal(1)

    def test_open_bounds(self) -> None:
        assert clamp(7, min_value=10) == 10
        assert clamp(7, max_value=None) == 7


# =============================================================================
# ВАЛИДАЦИЯ
# =============================================================================


class TestValidation:
    """Тесты для валидаторов"""

    def test_non_negative_int_accepts_zero_and_big(self) -> None:
        validate_non_negative_int(0, "supply")
        validate_non_negative_int(1 << 200, "supply")

    @pytest.mark.parametrize("value", [-1, 1.0, True, "3"])
    def test_non_negative_int_rejects(self, value) -> None:
        with pytest.raises(CurveDomainError):
            validate_non_negative_int(value, "supply")

    def test_in_range(self) -> None:
        validate_in_range(5, "score", 0, 10)
        with pytest.raises(ValueError, match="score must be <= 10"):
            validate_in_range(11, "score", 0, 10)
        with pytest.raises(ValueError, match="must be >= 0"):
            validate_in_range(-1, "score", 0, 10)

    @pytest.mark.parametrize("value", [0.5, True, float("nan")])
    def test_in_range_rejects_non_int(self, value) -> None:
        with pytest.raises(ValueError, match="must be an int"):
            validate_in_range(value, "score", 0, 10)

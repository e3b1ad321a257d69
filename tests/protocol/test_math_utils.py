"""Tests for linear and compounded interest."""

import pytest

from lendcore.data.constants import RAY, SECONDS_PER_YEAR
from lendcore.protocol.errors import ReserveInvariantError
from lendcore.protocol.math_utils import (
    calculate_compounded_interest,
    calculate_linear_interest,
)

TEN_PERCENT = RAY // 10


class TestLinearInterest:
    def test_no_time_elapsed(self) -> None:
        assert calculate_linear_interest(TEN_PERCENT, 100, 100) == RAY

    def test_one_year(self) -> None:
        assert calculate_linear_interest(TEN_PERCENT, 0, SECONDS_PER_YEAR) == RAY + TEN_PERCENT

    def test_half_year(self) -> None:
        half = SECONDS_PER_YEAR // 2
        assert calculate_linear_interest(TEN_PERCENT, 0, half) == RAY + TEN_PERCENT // 2

    def test_backwards_time_raises(self) -> None:
        with pytest.raises(ReserveInvariantError):
            calculate_linear_interest(TEN_PERCENT, 200, 100)


class TestCompoundedInterest:
    def test_no_time_elapsed(self) -> None:
        assert calculate_compounded_interest(TEN_PERCENT, 50, 50) == RAY

    def test_one_second_is_linear(self) -> None:
        # Second and third terms vanish for a single second
        assert (
            calculate_compounded_interest(TEN_PERCENT, 0, 1)
            == RAY + TEN_PERCENT // SECONDS_PER_YEAR
        )

    def test_zero_rate(self) -> None:
        assert calculate_compounded_interest(0, 0, SECONDS_PER_YEAR) == RAY

    def test_exceeds_linear(self) -> None:
        for elapsed in (60, 3_600, 86_400, SECONDS_PER_YEAR):
            compounded = calculate_compounded_interest(TEN_PERCENT, 0, elapsed)
            linear = calculate_linear_interest(TEN_PERCENT, 0, elapsed)
            assert compounded >= linear

    def test_one_year_cubic_truncation(self) -> None:
        # e^0.1 = 1.1051709; the cubic expansion stops at 1.1051666...
        result = calculate_compounded_interest(TEN_PERCENT, 0, SECONDS_PER_YEAR)
        assert result / RAY == pytest.approx(1 + 0.1 + 0.1**2 / 2 + 0.1**3 / 6, rel=1e-9)
        assert result < int(1.1051709 * RAY)

    def test_backwards_time_raises(self) -> None:
        with pytest.raises(ReserveInvariantError):
            calculate_compounded_interest(TEN_PERCENT, 10, 9)

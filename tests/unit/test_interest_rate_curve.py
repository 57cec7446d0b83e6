"""
test_interest_rate_curve.py - Unit tests for the borrow rate curve

Tests:
- Parameter validation (breakpoints, bounds, slope ordering)
- Rate on each segment and at the breakpoints
- U2 borrowing cap: check flag, forbidden flag, max_borrowable
- Immutability and purity
"""

import dataclasses
import pytest

from pool_ledger import (
    RAY, WAD,
    InterestRateCurve, create_interest_rate_curve, bps_to_ray,
    BorrowingCapExceeded, IncorrectParameterException,
)


class TestValidation:

    def test_valid_curve(self, curve):
        assert curve.u_1_wad == WAD * 8 // 10
        assert curve.r_base_ray == bps_to_ray(1500)

    @pytest.mark.parametrize("u_1,u_2", [(0, 9500), (8000, 8000), (9500, 8000), (8000, 10_000)])
    def test_rejects_bad_breakpoints(self, u_1, u_2):
        with pytest.raises(IncorrectParameterException):
            create_interest_rate_curve(u_1, u_2, 1500, 400, 1000, 6000)

    def test_rejects_decreasing_slopes(self):
        with pytest.raises(IncorrectParameterException):
            create_interest_rate_curve(8000, 9500, 1500, 2000, 1000, 6000)

    def test_rejects_base_above_100_percent(self):
        with pytest.raises(IncorrectParameterException):
            create_interest_rate_curve(8000, 9500, 10_001, 400, 1000, 6000)

    def test_rejects_negative_rate(self):
        with pytest.raises(IncorrectParameterException):
            create_interest_rate_curve(8000, 9500, -1, 400, 1000, 6000)

    def test_slope3_may_exceed_100_percent(self):
        curve = create_interest_rate_curve(8000, 9500, 0, 100, 1000, 30_000)
        assert curve.breakpoints()[-1] == bps_to_ray(31_100)

    def test_is_frozen(self, curve):
        with pytest.raises(dataclasses.FrozenInstanceError):
            curve.r_base = 0


class TestUtilization:

    def test_zero_when_empty(self):
        assert InterestRateCurve.utilization(0, 0) == 0

    def test_zero_when_available_covers_expected(self):
        assert InterestRateCurve.utilization(100, 120) == 0

    def test_fraction_in_wad(self):
        assert InterestRateCurve.utilization(100, 40) == WAD * 60 // 100


class TestRate:

    def test_base_rate_at_zero_utilization(self, curve):
        assert curve.rate(100, 100) == bps_to_ray(1500)

    def test_first_segment(self, curve):
        # 60% of the way to U1=80% is 3/4 of slope1
        assert curve.rate(100, 40) == bps_to_ray(1500) + bps_to_ray(400) * 3 // 4

    def test_rate_at_u1(self, curve):
        assert curve.rate(100, 20) == bps_to_ray(1900)

    def test_second_segment_midpoint(self, curve):
        # U = 87.5%, halfway between U1 and U2
        assert curve.rate(1000, 125) == bps_to_ray(1900) + bps_to_ray(1000) // 2

    def test_rate_at_u2(self, curve):
        assert curve.rate(100, 5) == bps_to_ray(2900)

    def test_full_utilization(self, curve):
        assert curve.rate(100, 0) == bps_to_ray(8900)

    def test_breakpoints_monotone(self, curve):
        points = curve.breakpoints()
        assert list(points) == sorted(points)
        assert points == (bps_to_ray(1500), bps_to_ray(1900), bps_to_ray(2900), bps_to_ray(8900))

    def test_rate_at_helper(self, curve):
        assert curve.rate_at(0) == bps_to_ray(1500)
        assert curve.rate_at(10_000) == bps_to_ray(8900)

    def test_rate_at_rejects_out_of_range(self, curve):
        with pytest.raises(IncorrectParameterException):
            curve.rate_at(10_001)

    def test_pure(self, curve):
        assert curve.rate(1_000, 333) == curve.rate(1_000, 333)


class TestBorrowingCap:

    def test_check_raises_above_u2(self, curve):
        with pytest.raises(BorrowingCapExceeded):
            curve.rate(100, 4, check_optimal_borrowing=True)

    def test_exactly_u2_is_allowed(self, curve):
        assert curve.rate(100, 5, check_optimal_borrowing=True) == bps_to_ray(2900)

    def test_reporting_read_above_u2(self, curve):
        assert curve.rate(100, 4) > bps_to_ray(2900)

    def test_not_forbidden_never_raises(self):
        curve = create_interest_rate_curve(8000, 9500, 1500, 400, 1000, 6000, is_borrowing_more_u2_forbidden=False)
        assert curve.rate(100, 0, check_optimal_borrowing=True) == bps_to_ray(8900)

    def test_max_borrowable_keeps_utilization_at_u2(self, curve):
        assert curve.max_borrowable(1_000, 1_000) == 950
        assert curve.max_borrowable(1_000, 500) == 450

    def test_max_borrowable_zero_past_u2(self, curve):
        assert curve.max_borrowable(1_000, 10) == 0

    def test_max_borrowable_all_available_when_not_forbidden(self):
        curve = create_interest_rate_curve(8000, 9500, 1500, 400, 1000, 6000, is_borrowing_more_u2_forbidden=False)
        assert curve.max_borrowable(1_000, 700) == 700

    def test_max_borrowable_all_available_when_available_exceeds_expected(self, curve):
        assert curve.max_borrowable(1_000, 1_200) == 1_200

    def test_borrowing_max_never_trips_the_check(self, curve):
        expected, available = 10_000, 7_000
        amount = curve.max_borrowable(expected, available)
        curve.rate(expected, available - amount, check_optimal_borrowing=True)

"""
interest_rate_curve.py - Piecewise-Linear Borrow Rate Curve

Maps pool utilization to an annual borrow rate. The curve has two
breakpoints and three linear segments:

    U in [0, U1)    rate = R_base + R_slope1 * U / U1
    U in [U1, U2)   rate = R_base + R_slope1 + R_slope2 * (U - U1) / (U2 - U1)
    U in [U2, 100%] rate = R_base + R_slope1 + R_slope2 + R_slope3 * (U - U2) / (100% - U2)

where U = (expected_liquidity - available_liquidity) / expected_liquidity.

Parameters are given in bps and converted once to WAD (utilization) and RAY
(rates). The curve is immutable and pure: identical inputs always produce
identical outputs.

When `is_borrowing_more_u2_forbidden` is set:
    - max_borrowable() caps borrowing so utilization stays <= U2
    - rate(..., check_optimal_borrowing=True) raises BorrowingCapExceeded
      above U2; reporting reads (no check) still evaluate segment 3
"""

from __future__ import annotations
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Tuple

from .core import (
    PERCENTAGE_FACTOR, WAD,
    BorrowingCapExceeded, IncorrectParameterException,
)
from .ray_math import bps_to_ray, bps_to_wad, ray_to_percent


@dataclass(frozen=True, slots=True)
class InterestRateCurve:
    """
    Immutable three-segment borrow rate curve.

    Attributes:
        u_1: First breakpoint, bps of 100%
        u_2: Second breakpoint, bps of 100%
        r_base: Rate at zero utilization, bps
        r_slope1: Rate increase across [0, U1), bps
        r_slope2: Rate increase across [U1, U2), bps
        r_slope3: Rate increase across [U2, 100%], bps
        is_borrowing_more_u2_forbidden: Reject borrows that push utilization past U2
    """
    u_1: int
    u_2: int
    r_base: int
    r_slope1: int
    r_slope2: int
    r_slope3: int
    is_borrowing_more_u2_forbidden: bool = True

    u_1_wad: int = field(init=False, repr=False)
    u_2_wad: int = field(init=False, repr=False)
    r_base_ray: int = field(init=False, repr=False)
    r_slope1_ray: int = field(init=False, repr=False)
    r_slope2_ray: int = field(init=False, repr=False)
    r_slope3_ray: int = field(init=False, repr=False)

    def __post_init__(self):
        if not (0 < self.u_1 < self.u_2 < PERCENTAGE_FACTOR):
            raise IncorrectParameterException(
                f"Breakpoints must satisfy 0 < U1 < U2 < 100%, got U1={self.u_1}, U2={self.u_2}"
            )
        for name in ("r_base", "r_slope1", "r_slope2", "r_slope3"):
            if getattr(self, name) < 0:
                raise IncorrectParameterException(f"{name} cannot be negative")
        if self.r_base > PERCENTAGE_FACTOR or self.r_slope1 > PERCENTAGE_FACTOR or self.r_slope2 > PERCENTAGE_FACTOR:
            raise IncorrectParameterException("R_base, R_slope1 and R_slope2 must not exceed 100%")
        if self.r_slope1 > self.r_slope2 or self.r_slope2 > self.r_slope3:
            raise IncorrectParameterException(
                f"Slopes must be non-decreasing, got {self.r_slope1}, {self.r_slope2}, {self.r_slope3}"
            )

        object.__setattr__(self, 'u_1_wad', bps_to_wad(self.u_1))
        object.__setattr__(self, 'u_2_wad', bps_to_wad(self.u_2))
        object.__setattr__(self, 'r_base_ray', bps_to_ray(self.r_base))
        object.__setattr__(self, 'r_slope1_ray', bps_to_ray(self.r_slope1))
        object.__setattr__(self, 'r_slope2_ray', bps_to_ray(self.r_slope2))
        object.__setattr__(self, 'r_slope3_ray', bps_to_ray(self.r_slope3))

        self._check_continuity()

    # ========================================================================
    # SEGMENTS
    # ========================================================================

    def _segment_rate(self, segment: int, u_wad: int) -> int:
        """Evaluate one segment's line at u_wad (may be outside its domain)."""
        if segment == 1:
            return self.r_base_ray + self.r_slope1_ray * u_wad // self.u_1_wad
        if segment == 2:
            return (
                self.r_base_ray + self.r_slope1_ray
                + self.r_slope2_ray * (u_wad - self.u_1_wad) // (self.u_2_wad - self.u_1_wad)
            )
        return (
            self.r_base_ray + self.r_slope1_ray + self.r_slope2_ray
            + self.r_slope3_ray * (u_wad - self.u_2_wad) // (WAD - self.u_2_wad)
        )

    def _check_continuity(self) -> None:
        """Adjacent segments must meet at U1 and U2; segment ends must not decrease."""
        if self._segment_rate(1, self.u_1_wad) != self._segment_rate(2, self.u_1_wad):
            raise IncorrectParameterException("Rate curve is discontinuous at U1")
        if self._segment_rate(2, self.u_2_wad) != self._segment_rate(3, self.u_2_wad):
            raise IncorrectParameterException("Rate curve is discontinuous at U2")
        ends = self.breakpoints()
        if any(a > b for a, b in zip(ends, ends[1:])):
            raise IncorrectParameterException("Rate curve is not monotone")

    def breakpoints(self) -> Tuple[int, int, int, int]:
        """Rates (RAY) at 0%, U1, U2 and 100% utilization."""
        return (
            self._segment_rate(1, 0),
            self._segment_rate(2, self.u_1_wad),
            self._segment_rate(3, self.u_2_wad),
            self._segment_rate(3, WAD),
        )

    # ========================================================================
    # PUBLIC INTERFACE
    # ========================================================================

    @staticmethod
    def utilization(expected_liquidity: int, available_liquidity: int) -> int:
        """Borrowed share of expected liquidity, WAD. Zero when nothing is lent out."""
        if expected_liquidity == 0 or expected_liquidity <= available_liquidity:
            return 0
        return WAD * (expected_liquidity - available_liquidity) // expected_liquidity

    def rate(
        self,
        expected_liquidity: int,
        available_liquidity: int,
        check_optimal_borrowing: bool = False,
    ) -> int:
        """
        Annual borrow rate (RAY) for the given liquidity state.

        Args:
            expected_liquidity: Accounting liquidity incl. accrued interest
            available_liquidity: Underlying actually held by the pool
            check_optimal_borrowing: Enforce the U2 cap (set by borrow paths)

        Raises:
            BorrowingCapExceeded: utilization above U2 while checking and forbidden
        """
        u_wad = self.utilization(expected_liquidity, available_liquidity)
        if u_wad < self.u_1_wad:
            return self._segment_rate(1, u_wad)
        if u_wad < self.u_2_wad:
            return self._segment_rate(2, u_wad)
        if check_optimal_borrowing and self.is_borrowing_more_u2_forbidden and u_wad > self.u_2_wad:
            raise BorrowingCapExceeded(
                f"Utilization {ray_to_percent(u_wad * 10 ** 9)}% is above U2 "
                f"{Decimal(self.u_2) / 100}%"
            )
        return self._segment_rate(3, u_wad)

    def rate_at(self, utilization_bps: int) -> int:
        """Reporting helper: rate (RAY) at a utilization given in bps."""
        if not 0 <= utilization_bps <= PERCENTAGE_FACTOR:
            raise IncorrectParameterException(f"Utilization must be in [0, 100%], got {utilization_bps}")
        return self.rate(PERCENTAGE_FACTOR, PERCENTAGE_FACTOR - utilization_bps)

    def max_borrowable(self, expected_liquidity: int, available_liquidity: int) -> int:
        """
        Largest amount that can be lent out now.

        Under the U2 cap this keeps post-borrow utilization <= U2; otherwise
        (or when available exceeds expected) it is all available liquidity.
        """
        if (
            self.is_borrowing_more_u2_forbidden
            and expected_liquidity != 0
            and expected_liquidity >= available_liquidity
        ):
            borrowed = expected_liquidity - available_liquidity
            cap = self.u_2_wad * expected_liquidity // WAD - borrowed
            return max(0, min(cap, available_liquidity))
        return available_liquidity

    def describe(self) -> str:
        base, at_u1, at_u2, at_full = (ray_to_percent(r) for r in self.breakpoints())
        return (
            f"InterestRateCurve(0%: {base}%, {Decimal(self.u_1) / 100}%: {at_u1}%, "
            f"{Decimal(self.u_2) / 100}%: {at_u2}%, 100%: {at_full}%)"
        )


def create_interest_rate_curve(
    u_1: int,
    u_2: int,
    r_base: int,
    r_slope1: int,
    r_slope2: int,
    r_slope3: int,
    is_borrowing_more_u2_forbidden: bool = True,
) -> InterestRateCurve:
    """
    Create a validated rate curve from bps parameters.

    Example:
        curve = create_interest_rate_curve(8000, 9500, 1500, 500, 1000, 6000)
        curve.rate(100, 100)   # 15% in RAY at zero utilization
    """
    return InterestRateCurve(
        u_1=u_1,
        u_2=u_2,
        r_base=r_base,
        r_slope1=r_slope1,
        r_slope2=r_slope2,
        r_slope3=r_slope3,
        is_borrowing_more_u2_forbidden=is_borrowing_more_u2_forbidden,
    )

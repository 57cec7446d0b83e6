"""
ray_math.py - Fixed-Point Accrual Math

Pure integer functions shared by the pool and the quota ledger. No state,
no clock: every function takes elapsed seconds or stored values explicitly,
so projections can be recomputed on each read without persisting anything.

Key Formulas:
    linear growth     = value * dt / SECONDS_PER_YEAR
    base index        = index_lu * (RAY + rate * dt / SECONDS_PER_YEAR) / RAY
    quota index       = index_lu + RAY / 10_000 * rate_bps * dt / SECONDS_PER_YEAR
    quota interest    = quota * (index_now - index_lu) / RAY
    revenue change    = quota_change * rate_bps / 10_000   (signed, truncated)

Signed divisions truncate toward zero so that a quota increase followed by
an equal decrease cancels exactly in the pool's quota revenue.
"""

from __future__ import annotations
from decimal import Decimal, localcontext

from .core import (
    PERCENTAGE_FACTOR, RAY, RAY_DIVIDED_BY_PERCENTAGE, SECONDS_PER_YEAR, WAD,
)


# ============================================================================
# GENERIC HELPERS
# ============================================================================

def mul_div(a: int, b: int, denominator: int, round_up: bool = False) -> int:
    """
    Compute a * b / denominator for non-negative ints.

    Raises:
        ZeroDivisionError: if denominator is zero
    """
    if denominator == 0:
        raise ZeroDivisionError("mul_div by zero")
    product = a * b
    if round_up:
        return -(-product // denominator)
    return product // denominator


def div_trunc(numerator: int, denominator: int) -> int:
    """Signed integer division truncating toward zero."""
    quotient = abs(numerator) // abs(denominator)
    return quotient if (numerator >= 0) == (denominator > 0) else -quotient


def percent_mul(value: int, bps: int) -> int:
    """value * bps / 10_000, rounded down."""
    return value * bps // PERCENTAGE_FACTOR


# ============================================================================
# ACCRUAL
# ============================================================================

def calc_linear_growth(value: int, elapsed: int) -> int:
    """Growth of a per-year amount (or RAY rate) over `elapsed` seconds."""
    if elapsed <= 0:
        return 0
    return value * elapsed // SECONDS_PER_YEAR


def calc_linear_cumulative(index_lu: int, rate_ray: int, elapsed: int) -> int:
    """
    Project a compounding index forward by linear accrual.

    Args:
        index_lu: Index stored at the last update (RAY scale)
        rate_ray: Annual rate in RAY
        elapsed: Seconds since the last update

    Returns:
        index_lu * (RAY + rate * elapsed / year) / RAY
    """
    return index_lu * (RAY + calc_linear_growth(rate_ray, elapsed)) // RAY


def cumulative_index_since(index_lu: int, rate_bps: int, elapsed: int) -> int:
    """Quota index after `elapsed` seconds at `rate_bps` per year (additive)."""
    if elapsed <= 0:
        return index_lu
    return index_lu + RAY_DIVIDED_BY_PERCENTAGE * elapsed * rate_bps // SECONDS_PER_YEAR


def calc_accrued_quota_interest(quoted: int, index_now: int, index_lu: int) -> int:
    """Interest owed on `quoted` between two index readings; never negative."""
    if index_now <= index_lu:
        return 0
    return quoted * (index_now - index_lu) // RAY


def calc_quota_revenue_change(rate_bps: int, quota_change: int) -> int:
    """Signed per-year revenue change for a quota change at `rate_bps`."""
    return div_trunc(quota_change * rate_bps, PERCENTAGE_FACTOR)


def calc_actual_quota_change(total_quoted: int, limit: int, requested: int) -> int:
    """Cap a requested quota increase so total_quoted never passes limit."""
    if total_quoted >= limit:
        return 0
    return min(limit - total_quoted, requested)


# ============================================================================
# CONVERSIONS
# ============================================================================

def bps_to_ray(bps: int) -> int:
    return bps * RAY // PERCENTAGE_FACTOR


def bps_to_wad(bps: int) -> int:
    return bps * WAD // PERCENTAGE_FACTOR


def ray_to_decimal(value: int) -> Decimal:
    """Render a RAY-scaled value as a Decimal fraction (0.15 for 15%)."""
    with localcontext() as ctx:
        ctx.prec = 50
        return Decimal(value) / Decimal(RAY)


def ray_to_percent(value: int) -> Decimal:
    """Render a RAY-scaled rate as percent, quantized to 4 places."""
    with localcontext() as ctx:
        ctx.prec = 50
        return (Decimal(value) * 100 / Decimal(RAY)).quantize(Decimal("0.0001"))

"""
config.py - Deployment Configuration

Declarative parameters for one pool deployment and the factory that wires
the components together:

    underlying ──> Pool ──> QuotaLedger ──> RateEpochController
                    ^            (gauge)
             InterestRateCurve

Example:
    config = PoolConfig.from_dict({
        "symbol": "dUSDC",
        "curve": {"u_1": 8000, "u_2": 9500, "r_base": 1500,
                  "r_slope1": 500, "r_slope2": 1000, "r_slope3": 6000},
    })
    system = build_pool(config, usdc, ACL("configurator"), Clock())
    system.pool.deposit("alice", 1_000_000, "alice")
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from .core import (
    ACL, Address, EPOCH_LENGTH, MAX_WITHDRAW_FEE, UNLIMITED, TimeSource,
    IncorrectParameterException,
)
from .interest_rate_curve import InterestRateCurve, create_interest_rate_curve
from .pool import Pool
from .quota_ledger import QuotaLedger
from .rate_controller import RateEpochController
from .token import Token


@dataclass(frozen=True, slots=True)
class CurveConfig:
    """Rate curve parameters in bps."""
    u_1: int
    u_2: int
    r_base: int
    r_slope1: int
    r_slope2: int
    r_slope3: int
    is_borrowing_more_u2_forbidden: bool = True

    def build(self) -> InterestRateCurve:
        return create_interest_rate_curve(
            self.u_1, self.u_2, self.r_base, self.r_slope1, self.r_slope2, self.r_slope3,
            self.is_borrowing_more_u2_forbidden,
        )


@dataclass(frozen=True, slots=True)
class PoolConfig:
    """
    Parameters of a pool deployment.

    Attributes:
        curve: Borrow rate curve
        name: Share token name (default derived from the underlying)
        symbol: Share token symbol (default derived from the underlying)
        total_debt_limit: Global debt cap
        withdraw_fee: Withdrawal fee in bps, at most MAX_WITHDRAW_FEE
        treasury: Treasury address
        epoch_length: Seconds between quota rate commits
    """
    curve: CurveConfig
    name: Optional[str] = None
    symbol: Optional[str] = None
    total_debt_limit: int = UNLIMITED
    withdraw_fee: int = 0
    treasury: Address = "treasury"
    epoch_length: int = EPOCH_LENGTH

    def __post_init__(self):
        if not 0 <= self.withdraw_fee <= MAX_WITHDRAW_FEE:
            raise IncorrectParameterException(
                f"Withdraw fee must be in [0, {MAX_WITHDRAW_FEE}] bps, got {self.withdraw_fee}"
            )
        if self.total_debt_limit < 0:
            raise IncorrectParameterException("Total debt limit cannot be negative")
        if self.epoch_length < 0:
            raise IncorrectParameterException("Epoch length cannot be negative")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'PoolConfig':
        values: Dict[str, Any] = dict(data)
        curve = values.pop("curve")
        if not isinstance(curve, CurveConfig):
            curve = CurveConfig(**curve)
        return cls(curve=curve, **values)


@dataclass
class LendingSystem:
    """Wired components of one deployment."""
    pool: Pool
    quota_ledger: QuotaLedger
    rate_controller: RateEpochController
    acl: ACL = field(repr=False)
    clock: TimeSource = field(repr=False)


def build_pool(config: PoolConfig, underlying: Token, acl: ACL, clock: TimeSource) -> LendingSystem:
    """
    Create and connect a pool, its quota ledger and its rate controller.

    All setters run as the ACL's configurator.
    """
    configurator = acl.configurator
    pool = Pool(
        underlying,
        acl,
        clock,
        config.curve.build(),
        total_debt_limit=config.total_debt_limit,
        name=config.name,
        symbol=config.symbol,
        treasury=config.treasury,
    )
    if config.withdraw_fee:
        pool.set_withdraw_fee(configurator, config.withdraw_fee)

    quota_ledger = QuotaLedger(pool)
    pool.set_pool_quota_keeper(configurator, quota_ledger)

    rate_controller = RateEpochController(quota_ledger, epoch_length=config.epoch_length)
    quota_ledger.set_gauge(configurator, rate_controller)

    return LendingSystem(pool, quota_ledger, rate_controller, acl, clock)

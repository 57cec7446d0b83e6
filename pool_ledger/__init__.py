"""
pool_ledger - Lending Pool Accounting Engine

Integer fixed-point ledger for a pooled-liquidity lender: share accounting,
borrower debt with global and per-module limits, lazily accrued base interest,
per-token collateral quotas with their own interest stream, and epoch-batched
quota rates.

Usage:
    from pool_ledger import ACL, Clock, Token, PoolConfig, CurveConfig, build_pool

    clock = Clock(1_700_000_000)
    acl = ACL("configurator")
    usdc = Token("USD Coin", "USDC", decimals=6)
    system = build_pool(
        PoolConfig(curve=CurveConfig(8000, 9500, 1500, 500, 1000, 6000)),
        usdc, acl, clock,
    )

    usdc.mint("alice", 1_000_000)
    usdc.approve("alice", system.pool.address, 1_000_000)
    shares = system.pool.deposit("alice", 1_000_000, "alice")

    clock.advance(86_400)
    system.pool.expected_liquidity()
"""

# Core types
from .core import (
    # Constants
    RAY,
    WAD,
    PERCENTAGE_FACTOR,
    SECONDS_PER_YEAR,
    UINT16_MAX,
    UINT96_MAX,
    UINT128_MAX,
    UINT256_MAX,
    UNLIMITED,
    MAX_WITHDRAW_FEE,
    EPOCH_LENGTH,
    ZERO_ADDRESS,
    # Types
    Address,
    Event,
    EventLog,
    TimeSource,
    Clock,
    ACL,
    ReentrancyGuard,
    # Exceptions
    PoolLedgerError,
    AuthorizationError,
    BoundsError,
    StateError,
    ArithmeticSafetyError,
    CallerNotConfiguratorException,
    CallerNotControllerException,
    CallerNotPausableAdminException,
    CallerNotUnpausableAdminException,
    CallerNotCreditManagerException,
    CallerNotGaugeException,
    CallerNotPoolQuotaKeeperException,
    ZeroAddressException,
    IncorrectParameterException,
    BorrowingForbidden,
    BorrowingCapExceeded,
    QuotaIsOutOfBoundsException,
    InsufficientBalance,
    InsufficientAllowance,
    PoolPausedException,
    ReentrancyError,
    TokenIsNotQuotedException,
    TokenAlreadyAddedException,
    TokenNotAllowedException,
    IncompatibleCreditManagerException,
    IncompatiblePoolQuotaKeeperException,
    IncompatibleGaugeException,
    ArithmeticOverflow,
    # Checked casts
    to_uint16,
    to_uint96,
    to_uint128,
    to_uint256,
)

# Fixed-point math
from .ray_math import (
    mul_div,
    calc_linear_growth,
    calc_linear_cumulative,
    cumulative_index_since,
    calc_accrued_quota_interest,
    calc_quota_revenue_change,
    calc_actual_quota_change,
    bps_to_ray,
    bps_to_wad,
    ray_to_decimal,
    ray_to_percent,
)

# Tokens
from .token import (
    Token,
    TransferFeeSchedule,
    NO_FEES,
)

# Components
from .interest_rate_curve import (
    InterestRateCurve,
    create_interest_rate_curve,
)
from .pool import (
    Pool,
    DebtParams,
    CreditManagerLike,
)
from .quota_ledger import (
    QuotaLedger,
    QuotaUpdate,
    TokenQuotaParams,
    AccountQuota,
)
from .rate_controller import RateEpochController

# Configuration
from .config import (
    CurveConfig,
    PoolConfig,
    LendingSystem,
    build_pool,
)

__all__ = [
    # Constants
    'RAY',
    'WAD',
    'PERCENTAGE_FACTOR',
    'SECONDS_PER_YEAR',
    'UINT16_MAX',
    'UINT96_MAX',
    'UINT128_MAX',
    'UINT256_MAX',
    'UNLIMITED',
    'MAX_WITHDRAW_FEE',
    'EPOCH_LENGTH',
    'ZERO_ADDRESS',
    # Types
    'Address',
    'Event',
    'EventLog',
    'TimeSource',
    'Clock',
    'ACL',
    'ReentrancyGuard',
    # Exceptions
    'PoolLedgerError',
    'AuthorizationError',
    'BoundsError',
    'StateError',
    'ArithmeticSafetyError',
    'CallerNotConfiguratorException',
    'CallerNotControllerException',
    'CallerNotPausableAdminException',
    'CallerNotUnpausableAdminException',
    'CallerNotCreditManagerException',
    'CallerNotGaugeException',
    'CallerNotPoolQuotaKeeperException',
    'ZeroAddressException',
    'IncorrectParameterException',
    'BorrowingForbidden',
    'BorrowingCapExceeded',
    'QuotaIsOutOfBoundsException',
    'InsufficientBalance',
    'InsufficientAllowance',
    'PoolPausedException',
    'ReentrancyError',
    'TokenIsNotQuotedException',
    'TokenAlreadyAddedException',
    'TokenNotAllowedException',
    'IncompatibleCreditManagerException',
    'IncompatiblePoolQuotaKeeperException',
    'IncompatibleGaugeException',
    'ArithmeticOverflow',
    'to_uint16',
    'to_uint96',
    'to_uint128',
    'to_uint256',
    # Math
    'mul_div',
    'calc_linear_growth',
    'calc_linear_cumulative',
    'cumulative_index_since',
    'calc_accrued_quota_interest',
    'calc_quota_revenue_change',
    'calc_actual_quota_change',
    'bps_to_ray',
    'bps_to_wad',
    'ray_to_decimal',
    'ray_to_percent',
    # Tokens
    'Token',
    'TransferFeeSchedule',
    'NO_FEES',
    # Components
    'InterestRateCurve',
    'create_interest_rate_curve',
    'Pool',
    'DebtParams',
    'CreditManagerLike',
    'QuotaLedger',
    'QuotaUpdate',
    'TokenQuotaParams',
    'AccountQuota',
    'RateEpochController',
    # Configuration
    'CurveConfig',
    'PoolConfig',
    'LendingSystem',
    'build_pool',
]

__version__ = '1.0.0'

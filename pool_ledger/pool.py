"""
pool.py - Pooled Liquidity Ledger

The Pool is the top-level ledger of the lending engine. Liquidity providers
deposit the underlying asset and receive shares (vault semantics); registered
borrowing modules ("credit managers") borrow from it and repay with profit or
loss.

Key responsibilities:
    - Expected vs. available liquidity accounting (lazy accrual)
    - Base interest index, compounding on every liquidity-affecting call
    - Flat per-second quota revenue stream supplied by the quota ledger
    - Global and per-module debt limits
    - Share issuance and redemption, withdrawal fee, fee-on-transfer assets
    - Profit / loss settlement with treasury first-loss absorption

Accrual discipline:
    expected_liquidity() = expected_liquidity_lu
                         + borrowed * rate * dt / (RAY * SECONDS_PER_YEAR)
                         + quota_revenue * dt / SECONDS_PER_YEAR

Reads are pure projections. Stored fields move only in _update_base_interest
and _set_quota_revenue, which always run before the balance changes that
depend on the share price.

Every mutating entry point is atomic (restored on exception) and the
liquidity-affecting ones are non-reentrant.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol, TypeVar, TYPE_CHECKING
import functools
import logging

from .core import (
    # Types
    Address, ACL, ACLTrait, Event, EventLog, ReentrancyGuard, Snapshotable, TimeSource,
    # Constants
    PERCENTAGE_FACTOR, RAY, UINT256_MAX, UNLIMITED, MAX_WITHDRAW_FEE,
    # Exceptions
    BorrowingForbidden, CallerNotCreditManagerException, CallerNotPausableAdminException,
    CallerNotPoolQuotaKeeperException, CallerNotUnpausableAdminException,
    IncompatibleCreditManagerException, IncompatiblePoolQuotaKeeperException,
    IncorrectParameterException, PoolPausedException,
    # Helpers
    atomic, non_reentrant, require_nonzero_address, to_uint96, to_uint128,
)
from .interest_rate_curve import InterestRateCurve
from .ray_math import calc_linear_cumulative, calc_linear_growth, mul_div, ray_to_percent
from .token import Token

if TYPE_CHECKING:
    from .quota_ledger import QuotaLedger

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


class CreditManagerLike(Protocol):
    """What the pool needs to know about a borrowing module."""

    @property
    def address(self) -> Address:
        ...

    @property
    def pool(self) -> Address:
        ...


@dataclass
class DebtParams:
    """Outstanding principal and its cap (UNLIMITED = no cap)."""
    borrowed: int = 0
    limit: int = 0


def when_not_paused(method: F) -> F:
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        if self.paused:
            raise PoolPausedException(f"Pool {self.address} is paused")
        return method(self, *args, **kwargs)
    return wrapper  # type: ignore[return-value]


def _convert_limit(limit: int) -> int:
    """uint256 max means unlimited; anything else must fit uint128."""
    if limit == UINT256_MAX:
        return UNLIMITED
    return to_uint128(limit)


class Pool(Snapshotable, ACLTrait):
    """
    Lending pool ledger with share accounting and lazy interest accrual.

    Every entry point takes the caller's address first (the account on whose
    behalf the call is made); roles are checked against the shared ACL and
    the credit manager registry.

    Example:
        pool = Pool(usdc, acl, clock, curve, name="diesel USDC", symbol="dUSDC")
        shares = pool.deposit("alice", 1_000_000, "alice")
        pool.set_credit_manager_debt_limit("configurator", cm, 500_000)
        pool.lend_credit_account(cm.address, 200_000, "credit_account_1")
    """

    _STATE_FIELDS = (
        'expected_liquidity_lu', 'base_interest_index_lu', 'last_base_interest_update',
        'base_interest_rate_stored', 'quota_revenue_stored', 'last_quota_revenue_update',
        'total_debt', 'credit_manager_debt', 'withdraw_fee', 'treasury', 'paused',
    )
    _REF_FIELDS = ('interest_rate_model', 'pool_quota_keeper')

    def __init__(
        self,
        underlying: Token,
        acl: ACL,
        clock: TimeSource,
        interest_rate_model: InterestRateCurve,
        total_debt_limit: int = UNLIMITED,
        name: Optional[str] = None,
        symbol: Optional[str] = None,
        treasury: Address = "treasury",
        address: Optional[Address] = None,
    ):
        """
        Create a pool.

        Args:
            underlying: Token lent out by the pool
            acl: Role registry
            clock: Time source (seconds)
            interest_rate_model: Borrow rate curve
            total_debt_limit: Global debt cap (UINT256_MAX or UNLIMITED for none)
            name: Share token name (default: "diesel <underlying>")
            symbol: Share token symbol (default: "d<underlying>")
            treasury: Receiver of profit and fee shares, first-loss absorber
            address: Pool address (default: "pool:<symbol>")
        """
        symbol = symbol or f"d{underlying.symbol}"
        self.address: Address = address or f"pool:{symbol}"
        self.underlying = underlying
        self.acl = acl
        self.clock = clock
        self.interest_rate_model = interest_rate_model
        self.pool_quota_keeper: Optional['QuotaLedger'] = None
        self.shares = Token(
            name or f"diesel {underlying.name}", symbol,
            decimals=underlying.decimals, address=self.address,
        )
        self.treasury: Address = require_nonzero_address(treasury)

        now = clock.now
        self.expected_liquidity_lu = 0
        self.base_interest_index_lu = RAY
        self.last_base_interest_update = now
        self.base_interest_rate_stored = interest_rate_model.rate(0, 0)
        self.quota_revenue_stored = 0
        self.last_quota_revenue_update = now

        self.total_debt = DebtParams(borrowed=0, limit=_convert_limit(total_debt_limit))
        self.credit_manager_debt: Dict[Address, DebtParams] = {}
        self.withdraw_fee = 0
        self.paused = False

        self.events = EventLog()
        self._guard = ReentrancyGuard()

    def _atomic_participants(self):
        return (self, self.shares, self.underlying)

    def _emit(self, name: str, **args: Any) -> None:
        self.events.emit(Event(name, self.clock.now, self.address, args))

    # ========================================================================
    # LIQUIDITY (read-only projections)
    # ========================================================================

    @property
    def name(self) -> str:
        return self.shares.name

    @property
    def symbol(self) -> str:
        return self.shares.symbol

    @property
    def asset(self) -> Address:
        return self.underlying.address

    def available_liquidity(self) -> int:
        """Underlying currently held by the pool."""
        return self.underlying.balance_of(self.address)

    def expected_liquidity(self) -> int:
        """Stored liquidity plus base interest and quota revenue accrued since last update."""
        return (
            self.expected_liquidity_lu
            + self._calc_base_interest_accrued()
            + self._calc_quota_revenue_accrued()
        )

    def total_assets(self) -> int:
        return self.expected_liquidity()

    def _calc_base_interest_accrued(self) -> int:
        elapsed = self.clock.now - self.last_base_interest_update
        return self.total_debt.borrowed * calc_linear_growth(self.base_interest_rate_stored, elapsed) // RAY

    def _calc_quota_revenue_accrued(self) -> int:
        return calc_linear_growth(self.quota_revenue_stored, self.clock.now - self.last_quota_revenue_update)

    def base_interest_index(self) -> int:
        """Current base interest index (RAY), projected from the stored one."""
        elapsed = self.clock.now - self.last_base_interest_update
        return calc_linear_cumulative(self.base_interest_index_lu, self.base_interest_rate_stored, elapsed)

    def base_interest_rate(self) -> int:
        """Borrow rate (RAY) cached at the last liquidity-affecting call."""
        return self.base_interest_rate_stored

    def quota_revenue(self) -> int:
        return self.quota_revenue_stored

    def supply_rate(self) -> int:
        """Annual rate (RAY) earned by share holders, net of the withdrawal fee."""
        assets = self.expected_liquidity()
        if assets == 0:
            return 0
        gross = self.base_interest_rate_stored * self.total_debt.borrowed + self.quota_revenue_stored * RAY
        return gross * (PERCENTAGE_FACTOR - self.withdraw_fee) // PERCENTAGE_FACTOR // assets

    # ========================================================================
    # DEBT (read-only)
    # ========================================================================

    def total_borrowed(self) -> int:
        return self.total_debt.borrowed

    def total_debt_limit(self) -> int:
        return self.total_debt.limit

    def credit_managers(self) -> List[Address]:
        return list(self.credit_manager_debt)

    def credit_manager_borrowed(self, credit_manager: Address) -> int:
        debt = self.credit_manager_debt.get(credit_manager)
        return debt.borrowed if debt else 0

    def credit_manager_debt_limit(self, credit_manager: Address) -> int:
        debt = self.credit_manager_debt.get(credit_manager)
        return debt.limit if debt else 0

    def credit_manager_borrowable(self, credit_manager: Address) -> int:
        """Amount the module can borrow now, under both limits and the curve's U2 cap."""
        total = self.total_debt
        if total.borrowed >= total.limit:
            return 0
        borrowable = total.limit - total.borrowed

        debt = self.credit_manager_debt.get(credit_manager)
        if debt is None or debt.borrowed >= debt.limit:
            return 0
        borrowable = min(borrowable, debt.limit - debt.borrowed)

        return min(
            borrowable,
            self.interest_rate_model.max_borrowable(self.expected_liquidity(), self.available_liquidity()),
        )

    # ========================================================================
    # SHARES (ERC-4626 conversions)
    # ========================================================================

    def total_supply(self) -> int:
        return self.shares.total_supply

    def balance_of(self, holder: Address) -> int:
        return self.shares.balance_of(holder)

    def allowance(self, owner: Address, spender: Address) -> int:
        return self.shares.allowance(owner, spender)

    def convert_to_shares(self, assets: int, round_up: bool = False) -> int:
        return mul_div(assets, self.total_supply() + 1, self.total_assets() + 1, round_up)

    def convert_to_assets(self, shares: int, round_up: bool = False) -> int:
        return mul_div(shares, self.total_assets() + 1, self.total_supply() + 1, round_up)

    def _amount_with_withdrawal_fee(self, amount: int) -> int:
        return amount * PERCENTAGE_FACTOR // (PERCENTAGE_FACTOR - self.withdraw_fee)

    def _amount_minus_withdrawal_fee(self, amount: int) -> int:
        return amount * (PERCENTAGE_FACTOR - self.withdraw_fee) // PERCENTAGE_FACTOR

    def preview_deposit(self, assets: int) -> int:
        return self.convert_to_shares(self.underlying.amount_minus_fee(assets))

    def preview_mint(self, shares: int) -> int:
        return self.underlying.amount_with_fee(self.convert_to_assets(shares, round_up=True))

    def preview_withdraw(self, assets: int) -> int:
        gross = self._amount_with_withdrawal_fee(self.underlying.amount_with_fee(assets))
        return self.convert_to_shares(gross, round_up=True)

    def preview_redeem(self, shares: int) -> int:
        net = self._amount_minus_withdrawal_fee(self.convert_to_assets(shares))
        return self.underlying.amount_minus_fee(net)

    def max_deposit(self, receiver: Address) -> int:
        return 0 if self.paused else UINT256_MAX

    def max_mint(self, receiver: Address) -> int:
        return 0 if self.paused else UINT256_MAX

    def max_withdraw(self, owner: Address) -> int:
        if self.paused:
            return 0
        gross = min(self.available_liquidity(), self.convert_to_assets(self.balance_of(owner)))
        return self.underlying.amount_minus_fee(self._amount_minus_withdrawal_fee(gross))

    def max_redeem(self, owner: Address) -> int:
        if self.paused:
            return 0
        return min(self.balance_of(owner), self.convert_to_shares(self.available_liquidity()))

    # ========================================================================
    # SHARE TRANSFERS (Mutating)
    # ========================================================================

    @atomic
    @when_not_paused
    def transfer(self, caller: Address, receiver: Address, shares: int) -> bool:
        self.shares.transfer(caller, receiver, shares)
        return True

    @atomic
    @when_not_paused
    def transfer_from(self, caller: Address, owner: Address, receiver: Address, shares: int) -> bool:
        self.shares.transfer_from(caller, owner, receiver, shares)
        return True

    def approve(self, caller: Address, spender: Address, shares: int) -> bool:
        self.shares.approve(caller, spender, shares)
        return True

    # ========================================================================
    # DEPOSITS AND WITHDRAWALS (Mutating)
    # ========================================================================

    @atomic
    @non_reentrant
    @when_not_paused
    def deposit(self, caller: Address, assets: int, receiver: Address) -> int:
        """
        Pull `assets` from caller and mint shares to receiver.

        The ledger is credited with the amount the pool actually receives
        after the underlying's transfer fee.

        Returns:
            Shares minted
        """
        assets_received = self.underlying.amount_minus_fee(assets)
        shares = self.convert_to_shares(assets_received)
        self._deposit(caller, receiver, assets, assets_received, shares)
        return shares

    @atomic
    @non_reentrant
    @when_not_paused
    def mint(self, caller: Address, shares: int, receiver: Address) -> int:
        """
        Mint exactly `shares` to receiver, pulling whatever assets that costs.

        Returns:
            Assets pulled from caller (including the underlying's transfer fee)
        """
        assets = self.underlying.amount_with_fee(self.convert_to_assets(shares, round_up=True))
        self._deposit(caller, receiver, assets, self.underlying.amount_minus_fee(assets), shares)
        return assets

    def _deposit(self, caller: Address, receiver: Address, assets_sent: int, assets_received: int, shares: int) -> None:
        require_nonzero_address(receiver)
        self.underlying.transfer_from(self.address, caller, self.address, assets_sent)
        self._update_base_interest(
            expected_liquidity_delta=assets_received,
            available_liquidity_delta=0,
            check_optimal_borrowing=False,
        )
        self.shares.mint(receiver, shares)
        self._emit("Deposit", sender=caller, owner=receiver, assets=assets_received, shares=shares)
        logger.debug("%s deposit %d -> %d shares for %s", self.symbol, assets_received, shares, receiver)

    @atomic
    @non_reentrant
    @when_not_paused
    def withdraw(self, caller: Address, assets: int, receiver: Address, owner: Address) -> int:
        """
        Send `assets` (net of all fees) to receiver, burning owner's shares.

        Returns:
            Shares burned from owner
        """
        amount_to_user = self.underlying.amount_with_fee(assets)
        assets_gross = self._amount_with_withdrawal_fee(amount_to_user)
        shares = self.convert_to_shares(assets_gross, round_up=True)
        self._withdraw(caller, receiver, owner, assets_gross, amount_to_user, shares)
        return shares

    @atomic
    @non_reentrant
    @when_not_paused
    def redeem(self, caller: Address, shares: int, receiver: Address, owner: Address) -> int:
        """
        Burn `shares` of owner and send their value, net of fees, to receiver.

        Returns:
            Assets received by receiver
        """
        assets_gross = self.convert_to_assets(shares)
        amount_to_user = self._amount_minus_withdrawal_fee(assets_gross)
        self._withdraw(caller, receiver, owner, assets_gross, amount_to_user, shares)
        return self.underlying.amount_minus_fee(amount_to_user)

    def _withdraw(
        self,
        caller: Address,
        receiver: Address,
        owner: Address,
        assets_gross: int,
        amount_to_user: int,
        shares: int,
    ) -> None:
        # Fee shares are priced before the burn so the fee comes out of the
        # withdrawing owner, not out of the remaining holders.
        require_nonzero_address(receiver)
        if caller != owner:
            self.shares.spend_allowance(owner, caller, shares)
        fee_shares = self.convert_to_shares(assets_gross - amount_to_user)
        self.shares.burn(owner, shares)

        self._update_base_interest(
            expected_liquidity_delta=-amount_to_user,
            available_liquidity_delta=-amount_to_user,
            check_optimal_borrowing=False,
        )
        if fee_shares:
            self.shares.mint(self.treasury, fee_shares)
        self.underlying.transfer(self.address, receiver, amount_to_user)
        self._emit(
            "Withdraw", sender=caller, receiver=receiver, owner=owner,
            assets=amount_to_user, shares=shares,
        )
        logger.debug("%s withdraw %d (%d shares, %d fee shares)", self.symbol, amount_to_user, shares, fee_shares)

    # ========================================================================
    # BORROWING (Mutating, credit managers only)
    # ========================================================================

    def _credit_manager_or_raise(self, caller: Address) -> DebtParams:
        debt = self.credit_manager_debt.get(caller)
        if debt is None:
            raise CallerNotCreditManagerException(f"{caller} is not a registered credit manager")
        return debt

    @atomic
    @non_reentrant
    @when_not_paused
    def lend_credit_account(self, caller: Address, borrowed_amount: int, credit_account: Address) -> None:
        """
        Lend `borrowed_amount` of underlying to a credit account.

        Raises:
            CallerNotCreditManagerException: caller is not a registered module
            BorrowingForbidden: zero amount or a debt limit would be exceeded
            BorrowingCapExceeded: post-borrow utilization above U2 (when forbidden)
        """
        debt = self._credit_manager_or_raise(caller)
        total_borrowed = self.total_debt.borrowed + borrowed_amount
        cm_borrowed = debt.borrowed + borrowed_amount
        if borrowed_amount <= 0 or cm_borrowed > debt.limit or total_borrowed > self.total_debt.limit:
            raise BorrowingForbidden(
                f"{caller} cannot borrow {borrowed_amount}: module {cm_borrowed}/{debt.limit}, "
                f"total {total_borrowed}/{self.total_debt.limit}"
            )

        self._update_base_interest(
            expected_liquidity_delta=0,
            available_liquidity_delta=-borrowed_amount,
            check_optimal_borrowing=True,
        )
        debt.borrowed = to_uint128(cm_borrowed)
        self.total_debt.borrowed = to_uint128(total_borrowed)

        self.underlying.transfer(self.address, credit_account, borrowed_amount)
        self._emit("Borrow", credit_manager=caller, credit_account=credit_account, amount=borrowed_amount)
        logger.debug("%s lent %d to %s via %s", self.symbol, borrowed_amount, credit_account, caller)

    @atomic
    @non_reentrant
    @when_not_paused
    def repay_credit_account(self, caller: Address, repaid_amount: int, profit: int, loss: int) -> None:
        """
        Settle repaid principal with either profit or loss.

        The module must have transferred the funds before calling, so that the
        pool *received* repaid + accrued interest + profit - loss. On a
        fee-on-transfer underlying that means sending
        underlying.amount_with_fee(...) of that sum; the pool books the stated
        amounts and does not gross them up.

        Profit mints treasury shares; loss burns treasury shares up to the
        treasury's balance and the rest is reported as uncovered loss. Expected
        liquidity moves by profit - loss in both cases.

        Raises:
            IncorrectParameterException: a negative amount
            CallerNotCreditManagerException: caller has no outstanding debt
        """
        if repaid_amount < 0 or profit < 0 or loss < 0:
            raise IncorrectParameterException(
                f"Repay amounts must be non-negative, got repaid={repaid_amount}, profit={profit}, loss={loss}"
            )
        debt = self.credit_manager_debt.get(caller)
        if debt is None or debt.borrowed == 0:
            raise CallerNotCreditManagerException(f"{caller} has no outstanding debt")

        shares_to_mint = 0
        shares_to_burn = 0
        if profit > 0:
            shares_to_mint = self.convert_to_shares(profit)
        elif loss > 0:
            treasury_shares = self.balance_of(self.treasury)
            shares_to_burn = self.convert_to_shares(loss)
            if shares_to_burn > treasury_shares:
                uncovered = self.convert_to_assets(shares_to_burn - treasury_shares)
                self._emit("IncurUncoveredLoss", credit_manager=caller, loss=uncovered)
                logger.warning("%s uncovered loss %d from %s", self.symbol, uncovered, caller)
                shares_to_burn = treasury_shares

        self._update_base_interest(
            expected_liquidity_delta=profit - loss,
            available_liquidity_delta=0,
            check_optimal_borrowing=False,
        )
        if shares_to_mint:
            self.shares.mint(self.treasury, shares_to_mint)
            self._emit("Profit", credit_manager=caller, amount=profit)
        if shares_to_burn:
            self.shares.burn(self.treasury, shares_to_burn)
        if loss > 0:
            self._emit("Loss", credit_manager=caller, amount=loss)

        self.total_debt.borrowed = to_uint128(self.total_debt.borrowed - repaid_amount)
        debt.borrowed = to_uint128(debt.borrowed - repaid_amount)
        self._emit("Repay", credit_manager=caller, borrowed_amount=repaid_amount, profit=profit, loss=loss)
        logger.debug("%s repaid %d by %s (profit %d, loss %d)", self.symbol, repaid_amount, caller, profit, loss)

    # ========================================================================
    # INDEX UPDATES (internal)
    # ========================================================================

    def _update_base_interest(
        self,
        expected_liquidity_delta: int,
        available_liquidity_delta: int,
        check_optimal_borrowing: bool,
    ) -> None:
        """
        Persist accrued interest and quota revenue, apply a liquidity delta and
        recompute the borrow rate for the post-change liquidity.
        """
        expected_liquidity = self.expected_liquidity() + expected_liquidity_delta
        available_liquidity = self.available_liquidity() + available_liquidity_delta
        now = self.clock.now

        if now != self.last_base_interest_update:
            self.base_interest_index_lu = to_uint128(self.base_interest_index())
            self.last_base_interest_update = now
        if now != self.last_quota_revenue_update:
            self.last_quota_revenue_update = now

        self.expected_liquidity_lu = to_uint128(expected_liquidity)
        self.base_interest_rate_stored = to_uint128(self.interest_rate_model.rate(
            expected_liquidity, available_liquidity, check_optimal_borrowing,
        ))

    def _set_quota_revenue(self, new_quota_revenue: int) -> None:
        now = self.clock.now
        if now != self.last_quota_revenue_update:
            self.expected_liquidity_lu = to_uint128(self.expected_liquidity_lu + self._calc_quota_revenue_accrued())
            self.last_quota_revenue_update = now
        self.quota_revenue_stored = to_uint96(new_quota_revenue)
        self._emit("SetQuotaRevenue", quota_revenue=new_quota_revenue)

    # ========================================================================
    # QUOTA REVENUE (Mutating, quota keeper only)
    # ========================================================================

    def _pool_quota_keeper_only(self, caller: Address) -> None:
        if self.pool_quota_keeper is None or caller != self.pool_quota_keeper.address:
            raise CallerNotPoolQuotaKeeperException(f"{caller} is not the pool quota keeper")

    @atomic
    @non_reentrant
    def update_quota_revenue(self, caller: Address, quota_revenue_delta: int) -> None:
        """
        Shift the quota revenue stream by a signed per-year amount.

        Deltas are truncated toward zero by the keeper, so a decrease reported
        in one piece can exceed increases reported in several; the stream
        floors at zero instead of reverting the quota change.
        """
        self._pool_quota_keeper_only(caller)
        new_quota_revenue = self.quota_revenue_stored + quota_revenue_delta
        if new_quota_revenue < 0:
            self._emit("QuotaRevenueFloored", delta=quota_revenue_delta, shortfall=-new_quota_revenue)
            logger.warning(
                "%s quota revenue delta %d floored at zero (shortfall %d)",
                self.symbol, quota_revenue_delta, -new_quota_revenue,
            )
            new_quota_revenue = 0
        self._set_quota_revenue(new_quota_revenue)

    @atomic
    @non_reentrant
    def set_quota_revenue(self, caller: Address, new_quota_revenue: int) -> None:
        """Replace the quota revenue stream (per-year amount)."""
        self._pool_quota_keeper_only(caller)
        self._set_quota_revenue(new_quota_revenue)

    # ========================================================================
    # CONFIGURATION (Mutating, configurator / controllers)
    # ========================================================================

    @atomic
    def set_interest_rate_model(self, caller: Address, interest_rate_model: InterestRateCurve) -> None:
        self._configurator_only(caller)
        self.interest_rate_model = interest_rate_model
        self._update_base_interest(0, 0, False)
        self._emit("SetInterestRateModel", model=interest_rate_model.describe())

    @atomic
    def set_pool_quota_keeper(self, caller: Address, quota_keeper: 'QuotaLedger') -> None:
        """
        Connect the quota ledger. The ledger must have been created for this pool.

        Raises:
            IncompatiblePoolQuotaKeeperException: ledger belongs to another pool
        """
        self._configurator_only(caller)
        if quota_keeper.pool is not self:
            raise IncompatiblePoolQuotaKeeperException(f"{quota_keeper.address} belongs to another pool")
        self.pool_quota_keeper = quota_keeper
        self._set_quota_revenue(quota_keeper.pool_quota_revenue())
        self._emit("SetPoolQuotaKeeper", quota_keeper=quota_keeper.address)

    @atomic
    def set_total_debt_limit(self, caller: Address, limit: int) -> None:
        self._controller_only(caller)
        self.total_debt.limit = _convert_limit(limit)
        self._emit("SetTotalDebtLimit", limit=self.total_debt.limit)

    @atomic
    def set_credit_manager_debt_limit(self, caller: Address, credit_manager: CreditManagerLike, limit: int) -> None:
        """
        Set a module's debt cap, registering the module on first use.

        Raises:
            IncompatibleCreditManagerException: module is configured for another pool
        """
        self._controller_only(caller)
        address = require_nonzero_address(credit_manager.address)
        if address not in self.credit_manager_debt:
            if credit_manager.pool != self.address:
                raise IncompatibleCreditManagerException(f"{address} is configured for {credit_manager.pool}")
            self.credit_manager_debt[address] = DebtParams()
            self._emit("AddCreditManager", credit_manager=address)
        self.credit_manager_debt[address].limit = _convert_limit(limit)
        self._emit("SetCreditManagerDebtLimit", credit_manager=address, limit=self.credit_manager_debt[address].limit)

    @atomic
    def set_withdraw_fee(self, caller: Address, withdraw_fee: int) -> None:
        self._controller_only(caller)
        if not 0 <= withdraw_fee <= MAX_WITHDRAW_FEE:
            raise IncorrectParameterException(f"Withdraw fee {withdraw_fee} exceeds {MAX_WITHDRAW_FEE} bps")
        self.withdraw_fee = withdraw_fee
        self._emit("SetWithdrawFee", fee=withdraw_fee)

    @atomic
    def set_treasury(self, caller: Address, treasury: Address) -> None:
        self._configurator_only(caller)
        self.treasury = require_nonzero_address(treasury)
        self._emit("SetTreasury", treasury=treasury)

    def pause(self, caller: Address) -> None:
        if not self.acl.is_pausable_admin(caller):
            raise CallerNotPausableAdminException(f"{caller} cannot pause")
        if not self.paused:
            self.paused = True
            self._emit("Paused", account=caller)
            logger.info("%s paused by %s", self.symbol, caller)

    def unpause(self, caller: Address) -> None:
        if not self.acl.is_unpausable_admin(caller):
            raise CallerNotUnpausableAdminException(f"{caller} cannot unpause")
        if self.paused:
            self.paused = False
            self._emit("Unpaused", account=caller)
            logger.info("%s unpaused by %s", self.symbol, caller)

    # ========================================================================
    # VERIFICATION
    # ========================================================================

    def verify_conservation(self) -> Dict[str, Any]:
        """
        Check the ledger's structural invariants.

        - Module debts sum to total debt
        - Expected liquidity covers available liquidity while debt is outstanding
        - Share balances sum to share supply

        Returns:
            Dict with keys 'valid', 'expected_liquidity', 'available_liquidity',
            'total_borrowed', 'unrealized' (expected - available - borrowed)
            and 'discrepancies' (list of dicts)
        """
        discrepancies = []
        expected = self.expected_liquidity()
        available = self.available_liquidity()
        borrowed = self.total_debt.borrowed

        module_sum = sum(d.borrowed for d in self.credit_manager_debt.values())
        if module_sum != borrowed:
            discrepancies.append({'check': 'module_debt_sum', 'expected': borrowed, 'actual': module_sum})
        if borrowed > 0 and expected < available:
            discrepancies.append({'check': 'expected_covers_available', 'expected': expected, 'actual': available})
        share_check = self.shares.verify_conservation()
        if not share_check['valid']:
            discrepancies.append({
                'check': 'share_supply',
                'expected': share_check['total_supply'],
                'actual': share_check['sum_of_balances'],
            })

        return {
            'valid': not discrepancies,
            'expected_liquidity': expected,
            'available_liquidity': available,
            'total_borrowed': borrowed,
            'unrealized': expected - available - borrowed,
            'discrepancies': discrepancies,
        }

    def __repr__(self) -> str:
        return (
            f"Pool({self.symbol}, expected={self.expected_liquidity()}, "
            f"available={self.available_liquidity()}, borrowed={self.total_debt.borrowed}, "
            f"rate={ray_to_percent(self.base_interest_rate_stored)}%)"
        )

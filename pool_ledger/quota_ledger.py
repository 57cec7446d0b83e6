"""
quota_ledger.py - Per-Token Quota Accounting

The QuotaLedger (the pool's quota keeper) tracks how much borrowing capacity
each credit account has allocated to each collateral token, and charges
interest on those quotas independently of base debt.

Each quoted token carries:
    total_quoted           sum of account quotas, capped by `limit` on increase
    rate                   annual quota rate, bps
    cumulative_index_lu    additive index (RAY), advanced only in update_rates
    quota_increase_fee     one-off fee in bps of each realized increase

Interest on an account's quota is

    quota * (cumulative_index(token) - account.cumulative_index_lu) / RAY

and the pool is told about every change to the aggregate revenue stream
Σ total_quoted * rate / 10_000, either as a delta (update_quota,
remove_quotas) or as a full replacement (update_rates).

Rates come from the gauge (a RateEpochController) and are never applied
retroactively: the index is advanced with the previous rate before a new
one is installed.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple, TYPE_CHECKING
import logging

from .core import (
    Address, ACL, ACLTrait, Event, EventLog, Snapshotable, TimeSource,
    PERCENTAGE_FACTOR,
    CallerNotCreditManagerException, CallerNotGaugeException,
    IncompatibleCreditManagerException, IncompatibleGaugeException,
    IncorrectParameterException, QuotaIsOutOfBoundsException,
    TokenAlreadyAddedException, TokenIsNotQuotedException, TokenNotAllowedException,
    atomic, require_nonzero_address, to_uint16, to_uint96, to_uint192,
)
from .ray_math import (
    calc_accrued_quota_interest, calc_actual_quota_change, calc_quota_revenue_change,
    cumulative_index_since, percent_mul,
)

if TYPE_CHECKING:
    from .pool import CreditManagerLike, Pool

logger = logging.getLogger(__name__)


class GaugeLike(Protocol):
    """Rate source consulted by update_rates."""

    @property
    def address(self) -> Address:
        ...

    @property
    def quota_ledger(self) -> 'QuotaLedger':
        ...

    def get_rates(self, tokens: Sequence[Address]) -> List[int]:
        ...


# ============================================================================
# RECORDS
# ============================================================================

@dataclass
class TokenQuotaParams:
    total_quoted: int = 0
    limit: int = 0
    rate: int = 0
    cumulative_index_lu: int = 0
    quota_increase_fee: int = 0


@dataclass
class AccountQuota:
    quota: int = 0
    cumulative_index_lu: int = 0


@dataclass(frozen=True, slots=True)
class QuotaUpdate:
    """
    Outcome of update_quota.

    Attributes:
        interest_accrued: Quota interest owed since the account's last sync
        fees: Increase fee, in quota units, for the caller to route
        enable: Quota went from zero to nonzero
        disable: Quota went from nonzero to zero
        realized_change: Signed change actually applied
    """
    interest_accrued: int
    fees: int
    enable: bool
    disable: bool
    realized_change: int


# ============================================================================
# QUOTA LEDGER
# ============================================================================

class QuotaLedger(Snapshotable, ACLTrait):
    """
    Quota keeper attached to a single pool.

    Example:
        keeper = QuotaLedger(pool)
        pool.set_pool_quota_keeper("configurator", keeper)
        keeper.set_gauge("configurator", controller)
        keeper.add_credit_manager("configurator", cm)
    """

    _STATE_FIELDS = ('token_params', 'account_quotas', 'credit_managers', 'last_quota_rate_update')
    _REF_FIELDS = ('gauge',)

    def __init__(
        self,
        pool: 'Pool',
        acl: Optional[ACL] = None,
        clock: Optional[TimeSource] = None,
        address: Optional[Address] = None,
    ):
        self.pool = pool
        self.acl = acl or pool.acl
        self.clock = clock or pool.clock
        self.address: Address = address or f"quota_keeper:{pool.symbol}"
        self.gauge: Optional[GaugeLike] = None
        self.token_params: Dict[Address, TokenQuotaParams] = {}
        self.account_quotas: Dict[Tuple[Address, Address], AccountQuota] = {}
        self.credit_managers: List[Address] = []
        self.last_quota_rate_update = self.clock.now
        self.events = EventLog()

    def _atomic_participants(self):
        return (self,) + tuple(self.pool._atomic_participants())

    def _emit(self, name: str, **args: Any) -> None:
        self.events.emit(Event(name, self.clock.now, self.address, args))

    # ========================================================================
    # ROLE CHECKS
    # ========================================================================

    def _credit_manager_only(self, caller: Address) -> None:
        if caller not in self.credit_managers:
            raise CallerNotCreditManagerException(f"{caller} is not a registered credit manager")

    def _gauge_only(self, caller: Address) -> None:
        if self.gauge is None or caller != self.gauge.address:
            raise CallerNotGaugeException(f"{caller} is not the gauge")

    def _params_or_raise(self, token: Address) -> TokenQuotaParams:
        params = self.token_params.get(token)
        if params is None:
            raise TokenIsNotQuotedException(f"{token} is not a quoted token")
        return params

    # ========================================================================
    # READS
    # ========================================================================

    @property
    def underlying(self) -> Address:
        return self.pool.underlying.address

    def is_quoted_token(self, token: Address) -> bool:
        return token in self.token_params

    def quoted_tokens(self) -> List[Address]:
        return list(self.token_params)

    def get_token_quota_params(self, token: Address) -> TokenQuotaParams:
        """Copy of the token's parameters."""
        return replace(self._params_or_raise(token))

    def get_quota_rate(self, token: Address) -> int:
        return self._params_or_raise(token).rate

    def cumulative_index(self, token: Address) -> int:
        """Token's index projected to now with its current rate."""
        params = self._params_or_raise(token)
        return cumulative_index_since(
            params.cumulative_index_lu, params.rate, self.clock.now - self.last_quota_rate_update,
        )

    def get_quota(self, credit_account: Address, token: Address) -> Tuple[int, int]:
        """(quota, cumulative_index_lu) of an account; zeros if never quoted."""
        record = self.account_quotas.get((credit_account, token))
        if record is None:
            return 0, 0
        return record.quota, record.cumulative_index_lu

    def get_quota_and_outstanding_interest(self, credit_account: Address, token: Address) -> Tuple[int, int]:
        quota, index_lu = self.get_quota(credit_account, token)
        if quota == 0:
            return 0, 0
        return quota, calc_accrued_quota_interest(quota, self.cumulative_index(token), index_lu)

    def pool_quota_revenue(self) -> int:
        """Annual quota revenue implied by current totals and rates."""
        return sum(percent_mul(p.total_quoted, p.rate) for p in self.token_params.values())

    # ========================================================================
    # CONFIGURATION
    # ========================================================================

    @atomic
    def add_quota_token(self, caller: Address, token: Address) -> None:
        """
        Register a collateral token with zero limit, rate and index.

        Raises:
            TokenNotAllowedException: token is the pool's underlying
            TokenAlreadyAddedException: token is already registered
        """
        self._gauge_only(caller)
        require_nonzero_address(token)
        if token == self.underlying:
            raise TokenNotAllowedException(f"{token} is the pool's underlying")
        if token in self.token_params:
            raise TokenAlreadyAddedException(f"{token} is already quoted")
        self.token_params[token] = TokenQuotaParams()
        self._emit("AddQuotaToken", token=token)
        logger.debug("quota token %s added", token)

    @atomic
    def set_token_limit(self, caller: Address, token: Address, limit: int) -> None:
        self._controller_only(caller)
        params = self._params_or_raise(token)
        params.limit = to_uint96(limit)
        self._emit("SetTokenLimit", token=token, limit=limit)

    @atomic
    def set_token_quota_increase_fee(self, caller: Address, token: Address, fee: int) -> None:
        self._controller_only(caller)
        if not 0 <= fee <= PERCENTAGE_FACTOR:
            raise IncorrectParameterException(f"Quota increase fee must be in [0, {PERCENTAGE_FACTOR}], got {fee}")
        params = self._params_or_raise(token)
        params.quota_increase_fee = fee
        self._emit("SetQuotaIncreaseFee", token=token, fee=fee)

    @atomic
    def add_credit_manager(self, caller: Address, credit_manager: 'CreditManagerLike') -> None:
        self._configurator_only(caller)
        address = require_nonzero_address(credit_manager.address)
        if credit_manager.pool != self.pool.address:
            raise IncompatibleCreditManagerException(f"{address} is configured for {credit_manager.pool}")
        if address not in self.credit_managers:
            self.credit_managers.append(address)
            self._emit("AddCreditManager", credit_manager=address)

    @atomic
    def set_gauge(self, caller: Address, gauge: GaugeLike) -> None:
        self._configurator_only(caller)
        if gauge.quota_ledger is not self:
            raise IncompatibleGaugeException(f"{gauge.address} is not bound to {self.address}")
        if self.gauge is not gauge:
            self.gauge = gauge
            self._emit("SetGauge", gauge=gauge.address)

    # ========================================================================
    # QUOTA OPERATIONS (credit managers)
    # ========================================================================

    @atomic
    def update_quota(
        self,
        caller: Address,
        credit_account: Address,
        token: Address,
        quota_change: int,
        min_quota: int,
        max_quota: int,
    ) -> QuotaUpdate:
        """
        Change an account's quota for one token.

        Increases are capped so the token's total stays within its limit, and
        pay the increase fee on the realized amount only. Decreases are capped
        at the current quota. Interest accrued on the old quota is returned and
        the account's index is synced.

        Raises:
            TokenIsNotQuotedException: unregistered token, or an increase on a
                token whose limit is zero
            QuotaIsOutOfBoundsException: new quota outside [min_quota, max_quota]
        """
        self._credit_manager_only(caller)
        params = self._params_or_raise(token)
        if quota_change > 0 and params.limit == 0:
            raise TokenIsNotQuotedException(f"{token} has a zero quota limit")

        record = self.account_quotas.get((credit_account, token)) or AccountQuota()
        quoted = record.quota
        index_now = self.cumulative_index(token)
        interest = calc_accrued_quota_interest(quoted, index_now, record.cumulative_index_lu)

        fees = 0
        if quota_change > 0:
            realized = 0 if params.rate == 0 else calc_actual_quota_change(
                params.total_quoted, params.limit, quota_change,
            )
            fees = percent_mul(realized, params.quota_increase_fee)
        else:
            realized = -min(quoted, -quota_change)

        new_quoted = quoted + realized
        if new_quoted < min_quota or new_quoted > max_quota:
            raise QuotaIsOutOfBoundsException(
                f"Quota {new_quoted} of {credit_account} on {token} outside [{min_quota}, {max_quota}]"
            )

        enable = quoted == 0 and new_quoted != 0
        disable = quoted != 0 and new_quoted == 0

        revenue_change = calc_quota_revenue_change(params.rate, realized)
        if revenue_change != 0:
            self.pool.update_quota_revenue(self.address, revenue_change)

        params.total_quoted = to_uint96(params.total_quoted + realized)
        record.quota = to_uint96(new_quoted)
        record.cumulative_index_lu = to_uint192(index_now)
        self.account_quotas[(credit_account, token)] = record

        if realized != 0:
            self._emit("UpdateQuota", credit_account=credit_account, token=token, quota_change=realized)
        logger.debug(
            "quota %s/%s %+d (requested %+d, fee %d, interest %d)",
            credit_account, token, realized, quota_change, fees, interest,
        )
        return QuotaUpdate(interest, fees, enable, disable, realized)

    @atomic
    def remove_quotas(
        self,
        caller: Address,
        credit_account: Address,
        tokens: Iterable[Address],
        set_limits_to_zero: bool,
    ) -> None:
        """Zero an account's quotas on `tokens`, optionally zeroing the tokens' limits."""
        self._credit_manager_only(caller)
        revenue_change = 0
        for token in tokens:
            params = self._params_or_raise(token)
            record = self.account_quotas.get((credit_account, token))
            quoted = record.quota if record else 0
            if quoted:
                params.total_quoted = to_uint96(params.total_quoted - quoted)
                record.quota = 0
                revenue_change += calc_quota_revenue_change(params.rate, -quoted)
                self._emit("UpdateQuota", credit_account=credit_account, token=token, quota_change=-quoted)
            if set_limits_to_zero:
                params.limit = 0
                self._emit("SetTokenLimit", token=token, limit=0)

        if revenue_change != 0:
            self.pool.update_quota_revenue(self.address, revenue_change)

    @atomic
    def accrue_quota_interest(self, caller: Address, credit_account: Address, tokens: Iterable[Address]) -> int:
        """Sync the account's indices without changing quota sizes; returns total interest."""
        self._credit_manager_only(caller)
        interest = 0
        for token in tokens:
            index_now = self.cumulative_index(token)
            record = self.account_quotas.get((credit_account, token))
            if record is None:
                continue
            interest += calc_accrued_quota_interest(record.quota, index_now, record.cumulative_index_lu)
            record.cumulative_index_lu = to_uint192(index_now)
        return interest

    # ========================================================================
    # RATES (gauge)
    # ========================================================================

    @atomic
    def update_rates(self, caller: Address) -> None:
        """
        Install fresh rates from the gauge.

        Each token's index is first advanced with its previous rate over the
        time since the last rate update; the pool's quota revenue is then
        replaced with the total at the new rates.
        """
        self._gauge_only(caller)
        tokens = self.quoted_tokens()
        rates = self.gauge.get_rates(tokens)
        elapsed = self.clock.now - self.last_quota_rate_update

        quota_revenue = 0
        for token, rate in zip(tokens, rates):
            params = self.token_params[token]
            params.cumulative_index_lu = to_uint192(
                cumulative_index_since(params.cumulative_index_lu, params.rate, elapsed)
            )
            params.rate = to_uint16(rate)
            quota_revenue += percent_mul(params.total_quoted, rate)
            self._emit("UpdateTokenQuotaRate", token=token, rate=rate)

        self.pool.set_quota_revenue(self.address, quota_revenue)
        self.last_quota_rate_update = self.clock.now
        logger.debug("quota rates updated for %d tokens, revenue %d", len(tokens), quota_revenue)

    def __repr__(self) -> str:
        return f"QuotaLedger({self.address}, tokens={len(self.token_params)}, revenue={self.pool_quota_revenue()})"

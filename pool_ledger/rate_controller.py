"""
rate_controller.py - Epoch-Batched Quota Rates

The RateEpochController is the quota ledger's gauge. Controllers set per-token
annual quota rates (bps) at any time; the rates reach the ledger only at epoch
boundaries, as one QuotaLedger.update_rates call.

    set_rates(pairs) ──> stored rates ──(epoch elapsed, not frozen)──> QuotaLedger.update_rates

A rate of zero means "unset" and is rejected. Freezing the epoch keeps rates
batching indefinitely until it is unfrozen.
"""

from __future__ import annotations
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple
import logging

from .core import (
    Address, ACL, ACLTrait, Event, EventLog, Snapshotable, TimeSource,
    EPOCH_LENGTH, UINT16_MAX,
    IncorrectParameterException, TokenIsNotQuotedException, TokenNotAllowedException,
    atomic, require_nonzero_address,
)
from .quota_ledger import QuotaLedger

logger = logging.getLogger(__name__)


class RateEpochController(Snapshotable, ACLTrait):
    """
    Gauge supplying quota rates to one QuotaLedger.

    Example:
        controller = RateEpochController(keeper, epoch_length=7 * 24 * 3600)
        keeper.set_gauge("configurator", controller)
        controller.set_rates("configurator", [("token:WETH", 500)])
    """

    _STATE_FIELDS = ('rates', 'last_rate_update', 'epoch_frozen', 'epoch')

    def __init__(
        self,
        quota_ledger: QuotaLedger,
        acl: Optional[ACL] = None,
        clock: Optional[TimeSource] = None,
        epoch_length: int = EPOCH_LENGTH,
        address: Optional[Address] = None,
    ):
        if epoch_length < 0:
            raise IncorrectParameterException(f"Epoch length cannot be negative: {epoch_length}")
        self.quota_ledger = quota_ledger
        self.acl = acl or quota_ledger.acl
        self.clock = clock or quota_ledger.clock
        self.epoch_length = epoch_length
        self.address: Address = address or f"rate_controller:{quota_ledger.pool.symbol}"
        self.rates: Dict[Address, int] = {}
        self.last_rate_update = self.clock.now
        self.epoch_frozen = False
        self.epoch = 0
        self.events = EventLog()

    def _atomic_participants(self):
        return (self,) + tuple(self.quota_ledger._atomic_participants())

    def _emit(self, name: str, **args: Any) -> None:
        self.events.emit(Event(name, self.clock.now, self.address, args))

    # ========================================================================
    # READS
    # ========================================================================

    def tokens(self) -> List[Address]:
        return list(self.rates)

    def is_token_added(self, token: Address) -> bool:
        return token in self.rates

    def get_rates(self, tokens: Sequence[Address]) -> List[int]:
        """
        Current stored rates (bps) for `tokens`, in order.

        Raises:
            TokenIsNotQuotedException: a token has no rate set
        """
        result = []
        for token in tokens:
            rate = self.rates.get(token, 0)
            if rate == 0:
                raise TokenIsNotQuotedException(f"No rate set for {token}")
            result.append(rate)
        return result

    def next_epoch_at(self) -> int:
        return self.last_rate_update + self.epoch_length

    # ========================================================================
    # RATE SETTING (controllers)
    # ========================================================================

    def _register(self, token: Address) -> None:
        require_nonzero_address(token)
        if token == self.quota_ledger.underlying:
            raise TokenNotAllowedException(f"{token} is the pool's underlying")
        if not self.quota_ledger.is_quoted_token(token):
            self.quota_ledger.add_quota_token(self.address, token)
        if token not in self.rates:
            self.rates[token] = 0
            self._emit("AddToken", token=token)

    def _set_rate(self, token: Address, rate: int) -> None:
        if not 0 < rate <= UINT16_MAX:
            raise IncorrectParameterException(f"Rate for {token} must be in [1, {UINT16_MAX}] bps, got {rate}")
        self.rates[token] = rate
        self._emit("SetRate", token=token, rate=rate)

    def _commit_if_due(self) -> bool:
        if self.epoch_frozen or self.clock.now < self.next_epoch_at():
            return False
        self.quota_ledger.update_rates(self.address)
        self.last_rate_update = self.clock.now
        self.epoch += 1
        self._emit("UpdateEpoch", epoch=self.epoch)
        logger.debug("%s committed epoch %d", self.address, self.epoch)
        return True

    @atomic
    def set_rates(self, caller: Address, pairs: Iterable[Tuple[Address, int]]) -> bool:
        """
        Record rates for (token, rate_bps) pairs, registering new tokens.

        Returns:
            True if the epoch had elapsed and the rates were pushed to the ledger
        """
        self._controller_only(caller)
        for token, rate in pairs:
            self._register(token)
            self._set_rate(token, rate)
        return self._commit_if_due()

    @atomic
    def add_token(self, caller: Address, token: Address, rate: int) -> None:
        self._controller_only(caller)
        self._register(token)
        self._set_rate(token, rate)

    @atomic
    def set_rate(self, caller: Address, token: Address, rate: int) -> None:
        self._controller_only(caller)
        if token not in self.rates:
            raise TokenIsNotQuotedException(f"{token} is not registered with {self.address}")
        self._set_rate(token, rate)

    @atomic
    def update_rates(self, caller: Address) -> bool:
        """Push stored rates to the ledger if the epoch has elapsed."""
        self._controller_only(caller)
        return self._commit_if_due()

    @atomic
    def set_frozen_epoch(self, caller: Address, frozen: bool) -> None:
        self._configurator_only(caller)
        if frozen != self.epoch_frozen:
            self.epoch_frozen = frozen
            self._emit("SetFrozenEpoch", status=frozen)
            logger.info("%s epoch %s", self.address, "frozen" if frozen else "unfrozen")

    def __repr__(self) -> str:
        return f"RateEpochController({self.address}, epoch={self.epoch}, tokens={len(self.rates)})"

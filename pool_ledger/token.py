"""
token.py - Fungible Token Ledger

The Token class is a minimal single-unit balance ledger used for both the
pool's underlying asset and the pool's own shares.

Key responsibilities:
    - Holder balances, allowances and total supply (integers only)
    - Optional transfer-fee schedule (fee-on-transfer assets): the receiver
      is credited amount - fee, the fee goes to the fee collector
    - Receive hooks, so tests can model tokens that call back into the
      receiver after a transfer
    - Conservation check: sum of balances == total supply

Thread Safety:
    Not thread-safe. Each simulation owns its tokens.
"""

from __future__ import annotations
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple
import logging

from .core import (
    Address, Balances, PERCENTAGE_FACTOR,
    InsufficientAllowance, InsufficientBalance, IncorrectParameterException,
    Snapshotable, require_nonzero_address, to_uint256,
)

logger = logging.getLogger(__name__)

# Hook invoked after `receiver` is credited: hook(token, sender, amount_received)
ReceiveHook = Callable[['Token', Address, int], Any]


# ============================================================================
# TRANSFER FEES
# ============================================================================

@dataclass(frozen=True, slots=True)
class TransferFeeSchedule:
    """
    Fee charged by the token itself on every transfer.

    fee(amount) = min(amount * basis_points_rate / 10_000, maximum_fee)

    Attributes:
        basis_points_rate: Proportional fee in bps
        maximum_fee: Absolute cap on a single transfer's fee
    """
    basis_points_rate: int = 0
    maximum_fee: int = 0

    def __post_init__(self):
        if not 0 <= self.basis_points_rate < PERCENTAGE_FACTOR:
            raise IncorrectParameterException(
                f"Transfer fee must be in [0, {PERCENTAGE_FACTOR}), got {self.basis_points_rate}"
            )
        if self.maximum_fee < 0:
            raise IncorrectParameterException("Maximum fee cannot be negative")

    @property
    def is_zero(self) -> bool:
        return self.basis_points_rate == 0 or self.maximum_fee == 0

    def fee_on(self, amount: int) -> int:
        if self.is_zero:
            return 0
        return min(amount * self.basis_points_rate // PERCENTAGE_FACTOR, self.maximum_fee)

    def amount_minus_fee(self, amount: int) -> int:
        """Amount the receiver gets when `amount` is sent."""
        return amount - self.fee_on(amount)

    def amount_with_fee(self, amount: int) -> int:
        """Amount to send so that the receiver gets at least `amount`."""
        if self.is_zero:
            return amount
        gross = amount * PERCENTAGE_FACTOR // (PERCENTAGE_FACTOR - self.basis_points_rate)
        if gross - amount > self.maximum_fee:
            return amount + self.maximum_fee
        # Rounding down may leave the receiver one unit short.
        while self.amount_minus_fee(gross) < amount:
            gross += 1
        return gross


NO_FEES = TransferFeeSchedule()


# ============================================================================
# TOKEN
# ============================================================================

class Token(Snapshotable):
    """
    Fungible token balance ledger.

    Example:
        usdc = Token("USD Coin", "USDC", decimals=6)
        usdc.mint("alice", 1_000_000)
        usdc.transfer("alice", "bob", 250_000)
    """

    _STATE_FIELDS = ("balances", "allowances", "total_supply", "fee_schedule")

    def __init__(
        self,
        name: str,
        symbol: str,
        decimals: int = 18,
        address: Optional[Address] = None,
        fee_schedule: TransferFeeSchedule = NO_FEES,
        fee_collector: Optional[Address] = None,
    ):
        """
        Create a token.

        Args:
            name: Human-readable name
            symbol: Ticker, also the default address ("token:<symbol>")
            decimals: Display decimals (amounts are always raw integers)
            address: Token address (default: derived from symbol)
            fee_schedule: Transfer fee schedule (default: no fees)
            fee_collector: Receiver of transfer fees (default: the token itself)
        """
        self.name = name
        self.symbol = symbol
        self.decimals = decimals
        self.address: Address = address or f"token:{symbol}"
        self.fee_schedule = fee_schedule
        self.fee_collector: Address = fee_collector or self.address
        self.balances: Balances = defaultdict(int)
        self.allowances: Dict[Tuple[Address, Address], int] = {}
        self.total_supply = 0
        self._receive_hooks: Dict[Address, ReceiveHook] = {}

    # ========================================================================
    # READS
    # ========================================================================

    def balance_of(self, holder: Address) -> int:
        return self.balances.get(holder, 0)

    def allowance(self, owner: Address, spender: Address) -> int:
        return self.allowances.get((owner, spender), 0)

    def amount_minus_fee(self, amount: int) -> int:
        return self.fee_schedule.amount_minus_fee(amount)

    def amount_with_fee(self, amount: int) -> int:
        return self.fee_schedule.amount_with_fee(amount)

    def verify_conservation(self) -> Dict[str, Any]:
        """
        Check that balances sum to total supply.

        Returns:
            Dict with 'valid', 'total_supply', 'sum_of_balances'
        """
        held = sum(self.balances[h] for h in sorted(self.balances))
        return {
            'valid': held == self.total_supply,
            'total_supply': self.total_supply,
            'sum_of_balances': held,
        }

    # ========================================================================
    # CONFIGURATION
    # ========================================================================

    def set_fee_schedule(self, fee_schedule: TransferFeeSchedule) -> None:
        self.fee_schedule = fee_schedule

    def set_receive_hook(self, receiver: Address, hook: Optional[ReceiveHook]) -> None:
        """Register (or clear with None) a callback run after `receiver` is credited."""
        if hook is None:
            self._receive_hooks.pop(receiver, None)
        else:
            self._receive_hooks[receiver] = hook

    # ========================================================================
    # MUTATIONS
    # ========================================================================

    def approve(self, owner: Address, spender: Address, amount: int) -> None:
        require_nonzero_address(spender)
        self.allowances[(owner, spender)] = to_uint256(amount)

    def spend_allowance(self, owner: Address, spender: Address, amount: int) -> None:
        current = self.allowance(owner, spender)
        if current < amount:
            raise InsufficientAllowance(
                f"{spender} allowance {current} < {amount} on {self.symbol} of {owner}"
            )
        self.allowances[(owner, spender)] = current - amount

    def transfer(self, sender: Address, receiver: Address, amount: int) -> int:
        """
        Move `amount` from sender; receiver is credited amount minus the transfer fee.

        Returns:
            Amount actually received

        Raises:
            InsufficientBalance: if sender holds less than amount
        """
        require_nonzero_address(receiver)
        to_uint256(amount)
        balance = self.balance_of(sender)
        if balance < amount:
            raise InsufficientBalance(f"{sender} {self.symbol} balance {balance} < {amount}")
        fee = self.fee_schedule.fee_on(amount)
        received = amount - fee
        self.balances[sender] = balance - amount
        self.balances[receiver] += received
        if fee:
            self.balances[self.fee_collector] += fee
            logger.debug("%s transfer fee %d on %d (%s -> %s)", self.symbol, fee, amount, sender, receiver)
        hook = self._receive_hooks.get(receiver)
        if hook is not None:
            hook(self, sender, received)
        return received

    def transfer_from(self, spender: Address, owner: Address, receiver: Address, amount: int) -> int:
        if spender != owner:
            self.spend_allowance(owner, spender, amount)
        return self.transfer(owner, receiver, amount)

    def mint(self, receiver: Address, amount: int) -> None:
        require_nonzero_address(receiver)
        self.total_supply = to_uint256(self.total_supply + amount)
        self.balances[receiver] += amount

    def burn(self, holder: Address, amount: int) -> None:
        balance = self.balance_of(holder)
        if balance < amount:
            raise InsufficientBalance(f"{holder} {self.symbol} balance {balance} < burn {amount}")
        self.balances[holder] = balance - amount
        self.total_supply -= amount

    def __repr__(self) -> str:
        return f"Token({self.symbol}, supply={self.total_supply})"



"""
Core types and shared machinery for the lending pool accounting engine.

This module provides the foundations every ledger component builds on:
1. Constants: fixed-point scales (RAY, WAD, bps) and integer width bounds
2. Exceptions: PoolLedgerError and the four error families
3. Checked casts: to_uint16 ... to_uint256 (overflow fails the whole call)
4. Events: Event / EventLog, the in-memory audit trail of protocol events
5. Clock: injected time source (seconds), never moves backwards
6. ACL: configurator / controller / pausable-admin roles
7. Call discipline: ReentrancyGuard, non_reentrant and atomic decorators

All monetary values are plain Python ints. Rates and indices are scaled by
RAY (1e27), utilization by WAD (1e18), percentages by PERCENTAGE_FACTOR (bps).
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import (
    Any, Callable, Dict, Iterator, List, Mapping, Optional, Protocol,
    Set, Tuple, TypeVar, runtime_checkable,
)
import copy
import functools
import logging

logger = logging.getLogger(__name__)


# ============================================================================
# CONSTANTS
# ============================================================================

RAY = 10 ** 27
WAD = 10 ** 18
PERCENTAGE_FACTOR = 10_000
RAY_DIVIDED_BY_PERCENTAGE = RAY // PERCENTAGE_FACTOR

SECONDS_PER_YEAR = 365 * 24 * 60 * 60

UINT16_MAX = 2 ** 16 - 1
UINT40_MAX = 2 ** 40 - 1
UINT96_MAX = 2 ** 96 - 1
UINT128_MAX = 2 ** 128 - 1
UINT192_MAX = 2 ** 192 - 1
UINT256_MAX = 2 ** 256 - 1

# Debt limits are stored as uint128; the max value means "no limit".
UNLIMITED = UINT128_MAX

# Withdrawal fee ceiling in bps (1%).
MAX_WITHDRAW_FEE = 100

# Default rate epoch (one week).
EPOCH_LENGTH = 7 * 24 * 60 * 60

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


# ============================================================================
# TYPE ALIASES
# ============================================================================

# Opaque account identifier (wallet, contract, credit account).
Address = str

# Mapping from holder address to integer balance.
Balances = Dict[Address, int]


# ============================================================================
# EXCEPTIONS
# ============================================================================

class PoolLedgerError(Exception):
    """Base exception for all pool ledger errors."""
    pass


# --- (a) authorization -----------------------------------------------------

class AuthorizationError(PoolLedgerError):
    """Caller does not hold the role required by the entry point."""
    pass


class CallerNotConfiguratorException(AuthorizationError):
    pass


class CallerNotControllerException(AuthorizationError):
    pass


class CallerNotPausableAdminException(AuthorizationError):
    pass


class CallerNotUnpausableAdminException(AuthorizationError):
    pass


class CallerNotCreditManagerException(AuthorizationError):
    pass


class CallerNotGaugeException(AuthorizationError):
    pass


class CallerNotPoolQuotaKeeperException(AuthorizationError):
    pass


# --- (b) bounds ------------------------------------------------------------

class BoundsError(PoolLedgerError):
    """A value is outside its permitted range."""
    pass


class ZeroAddressException(BoundsError):
    pass


class IncorrectParameterException(BoundsError):
    pass


class BorrowingForbidden(BoundsError):
    """Zero borrow amount, or a per-module or global debt limit would be exceeded."""
    pass


class BorrowingCapExceeded(BoundsError):
    """Utilization would move past U2 while borrowing above U2 is forbidden."""
    pass


class QuotaIsOutOfBoundsException(BoundsError):
    """New quota is outside the caller-supplied [min_quota, max_quota] window."""
    pass


class InsufficientBalance(BoundsError):
    pass


class InsufficientAllowance(BoundsError):
    pass


# --- (c) state -------------------------------------------------------------

class StateError(PoolLedgerError):
    """Operation is not valid in the component's current state."""
    pass


class PoolPausedException(StateError):
    pass


class ReentrancyError(StateError):
    """A guarded entry point was re-entered while another call was in flight."""
    pass


class TokenIsNotQuotedException(StateError):
    pass


class TokenAlreadyAddedException(StateError):
    pass


class TokenNotAllowedException(StateError):
    pass


class IncompatibleCreditManagerException(StateError):
    pass


class IncompatiblePoolQuotaKeeperException(StateError):
    pass


class IncompatibleGaugeException(StateError):
    pass


# --- (d) arithmetic safety -------------------------------------------------

class ArithmeticSafetyError(PoolLedgerError):
    pass


class ArithmeticOverflow(ArithmeticSafetyError):
    """A value does not fit the unsigned width of the field it is stored in."""
    pass


# ============================================================================
# CHECKED CASTS
# ============================================================================

def to_uint(value: int, bits: int) -> int:
    """
    Return value unchanged if it fits an unsigned integer of the given width.

    Raises:
        ArithmeticOverflow: if value is negative or does not fit.
    """
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"Expected int, got {type(value).__name__}")
    if value < 0 or value >= 1 << bits:
        raise ArithmeticOverflow(f"{value} does not fit uint{bits}")
    return value


def to_uint16(value: int) -> int:
    return to_uint(value, 16)


def to_uint40(value: int) -> int:
    return to_uint(value, 40)


def to_uint96(value: int) -> int:
    return to_uint(value, 96)


def to_uint128(value: int) -> int:
    return to_uint(value, 128)


def to_uint192(value: int) -> int:
    return to_uint(value, 192)


def to_uint256(value: int) -> int:
    return to_uint(value, 256)


def require_nonzero_address(address: Optional[Address]) -> Address:
    """Raise ZeroAddressException for empty or zero addresses."""
    if not address or address == ZERO_ADDRESS:
        raise ZeroAddressException("Zero address is not allowed")
    return address


# ============================================================================
# EVENTS
# ============================================================================

@dataclass(frozen=True, slots=True)
class Event:
    """
    Immutable record of a protocol event.

    Attributes:
        name: Event name (e.g. "Deposit", "IncurUncoveredLoss")
        timestamp: Clock time at emission
        emitter: Address of the emitting component
        args: Event arguments
    """
    name: str
    timestamp: int
    emitter: Address
    args: Mapping[str, Any] = field(default_factory=dict)

    def __getitem__(self, key: str) -> Any:
        return self.args[key]

    def __repr__(self) -> str:
        rendered = ", ".join(f"{k}={v!r}" for k, v in self.args.items())
        return f"{self.name}({rendered})"


class EventLog:
    """Append-only event trail; rolled back with the component that owns it."""

    def __init__(self) -> None:
        self._events: List[Event] = []

    def emit(self, event: Event) -> None:
        self._events.append(event)

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[Event]:
        return iter(list(self._events))

    def truncate(self, length: int) -> None:
        del self._events[length:]

    def named(self, name: str) -> List[Event]:
        return [e for e in self._events if e.name == name]

    def last(self, name: Optional[str] = None) -> Optional[Event]:
        for event in reversed(self._events):
            if name is None or event.name == name:
                return event
        return None

    def tail(self, n: int = 20) -> List[Event]:
        if n <= 0:
            return []
        return self._events[-n:]


# ============================================================================
# CLOCK
# ============================================================================

@runtime_checkable
class TimeSource(Protocol):
    """Read-only source of the current time in whole seconds."""

    @property
    def now(self) -> int:
        ...


class Clock:
    """
    Logical clock in seconds. Time can only move forward, never backward.

    Example:
        clock = Clock(1_700_000_000)
        clock.advance(3600)
    """

    def __init__(self, start: int = 0):
        if start < 0:
            raise ValueError(f"Clock cannot start before zero: {start}")
        self._now = start

    @property
    def now(self) -> int:
        return self._now

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError(f"Cannot move time backwards by {seconds}s")
        self._now += seconds
        return self._now

    def warp(self, timestamp: int) -> int:
        if timestamp < self._now:
            raise ValueError(f"Cannot move time backwards: {timestamp} < {self._now}")
        self._now = timestamp
        return self._now


# ============================================================================
# ACCESS CONTROL
# ============================================================================

class ACL:
    """
    Role registry shared by all components of one deployment.

    The configurator implicitly holds every other role. Controllers may tune
    limits, fees and rates; pausable / unpausable admins gate the pool switch.
    """

    def __init__(self, configurator: Address):
        self.configurator = require_nonzero_address(configurator)
        self.controllers: Set[Address] = set()
        self.pausable_admins: Set[Address] = set()
        self.unpausable_admins: Set[Address] = set()

    def is_configurator(self, caller: Address) -> bool:
        return caller == self.configurator

    def is_controller(self, caller: Address) -> bool:
        return caller == self.configurator or caller in self.controllers

    def is_pausable_admin(self, caller: Address) -> bool:
        return caller == self.configurator or caller in self.pausable_admins

    def is_unpausable_admin(self, caller: Address) -> bool:
        return caller == self.configurator or caller in self.unpausable_admins

    def add_controller(self, caller: Address, account: Address) -> None:
        self._configurator_only(caller)
        self.controllers.add(require_nonzero_address(account))

    def add_pausable_admin(self, caller: Address, account: Address) -> None:
        self._configurator_only(caller)
        self.pausable_admins.add(require_nonzero_address(account))

    def add_unpausable_admin(self, caller: Address, account: Address) -> None:
        self._configurator_only(caller)
        self.unpausable_admins.add(require_nonzero_address(account))

    def _configurator_only(self, caller: Address) -> None:
        if not self.is_configurator(caller):
            raise CallerNotConfiguratorException(f"{caller} is not the configurator")


class ACLTrait:
    """Role checks for components holding an `acl` attribute."""

    acl: ACL

    def _configurator_only(self, caller: Address) -> None:
        if not self.acl.is_configurator(caller):
            raise CallerNotConfiguratorException(f"{caller} is not the configurator")

    def _controller_only(self, caller: Address) -> None:
        if not self.acl.is_controller(caller):
            raise CallerNotControllerException(f"{caller} is not a controller")


# ============================================================================
# CALL DISCIPLINE: REENTRANCY AND ATOMICITY
# ============================================================================

F = TypeVar("F", bound=Callable[..., Any])


class ReentrancyGuard:
    """
    Enter/exit guard. Entering twice raises ReentrancyError immediately;
    the guard is released on every exit path, including exceptions.
    """

    def __init__(self) -> None:
        self._entered = False

    @property
    def entered(self) -> bool:
        return self._entered

    def __enter__(self) -> 'ReentrancyGuard':
        if self._entered:
            raise ReentrancyError("Reentrant call")
        self._entered = True
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self._entered = False
        return False


def non_reentrant(method: F) -> F:
    """Run a method under the instance's `_guard` (a ReentrancyGuard)."""
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._guard:
            return method(self, *args, **kwargs)
    return wrapper  # type: ignore[return-value]


class Snapshotable:
    """
    Mixin giving a component snapshot/restore of its mutable ledger fields.

    _STATE_FIELDS are deep-copied, _REF_FIELDS are kept by reference (links
    to other components, immutable models). An `events` EventLog is rolled
    back by truncation.
    """

    _STATE_FIELDS: Tuple[str, ...] = ()
    _REF_FIELDS: Tuple[str, ...] = ()

    def snapshot(self) -> Dict[str, Any]:
        snap: Dict[str, Any] = {name: copy.deepcopy(getattr(self, name)) for name in self._STATE_FIELDS}
        for name in self._REF_FIELDS:
            snap[name] = getattr(self, name)
        events = getattr(self, "events", None)
        if isinstance(events, EventLog):
            snap["__events__"] = len(events)
        return snap

    def restore(self, snap: Dict[str, Any]) -> None:
        for name, value in snap.items():
            if name == "__events__":
                self.events.truncate(value)
            else:
                setattr(self, name, value)

    def _atomic_participants(self) -> Tuple['Snapshotable', ...]:
        return (self,)


def atomic(method: F) -> F:
    """
    All-or-nothing entry point: if the call raises, every participant
    returned by `self._atomic_participants()` is restored to its pre-call state.
    """
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        seen: Set[int] = set()
        snapshots = []
        for participant in self._atomic_participants():
            if id(participant) in seen:
                continue
            seen.add(id(participant))
            snapshots.append((participant, participant.snapshot()))
        try:
            return method(self, *args, **kwargs)
        except Exception:
            for participant, snap in reversed(snapshots):
                participant.restore(snap)
            logger.debug("%s reverted", method.__qualname__)
            raise
    return wrapper  # type: ignore[return-value]

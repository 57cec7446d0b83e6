"""
test_core.py - Unit tests for core machinery

Tests:
- Checked casts and zero-address guard
- Clock: forward-only time
- ACL roles
- EventLog queries and truncation
- ReentrancyGuard / non_reentrant
- Snapshotable / atomic rollback
"""

import pytest

from pool_ledger import (
    ACL, Clock, Event, EventLog, ReentrancyGuard, ZERO_ADDRESS,
    ArithmeticOverflow, CallerNotConfiguratorException, ReentrancyError, ZeroAddressException,
    PoolLedgerError, AuthorizationError, BoundsError, StateError, ArithmeticSafetyError,
    to_uint16, to_uint96, to_uint128,
)
from pool_ledger.core import Snapshotable, atomic, non_reentrant, require_nonzero_address


class TestCheckedCasts:

    def test_in_range_passes_through(self):
        assert to_uint16(65_535) == 65_535
        assert to_uint96(0) == 0

    def test_overflow_raises(self):
        with pytest.raises(ArithmeticOverflow):
            to_uint16(65_536)
        with pytest.raises(ArithmeticOverflow):
            to_uint128(2 ** 128)

    def test_negative_raises(self):
        with pytest.raises(ArithmeticOverflow):
            to_uint96(-1)

    def test_non_int_rejected(self):
        with pytest.raises(TypeError):
            to_uint128(1.5)

    @pytest.mark.parametrize("address", ["", None, ZERO_ADDRESS])
    def test_zero_address(self, address):
        with pytest.raises(ZeroAddressException):
            require_nonzero_address(address)


class TestErrorHierarchy:

    @pytest.mark.parametrize("family", [AuthorizationError, BoundsError, StateError, ArithmeticSafetyError])
    def test_families_share_root(self, family):
        assert issubclass(family, PoolLedgerError)

    def test_overflow_is_arithmetic_safety(self):
        assert issubclass(ArithmeticOverflow, ArithmeticSafetyError)


class TestClock:

    def test_advance(self):
        clock = Clock(100)
        assert clock.advance(50) == 150
        assert clock.now == 150

    def test_advance_zero_allowed(self):
        clock = Clock(100)
        clock.advance(0)
        assert clock.now == 100

    def test_rejects_backwards_advance(self):
        with pytest.raises(ValueError):
            Clock(100).advance(-1)

    def test_warp(self):
        clock = Clock(100)
        clock.warp(500)
        assert clock.now == 500
        with pytest.raises(ValueError):
            clock.warp(499)


class TestACL:

    def test_configurator_holds_every_role(self):
        acl = ACL("root")
        assert acl.is_controller("root")
        assert acl.is_pausable_admin("root")
        assert acl.is_unpausable_admin("root")

    def test_roles_are_granted_by_configurator_only(self, acl):
        with pytest.raises(CallerNotConfiguratorException):
            acl.add_controller("controller", "mallory")
        assert not acl.is_controller("mallory")

    def test_granted_roles(self, acl):
        assert acl.is_controller("controller")
        assert not acl.is_configurator("controller")
        assert acl.is_pausable_admin("guardian")


class TestEventLog:

    def test_queries(self):
        log = EventLog()
        log.emit(Event("A", 1, "x", {"n": 1}))
        log.emit(Event("B", 2, "x", {"n": 2}))
        log.emit(Event("A", 3, "x", {"n": 3}))
        assert len(log) == 3
        assert [e["n"] for e in log.named("A")] == [1, 3]
        assert log.last("B")["n"] == 2
        assert log.last()["n"] == 3
        assert log.last("C") is None
        assert [e.name for e in log.tail(2)] == ["B", "A"]

    def test_truncate(self):
        log = EventLog()
        for i in range(5):
            log.emit(Event("E", i, "x"))
        log.truncate(2)
        assert len(log) == 2


class _Counter(Snapshotable):
    _STATE_FIELDS = ("value", "history")

    def __init__(self):
        self.value = 0
        self.history = []
        self.events = EventLog()
        self._guard = ReentrancyGuard()

    @atomic
    def bump_then_fail(self):
        self.value += 1
        self.history.append(self.value)
        self.events.emit(Event("Bump", 0, "counter"))
        raise ValueError("boom")

    @atomic
    def bump(self):
        self.value += 1
        self.history.append(self.value)

    @non_reentrant
    def reenter(self, depth):
        if depth:
            self.reenter(depth - 1)


class TestCallDiscipline:

    def test_atomic_restores_on_exception(self):
        counter = _Counter()
        counter.bump()
        with pytest.raises(ValueError):
            counter.bump_then_fail()
        assert counter.value == 1
        assert counter.history == [1]
        assert len(counter.events) == 0

    def test_reentry_rejected(self):
        counter = _Counter()
        with pytest.raises(ReentrancyError):
            counter.reenter(1)

    def test_guard_released_after_error(self):
        counter = _Counter()
        with pytest.raises(ReentrancyError):
            counter.reenter(1)
        assert not counter._guard.entered
        counter.reenter(0)

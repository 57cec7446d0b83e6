"""
Debt Limit Conformance Tests

INVARIANT: A loan is granted only if it keeps both caps intact.

    lend(cm, x) succeeds  ⟺  borrowed(cm) + x ≤ limit(cm)
                             ∧ total_borrowed + x ≤ total_limit
                             (utilization kept far below U2 here)

    ∀ t: borrowed(cm) ≤ limit(cm) at the time of the last loan
         Σ_cm borrowed(cm) = total_borrowed

Limits may be lowered below outstanding debt; that blocks new loans and
never touches existing ones.
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from pool_ledger import BorrowingForbidden, UINT256_MAX, UNLIMITED

from tests.fake_credit_manager import FakeCreditManager
from tests.scenario import CONFIGURATOR, CONTROLLER, deposit, make_deployment


LIQUIDITY = 10 ** 12

limits = st.integers(min_value=0, max_value=2 * 10 ** 6)
loans = st.integers(min_value=1, max_value=10 ** 6)


class TestDebtLimitProperties:

    @given(limits, limits, st.integers(min_value=0, max_value=10 ** 6), loans)
    @settings(max_examples=200, deadline=None)
    def test_lend_iff_within_both_limits(self, cm_limit, total_limit, existing, amount):
        deployment = make_deployment()
        pool = deployment.pool
        deposit(pool, "alice", LIQUIDITY)
        if existing:
            deployment.cm.borrow(existing, "ca0")
        pool.set_credit_manager_debt_limit(CONTROLLER, deployment.cm, cm_limit)
        pool.set_total_debt_limit(CONTROLLER, total_limit)

        allowed = existing + amount <= cm_limit and existing + amount <= total_limit
        if allowed:
            deployment.cm.borrow(amount, "ca1")
            assert pool.credit_manager_borrowed(deployment.cm.address) == existing + amount
        else:
            with pytest.raises(BorrowingForbidden):
                deployment.cm.borrow(amount, "ca1")
            assert pool.credit_manager_borrowed(deployment.cm.address) == existing
        assert pool.total_borrowed() == pool.credit_manager_borrowed(deployment.cm.address)

    @given(limits, limits, st.integers(min_value=0, max_value=10 ** 6))
    @settings(max_examples=100, deadline=None)
    def test_borrowable_is_grantable(self, cm_limit, total_limit, existing):
        deployment = make_deployment()
        pool = deployment.pool
        deposit(pool, "alice", LIQUIDITY)
        if existing:
            deployment.cm.borrow(existing, "ca0")
        pool.set_credit_manager_debt_limit(CONTROLLER, deployment.cm, cm_limit)
        pool.set_total_debt_limit(CONTROLLER, total_limit)

        borrowable = pool.credit_manager_borrowable(deployment.cm.address)
        if borrowable:
            deployment.cm.borrow(borrowable, "ca1")
        with pytest.raises(BorrowingForbidden):
            deployment.cm.borrow(1, "ca1")

    @given(st.lists(st.tuples(st.sampled_from([0, 1]), loans), max_size=10), limits)
    @settings(max_examples=50, deadline=None)
    def test_module_sum_matches_total(self, loan_list, total_limit):
        deployment = make_deployment()
        pool = deployment.pool
        deposit(pool, "alice", LIQUIDITY)
        second = FakeCreditManager(pool, address="credit_manager_2")
        pool.set_credit_manager_debt_limit(CONTROLLER, second, 10 ** 6)
        pool.set_total_debt_limit(CONTROLLER, total_limit)
        modules = [deployment.cm, second]

        for index, amount in loan_list:
            try:
                modules[index].borrow(amount, f"ca_{index}")
            except BorrowingForbidden:
                pass
            assert pool.total_borrowed() <= total_limit
            assert pool.credit_manager_borrowed(second.address) <= 10 ** 6

        assert pool.total_borrowed() == sum(pool.credit_manager_borrowed(cm.address) for cm in modules)


class TestDebtLimitExamples:

    def test_uint256_max_means_unlimited(self, funded):
        funded.pool.set_total_debt_limit(CONTROLLER, UINT256_MAX)
        assert funded.pool.total_debt_limit() == UNLIMITED

    def test_lowered_limit_keeps_existing_debt(self, funded):
        funded.cm.borrow(10_000, "ca1")
        funded.pool.set_credit_manager_debt_limit(CONFIGURATOR, funded.cm, 5_000)
        assert funded.pool.credit_manager_borrowed(funded.cm.address) == 10_000
        assert funded.pool.credit_manager_borrowable(funded.cm.address) == 0
        with pytest.raises(BorrowingForbidden):
            funded.cm.borrow(1, "ca1")
        funded.cm.settle("ca1", 10_000)
        assert funded.pool.total_borrowed() == 0

"""
Quota Bound Conformance Tests

INVARIANT: For every quoted token,

    realized increase > 0  ⟹  total_quoted ≤ limit           (after the call)
    total_quoted = Σ_accounts quota(account, token)           (always)

The limit may be lowered below total_quoted at any time; existing quotas are
kept and only further increases are blocked.
"""

from hypothesis import given, settings, note
from hypothesis import strategies as st

from pool_ledger import PoolLedgerError

from tests.scenario import WETH, CONTROLLER, make_deployment

WBTC = "token:WBTC"

action = st.one_of(
    st.tuples(
        st.just("quota"),
        st.sampled_from(["ca1", "ca2", "ca3"]),
        st.sampled_from([WETH, WBTC]),
        st.integers(min_value=-60_000, max_value=60_000),
    ),
    st.tuples(
        st.just("limit"),
        st.just(""),
        st.sampled_from([WETH, WBTC]),
        st.integers(min_value=0, max_value=150_000),
    ),
)


class TestQuotaBoundProperties:

    @given(st.lists(action, max_size=30))
    @settings(max_examples=100, deadline=None)
    def test_totals_within_limits(self, actions):
        deployment = make_deployment(epoch_length=0)
        ledger = deployment.quota_ledger
        deployment.rate_controller.set_rates(CONTROLLER, [(WETH, 500), (WBTC, 250)])
        ledger.set_token_limit(CONTROLLER, WETH, 100_000)
        ledger.set_token_limit(CONTROLLER, WBTC, 100_000)

        for kind, account, token, value in actions:
            if kind == "limit":
                ledger.set_token_limit(CONTROLLER, token, value)
                continue
            try:
                result = deployment.cm.update_quota(ledger, account, token, value)
            except PoolLedgerError as exc:
                note(f"{account} {token} {value:+d} rejected: {type(exc).__name__}")
                continue
            params = ledger.get_token_quota_params(token)
            if result.realized_change > 0:
                assert params.total_quoted <= params.limit
            assert result.realized_change <= max(value, 0)

        for token in (WETH, WBTC):
            accounts = sum(ledger.get_quota(ca, token)[0] for ca in ("ca1", "ca2", "ca3"))
            assert ledger.get_token_quota_params(token).total_quoted == accounts

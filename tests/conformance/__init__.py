"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the pool ledger.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. conservation.py - Liquidity and share accounting at rest
2. atomicity.py - All-or-nothing entry points
3. reentrancy.py - Guarded entry points reject re-entry
4. temporal.py - Forward-only time and monotone indices
5. quota_bound.py - Quota totals within limits
6. round_trip.py - Deposit followed by redeem
7. debt_limits.py - Module and global debt caps

These tests use hypothesis for property-based testing.
"""

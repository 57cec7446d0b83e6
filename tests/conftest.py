"""
conftest.py - Shared pytest fixtures for pool ledger tests

Provides common fixtures used across unit and functional tests:
- Clock, ACL and underlying token
- A wired deployment (pool, quota ledger, rate controller, credit manager)
- A funded pool and a deployment with a quoted collateral token
"""

import pytest

from pool_ledger import ACL, Clock, Token, create_interest_rate_curve

from tests.scenario import (
    CONFIGURATOR, CONTROLLER, GUARDIAN, START_TIME,
    WETH, Deployment, deposit, make_deployment,
)


# =============================================================================
# BASIC FIXTURES
# =============================================================================

@pytest.fixture
def clock():
    return Clock(START_TIME)


@pytest.fixture
def acl():
    acl = ACL(CONFIGURATOR)
    acl.add_controller(CONFIGURATOR, CONTROLLER)
    acl.add_pausable_admin(CONFIGURATOR, GUARDIAN)
    acl.add_unpausable_admin(CONFIGURATOR, GUARDIAN)
    return acl


@pytest.fixture
def usdc():
    return Token("USD Coin", "USDC", decimals=6)


@pytest.fixture
def curve():
    """U1=80%, U2=95%, base 15%, slopes 4% / 10% / 60%."""
    return create_interest_rate_curve(8000, 9500, 1500, 400, 1000, 6000)


# =============================================================================
# DEPLOYMENTS
# =============================================================================

@pytest.fixture
def deployment() -> Deployment:
    return make_deployment()


@pytest.fixture
def funded(deployment) -> Deployment:
    """Deployment with 1,000,000 deposited by alice."""
    deposit(deployment.pool, "alice", 1_000_000)
    return deployment


@pytest.fixture
def quoted(deployment) -> Deployment:
    """
    Deployment with WETH quoted at 5% per year, limit 1,000,000, and
    1,000,000 of liquidity.
    """
    deposit(deployment.pool, "alice", 1_000_000)
    deployment.clock.advance(deployment.rate_controller.epoch_length)
    assert deployment.rate_controller.set_rates(CONTROLLER, [(WETH, 500)])
    deployment.quota_ledger.set_token_limit(CONTROLLER, WETH, 1_000_000)
    return deployment

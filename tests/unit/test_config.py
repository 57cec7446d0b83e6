"""
test_config.py - Unit tests for deployment configuration
"""

import pytest

from pool_ledger import (
    ACL, Clock, CurveConfig, PoolConfig, Token, UNLIMITED, EPOCH_LENGTH,
    IncorrectParameterException, build_pool,
)


CURVE = {"u_1": 8000, "u_2": 9500, "r_base": 1500, "r_slope1": 400, "r_slope2": 1000, "r_slope3": 6000}


class TestPoolConfig:

    def test_from_dict(self):
        config = PoolConfig.from_dict({"symbol": "dUSDC", "withdraw_fee": 50, "curve": CURVE})
        assert config.curve == CurveConfig(**CURVE)
        assert config.withdraw_fee == 50
        assert config.total_debt_limit == UNLIMITED
        assert config.epoch_length == EPOCH_LENGTH

    def test_rejects_withdraw_fee(self):
        with pytest.raises(IncorrectParameterException):
            PoolConfig(curve=CurveConfig(**CURVE), withdraw_fee=101)

    def test_invalid_curve_fails_on_build(self):
        with pytest.raises(IncorrectParameterException):
            CurveConfig(**{**CURVE, "u_1": 9600}).build()


class TestBuildPool:

    def test_components_are_wired(self):
        usdc = Token("USD Coin", "USDC", decimals=6)
        system = build_pool(
            PoolConfig.from_dict({"curve": CURVE, "withdraw_fee": 20, "total_debt_limit": 5_000}),
            usdc, ACL("configurator"), Clock(),
        )
        pool = system.pool
        assert pool.address == "pool:dUSDC"
        assert pool.name == "diesel USD Coin"
        assert pool.shares.decimals == 6
        assert pool.withdraw_fee == 20
        assert pool.total_debt_limit() == 5_000
        assert pool.pool_quota_keeper is system.quota_ledger
        assert system.quota_ledger.pool is pool
        assert system.quota_ledger.gauge is system.rate_controller
        assert system.rate_controller.quota_ledger is system.quota_ledger

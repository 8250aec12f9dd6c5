"""
Unit tests for assumptions.py module.

Tests conversion of requests into the strict internal model.
"""

import numpy as np
import pytest

from endowsim.assumptions import (
    AssetAssumption,
    CpiShift,
    EquityShock,
    PortfolioWeights,
    RebalancingPolicy,
    StressScenario,
    build_simulation_spec,
)
from endowsim.config import AssetOverrideConfig
from endowsim.exceptions import (
    ConfigurationError,
    ConfigurationMismatch,
    InvalidWeights,
    ValidationError,
)
from endowsim.spending import CpiLinkedPolicy, FixedRatePolicy


# ============================================================================
# ASSET ASSUMPTION TESTS
# ============================================================================

class TestAssetAssumption:
    """Test assumptions and overrides."""

    def test_negative_sigma_rejected(self):
        with pytest.raises(ValidationError, match="sigma"):
            AssetAssumption("publicEquity", 0.08, -0.01)

    def test_replace_override(self):
        """Test percent override replaces in replace mode."""
        base = AssetAssumption("publicEquity", 0.08, 0.15)
        new = base.with_override(AssetOverrideConfig(mean_pct=6.0, sd_pct=12.0))

        assert new.mu == pytest.approx(0.06)
        assert new.sigma == pytest.approx(0.12)

    def test_add_override(self):
        """Test percent override adds in add mode."""
        base = AssetAssumption("publicEquity", 0.08, 0.15)
        new = base.with_override(AssetOverrideConfig(mean_pct=-1.0, sd_pct=2.0, mode="add"))

        assert new.mu == pytest.approx(0.07)
        assert new.sigma == pytest.approx(0.17)

    def test_partial_override_keeps_other_field(self):
        base = AssetAssumption("publicEquity", 0.08, 0.15)
        new = base.with_override(AssetOverrideConfig(sd_pct=10.0))

        assert new.mu == 0.08
        assert new.sigma == pytest.approx(0.10)

    def test_override_to_negative_sigma(self):
        base = AssetAssumption("cashShortTerm", 0.015, 0.005)
        with pytest.raises(ValidationError):
            base.with_override(AssetOverrideConfig(sd_pct=-1.0, mode="add"))


# ============================================================================
# PORTFOLIO WEIGHTS TESTS
# ============================================================================

class TestPortfolioWeights:
    """Test weight validation and normalization."""

    def test_valid(self):
        PortfolioWeights({"a": 60.0, "b": 40.0}).validate(["a", "b"])

    def test_within_tolerance(self):
        PortfolioWeights({"a": 60.005, "b": 40.0}).validate(["a", "b"])

    def test_bad_sum(self):
        with pytest.raises(InvalidWeights, match="sum to 95.00"):
            PortfolioWeights({"a": 55.0, "b": 40.0}).validate(["a", "b"])

    def test_missing_key(self):
        with pytest.raises(InvalidWeights, match="missing"):
            PortfolioWeights({"a": 100.0}).validate(["a", "b"])

    def test_unknown_key(self):
        with pytest.raises(ConfigurationMismatch, match="hedgeFunds"):
            PortfolioWeights({"a": 50.0, "hedgeFunds": 50.0}).validate(["a"])

    def test_negative_weight(self):
        with pytest.raises(InvalidWeights):
            PortfolioWeights({"a": 110.0, "b": -10.0}).validate(["a", "b"])

    def test_normalized(self):
        """Test proportional rescale with rounding."""
        w = PortfolioWeights({"a": 1.0, "b": 2.0}).normalized()
        assert w.weights == {"a": 33.0, "b": 67.0}

    def test_normalized_already_valid(self):
        w = PortfolioWeights({"a": 60.0, "b": 40.0}).normalized()
        assert w.weights == {"a": 60.0, "b": 40.0}

    def test_normalized_zero_total(self):
        with pytest.raises(InvalidWeights):
            PortfolioWeights({"a": 0.0}).normalized()

    def test_as_fractions_ordering(self):
        w = PortfolioWeights({"b": 40.0, "a": 60.0})
        np.testing.assert_allclose(w.as_fractions(["a", "b"]), [0.6, 0.4])


# ============================================================================
# STRESS TESTS
# ============================================================================

class TestStress:
    """Test shocks and CPI shifts."""

    def test_multiplicative_shock(self):
        r = np.array([[0.10, 0.02]])
        EquityShock("publicEquity", 0, -30.0, 1).apply(r)
        np.testing.assert_allclose(r, [[1.1 * 0.7 - 1.0, 0.02]])

    def test_additive_shock(self):
        r = np.array([[0.10, 0.02]])
        EquityShock("publicEquity", 0, -30.0, 1, mode="additive").apply(r)
        np.testing.assert_allclose(r, [[-0.20, 0.02]])

    def test_negative_shock_never_raises_return(self):
        """Test returns at or below -100% are left as sampled."""
        r = np.array([[-2.0, 0.02], [-1.0, 0.0], [-0.5, 0.0]])
        EquityShock("publicEquity", 0, -30.0, 3).apply(r)
        np.testing.assert_allclose(r[:, 0], [-2.0, -1.0, 0.5 * 0.7 - 1.0])

    def test_cpi_mean_shifts(self):
        """Test inclusive ranges and summing of overlapping shifts."""
        stress = StressScenario(cpi_shifts=(CpiShift(1.0, 2, 3), CpiShift(0.5, 3, 4)))
        np.testing.assert_allclose(
            stress.cpi_mean_shifts(5), [0.0, 0.01, 0.015, 0.005, 0.0]
        )

    def test_shocks_for_year(self):
        s1 = EquityShock("publicEquity", 0, -10.0, 2)
        s2 = EquityShock("publicEquity", 0, -5.0, 3)
        stress = StressScenario(equity_shocks=(s1, s2))
        assert stress.shocks_for_year(3) == (s2,)
        assert stress.shocks_for_year(1) == ()


class TestRebalancingPolicy:

    def test_annual(self):
        policy = RebalancingPolicy(interval=1)
        assert all(policy.is_rebalance_year(t) for t in range(1, 6))

    def test_interval(self):
        policy = RebalancingPolicy(interval=3)
        assert [t for t in range(1, 10) if policy.is_rebalance_year(t)] == [3, 6, 9]

    def test_never(self):
        assert not RebalancingPolicy(interval=None).is_rebalance_year(1)


# ============================================================================
# BUILD SPEC TESTS
# ============================================================================

class TestBuildSimulationSpec:
    """Test request → SimulationSpec conversion."""

    def test_basic(self, request_two_asset):
        spec = build_simulation_spec(request_two_asset)

        assert spec.asset_keys == ("publicEquity", "publicFixedIncome")
        np.testing.assert_allclose(spec.target_weights, [0.6, 0.4])
        np.testing.assert_allclose(spec.mu, [0.08, 0.03])
        assert spec.risk_free_rate == pytest.approx(0.02)
        assert spec.initial_spending == pytest.approx(5_000_000)
        assert isinstance(spec.spending_policy, FixedRatePolicy)
        assert spec.spending_policy.rate == 0.05
        assert spec.rebalancing.interval == 1
        assert spec.stress.is_empty
        assert spec.benchmark is None
        assert spec.year_labels[0] == 2025
        assert len(spec.year_labels) == 11

    def test_initial_spending_override(self, make_spec):
        spec = make_spec(initialSpending=3_000_000)
        assert spec.initial_spending == 3_000_000

    def test_weights_mismatch(self, make_request):
        req = make_request(portfolioWeights={"publicEquity": 60, "hedgeFunds": 40})
        with pytest.raises(ConfigurationMismatch):
            build_simulation_spec(req)

    def test_weights_bad_sum(self, make_request):
        req = make_request(portfolioWeights={"publicEquity": 60, "publicFixedIncome": 30})
        with pytest.raises(InvalidWeights):
            build_simulation_spec(req)

    def test_overrides_applied(self, make_spec):
        spec = make_spec(assetOverrides={"publicEquity": {"meanPct": 5.0}})
        assert spec.mu[0] == pytest.approx(0.05)

    def test_override_unknown_asset(self, make_request):
        req = make_request(assetOverrides={"hedgeFunds": {"meanPct": 5.0}})
        with pytest.raises(ConfigurationError):
            build_simulation_spec(req)

    def test_equity_shock_convenience(self, make_spec):
        """Test request-level equityShock becomes a public equity shock."""
        spec = make_spec(equityShock=-0.3, equityShockYear=3)
        (shock,) = spec.stress.equity_shocks

        assert shock.asset_key == "publicEquity"
        assert shock.asset_index == 0
        assert shock.pct == pytest.approx(-30.0)
        assert shock.year == 3
        assert shock.mode == "multiplicative"

    def test_equity_shock_requires_public_equity(self, make_request):
        req = make_request(
            assetAssumptions={"publicFixedIncome": {"mu": 0.03, "sigma": 0.04}},
            portfolioWeights={"publicFixedIncome": 100},
            correlationMatrix=[[1.0]],
            equityShock=-0.2,
        )
        with pytest.raises(ConfigurationError, match="publicEquity"):
            build_simulation_spec(req)

    def test_cpi_shift_convenience(self, make_spec):
        spec = make_spec(cpiShift=0.01)
        np.testing.assert_allclose(spec.cpi_shifts, np.full(10, 0.01))

    def test_stress_shock_unknown_asset(self, make_request):
        req = make_request(stress={"equityShocks": [{"assetKey": "crypto", "pct": -50, "year": 1}]})
        with pytest.raises(ConfigurationError, match="crypto"):
            build_simulation_spec(req)

    def test_grant_targets_padded(self, make_spec):
        spec = make_spec(grantTargets=[90e6, 80e6])
        assert spec.grant_targets.shape == (10,)
        np.testing.assert_allclose(spec.grant_targets[:2], [90e6, 80e6])
        assert np.isnan(spec.grant_targets[2:]).all()

    def test_rebalancing_never(self, make_spec):
        spec = make_spec(rebalancing={"bandPct": 5, "frequency": "never"})
        assert spec.rebalancing.interval is None
        assert spec.rebalancing.band == pytest.approx(0.05)

    def test_cpi_linked_policy(self, make_spec):
        spec = make_spec(spendingPolicy={"type": "cpi_linked", "floorYoy": 0.0, "capYoy": 0.03})
        assert isinstance(spec.spending_policy, CpiLinkedPolicy)
        assert spec.spending_policy.cap_yoy == 0.03

    def test_blended_benchmark_normalized(self, make_spec):
        spec = make_spec(benchmark={
            "type": "blended", "weights": {"publicEquity": 30, "publicFixedIncome": 10}
        })
        np.testing.assert_allclose(spec.benchmark.weights, [0.75, 0.25])

    def test_asset_class_benchmark_unknown(self, make_request):
        req = make_request(benchmark={"type": "asset_class", "assetKey": "gold"})
        with pytest.raises(ConfigurationError, match="gold"):
            build_simulation_spec(req)

"""
Unit tests for config.py module.

Tests Pydantic request models, tagged unions and AppSettings.
"""

import copy

import pytest
from pydantic import ValidationError

from endowsim.config import (
    AppSettings,
    AssetOverrideConfig,
    BlendedBenchmarkConfig,
    CpiLinkedPolicyConfig,
    CpiShiftConfig,
    FixedRatePolicyConfig,
    RebalancingConfig,
    SimulationRequest,
)


def _with(payload, **overrides):
    data = copy.deepcopy(payload)
    data.update(overrides)
    return data


# ============================================================================
# SIMULATION REQUEST TESTS
# ============================================================================

class TestSimulationRequest:
    """Test boundary validation of SimulationRequest."""

    def test_valid_payload(self, two_asset_payload):
        """Test camelCase payload is accepted and exposed as snake_case."""
        req = SimulationRequest.model_validate(two_asset_payload)

        assert req.years == 10
        assert req.initial_value == 100_000_000
        assert req.num_simulations == 200
        assert req.asset_assumptions["publicEquity"].sigma == 0.15

    def test_defaults(self, two_asset_payload):
        """Test optional fields take their defaults."""
        req = SimulationRequest.model_validate(two_asset_payload)

        assert req.risk_free_rate == 2.0
        assert req.equity_shock is None
        assert req.equity_shock_year == 1
        assert req.grant_targets == []
        assert isinstance(req.spending_policy, FixedRatePolicyConfig)
        assert req.rebalancing.frequency == "annual"
        assert req.benchmark is None
        assert req.investment_expense_rate == 0.0

    def test_default_num_simulations(self, two_asset_payload):
        """Test numSimulations defaults to 10,000."""
        data = copy.deepcopy(two_asset_payload)
        del data["numSimulations"]
        assert SimulationRequest.model_validate(data).num_simulations == 10_000

    def test_populate_by_name(self, two_asset_payload):
        """Test snake_case construction works alongside aliases."""
        req = SimulationRequest.model_validate(two_asset_payload)
        again = SimulationRequest(**req.model_dump())
        assert again == req

    def test_dump_by_alias(self, request_two_asset):
        """Test wire dump uses camelCase."""
        data = request_two_asset.model_dump(by_alias=True)
        assert "initialValue" in data
        assert "initial_value" not in data

    def test_start_year_required(self, two_asset_payload):
        """Test year labels never depend on the day a request is replayed."""
        data = copy.deepcopy(two_asset_payload)
        del data["startYear"]
        with pytest.raises(ValidationError, match="startYear"):
            SimulationRequest.model_validate(data)

    def test_unknown_field_rejected(self, two_asset_payload):
        """Test extra fields are forbidden."""
        with pytest.raises(ValidationError):
            SimulationRequest.model_validate(_with(two_asset_payload, foo=1))

    @pytest.mark.parametrize("field,value", [
        ("years", 0),
        ("years", 101),
        ("initialValue", 0),
        ("spendingRate", 1.5),
        ("spendingGrowth", 0.6),
        ("numSimulations", 99),
        ("numSimulations", 10_001),
        ("equityShock", 0.1),
        ("equityShock", -1.1),
        ("cpiShift", 1.5),
        ("investmentExpenseRate", -1.0),
        ("startYear", 1899),
    ])
    def test_out_of_range_rejected(self, two_asset_payload, field, value):
        """Test range bounds at the boundary."""
        with pytest.raises(ValidationError):
            SimulationRequest.model_validate(_with(two_asset_payload, **{field: value}))

    def test_equity_shock_year_beyond_horizon(self, two_asset_payload):
        """Test equityShockYear must fall inside the horizon."""
        with pytest.raises(ValidationError, match="equity_shock_year"):
            SimulationRequest.model_validate(
                _with(two_asset_payload, equityShock=-0.2, equityShockYear=11)
            )

    def test_negative_grant_target_rejected(self, two_asset_payload):
        """Test grant targets must be non-negative."""
        with pytest.raises(ValidationError):
            SimulationRequest.model_validate(_with(two_asset_payload, grantTargets=[1.0, -5.0]))

    def test_frozen(self, request_two_asset):
        """Test requests are immutable."""
        with pytest.raises(ValidationError):
            request_two_asset.years = 20


# ============================================================================
# TAGGED CONFIG TESTS
# ============================================================================

class TestSpendingPolicyConfig:
    """Test spending policy discriminated union."""

    def test_cpi_linked_selected_by_type(self, two_asset_payload):
        """Test 'type' selects the CPI-linked model."""
        req = SimulationRequest.model_validate(_with(
            two_asset_payload,
            spendingPolicy={"type": "cpi_linked", "floorYoy": -0.02, "capYoy": 0.04},
        ))
        assert isinstance(req.spending_policy, CpiLinkedPolicyConfig)
        assert req.spending_policy.floor_yoy == -0.02

    def test_fixed_rate_smoothing(self, two_asset_payload):
        """Test fixed-rate smoothing accepts 1, 3 or 5."""
        req = SimulationRequest.model_validate(_with(
            two_asset_payload,
            spendingPolicy={"type": "fixed_rate", "rate": 0.04, "smoothingYears": 3},
        ))
        assert req.spending_policy.smoothing_years == 3

    def test_invalid_smoothing(self):
        """Test unsupported smoothing windows are rejected."""
        with pytest.raises(ValidationError):
            FixedRatePolicyConfig(smoothing_years=2)

    def test_floor_above_cap(self):
        """Test floor_yoy > cap_yoy is rejected."""
        with pytest.raises(ValidationError, match="floor_yoy"):
            CpiLinkedPolicyConfig(floor_yoy=0.05, cap_yoy=0.01)

    def test_unknown_type(self, two_asset_payload):
        """Test unknown policy tags are rejected."""
        with pytest.raises(ValidationError):
            SimulationRequest.model_validate(_with(
                two_asset_payload, spendingPolicy={"type": "hybrid"}
            ))


class TestStressAndRebalancingConfig:
    """Test stress event and rebalancing models."""

    def test_cpi_shift_aliases(self):
        """Test CPI shift uses 'from'/'to' on the wire."""
        shift = CpiShiftConfig.model_validate({"deltaPct": 1.0, "from": 2, "to": 4})
        assert (shift.from_year, shift.to_year) == (2, 4)
        assert shift.model_dump(by_alias=True)["from"] == 2

    def test_cpi_shift_reversed_range(self):
        """Test from > to is rejected."""
        with pytest.raises(ValidationError):
            CpiShiftConfig.model_validate({"deltaPct": 1.0, "from": 5, "to": 2})

    def test_shock_year_beyond_horizon(self, two_asset_payload):
        """Test stress shocks must fall inside the horizon."""
        with pytest.raises(ValidationError):
            SimulationRequest.model_validate(_with(
                two_asset_payload,
                stress={"equityShocks": [{"pct": -20, "year": 15}]},
            ))

    @pytest.mark.parametrize("freq", ["annual", "never", 3])
    def test_rebalancing_frequency(self, freq):
        """Test annual, never and integer intervals."""
        assert RebalancingConfig(frequency=freq).frequency == freq

    @pytest.mark.parametrize("freq", [0, "monthly"])
    def test_rebalancing_frequency_invalid(self, freq):
        with pytest.raises(ValidationError):
            RebalancingConfig(frequency=freq)

    def test_override_defaults(self):
        """Test asset overrides default to replace mode."""
        assert AssetOverrideConfig(mean_pct=6.0).mode == "replace"


class TestBenchmarkConfig:
    """Test benchmark discriminated union."""

    def test_cpi_plus(self, two_asset_payload):
        req = SimulationRequest.model_validate(_with(
            two_asset_payload, benchmark={"type": "cpi_plus", "spread": 0.05}
        ))
        assert req.benchmark.type == "cpi_plus"
        assert req.benchmark.spread == 0.05

    def test_asset_class_requires_key(self, two_asset_payload):
        with pytest.raises(ValidationError):
            SimulationRequest.model_validate(_with(
                two_asset_payload, benchmark={"type": "asset_class"}
            ))

    def test_blended_negative_weight(self):
        with pytest.raises(ValidationError, match="non-negative"):
            BlendedBenchmarkConfig(weights={"publicEquity": 70, "publicFixedIncome": -30})


# ============================================================================
# APP SETTINGS TESTS
# ============================================================================

class TestAppSettings:
    """Test environment-driven settings."""

    def test_defaults(self):
        settings = AppSettings(_env_file=None)

        assert settings.executor == "thread"
        assert settings.raw_paths_limit == 500
        assert settings.batch_size == 250
        assert settings.timeout_s is None

    def test_env_prefix(self, monkeypatch):
        """Test ENDOWSIM_ variables are read."""
        monkeypatch.setenv("ENDOWSIM_EXECUTOR", "none")
        monkeypatch.setenv("ENDOWSIM_MAX_WORKERS", "3")

        settings = AppSettings(_env_file=None)

        assert settings.executor == "none"
        assert settings.max_workers == 3

    def test_invalid_executor(self, monkeypatch):
        monkeypatch.setenv("ENDOWSIM_EXECUTOR", "process")
        with pytest.raises(ValidationError):
            AppSettings(_env_file=None)

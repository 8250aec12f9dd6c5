"""
Configuration management module for EndowSim.

Purpose
-------
Boundary models for the simulation request, using Pydantic for type-safe
parameter management, validation and serialization, plus environment-driven
application settings.

The request arrives as camelCase JSON (the wire format of the HTTP layer).
Every open-ended map of the wire request (asset overrides, stress
events, benchmark options, spending policy) is an explicit tagged model
here; `endowsim.assumptions.build_simulation_spec` converts the validated
request once into the strict internal model used by the numeric core.

Design Principles
-----------------
- Type-safe: Pydantic enforces types and validates ranges
- Immutable: Frozen models prevent accidental mutation
- Tagged unions: Spending policies and benchmarks carry a `type` discriminator
- Wire-compatible: camelCase aliases, snake_case attributes

Example
-------
>>> from endowsim.config import SimulationRequest
>>> request = SimulationRequest.model_validate({
...     "years": 10,
...     "startYear": 2025,
...     "initialValue": 100_000_000,
...     "spendingRate": 0.05,
...     "assetAssumptions": {"publicEquity": {"mu": 0.08, "sigma": 0.15}},
...     "portfolioWeights": {"publicEquity": 100},
...     "correlationMatrix": [[1.0]],
...     "numSimulations": 500,
... })
>>> request.num_simulations
500
>>> payload = request.model_dump(by_alias=True)
"""

from __future__ import annotations
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_N_SIMS,
    DEFAULT_RISK_FREE_RATE_PCT,
    EQUITY_ASSET,
    MAX_N_SIMS,
    MIN_N_SIMS,
    RAW_PATHS_LIMIT,
)

__all__ = [
    "AssetAssumptionConfig",
    "AssetOverrideConfig",
    "FixedRatePolicyConfig",
    "CpiLinkedPolicyConfig",
    "SpendingPolicyConfig",
    "RebalancingConfig",
    "EquityShockConfig",
    "CpiShiftConfig",
    "StressTestConfig",
    "CpiPlusBenchmarkConfig",
    "FixedBenchmarkConfig",
    "AssetClassBenchmarkConfig",
    "BlendedBenchmarkConfig",
    "BenchmarkConfig",
    "SimulationRequest",
    "AppSettings",
]


class _WireModel(BaseModel):
    """Shared config: frozen, strict keys, camelCase on the wire."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
        alias_generator=to_camel,
    )


# ---------------------------------------------------------------------------
# Asset assumptions
# ---------------------------------------------------------------------------

class AssetAssumptionConfig(_WireModel):
    """
    Expected annual return and volatility of one asset class.

    Attributes
    ----------
    mu : float
        Expected annual return as a fraction (e.g. 0.07).
    sigma : float
        Annual volatility as a fraction; must be non-negative.
    """

    mu: float = Field(
        ge=-1.0,
        le=1.0,
        description="Expected annual return (fraction)"
    )
    sigma: float = Field(
        ge=0,
        le=2.0,
        description="Annual volatility (fraction)"
    )


class AssetOverrideConfig(_WireModel):
    """
    Per-request override of an asset assumption, supplied in percent.

    With ``mode="replace"`` the percentages replace the assumption; with
    ``mode="add"`` they are added to it. Either field may be omitted.

    Examples
    --------
    >>> AssetOverrideConfig(mean_pct=6.5)            # mu -> 0.065
    >>> AssetOverrideConfig(sd_pct=-2.0, mode="add") # sigma -> sigma - 0.02
    """

    mean_pct: Optional[float] = Field(
        default=None,
        ge=-100,
        le=100,
        description="Expected return override (percent)"
    )
    sd_pct: Optional[float] = Field(
        default=None,
        ge=-100,
        le=200,
        description="Volatility override (percent)"
    )
    mode: Literal["replace", "add"] = Field(
        default="replace",
        description="Replace the assumption or add to it"
    )


# ---------------------------------------------------------------------------
# Spending policy
# ---------------------------------------------------------------------------

class FixedRatePolicyConfig(_WireModel):
    """
    Spend a fixed percentage of portfolio value entering each year.

    Attributes
    ----------
    rate : float, optional
        Spending rate as a fraction. Defaults to the request `spendingRate`.
    smoothing_years : {1, 3, 5}
        Base the rate on the average of the trailing N year-end values
        instead of the single value entering the year.
    """

    type: Literal["fixed_rate"] = "fixed_rate"
    rate: Optional[float] = Field(
        default=None,
        ge=0,
        le=1,
        description="Spending rate (fraction); defaults to spendingRate"
    )
    smoothing_years: Literal[1, 3, 5] = Field(
        default=1,
        description="Trailing year-end values averaged into the spending base"
    )


class CpiLinkedPolicyConfig(_WireModel):
    """
    Grow prior-year spending by CPI, clamped year over year.

    Attributes
    ----------
    floor_yoy : float
        Minimum year-over-year spending change (fraction, e.g. -0.02).
    cap_yoy : float
        Maximum year-over-year spending change (fraction, e.g. 0.05).
    """

    type: Literal["cpi_linked"] = "cpi_linked"
    floor_yoy: float = Field(
        default=0.0,
        ge=-1.0,
        le=1.0,
        description="Minimum year-over-year change (fraction)"
    )
    cap_yoy: float = Field(
        default=0.05,
        ge=-1.0,
        le=1.0,
        description="Maximum year-over-year change (fraction)"
    )

    @model_validator(mode="after")
    def validate_band(self):
        """Ensure floor_yoy <= cap_yoy."""
        if self.floor_yoy > self.cap_yoy:
            raise ValueError(
                f"floor_yoy ({self.floor_yoy}) must be <= cap_yoy ({self.cap_yoy})"
            )
        return self


SpendingPolicyConfig = Annotated[
    Union[FixedRatePolicyConfig, CpiLinkedPolicyConfig],
    Field(discriminator="type"),
]


# ---------------------------------------------------------------------------
# Rebalancing
# ---------------------------------------------------------------------------

class RebalancingConfig(_WireModel):
    """
    Drift band and frequency of rebalancing to target weights.

    A band of 0 rebalances at every rebalancing point; a positive band
    rebalances only when some realized weight drifts more than `band_pct`
    percentage points from its target.
    """

    band_pct: float = Field(
        default=0.0,
        ge=0,
        le=100,
        description="Allowed drift from target weight (percentage points)"
    )
    frequency: Union[Literal["annual", "never"], Annotated[int, Field(ge=1, le=100)]] = Field(
        default="annual",
        description="'annual', 'never', or an interval in years"
    )


# ---------------------------------------------------------------------------
# Stress tests
# ---------------------------------------------------------------------------

class EquityShockConfig(_WireModel):
    """
    One-time hit to one asset's return in one simulation year.

    Attributes
    ----------
    asset_key : str
        Asset class receiving the shock.
    pct : float
        Shock in percent (e.g. -30 for a 30% loss).
    year : int
        Simulation year (1-indexed) in which the shock applies.
    mode : {"multiplicative", "additive"}
        ``(1 + r)(1 + pct/100) - 1`` or ``r + pct/100``.
    """

    asset_key: str = Field(
        default=EQUITY_ASSET,
        min_length=1,
        max_length=50,
        description="Asset class to shock"
    )
    pct: float = Field(
        ge=-100,
        le=100,
        description="Shock size (percent)"
    )
    year: int = Field(
        ge=1,
        le=100,
        description="Simulation year (1-indexed)"
    )
    mode: Literal["multiplicative", "additive"] = Field(
        default="multiplicative",
        description="How the shock combines with the sampled return"
    )


class CpiShiftConfig(_WireModel):
    """Shift of the CPI mean for every year in an inclusive range."""

    delta_pct: float = Field(
        ge=-100,
        le=100,
        description="CPI shift (percentage points)"
    )
    from_year: int = Field(
        alias="from",
        ge=1,
        le=100,
        description="First affected year (1-indexed, inclusive)"
    )
    to_year: int = Field(
        alias="to",
        ge=1,
        le=100,
        description="Last affected year (inclusive)"
    )

    @model_validator(mode="after")
    def validate_range(self):
        """Ensure from_year <= to_year."""
        if self.from_year > self.to_year:
            raise ValueError(
                f"from ({self.from_year}) must be <= to ({self.to_year})"
            )
        return self


class StressTestConfig(_WireModel):
    """Ordered equity shocks and CPI shifts."""

    equity_shocks: List[EquityShockConfig] = Field(
        default_factory=list,
        description="One-time asset return shocks"
    )
    cpi_shifts: List[CpiShiftConfig] = Field(
        default_factory=list,
        description="CPI mean shifts over year ranges"
    )


# ---------------------------------------------------------------------------
# Benchmark
# ---------------------------------------------------------------------------

class CpiPlusBenchmarkConfig(_WireModel):
    """Benchmark return = CPI + spread."""

    type: Literal["cpi_plus"] = "cpi_plus"
    spread: float = Field(default=0.06, ge=-1, le=1)
    label: Optional[str] = Field(default=None, max_length=100)


class FixedBenchmarkConfig(_WireModel):
    """Benchmark return = constant rate."""

    type: Literal["fixed"] = "fixed"
    rate: float = Field(default=0.06, ge=-1, le=1)
    label: Optional[str] = Field(default=None, max_length=100)


class AssetClassBenchmarkConfig(_WireModel):
    """Benchmark return = one asset class's (shocked) return."""

    type: Literal["asset_class"] = "asset_class"
    asset_key: str = Field(min_length=1, max_length=50)
    label: Optional[str] = Field(default=None, max_length=100)


class BlendedBenchmarkConfig(_WireModel):
    """Benchmark return = weighted blend of asset-class returns (percent weights)."""

    type: Literal["blended"] = "blended"
    weights: Dict[str, float] = Field(min_length=1)
    label: Optional[str] = Field(default=None, max_length=100)

    @field_validator("weights")
    @classmethod
    def validate_weights(cls, v):
        """Ensure blend weights are non-negative with a positive total."""
        if any(w < 0 for w in v.values()):
            raise ValueError("blended benchmark weights must be non-negative")
        if sum(v.values()) <= 0:
            raise ValueError("blended benchmark weights must sum to a positive value")
        return v


BenchmarkConfig = Annotated[
    Union[
        CpiPlusBenchmarkConfig,
        FixedBenchmarkConfig,
        AssetClassBenchmarkConfig,
        BlendedBenchmarkConfig,
    ],
    Field(discriminator="type"),
]


# ---------------------------------------------------------------------------
# Simulation request
# ---------------------------------------------------------------------------

class SimulationRequest(_WireModel):
    """
    Validated simulation request.

    Attributes
    ----------
    years : int
        Simulated years (1-100).
    start_year : int
        Calendar year of year 0 (used for labels only). Required, so a
        replayed request labels its years identically.
    initial_value : float
        Portfolio value at year 0 (> 0).
    spending_rate : float
        Default fixed spending rate (0-1).
    spending_growth : float
        Real growth applied on top of CPI to operating expense, grant and
        contribution flows (-0.5 to 0.5).
    asset_assumptions : Dict[str, AssetAssumptionConfig]
        Return/volatility per asset class.
    portfolio_weights : Dict[str, float]
        Target allocation in percent.
    correlation_matrix : List[List[float]]
        Asset correlation matrix, ordered like `asset_assumptions`.
    equity_shock : float, optional
        Convenience shock (fraction, -1 to 0) applied to public equity in
        `equity_shock_year`.
    cpi_shift : float, optional
        Convenience CPI shift (fraction, -1 to 1) applied to every year.
    grant_targets : List[float]
        Per-year success thresholds for portfolio value (year 1 first).
    investment_expense_rate : float
        Annual investment expense in percent of the value entering the year;
        also charged to the benchmark.
    risk_free_rate : float
        Risk-free rate in percent (default 2).
    num_simulations : int
        Number of paths (100-10,000).
    seed : int, optional
        Makes the ensemble reproducible.

    Examples
    --------
    >>> request = SimulationRequest.model_validate_json(path.read_text())
    >>> request.years
    20
    """

    years: int = Field(
        ge=1,
        le=100,
        description="Number of simulated years"
    )
    start_year: int = Field(
        ge=1900,
        description="Calendar year of year 0"
    )
    initial_value: float = Field(
        gt=0,
        description="Initial portfolio value"
    )
    spending_rate: float = Field(
        ge=0,
        le=1,
        description="Spending rate for the simple policy (fraction)"
    )
    spending_growth: float = Field(
        default=0.0,
        ge=-0.5,
        le=0.5,
        description="Real growth of expense/grant/contribution flows"
    )
    asset_assumptions: Dict[str, AssetAssumptionConfig] = Field(
        min_length=1,
        description="Asset class assumptions keyed by asset class"
    )
    portfolio_weights: Dict[str, float] = Field(
        min_length=1,
        description="Target weights (percent) keyed by asset class"
    )
    correlation_matrix: List[List[float]] = Field(
        min_length=1,
        description="NxN correlation matrix"
    )
    equity_shock: Optional[float] = Field(
        default=None,
        ge=-1,
        le=0,
        description="One-time public equity shock (fraction)"
    )
    equity_shock_year: int = Field(
        default=1,
        ge=1,
        le=100,
        description="Year in which equity_shock applies"
    )
    cpi_shift: Optional[float] = Field(
        default=None,
        ge=-1,
        le=1,
        description="CPI shift applied to every year (fraction)"
    )
    grant_targets: List[float] = Field(
        default_factory=list,
        description="Per-year value thresholds for success"
    )
    initial_operating_expense: float = Field(
        default=0.0,
        ge=0,
        description="Operating expense outflow in year 1"
    )
    initial_grant: float = Field(
        default=0.0,
        ge=0,
        description="Grant outflow in year 1"
    )
    annual_contribution: float = Field(
        default=0.0,
        ge=0,
        description="Contribution inflow in year 1"
    )
    initial_spending: Optional[float] = Field(
        default=None,
        ge=0,
        description="Year-0 spending; defaults to spending_rate * initial_value"
    )
    investment_expense_rate: float = Field(
        default=0.0,
        ge=0,
        le=100,
        description="Investment expense (percent of value entering the year)"
    )
    risk_free_rate: float = Field(
        default=DEFAULT_RISK_FREE_RATE_PCT,
        ge=-10,
        le=25,
        description="Risk-free rate (percent)"
    )
    num_simulations: int = Field(
        default=DEFAULT_N_SIMS,
        ge=MIN_N_SIMS,
        le=MAX_N_SIMS,
        description="Number of Monte Carlo paths"
    )
    seed: Optional[int] = Field(
        default=None,
        ge=0,
        description="Random seed for reproducibility"
    )
    spending_policy: SpendingPolicyConfig = Field(
        default_factory=FixedRatePolicyConfig,
        description="Spending policy"
    )
    rebalancing: RebalancingConfig = Field(
        default_factory=RebalancingConfig,
        description="Rebalancing policy"
    )
    stress: StressTestConfig = Field(
        default_factory=StressTestConfig,
        description="Stress test events"
    )
    asset_overrides: Dict[str, AssetOverrideConfig] = Field(
        default_factory=dict,
        description="Per-asset assumption overrides (percent)"
    )
    benchmark: Optional[BenchmarkConfig] = Field(
        default=None,
        description="Benchmark tracked alongside the portfolio"
    )

    @field_validator("grant_targets")
    @classmethod
    def validate_grant_targets(cls, v):
        """Ensure grant targets are finite and non-negative."""
        if any(not (t >= 0) or t == float("inf") for t in v):
            raise ValueError("grant targets must be finite and non-negative")
        return v

    @model_validator(mode="after")
    def validate_horizon_events(self):
        """Ensure scheduled events fall inside the horizon."""
        if self.equity_shock is not None and self.equity_shock_year > self.years:
            raise ValueError(
                f"equity_shock_year ({self.equity_shock_year}) exceeds years ({self.years})"
            )
        for shock in self.stress.equity_shocks:
            if shock.year > self.years:
                raise ValueError(
                    f"equity shock year ({shock.year}) exceeds years ({self.years})"
                )
        return self


# ---------------------------------------------------------------------------
# Application Settings (Environment Variables)
# ---------------------------------------------------------------------------

class AppSettings(BaseSettings):
    """
    Global application settings loaded from environment variables.

    Supports .env files for local development. Environment variables
    are prefixed with ENDOWSIM_ (e.g., ENDOWSIM_MAX_WORKERS=8).

    Attributes
    ----------
    log_level : str
        Logging level: "DEBUG", "INFO", "WARNING", "ERROR".
    executor : str
        "thread" for a worker pool, "none" for serial generation.
    max_workers : int, optional
        Worker count for the pool (None lets the executor decide).
    batch_size : int
        Paths evolved together per task.
    timeout_s : float, optional
        Deadline for ensemble generation; exceeded deadlines fail the request.
    raw_paths_limit : int
        Largest ensemble whose raw paths are included in responses.

    Examples
    --------
    >>> settings = AppSettings()
    >>> settings.executor
    'thread'

    # With .env file:
    # ENDOWSIM_EXECUTOR=none
    >>> settings = AppSettings(_env_file=".env")
    """

    model_config = SettingsConfigDict(
        env_prefix="ENDOWSIM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level"
    )
    executor: Literal["thread", "none"] = Field(
        default="thread",
        description="Path generation executor"
    )
    max_workers: Optional[int] = Field(
        default=None,
        ge=1,
        le=256,
        description="Worker pool size"
    )
    batch_size: int = Field(
        default=DEFAULT_BATCH_SIZE,
        ge=1,
        le=MAX_N_SIMS,
        description="Paths per vectorized batch"
    )
    timeout_s: Optional[float] = Field(
        default=None,
        gt=0,
        description="Deadline for ensemble generation (seconds)"
    )
    raw_paths_limit: int = Field(
        default=RAW_PATHS_LIMIT,
        ge=0,
        le=MAX_N_SIMS,
        description="Max ensemble size that returns raw paths"
    )

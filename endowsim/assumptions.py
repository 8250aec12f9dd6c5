"""
Strict internal simulation model for EndowSim.

Purpose
-------
Converts a validated `SimulationRequest` once into immutable value objects
consumed by the numeric core: ordered asset assumptions, target weights as a
fraction vector, rebalancing and stress schedules, benchmark and spending
policy. Every asset key referenced anywhere in the request is resolved to a
column index here, so the core never sees an unknown key.

Key components
--------------
- AssetAssumption: (key, mu, sigma) with override application
- PortfolioWeights: percent weights with sum check and normalization
- RebalancingPolicy: drift band and interval
- EquityShock / CpiShift / StressScenario: scheduled stress events
- BenchmarkSpec: resolved benchmark definition
- SimulationSpec: everything a run needs, built by `build_simulation_spec`
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Tuple
import math

import numpy as np

from .config import (
    AssetClassBenchmarkConfig,
    AssetOverrideConfig,
    BlendedBenchmarkConfig,
    CpiPlusBenchmarkConfig,
    FixedBenchmarkConfig,
    SimulationRequest,
)
from .constants import EQUITY_ASSET, WEIGHT_SUM_TOLERANCE
from .exceptions import (
    ConfigurationError,
    ConfigurationMismatch,
    InvalidWeights,
    ValidationError,
)
from .spending import SpendingPolicy, policy_from_config

__all__ = [
    "AssetAssumption",
    "PortfolioWeights",
    "RebalancingPolicy",
    "EquityShock",
    "CpiShift",
    "StressScenario",
    "BenchmarkSpec",
    "SimulationSpec",
    "build_simulation_spec",
]


# ---------------------------------------------------------------------------
# Assets and weights
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AssetAssumption:
    """
    Expected annual return and volatility of one asset class (fractions).

    Examples
    --------
    >>> base = AssetAssumption("publicEquity", mu=0.08, sigma=0.15)
    >>> base.with_override(AssetOverrideConfig(mean_pct=6.0)).mu
    0.06
    """

    key: str
    mu: float
    sigma: float

    def __post_init__(self):
        if not (math.isfinite(self.mu) and math.isfinite(self.sigma)):
            raise ValidationError(f"{self.key}: mu and sigma must be finite")
        if self.sigma < 0:
            raise ValidationError(
                f"{self.key}: sigma must be non-negative (got {self.sigma})"
            )

    def with_override(self, override: AssetOverrideConfig) -> AssetAssumption:
        """Apply a percent override in replace or add mode."""
        mu, sigma = self.mu, self.sigma
        if override.mode == "replace":
            if override.mean_pct is not None:
                mu = override.mean_pct / 100.0
            if override.sd_pct is not None:
                sigma = override.sd_pct / 100.0
        else:
            if override.mean_pct is not None:
                mu = mu + override.mean_pct / 100.0
            if override.sd_pct is not None:
                sigma = sigma + override.sd_pct / 100.0
        return AssetAssumption(self.key, mu, sigma)


@dataclass(frozen=True)
class PortfolioWeights:
    """
    Target allocation in percent, keyed by asset class.

    Parameters
    ----------
    weights : Mapping[str, float]
        Percent allocation per asset class; values must sum to 100.

    Examples
    --------
    >>> w = PortfolioWeights({"a": 60.0, "b": 40.0})
    >>> w.validate(["a", "b"])
    >>> PortfolioWeights({"a": 1.0, "b": 2.0}).normalized().weights
    {'a': 33.0, 'b': 67.0}
    """

    weights: Mapping[str, float]

    @property
    def total(self) -> float:
        return float(sum(self.weights.values()))

    def validate(self, asset_keys) -> None:
        """
        Check weights against the asset-class ordering.

        Raises
        ------
        ConfigurationMismatch
            If a weight names an asset class without an assumption.
        InvalidWeights
            If an asset class has no weight, a weight is negative or
            non-finite, or the weights do not sum to 100.
        """
        keys = list(asset_keys)
        unknown = [k for k in self.weights if k not in keys]
        if unknown:
            raise ConfigurationMismatch(
                f"portfolioWeights has keys not in assetAssumptions: {sorted(unknown)}"
            )
        missing = [k for k in keys if k not in self.weights]
        if missing:
            raise InvalidWeights(f"portfolioWeights is missing asset classes: {missing}")
        bad = [k for k, v in self.weights.items() if not math.isfinite(v) or v < 0]
        if bad:
            raise InvalidWeights(f"portfolio weights must be finite and non-negative: {bad}")
        if abs(self.total - 100.0) > WEIGHT_SUM_TOLERANCE:
            raise InvalidWeights(
                f"portfolio weights sum to {self.total:.2f}, expected 100"
            )

    def normalized(self) -> PortfolioWeights:
        """
        Rescale proportionally to sum to 100, rounding each value.

        Maintenance helper for configuration editing; the engine never
        normalizes silently.
        """
        total = self.total
        if total <= 0:
            raise InvalidWeights("cannot normalize weights with a non-positive total")
        return PortfolioWeights({
            k: float(math.floor(v / total * 100.0 + 0.5))
            for k, v in self.weights.items()
        })

    def as_fractions(self, asset_keys) -> np.ndarray:
        """Weights as fractions ordered like `asset_keys`."""
        return np.array([self.weights[k] / 100.0 for k in asset_keys], dtype=float)


# ---------------------------------------------------------------------------
# Rebalancing and stress
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RebalancingPolicy:
    """
    Rebalance to target every `interval` years when drift exceeds `band`.

    `interval=None` disables rebalancing; `band=0` rebalances at every
    rebalancing point.
    """

    band: float = 0.0
    interval: Optional[int] = 1

    def is_rebalance_year(self, year: int) -> bool:
        return self.interval is not None and year % self.interval == 0


@dataclass(frozen=True)
class EquityShock:
    """One-time return shock on column `asset_index` in `year` (1-indexed)."""

    asset_key: str
    asset_index: int
    pct: float
    year: int
    mode: str = "multiplicative"

    def apply(self, returns: np.ndarray) -> None:
        """
        Shock column `asset_index` of a (B, M) return block in place.

        Multiplicative shocks scale the growth factor, floored at zero, so a
        negative shock never raises a return below -100% (and a positive
        shock never lowers one).
        """
        col = returns[:, self.asset_index].copy()
        if self.mode == "multiplicative":
            shocked = (1.0 + np.maximum(col, -1.0)) * (1.0 + self.pct / 100.0) - 1.0
            if self.pct < 0:
                shocked = np.minimum(col, shocked)
            else:
                shocked = np.maximum(col, shocked)
            returns[:, self.asset_index] = shocked
        else:
            returns[:, self.asset_index] = col + self.pct / 100.0


@dataclass(frozen=True)
class CpiShift:
    """Shift of the CPI mean by `delta_pct` points over years [from_year, to_year]."""

    delta_pct: float
    from_year: int
    to_year: int

    def active(self, year: int) -> bool:
        return self.from_year <= year <= self.to_year


@dataclass(frozen=True)
class StressScenario:
    """Ordered equity shocks and CPI shifts."""

    equity_shocks: Tuple[EquityShock, ...] = ()
    cpi_shifts: Tuple[CpiShift, ...] = ()

    def shocks_for_year(self, year: int) -> Tuple[EquityShock, ...]:
        return tuple(s for s in self.equity_shocks if s.year == year)

    def cpi_mean_shifts(self, years: int) -> np.ndarray:
        """
        Additive CPI mean shift per simulated year.

        Returns
        -------
        np.ndarray, shape (years,)
            Entry t-1 is the summed shift (fraction) active in year t.
        """
        out = np.zeros(years, dtype=float)
        for shift in self.cpi_shifts:
            for t in range(1, years + 1):
                if shift.active(t):
                    out[t - 1] += shift.delta_pct / 100.0
        return out

    @property
    def is_empty(self) -> bool:
        return not self.equity_shocks and not self.cpi_shifts


# ---------------------------------------------------------------------------
# Benchmark
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BenchmarkSpec:
    """
    Resolved benchmark definition.

    kind : {"cpi_plus", "fixed", "asset_class", "blended"}
    rate : float
        Spread over CPI (cpi_plus) or constant return (fixed).
    weights : np.ndarray, shape (M,)
        Fraction weights over asset columns (asset_class, blended).
    """

    kind: str
    rate: float = 0.0
    weights: Optional[np.ndarray] = None
    label: str = ""

    def annual_return(self, asset_returns: np.ndarray, cpi: np.ndarray) -> np.ndarray:
        """Benchmark return for a (B, M) block of shocked asset returns."""
        if self.kind == "cpi_plus":
            return cpi + self.rate
        if self.kind == "fixed":
            return np.full(cpi.shape, self.rate, dtype=float)
        acc = np.zeros(asset_returns.shape[0], dtype=float)
        for j in range(asset_returns.shape[1]):
            if self.weights[j] != 0.0:
                acc = acc + self.weights[j] * asset_returns[:, j]
        return acc


def _build_benchmark(config, asset_keys: Tuple[str, ...]) -> Optional[BenchmarkSpec]:
    if config is None:
        return None
    index = {k: i for i, k in enumerate(asset_keys)}
    if isinstance(config, CpiPlusBenchmarkConfig):
        return BenchmarkSpec("cpi_plus", rate=config.spread,
                             label=config.label or f"CPI + {config.spread:.1%}")
    if isinstance(config, FixedBenchmarkConfig):
        return BenchmarkSpec("fixed", rate=config.rate,
                             label=config.label or f"Fixed {config.rate:.1%}")
    weights = np.zeros(len(asset_keys), dtype=float)
    if isinstance(config, AssetClassBenchmarkConfig):
        if config.asset_key not in index:
            raise ConfigurationError(f"benchmark asset class not recognised: {config.asset_key}")
        weights[index[config.asset_key]] = 1.0
        return BenchmarkSpec("asset_class", weights=weights,
                             label=config.label or config.asset_key)
    if isinstance(config, BlendedBenchmarkConfig):
        unknown = [k for k in config.weights if k not in index]
        if unknown:
            raise ConfigurationError(f"blended benchmark asset classes not recognised: {unknown}")
        total = sum(config.weights.values())
        for k, v in config.weights.items():
            weights[index[k]] = v / total
        return BenchmarkSpec("blended", weights=weights,
                             label=config.label or "Blended benchmark")
    raise ConfigurationError(f"unsupported benchmark: {config!r}")


# ---------------------------------------------------------------------------
# Simulation spec
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SimulationSpec:
    """
    Immutable run configuration shared read-only by all workers.

    Attributes
    ----------
    asset_keys : Tuple[str, ...]
        Asset-class ordering (matches correlation rows/columns).
    mu, sigma : np.ndarray, shape (M,)
        Per-asset return parameters after overrides.
    target_weights : np.ndarray, shape (M,)
        Target weights as fractions summing to 1.
    grant_targets : np.ndarray, shape (years,)
        Success threshold per year; NaN means "value > 0".
    cpi_shifts : np.ndarray, shape (years,)
        Additive CPI mean shift per year.
    investment_expense_rate : float
        Fraction of the value entering each year paid as investment expense.
    risk_free_rate : float
        Fraction (request supplies percent).
    """

    asset_keys: Tuple[str, ...]
    mu: np.ndarray
    sigma: np.ndarray
    target_weights: np.ndarray
    correlation: np.ndarray
    years: int
    start_year: int
    initial_value: float
    initial_spending: float
    spending_rate: float
    spending_growth: float
    spending_policy: SpendingPolicy
    rebalancing: RebalancingPolicy
    stress: StressScenario
    benchmark: Optional[BenchmarkSpec]
    grant_targets: np.ndarray
    cpi_shifts: np.ndarray
    initial_operating_expense: float = 0.0
    initial_grant: float = 0.0
    annual_contribution: float = 0.0
    investment_expense_rate: float = 0.0
    risk_free_rate: float = 0.02
    num_simulations: int = 10_000
    seed: Optional[int] = None
    assumptions: Tuple[AssetAssumption, ...] = field(default=())

    @property
    def n_assets(self) -> int:
        return len(self.asset_keys)

    @property
    def year_labels(self) -> list:
        """Calendar year for each of the years + 1 columns."""
        return [self.start_year + t for t in range(self.years + 1)]


def _resolve_assumptions(request: SimulationRequest) -> Tuple[AssetAssumption, ...]:
    keys = list(request.asset_assumptions)
    unknown = [k for k in request.asset_overrides if k not in keys]
    if unknown:
        raise ConfigurationError(f"assetOverrides reference unknown asset classes: {unknown}")
    out = []
    for key, cfg in request.asset_assumptions.items():
        assumption = AssetAssumption(key, cfg.mu, cfg.sigma)
        override = request.asset_overrides.get(key)
        if override is not None:
            assumption = assumption.with_override(override)
        out.append(assumption)
    return tuple(out)


def _resolve_stress(request: SimulationRequest, asset_keys: Tuple[str, ...]) -> StressScenario:
    index = {k: i for i, k in enumerate(asset_keys)}
    shocks = []
    if request.equity_shock is not None and request.equity_shock != 0:
        if EQUITY_ASSET not in index:
            raise ConfigurationError(
                f"equityShock requires asset class '{EQUITY_ASSET}' in assetAssumptions"
            )
        shocks.append(EquityShock(
            EQUITY_ASSET, index[EQUITY_ASSET], request.equity_shock * 100.0,
            request.equity_shock_year,
        ))
    for cfg in request.stress.equity_shocks:
        if cfg.asset_key not in index:
            raise ConfigurationError(f"equity shock asset class not recognised: {cfg.asset_key}")
        shocks.append(EquityShock(cfg.asset_key, index[cfg.asset_key], cfg.pct, cfg.year, cfg.mode))

    shifts = []
    if request.cpi_shift is not None and request.cpi_shift != 0:
        shifts.append(CpiShift(request.cpi_shift * 100.0, 1, request.years))
    shifts.extend(
        CpiShift(cfg.delta_pct, cfg.from_year, cfg.to_year) for cfg in request.stress.cpi_shifts
    )
    return StressScenario(tuple(shocks), tuple(shifts))


def build_simulation_spec(request: SimulationRequest) -> SimulationSpec:
    """
    Convert a validated request into the strict internal model.

    Parameters
    ----------
    request : SimulationRequest

    Returns
    -------
    SimulationSpec

    Raises
    ------
    ConfigurationMismatch
        Weight keys disagree with assumption keys.
    InvalidWeights
        Missing weights or a sum other than 100.
    ConfigurationError
        Overrides, shocks or benchmark name an unknown asset class.

    Notes
    -----
    The correlation matrix is carried through unchanged; its shape and
    PSD checks belong to `CorrelationFactorizer`.
    """
    assumptions = _resolve_assumptions(request)
    asset_keys = tuple(a.key for a in assumptions)

    weights = PortfolioWeights(dict(request.portfolio_weights))
    weights.validate(asset_keys)

    rebal = request.rebalancing
    if rebal.frequency == "never":
        interval = None
    elif rebal.frequency == "annual":
        interval = 1
    else:
        interval = int(rebal.frequency)

    stress = _resolve_stress(request, asset_keys)

    targets = np.full(request.years, np.nan, dtype=float)
    n_targets = min(len(request.grant_targets), request.years)
    targets[:n_targets] = request.grant_targets[:n_targets]

    initial_spending = (
        request.initial_spending
        if request.initial_spending is not None
        else request.spending_rate * request.initial_value
    )

    return SimulationSpec(
        asset_keys=asset_keys,
        mu=np.array([a.mu for a in assumptions], dtype=float),
        sigma=np.array([a.sigma for a in assumptions], dtype=float),
        target_weights=weights.as_fractions(asset_keys),
        correlation=np.asarray(request.correlation_matrix, dtype=float),
        years=request.years,
        start_year=request.start_year,
        initial_value=request.initial_value,
        initial_spending=float(initial_spending),
        spending_rate=request.spending_rate,
        spending_growth=request.spending_growth,
        spending_policy=policy_from_config(request.spending_policy, request.spending_rate),
        rebalancing=RebalancingPolicy(band=rebal.band_pct / 100.0, interval=interval),
        stress=stress,
        benchmark=_build_benchmark(request.benchmark, asset_keys),
        grant_targets=targets,
        cpi_shifts=stress.cpi_mean_shifts(request.years),
        initial_operating_expense=request.initial_operating_expense,
        initial_grant=request.initial_grant,
        annual_contribution=request.annual_contribution,
        investment_expense_rate=request.investment_expense_rate / 100.0,
        risk_free_rate=request.risk_free_rate / 100.0,
        num_simulations=request.num_simulations,
        seed=request.seed,
        assumptions=assumptions,
    )

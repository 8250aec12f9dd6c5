"""
Global constants for EndowSim.

Purpose
-------
Centralizes default values and magic numbers used throughout the EndowSim
codebase: the canonical asset-class ordering, default capital-market
assumptions, CPI model parameters and request bounds.

Usage
-----
>>> from endowsim.constants import ASSET_CLASSES, DEFAULT_N_SIMS
>>> len(ASSET_CLASSES)
7

Categories
----------
- Asset classes: canonical ordering and default assumptions
- Inflation: CPI mean, volatility and floor
- Simulation: path counts, raw-path limit, batching
- Statistics: percentile levels, CVaR tail sizes, tolerances
- Plotting: figure sizes, colors, transparency values
"""

from typing import Dict, Tuple

__all__ = [
    # Asset classes
    "ASSET_CLASSES",
    "ASSET_LABELS",
    "DEFAULT_ASSUMPTIONS",
    "DEFAULT_CORRELATION_MATRIX",
    "EQUITY_ASSET",
    # Inflation
    "CPI_MEAN",
    "CPI_STD",
    "CPI_FLOOR",
    # Simulation
    "DEFAULT_N_SIMS",
    "MIN_N_SIMS",
    "MAX_N_SIMS",
    "RAW_PATHS_LIMIT",
    "DEFAULT_BATCH_SIZE",
    "DEFAULT_RISK_FREE_RATE_PCT",
    # Statistics
    "PERCENTILE_LEVELS",
    "CVAR_95_ALPHA",
    "CVAR_99_ALPHA",
    "TAIL_LEVELS",
    "SUSTAINABILITY_FRACTION",
    "SAFE_SPENDING_QUANTILE",
    "WEIGHT_SUM_TOLERANCE",
    "CORRELATION_TOLERANCE",
    # Plotting
    "DEFAULT_FIGSIZE",
    "DEFAULT_ALPHA_BANDS",
    "DEFAULT_LINEWIDTH_THICK",
]


# =============================================================================
# Asset Classes
# =============================================================================

ASSET_CLASSES: Tuple[str, ...] = (
    "publicEquity",
    "privateEquity",
    "publicFixedIncome",
    "privateCredit",
    "realAssets",
    "diversifying",
    "cashShortTerm",
)
"""Canonical asset-class ordering used by the default correlation matrix."""

ASSET_LABELS: Dict[str, str] = {
    "publicEquity": "Public Equity",
    "privateEquity": "Private Equity",
    "publicFixedIncome": "Public Fixed Income",
    "privateCredit": "Private Credit",
    "realAssets": "Real Assets",
    "diversifying": "Diversifying Strategies",
    "cashShortTerm": "Cash/Short-Term",
}

DEFAULT_ASSUMPTIONS: Dict[str, Dict[str, float]] = {
    "publicEquity": {"mu": 0.08, "sigma": 0.15},
    "privateEquity": {"mu": 0.12, "sigma": 0.22},
    "publicFixedIncome": {"mu": 0.03, "sigma": 0.04},
    "privateCredit": {"mu": 0.07, "sigma": 0.10},
    "realAssets": {"mu": 0.05, "sigma": 0.09},
    "diversifying": {"mu": 0.05, "sigma": 0.08},
    "cashShortTerm": {"mu": 0.015, "sigma": 0.005},
}
"""Default annual expected return / volatility per asset class (fractions)."""

DEFAULT_CORRELATION_MATRIX: Tuple[Tuple[float, ...], ...] = (
    (1.00, 0.75, 0.20, 0.25, 0.30, 0.25, 0.05),
    (0.75, 1.00, 0.15, 0.40, 0.35, 0.20, 0.05),
    (0.20, 0.15, 1.00, 0.30, 0.10, 0.10, 0.05),
    (0.25, 0.40, 0.30, 1.00, 0.15, 0.10, 0.05),
    (0.30, 0.35, 0.10, 0.15, 1.00, 0.20, 0.05),
    (0.25, 0.20, 0.10, 0.10, 0.20, 1.00, 0.05),
    (0.05, 0.05, 0.05, 0.05, 0.05, 0.05, 1.00),
)
"""Default 7x7 correlation matrix, ordered as ASSET_CLASSES."""

EQUITY_ASSET: str = "publicEquity"
"""Asset hit by the request-level `equityShock` convenience field."""


# =============================================================================
# Inflation
# =============================================================================

CPI_MEAN: float = 0.025
"""Mean annual CPI rate."""

CPI_STD: float = 0.005
"""Standard deviation of the annual CPI rate."""

CPI_FLOOR: float = -0.02
"""Lower bound applied to each sampled annual CPI rate."""


# =============================================================================
# Simulation Defaults
# =============================================================================

DEFAULT_N_SIMS: int = 10_000
"""Default number of Monte Carlo paths per request."""

MIN_N_SIMS: int = 100
MAX_N_SIMS: int = 10_000

RAW_PATHS_LIMIT: int = 500
"""Raw value paths are returned only when the ensemble is at most this size."""

DEFAULT_BATCH_SIZE: int = 250
"""Paths evolved together in one vectorized batch."""

DEFAULT_RISK_FREE_RATE_PCT: float = 2.0
"""Default risk-free rate, in percent, for Sharpe/Sortino ratios."""


# =============================================================================
# Statistics
# =============================================================================

PERCENTILE_LEVELS: Tuple[float, ...] = (0.10, 0.25, 0.50, 0.75, 0.90)
"""Quantiles reported for final values, yearly bands and worst cuts."""

CVAR_95_ALPHA: float = 0.05
CVAR_99_ALPHA: float = 0.01

TAIL_LEVELS: Tuple[float, ...] = (0.01, 0.05, 0.10)
"""Nearest-rank levels of the worst-final-value tail report."""

SUSTAINABILITY_FRACTION: float = 0.5
"""Share of the initial value below which a path counts as depleted."""

SAFE_SPENDING_QUANTILE: float = 0.20
"""Quantile of per-path minimum spending reported as 80%-safe spending."""

WEIGHT_SUM_TOLERANCE: float = 0.01
"""Allowed deviation (percentage points) of the weight sum from 100."""

CORRELATION_TOLERANCE: float = 1e-8
"""Tolerance for symmetry, unit diagonal and Cholesky pivots."""


# =============================================================================
# Plotting Defaults
# =============================================================================

DEFAULT_FIGSIZE: Tuple[int, int] = (14, 8)
DEFAULT_ALPHA_BANDS: float = 0.2
DEFAULT_LINEWIDTH_THICK: float = 2.0

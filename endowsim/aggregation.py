"""
Ensemble statistics for EndowSim.

Purpose
-------
Reduces a finished ensemble of paths to summary statistics, per-year success
probabilities, percentile bands and risk metrics. Every percentile in the
package uses the nearest-rank definition
    sorted[clamp(floor(n*q), 0, n-1)]
so reported figures are always observed values.

Metrics
-------
- Final values: median, mean, std, min, max, p10/p25/p75/p90
- Success by year t: value_t >= grant target_t when a target is supplied,
  else value_t > 0; overall success is the terminal-year figure
- Probability of loss: 1 - success rate
- Annualized (geometric) return per path; median across paths
- Annualized volatility: population std of per-path annualized returns
- Sharpe: (median annualized return - rf) / volatility
- Sortino: (median annualized return - rf) / downside deviation of all
  annual returns below rf
- Median of per-path maximum drawdown
- Drawdown analysis over all paths: worst drawdown and the year it
  occurs, mean depth of below-peak years, mean recovery time
- Calmar: median annualized return / worst drawdown
- CVaR95 / CVaR99: mean of the worst max(1, floor(alpha n)) final values
- Principal loss probability: final < initial
- Tail: nearest-rank 1%, 5% and 10% final values
- Sustainability horizon: mean first year below half the initial value
  among paths that fall below it (years + 1 when none do)
- Safe spending (80%): nearest-rank p20 of per-path minimum spending,
  and that amount as a percent of the initial value
- Inflation preservation: final / CPI index >= initial
- Probability of beating the benchmark (when configured)

Ratios with a zero denominator are reported as 0.0.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .constants import (
    CVAR_95_ALPHA,
    CVAR_99_ALPHA,
    PERCENTILE_LEVELS,
    SAFE_SPENDING_QUANTILE,
    SUSTAINABILITY_FRACTION,
    TAIL_LEVELS,
)
from .utils import (
    annualized_returns,
    conditional_var,
    max_drawdowns,
    nearest_rank_index,
    nearest_rank_percentile,
    year_index,
)

if TYPE_CHECKING:
    from .simulation import Ensemble

__all__ = [
    "DrawdownAnalysis",
    "RiskMetrics",
    "EnsembleStatistics",
    "AggregationEngine",
    "success_by_year",
    "percentile_bands",
    "drawdown_analysis",
    "sustainability_horizon",
    "safe_spending",
]


def _band_label(q: float) -> str:
    return f"p{int(round(q * 100))}"


# ---------------------------------------------------------------------------
# Standalone reducers
# ---------------------------------------------------------------------------

def success_by_year(values: np.ndarray, grant_targets: Optional[np.ndarray] = None) -> np.ndarray:
    """
    Fraction of paths meeting the success test in each year 1..N.

    Parameters
    ----------
    values : np.ndarray, shape (n, N + 1)
    grant_targets : np.ndarray, shape (N,), optional
        NaN (or missing) entries fall back to "value > 0".

    Returns
    -------
    np.ndarray, shape (N,)
        Each entry in [0, 1].
    """
    v = np.asarray(values, dtype=float)[:, 1:]
    if v.shape[0] == 0:
        return np.zeros(v.shape[1], dtype=float)
    if grant_targets is None:
        grant_targets = np.full(v.shape[1], np.nan)
    targets = np.asarray(grant_targets, dtype=float)
    has_target = ~np.isnan(targets)
    hit = np.where(has_target[None, :], v >= np.nan_to_num(targets)[None, :], v > 0)
    return hit.mean(axis=0)


def percentile_bands(
    values: np.ndarray,
    index: Optional[pd.Index] = None,
    levels: Sequence[float] = PERCENTILE_LEVELS,
) -> pd.DataFrame:
    """
    Nearest-rank percentile of each year's values across paths.

    Returns
    -------
    pd.DataFrame
        One row per year (indexed by `index`, default 0..N), one column per
        level labelled "p10", "p25", ...

    Examples
    --------
    >>> bands = percentile_bands(ensemble.values, year_index(2025, 20))
    >>> bands.loc[2035, "p50"]
    """
    v = np.sort(np.asarray(values, dtype=float), axis=0)
    n = v.shape[0]
    data = {
        _band_label(q): (v[nearest_rank_index(n, q)] if n else np.full(v.shape[1], np.nan))
        for q in levels
    }
    if index is None:
        index = pd.RangeIndex(v.shape[1], name="year")
    return pd.DataFrame(data, index=index)


@dataclass(frozen=True)
class DrawdownAnalysis:
    """Drawdowns pooled over all paths, as positive fractions of the peak."""

    max_drawdown: float
    max_drawdown_year: int
    avg_drawdown: float
    recovery_time: float


def drawdown_analysis(values: np.ndarray) -> DrawdownAnalysis:
    """
    Pooled drawdown statistics of an ensemble.

    The running peak of each path starts at its year-0 value. A year is
    below peak when its value is strictly lower than the running peak; a
    recovery is counted when a value sets a new peak after such a spell and
    lasts from the first below-peak year to the new peak.

    Parameters
    ----------
    values : np.ndarray, shape (n, N + 1)

    Returns
    -------
    DrawdownAnalysis
        `max_drawdown_year` is the year of the first (path-major) occurrence
        of the worst drawdown, 0 when no path falls below its peak.
        `avg_drawdown` averages the depth over all below-peak years and
        `recovery_time` the completed recoveries (0.0 when there are none).
    """
    v = np.atleast_2d(np.asarray(values, dtype=float))
    n, T = v.shape
    if n == 0 or T < 2:
        return DrawdownAnalysis(0.0, 0, 0.0, 0.0)

    peak = v[:, 0].copy()
    start = np.full(n, -1, dtype=int)
    below = np.zeros((n, T), dtype=bool)
    depth = np.zeros((n, T), dtype=float)
    recoveries = []
    for t in range(1, T):
        x = v[:, t]
        up = x > peak
        recovered = up & (start >= 0)
        recoveries.append(t - start[recovered])
        start[up] = -1
        peak = np.where(up, x, peak)

        down = (x < peak) & (peak > 0)
        start[down & (start < 0)] = t
        below[:, t] = down
        with np.errstate(divide="ignore", invalid="ignore"):
            depth[:, t] = np.where(down, (peak - x) / peak, 0.0)

    flat = depth.ravel()
    k = int(np.argmax(flat))
    worst = float(flat[k])
    times = np.concatenate(recoveries)
    return DrawdownAnalysis(
        max_drawdown=worst,
        max_drawdown_year=k % T if worst > 0 else 0,
        avg_drawdown=float(depth[below].mean()) if below.any() else 0.0,
        recovery_time=float(times.mean()) if times.size else 0.0,
    )


def sustainability_horizon(values: np.ndarray, threshold: float) -> float:
    """
    Mean first year (1..N) a path's value drops below `threshold`.

    Only paths that drop below it are averaged; when none do the horizon is
    reported as N + 1.
    """
    v = np.atleast_2d(np.asarray(values, dtype=float))[:, 1:]
    below = v < threshold
    hit = below.any(axis=1)
    if not hit.any():
        return float(v.shape[1] + 1)
    first = below.argmax(axis=1) + 1
    return float(first[hit].mean())


def safe_spending(
    spending: np.ndarray,
    initial_value: float,
    q: float = SAFE_SPENDING_QUANTILE,
) -> Tuple[Optional[float], Optional[float]]:
    """
    Spending sustained by a (1 - q) share of paths.

    The nearest-rank `q` percentile of each path's minimum spending over
    years 1..N, with that amount as a percent of `initial_value`. Years
    after exhaustion (NaN) are skipped.

    Returns
    -------
    (amount, rate_pct)
        Both None when no path has a finite spending year. `rate_pct` is 0.0
        for a negative amount.

    Examples
    --------
    >>> safe_spending(ensemble.spending, 100e6)
    (4350000.0, 4.35)
    """
    s = np.atleast_2d(np.asarray(spending, dtype=float))[:, 1:]
    finite = np.isfinite(s)
    has = finite.any(axis=1)
    if not has.any() or initial_value <= 0:
        return None, None
    minima = np.where(finite, s, np.inf).min(axis=1)[has]
    amount = nearest_rank_percentile(minima, q)
    rate_pct = amount / initial_value * 100.0 if amount >= 0 else 0.0
    return amount, float(rate_pct)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RiskMetrics:
    """
    Risk and risk-adjusted performance over an ensemble.

    All rates are fractions; drawdowns are positive fractions of the peak.

    Attributes
    ----------
    calmar : float
        Median annualized return over the worst pooled drawdown.
    tail : Dict[str, float]
        Nearest-rank worst final values keyed "worst1Pct", "worst5Pct",
        "worst10Pct".
    sustainability_horizon : float
        Mean first year below half the initial value (years + 1 if never).
    safe_spending_80, safe_spending_80_rate_pct : float or None
        Spending kept by 80% of paths, and as a percent of initial value.
    """

    median_annualized_return: float
    annualized_volatility: float
    sharpe: float
    sortino: float
    calmar: float
    median_max_drawdown: float
    drawdown: DrawdownAnalysis
    cvar95: float
    cvar99: float
    tail: Dict[str, float]
    principal_loss_probability: float
    sustainability_horizon: float
    inflation_preservation_rate: float
    risk_free_rate: float
    safe_spending_80: Optional[float] = None
    safe_spending_80_rate_pct: Optional[float] = None
    prob_beat_benchmark: Optional[float] = None


@dataclass(frozen=True)
class EnsembleStatistics:
    """
    Summary statistics of one ensemble.

    Attributes
    ----------
    final_percentiles : Dict[str, float]
        Nearest-rank final-value percentiles keyed "p10".."p90".
    success_by_year : np.ndarray, shape (N,)
        Success probability for years 1..N.
    success_rate : float
        Terminal-year success probability.
    bands : pd.DataFrame
        Per-year percentile bands indexed by calendar year.
    """

    total_paths: int
    median_final_value: float
    mean_final_value: float
    std_final_value: float
    min_final_value: float
    max_final_value: float
    final_percentiles: Dict[str, float]
    success_by_year: np.ndarray
    success_rate: float
    probability_of_loss: float
    exhausted_paths: int
    bands: pd.DataFrame
    risk: RiskMetrics


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class AggregationEngine:
    """
    Single-pass reducer over a finished ensemble.

    Parameters
    ----------
    risk_free_rate : float, default 0.02
        Annual risk-free rate (fraction) for Sharpe and Sortino.
    levels : Sequence[float]
        Percentile levels for final values and bands.

    Examples
    --------
    >>> stats = AggregationEngine(risk_free_rate=0.02).summarize(ensemble)
    >>> stats.success_rate
    0.87
    >>> stats.bands.head()
    """

    def __init__(self, risk_free_rate: float = 0.02, levels: Sequence[float] = PERCENTILE_LEVELS):
        self.risk_free_rate = float(risk_free_rate)
        self.levels = tuple(levels)

    def summarize(self, ensemble: Ensemble) -> EnsembleStatistics:
        """Compute all statistics for `ensemble`."""
        values = ensemble.values
        finals = values[:, -1]
        n = finals.shape[0]
        spec = ensemble.spec

        success = success_by_year(values, spec.grant_targets)
        success_rate = float(success[-1]) if success.size else 0.0

        return EnsembleStatistics(
            total_paths=n,
            median_final_value=nearest_rank_percentile(finals, 0.5),
            mean_final_value=float(finals.mean()) if n else float("nan"),
            std_final_value=float(finals.std()) if n else float("nan"),
            min_final_value=float(finals.min()) if n else float("nan"),
            max_final_value=float(finals.max()) if n else float("nan"),
            final_percentiles={
                _band_label(q): nearest_rank_percentile(finals, q) for q in self.levels
            },
            success_by_year=success,
            success_rate=success_rate,
            probability_of_loss=1.0 - success_rate,
            exhausted_paths=int(np.count_nonzero(ensemble.exhaustion_year >= 0)),
            bands=percentile_bands(values, year_index(spec.start_year, spec.years), self.levels),
            risk=self.risk_metrics(ensemble),
        )

    def risk_metrics(self, ensemble: Ensemble) -> RiskMetrics:
        """Risk and risk-adjusted metrics of `ensemble`."""
        rf = self.risk_free_rate
        values = ensemble.values
        finals = values[:, -1]
        initial = ensemble.spec.initial_value

        ann = annualized_returns(ensemble.portfolio_returns)
        ann = ann[np.isfinite(ann)]
        median_ann = nearest_rank_percentile(ann, 0.5) if ann.size else 0.0
        vol = float(ann.std()) if ann.size else 0.0
        sharpe = (median_ann - rf) / vol if vol > 0 else 0.0

        pooled = ensemble.portfolio_returns[np.isfinite(ensemble.portfolio_returns)]
        downside = pooled[pooled < rf] - rf
        downside_dev = float(np.sqrt(np.mean(downside ** 2))) if downside.size else 0.0
        sortino = (median_ann - rf) / downside_dev if downside_dev > 0 else 0.0

        drawdown = drawdown_analysis(values)
        calmar = median_ann / drawdown.max_drawdown if drawdown.max_drawdown > 0 else 0.0

        real_finals = finals / ensemble.cpi_index[:, -1]

        prob_beat = None
        if ensemble.benchmark is not None and finals.size:
            prob_beat = float(np.mean(finals > ensemble.benchmark[:, -1]))

        safe_amount, safe_rate = safe_spending(ensemble.spending, initial)

        return RiskMetrics(
            median_annualized_return=float(median_ann),
            annualized_volatility=vol,
            sharpe=float(sharpe),
            sortino=float(sortino),
            calmar=float(calmar),
            median_max_drawdown=nearest_rank_percentile(max_drawdowns(values), 0.5),
            drawdown=drawdown,
            cvar95=conditional_var(finals, CVAR_95_ALPHA),
            cvar99=conditional_var(finals, CVAR_99_ALPHA),
            tail={
                f"worst{int(round(q * 100))}Pct": nearest_rank_percentile(finals, q)
                for q in TAIL_LEVELS
            },
            principal_loss_probability=float(np.mean(finals < initial)) if finals.size else 0.0,
            sustainability_horizon=sustainability_horizon(values, SUSTAINABILITY_FRACTION * initial),
            inflation_preservation_rate=(
                float(np.mean(real_finals >= initial)) if finals.size else 0.0
            ),
            risk_free_rate=rf,
            safe_spending_80=safe_amount,
            safe_spending_80_rate_pct=safe_rate,
            prob_beat_benchmark=prob_beat,
        )

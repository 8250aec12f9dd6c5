"""General utilities for EndowSim

Contents
--------
- Percentiles (nearest-rank, used by every reducer)
- Finance helpers (drawdown, annualized return, CVaR)
- Index helpers (calendar year labels)
- Matplotlib formatters (millions_formatter, format_currency)
"""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np
import pandas as pd

__all__ = [
    # Percentiles
    "nearest_rank_index",
    "nearest_rank_percentile",
    # Finance
    "max_drawdowns",
    "annualized_returns",
    "conditional_var",
    # Index
    "year_index",
    # Matplotlib formatters
    "millions_formatter",
    "format_currency",
]

# ---------------------------------------------------------------------------
# Percentiles
# ---------------------------------------------------------------------------

def nearest_rank_index(n: int, q: float) -> int:
    """Index `clamp(floor(n*q), 0, n-1)` into a sorted sample of size n."""
    return max(0, min(n - 1, int(np.floor(n * q))))


def nearest_rank_percentile(values: Sequence[float], q: float) -> float:
    """
    Nearest-rank percentile: sorted[clamp(floor(n*q), 0, n-1)].

    Returns NaN for an empty sample. Always returns an observed value, never
    an interpolation.

    Examples
    --------
    >>> nearest_rank_percentile([-10, -5, -2, 0, 1], 0.25)
    -5.0
    """
    arr = np.sort(np.asarray(values, dtype=float).ravel())
    if arr.size == 0:
        return float("nan")
    return float(arr[nearest_rank_index(arr.size, q)])


# ---------------------------------------------------------------------------
# Finance helpers
# ---------------------------------------------------------------------------

def max_drawdowns(values: np.ndarray) -> np.ndarray:
    """Per-path maximum drawdown as a positive fraction of the running peak.

    `values` has shape (n, T+1). Non-positive running peaks contribute no
    drawdown; an exhausted path (value 0 after a positive peak) scores 1.0.
    """
    v = np.atleast_2d(np.asarray(values, dtype=float))
    if v.shape[1] == 0:
        return np.zeros(v.shape[0], dtype=float)
    peaks = np.maximum.accumulate(v, axis=1)
    with np.errstate(divide="ignore", invalid="ignore"):
        dd = np.where(peaks > 0, (peaks - v) / peaks, 0.0)
    return dd.max(axis=1)


def annualized_returns(returns: np.ndarray) -> np.ndarray:
    """Per-path geometric mean of annual returns.

    `returns` has shape (n, T); NaN entries (years after exhaustion) are
    skipped. A path whose compounded growth is non-positive scores -1.0;
    a path with no finite returns scores NaN.
    """
    r = np.atleast_2d(np.asarray(returns, dtype=float))
    finite = np.isfinite(r)
    k = finite.sum(axis=1)
    growth = np.prod(np.where(finite, 1.0 + r, 1.0), axis=1)
    out = np.full(r.shape[0], np.nan, dtype=float)
    ok = (k > 0) & (growth > 0)
    out[ok] = growth[ok] ** (1.0 / k[ok]) - 1.0
    out[(k > 0) & ~(growth > 0)] = -1.0
    return out


def conditional_var(values: Sequence[float], alpha: float) -> float:
    """Mean of the worst max(1, floor(n*alpha)) observations (NaN if empty)."""
    arr = np.sort(np.asarray(values, dtype=float))
    if arr.size == 0:
        return float("nan")
    k = max(1, int(np.floor(arr.size * alpha)))
    return float(arr[:k].mean())


# ---------------------------------------------------------------------------
# Index helpers
# ---------------------------------------------------------------------------

def year_index(start_year: int, years: int, name: Optional[str] = "year") -> pd.Index:
    """Calendar-year index for years 0..`years`."""
    return pd.Index(np.arange(start_year, start_year + years + 1), name=name)


# ---------------------------------------------------------------------------
# Matplotlib formatters
# ---------------------------------------------------------------------------

def millions_formatter(x, pos):
    """
    Format axis values as millions for matplotlib FuncFormatter.

    Converts large monetary values to compact millions notation:
    - 250_000_000 → "250M"
    - 12_500_000 → "12.5M"
    - 0 → "0"

    Parameters
    ----------
    x : float
        Value to format (raw currency units).
    pos : int
        Tick position (unused, required by FuncFormatter signature).

    Returns
    -------
    str
        Formatted string with "M" suffix.

    Examples
    --------
    >>> from matplotlib.ticker import FuncFormatter
    >>> ax.yaxis.set_major_formatter(FuncFormatter(millions_formatter))
    """
    if x == 0:
        return '0'
    val = x / 1e6
    return f'{val:.0f}M' if val == int(val) else f'{val:.1f}M'


def format_currency(value, decimals=1, symbol='$', unit='M'):
    """
    Format currency values for text annotations, tables and labels.

    Parameters
    ----------
    value : float
        Monetary value in raw units.
    decimals : int, default 1
        Number of decimal places to display.
    symbol : str, default '$'
        Currency symbol prefix.
    unit : str, default 'M'
        Unit suffix (values are always scaled to millions).

    Returns
    -------
    str

    Examples
    --------
    >>> format_currency(25_000_000)
    '$25.0M'
    >>> format_currency(25_000_000, decimals=0)
    '$25M'
    """
    val = value / 1e6
    if decimals == 0:
        return f'{symbol}{val:.0f}{unit}'
    return f'{symbol}{val:.{decimals}f}{unit}'

"""
Worst year-over-year spending cut analysis.

For each path, the worst (most negative) year-over-year change of its
spending series, or of its value series when no spending series of matching
length is supplied:
    min_t (s[t+1] - s[t]) / |s[t]|
Steps from a zero or non-finite base, or to a non-finite value, are skipped.
Cuts are reported in percent rounded to 2 decimals; paths with no valid step
contribute nothing.
"""

from __future__ import annotations
from typing import List, Optional, Sequence

import numpy as np

from .types import WorstCutSummaryDict
from .utils import nearest_rank_index

__all__ = ["per_path_worst_cuts", "summarize_worst_cuts"]


def _worst_step(series: np.ndarray) -> Optional[float]:
    a, b = series[:-1], series[1:]
    ok = np.isfinite(a) & np.isfinite(b) & (a != 0)
    if not ok.any():
        return None
    return float(np.min((b[ok] - a[ok]) / np.abs(a[ok])))


def per_path_worst_cuts(
    values: Sequence[Sequence[float]],
    spending: Optional[Sequence[Optional[Sequence[float]]]] = None,
) -> List[float]:
    """
    Worst year-over-year change per path, in percent.

    Parameters
    ----------
    values : sequence of paths
        Value series per path.
    spending : sequence of paths, optional
        Spending series per path; an entry is used only when present and
        of the same length as the value series.

    Returns
    -------
    List[float]
        One entry per path that has at least one valid step.

    Examples
    --------
    >>> per_path_worst_cuts([[100, 90, 95]])
    [-10.0]
    >>> per_path_worst_cuts([[100, 90, 95]], spending=[[5, 5, 4]])
    [-20.0]
    """
    cuts: List[float] = []
    for i, raw in enumerate(values):
        series = np.asarray(raw, dtype=float).ravel()
        if spending is not None and i < len(spending) and spending[i] is not None:
            spend = np.asarray(spending[i], dtype=float).ravel()
            if spend.size == series.size:
                series = spend
        if series.size < 2:
            continue
        worst = _worst_step(series)
        if worst is not None:
            cuts.append(float(np.floor(worst * 10000.0 + 0.5) / 100.0))
    return cuts


def summarize_worst_cuts(cuts: Sequence[float]) -> WorstCutSummaryDict:
    """
    Count and nearest-rank p10..p90 of worst cuts.

    Examples
    --------
    >>> summarize_worst_cuts([])
    {'count': 0, 'p10': None, 'p25': None, 'p50': None, 'p75': None, 'p90': None}
    >>> summarize_worst_cuts([-10, -5, -2, 0, 1])["p50"]
    -2.0
    """
    if len(cuts) == 0:
        return {"count": 0, "p10": None, "p25": None, "p50": None, "p75": None, "p90": None}
    ordered = np.sort(np.asarray(cuts, dtype=float))
    n = ordered.size

    def at(q: float) -> float:
        return float(ordered[nearest_rank_index(n, q)])

    return {
        "count": int(n),
        "p10": at(0.10),
        "p25": at(0.25),
        "p50": at(0.50),
        "p75": at(0.75),
        "p90": at(0.90),
    }

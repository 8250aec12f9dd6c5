"""
Representative path selection.

Picks a single path that stands for the ensemble in charts and reports:

- `pointwise_median`: per-year median (nearest rank) of finite values
- `nearest_to_pointwise_median`: the path with the lowest mean squared
  deviation from that median over the years where both are finite
- `medoid_by_final_value`: the path minimizing the sum of squared
  distances between its final value and every other final value

Ties keep the first-encountered path. Empty input yields `None` selections
instead of raising.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from .utils import nearest_rank_index

__all__ = [
    "RepresentativePath",
    "pointwise_median",
    "nearest_to_pointwise_median",
    "medoid_by_final_value",
]


@dataclass(frozen=True)
class RepresentativePath:
    """Selected path index and series; both None when nothing qualifies."""

    index: Optional[int]
    path: Optional[np.ndarray]

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "path": None if self.path is None else [float(x) for x in self.path],
        }


def _as_rows(paths) -> list:
    return [np.asarray(p, dtype=float).ravel() for p in paths]


def pointwise_median(paths: Sequence[Sequence[float]]) -> np.ndarray:
    """
    Per-year median across paths, ignoring non-finite values.

    Paths may differ in length; the result covers the longest path, with
    NaN where no path has a finite value.

    Examples
    --------
    >>> pointwise_median([[1, 2, 3], [3, 2, 1], [2, 2, 2]])
    array([2., 2., 2.])
    """
    rows = _as_rows(paths)
    if not rows:
        return np.zeros(0, dtype=float)
    length = max(r.size for r in rows)
    out = np.full(length, np.nan, dtype=float)
    for t in range(length):
        col = np.array([r[t] for r in rows if r.size > t], dtype=float)
        col = np.sort(col[np.isfinite(col)])
        if col.size:
            out[t] = col[nearest_rank_index(col.size, 0.5)]
    return out


def nearest_to_pointwise_median(paths: Sequence[Sequence[float]]) -> RepresentativePath:
    """Path closest (mean squared deviation) to the pointwise median."""
    rows = _as_rows(paths)
    median = pointwise_median(rows)
    if median.size == 0:
        return RepresentativePath(None, None)
    best_idx, best_dist = None, np.inf
    for i, row in enumerate(rows):
        m = min(row.size, median.size)
        a, b = median[:m], row[:m]
        ok = np.isfinite(a) & np.isfinite(b)
        if not ok.any():
            continue
        dist = float(np.mean((a[ok] - b[ok]) ** 2))
        if dist < best_dist:
            best_idx, best_dist = i, dist
    if best_idx is None:
        return RepresentativePath(None, None)
    return RepresentativePath(best_idx, rows[best_idx])


def medoid_by_final_value(paths: Sequence[Sequence[float]]) -> RepresentativePath:
    """
    Path whose final value minimizes the summed squared distance to all
    other final values.

    Examples
    --------
    >>> medoid_by_final_value([[1, 2, 3], [3, 2, 1], [2, 2, 2]]).index
    2
    """
    rows = _as_rows(paths)
    if not rows:
        return RepresentativePath(None, None)
    finals = np.array([r[-1] if r.size else 0.0 for r in rows], dtype=float)
    # Σ_j (f_i - f_j)² = n f_i² - 2 f_i Σf + Σf²
    n = finals.size
    sums = n * finals ** 2 - 2.0 * finals * finals.sum() + (finals ** 2).sum()
    sums = np.where(np.isfinite(sums), sums, np.inf)
    idx = int(np.argmin(sums))
    return RepresentativePath(idx, rows[idx])

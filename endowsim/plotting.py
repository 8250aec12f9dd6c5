"""
Plotting utilities for EndowSim results.

Purpose
-------
Visualizes a `SimulationResult` without touching the numeric core. The fan
chart draws the per-year nearest-rank percentile bands with the
representative path overlaid, plus a second panel with the per-year success
probability.

Matplotlib is imported lazily so the engine stays importable on headless
servers that never plot.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

import numpy as np

from .constants import DEFAULT_ALPHA_BANDS, DEFAULT_FIGSIZE, DEFAULT_LINEWIDTH_THICK
from .utils import format_currency, millions_formatter

if TYPE_CHECKING:
    from .simulation import SimulationResult

__all__ = ["plot_fan_chart"]


def plot_fan_chart(
    result: SimulationResult,
    *,
    figsize: Optional[tuple] = None,
    title: Optional[str] = None,
    show_representative: bool = True,
    show_targets: bool = True,
    save_path: Optional[str] = None,
    return_fig_ax: bool = False,
):
    """
    Fan chart of portfolio value percentiles with success probability.

    Panel layout:
    - Left: p10-p90 and p25-p75 bands, median, representative path and
      grant targets (when supplied)
    - Right: probability of success per year

    Parameters
    ----------
    result : SimulationResult
        Finished simulation.
    figsize : tuple, optional
        Figure size (default (14, 8)).
    title : str, optional
        Figure title.
    show_representative : bool, default True
        Overlay the path nearest to the pointwise median.
    show_targets : bool, default True
        Mark grant targets on the fan chart.
    save_path : str, optional
        If given, save the figure there (dpi=150).
    return_fig_ax : bool, default False
        Return (fig, axes) instead of None.

    Returns
    -------
    tuple or None
        (fig, axes) if return_fig_ax=True.

    Examples
    --------
    >>> plot_fan_chart(result, save_path="fan.png")
    >>> fig, axes = plot_fan_chart(result, return_fig_ax=True)
    """
    import matplotlib.pyplot as plt
    from matplotlib.ticker import FuncFormatter, PercentFormatter

    stats = result.statistics
    spec = result.spec
    bands = stats.bands
    years = bands.index.to_numpy()

    figsize = figsize or DEFAULT_FIGSIZE
    title = title or (
        f"Endowment Projection: {stats.total_paths:,} paths, "
        f"{format_currency(spec.initial_value)} initial"
    )

    fig, axes = plt.subplots(1, 2, figsize=figsize, gridspec_kw={"width_ratios": [3, 1]})
    ax_fan, ax_success = axes

    # Panel 1: percentile fan
    ax_fan.fill_between(years, bands["p10"], bands["p90"], color="steelblue",
                        alpha=DEFAULT_ALPHA_BANDS, label="P10-P90")
    ax_fan.fill_between(years, bands["p25"], bands["p75"], color="steelblue",
                        alpha=DEFAULT_ALPHA_BANDS * 2, label="P25-P75")
    ax_fan.plot(years, bands["p50"], color="navy", linewidth=DEFAULT_LINEWIDTH_THICK,
                label="Median")

    if show_representative and result.representative.path is not None:
        ax_fan.plot(years, result.representative.path, color="darkorange",
                    linewidth=1.5, linestyle="--",
                    label=f"Representative (path {result.representative.index})")

    if show_targets and np.any(np.isfinite(spec.grant_targets)):
        ax_fan.scatter(years[1:], spec.grant_targets, marker="_", s=120,
                       color="crimson", label="Grant target", zorder=3)

    ax_fan.axhline(spec.initial_value, color="gray", linewidth=1, linestyle=":")
    ax_fan.yaxis.set_major_formatter(FuncFormatter(millions_formatter))
    ax_fan.set_xlabel("Year", fontsize=11)
    ax_fan.set_ylabel("Portfolio Value", fontsize=11)
    ax_fan.set_title("Portfolio Value Percentiles", fontsize=12, fontweight='bold')
    ax_fan.legend(loc='upper left', fontsize=9)
    ax_fan.grid(True, alpha=0.3)

    # Panel 2: success by year
    ax_success.bar(years[1:], stats.success_by_year, color="seagreen", alpha=0.8)
    ax_success.set_ylim(0, 1.05)
    ax_success.yaxis.set_major_formatter(PercentFormatter(1.0))
    ax_success.set_xlabel("Year", fontsize=11)
    ax_success.set_title(f"Success ({stats.success_rate:.1%} at T)",
                         fontsize=12, fontweight='bold')
    ax_success.grid(True, alpha=0.3, axis='y')

    fig.suptitle(title, fontsize=14, fontweight='bold')
    plt.tight_layout()

    if save_path:
        fig.savefig(save_path, bbox_inches='tight', dpi=150)

    if return_fig_ax:
        return fig, axes
    plt.close(fig)
    return None

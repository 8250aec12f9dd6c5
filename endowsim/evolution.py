"""
Annual portfolio evolution for EndowSim.

Purpose
-------
Steps a batch of paths through years 1..N given their sampled asset returns
and CPI rates. A single path is a batch of one, so the same code serves
`PathGenerator` batches and direct single-path use.

Annual step (year t)
--------------------
1. Take sampled asset returns r_t (shape (B, M)).
2. Apply equity shocks scheduled for year t.
3. Portfolio return r_p = Σ_i w_i r_i over realized weights.
4. Spending from the policy (CPI-linked uses CPI incl. active shift).
5. V_t = V_{t-1}(1 + r_p) - spending - e V_{t-1} - opex - grant
   + contribution, with e the investment expense rate.
6. Realized weights drift: w_i ← w_i (1 + r_i) / (1 + r_p); at
   rebalancing points reset to target when the band is 0 or the maximum
   drift exceeds it.
7. V_t <= 0 marks the path exhausted: value 0 from year t on, spending and
   returns NaN after year t, no further compounding.

Operating expense, grant and contribution flows start at their configured
amounts in year 1 and grow each later year by (CPI_t + spending_growth).

Numeric edge cases never raise; structural problems are caught when the
`SimulationSpec` is built.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional
import logging

import numpy as np

from .assumptions import SimulationSpec

__all__ = ["PathBatch", "SimulationPath", "PortfolioEvolver"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PathBatch:
    """
    Evolved batch of paths.

    Attributes
    ----------
    values : np.ndarray, shape (B, years + 1)
        Portfolio value per year; year 0 is the initial value.
    spending : np.ndarray, shape (B, years + 1)
        Policy spending per year; NaN after exhaustion.
    portfolio_returns : np.ndarray, shape (B, years)
        Realized portfolio return per year; NaN after exhaustion.
    cpi : np.ndarray, shape (B, years)
        Annual CPI rates.
    cpi_index : np.ndarray, shape (B, years + 1)
        Cumulative price index (1.0 at year 0).
    benchmark : np.ndarray or None, shape (B, years + 1)
        Benchmark value per year, when a benchmark is configured.
    exhaustion_year : np.ndarray, shape (B,)
        Year the path was exhausted, -1 if never.
    """

    values: np.ndarray
    spending: np.ndarray
    portfolio_returns: np.ndarray
    cpi: np.ndarray
    cpi_index: np.ndarray
    benchmark: Optional[np.ndarray]
    exhaustion_year: np.ndarray

    def __len__(self) -> int:
        return self.values.shape[0]


@dataclass(frozen=True)
class SimulationPath:
    """One evolved path (row of a `PathBatch`)."""

    values: np.ndarray
    spending: np.ndarray
    portfolio_returns: np.ndarray
    cpi: np.ndarray
    exhaustion_year: Optional[int]

    @property
    def exhausted(self) -> bool:
        return self.exhaustion_year is not None

    @property
    def final_value(self) -> float:
        return float(self.values[-1])


class PortfolioEvolver:
    """
    Vectorized annual evolution of paths under one `SimulationSpec`.

    Parameters
    ----------
    spec : SimulationSpec
        Shared read-only run configuration.

    Examples
    --------
    >>> evolver = PortfolioEvolver(spec)
    >>> R, cpi = sampler.sample_batch(range(100))
    >>> batch = evolver.evolve(R, cpi)
    >>> batch.values.shape
    (100, spec.years + 1)
    """

    def __init__(self, spec: SimulationSpec):
        self.spec = spec

    def evolve(self, asset_returns: np.ndarray, cpi: np.ndarray) -> PathBatch:
        """
        Evolve a batch of paths.

        Parameters
        ----------
        asset_returns : np.ndarray, shape (B, years, M)
            Sampled (unshocked) asset returns. Not modified.
        cpi : np.ndarray, shape (B, years)
            Sampled CPI rates including any CPI shift.

        Returns
        -------
        PathBatch
        """
        spec = self.spec
        R = np.array(asset_returns, dtype=float, copy=True)
        cpi = np.asarray(cpi, dtype=float)
        if R.ndim != 3 or R.shape[1:] != (spec.years, spec.n_assets):
            raise ValueError(
                f"asset_returns must have shape (B, {spec.years}, {spec.n_assets}), "
                f"got {R.shape}"
            )
        B, N, M = R.shape
        if cpi.shape != (B, N):
            raise ValueError(f"cpi must have shape ({B}, {N}), got {cpi.shape}")

        target = spec.target_weights
        band = spec.rebalancing.band
        policy = spec.spending_policy

        values = np.zeros((B, N + 1), dtype=float)
        values[:, 0] = spec.initial_value
        spending = np.full((B, N + 1), np.nan, dtype=float)
        spending[:, 0] = spec.initial_spending
        port = np.full((B, N), np.nan, dtype=float)
        cpi_index = np.ones((B, N + 1), dtype=float)
        bench = None
        if spec.benchmark is not None:
            bench = np.zeros((B, N + 1), dtype=float)
            bench[:, 0] = spec.initial_value
        exhaustion = np.full(B, -1, dtype=int)

        w = np.tile(target, (B, 1))
        alive = np.ones(B, dtype=bool)
        prior = spending[:, 0].copy()
        opex = np.full(B, spec.initial_operating_expense, dtype=float)
        grant = np.full(B, spec.initial_grant, dtype=float)
        contrib = np.full(B, spec.annual_contribution, dtype=float)

        for t in range(1, N + 1):
            r = R[:, t - 1, :]
            for shock in spec.stress.shocks_for_year(t):
                shock.apply(r)
            c = cpi[:, t - 1]
            cpi_index[:, t] = cpi_index[:, t - 1] * (1.0 + c)

            if t > 1:
                growth = 1.0 + c + spec.spending_growth
                opex = opex * growth
                grant = grant * growth
                contrib = contrib * growth

            if bench is not None:
                b = spec.benchmark.annual_return(r, c)
                grown_b = bench[:, t - 1] * (1.0 + b)
                out_b = (spec.spending_rate + spec.investment_expense_rate) * grown_b
                bench[:, t] = np.maximum(0.0, grown_b - out_b)

            if not alive.any():
                continue

            rp = np.zeros(B, dtype=float)
            for j in range(M):
                rp = rp + w[:, j] * r[:, j]

            spend = policy.amount(values[:, :t], prior, c)
            begin = values[:, t - 1]
            invest = spec.investment_expense_rate * begin
            v_new = begin * (1.0 + rp) - spend - invest - opex - grant + contrib

            port[alive, t - 1] = rp[alive]
            spending[alive, t] = spend[alive]
            prior = np.where(alive, spend, prior)

            exhausted_now = alive & ~(v_new > 0)
            values[:, t] = np.where(alive & ~exhausted_now, v_new, 0.0)
            exhaustion[exhausted_now] = t

            with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
                grown = w * (1.0 + r) / (1.0 + rp)[:, None]
            degenerate = ~np.all(np.isfinite(grown), axis=1) | (1.0 + rp <= 0)
            grown[degenerate] = target
            if spec.rebalancing.is_rebalance_year(t):
                if band > 0:
                    reset = np.max(np.abs(grown - target), axis=1) > band
                else:
                    reset = np.ones(B, dtype=bool)
                grown[reset] = target
            w = np.where(alive[:, None], grown, w)
            alive = alive & ~exhausted_now

        n_exhausted = int(np.count_nonzero(exhaustion >= 0))
        if n_exhausted:
            logger.debug("%d of %d paths exhausted", n_exhausted, B)

        return PathBatch(
            values=values,
            spending=spending,
            portfolio_returns=port,
            cpi=cpi.copy(),
            cpi_index=cpi_index,
            benchmark=bench,
            exhaustion_year=exhaustion,
        )

    def evolve_path(self, asset_returns: np.ndarray, cpi: np.ndarray) -> SimulationPath:
        """
        Evolve a single path.

        Parameters
        ----------
        asset_returns : np.ndarray, shape (years, M)
        cpi : np.ndarray, shape (years,)
        """
        batch = self.evolve(np.asarray(asset_returns)[None, ...], np.asarray(cpi)[None, :])
        ex = int(batch.exhaustion_year[0])
        return SimulationPath(
            values=batch.values[0],
            spending=batch.spending[0],
            portfolio_returns=batch.portfolio_returns[0],
            cpi=batch.cpi[0],
            exhaustion_year=ex if ex >= 0 else None,
        )

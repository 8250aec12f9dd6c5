"""
Stochastic return and inflation generation for EndowSim paths.

Mathematical Model
------------------
Per path and year t, with independent standard normals z_t (one per asset):
    x_t = L @ z_t
    r_t,i = mu_i + sigma_i * x_t,i
and the year's CPI rate:
    cpi_t = max(CPI_FLOOR, CPI_MEAN + shift_t + CPI_STD * e_t),  e_t ~ N(0, 1)

Returns are arithmetic and normal (no lognormal transform), so a single
year can fall below -100% for extreme draws; the evolver treats the
resulting non-positive value as exhaustion.

Random streams
--------------
Each path owns a generator seeded by
    SeedSequence(entropy=seed, spawn_key=(path_index,))
which equals the `path_index`-th child of `SeedSequence(seed).spawn(...)`.
Streams are independent across paths and addressable by index, so a seeded
ensemble is identical regardless of batch size or worker count.
"""

from __future__ import annotations
from typing import Sequence, Tuple

import numpy as np

from .constants import CPI_FLOOR, CPI_MEAN, CPI_STD
from .correlation import CorrelationFactorizer

__all__ = ["RandomPathSampler", "path_rng", "fresh_entropy"]


def path_rng(seed: int, path_index: int) -> np.random.Generator:
    """Generator for path `path_index` of the ensemble seeded with `seed`."""
    return np.random.default_rng(
        np.random.SeedSequence(entropy=seed, spawn_key=(int(path_index),))
    )


def fresh_entropy() -> int:
    """Draw fresh OS entropy for an unseeded request (reported in metadata)."""
    return int(np.random.SeedSequence().entropy)


class RandomPathSampler:
    """
    Correlated annual return and CPI sampler.

    Parameters
    ----------
    factorizer : CorrelationFactorizer
        Shared read-only factor of the correlation matrix.
    mu, sigma : np.ndarray, shape (M,)
        Annual mean return and volatility per asset (fractions).
    years : int
        Number of simulated years.
    seed : int
        Ensemble seed; path streams derive from it.
    cpi_shifts : np.ndarray, shape (years,), optional
        Additive shift of the CPI mean per year.

    Examples
    --------
    >>> sampler = RandomPathSampler(f, mu, sigma, years=10, seed=42)
    >>> R, cpi = sampler.sample_path(0)
    >>> R.shape, cpi.shape
    ((10, 7), (10,))
    """

    def __init__(
        self,
        factorizer: CorrelationFactorizer,
        mu: np.ndarray,
        sigma: np.ndarray,
        years: int,
        seed: int,
        cpi_shifts: np.ndarray = None,
    ):
        mu = np.asarray(mu, dtype=float)
        sigma = np.asarray(sigma, dtype=float)
        if mu.shape != (factorizer.size,) or sigma.shape != (factorizer.size,):
            raise ValueError(
                f"mu/sigma must have shape ({factorizer.size},), "
                f"got {mu.shape} and {sigma.shape}"
            )
        if years <= 0:
            raise ValueError(f"years must be positive, got {years}")
        if cpi_shifts is None:
            cpi_shifts = np.zeros(years, dtype=float)
        cpi_shifts = np.asarray(cpi_shifts, dtype=float)
        if cpi_shifts.shape != (years,):
            raise ValueError(f"cpi_shifts must have shape ({years},), got {cpi_shifts.shape}")

        self.factorizer = factorizer
        self.mu = mu
        self.sigma = sigma
        self.years = int(years)
        self.seed = int(seed)
        self.cpi_means = CPI_MEAN + cpi_shifts

    @property
    def n_assets(self) -> int:
        return self.mu.shape[0]

    def sample_path(self, path_index: int) -> Tuple[np.ndarray, np.ndarray]:
        """
        Draw one path's returns and CPI rates.

        Returns
        -------
        returns : np.ndarray, shape (years, M)
        cpi : np.ndarray, shape (years,)
        """
        rng = path_rng(self.seed, path_index)
        z = rng.standard_normal((self.years, self.n_assets))
        e = rng.standard_normal(self.years)
        returns = self.mu + self.sigma * self.factorizer.correlate(z)
        cpi = np.maximum(CPI_FLOOR, self.cpi_means + CPI_STD * e)
        return returns, cpi

    def sample_batch(self, path_indices: Sequence[int]) -> Tuple[np.ndarray, np.ndarray]:
        """
        Draw a batch of paths.

        Returns
        -------
        returns : np.ndarray, shape (B, years, M)
        cpi : np.ndarray, shape (B, years)
        """
        B = len(path_indices)
        returns = np.empty((B, self.years, self.n_assets), dtype=float)
        cpi = np.empty((B, self.years), dtype=float)
        for b, idx in enumerate(path_indices):
            returns[b], cpi[b] = self.sample_path(idx)
        return returns, cpi

    def __repr__(self) -> str:
        return (f"RandomPathSampler(M={self.n_assets}, years={self.years}, "
                f"seed={self.seed})")

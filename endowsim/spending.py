"""
Spending policies for EndowSim.

Purpose
-------
Compute each year's policy spending for a batch of paths. Policies are
immutable value objects; the evolver hands them the batch history they
need and receives one amount per path.

Policies
--------
FixedRatePolicy
    rate x (value entering the year), or x (average of the trailing N
    year-end values) when smoothing is enabled (N in {1, 3, 5}).
CpiLinkedPolicy
    prior spending x (1 + CPI_t), where the growth CPI_t (which already
    includes any active CPI shift) is clamped to [floor_yoy, cap_yoy].

Example
-------
>>> import numpy as np
>>> policy = FixedRatePolicy(rate=0.05, smoothing_years=3)
>>> history = np.array([[100.0, 110.0, 120.0]])
>>> policy.amount(history, prior=np.array([5.0]), cpi=np.array([0.02]))
array([5.5])
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Union

import numpy as np

from .config import CpiLinkedPolicyConfig, FixedRatePolicyConfig
from .exceptions import ConfigurationError

__all__ = [
    "FixedRatePolicy",
    "CpiLinkedPolicy",
    "SpendingPolicy",
    "policy_from_config",
]


@dataclass(frozen=True)
class FixedRatePolicy:
    """
    Spend a fixed fraction of (optionally smoothed) portfolio value.

    Parameters
    ----------
    rate : float
        Spending rate as a fraction of value.
    smoothing_years : int, default 1
        Number of trailing year-end values averaged into the base.
        Early years average whatever history exists.
    """

    rate: float
    smoothing_years: int = 1

    def __post_init__(self):
        if not (0.0 <= self.rate <= 1.0):
            raise ConfigurationError(f"spending rate must be in [0, 1], got {self.rate}")
        if self.smoothing_years not in (1, 3, 5):
            raise ConfigurationError(
                f"smoothing_years must be 1, 3 or 5, got {self.smoothing_years}"
            )

    def amount(self, history: np.ndarray, prior: np.ndarray, cpi: np.ndarray) -> np.ndarray:
        """
        Spending for the year following `history`.

        Parameters
        ----------
        history : np.ndarray, shape (B, t)
            Year-end values for years 0..t-1.
        prior : np.ndarray, shape (B,)
            Previous year's spending (unused).
        cpi : np.ndarray, shape (B,)
            This year's CPI rate (unused).

        Returns
        -------
        np.ndarray, shape (B,)
        """
        window = history[:, -self.smoothing_years:]
        return self.rate * window.mean(axis=1)


@dataclass(frozen=True)
class CpiLinkedPolicy:
    """
    Grow prior spending with inflation, clamped year over year.

    Parameters
    ----------
    floor_yoy : float
        Minimum year-over-year change (fraction).
    cap_yoy : float
        Maximum year-over-year change (fraction).
    """

    floor_yoy: float = 0.0
    cap_yoy: float = 0.05

    def __post_init__(self):
        if self.floor_yoy > self.cap_yoy:
            raise ConfigurationError(
                f"floor_yoy ({self.floor_yoy}) must be <= cap_yoy ({self.cap_yoy})"
            )

    def amount(self, history: np.ndarray, prior: np.ndarray, cpi: np.ndarray) -> np.ndarray:
        """Prior spending grown by CPI clamped to [floor_yoy, cap_yoy]."""
        growth = np.clip(cpi, self.floor_yoy, self.cap_yoy)
        return prior * (1.0 + growth)


SpendingPolicy = Union[FixedRatePolicy, CpiLinkedPolicy]


def policy_from_config(
    config: Union[FixedRatePolicyConfig, CpiLinkedPolicyConfig],
    default_rate: float,
) -> SpendingPolicy:
    """Build the internal policy from its request model."""
    if isinstance(config, CpiLinkedPolicyConfig):
        return CpiLinkedPolicy(floor_yoy=config.floor_yoy, cap_yoy=config.cap_yoy)
    rate = default_rate if config.rate is None else config.rate
    return FixedRatePolicy(rate=rate, smoothing_years=config.smoothing_years)

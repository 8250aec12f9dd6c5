"""Simulation orchestrator for EndowSim

Connects the strict request model, the correlation factor, the path sampler
and the portfolio evolver to generate an ensemble of independent paths, then
runs the reducers (aggregation, representative paths, spending cuts) over
the finished ensemble.

Design goals
------------
- Deterministic per seed: path i always draws from stream i, so batch size
  and worker count never change a seeded result.
- Stateless workers: each batch builds its own generators; the factor and
  the spec are shared read-only.
- All or nothing: a deadline overrun fails the request, partial ensembles are
  never aggregated.

Typical usage
-------------
>>> from endowsim.config import SimulationRequest, AppSettings
>>> from endowsim.simulation import SimulationEngine
>>> request = SimulationRequest.model_validate(payload)
>>> result = SimulationEngine(request, AppSettings(executor="none")).run()
>>> result.statistics.success_rate
0.91
"""
from __future__ import annotations

from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import List, Optional, Sequence
import logging
import os
import time

import numpy as np

from .aggregation import AggregationEngine, EnsembleStatistics
from .assumptions import SimulationSpec, build_simulation_spec
from .config import AppSettings, SimulationRequest
from .constants import DEFAULT_BATCH_SIZE
from .correlation import CorrelationFactorizer
from .evolution import PathBatch, PortfolioEvolver, SimulationPath
from .exceptions import SimulationTimeoutError
from .representative import (
    RepresentativePath,
    medoid_by_final_value,
    nearest_to_pointwise_median,
)
from .returns import RandomPathSampler, fresh_entropy
from .spending_cuts import per_path_worst_cuts, summarize_worst_cuts
from .types import WorstCutSummaryDict

__all__ = [
    "Ensemble",
    "PathGenerator",
    "SimulationResult",
    "SimulationEngine",
]

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Ensemble
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Ensemble:
    """
    All paths of one request, in path-index order.

    Arrays follow `PathBatch`: values/spending/cpi_index/benchmark have
    years + 1 columns, portfolio_returns/cpi have `years` columns.
    """

    spec: SimulationSpec
    seed: int
    values: np.ndarray
    spending: np.ndarray
    portfolio_returns: np.ndarray
    cpi: np.ndarray
    cpi_index: np.ndarray
    benchmark: Optional[np.ndarray]
    exhaustion_year: np.ndarray

    @classmethod
    def from_batches(cls, spec: SimulationSpec, seed: int, batches: Sequence[PathBatch]) -> Ensemble:
        """Concatenate ordered batches."""
        bench = None
        if batches and batches[0].benchmark is not None:
            bench = np.concatenate([b.benchmark for b in batches])
        return cls(
            spec=spec,
            seed=seed,
            values=np.concatenate([b.values for b in batches]),
            spending=np.concatenate([b.spending for b in batches]),
            portfolio_returns=np.concatenate([b.portfolio_returns for b in batches]),
            cpi=np.concatenate([b.cpi for b in batches]),
            cpi_index=np.concatenate([b.cpi_index for b in batches]),
            benchmark=bench,
            exhaustion_year=np.concatenate([b.exhaustion_year for b in batches]),
        )

    @property
    def n_paths(self) -> int:
        return self.values.shape[0]

    @property
    def final_values(self) -> np.ndarray:
        return self.values[:, -1]

    def path(self, i: int) -> SimulationPath:
        ex = int(self.exhaustion_year[i])
        return SimulationPath(
            values=self.values[i],
            spending=self.spending[i],
            portfolio_returns=self.portfolio_returns[i],
            cpi=self.cpi[i],
            exhaustion_year=ex if ex >= 0 else None,
        )


# ---------------------------------------------------------------------------
# Path generation
# ---------------------------------------------------------------------------

def _resolve_max_workers(max_workers: Optional[int], n_batches: int) -> int:
    """Bound pool size by requested max, batch count and CPU availability."""
    if n_batches <= 1:
        return 1
    if max_workers is None:
        return max(1, min(n_batches, os.cpu_count() or 1))
    return max(1, min(max_workers, n_batches))


def _chunk(n: int, size: int) -> List[range]:
    """Split path indices 0..n-1 into ordered ranges of at most `size`."""
    return [range(i, min(i + size, n)) for i in range(0, n, size)]


class PathGenerator:
    """
    Runs `num_simulations` independent paths in batches.

    Parameters
    ----------
    spec : SimulationSpec
    factorizer : CorrelationFactorizer
        Shared read-only correlation factor.
    executor : {"thread", "none"}
        Worker pool or serial generation.
    max_workers : int, optional
        Pool size; defaults to the CPU count.
    batch_size : int
        Paths evolved together per task.
    timeout_s : float, optional
        Deadline for the whole ensemble.

    Raises
    ------
    SimulationTimeoutError
        From `generate` when the deadline passes before every batch is done.
    """

    def __init__(
        self,
        spec: SimulationSpec,
        factorizer: CorrelationFactorizer,
        *,
        executor: str = "thread",
        max_workers: Optional[int] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        timeout_s: Optional[float] = None,
    ):
        if executor not in ("thread", "none"):
            raise ValueError(f"executor must be 'thread' or 'none', got {executor!r}")
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.spec = spec
        self.factorizer = factorizer
        self.executor = executor
        self.max_workers = max_workers
        self.batch_size = int(batch_size)
        self.timeout_s = timeout_s
        self.evolver = PortfolioEvolver(spec)

    def _run_batch(self, sampler: RandomPathSampler, indices: range) -> PathBatch:
        R, cpi = sampler.sample_batch(indices)
        return self.evolver.evolve(R, cpi)

    def generate(self, seed: int, n_paths: Optional[int] = None) -> Ensemble:
        """
        Generate the ensemble for `seed`.

        Parameters
        ----------
        seed : int
            Ensemble seed; path i uses stream i.
        n_paths : int, optional
            Defaults to `spec.num_simulations`.
        """
        spec = self.spec
        n = spec.num_simulations if n_paths is None else int(n_paths)
        sampler = RandomPathSampler(
            self.factorizer, spec.mu, spec.sigma, spec.years, seed, spec.cpi_shifts
        )
        chunks = _chunk(n, self.batch_size)
        deadline = None if self.timeout_s is None else time.perf_counter() + self.timeout_s

        if self.executor == "none" or len(chunks) <= 1:
            batches = []
            for chunk in chunks:
                if deadline is not None and time.perf_counter() > deadline:
                    raise SimulationTimeoutError(
                        f"ensemble generation exceeded {self.timeout_s}s "
                        f"after {len(batches)} of {len(chunks)} batches"
                    )
                logger.debug("Evolving paths %d-%d", chunk.start, chunk.stop - 1)
                batches.append(self._run_batch(sampler, chunk))
            return Ensemble.from_batches(spec, seed, batches)

        workers = _resolve_max_workers(self.max_workers, len(chunks))
        logger.debug("Dispatching %d batches to %d threads", len(chunks), workers)
        pool = ThreadPoolExecutor(max_workers=workers)
        try:
            futures = [pool.submit(self._run_batch, sampler, chunk) for chunk in chunks]
            done, pending = wait(futures, timeout=self.timeout_s, return_when=FIRST_EXCEPTION)
            for fut in done:
                exc = fut.exception()
                if exc is not None:
                    raise exc
            if pending:
                raise SimulationTimeoutError(
                    f"ensemble generation exceeded {self.timeout_s}s "
                    f"with {len(pending)} of {len(chunks)} batches unfinished"
                )
            batches = [fut.result() for fut in futures]
        finally:
            pool.shutdown(wait=False, cancel_futures=True)
        return Ensemble.from_batches(spec, seed, batches)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SimulationResult:
    """Ensemble plus every reduction computed from it."""

    ensemble: Ensemble
    statistics: EnsembleStatistics
    representative: RepresentativePath
    medoid: RepresentativePath
    worst_cuts: WorstCutSummaryDict
    compute_time_ms: float

    @property
    def spec(self) -> SimulationSpec:
        return self.ensemble.spec

    @property
    def seed(self) -> int:
        return self.ensemble.seed


class SimulationEngine:
    """
    High-level orchestrator: request → spec → factor → ensemble → reductions.

    Parameters
    ----------
    request : SimulationRequest
        Validated request.
    settings : AppSettings, optional
        Executor, batching and deadline settings (environment by default).

    Raises
    ------
    ConfigurationMismatch, InvalidWeights, ConfigurationError
        From building the spec.
    InvalidCorrelationMatrix
        From factorizing the correlation matrix.
    """

    def __init__(self, request: SimulationRequest, settings: Optional[AppSettings] = None):
        self.request = request
        self.settings = settings if settings is not None else AppSettings()
        self.spec = build_simulation_spec(request)
        self.factorizer = CorrelationFactorizer(self.spec.correlation, self.spec.asset_keys)

    def generator(self) -> PathGenerator:
        s = self.settings
        return PathGenerator(
            self.spec,
            self.factorizer,
            executor=s.executor,
            max_workers=s.max_workers,
            batch_size=s.batch_size,
            timeout_s=s.timeout_s,
        )

    def run(self) -> SimulationResult:
        """Generate the ensemble and reduce it."""
        spec = self.spec
        seed = spec.seed if spec.seed is not None else fresh_entropy()
        logger.info(
            "Simulating %d paths over %d years (%d asset classes)",
            spec.num_simulations, spec.years, spec.n_assets,
        )
        t0 = time.perf_counter()
        ensemble = self.generator().generate(seed)

        statistics = AggregationEngine(risk_free_rate=spec.risk_free_rate).summarize(ensemble)
        representative = nearest_to_pointwise_median(ensemble.values)
        medoid = medoid_by_final_value(ensemble.values)
        worst_cuts = summarize_worst_cuts(per_path_worst_cuts(ensemble.values, ensemble.spending))

        elapsed_ms = (time.perf_counter() - t0) * 1000.0
        logger.debug("%d paths exhausted", statistics.exhausted_paths)
        logger.info(
            "Simulation finished in %.1f ms (success rate %.1f%%)",
            elapsed_ms, statistics.success_rate * 100,
        )
        return SimulationResult(
            ensemble=ensemble,
            statistics=statistics,
            representative=representative,
            medoid=medoid,
            worst_cuts=worst_cuts,
            compute_time_ms=elapsed_ms,
        )

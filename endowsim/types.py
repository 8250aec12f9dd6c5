"""
Type definitions for EndowSim.

Purpose
-------
Provides TypedDict definitions for the structured dictionaries exchanged at
the response boundary. The numeric core works on frozen dataclasses and
NumPy arrays; these shapes document what `endowsim.serialization`
produces and what callers of the HTTP layer receive.

Usage
-----
>>> from endowsim.types import WorstCutSummaryDict
>>> empty: WorstCutSummaryDict = {
...     "count": 0, "p10": None, "p25": None, "p50": None, "p75": None, "p90": None
... }

Type Definitions
----------------
FinalValuePercentilesDict
    Nearest-rank percentiles of final values: {"percentile10", ..., "percentile90"}

WorstCutSummaryDict
    Distribution of per-path worst year-over-year cuts

TailRiskDict, DrawdownAnalysisDict, SafeSpendingDict
    Nested risk analytics inside `summary`

RepresentativePathDict
    Index and series of a selected representative path

SummaryDict
    Aggregated statistics returned as `summary`

MetadataDict
    Request echo and timing returned as `metadata`

SimulationResponseDict
    Full response: {"paths", "pathsAvailable", "summary", "metadata"}
"""

from typing import Dict, List, Optional
from typing_extensions import TypedDict, NotRequired

__all__ = [
    "FinalValuePercentilesDict",
    "WorstCutSummaryDict",
    "TailRiskDict",
    "DrawdownAnalysisDict",
    "SafeSpendingDict",
    "RepresentativePathDict",
    "SummaryDict",
    "MetadataDict",
    "SimulationResponseDict",
]


class FinalValuePercentilesDict(TypedDict):
    """
    Nearest-rank percentiles of final portfolio values.

    The median is reported separately as `medianFinalValue`.
    """

    percentile10: float
    percentile25: float
    percentile75: float
    percentile90: float


class WorstCutSummaryDict(TypedDict):
    """
    Distribution of per-path worst year-over-year cuts, in percent.

    All percentile entries are None when no path produced a valid step.

    Examples
    --------
    >>> summary: WorstCutSummaryDict = {
    ...     "count": 5, "p10": -10.0, "p25": -5.0, "p50": -2.0, "p75": 0.0, "p90": 1.0
    ... }
    """

    count: int
    p10: Optional[float]
    p25: Optional[float]
    p50: Optional[float]
    p75: Optional[float]
    p90: Optional[float]


class TailRiskDict(TypedDict):
    """Nearest-rank worst final values at the 1%, 5% and 10% levels."""

    worst1Pct: float
    worst5Pct: float
    worst10Pct: float


class DrawdownAnalysisDict(TypedDict):
    """
    Drawdowns pooled over all paths.

    `maxDrawdownYear` counts simulation years from 1 (0 when no path falls
    below its peak); `drawdownRecoveryTime` is in years.
    """

    avgDrawdown: float
    drawdownRecoveryTime: float
    maxDrawdownYear: int


class SafeSpendingDict(TypedDict):
    """Spending sustained by 80% of paths, and as a percent of the initial value."""

    amount: float
    ratePct: float


class RepresentativePathDict(TypedDict):
    """Selected representative path; both fields None for empty input."""

    index: Optional[int]
    path: Optional[List[float]]


class SummaryDict(TypedDict):
    """
    Aggregated statistics of one ensemble.

    Attributes
    ----------
    medianFinalValue, averageFinalValue : float
        Median and mean of final values.
    successRate : float
        Terminal-year success probability in [0, 1].
    probabilityOfLoss : float
        1 - successRate.
    successByYear : List[float]
        Success probability for years 1..N.
    riskFreeRate : float
        Risk-free rate used for ratios, as a fraction.
    percentilesByYear : Dict[str, List[float]]
        Per-year nearest-rank bands keyed "p10".."p90", years 0..N.
    """

    medianFinalValue: float
    averageFinalValue: float
    stdFinalValue: float
    minFinalValue: float
    maxFinalValue: float
    successRate: float
    probabilityOfLoss: float
    finalValues: FinalValuePercentilesDict
    successByYear: List[float]
    totalPaths: int
    medianAnnualizedReturn: float
    annualizedVolatility: float
    sharpeMedian: float
    sortino: float
    medianMaxDrawdown: float
    maxDrawdown: float
    calmar: float
    drawdownAnalysis: DrawdownAnalysisDict
    cvar95: float
    cvar99: float
    tailRiskMetrics: TailRiskDict
    principalLossProbability: float
    sustainabilityHorizon: float
    safeSpending80: Optional[SafeSpendingDict]
    inflationPreservationPct: float
    riskFreeRate: float
    probBeatBenchmark: NotRequired[Optional[float]]
    percentilesByYear: Dict[str, List[float]]
    representativePath: RepresentativePathDict
    medoidPath: RepresentativePathDict
    worstCuts: WorstCutSummaryDict


class MetadataDict(TypedDict):
    """Request echo, reproducibility seed and compute time."""

    simulationCount: int
    years: int
    initialPortfolioValue: float
    computeTimeMs: float
    seed: int
    yearLabels: List[int]
    exhaustedPaths: int


class SimulationResponseDict(TypedDict):
    """
    Full simulation response.

    `paths` is present only when the ensemble is small enough
    (`pathsAvailable` is True).
    """

    paths: NotRequired[List[List[float]]]
    pathsAvailable: bool
    summary: SummaryDict
    metadata: MetadataDict

"""
Serialization module for EndowSim requests and responses.

Purpose
-------
JSON persistence of simulation requests and conversion of a
`SimulationResult` into the camelCase response structure returned to the
HTTP layer.

Supports serialization of:
- SimulationRequest (camelCase wire format)
- SimulationResult → response dict (summary, metadata, optional raw paths)
- Response files for later reporting

Design Principles
-----------------
- Type-safe: Requests are validated by Pydantic on load
- Human-readable: Indented JSON
- Reproducible: Responses record the seed actually used
- Bounded: Raw paths are included only for small ensembles
- Backward compatible: Files carry a schema version; mismatches warn

Example
-------
>>> from pathlib import Path
>>> from endowsim.serialization import load_request, result_to_response, save_response
>>> request = load_request(Path("request.json"))
>>> result = SimulationEngine(request).run()
>>> save_response(result_to_response(result), Path("out.json"))
"""

from __future__ import annotations
from typing import Any, Dict, TYPE_CHECKING
from pathlib import Path
import json
import warnings

import numpy as np

from .config import SimulationRequest
from .constants import RAW_PATHS_LIMIT
from .types import MetadataDict, SimulationResponseDict, SummaryDict

if TYPE_CHECKING:
    from .simulation import SimulationResult

__all__ = [
    "SCHEMA_VERSION",
    "request_to_dict",
    "request_from_dict",
    "save_request",
    "load_request",
    "result_to_response",
    "save_response",
    "load_response",
]


# ---------------------------------------------------------------------------
# Schema Version
# ---------------------------------------------------------------------------

SCHEMA_VERSION = "0.1.0"


def _check_schema(data: Dict[str, Any], kind: str) -> None:
    schema_version = data.get("schema_version", "0.0.0")
    if schema_version != SCHEMA_VERSION:
        warnings.warn(
            f"{kind} schema version {schema_version} differs from current "
            f"version {SCHEMA_VERSION}. May encounter compatibility issues.",
            UserWarning,
        )


# ---------------------------------------------------------------------------
# Request Serialization
# ---------------------------------------------------------------------------

def request_to_dict(request: SimulationRequest) -> Dict[str, Any]:
    """
    Request as a camelCase dict (without schema version).

    Examples
    --------
    >>> request_to_dict(request)["numSimulations"]
    1000
    """
    return request.model_dump(mode="json", by_alias=True, exclude_none=True)


def request_from_dict(data: Dict[str, Any]) -> SimulationRequest:
    """Validate a camelCase dict, ignoring a `schema_version` key."""
    payload = {k: v for k, v in data.items() if k != "schema_version"}
    return SimulationRequest.model_validate(payload)


def save_request(request: SimulationRequest, path: Path) -> None:
    """
    Save a request to a JSON file.

    Parameters
    ----------
    request : SimulationRequest
    path : Path
        Output file path (should have .json extension)
    """
    config = {"schema_version": SCHEMA_VERSION, **request_to_dict(request)}
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(config, f, indent=2)


def load_request(path: Path) -> SimulationRequest:
    """
    Load and validate a request from a JSON file.

    Files without a `schema_version` are accepted silently (raw HTTP
    payloads); a different version triggers a UserWarning.

    Raises
    ------
    pydantic.ValidationError
        If the payload fails boundary validation.
    """
    with open(path, "r") as f:
        data = json.load(f)
    if "schema_version" in data:
        _check_schema(data, "Request")
    return request_from_dict(data)


# ---------------------------------------------------------------------------
# Response
# ---------------------------------------------------------------------------

def _floats(arr) -> list:
    return [float(x) for x in np.asarray(arr, dtype=float)]


def result_to_response(
    result: SimulationResult,
    raw_paths_limit: int = RAW_PATHS_LIMIT,
) -> SimulationResponseDict:
    """
    Convert a `SimulationResult` into the response structure.

    Parameters
    ----------
    result : SimulationResult
    raw_paths_limit : int, default 500
        Raw value paths are included only when the ensemble has at most
        this many paths.

    Returns
    -------
    SimulationResponseDict
        {"paths"?, "pathsAvailable", "summary", "metadata"}
    """
    stats = result.statistics
    risk = stats.risk
    spec = result.spec
    ensemble = result.ensemble

    summary: SummaryDict = {
        "medianFinalValue": stats.median_final_value,
        "averageFinalValue": stats.mean_final_value,
        "stdFinalValue": stats.std_final_value,
        "minFinalValue": stats.min_final_value,
        "maxFinalValue": stats.max_final_value,
        "successRate": stats.success_rate,
        "probabilityOfLoss": stats.probability_of_loss,
        "finalValues": {
            "percentile10": stats.final_percentiles["p10"],
            "percentile25": stats.final_percentiles["p25"],
            "percentile75": stats.final_percentiles["p75"],
            "percentile90": stats.final_percentiles["p90"],
        },
        "successByYear": _floats(stats.success_by_year),
        "totalPaths": stats.total_paths,
        "medianAnnualizedReturn": risk.median_annualized_return,
        "annualizedVolatility": risk.annualized_volatility,
        "sharpeMedian": risk.sharpe,
        "sortino": risk.sortino,
        "medianMaxDrawdown": risk.median_max_drawdown,
        "maxDrawdown": risk.drawdown.max_drawdown,
        "calmar": risk.calmar,
        "drawdownAnalysis": {
            "avgDrawdown": risk.drawdown.avg_drawdown,
            "drawdownRecoveryTime": risk.drawdown.recovery_time,
            "maxDrawdownYear": risk.drawdown.max_drawdown_year,
        },
        "cvar95": risk.cvar95,
        "cvar99": risk.cvar99,
        "tailRiskMetrics": {
            "worst1Pct": risk.tail["worst1Pct"],
            "worst5Pct": risk.tail["worst5Pct"],
            "worst10Pct": risk.tail["worst10Pct"],
        },
        "principalLossProbability": risk.principal_loss_probability,
        "sustainabilityHorizon": risk.sustainability_horizon,
        "safeSpending80": (
            None if risk.safe_spending_80 is None
            else {"amount": risk.safe_spending_80, "ratePct": risk.safe_spending_80_rate_pct}
        ),
        "inflationPreservationPct": risk.inflation_preservation_rate * 100.0,
        "riskFreeRate": risk.risk_free_rate,
        "probBeatBenchmark": risk.prob_beat_benchmark,
        "percentilesByYear": {col: _floats(stats.bands[col]) for col in stats.bands.columns},
        "representativePath": result.representative.to_dict(),
        "medoidPath": result.medoid.to_dict(),
        "worstCuts": result.worst_cuts,
    }
    metadata: MetadataDict = {
        "simulationCount": ensemble.n_paths,
        "years": spec.years,
        "initialPortfolioValue": spec.initial_value,
        "computeTimeMs": result.compute_time_ms,
        "seed": int(result.seed),
        "yearLabels": spec.year_labels,
        "exhaustedPaths": stats.exhausted_paths,
    }

    response: SimulationResponseDict = {
        "pathsAvailable": ensemble.n_paths <= raw_paths_limit,
        "summary": summary,
        "metadata": metadata,
    }
    if response["pathsAvailable"]:
        response["paths"] = [_floats(row) for row in ensemble.values]
    return response


def save_response(response: SimulationResponseDict, path: Path) -> None:
    """Save a response dict to JSON with the schema version."""
    payload = {"schema_version": SCHEMA_VERSION, **response}
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(payload, f, indent=2)


def load_response(path: Path) -> Dict[str, Any]:
    """
    Load a saved response.

    Returns
    -------
    Dict[str, Any]
        The response dict, without `schema_version`.
    """
    with open(path, "r") as f:
        data = json.load(f)
    _check_schema(data, "Response")
    data.pop("schema_version", None)
    return data

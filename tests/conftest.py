"""
Pytest configuration and fixtures for EndowSim test suite.

This module provides reusable fixtures for testing all EndowSim components.
Fixtures follow the principle of "arrange-act-assert" with clear separation.
"""

import copy
from typing import Any, Dict

import numpy as np
import pytest

from endowsim.assumptions import build_simulation_spec
from endowsim.config import AppSettings, SimulationRequest
from endowsim.constants import ASSET_CLASSES, DEFAULT_ASSUMPTIONS, DEFAULT_CORRELATION_MATRIX


# ---------------------------------------------------------------------------
# Scalar Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def seed() -> int:
    """Standard random seed for reproducibility."""
    return 42


@pytest.fixture
def years() -> int:
    """Standard simulation horizon for tests."""
    return 10


# ---------------------------------------------------------------------------
# Request Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def two_asset_payload(years, seed) -> Dict[str, Any]:
    """
    Small camelCase request: 60/40 equity/bonds, 100M, 5% spending.
    """
    return {
        "years": years,
        "startYear": 2025,
        "initialValue": 100_000_000,
        "spendingRate": 0.05,
        "assetAssumptions": {
            "publicEquity": {"mu": 0.08, "sigma": 0.15},
            "publicFixedIncome": {"mu": 0.03, "sigma": 0.04},
        },
        "portfolioWeights": {"publicEquity": 60, "publicFixedIncome": 40},
        "correlationMatrix": [[1.0, 0.2], [0.2, 1.0]],
        "numSimulations": 200,
        "seed": seed,
    }


@pytest.fixture
def default_payload(seed) -> Dict[str, Any]:
    """
    Seven-asset request using the default assumptions and correlation.
    """
    return {
        "years": 20,
        "startYear": 2025,
        "initialValue": 250_000_000,
        "spendingRate": 0.045,
        "assetAssumptions": {k: dict(DEFAULT_ASSUMPTIONS[k]) for k in ASSET_CLASSES},
        "portfolioWeights": {
            "publicEquity": 40, "privateEquity": 15, "publicFixedIncome": 20,
            "privateCredit": 5, "realAssets": 10, "diversifying": 7, "cashShortTerm": 3,
        },
        "correlationMatrix": [list(row) for row in DEFAULT_CORRELATION_MATRIX],
        "numSimulations": 300,
        "seed": seed,
    }


@pytest.fixture
def make_request(two_asset_payload):
    """
    Factory building a request from the two-asset payload plus overrides.

    Examples
    --------
    >>> req = make_request(spendingRate=0.0, numSimulations=100)
    """
    def _make(**overrides) -> SimulationRequest:
        payload = copy.deepcopy(two_asset_payload)
        payload.update(overrides)
        return SimulationRequest.model_validate(payload)
    return _make


@pytest.fixture
def request_two_asset(make_request) -> SimulationRequest:
    """Validated two-asset request."""
    return make_request()


@pytest.fixture
def make_spec(make_request):
    """Factory building a SimulationSpec from payload overrides."""
    def _make(**overrides):
        return build_simulation_spec(make_request(**overrides))
    return _make


# ---------------------------------------------------------------------------
# Settings Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def serial_settings() -> AppSettings:
    """Serial generation, small batches, no .env lookup."""
    return AppSettings(_env_file=None, executor="none", batch_size=50)


# ---------------------------------------------------------------------------
# Array Helpers
# ---------------------------------------------------------------------------

@pytest.fixture
def constant_returns():
    """
    Factory for deterministic (B, years, M) return blocks and CPI rates.
    """
    def _make(B: int, years: int, per_asset, cpi: float = 0.0):
        R = np.tile(np.asarray(per_asset, dtype=float), (B, years, 1))
        return R, np.full((B, years), cpi, dtype=float)
    return _make


# ---------------------------------------------------------------------------
# Result Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def run_simulation(make_request, serial_settings):
    """Factory running a serial simulation from payload overrides."""
    from endowsim.simulation import SimulationEngine

    def _run(settings=None, **overrides):
        return SimulationEngine(make_request(**overrides), settings or serial_settings).run()
    return _run


@pytest.fixture
def simulation_result(run_simulation):
    """Finished two-asset simulation (200 paths, 10 years)."""
    return run_simulation()

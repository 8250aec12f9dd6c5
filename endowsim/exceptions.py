"""
Custom exceptions for EndowSim.

Purpose
-------
Provides a unified exception hierarchy for consistent error handling
across all EndowSim modules. All exceptions inherit from EndowSimError,
enabling catch-all handling at the request boundary.

Exception Hierarchy
-------------------
EndowSimError (base)
├── ConfigurationError - Invalid configuration or parameters
│   └── ConfigurationMismatch - Asset-class key sets disagree across inputs
├── ValidationError - Data validation failures
│   ├── InvalidCorrelationMatrix - Not square/symmetric/unit-diagonal/PSD
│   └── InvalidWeights - Missing keys or weights not summing to ~100
└── SimulationTimeoutError - Ensemble generation exceeded its deadline

All of these are fatal: they abort the request before (or instead of)
returning statistics. Per-path numeric edge cases (exhausted portfolios,
division by zero in percentage changes) are handled locally and never
surface here.

Usage
-----
>>> from endowsim.exceptions import InvalidCorrelationMatrix, EndowSimError
>>>
>>> raise InvalidCorrelationMatrix("correlation matrix must be symmetric")
>>>
>>> try:
...     result = engine.run()
... except EndowSimError as e:
...     print(f"EndowSim error: {e}")
"""

__all__ = [
    "EndowSimError",
    "ConfigurationError",
    "ConfigurationMismatch",
    "ValidationError",
    "InvalidCorrelationMatrix",
    "InvalidWeights",
    "SimulationTimeoutError",
]


class EndowSimError(Exception):
    """
    Base exception for all EndowSim errors.

    Examples
    --------
    >>> try:
    ...     engine.run()
    ... except EndowSimError as e:
    ...     logger.error("Simulation failed: %s", e)
    """
    pass


class ConfigurationError(EndowSimError):
    """
    Invalid configuration or parameters.

    Raised when the simulation configuration is structurally unusable,
    such as a stress event naming an unknown asset class or a benchmark
    blend with no recognised weights.
    """
    pass


class ConfigurationMismatch(ConfigurationError):
    """
    Asset-class key sets disagree across assumptions, weights and the
    correlation matrix ordering.

    Examples
    --------
    >>> raise ConfigurationMismatch(
    ...     "portfolioWeights has keys not in assetAssumptions: ['hedgeFunds']"
    ... )
    """
    pass


class ValidationError(EndowSimError):
    """
    Data validation failures.

    Raised when input data fails numeric validation checks, such as
    invalid array shapes or out-of-bounds values.
    """
    pass


class InvalidCorrelationMatrix(ValidationError):
    """
    Correlation matrix is unusable for correlated-normal generation.

    Raised when the matrix is not square, does not match the number of
    asset classes, is not symmetric, has a non-unit diagonal, has entries
    outside [-1, 1], or is not positive semi-definite.

    Examples
    --------
    >>> raise InvalidCorrelationMatrix(
    ...     "correlation matrix is not positive semi-definite "
    ...     "(negative pivot -0.412 at row 2)"
    ... )
    """
    pass


class InvalidWeights(ValidationError):
    """
    Portfolio weights are incomplete or do not sum to 100.

    Examples
    --------
    >>> raise InvalidWeights("portfolio weights sum to 95.00, expected 100")
    """
    pass


class SimulationTimeoutError(EndowSimError):
    """
    Ensemble generation exceeded its deadline.

    Percentiles and success rates over a partial ensemble would be biased,
    so the whole request fails instead of returning partial statistics.
    """
    pass

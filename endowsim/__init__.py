"""
EndowSim — Endowment Monte Carlo Simulation Engine

Projects a multi-asset endowment portfolio over a multi-decade horizon under
correlated random returns, inflation, spending policy, rebalancing and
stress scenarios, and reduces thousands of paths to percentile bands,
success probabilities, risk metrics and representative paths.

Modules
-------
- config          : Request models (Pydantic) and application settings
- assumptions     : Strict internal simulation model
- correlation     : Correlation validation and Cholesky factor
- returns         : Correlated return / CPI sampler with per-path streams
- evolution       : Annual portfolio evolution
- spending        : Spending policies
- simulation      : Path generation and engine orchestration
- aggregation     : Ensemble statistics and risk metrics
- representative  : Representative path selection
- spending_cuts   : Worst year-over-year cut analysis
- serialization   : JSON requests and responses
- utils           : Shared utilities (percentiles, finance helpers, formatters)
- plotting        : Percentile fan chart with success panel
- cli             : Click command-line interface

"""

__version__ = "0.1.0"

from .config import SimulationRequest, AppSettings
from .simulation import SimulationEngine, SimulationResult
from . import utils

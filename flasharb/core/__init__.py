"""Core data models and errors"""

from flasharb.core.errors import (
    ArbitrageError,
    ConcurrencyLimitError,
    ExecutionInProgressError,
    ExecutionRejectedError,
    OpportunityExpiredError,
    SettlementError,
    SettlementTimeoutError,
    SimulationError,
    TransactionValidationError,
)
from flasharb.core.models import (
    ArbitrageOpportunity,
    ExecutionResult,
    OpportunityScore,
    OptimizedRoute,
    PricedPool,
    RankedOpportunity,
    SettlementOutcome,
    SettlementRequest,
)

__all__ = [
    "ArbitrageError",
    "ArbitrageOpportunity",
    "ConcurrencyLimitError",
    "ExecutionInProgressError",
    "ExecutionRejectedError",
    "ExecutionResult",
    "OpportunityExpiredError",
    "OpportunityScore",
    "OptimizedRoute",
    "PricedPool",
    "RankedOpportunity",
    "SettlementError",
    "SettlementOutcome",
    "SettlementRequest",
    "SettlementTimeoutError",
    "SimulationError",
    "TransactionValidationError",
]

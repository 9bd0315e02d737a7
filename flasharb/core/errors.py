"""Exception hierarchy for the arbitrage pipeline"""


class ArbitrageError(Exception):
    """Base class for pipeline errors"""


class SimulationError(ArbitrageError):
    """Swap simulation could not be performed (invalid reserves or amounts)"""


class TransactionValidationError(ArbitrageError):
    """Settlement request failed structural validation"""

    def __init__(self, errors):
        self.errors = list(errors)
        super().__init__(f"Transaction validation failed: {', '.join(self.errors)}")


class SettlementError(ArbitrageError):
    """Settlement submission failed or the contract call reverted"""


class SettlementTimeoutError(SettlementError):
    """Settlement did not confirm within the configured timeout"""


class ExecutionRejectedError(ArbitrageError):
    """Execution request rejected before any work was started"""

    def __init__(self, opportunity_id: str, message: str):
        self.opportunity_id = opportunity_id
        super().__init__(message)


class ExecutionInProgressError(ExecutionRejectedError):
    """An execution for the same opportunity identity is already in flight"""

    def __init__(self, opportunity_id: str):
        super().__init__(opportunity_id, f"Opportunity {opportunity_id} already being executed")


class ConcurrencyLimitError(ExecutionRejectedError):
    """Global in-flight execution cap reached"""

    def __init__(self, opportunity_id: str, limit: int):
        self.limit = limit
        super().__init__(
            opportunity_id,
            f"Max concurrent executions reached ({limit}), rejecting {opportunity_id}",
        )


class OpportunityExpiredError(ExecutionRejectedError):
    """Opportunity is past its expiry timestamp"""

    def __init__(self, opportunity_id: str, expires_at: float):
        self.expires_at = expires_at
        super().__init__(opportunity_id, f"Opportunity {opportunity_id} expired at {expires_at}")


class ContractCallError(ArbitrageError):
    """Contract call was rejected or failed on chain"""

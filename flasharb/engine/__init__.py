"""Route optimization and flash-loan execution"""

from flasharb.engine.flash_loan_engine import ExecutionState, FlashLoanEngine
from flasharb.engine.route_optimizer import RouteOptimizer
from flasharb.engine.settlement import DryRunSettlementClient, SettlementClient, Web3SettlementClient
from flasharb.engine.transaction_builder import TransactionBuilder

__all__ = [
    "DryRunSettlementClient",
    "ExecutionState",
    "FlashLoanEngine",
    "RouteOptimizer",
    "SettlementClient",
    "TransactionBuilder",
    "Web3SettlementClient",
]

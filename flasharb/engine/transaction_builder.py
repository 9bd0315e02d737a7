"""Builds and validates flash-loan executor calls"""

import time
from typing import List, Optional

import structlog

from flasharb.config.models import ExecutionConfig
from flasharb.core.errors import TransactionValidationError
from flasharb.core.models import ArbitrageOpportunity, OptimizedRoute, SettlementRequest
from flasharb.detectors.amm import BPS_DENOMINATOR, simulate_round_trip

logger = structlog.get_logger()

FLASH_LOAN_METHOD = "executeFlashLoanArbitrage"
STALE_REQUEST_ERROR = "Transaction too old, rebuild required"
DRY_RUN_CONTRACT = "dry-run"


class TransactionBuilder:
    """Turns an opportunity and its optimized route into a settlement request"""

    def __init__(self, config: ExecutionConfig):
        self.config = config
        self._logger = logger.bind(component="transaction_builder")

    def build_flash_loan_transaction(
        self,
        opportunity: ArbitrageOpportunity,
        route: Optional[OptimizedRoute] = None,
    ) -> SettlementRequest:
        """
        Build the executor call for an opportunity.

        Args:
            opportunity: Opportunity to settle
            route: Optimized route; the detected amount is used when omitted

        Returns:
            SettlementRequest stamped with its build time

        Raises:
            SimulationError: If the round trip cannot be simulated at the chosen amount
        """
        borrow_amount = route.optimized_amount if route else opportunity.borrow_amount
        expected_profit = route.expected_profit if route else opportunity.expected_profit

        trip = simulate_round_trip(
            opportunity.pool_a, opportunity.pool_b, opportunity.token_borrow, borrow_amount
        )
        min_amount_out = (
            trip.final_amount * (BPS_DENOMINATOR - self.config.max_slippage_bps) // BPS_DENOMINATOR
        )

        request = SettlementRequest(
            opportunity=opportunity,
            contract_address=self._contract_address(opportunity.chain),
            method=FLASH_LOAN_METHOD,
            token_borrow=opportunity.borrow_token.address,
            token_intermediate=opportunity.intermediate_token.address,
            borrow_amount=borrow_amount,
            venue_a_type=int(opportunity.pool_a.pool.venue_type),
            venue_a_pool=opportunity.pool_a.pool.pool_address,
            venue_b_type=int(opportunity.pool_b.pool.venue_type),
            venue_b_pool=opportunity.pool_b.pool.pool_address,
            min_profit_bps=self.config.min_profit_bps,
            max_slippage_bps=self.config.max_slippage_bps,
            min_amount_out=min_amount_out,
            expected_profit=expected_profit,
            built_at=time.time(),
        )

        self._logger.info(
            "flash_loan_transaction_built",
            opportunity_id=opportunity.id,
            chain=opportunity.chain,
            pair=f"{opportunity.token_borrow}/{opportunity.token_intermediate}",
            borrow_amount=borrow_amount,
            min_amount_out=min_amount_out,
        )
        return request

    def _contract_address(self, chain: str) -> str:
        if self.config.executor_addresses:
            address = self.config.executor_addresses.get(chain, "")
        else:
            address = self.config.flash_loan_executor_address
        if not address and self.config.mode == "dry_run":
            return DRY_RUN_CONTRACT
        return address

    def validate_transaction(self, request: SettlementRequest) -> List[str]:
        """
        Check a request is well-formed and fresh.

        Returns:
            Validation errors; empty when the request may be submitted
        """
        errors = []

        if not request.contract_address:
            errors.append("Invalid contract address")
        if not request.method:
            errors.append("Missing method name")
        if not request.args:
            errors.append("Missing arguments")
        if request.borrow_amount <= 0:
            errors.append("Invalid borrow amount")
        if self.is_stale(request):
            errors.append(STALE_REQUEST_ERROR)

        return errors

    def is_stale(self, request: SettlementRequest) -> bool:
        return time.time() - request.built_at > self.config.request_max_age_seconds

    def ensure_valid(self, request: SettlementRequest) -> None:
        """Raise TransactionValidationError if the request must not be submitted"""
        errors = self.validate_transaction(request)
        if errors:
            raise TransactionValidationError(errors)

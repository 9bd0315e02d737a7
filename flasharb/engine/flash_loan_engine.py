"""Flash-loan execution with in-flight guard, bounded concurrency and retry"""

import asyncio
import time
from collections import deque
from decimal import Decimal
from enum import Enum
from typing import Deque, Dict, List, Optional, Set

import structlog

from flasharb.config.models import ExecutionConfig
from flasharb.core.errors import (
    ArbitrageError,
    ConcurrencyLimitError,
    ExecutionInProgressError,
    OpportunityExpiredError,
    SettlementTimeoutError,
)
from flasharb.core.models import ArbitrageOpportunity, ExecutionResult
from flasharb.detectors.opportunity_detector import borrow_token_usd_price
from flasharb.detectors.pool_scanner import to_units
from flasharb.engine.route_optimizer import RouteOptimizer
from flasharb.engine.settlement import SettlementClient
from flasharb.engine.transaction_builder import TransactionBuilder
from flasharb.monitoring import metrics
from flasharb.monitoring.execution_metrics import ExecutionMetrics

logger = structlog.get_logger()


class ExecutionState(Enum):
    """Execution state of one opportunity identity"""

    IDLE = "idle"
    EXECUTING = "executing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class FlashLoanEngine:
    """
    Executes approved opportunities against a settlement client.

    An opportunity id is claimed synchronously before any await, so a second
    request for the same id, a request over the concurrency cap, or a request
    for an expired opportunity is rejected immediately. The claim is held for
    the whole retry sequence. Each sequence yields exactly one ExecutionResult,
    which is recorded once in the history and the rolling metrics.
    """

    def __init__(
        self,
        config: ExecutionConfig,
        settlement_client: SettlementClient,
        execution_metrics: ExecutionMetrics,
        route_optimizer: Optional[RouteOptimizer] = None,
        transaction_builder: Optional[TransactionBuilder] = None,
        reference_prices_usd: Optional[Dict[str, Decimal]] = None,
        native_token_usd: Optional[Dict[str, Decimal]] = None,
    ):
        """
        Initialize execution engine.

        Args:
            config: Execution bounds and parameters
            settlement_client: Live or dry-run settlement client
            execution_metrics: Rolling metrics written by this engine only
            route_optimizer: Borrow amount optimizer
            transaction_builder: Settlement request builder
            reference_prices_usd: USD prices for non-stable borrow tokens
            native_token_usd: USD price of each chain's gas token, keyed by chain
        """
        self.config = config
        self.settlement_client = settlement_client
        self.execution_metrics = execution_metrics
        self.reference_prices_usd = dict(reference_prices_usd or {})
        self.route_optimizer = route_optimizer or RouteOptimizer(config, self.reference_prices_usd)
        self.transaction_builder = transaction_builder or TransactionBuilder(config)
        self.native_token_usd = dict(native_token_usd or {})

        self._active: Set[str] = set()
        self._states: Dict[str, ExecutionState] = {}
        self._history: Deque[ExecutionResult] = deque(maxlen=config.history_size)
        self._logger = logger.bind(component="flash_loan_engine", mode=config.mode)

    def get_state(self, opportunity_id: str) -> ExecutionState:
        return self._states.get(opportunity_id, ExecutionState.IDLE)

    def get_active_executions_count(self) -> int:
        return len(self._active)

    def can_execute_more(self) -> bool:
        """Check the in-flight count is below the concurrency cap"""
        return len(self._active) < self.config.max_concurrent_executions

    def get_execution_history(self) -> List[ExecutionResult]:
        """Most recent execution results, oldest first"""
        return list(self._history)

    def _claim(self, opportunity: ArbitrageOpportunity) -> None:
        if opportunity.id in self._active:
            metrics.execution_rejections.labels(reason="in_progress").inc()
            raise ExecutionInProgressError(opportunity.id)

        if not self.can_execute_more():
            metrics.execution_rejections.labels(reason="concurrency_limit").inc()
            raise ConcurrencyLimitError(opportunity.id, self.config.max_concurrent_executions)

        if opportunity.is_expired(time.time()):
            metrics.execution_rejections.labels(reason="expired").inc()
            raise OpportunityExpiredError(opportunity.id, opportunity.expires_at)

        self._active.add(opportunity.id)
        self._states[opportunity.id] = ExecutionState.EXECUTING
        metrics.executions_in_flight.set(len(self._active))

    def _release(self, opportunity_id: str, success: bool) -> None:
        self._active.discard(opportunity_id)
        self._states[opportunity_id] = ExecutionState.SUCCEEDED if success else ExecutionState.FAILED
        metrics.executions_in_flight.set(len(self._active))

    def dispatch(self, opportunity: ArbitrageOpportunity) -> "asyncio.Task[ExecutionResult]":
        """
        Claim an opportunity and run its retry sequence as a background task.

        Raises:
            ExecutionInProgressError: Same id already in flight
            ConcurrencyLimitError: In-flight cap reached
            OpportunityExpiredError: Opportunity past expiry
        """
        self._claim(opportunity)
        return asyncio.create_task(self._run_claimed(opportunity, self.config.max_retries))

    async def execute_arbitrage(self, opportunity: ArbitrageOpportunity) -> ExecutionResult:
        """Execute a single attempt"""
        self._claim(opportunity)
        return await self._run_claimed(opportunity, 1)

    async def execute_with_retry(self, opportunity: ArbitrageOpportunity) -> ExecutionResult:
        """
        Execute with up to max_retries attempts and a fixed delay between them.

        Returns:
            The first successful result, or one aggregated failure carrying the last error
        """
        self._claim(opportunity)
        return await self._run_claimed(opportunity, self.config.max_retries)

    async def _run_claimed(self, opportunity: ArbitrageOpportunity, max_attempts: int) -> ExecutionResult:
        start_time = time.time()
        errors: List[str] = []
        attempts = 0
        result: Optional[ExecutionResult] = None

        try:
            for attempt in range(1, max_attempts + 1):
                if opportunity.is_expired(time.time()):
                    errors.append(f"Opportunity {opportunity.id} expired")
                    break

                attempts = attempt
                self._logger.info(
                    "execution_attempt",
                    opportunity_id=opportunity.id,
                    attempt=attempt,
                    max_attempts=max_attempts,
                )
                try:
                    result = await self._attempt(opportunity, start_time, attempt)
                    break
                except Exception as e:
                    errors.append(str(e))
                    self._logger.warning(
                        "execution_attempt_failed",
                        opportunity_id=opportunity.id,
                        attempt=attempt,
                        error=str(e),
                        error_type=type(e).__name__,
                    )

                if attempt < max_attempts:
                    await asyncio.sleep(self.config.retry_delay_ms / 1000)

            if result is None:
                result = ExecutionResult(
                    success=False,
                    opportunity_id=opportunity.id,
                    execution_time_ms=(time.time() - start_time) * 1000,
                    attempts=attempts,
                    error=errors[-1] if errors else "All retries failed",
                    errors=errors,
                )
        finally:
            self._release(opportunity.id, result is not None and result.success)

        self._record(result)
        return result

    async def _attempt(
        self, opportunity: ArbitrageOpportunity, start_time: float, attempt: int
    ) -> ExecutionResult:
        route = self.route_optimizer.optimize_borrow_amount(opportunity)
        if not self.route_optimizer.is_route_profitable(route, self.config.min_execution_profit_usd):
            raise ArbitrageError("Route no longer profitable after optimization")

        request = self.transaction_builder.build_flash_loan_transaction(opportunity, route)
        self.transaction_builder.ensure_valid(request)

        try:
            outcome = await asyncio.wait_for(
                self.settlement_client.submit(request),
                timeout=self.config.tx_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise SettlementTimeoutError(
                f"Settlement not confirmed within {self.config.tx_timeout_seconds}s"
            ) from e

        usd_price = borrow_token_usd_price(opportunity.pool_a, self.reference_prices_usd)
        actual_profit_usd = to_units(outcome.actual_profit, opportunity.borrow_token.decimals) * usd_price
        gas_cost_usd = outcome.gas_cost_native * self.native_token_usd.get(opportunity.chain, Decimal("0"))

        self._logger.info(
            "execution_succeeded",
            opportunity_id=opportunity.id,
            tx_hash=outcome.transaction_hash,
            actual_profit=outcome.actual_profit,
            actual_profit_usd=float(actual_profit_usd),
            gas_cost_usd=float(gas_cost_usd),
            attempt=attempt,
        )

        return ExecutionResult(
            success=True,
            opportunity_id=opportunity.id,
            execution_time_ms=(time.time() - start_time) * 1000,
            transaction_hash=outcome.transaction_hash,
            actual_profit=outcome.actual_profit,
            actual_profit_usd=actual_profit_usd,
            gas_cost_usd=gas_cost_usd,
            attempts=attempt,
        )

    def _record(self, result: ExecutionResult) -> None:
        self._history.append(result)
        self.execution_metrics.record_execution(
            result.success,
            result.actual_profit_usd,
            result.gas_cost_usd,
            result.execution_time_ms,
        )
        if not result.success:
            self._logger.error(
                "execution_failed",
                opportunity_id=result.opportunity_id,
                attempts=result.attempts,
                error=result.error,
            )

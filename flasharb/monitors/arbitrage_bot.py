"""Arbitrage bot: fixed-interval scan, score and execute cycle"""

import asyncio
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Set

import structlog

from flasharb.ai.decision_engine import DecisionEngine
from flasharb.ai.opportunity_ranker import OpportunityRanker
from flasharb.core.errors import (
    ConcurrencyLimitError,
    ExecutionInProgressError,
    OpportunityExpiredError,
)
from flasharb.core.models import ArbitrageOpportunity, ExecutionResult, RankedOpportunity
from flasharb.detectors.opportunity_detector import OpportunityDetector
from flasharb.detectors.opportunity_store import OpportunityStore
from flasharb.detectors.pool_scanner import PoolScanner
from flasharb.engine.flash_loan_engine import FlashLoanEngine
from flasharb.monitoring import metrics
from flasharb.monitoring.execution_metrics import ExecutionMetrics

logger = structlog.get_logger()


@dataclass(frozen=True)
class BotStatus:
    """Read-only status snapshot for operators and dashboards"""

    running: bool
    mode: str
    auto_execute: bool
    opportunities: List[ArbitrageOpportunity]
    detected: int
    executed: int
    successful: int
    failed: int
    total_profit_usd: Decimal
    total_cost_usd: Decimal
    net_profit_usd: Decimal
    success_rate: float
    average_execution_time_ms: float
    active_executions: int
    scans_performed: int
    uptime_seconds: float


class ArbitrageBot:
    """
    Drives scan -> detect -> store -> score -> execute on a fixed interval.

    Executions run as background tasks so the next scan cycle is not blocked.
    Stopping finishes the current cycle, stops new cycles and waits for
    in-flight executions.
    """

    def __init__(
        self,
        scanner: PoolScanner,
        detector: OpportunityDetector,
        store: OpportunityStore,
        decision_engine: DecisionEngine,
        engine: FlashLoanEngine,
        execution_metrics: ExecutionMetrics,
        ranker: Optional[OpportunityRanker] = None,
        scan_interval_ms: int = 5000,
        auto_execute: bool = False,
    ):
        """
        Initialize arbitrage bot.

        Args:
            scanner: Multi-venue pool scanner
            detector: Opportunity detector
            store: Live opportunity store
            decision_engine: Scoring engine
            engine: Flash-loan execution engine
            execution_metrics: Rolling metrics shared with the engines
            ranker: Execution ranker
            scan_interval_ms: Delay between cycle starts
            auto_execute: Dispatch approved opportunities automatically
        """
        self.scanner = scanner
        self.detector = detector
        self.store = store
        self.decision_engine = decision_engine
        self.engine = engine
        self.execution_metrics = execution_metrics
        self.ranker = ranker or OpportunityRanker()
        self.scan_interval_ms = scan_interval_ms
        self.auto_execute = auto_execute

        self._running = False
        self._stop_event = asyncio.Event()
        self._scan_task: Optional[asyncio.Task] = None
        self._execution_tasks: Set[asyncio.Task] = set()
        self._logger = logger.bind(component="arbitrage_bot")

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the scan loop"""
        if self._running:
            self._logger.warning("arbitrage_bot_already_running")
            return

        self._running = True
        self._stop_event.clear()
        self._scan_task = asyncio.create_task(self._scan_loop())

        self._logger.info(
            "arbitrage_bot_started",
            scan_interval_ms=self.scan_interval_ms,
            auto_execute=self.auto_execute,
            mode=self.engine.config.mode,
        )

    async def stop(self) -> None:
        """Stop accepting cycles and wait for in-flight executions"""
        if not self._running:
            self._logger.warning("arbitrage_bot_not_running")
            return

        self._running = False
        self._stop_event.set()

        if self._scan_task:
            await self._scan_task
            self._scan_task = None

        if self._execution_tasks:
            self._logger.info("waiting_for_executions", in_flight=len(self._execution_tasks))
            await asyncio.gather(*self._execution_tasks, return_exceptions=True)

        self.execution_metrics.log_summary()
        self._logger.info("arbitrage_bot_stopped")

    async def _scan_loop(self) -> None:
        while self._running:
            try:
                await self.run_cycle()
            except Exception as e:
                self.execution_metrics.record_error(e)
                self._logger.error(
                    "scan_cycle_error",
                    error=str(e),
                    error_type=type(e).__name__,
                )

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.scan_interval_ms / 1000)
            except asyncio.TimeoutError:
                pass

    async def run_cycle(self) -> List[RankedOpportunity]:
        """
        Run one scan cycle.

        Returns:
            Ranked executable opportunities for this cycle
        """
        start_time = time.time()

        priced_pools = await self.scanner.fetch_all_pool_prices()
        opportunities = self.detector.detect(priced_pools)

        stored = sum(1 for opportunity in opportunities if self.store.upsert(opportunity))
        self.execution_metrics.record_opportunity_detected(len(opportunities))
        self.store.sweep_expired()

        scores = self.decision_engine.rank_opportunities(self.store.list())
        ranked = self.ranker.rank_opportunities(scores)

        if self.auto_execute and ranked:
            self._dispatch(ranked)

        duration = time.time() - start_time
        metrics.scan_latency.observe(duration)
        self.execution_metrics.record_scan(duration * 1000)

        self._logger.info(
            "scan_cycle_completed",
            pools_priced=len(priced_pools),
            opportunities_found=len(opportunities),
            opportunities_stored=stored,
            live_opportunities=len(self.store),
            executable=len(ranked),
            recommendation=self.ranker.generate_recommendation(ranked),
            duration_ms=round(duration * 1000, 1),
        )
        return ranked

    def _dispatch(self, ranked: List[RankedOpportunity]) -> None:
        """Start executions in rank order until the concurrency cap is hit"""
        for item in ranked:
            if not self.engine.can_execute_more():
                self._logger.info(
                    "execution_cap_reached",
                    active=self.engine.get_active_executions_count(),
                    skipped_from_rank=item.rank,
                )
                break

            opportunity = item.opportunity
            try:
                task = self.engine.dispatch(opportunity)
            except (ExecutionInProgressError, OpportunityExpiredError) as e:
                self._logger.debug("execution_skipped", opportunity_id=opportunity.id, reason=str(e))
                continue
            except ConcurrencyLimitError:
                break

            self._logger.info(
                "execution_dispatched",
                opportunity_id=opportunity.id,
                rank=item.rank,
                priority=item.execution_priority,
                score=round(item.score.total_score, 2),
            )
            self._execution_tasks.add(task)
            task.add_done_callback(self._on_execution_done)

    def _on_execution_done(self, task: asyncio.Task) -> None:
        self._execution_tasks.discard(task)
        if task.cancelled():
            return

        error = task.exception()
        if error is not None:
            self.execution_metrics.record_error(error)
            return

        result: ExecutionResult = task.result()
        if result.success:
            self.store.remove(result.opportunity_id)

    def get_status(self) -> BotStatus:
        snapshot = self.execution_metrics.snapshot()
        return BotStatus(
            running=self._running,
            mode=self.engine.config.mode,
            auto_execute=self.auto_execute,
            opportunities=self.store.list(),
            detected=snapshot.detected,
            executed=snapshot.executed,
            successful=snapshot.successful,
            failed=snapshot.failed,
            total_profit_usd=snapshot.total_profit_usd,
            total_cost_usd=snapshot.total_cost_usd,
            net_profit_usd=snapshot.net_profit_usd,
            success_rate=snapshot.success_rate,
            average_execution_time_ms=snapshot.average_execution_time_ms,
            active_executions=self.engine.get_active_executions_count(),
            scans_performed=snapshot.scans_performed,
            uptime_seconds=snapshot.uptime_seconds,
        )

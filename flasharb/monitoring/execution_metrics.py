"""Rolling execution metrics shared between the execution engine and scoring"""

import time
from collections import deque
from dataclasses import dataclass
from decimal import Decimal
from typing import Deque

import structlog

from flasharb.monitoring import metrics

logger = structlog.get_logger()


@dataclass(frozen=True)
class MetricsSnapshot:
    """Read-only view of execution metrics"""

    detected: int
    executed: int
    successful: int
    failed: int
    total_profit_usd: Decimal
    total_cost_usd: Decimal
    net_profit_usd: Decimal
    success_rate: float
    consecutive_failures: int
    average_execution_time_ms: float
    last_execution_timestamp: float
    scans_performed: int
    average_scan_time_ms: float
    errors_encountered: int
    uptime_seconds: float


class ExecutionMetrics:
    """
    Tracks opportunity counts, profitability and rolling execution performance.

    The execution engine is the only writer of execution outcomes; the decision
    engine reads snapshots to derive execution risk.
    """

    def __init__(self, window_size: int = 100):
        """
        Initialize metrics collector.

        Args:
            window_size: Number of recent execution times kept for the average
        """
        self.window_size = window_size
        self._logger = logger.bind(component="execution_metrics")
        self.reset()

    def reset(self) -> None:
        """Reset all counters"""
        self._start_time = time.time()
        self._detected = 0
        self._executed = 0
        self._successful = 0
        self._failed = 0
        self._total_profit_usd = Decimal("0")
        self._total_cost_usd = Decimal("0")
        self._consecutive_failures = 0
        self._last_execution_timestamp = 0.0
        self._execution_times: Deque[float] = deque(maxlen=self.window_size)
        self._scans_performed = 0
        self._average_scan_time_ms = 0.0
        self._errors_encountered = 0

    def record_opportunity_detected(self, count: int = 1) -> None:
        """Record detected opportunities"""
        self._detected += count

    def record_scan(self, scan_time_ms: float) -> None:
        """Record a completed scan cycle"""
        self._scans_performed += 1
        previous_total = self._average_scan_time_ms * (self._scans_performed - 1)
        self._average_scan_time_ms = (previous_total + scan_time_ms) / self._scans_performed

    def record_error(self, error: Exception) -> None:
        """Record an unexpected pipeline error"""
        self._errors_encountered += 1
        self._logger.error(
            "pipeline_error_recorded",
            error=str(error),
            error_type=type(error).__name__,
        )

    def record_execution(
        self,
        success: bool,
        profit_usd: Decimal,
        cost_usd: Decimal,
        execution_time_ms: float,
    ) -> None:
        """
        Record the outcome of one execution attempt sequence.

        Args:
            success: Whether the settlement succeeded
            profit_usd: Realized profit in USD (ignored on failure)
            cost_usd: Execution cost in USD
            execution_time_ms: Wall time of the attempt sequence
        """
        self._executed += 1

        if success:
            self._successful += 1
            self._total_profit_usd += profit_usd
            self._consecutive_failures = 0
            metrics.realized_profit_usd.inc(float(max(profit_usd, Decimal("0"))))
        else:
            self._failed += 1
            self._consecutive_failures += 1

        self._total_cost_usd += cost_usd
        if cost_usd > 0:
            metrics.execution_cost_usd.inc(float(cost_usd))

        self._execution_times.append(execution_time_ms)
        self._last_execution_timestamp = time.time()

        metrics.executions_total.labels(outcome="success" if success else "failure").inc()
        metrics.execution_latency.observe(execution_time_ms / 1000)
        metrics.execution_success_rate.set(self.success_rate)

    @property
    def success_rate(self) -> float:
        if self._executed == 0:
            return 0.0
        return self._successful / self._executed

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    def snapshot(self) -> MetricsSnapshot:
        """Get an immutable copy of all metrics"""
        average_execution_time_ms = (
            sum(self._execution_times) / len(self._execution_times)
            if self._execution_times
            else 0.0
        )
        return MetricsSnapshot(
            detected=self._detected,
            executed=self._executed,
            successful=self._successful,
            failed=self._failed,
            total_profit_usd=self._total_profit_usd,
            total_cost_usd=self._total_cost_usd,
            net_profit_usd=self._total_profit_usd - self._total_cost_usd,
            success_rate=self.success_rate,
            consecutive_failures=self._consecutive_failures,
            average_execution_time_ms=average_execution_time_ms,
            last_execution_timestamp=self._last_execution_timestamp,
            scans_performed=self._scans_performed,
            average_scan_time_ms=self._average_scan_time_ms,
            errors_encountered=self._errors_encountered,
            uptime_seconds=time.time() - self._start_time,
        )

    def log_summary(self) -> None:
        """Log a metrics summary"""
        snapshot = self.snapshot()
        self._logger.info(
            "metrics_summary",
            detected=snapshot.detected,
            executed=snapshot.executed,
            successful=snapshot.successful,
            failed=snapshot.failed,
            net_profit_usd=float(snapshot.net_profit_usd),
            success_rate=round(snapshot.success_rate, 4),
            consecutive_failures=snapshot.consecutive_failures,
            average_execution_time_ms=round(snapshot.average_execution_time_ms, 1),
            scans_performed=snapshot.scans_performed,
            average_scan_time_ms=round(snapshot.average_scan_time_ms, 1),
            errors=snapshot.errors_encountered,
            uptime_hours=round(snapshot.uptime_seconds / 3600, 2),
        )

"""Multi-factor risk assessment for arbitrage opportunities"""

import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Optional

from flasharb.core.models import ArbitrageOpportunity
from flasharb.detectors.opportunity_detector import borrow_token_usd_price
from flasharb.detectors.pool_scanner import to_units
from flasharb.monitoring.execution_metrics import ExecutionMetrics

RISK_WEIGHTS = {
    "liquidity_risk": 0.3,
    "slippage_risk": 0.25,
    "timing_risk": 0.2,
    "execution_risk": 0.15,
    "market_risk": 0.1,
}

BASELINE_MARKET_RISK = 20.0


@dataclass(frozen=True)
class RiskFactors:
    """Individual risk factors, each 0-100 (higher is riskier)"""

    liquidity_risk: float
    slippage_risk: float
    timing_risk: float
    execution_risk: float
    market_risk: float


def trade_notional_usd(
    opportunity: ArbitrageOpportunity, reference_prices_usd: Dict[str, Decimal]
) -> Decimal:
    """USD value of the borrowed amount"""
    amount = to_units(opportunity.borrow_amount, opportunity.borrow_token.decimals)
    return amount * borrow_token_usd_price(opportunity.pool_a, reference_prices_usd)


class RiskScorer:
    """Breaks opportunity risk down into weighted factors"""

    def __init__(
        self,
        execution_metrics: Optional[ExecutionMetrics] = None,
        reference_prices_usd: Optional[Dict[str, Decimal]] = None,
    ):
        self.execution_metrics = execution_metrics
        self.reference_prices_usd = dict(reference_prices_usd or {})

    def assess_factors(
        self, opportunity: ArbitrageOpportunity, now: Optional[float] = None
    ) -> RiskFactors:
        now = time.time() if now is None else now
        return RiskFactors(
            liquidity_risk=self.assess_liquidity_risk(opportunity),
            slippage_risk=self.assess_slippage_risk(opportunity),
            timing_risk=self.assess_timing_risk(opportunity, now),
            execution_risk=self.assess_execution_risk(),
            market_risk=BASELINE_MARKET_RISK,
        )

    def aggregate_risk(self, factors: RiskFactors) -> float:
        """Weighted sum of the risk factors"""
        return sum(getattr(factors, name) * weight for name, weight in RISK_WEIGHTS.items())

    def assess_liquidity_risk(self, opportunity: ArbitrageOpportunity) -> float:
        min_liquidity = min(opportunity.pool_a.liquidity_usd, opportunity.pool_b.liquidity_usd)
        if min_liquidity <= 0:
            return 100.0

        ratio = trade_notional_usd(opportunity, self.reference_prices_usd) / min_liquidity
        if ratio > Decimal("0.2"):
            return 100.0
        if ratio > Decimal("0.1"):
            return 70.0
        if ratio > Decimal("0.05"):
            return 40.0
        if ratio > Decimal("0.02"):
            return 20.0
        return 10.0

    def assess_slippage_risk(self, opportunity: ArbitrageOpportunity) -> float:
        # Wider margins absorb more slippage
        profit_percentage = float(opportunity.profit_percentage)
        if profit_percentage < 0.3:
            return 80.0
        if profit_percentage < 0.5:
            return 60.0
        if profit_percentage < 1.0:
            return 40.0
        if profit_percentage < 2.0:
            return 20.0
        return 10.0

    def assess_timing_risk(self, opportunity: ArbitrageOpportunity, now: float) -> float:
        age_seconds = opportunity.age_seconds(now)
        if age_seconds > 20:
            return 90.0
        if age_seconds > 15:
            return 70.0
        if age_seconds > 10:
            return 50.0
        if age_seconds > 5:
            return 30.0
        return 10.0

    def assess_execution_risk(self) -> float:
        """Risk from the bot's own recent execution record"""
        if self.execution_metrics is None:
            return 10.0

        snapshot = self.execution_metrics.snapshot()
        if snapshot.consecutive_failures >= 3:
            return 80.0
        if snapshot.consecutive_failures >= 2:
            return 60.0

        if snapshot.executed == 0:
            return 10.0
        if snapshot.success_rate < 0.5:
            return 70.0
        if snapshot.success_rate < 0.7:
            return 50.0
        if snapshot.success_rate < 0.8:
            return 30.0
        return 10.0

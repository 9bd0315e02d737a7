"""Rule-based opportunity scoring and execution gate"""

import time
from decimal import Decimal
from typing import Dict, List, Optional

import structlog

from flasharb.ai.risk_scorer import RiskScorer, trade_notional_usd
from flasharb.config.models import ScoringConfig
from flasharb.core.models import ArbitrageOpportunity, OpportunityScore
from flasharb.monitoring import metrics
from flasharb.monitoring.execution_metrics import ExecutionMetrics

logger = structlog.get_logger()

MIN_TOTAL_SCORE = 50.0


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


class DecisionEngine:
    """
    Scores opportunities and decides whether they should be executed.

    Scoring is deterministic for a given opportunity, evaluation time and
    execution metrics snapshot. The metrics object is only read here; the
    execution engine owns its updates.
    """

    def __init__(
        self,
        config: ScoringConfig,
        execution_metrics: Optional[ExecutionMetrics] = None,
        reference_prices_usd: Optional[Dict[str, Decimal]] = None,
    ):
        """
        Initialize decision engine.

        Args:
            config: Scoring thresholds and the enabled switch
            execution_metrics: Rolling execution metrics for execution-risk feedback
            reference_prices_usd: USD prices for non-stable borrow tokens
        """
        self.config = config
        self.execution_metrics = execution_metrics
        self.reference_prices_usd = dict(reference_prices_usd or {})
        self.risk_scorer = RiskScorer(execution_metrics, self.reference_prices_usd)
        self._logger = logger.bind(component="decision_engine")

    def evaluate_opportunity(
        self, opportunity: ArbitrageOpportunity, now: Optional[float] = None
    ) -> OpportunityScore:
        """
        Score an opportunity.

        Args:
            opportunity: Opportunity to score
            now: Evaluation time used for age-based terms (defaults to current time)

        Returns:
            OpportunityScore with the execution verdict
        """
        if not self.config.enabled:
            return self.simple_evaluation(opportunity)

        now = time.time() if now is None else now

        profit_score = self.calculate_profit_score(opportunity)
        liquidity_score = self.calculate_liquidity_score(opportunity)
        risk_score = self.calculate_risk_score(opportunity, now)

        total_score = profit_score * 0.4 + liquidity_score * 0.3 + (100 - risk_score) * 0.3
        success_probability = self.estimate_success_probability(opportunity, total_score, now)
        should_execute = self.should_execute(total_score, risk_score, success_probability)
        reason = self.generate_reason(should_execute, total_score, risk_score, success_probability)

        metrics.opportunities_scored.labels(decision="execute" if should_execute else "skip").inc()

        factors = self.risk_scorer.assess_factors(opportunity, now)
        self._logger.debug(
            "opportunity_scored",
            opportunity_id=opportunity.id,
            total_score=round(total_score, 2),
            profit_score=round(profit_score, 2),
            liquidity_score=round(liquidity_score, 2),
            risk_score=round(risk_score, 2),
            success_probability=round(success_probability, 4),
            should_execute=should_execute,
            reason=reason,
            aggregate_risk=round(self.risk_scorer.aggregate_risk(factors), 2),
        )

        return OpportunityScore(
            opportunity=opportunity,
            total_score=total_score,
            profit_score=profit_score,
            liquidity_score=liquidity_score,
            risk_score=risk_score,
            success_probability=success_probability,
            should_execute=should_execute,
            reason=reason,
        )

    def rank_opportunities(
        self, opportunities: List[ArbitrageOpportunity], now: Optional[float] = None
    ) -> List[OpportunityScore]:
        """Score all opportunities, sorted by total score descending"""
        now = time.time() if now is None else now
        scores = [self.evaluate_opportunity(opp, now) for opp in opportunities]
        return sorted(scores, key=lambda score: score.total_score, reverse=True)

    def calculate_profit_score(self, opportunity: ArbitrageOpportunity) -> float:
        """0.5% -> 50, 1% -> 75, 2%+ -> 100, linear in between"""
        profit_percentage = float(opportunity.profit_percentage)

        if profit_percentage >= 2.0:
            return 100.0
        if profit_percentage >= 1.0:
            return 75 + (profit_percentage - 1.0) * 25
        if profit_percentage >= 0.5:
            return 50 + (profit_percentage - 0.5) * 50
        return _clamp(profit_percentage * 100)

    def calculate_liquidity_score(self, opportunity: ArbitrageOpportunity) -> float:
        """$50k -> 50, $100k -> 75, $200k+ -> 100 on average venue liquidity"""
        average_liquidity = float(
            (opportunity.pool_a.liquidity_usd + opportunity.pool_b.liquidity_usd) / 2
        )

        if average_liquidity >= 200000:
            return 100.0
        if average_liquidity >= 100000:
            return 75 + (average_liquidity - 100000) / 100000 * 25
        if average_liquidity >= 50000:
            return 50 + (average_liquidity - 50000) / 50000 * 25
        return _clamp(average_liquidity / 50000 * 50)

    def calculate_risk_score(self, opportunity: ArbitrageOpportunity, now: float) -> float:
        """Additive risk penalty, capped at 100 (higher is riskier)"""
        risk_score = 0.0

        age_seconds = opportunity.age_seconds(now)
        if age_seconds > 15:
            risk_score += 30
        elif age_seconds > 10:
            risk_score += 20
        elif age_seconds > 5:
            risk_score += 10

        size_usd = trade_notional_usd(opportunity, self.reference_prices_usd)
        if size_usd > 50000:
            risk_score += 30
        elif size_usd > 25000:
            risk_score += 20
        elif size_usd > 10000:
            risk_score += 10

        min_liquidity = min(opportunity.pool_a.liquidity_usd, opportunity.pool_b.liquidity_usd)
        if min_liquidity < 20000:
            risk_score += 30
        elif min_liquidity < 50000:
            risk_score += 15

        profit_percentage = float(opportunity.profit_percentage)
        if profit_percentage < 0.3:
            risk_score += 25
        elif profit_percentage < 0.5:
            risk_score += 15

        risk_score += self.calculate_execution_feedback_risk()

        return min(risk_score, 100.0)

    def calculate_execution_feedback_risk(self) -> float:
        """Extra risk while recent executions are failing"""
        if self.execution_metrics is None:
            return 0.0

        snapshot = self.execution_metrics.snapshot()
        penalty = 0.0
        if snapshot.consecutive_failures >= 3:
            penalty += 30
        elif snapshot.consecutive_failures >= 2:
            penalty += 15

        if snapshot.executed >= 5 and snapshot.success_rate < 0.5:
            penalty += 20

        return penalty

    def estimate_success_probability(
        self, opportunity: ArbitrageOpportunity, total_score: float, now: float
    ) -> float:
        probability = total_score / 100

        if opportunity.age_seconds(now) > 10:
            probability *= 0.8
        if float(opportunity.profit_percentage) < 0.3:
            probability *= 0.7

        return max(0.0, min(1.0, probability))

    def should_execute(self, total_score: float, risk_score: float, success_probability: float) -> bool:
        if total_score < MIN_TOTAL_SCORE:
            return False
        if risk_score > self.config.risk_threshold:
            return False
        if success_probability < self.config.min_success_probability:
            return False
        return True

    def generate_reason(
        self,
        should_execute: bool,
        total_score: float,
        risk_score: float,
        success_probability: float,
    ) -> str:
        """Human-readable explanation of the verdict"""
        if should_execute:
            return (
                f"Good opportunity (score: {total_score:.0f}, risk: {risk_score:.0f}, "
                f"prob: {success_probability * 100:.0f}%)"
            )

        if total_score < MIN_TOTAL_SCORE:
            return f"Score too low ({total_score:.0f}/100)"
        if risk_score > self.config.risk_threshold:
            return f"Risk too high ({risk_score:.0f}/100)"
        if success_probability < self.config.min_success_probability:
            return f"Success probability too low ({success_probability * 100:.0f}%)"
        return "Unknown reason"

    def simple_evaluation(self, opportunity: ArbitrageOpportunity) -> OpportunityScore:
        """Operator override: approve everything with maximum scores"""
        return OpportunityScore(
            opportunity=opportunity,
            total_score=100.0,
            profit_score=100.0,
            liquidity_score=100.0,
            risk_score=0.0,
            success_probability=1.0,
            should_execute=True,
            reason="AI disabled - simple pass-through",
        )

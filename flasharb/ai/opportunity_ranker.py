"""Execution ranking of scored opportunities"""

from functools import cmp_to_key
from typing import List

import structlog

from flasharb.core.models import OpportunityScore, RankedOpportunity

logger = structlog.get_logger()

PRIORITIES = ("high", "medium", "low")


def _compare_scores(a: OpportunityScore, b: OpportunityScore) -> float:
    # Total score first, then success probability, then USD profit
    if abs(a.total_score - b.total_score) > 5:
        return b.total_score - a.total_score
    if abs(a.success_probability - b.success_probability) > 0.1:
        return b.success_probability - a.success_probability
    return float(b.opportunity.expected_profit_usd - a.opportunity.expected_profit_usd)


class OpportunityRanker:
    """Orders executable opportunities and assigns an execution priority"""

    def rank_opportunities(self, scores: List[OpportunityScore]) -> List[RankedOpportunity]:
        executable = [score for score in scores if score.should_execute]
        if not executable:
            logger.debug("no_executable_opportunities")
            return []

        ordered = sorted(executable, key=cmp_to_key(_compare_scores))
        total = len(ordered)

        return [
            RankedOpportunity(
                opportunity=score.opportunity,
                score=score,
                rank=index + 1,
                execution_priority=self.determine_execution_priority(score, index, total),
            )
            for index, score in enumerate(ordered)
        ]

    def determine_execution_priority(self, score: OpportunityScore, index: int, total: int) -> str:
        """Top 20% scoring above 80 are high, top 50% above 60 are medium"""
        if index < total * 0.2 and score.total_score > 80:
            return "high"
        if index < total * 0.5 and score.total_score > 60:
            return "medium"
        return "low"

    def filter_by_priority(self, ranked: List[RankedOpportunity], priority: str) -> List[RankedOpportunity]:
        if priority not in PRIORITIES:
            raise ValueError(f"Unknown priority: {priority}")
        return [item for item in ranked if item.execution_priority == priority]

    def generate_recommendation(self, ranked: List[RankedOpportunity]) -> str:
        """Operator-facing summary of the ranked list"""
        if not ranked:
            return "No opportunities available for execution"

        counts = {priority: len(self.filter_by_priority(ranked, priority)) for priority in PRIORITIES}
        top = ranked[0]
        opportunity = top.opportunity

        lines = [
            f"Found {len(ranked)} executable opportunities:",
            f"  - High priority: {counts['high']}",
            f"  - Medium priority: {counts['medium']}",
            f"  - Low priority: {counts['low']}",
            "",
            "Top recommendation:",
            f"  Rank: #{top.rank}",
            f"  Pair: {opportunity.token_borrow}/{opportunity.token_intermediate}",
            f"  Expected Profit: ${opportunity.expected_profit_usd:.2f} ({opportunity.profit_percentage:.2f}%)",
            f"  Score: {top.score.total_score:.0f}/100",
            f"  Success Probability: {top.score.success_probability * 100:.0f}%",
            f"  Risk: {top.score.risk_score:.0f}/100",
        ]
        return "\n".join(lines)

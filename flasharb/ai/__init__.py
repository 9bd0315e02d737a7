"""Opportunity scoring, risk assessment and ranking"""

from flasharb.ai.decision_engine import DecisionEngine
from flasharb.ai.opportunity_ranker import OpportunityRanker
from flasharb.ai.risk_scorer import RiskFactors, RiskScorer

__all__ = [
    "DecisionEngine",
    "OpportunityRanker",
    "RiskFactors",
    "RiskScorer",
]

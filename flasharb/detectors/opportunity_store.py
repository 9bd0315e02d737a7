"""Keyed store of live opportunities"""

import time
from typing import Dict, List, Optional

import structlog

from flasharb.core.models import ArbitrageOpportunity
from flasharb.monitoring import metrics

logger = structlog.get_logger()


class OpportunityStore:
    """
    Live opportunities keyed by deterministic identity.

    Holds at most one entry per unordered venue pair: an upsert replaces the
    entry for the same id and drops the entry for the reverse direction.
    """

    def __init__(self, max_opportunities: int = 100):
        self.max_opportunities = max_opportunities
        self._opportunities: Dict[str, ArbitrageOpportunity] = {}
        self._logger = logger.bind(component="opportunity_store")

    def upsert(self, opportunity: ArbitrageOpportunity) -> bool:
        """
        Insert or replace an opportunity.

        Returns:
            False if the opportunity was rejected or immediately evicted
        """
        if opportunity.expected_profit <= 0:
            self._logger.warning(
                "opportunity_rejected_non_positive_profit",
                opportunity_id=opportunity.id,
                expected_profit=opportunity.expected_profit,
            )
            return False

        for key, existing in list(self._opportunities.items()):
            if key != opportunity.id and existing.venue_pair_key == opportunity.venue_pair_key:
                del self._opportunities[key]

        self._opportunities[opportunity.id] = opportunity

        accepted = True
        while len(self._opportunities) > self.max_opportunities:
            weakest = min(self._opportunities.values(), key=lambda opp: opp.expected_profit_usd)
            del self._opportunities[weakest.id]
            if weakest.id == opportunity.id:
                accepted = False
            self._logger.debug("opportunity_evicted", opportunity_id=weakest.id)

        metrics.opportunities_active.set(len(self._opportunities))
        return accepted

    def sweep_expired(self, now: Optional[float] = None) -> int:
        """Remove expired opportunities; returns how many were removed"""
        now = time.time() if now is None else now
        expired = [key for key, opp in self._opportunities.items() if opp.is_expired(now)]
        for key in expired:
            del self._opportunities[key]

        if expired:
            self._logger.debug("opportunities_expired", count=len(expired))
        metrics.opportunities_active.set(len(self._opportunities))
        return len(expired)

    def list(self, now: Optional[float] = None) -> List[ArbitrageOpportunity]:
        """Live opportunities sorted by USD profit, highest first"""
        now = time.time() if now is None else now
        live = [opp for opp in self._opportunities.values() if not opp.is_expired(now)]
        return sorted(live, key=lambda opp: opp.expected_profit_usd, reverse=True)

    def get(self, opportunity_id: str) -> Optional[ArbitrageOpportunity]:
        return self._opportunities.get(opportunity_id)

    def remove(self, opportunity_id: str) -> Optional[ArbitrageOpportunity]:
        """Remove a consumed opportunity"""
        removed = self._opportunities.pop(opportunity_id, None)
        metrics.opportunities_active.set(len(self._opportunities))
        return removed

    def clear(self) -> None:
        self._opportunities.clear()
        metrics.opportunities_active.set(0)

    def __len__(self) -> int:
        return len(self._opportunities)

    def __contains__(self, opportunity_id: str) -> bool:
        return opportunity_id in self._opportunities

"""Borrow amount optimization over a discrete candidate grid"""

from decimal import Decimal
from typing import Dict, List, Optional

import structlog

from flasharb.config.models import ExecutionConfig
from flasharb.core.models import ArbitrageOpportunity, OptimizedRoute
from flasharb.detectors.amm import simulate_round_trip
from flasharb.detectors.opportunity_detector import borrow_token_usd_price
from flasharb.detectors.pool_scanner import to_units

logger = structlog.get_logger()


class RouteOptimizer:
    """
    Re-simulates an opportunity at scaled borrow amounts and keeps the most profitable.

    Optimization is best-effort: any failure returns the original route with
    zero improvement.
    """

    def __init__(
        self,
        config: Optional[ExecutionConfig] = None,
        reference_prices_usd: Optional[Dict[str, Decimal]] = None,
    ):
        self.config = config or ExecutionConfig()
        self.reference_prices_usd = dict(reference_prices_usd or {})
        self._logger = logger.bind(component="route_optimizer")

    def generate_amount_candidates(self, base_amount: int) -> List[int]:
        """Scaled amounts from the configured min to max multiplier, inclusive"""
        candidates = []
        multiplier = self.config.optimizer_min_multiplier_pct
        while multiplier <= self.config.optimizer_max_multiplier_pct:
            amount = base_amount * multiplier // 100
            if amount > 0:
                candidates.append(amount)
            multiplier += self.config.optimizer_step_pct
        return candidates

    def simulate_with_amount(self, opportunity: ArbitrageOpportunity, amount: int) -> int:
        """Net profit of the opportunity's round trip at a given borrow amount"""
        trip = simulate_round_trip(opportunity.pool_a, opportunity.pool_b, opportunity.token_borrow, amount)
        return trip.net_profit

    def _exceeds_trade_size(self, opportunity: ArbitrageOpportunity, amount: int) -> bool:
        usd_price = borrow_token_usd_price(opportunity.pool_a, self.reference_prices_usd)
        if usd_price <= 0:
            return False
        notional = to_units(amount, opportunity.borrow_token.decimals) * usd_price
        return notional > self.config.max_trade_size_usd

    def optimize_borrow_amount(self, opportunity: ArbitrageOpportunity) -> OptimizedRoute:
        """
        Find the borrow amount with the highest net profit.

        Ties keep the detected amount.
        """
        try:
            best_amount = opportunity.borrow_amount
            best_profit = opportunity.expected_profit

            for amount in self.generate_amount_candidates(opportunity.borrow_amount):
                if self._exceeds_trade_size(opportunity, amount):
                    continue
                profit = self.simulate_with_amount(opportunity, amount)
                if profit > best_profit:
                    best_profit = profit
                    best_amount = amount

            improvement_percent = (
                (best_profit - opportunity.expected_profit) / opportunity.expected_profit * 100
                if opportunity.expected_profit > 0
                else 0.0
            )

            self._logger.debug(
                "route_optimized",
                opportunity_id=opportunity.id,
                original_amount=opportunity.borrow_amount,
                optimized_amount=best_amount,
                original_profit=opportunity.expected_profit,
                optimized_profit=best_profit,
                improvement_percent=round(improvement_percent, 2),
            )

            return OptimizedRoute(
                original_opportunity=opportunity,
                optimized_amount=best_amount,
                expected_profit=best_profit,
                improvement_percent=improvement_percent,
            )
        except Exception as e:
            self._logger.error(
                "route_optimization_failed",
                opportunity_id=opportunity.id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return OptimizedRoute(
                original_opportunity=opportunity,
                optimized_amount=opportunity.borrow_amount,
                expected_profit=opportunity.expected_profit,
                improvement_percent=0.0,
            )

    def expected_profit_usd(self, route: OptimizedRoute) -> Decimal:
        opportunity = route.original_opportunity
        usd_price = borrow_token_usd_price(opportunity.pool_a, self.reference_prices_usd)
        return to_units(route.expected_profit, opportunity.borrow_token.decimals) * usd_price

    def is_route_profitable(self, route: OptimizedRoute, min_profit_usd: Decimal) -> bool:
        """Check the optimized profit still clears a USD bar"""
        if route.expected_profit <= 0:
            return False
        return self.expected_profit_usd(route) >= Decimal(str(min_profit_usd))

    def calculate_price_impact(self, opportunity: ArbitrageOpportunity, amount: int) -> float:
        """Borrow amount as a percentage of the first pool's borrow-token reserve"""
        reserve = opportunity.pool_a.reserve_a
        if reserve <= 0:
            return 100.0
        return amount / reserve * 100

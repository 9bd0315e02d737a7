"""Cross-venue arbitrage detection over priced pools"""

import time
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

import structlog

from flasharb.config.models import ScannerConfig
from flasharb.config.registry import STABLECOIN_SYMBOLS
from flasharb.core.errors import SimulationError
from flasharb.core.models import ArbitrageOpportunity, PricedPool, make_opportunity_id
from flasharb.detectors.amm import RoundTrip, simulate_round_trip
from flasharb.detectors.pool_scanner import to_units
from flasharb.monitoring import metrics

logger = structlog.get_logger()

TRIAL_BORROW_DIVISOR = 10


def borrow_token_usd_price(pool: PricedPool, reference_prices_usd: Dict[str, Decimal]) -> Decimal:
    """
    USD price of the pool's token_a.

    1 for a stablecoin, the pool quote when token_b is a stablecoin, else the
    reference price, else 0.
    """
    if pool.token_a.symbol in STABLECOIN_SYMBOLS:
        return Decimal("1")
    if pool.token_b.symbol in STABLECOIN_SYMBOLS:
        return pool.price_a_to_b
    return Decimal(reference_prices_usd.get(pool.token_a.symbol, 0))


class OpportunityDetector:
    """
    Finds profitable flash-loan round trips between venues quoting the same pair.

    For each pair of pools on different venues of one chain both directions are simulated:
    borrow token_a, sell it on one venue, buy it back on the other, repay the
    loan plus the flash-loan fee.
    """

    def __init__(self, config: ScannerConfig):
        self.config = config
        self._logger = logger.bind(component="opportunity_detector")

    def detect(
        self, priced_pools: List[PricedPool], now: Optional[float] = None
    ) -> List[ArbitrageOpportunity]:
        """
        Detect opportunities in one cycle's priced pools.

        Args:
            priced_pools: Snapshots from the scanner
            now: Detection timestamp (defaults to current time)

        Returns:
            Viable opportunities, one per unordered venue pair
        """
        now = time.time() if now is None else now

        groups: Dict[Tuple[str, str], List[PricedPool]] = {}
        for priced in priced_pools:
            if not priced.is_valid:
                continue
            groups.setdefault((priced.pool.chain, priced.pair_key), []).append(priced)

        found: Dict[str, ArbitrageOpportunity] = {}

        for group in groups.values():
            if len(group) < 2:
                continue

            borrow_symbol = group[0].token_a.symbol
            oriented = [priced.oriented(borrow_symbol) for priced in group]

            for i, first in enumerate(oriented):
                for second in oriented[i + 1:]:
                    if first.pool.venue == second.pool.venue:
                        continue

                    for pool_a, pool_b in ((first, second), (second, first)):
                        opportunity = self.calculate_arbitrage(pool_a, pool_b, now)
                        if opportunity is not None and self.is_viable(opportunity):
                            found[opportunity.venue_pair_key] = opportunity

        opportunities = list(found.values())
        for opportunity in opportunities:
            metrics.opportunities_detected.labels(pair=opportunity.pair_key).inc()
            self._logger.info(
                "opportunity_detected",
                opportunity_id=opportunity.id,
                chain=opportunity.chain,
                pair=opportunity.pair_key,
                venue_a=opportunity.pool_a.pool.venue,
                venue_b=opportunity.pool_b.pool.venue,
                borrow_amount=opportunity.borrow_amount,
                expected_profit=opportunity.expected_profit,
                expected_profit_usd=float(opportunity.expected_profit_usd),
                profit_percentage=float(opportunity.profit_percentage),
            )

        return opportunities

    def _trial_amounts(self, pool_a: PricedPool) -> List[int]:
        first = pool_a.reserve_a // TRIAL_BORROW_DIVISOR
        amounts = [first]
        for _ in range(self.config.trial_borrow_halvings):
            amounts.append(amounts[-1] // 2)
        return [amount for amount in amounts if amount > 0]

    def _best_round_trip(self, pool_a: PricedPool, pool_b: PricedPool) -> Optional[RoundTrip]:
        borrow_symbol = pool_a.token_a.symbol
        best: Optional[RoundTrip] = None

        for index, amount in enumerate(self._trial_amounts(pool_a)):
            trip = simulate_round_trip(pool_a, pool_b, borrow_symbol, amount)
            if best is None or trip.net_profit > best.net_profit:
                best = trip
            # A profitable 10% trial is used as-is
            if index == 0 and trip.net_profit > 0:
                break

        return best

    def calculate_arbitrage(
        self, pool_a: PricedPool, pool_b: PricedPool, now: float
    ) -> Optional[ArbitrageOpportunity]:
        """
        Simulate borrowing pool_a.token_a, selling on pool_a and buying back on pool_b.

        Returns:
            Opportunity with strictly positive net profit, or None
        """
        try:
            trip = self._best_round_trip(pool_a, pool_b)
        except SimulationError as e:
            self._logger.debug(
                "arbitrage_simulation_failed",
                pool_a=pool_a.pool.pool_address,
                pool_b=pool_b.pool.pool_address,
                error=str(e),
            )
            return None

        if trip is None or trip.net_profit <= 0:
            return None

        net_profit = trip.net_profit
        profit_percentage = Decimal(net_profit) / Decimal(trip.borrow_amount) * 100
        usd_price = borrow_token_usd_price(pool_a, self.config.reference_prices_usd)
        expected_profit_usd = to_units(net_profit, pool_a.token_a.decimals) * usd_price

        return ArbitrageOpportunity(
            id=make_opportunity_id(pool_a, pool_b),
            pool_a=pool_a,
            pool_b=pool_b,
            token_borrow=pool_a.token_a.symbol,
            token_intermediate=pool_a.token_b.symbol,
            borrow_amount=trip.borrow_amount,
            expected_profit=net_profit,
            expected_profit_usd=expected_profit_usd,
            profit_percentage=profit_percentage,
            timestamp=now,
            expires_at=now + self.config.opportunity_ttl_seconds,
        )

    def is_viable(self, opportunity: ArbitrageOpportunity) -> bool:
        """Check minimum profit and liquidity floors"""
        min_profit_percentage = Decimal(self.config.min_profit_bps) / 100
        if opportunity.profit_percentage < min_profit_percentage:
            return False

        min_liquidity = self.config.min_liquidity_usd
        if (
            opportunity.pool_a.liquidity_usd < min_liquidity
            or opportunity.pool_b.liquidity_usd < min_liquidity
        ):
            return False

        return True

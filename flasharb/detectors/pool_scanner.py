"""Pool scanner: concurrent multi-venue price acquisition"""

import asyncio
import time
from collections import OrderedDict
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional

import structlog

from flasharb.config.models import Pool, ScannerConfig, Token
from flasharb.config.registry import STABLECOIN_SYMBOLS, find_arbitrage_pairs
from flasharb.core.models import PricedPool
from flasharb.monitoring import metrics
from flasharb.venues.base import FetchFailure, VenueAdapter

logger = structlog.get_logger()


@dataclass(frozen=True)
class PoolRequest:
    """One pool to price, with the token orientation to report it in"""

    pool: Pool
    token_a: Token
    token_b: Token


def to_units(amount: int, decimals: int) -> Decimal:
    """Convert base units to a decimal token amount"""
    return Decimal(amount) / (Decimal(10) ** decimals)


def estimate_liquidity_usd(
    token_a: Token,
    token_b: Token,
    reserve_a: int,
    reserve_b: int,
    reference_prices_usd: Mapping[str, Decimal],
) -> Decimal:
    """
    Estimate total pool liquidity in USD.

    Twice the stablecoin side when one side is a stablecoin, otherwise twice
    the token_a side at its reference price, otherwise zero.
    """
    if token_b.symbol in STABLECOIN_SYMBOLS:
        return 2 * to_units(reserve_b, token_b.decimals)
    if token_a.symbol in STABLECOIN_SYMBOLS:
        return 2 * to_units(reserve_a, token_a.decimals)

    price = reference_prices_usd.get(token_a.symbol)
    if price is not None:
        return 2 * to_units(reserve_a, token_a.decimals) * Decimal(price)

    return Decimal("0")


def build_priced_pool(
    request: PoolRequest,
    reserve_a: int,
    reserve_b: int,
    timestamp: float,
    reference_prices_usd: Mapping[str, Decimal],
) -> PricedPool:
    """Normalize raw reserves into a priced pool snapshot"""
    amount_a = to_units(reserve_a, request.token_a.decimals)
    amount_b = to_units(reserve_b, request.token_b.decimals)

    if reserve_a > 0 and reserve_b > 0:
        price_a_to_b = amount_b / amount_a
        price_b_to_a = amount_a / amount_b
    else:
        price_a_to_b = Decimal("0")
        price_b_to_a = Decimal("0")

    return PricedPool(
        pool=request.pool,
        token_a=request.token_a,
        token_b=request.token_b,
        price_a_to_b=price_a_to_b,
        price_b_to_a=price_b_to_a,
        reserve_a=reserve_a,
        reserve_b=reserve_b,
        liquidity_usd=estimate_liquidity_usd(
            request.token_a, request.token_b, reserve_a, reserve_b, reference_prices_usd
        ),
        timestamp=timestamp,
    )


class PoolScanner:
    """
    Fetches reserves for every pool that takes part in a cross-venue pair.

    Pools are grouped by venue; each venue batch runs concurrently and every
    fetch inside a batch is bounded by the configured timeout. A failed or
    slow pool is dropped from the cycle without affecting the others.
    """

    def __init__(
        self,
        pools: Iterable[Pool],
        tokens: Mapping[str, Mapping[str, Token]],
        adapters: Mapping[str, VenueAdapter],
        config: ScannerConfig,
    ):
        """
        Initialize pool scanner.

        Args:
            pools: Configured pools
            tokens: Token registries keyed by chain, then symbol
            adapters: Venue adapters keyed by venue name
            config: Scanner configuration
        """
        self.pools = list(pools)
        self.tokens = {chain: dict(chain_tokens) for chain, chain_tokens in tokens.items()}
        self.adapters = dict(adapters)
        self.config = config
        self._logger = logger.bind(component="pool_scanner")

    def build_requests(self) -> List[PoolRequest]:
        """
        Build the distinct pool requests for this cycle.

        Both pools of a pair are priced in the orientation of the first pool.
        """
        requests: "OrderedDict[str, PoolRequest]" = OrderedDict()

        for pool_a, pool_b in find_arbitrage_pairs(self.pools):
            chain_tokens = self.tokens.get(pool_a.chain, {})
            token_a = chain_tokens.get(pool_a.token_a)
            token_b = chain_tokens.get(pool_a.token_b)
            if token_a is None or token_b is None:
                self._logger.warning(
                    "pair_token_unknown",
                    chain=pool_a.chain,
                    token_a=pool_a.token_a,
                    token_b=pool_a.token_b,
                )
                continue

            for pool in (pool_a, pool_b):
                key = pool.pool_address.lower()
                if key not in requests:
                    requests[key] = PoolRequest(pool=pool, token_a=token_a, token_b=token_b)

        return list(requests.values())

    async def fetch_all_pool_prices(self) -> List[PricedPool]:
        """
        Price every pool that takes part in a cross-venue pair.

        Returns:
            Valid priced pools; failed, timed-out and zero-reserve pools are omitted
        """
        start_time = time.time()
        by_venue: Dict[str, List[PoolRequest]] = {}
        for request in self.build_requests():
            by_venue.setdefault(request.pool.venue, []).append(request)

        batches = await asyncio.gather(
            *(self._fetch_venue_batch(venue, requests) for venue, requests in by_venue.items())
        )
        priced = [pool for batch in batches for pool in batch]

        metrics.pools_priced.set(len(priced))
        self._logger.debug(
            "pool_prices_fetched",
            venues=len(by_venue),
            priced=len(priced),
            duration_ms=round((time.time() - start_time) * 1000, 1),
        )
        return priced

    async def _fetch_venue_batch(self, venue: str, requests: List[PoolRequest]) -> List[PricedPool]:
        adapter = self.adapters.get(venue)
        if adapter is None:
            for request in requests:
                self._record_failure(venue, request.pool.pool_address, "no_adapter", "no adapter configured")
            return []

        results = await asyncio.gather(
            *(self._fetch_one(adapter, venue, request) for request in requests)
        )
        return [result for result in results if result is not None]

    async def _fetch_one(
        self, adapter: VenueAdapter, venue: str, request: PoolRequest
    ) -> Optional[PricedPool]:
        pool_address = request.pool.pool_address
        try:
            state = await asyncio.wait_for(
                adapter.fetch_pool_state(pool_address, request.token_a, request.token_b),
                timeout=self.config.fetch_timeout_seconds,
            )
        except asyncio.TimeoutError:
            self._record_failure(
                venue, pool_address, "timeout", f"no response in {self.config.fetch_timeout_seconds}s"
            )
            return None
        except Exception as e:
            self._record_failure(venue, pool_address, type(e).__name__, str(e))
            return None

        if isinstance(state, FetchFailure):
            self._record_failure(venue, pool_address, state.error_type, state.reason)
            return None

        if state.reserve_a <= 0 or state.reserve_b <= 0:
            self._logger.warning(
                "pool_reserves_zero",
                venue=venue,
                pool_address=pool_address,
                reserve_a=state.reserve_a,
                reserve_b=state.reserve_b,
            )
            return None

        return build_priced_pool(
            request,
            state.reserve_a,
            state.reserve_b,
            time.time(),
            self.config.reference_prices_usd,
        )

    def _record_failure(self, venue: str, pool_address: str, reason: str, detail: str) -> None:
        metrics.venue_fetch_failures.labels(venue=venue, reason=reason).inc()
        self._logger.warning(
            "pool_fetch_failed",
            venue=venue,
            pool_address=pool_address,
            reason=reason,
            detail=detail,
        )

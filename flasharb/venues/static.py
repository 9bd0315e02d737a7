"""In-memory venue adapter for dry runs and simulations"""

import asyncio
from typing import Dict, Optional

from flasharb.config.models import Token
from flasharb.venues.base import FetchFailure, FetchResult, PoolState


class StaticReserveAdapter:
    """
    Serves reserves from a dictionary keyed by pool address.

    Reserves are stored per token symbol so any requested orientation can be
    served.
    """

    def __init__(
        self,
        reserves: Optional[Dict[str, Dict[str, int]]] = None,
        delay_seconds: float = 0.0,
    ):
        self._reserves: Dict[str, Dict[str, int]] = {}
        self._failures: Dict[str, str] = {}
        self.delay_seconds = delay_seconds
        for pool_address, by_symbol in (reserves or {}).items():
            self.set_reserves(pool_address, by_symbol)

    def set_reserves(self, pool_address: str, by_symbol: Dict[str, int]) -> None:
        """Set or replace a pool's reserves"""
        self._reserves[pool_address.lower()] = dict(by_symbol)
        self._failures.pop(pool_address.lower(), None)

    def fail(self, pool_address: str, reason: str = "unavailable") -> None:
        """Make subsequent fetches of a pool fail"""
        self._failures[pool_address.lower()] = reason

    async def fetch_pool_state(
        self, pool_address: str, token_a: Token, token_b: Token
    ) -> FetchResult:
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)

        key = pool_address.lower()
        if key in self._failures:
            return FetchFailure(pool_address=pool_address, reason=self._failures[key])

        by_symbol = self._reserves.get(key)
        if by_symbol is None:
            return FetchFailure(
                pool_address=pool_address, reason="unknown pool", error_type="not_found"
            )

        try:
            return PoolState(
                pool_address=pool_address,
                reserve_a=by_symbol[token_a.symbol],
                reserve_b=by_symbol[token_b.symbol],
            )
        except KeyError as e:
            return FetchFailure(
                pool_address=pool_address,
                reason=f"no reserve for {e.args[0]}",
                error_type="token_mismatch",
            )

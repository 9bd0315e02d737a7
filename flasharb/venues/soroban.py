"""Reserve readers for Soroban AMMs (Soroswap pairs, Aquarius pools)"""

from typing import Dict, List, Tuple

import structlog

from flasharb.chains.soroban_client import SorobanClient
from flasharb.config.models import Token
from flasharb.venues.base import FetchFailure, FetchResult, PoolState

logger = structlog.get_logger()


class SorobanPoolAdapter:
    """
    Shared orientation and failure handling for Soroban pool contracts.

    Subclasses return the pool's token order and its reserves in that order.
    """

    component = "soroban_adapter"

    def __init__(self, client: SorobanClient, venue: str):
        self.client = client
        self.venue = venue
        self._token_cache: Dict[str, List[str]] = {}
        self._logger = logger.bind(component=self.component, venue=venue)

    async def _read_tokens(self, pool_address: str) -> List[str]:
        raise NotImplementedError

    async def _read_reserves(self, pool_address: str) -> Tuple[int, int]:
        raise NotImplementedError

    async def _get_tokens(self, pool_address: str) -> List[str]:
        """Pool token order never changes, so it is read once"""
        if pool_address not in self._token_cache:
            self._token_cache[pool_address] = await self._read_tokens(pool_address)
        return self._token_cache[pool_address]

    async def fetch_pool_state(
        self, pool_address: str, token_a: Token, token_b: Token
    ) -> FetchResult:
        """
        Fetch reserves oriented to (token_a, token_b).

        Returns:
            PoolState, or FetchFailure when the pool cannot be read
        """
        try:
            tokens = await self._get_tokens(pool_address)
            reserve0, reserve1 = await self._read_reserves(pool_address)
        except Exception as e:
            self._logger.warning(
                "pool_state_fetch_failed",
                pool_address=pool_address,
                error=str(e),
                error_type=type(e).__name__,
            )
            return FetchFailure(pool_address=pool_address, reason=str(e), error_type=type(e).__name__)

        if tokens[0] == token_a.address:
            return PoolState(pool_address=pool_address, reserve_a=reserve0, reserve_b=reserve1)
        if tokens[0] == token_b.address:
            return PoolState(pool_address=pool_address, reserve_a=reserve1, reserve_b=reserve0)

        return FetchFailure(
            pool_address=pool_address,
            reason=f"Pool token {tokens[0]} matches neither {token_a.symbol} nor {token_b.symbol}",
            error_type="token_mismatch",
        )


class SoroswapAdapter(SorobanPoolAdapter):
    """Soroswap pair: token_0() and get_reserves() -> (i128, i128)"""

    component = "soroswap_adapter"

    async def _read_tokens(self, pool_address: str) -> List[str]:
        token0 = await self.client.simulate_call(pool_address, "token_0")
        return [token0]

    async def _read_reserves(self, pool_address: str) -> Tuple[int, int]:
        reserve0, reserve1 = await self.client.simulate_call(pool_address, "get_reserves")
        return int(reserve0), int(reserve1)


class AquariusAdapter(SorobanPoolAdapter):
    """Aquarius pool: get_tokens() and get_reserves() as vectors in token order"""

    component = "aquarius_adapter"

    async def _read_tokens(self, pool_address: str) -> List[str]:
        tokens = await self.client.simulate_call(pool_address, "get_tokens")
        if len(tokens) != 2:
            raise ValueError(f"Expected a two-token pool, got {len(tokens)} tokens")
        return list(tokens)

    async def _read_reserves(self, pool_address: str) -> Tuple[int, int]:
        reserves = await self.client.simulate_call(pool_address, "get_reserves")
        if len(reserves) != 2:
            raise ValueError(f"Expected two reserves, got {len(reserves)}")
        return int(reserves[0]), int(reserves[1])

"""Reserve reader for Uniswap-V2 style pair contracts (Aerodrome volatile, BaseSwap)"""

from typing import Dict, Tuple

import structlog

from flasharb.chains.connector import ChainConnector
from flasharb.config.models import Token
from flasharb.venues.base import FetchFailure, FetchResult, PoolState

logger = structlog.get_logger()

PAIR_ABI = [
    {
        "constant": True,
        "inputs": [],
        "name": "getReserves",
        "outputs": [
            {"internalType": "uint112", "name": "_reserve0", "type": "uint112"},
            {"internalType": "uint112", "name": "_reserve1", "type": "uint112"},
            {"internalType": "uint32", "name": "_blockTimestampLast", "type": "uint32"},
        ],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [],
        "name": "token0",
        "outputs": [{"internalType": "address", "name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function",
    },
]


class UniswapV2Adapter:
    """Reads pair reserves through a chain connector"""

    def __init__(self, connector: ChainConnector, venue: str):
        self.connector = connector
        self.venue = venue
        self._token0_cache: Dict[str, str] = {}
        self._logger = logger.bind(component="uniswap_v2_adapter", venue=venue)

    async def _get_token0(self, pool_address: str) -> str:
        """token0 never changes for a pair, so it is read once"""
        key = pool_address.lower()
        if key not in self._token0_cache:
            token0 = await self.connector.call_contract(pool_address, PAIR_ABI, "token0")
            self._token0_cache[key] = token0.lower()
        return self._token0_cache[key]

    async def _get_reserves(self, pool_address: str) -> Tuple[int, int]:
        reserve0, reserve1, _ = await self.connector.call_contract(
            pool_address, PAIR_ABI, "getReserves"
        )
        return int(reserve0), int(reserve1)

    async def fetch_pool_state(
        self, pool_address: str, token_a: Token, token_b: Token
    ) -> FetchResult:
        """
        Fetch reserves oriented to (token_a, token_b).

        Args:
            pool_address: Pair contract address
            token_a: Token whose reserve is reported as reserve_a
            token_b: Token whose reserve is reported as reserve_b

        Returns:
            PoolState, or FetchFailure when the pair cannot be read
        """
        try:
            token0 = await self._get_token0(pool_address)
            reserve0, reserve1 = await self._get_reserves(pool_address)
        except Exception as e:
            self._logger.warning(
                "pool_state_fetch_failed",
                pool_address=pool_address,
                error=str(e),
                error_type=type(e).__name__,
            )
            return FetchFailure(pool_address=pool_address, reason=str(e), error_type=type(e).__name__)

        if token0 == token_a.address.lower():
            return PoolState(pool_address=pool_address, reserve_a=reserve0, reserve_b=reserve1)
        if token0 == token_b.address.lower():
            return PoolState(pool_address=pool_address, reserve_a=reserve1, reserve_b=reserve0)

        return FetchFailure(
            pool_address=pool_address,
            reason=f"Pair token0 {token0} matches neither {token_a.symbol} nor {token_b.symbol}",
            error_type="token_mismatch",
        )

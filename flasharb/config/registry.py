"""Per-chain token and pool registry"""

from enum import IntEnum
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from pydantic import BaseModel, model_validator

from flasharb.config.models import Pool, Token

STABLECOIN_SYMBOLS = frozenset({"USDC", "USDT", "USDbC", "DAI"})

STELLAR = "Stellar"
BASE = "Base"
SUPPORTED_CHAINS = (STELLAR, BASE)


class VenueType(IntEnum):
    """Venue identifiers understood by the flash-loan executor contracts"""

    SOROSWAP = 0
    AQUARIUS = 1
    AERODROME = 2
    BASESWAP = 3


# Soroban testnet contracts
STELLAR_TOKENS: Dict[str, Token] = {
    "XLM": Token(
        symbol="XLM",
        name="Stellar Lumens",
        address="CDLZFC3SYJYDZT7K67VZ75HPJVIEUVNIXF47ZG2FB2RMQQVU2HHGCYSC",  # native asset contract
        decimals=7,
        is_native=True,
    ),
    "USDC": Token(
        symbol="USDC",
        name="USD Coin",
        address="CBIELTK6YBZJU5UP2WWQEUCYKLPU6AUNZ2BQ4WWFEIE3USCIHMXQDAMA",
        decimals=7,
    ),
    "AQUA": Token(
        symbol="AQUA",
        name="Aquarius",
        address="CAQCFVLOBK5GIULPNZRGATJJMIZL5BSP7X5YJVMGCSEQEQWFDR3IAQUA",
        decimals=7,
    ),
}

STELLAR_POOLS: List[Pool] = [
    Pool(
        venue="Soroswap",
        venue_type=VenueType.SOROSWAP,
        chain=STELLAR,
        pool_address="CDE3I665APUHQYMATNLEODUPIWTEWXB5NB5IEV6NNNDQ3ZYRJ3SSWZKM",
        token_a="XLM",
        token_b="USDC",
        fee_bps=30,
    ),
    Pool(
        venue="Aquarius",
        venue_type=VenueType.AQUARIUS,
        chain=STELLAR,
        pool_address="CD3LFMMLBQ6RBJUD3Z2LFDFE6544WDRMWHEZYPI5YDVESYRSO2TT32BX",
        token_a="XLM",
        token_b="USDC",
        fee_bps=30,
    ),
    Pool(
        venue="Aquarius",
        venue_type=VenueType.AQUARIUS,
        chain=STELLAR,
        pool_address="CCSXYUVLYALKJGIIYMGYLZI447VS6TDWFTVDL43B4IKK2WERHLWUVCRC",
        token_a="XLM",
        token_b="AQUA",
        fee_bps=30,
    ),
]

BASE_TOKENS: Dict[str, Token] = {
    "ETH": Token(
        symbol="ETH",
        name="Ethereum",
        address="0x4200000000000000000000000000000000000006",  # WETH on Base
        decimals=18,
        is_native=True,
    ),
    "USDC": Token(
        symbol="USDC",
        name="USD Coin",
        address="0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
        decimals=6,
    ),
    "USDbC": Token(
        symbol="USDbC",
        name="USD Base Coin",
        address="0xd9aAEc86B65D86f6A7B5B1b0c42FFA531710b6CA",
        decimals=6,
    ),
    "DAI": Token(
        symbol="DAI",
        name="Dai Stablecoin",
        address="0x50c5725949A6F0c72E6C4a641F24049A917DB0Cb",
        decimals=18,
    ),
}

BASE_POOLS: List[Pool] = [
    Pool(
        venue="Aerodrome",
        venue_type=VenueType.AERODROME,
        chain=BASE,
        pool_address="0xcDAC0d6c6C59727a65F871236188350531885C43",
        token_a="ETH",
        token_b="USDC",
        fee_bps=5,
    ),
    Pool(
        venue="Aerodrome",
        venue_type=VenueType.AERODROME,
        chain=BASE,
        pool_address="0xB4885Bc63399BF5518b994c1d0C153334Ee579D0",
        token_a="ETH",
        token_b="USDbC",
        fee_bps=5,
    ),
    Pool(
        venue="BaseSwap",
        venue_type=VenueType.BASESWAP,
        chain=BASE,
        pool_address="0x6FE47426fc4424Bb15fc7ea948F81a2682C0F37D",
        token_a="ETH",
        token_b="USDC",
        fee_bps=30,
    ),
]


class ChainRegistry(BaseModel):
    """Tokens and pools on one chain"""

    name: str
    enabled: bool = True
    tokens: Dict[str, Token]
    pools: List[Pool]

    @model_validator(mode="after")
    def validate_pools(self) -> "ChainRegistry":
        """Every pool must live on this chain and trade registered tokens"""
        for pool in self.pools:
            if pool.chain != self.name:
                raise ValueError(f"Pool {pool.pool_address} is on {pool.chain}, not {self.name}")
            for symbol in (pool.token_a, pool.token_b):
                if symbol not in self.tokens:
                    raise ValueError(f"Pool {pool.pool_address} trades unknown token {symbol} on {self.name}")
        return self

    def venues(self) -> List[str]:
        """Venue names with at least one enabled pool"""
        return sorted({pool.venue for pool in self.pools if pool.enabled})


class PoolRegistry(BaseModel):
    """Token and pool registry across all chains"""

    chains: List[ChainRegistry]

    @model_validator(mode="after")
    def validate_chains(self) -> "PoolRegistry":
        names = [chain.name for chain in self.chains]
        unknown = [name for name in names if name not in SUPPORTED_CHAINS]
        if unknown:
            raise ValueError(f"Unsupported chains: {', '.join(unknown)}")
        if len(set(names)) != len(names):
            raise ValueError("Chains must be listed once")
        return self

    @classmethod
    def from_file(cls, path: str) -> "PoolRegistry":
        """Load a registry from a JSON file"""
        return cls.model_validate_json(Path(path).read_text(encoding="utf-8"))

    def with_enabled(self, enabled: Mapping[str, bool]) -> "PoolRegistry":
        """Copy of the registry with chain switches applied"""
        return PoolRegistry(
            chains=[
                chain.model_copy(update={"enabled": enabled.get(chain.name, chain.enabled)})
                for chain in self.chains
            ]
        )

    def get_chain(self, name: str) -> Optional[ChainRegistry]:
        for chain in self.chains:
            if chain.name == name:
                return chain
        return None

    def enabled_chains(self) -> List[ChainRegistry]:
        return [chain for chain in self.chains if chain.enabled]

    def pools(self) -> List[Pool]:
        """Pools on enabled chains"""
        return [pool for chain in self.enabled_chains() for pool in chain.pools]

    def tokens(self) -> Dict[str, Dict[str, Token]]:
        """Token maps keyed by chain, then symbol, for enabled chains"""
        return {chain.name: dict(chain.tokens) for chain in self.enabled_chains()}


DEFAULT_REGISTRY = PoolRegistry(
    chains=[
        ChainRegistry(name=STELLAR, tokens=STELLAR_TOKENS, pools=STELLAR_POOLS),
        ChainRegistry(name=BASE, tokens=BASE_TOKENS, pools=BASE_POOLS),
    ]
)


def load_registry(path: Optional[str] = None, enabled: Optional[Mapping[str, bool]] = None) -> PoolRegistry:
    """
    Load the pool registry and apply chain switches.

    Args:
        path: JSON registry file; the built-in registry is used when omitted
        enabled: Chain name to enabled flag

    Returns:
        PoolRegistry

    Raises:
        ValidationError: If the file does not describe a valid registry
    """
    registry = PoolRegistry.from_file(path) if path else DEFAULT_REGISTRY
    return registry.with_enabled(enabled or {})


def find_arbitrage_pairs(pools: Iterable[Pool]) -> List[Tuple[Pool, Pool]]:
    """
    Find pool pairs that trade the same token pair on different venues of one chain.

    Args:
        pools: Configured pools

    Returns:
        List of (pool_a, pool_b) tuples, in configuration order
    """
    candidates = [pool for pool in pools if pool.enabled]
    pairs = []

    for i, pool_a in enumerate(candidates):
        for pool_b in candidates[i + 1:]:
            if pool_a.chain != pool_b.chain or pool_a.venue == pool_b.venue:
                continue
            if pool_a.trades_pair(pool_b.token_a, pool_b.token_b):
                pairs.append((pool_a, pool_b))

    return pairs

"""Venue adapters"""

from flasharb.venues.base import FetchFailure, FetchResult, PoolState, VenueAdapter
from flasharb.venues.soroban import AquariusAdapter, SoroswapAdapter
from flasharb.venues.static import StaticReserveAdapter
from flasharb.venues.uniswap_v2 import UniswapV2Adapter

__all__ = [
    "AquariusAdapter",
    "FetchFailure",
    "FetchResult",
    "PoolState",
    "SoroswapAdapter",
    "StaticReserveAdapter",
    "UniswapV2Adapter",
    "VenueAdapter",
]

"""Venue adapter interface shared by every venue family"""

from dataclasses import dataclass
from typing import Protocol, Union

from flasharb.config.models import Token


@dataclass(frozen=True)
class PoolState:
    """Raw reserves of a pool, oriented to the requested token order"""

    pool_address: str
    reserve_a: int
    reserve_b: int


@dataclass(frozen=True)
class FetchFailure:
    """A pool whose state could not be read this cycle"""

    pool_address: str
    reason: str
    error_type: str = "fetch_error"


FetchResult = Union[PoolState, FetchFailure]


class VenueAdapter(Protocol):
    """
    Read access to one venue family.

    Implementations must not raise: network and decoding problems are
    returned as FetchFailure values.
    """

    async def fetch_pool_state(
        self, pool_address: str, token_a: Token, token_b: Token
    ) -> FetchResult:
        ...

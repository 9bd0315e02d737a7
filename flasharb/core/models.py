"""Data models passed between pipeline stages"""

from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import List, Optional, Tuple

from flasharb.config.models import Pool, Token


def pair_key(symbol_a: str, symbol_b: str) -> str:
    """Canonical unordered token pair key"""
    return "_".join(sorted((symbol_a, symbol_b)))


@dataclass(frozen=True)
class PricedPool:
    """Snapshot of a pool's reserves and prices for one scan cycle"""

    pool: Pool
    token_a: Token
    token_b: Token
    price_a_to_b: Decimal
    price_b_to_a: Decimal
    reserve_a: int
    reserve_b: int
    liquidity_usd: Decimal
    timestamp: float

    @property
    def is_valid(self) -> bool:
        """Zero reserves on either side invalidate the snapshot"""
        return self.reserve_a > 0 and self.reserve_b > 0

    @property
    def pair_key(self) -> str:
        return pair_key(self.token_a.symbol, self.token_b.symbol)

    def reserves_for(self, token_in: str) -> Tuple[int, int]:
        """
        Get (reserve_in, reserve_out) for a swap selling token_in.

        Raises:
            KeyError: If token_in is not traded by this pool
        """
        if token_in == self.token_a.symbol:
            return self.reserve_a, self.reserve_b
        if token_in == self.token_b.symbol:
            return self.reserve_b, self.reserve_a
        raise KeyError(f"{token_in} not traded by pool {self.pool.pool_address}")

    def oriented(self, symbol: str) -> "PricedPool":
        """Return a snapshot whose token_a is the given symbol"""
        if self.token_a.symbol == symbol:
            return self
        if self.token_b.symbol != symbol:
            raise KeyError(f"{symbol} not traded by pool {self.pool.pool_address}")
        return replace(
            self,
            token_a=self.token_b,
            token_b=self.token_a,
            price_a_to_b=self.price_b_to_a,
            price_b_to_a=self.price_a_to_b,
            reserve_a=self.reserve_b,
            reserve_b=self.reserve_a,
        )


def make_opportunity_id(pool_a: PricedPool, pool_b: PricedPool) -> str:
    """Deterministic identity from the ordered pool address pair"""
    return f"{pool_a.pool.pool_address}_{pool_b.pool.pool_address}"


@dataclass(frozen=True)
class ArbitrageOpportunity:
    """Two-venue round trip: borrow, swap on pool_a, swap back on pool_b, repay"""

    id: str
    pool_a: PricedPool
    pool_b: PricedPool
    token_borrow: str
    token_intermediate: str
    borrow_amount: int
    expected_profit: int
    expected_profit_usd: Decimal
    profit_percentage: Decimal
    timestamp: float
    expires_at: float

    @property
    def pair_key(self) -> str:
        return pair_key(self.token_borrow, self.token_intermediate)

    @property
    def chain(self) -> str:
        return self.pool_a.pool.chain

    @property
    def venue_pair_key(self) -> str:
        """Unordered pool address pair, shared by both trade directions"""
        return "_".join(sorted((self.pool_a.pool.pool_address, self.pool_b.pool.pool_address)))

    @property
    def borrow_token(self) -> Token:
        return self.pool_a.token_a

    @property
    def intermediate_token(self) -> Token:
        return self.pool_a.token_b

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at

    def age_seconds(self, now: float) -> float:
        return max(0.0, now - self.timestamp)


@dataclass
class OpportunityScore:
    """Scoring engine verdict for one opportunity"""

    opportunity: ArbitrageOpportunity
    total_score: float
    profit_score: float
    liquidity_score: float
    risk_score: float
    success_probability: float
    should_execute: bool
    reason: str


@dataclass
class RankedOpportunity:
    """Executable opportunity with rank and priority"""

    opportunity: ArbitrageOpportunity
    score: OpportunityScore
    rank: int
    execution_priority: str  # "high", "medium" or "low"


@dataclass
class OptimizedRoute:
    """Route optimizer output"""

    original_opportunity: ArbitrageOpportunity
    optimized_amount: int
    expected_profit: int
    improvement_percent: float


@dataclass
class SettlementRequest:
    """Call to the flash-loan executor contract"""

    opportunity: ArbitrageOpportunity
    contract_address: str
    method: str
    token_borrow: str
    token_intermediate: str
    borrow_amount: int
    venue_a_type: int
    venue_a_pool: str
    venue_b_type: int
    venue_b_pool: str
    min_profit_bps: int
    max_slippage_bps: int
    min_amount_out: int
    expected_profit: int
    built_at: float

    @property
    def args(self) -> List:
        """Positional contract arguments"""
        return [
            self.token_borrow,
            self.token_intermediate,
            self.borrow_amount,
            self.venue_a_type,
            self.venue_a_pool,
            self.venue_b_type,
            self.venue_b_pool,
            self.min_profit_bps,
        ]


@dataclass
class SettlementOutcome:
    """Interpreted settlement result"""

    transaction_hash: str
    actual_profit: int
    gas_cost_native: Decimal = Decimal("0")


@dataclass
class ExecutionResult:
    """Outcome of one execution attempt sequence"""

    success: bool
    opportunity_id: str
    execution_time_ms: float
    transaction_hash: Optional[str] = None
    actual_profit: Optional[int] = None
    actual_profit_usd: Decimal = Decimal("0")
    gas_cost_usd: Decimal = Decimal("0")
    attempts: int = 1
    error: Optional[str] = None
    errors: List[str] = field(default_factory=list)

"""Constant-product swap simulation in integer base units"""

from dataclasses import dataclass

from flasharb.core.errors import SimulationError
from flasharb.core.models import PricedPool

BPS_DENOMINATOR = 10000
FLASH_LOAN_FEE_BPS = 9


@dataclass(frozen=True)
class RoundTrip:
    """Borrow, swap on the first pool, swap back on the second, repay"""

    borrow_amount: int
    intermediate_amount: int
    final_amount: int
    flash_loan_fee: int

    @property
    def net_profit(self) -> int:
        return self.final_amount - self.borrow_amount - self.flash_loan_fee


def calculate_swap_output(amount_in: int, reserve_in: int, reserve_out: int, fee_bps: int) -> int:
    """
    Output of a constant-product swap.

    amount_in_with_fee = amount_in * (10000 - fee) / 10000
    amount_out = amount_in_with_fee * reserve_out / (reserve_in + amount_in_with_fee)

    All divisions floor, so the result is always strictly below reserve_out.

    Raises:
        SimulationError: On non-positive reserves, negative input or a fee
            outside [0, 10000)
    """
    if reserve_in <= 0 or reserve_out <= 0:
        raise SimulationError(f"Invalid reserves: in={reserve_in} out={reserve_out}")
    if amount_in < 0:
        raise SimulationError(f"Negative swap amount: {amount_in}")
    if not 0 <= fee_bps < BPS_DENOMINATOR:
        raise SimulationError(f"Fee out of range: {fee_bps} bps")

    amount_in_with_fee = amount_in * (BPS_DENOMINATOR - fee_bps) // BPS_DENOMINATOR
    return amount_in_with_fee * reserve_out // (reserve_in + amount_in_with_fee)


def simulate_swap(pool: PricedPool, token_in: str, amount_in: int) -> int:
    """Simulate selling token_in into a priced pool"""
    try:
        reserve_in, reserve_out = pool.reserves_for(token_in)
    except KeyError as e:
        raise SimulationError(str(e)) from e
    return calculate_swap_output(amount_in, reserve_in, reserve_out, pool.pool.fee_bps)


def flash_loan_fee(amount: int) -> int:
    return amount * FLASH_LOAN_FEE_BPS // BPS_DENOMINATOR


def simulate_round_trip(
    pool_a: PricedPool, pool_b: PricedPool, borrow_token: str, borrow_amount: int
) -> RoundTrip:
    """
    Simulate a flash-loan round trip.

    Args:
        pool_a: Pool where the borrowed token is sold
        pool_b: Pool where the intermediate token is sold back
        borrow_token: Symbol of the borrowed token
        borrow_amount: Amount borrowed in base units

    Returns:
        RoundTrip; net_profit may be zero or negative
    """
    if borrow_amount <= 0:
        raise SimulationError(f"Borrow amount must be positive: {borrow_amount}")

    if pool_a.token_a.symbol == borrow_token:
        intermediate_token = pool_a.token_b.symbol
    elif pool_a.token_b.symbol == borrow_token:
        intermediate_token = pool_a.token_a.symbol
    else:
        raise SimulationError(f"{borrow_token} not traded by pool {pool_a.pool.pool_address}")

    intermediate_amount = simulate_swap(pool_a, borrow_token, borrow_amount)
    final_amount = simulate_swap(pool_b, intermediate_token, intermediate_amount)

    return RoundTrip(
        borrow_amount=borrow_amount,
        intermediate_amount=intermediate_amount,
        final_amount=final_amount,
        flash_loan_fee=flash_loan_fee(borrow_amount),
    )

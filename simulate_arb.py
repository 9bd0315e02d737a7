#!/usr/bin/env python3
"""Dry-run simulation of one scan cycle over static reserves"""

import argparse
import asyncio
from decimal import Decimal

from flasharb.ai.decision_engine import DecisionEngine
from flasharb.config.models import ExecutionConfig, ScannerConfig, ScoringConfig
from flasharb.config.registry import BASE, STELLAR, PoolRegistry, load_registry
from flasharb.detectors.opportunity_detector import OpportunityDetector
from flasharb.detectors.pool_scanner import PoolScanner
from flasharb.engine.route_optimizer import RouteOptimizer
from flasharb.engine.transaction_builder import TransactionBuilder
from flasharb.utils.logging import setup_logging
from flasharb.venues.static import StaticReserveAdapter


def build_adapter(registry: PoolRegistry, prices: dict, depth_eth: Decimal) -> StaticReserveAdapter:
    """Static reserves for every Base ETH/USDC pool, priced per venue"""
    base = registry.get_chain(BASE)
    eth = base.tokens["ETH"]
    usdc = base.tokens["USDC"]
    adapter = StaticReserveAdapter()

    for pool in base.pools:
        if not pool.trades_pair("ETH", "USDC"):
            continue
        price = prices[pool.venue]
        adapter.set_reserves(
            pool.pool_address,
            {
                "ETH": int(depth_eth * 10**eth.decimals),
                "USDC": int(depth_eth * price * 10**usdc.decimals),
            },
        )
    return adapter


async def simulate(args: argparse.Namespace) -> None:
    print("=" * 70)
    print("Arbitrage Simulator - Dry Run")
    print("=" * 70)

    prices = {"Aerodrome": Decimal(args.aerodrome_price), "BaseSwap": Decimal(args.baseswap_price)}
    registry = load_registry(enabled={STELLAR: False, BASE: True})
    adapter = build_adapter(registry, prices, Decimal(args.depth_eth))
    reference_prices = {"ETH": min(prices.values())}

    scanner_config = ScannerConfig(min_profit_bps=args.min_profit_bps, reference_prices_usd=reference_prices)
    execution_config = ExecutionConfig(min_profit_bps=args.min_profit_bps)

    scanner = PoolScanner(
        registry.pools(),
        registry.tokens(),
        {"Aerodrome": adapter, "BaseSwap": adapter},
        scanner_config,
    )
    detector = OpportunityDetector(scanner_config)
    optimizer = RouteOptimizer(execution_config, reference_prices)
    builder = TransactionBuilder(execution_config)
    decision_engine = DecisionEngine(ScoringConfig(), reference_prices_usd=reference_prices)

    priced = await scanner.fetch_all_pool_prices()
    print(f"\n✓ Priced {len(priced)} pools")

    opportunities = sorted(
        detector.detect(priced), key=lambda opp: opp.expected_profit_usd, reverse=True
    )
    if not opportunities:
        print("\nNo opportunities found")
        return

    print(f"✓ Found {len(opportunities)} opportunities")

    for index, opp in enumerate(opportunities[: args.count], start=1):
        print(f"\n{'=' * 70}")
        print(f"SIMULATION #{index}: {opp.token_borrow}/{opp.token_intermediate}")
        print("=" * 70)

        print("\nOpportunity:")
        print(f"  ID: {opp.id}")
        print(f"  Borrow Amount: {opp.borrow_amount}")
        print(f"  Expected Profit: ${opp.expected_profit_usd:.2f} ({opp.profit_percentage:.2f}%)")
        print(f"  Pool A: {opp.pool_a.pool.venue} ({opp.pool_a.pool.pool_address})")
        print(f"  Pool B: {opp.pool_b.pool.venue} ({opp.pool_b.pool.pool_address})")

        route = optimizer.optimize_borrow_amount(opp)
        print("\nRoute Optimization:")
        print(f"  Optimized Amount: {route.optimized_amount}")
        print(f"  Optimized Profit: {route.expected_profit}")
        print(f"  Improvement: {route.improvement_percent:.2f}%")
        print(f"  Price Impact: {optimizer.calculate_price_impact(opp, route.optimized_amount):.2f}%")

        score = decision_engine.evaluate_opportunity(opp)
        print("\nScoring:")
        print(f"  Total Score: {score.total_score:.0f}/100")
        print(f"  Profit Score: {score.profit_score:.0f}/100")
        print(f"  Liquidity Score: {score.liquidity_score:.0f}/100")
        print(f"  Risk Score: {score.risk_score:.0f}/100")
        print(f"  Success Probability: {score.success_probability * 100:.0f}%")
        print(f"  Should Execute: {'✓ YES' if score.should_execute else '✗ NO'}")
        print(f"  Reason: {score.reason}")

        factors = decision_engine.risk_scorer.assess_factors(opp)
        aggregate_risk = decision_engine.risk_scorer.aggregate_risk(factors)
        print("\nRisk Factors:")
        print(f"  Liquidity Risk: {factors.liquidity_risk:.0f}/100")
        print(f"  Slippage Risk: {factors.slippage_risk:.0f}/100")
        print(f"  Timing Risk: {factors.timing_risk:.0f}/100")
        print(f"  Execution Risk: {factors.execution_risk:.0f}/100")
        print(f"  Market Risk: {factors.market_risk:.0f}/100")
        print(f"  Aggregate Risk: {aggregate_risk:.0f}/100")

        request = builder.build_flash_loan_transaction(opp, route)
        errors = builder.validate_transaction(request)
        print("\nSettlement Request:")
        print(f"  Contract: {request.contract_address}")
        print(f"  Method: {request.method}")
        print(f"  Min Amount Out: {request.min_amount_out}")
        print(f"  Validation: {'✓ PASS' if not errors else '✗ FAIL: ' + ', '.join(errors)}")

        print("\nRecommendation:")
        if score.should_execute and aggregate_risk < 70:
            print("  ✓ RECOMMENDED FOR EXECUTION")
        elif score.should_execute:
            print("  ⚠ EXECUTE WITH CAUTION (High Risk)")
        else:
            print("  ✗ NOT RECOMMENDED")

    print(f"\n{'=' * 70}")
    print("Simulation complete")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Simulate one arbitrage scan cycle on static reserves")
    parser.add_argument("--aerodrome-price", default="3000", help="ETH price in USDC on Aerodrome")
    parser.add_argument("--baseswap-price", default="3060", help="ETH price in USDC on BaseSwap")
    parser.add_argument("--depth-eth", default="2000", help="ETH reserve of each pool")
    parser.add_argument("--min-profit-bps", type=int, default=50, help="Minimum profit in bps")
    parser.add_argument("--count", type=int, default=5, help="Maximum opportunities to print")
    parser.add_argument("--log-level", default="WARNING", help="Log level")
    return parser


if __name__ == "__main__":
    arguments = build_parser().parse_args()
    setup_logging(arguments.log_level)
    asyncio.run(simulate(arguments))

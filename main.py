"""Main application entry point for the flash-loan arbitrage bot"""

import asyncio
import signal
import sys
from typing import Dict, Optional

import structlog
from dotenv import load_dotenv
from pydantic import ValidationError

from flasharb.ai.decision_engine import DecisionEngine
from flasharb.ai.opportunity_ranker import OpportunityRanker
from flasharb.chains.base_connector import BaseConnector
from flasharb.chains.soroban_client import SorobanClient
from flasharb.config.models import Settings
from flasharb.config.registry import BASE, STELLAR, VenueType, load_registry
from flasharb.detectors.opportunity_detector import OpportunityDetector
from flasharb.detectors.opportunity_store import OpportunityStore
from flasharb.detectors.pool_scanner import PoolScanner
from flasharb.engine.flash_loan_engine import FlashLoanEngine
from flasharb.engine.settlement import (
    DryRunSettlementClient,
    SettlementClient,
    SettlementRouter,
    SorobanSettlementClient,
    Web3SettlementClient,
)
from flasharb.monitoring.execution_metrics import ExecutionMetrics
from flasharb.monitoring.metrics import start_metrics_server
from flasharb.monitors.arbitrage_bot import ArbitrageBot
from flasharb.utils.logging import setup_logging
from flasharb.venues.base import VenueAdapter
from flasharb.venues.soroban import AquariusAdapter, SoroswapAdapter
from flasharb.venues.uniswap_v2 import UniswapV2Adapter

# Load environment variables
load_dotenv()

logger = structlog.get_logger()

ADAPTER_TYPES = {
    VenueType.SOROSWAP: SoroswapAdapter,
    VenueType.AQUARIUS: AquariusAdapter,
    VenueType.AERODROME: UniswapV2Adapter,
    VenueType.BASESWAP: UniswapV2Adapter,
}


class Application:
    """Main application orchestrator"""

    def __init__(self):
        """Initialize application components"""
        self.settings: Optional[Settings] = None
        self.base_connector: Optional[BaseConnector] = None
        self.soroban_client: Optional[SorobanClient] = None
        self.execution_metrics: Optional[ExecutionMetrics] = None
        self.bot: Optional[ArbitrageBot] = None

        # Shutdown flag
        self._shutdown_event = asyncio.Event()

        self._logger = logger.bind(component="application")

    async def initialize(self) -> None:
        """Initialize all application components"""
        self._logger.info("application_initializing")

        # Configuration errors are fatal before any cycle runs
        self.settings = Settings()
        setup_logging(self.settings.log_level)

        scanner_config = self.settings.get_scanner_config()
        scoring_config = self.settings.get_scoring_config()
        execution_config = self.settings.get_execution_config()
        registry = load_registry(
            self.settings.pool_registry_file,
            self.settings.get_chain_enablement(),
        )
        enabled_chains = [chain.name for chain in registry.enabled_chains()]

        self._logger.info(
            "settings_loaded",
            log_level=self.settings.log_level,
            execution_mode=execution_config.mode,
            auto_execute=execution_config.auto_execute,
            ai_enabled=scoring_config.enabled,
            chains=enabled_chains,
        )

        try:
            clients: Dict[str, object] = {}
            native_token_usd = {}
            settlement_clients: Dict[str, SettlementClient] = {}

            if BASE in enabled_chains:
                self._logger.info("initializing_base_connector")
                base_config = self.settings.get_base_config()
                self.base_connector = BaseConnector(
                    base_config,
                    private_key=self.settings.bot_private_key or None,
                )
                clients[BASE] = self.base_connector
                native_token_usd[BASE] = base_config.native_token_usd
                settlement_clients[BASE] = Web3SettlementClient(
                    self.base_connector,
                    receipt_timeout_seconds=execution_config.tx_timeout_seconds,
                )

            if STELLAR in enabled_chains:
                self._logger.info("initializing_soroban_client")
                stellar_config = self.settings.get_stellar_config()
                self.soroban_client = SorobanClient(
                    stellar_config,
                    secret_key=self.settings.stellar_secret_key or None,
                )
                clients[STELLAR] = self.soroban_client
                native_token_usd[STELLAR] = stellar_config.native_token_usd
                settlement_clients[STELLAR] = SorobanSettlementClient(
                    self.soroban_client,
                    confirm_timeout_seconds=execution_config.tx_timeout_seconds,
                )

            adapters: Dict[str, VenueAdapter] = {}
            for pool in registry.pools():
                if pool.venue not in adapters:
                    adapter_type = ADAPTER_TYPES[VenueType(pool.venue_type)]
                    adapters[pool.venue] = adapter_type(clients[pool.chain], pool.venue)

            if execution_config.mode == "live":
                settlement_client = SettlementRouter(settlement_clients)
            else:
                settlement_client = DryRunSettlementClient()

            self.execution_metrics = ExecutionMetrics()
            self.bot = ArbitrageBot(
                scanner=PoolScanner(registry.pools(), registry.tokens(), adapters, scanner_config),
                detector=OpportunityDetector(scanner_config),
                store=OpportunityStore(scanner_config.max_opportunities),
                decision_engine=DecisionEngine(
                    scoring_config,
                    self.execution_metrics,
                    scanner_config.reference_prices_usd,
                ),
                engine=FlashLoanEngine(
                    execution_config,
                    settlement_client,
                    self.execution_metrics,
                    reference_prices_usd=scanner_config.reference_prices_usd,
                    native_token_usd=native_token_usd,
                ),
                execution_metrics=self.execution_metrics,
                ranker=OpportunityRanker(),
                scan_interval_ms=scanner_config.scan_interval_ms,
                auto_execute=execution_config.auto_execute,
            )

            self._logger.info("application_initialized")

        except Exception as e:
            self._logger.error(
                "application_initialization_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

    async def start(self) -> None:
        """Start all application components"""
        self._logger.info("application_starting")

        self._logger.info("starting_metrics_server", port=self.settings.prometheus_port)
        start_metrics_server(port=self.settings.prometheus_port)

        await self.bot.start()
        self._logger.info("application_started")

    async def stop(self) -> None:
        """Stop all application components gracefully"""
        self._logger.info("application_stopping")

        if self.bot and self.bot.is_running:
            await self.bot.stop()

        self._logger.info("application_stopped")

    def setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown"""
        def signal_handler(signum, frame):
            """Handle shutdown signals"""
            signal_name = signal.Signals(signum).name
            self._logger.info(
                "shutdown_signal_received",
                signal=signal_name,
            )
            self._shutdown_event.set()

        signal.signal(signal.SIGTERM, signal_handler)
        signal.signal(signal.SIGINT, signal_handler)

        self._logger.info("signal_handlers_registered")

    async def wait_for_shutdown(self) -> None:
        """Wait for shutdown signal"""
        await self._shutdown_event.wait()


async def main() -> None:
    """Main application entry point"""
    setup_logging()
    app = Application()

    try:
        await app.initialize()
    except ValidationError as e:
        logger.error("invalid_configuration", error_count=e.error_count(), error=str(e))
        sys.exit(1)

    try:
        app.setup_signal_handlers()
        await app.start()
        await app.wait_for_shutdown()
        await app.stop()
        logger.info("application_shutdown_complete")

    except KeyboardInterrupt:
        logger.info("keyboard_interrupt_received")
        await app.stop()
    except Exception as e:
        logger.error(
            "application_error",
            error=str(e),
            error_type=type(e).__name__,
        )
        await app.stop()
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())

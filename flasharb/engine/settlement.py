"""Settlement clients: submit executor calls and interpret their outcome"""

import uuid
from decimal import Decimal
from typing import List, Mapping, Protocol

import requests
import structlog
from stellar_sdk import scval
from stellar_sdk.exceptions import SdkError
from stellar_sdk.xdr import SCVal
from web3.exceptions import TimeExhausted, Web3Exception

from flasharb.chains.connector import ChainConnector
from flasharb.chains.soroban_client import SorobanClient
from flasharb.core.errors import (
    ContractCallError,
    SettlementError,
    SettlementTimeoutError,
    SimulationError,
)
from flasharb.core.models import SettlementOutcome, SettlementRequest
from flasharb.detectors.amm import simulate_round_trip

logger = structlog.get_logger()

FLASH_LOAN_EXECUTOR_ABI = [
    {
        "inputs": [
            {"internalType": "address", "name": "tokenBorrow", "type": "address"},
            {"internalType": "address", "name": "tokenIntermediate", "type": "address"},
            {"internalType": "uint256", "name": "amount", "type": "uint256"},
            {"internalType": "uint8", "name": "dexAType", "type": "uint8"},
            {"internalType": "address", "name": "dexAPool", "type": "address"},
            {"internalType": "uint8", "name": "dexBType", "type": "uint8"},
            {"internalType": "address", "name": "dexBPool", "type": "address"},
            {"internalType": "uint256", "name": "minProfitBps", "type": "uint256"},
        ],
        "name": "executeFlashLoanArbitrage",
        "outputs": [{"internalType": "uint256", "name": "profit", "type": "uint256"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "internalType": "uint32", "name": "routeId", "type": "uint32"},
            {"indexed": False, "internalType": "address", "name": "dexA", "type": "address"},
            {"indexed": False, "internalType": "address", "name": "dexB", "type": "address"},
            {"indexed": False, "internalType": "int256", "name": "profit", "type": "int256"},
        ],
        "name": "ArbitrageExecuted",
        "type": "event",
    },
]

WEI_PER_ETH = Decimal(10) ** 18

SOROBAN_EXECUTOR_METHOD = "execute_flash_loan_arbitrage"


class SettlementClient(Protocol):
    """Submits a settlement request; raises SettlementError on failure"""

    async def submit(self, request: SettlementRequest) -> SettlementOutcome:
        ...


class Web3SettlementClient:
    """Calls the flash-loan executor contract through a chain connector"""

    def __init__(self, connector: ChainConnector, receipt_timeout_seconds: float = 30.0):
        self.connector = connector
        self.receipt_timeout_seconds = receipt_timeout_seconds
        self._logger = logger.bind(component="web3_settlement", chain=connector.chain_name)

    async def submit(self, request: SettlementRequest) -> SettlementOutcome:
        """
        Broadcast the executor call and wait for its receipt.

        Raises:
            SettlementTimeoutError: If no receipt arrives in time
            SettlementError: If sending fails or the transaction reverts
        """
        try:
            tx_hash = await self.connector.send_contract_transaction(
                request.contract_address,
                FLASH_LOAN_EXECUTOR_ABI,
                request.method,
                request.args,
            )
            self._logger.info(
                "settlement_submitted",
                opportunity_id=request.opportunity.id,
                tx_hash=tx_hash,
            )
            receipt = await self.connector.wait_for_receipt(tx_hash, self.receipt_timeout_seconds)
        except TimeExhausted as e:
            raise SettlementTimeoutError(f"No receipt within {self.receipt_timeout_seconds}s") from e
        except (Web3Exception, requests.exceptions.RequestException, ConnectionError, TimeoutError, ValueError) as e:
            raise SettlementError(f"Submission failed: {e}") from e

        if receipt["status"] != 1:
            raise SettlementError(f"Transaction {tx_hash} reverted")

        gas_cost_native = (
            Decimal(receipt["gasUsed"]) * Decimal(receipt.get("effectiveGasPrice", 0)) / WEI_PER_ETH
        )

        return SettlementOutcome(
            transaction_hash=tx_hash,
            actual_profit=self._realized_profit(request, receipt),
            gas_cost_native=gas_cost_native,
        )

    def _realized_profit(self, request: SettlementRequest, receipt) -> int:
        contract = self.connector.contract(request.contract_address, FLASH_LOAN_EXECUTOR_ABI)
        events = contract.events.ArbitrageExecuted().process_receipt(receipt)
        if not events:
            self._logger.warning(
                "settlement_profit_event_missing",
                opportunity_id=request.opportunity.id,
            )
            return 0
        return int(events[-1]["args"]["profit"])


class DryRunSettlementClient:
    """
    Paper settlement: re-simulates the round trip instead of sending it.

    Fails the same way a reverting contract would when the simulated output
    misses the slippage floor or the trade is no longer profitable.
    """

    def __init__(self):
        self._logger = logger.bind(component="dry_run_settlement")

    async def submit(self, request: SettlementRequest) -> SettlementOutcome:
        opportunity = request.opportunity
        try:
            trip = simulate_round_trip(
                opportunity.pool_a,
                opportunity.pool_b,
                opportunity.token_borrow,
                request.borrow_amount,
            )
        except SimulationError as e:
            raise SettlementError(f"Simulation failed: {e}") from e

        if trip.final_amount < request.min_amount_out:
            raise SettlementError(
                f"Output {trip.final_amount} below minimum {request.min_amount_out}"
            )
        if trip.net_profit <= 0:
            raise SettlementError("Round trip no longer profitable")

        tx_hash = f"dryrun-{uuid.uuid4().hex}"
        self._logger.info(
            "dry_run_settled",
            opportunity_id=opportunity.id,
            tx_hash=tx_hash,
            borrow_amount=request.borrow_amount,
            profit=trip.net_profit,
        )
        return SettlementOutcome(transaction_hash=tx_hash, actual_profit=trip.net_profit)


def soroban_executor_args(request: SettlementRequest) -> List[SCVal]:
    """
    Arguments for the Soroban executor's execute_flash_loan_arbitrage.

    The flash loan is drawn from the first venue's pool.
    """
    return [
        scval.to_address(request.venue_a_pool),
        scval.to_address(request.token_borrow),
        scval.to_address(request.token_intermediate),
        scval.to_int128(request.borrow_amount),
        scval.to_uint32(request.venue_a_type),
        scval.to_address(request.venue_a_pool),
        scval.to_uint32(request.venue_b_type),
        scval.to_address(request.venue_b_pool),
        scval.to_uint32(request.min_profit_bps),
        scval.to_uint32(request.max_slippage_bps),
    ]


class SorobanSettlementClient:
    """Invokes the Soroban flash-loan executor contract"""

    def __init__(self, client: SorobanClient, confirm_timeout_seconds: float = 30.0):
        self.client = client
        self.confirm_timeout_seconds = confirm_timeout_seconds
        self._logger = logger.bind(component="soroban_settlement", chain=client.chain_name)

    async def submit(self, request: SettlementRequest) -> SettlementOutcome:
        """
        Invoke the executor and wait for confirmation.

        The contract returns the net profit in borrow token base units.

        Raises:
            SettlementTimeoutError: If the transaction does not confirm in time
            SettlementError: If submission fails or the contract call fails
        """
        try:
            result = await self.client.invoke(
                request.contract_address,
                SOROBAN_EXECUTOR_METHOD,
                soroban_executor_args(request),
                timeout_seconds=self.confirm_timeout_seconds,
            )
        except TimeoutError as e:
            raise SettlementTimeoutError(str(e)) from e
        except (ContractCallError, SdkError, requests.exceptions.RequestException, ConnectionError, ValueError) as e:
            raise SettlementError(f"Submission failed: {e}") from e

        self._logger.info(
            "settlement_confirmed",
            opportunity_id=request.opportunity.id,
            tx_hash=result.transaction_hash,
            profit=result.return_value,
        )
        return SettlementOutcome(
            transaction_hash=result.transaction_hash,
            actual_profit=int(result.return_value or 0),
            gas_cost_native=result.fee_charged_xlm,
        )


class SettlementRouter:
    """Dispatches each request to the settlement client of its opportunity's chain"""

    def __init__(self, clients: Mapping[str, SettlementClient]):
        self.clients = dict(clients)

    async def submit(self, request: SettlementRequest) -> SettlementOutcome:
        chain = request.opportunity.chain
        client = self.clients.get(chain)
        if client is None:
            raise SettlementError(f"No settlement client for chain {chain}")
        return await client.submit(request)

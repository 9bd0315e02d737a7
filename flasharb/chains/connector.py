"""Base chain connector with RPC connection management and circuit breaker"""

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

import requests
import structlog
from web3 import Web3
from web3.exceptions import Web3Exception
from web3.types import TxReceipt

from flasharb.config.models import ChainConfig
from flasharb.monitoring import metrics

logger = structlog.get_logger()


class CircuitState(Enum):
    """Circuit breaker states"""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failures detected, stop calling
    HALF_OPEN = "half_open"  # Testing recovery


@dataclass
class CircuitBreaker:
    """Circuit breaker for RPC endpoint"""

    failure_threshold: int = 5
    timeout_seconds: int = 60
    failure_count: int = 0
    state: CircuitState = CircuitState.CLOSED
    last_failure_time: float = 0.0

    def record_success(self) -> None:
        """Record successful call"""
        self.failure_count = 0
        if self.state == CircuitState.HALF_OPEN:
            self.state = CircuitState.CLOSED
            logger.info("circuit_breaker_closed", state=self.state.value)

    def record_failure(self) -> None:
        """Record failed call"""
        self.failure_count += 1
        self.last_failure_time = time.time()

        if self.state == CircuitState.HALF_OPEN:
            self.state = CircuitState.OPEN
            logger.warning("circuit_breaker_reopened", state=self.state.value)
        elif self.failure_count >= self.failure_threshold and self.state == CircuitState.CLOSED:
            self.state = CircuitState.OPEN
            logger.warning(
                "circuit_breaker_opened",
                state=self.state.value,
                failure_count=self.failure_count,
            )

    def can_attempt(self) -> bool:
        """Check if call can be attempted"""
        if self.state == CircuitState.CLOSED:
            return True

        if self.state == CircuitState.OPEN:
            if time.time() - self.last_failure_time >= self.timeout_seconds:
                self.state = CircuitState.HALF_OPEN
                logger.info("circuit_breaker_half_open", state=self.state.value)
                return True
            return False

        # HALF_OPEN state - allow one attempt
        return True


class ChainConnector:
    """Base class for blockchain connectors with RPC failover and circuit breaker"""

    def __init__(self, config: ChainConfig, private_key: Optional[str] = None):
        self.config = config
        self.chain_name = config.name
        self.chain_id = config.chain_id
        self.rpc_urls = config.rpc_urls
        self.current_rpc_index = 0

        self.w3: Optional[Web3] = None
        self._private_key = private_key or None
        self._circuit_breakers: Dict[str, CircuitBreaker] = {
            url: CircuitBreaker() for url in self.rpc_urls
        }
        self._connect()

    def _connect(self) -> None:
        """Establish connection to RPC endpoint"""
        rpc_url = self.rpc_urls[self.current_rpc_index]
        try:
            self.w3 = Web3(Web3.HTTPProvider(rpc_url))
            if self.w3.is_connected():
                logger.info(
                    "rpc_connected",
                    chain=self.chain_name,
                    rpc_url=rpc_url,
                    index=self.current_rpc_index,
                )
            else:
                raise ConnectionError(f"Failed to connect to {rpc_url}")
        except Exception as e:
            logger.error(
                "rpc_connection_failed",
                chain=self.chain_name,
                rpc_url=rpc_url,
                error=str(e),
            )
            raise

    def _failover(self) -> bool:
        """Attempt failover to next RPC endpoint"""
        original_index = self.current_rpc_index

        for _ in range(len(self.rpc_urls)):
            self.current_rpc_index = (self.current_rpc_index + 1) % len(self.rpc_urls)
            rpc_url = self.rpc_urls[self.current_rpc_index]

            circuit_breaker = self._circuit_breakers[rpc_url]
            if not circuit_breaker.can_attempt():
                logger.debug(
                    "rpc_circuit_breaker_open",
                    chain=self.chain_name,
                    rpc_url=rpc_url,
                )
                continue

            try:
                self._connect()
                if self.w3 and self.w3.is_connected():
                    logger.info(
                        "rpc_failover_success",
                        chain=self.chain_name,
                        from_index=original_index,
                        to_index=self.current_rpc_index,
                        rpc_url=rpc_url,
                    )
                    circuit_breaker.record_success()
                    return True
            except Exception as e:
                logger.warning(
                    "rpc_failover_attempt_failed",
                    chain=self.chain_name,
                    rpc_url=rpc_url,
                    error=str(e),
                )
                circuit_breaker.record_failure()
                continue

        logger.error(
            "rpc_failover_exhausted",
            chain=self.chain_name,
            attempted_endpoints=len(self.rpc_urls),
        )
        return False

    async def _retry_with_failover(
        self, operation: str, func, *args, max_retries: int = 3, **kwargs
    ) -> Any:
        """Execute a blocking web3 operation off the event loop with retry and failover"""
        last_error = None

        for attempt in range(max_retries):
            start_time = time.time()
            current_rpc_url = self.rpc_urls[self.current_rpc_index]
            circuit_breaker = self._circuit_breakers[current_rpc_url]
            try:
                if not circuit_breaker.can_attempt():
                    logger.debug(
                        "rpc_circuit_breaker_blocking",
                        chain=self.chain_name,
                        operation=operation,
                        rpc_url=current_rpc_url,
                    )
                    if not self._failover():
                        raise ConnectionError("All RPC endpoints unavailable")
                    continue

                result = await asyncio.to_thread(func, *args, **kwargs)

                metrics.chain_rpc_latency.labels(
                    chain=self.chain_name,
                    endpoint=current_rpc_url,
                    method=operation
                ).observe(time.time() - start_time)

                circuit_breaker.record_success()
                return result

            except (Web3Exception, requests.exceptions.RequestException, ConnectionError, TimeoutError) as e:
                last_error = e
                circuit_breaker.record_failure()

                metrics.chain_rpc_errors.labels(
                    chain=self.chain_name,
                    error_type=type(e).__name__
                ).inc()

                logger.warning(
                    "rpc_operation_failed",
                    chain=self.chain_name,
                    operation=operation,
                    attempt=attempt + 1,
                    max_retries=max_retries,
                    error=str(e),
                    rpc_url=current_rpc_url,
                )

                if attempt < max_retries - 1:
                    if self._failover():
                        # Exponential backoff
                        await asyncio.sleep(2**attempt)
                        continue
                    break

        logger.error(
            "rpc_operation_failed_all_retries",
            chain=self.chain_name,
            operation=operation,
            max_retries=max_retries,
            error=str(last_error),
        )
        if last_error is None:
            last_error = ConnectionError(f"{operation} failed: no RPC endpoint available")
        raise last_error

    def contract(self, address: str, abi: List[Dict[str, Any]]):
        """Create a contract instance bound to the current endpoint"""
        return self.w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)

    async def get_latest_block(self) -> int:
        """Get latest block number from chain"""
        return await self._retry_with_failover(
            "get_latest_block",
            lambda: self.w3.eth.block_number,
        )

    async def call_contract(
        self, address: str, abi: List[Dict[str, Any]], function_name: str, *args
    ) -> Any:
        """Call a read-only contract function"""
        return await self._retry_with_failover(
            function_name,
            lambda: getattr(self.contract(address, abi).functions, function_name)(*args).call(),
        )

    @property
    def account_address(self) -> Optional[str]:
        """Address of the signing account, if one is configured"""
        if not self._private_key:
            return None
        return self.w3.eth.account.from_key(self._private_key).address

    def _sign_and_send(
        self, address: str, abi: List[Dict[str, Any]], function_name: str, args: List[Any]
    ) -> str:
        sender = self.account_address
        function = getattr(self.contract(address, abi).functions, function_name)(*args)
        tx = function.build_transaction(
            {
                "from": sender,
                "nonce": self.w3.eth.get_transaction_count(sender),
                "chainId": self.chain_id,
            }
        )
        signed = self.w3.eth.account.sign_transaction(tx, self._private_key)
        tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
        return tx_hash.to_0x_hex()

    async def send_contract_transaction(
        self, address: str, abi: List[Dict[str, Any]], function_name: str, args: List[Any]
    ) -> str:
        """
        Build, sign and broadcast a contract transaction.

        Sending is not retried: a retry could broadcast the same trade twice.

        Returns:
            Transaction hash as hex string
        """
        if not self._private_key:
            raise ValueError(f"No signing key configured for {self.chain_name}")

        return await self._retry_with_failover(
            f"send_{function_name}",
            self._sign_and_send,
            address,
            abi,
            function_name,
            args,
            max_retries=1,
        )

    async def wait_for_receipt(self, tx_hash: str, timeout_seconds: float) -> TxReceipt:
        """Wait for a transaction receipt"""
        return await self._retry_with_failover(
            "wait_for_receipt",
            lambda: self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout_seconds),
            max_retries=1,
        )

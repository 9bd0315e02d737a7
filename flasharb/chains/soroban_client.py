"""Soroban RPC client for Stellar contract reads and invocations"""

import asyncio
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, List, Optional

import requests
import structlog
from stellar_sdk import Account, Keypair, SorobanServer, TransactionBuilder, scval
from stellar_sdk.exceptions import SdkError
from stellar_sdk.soroban_rpc import GetTransactionStatus, SendTransactionStatus
from stellar_sdk.xdr import SCVal, SCValType, TransactionMeta, TransactionResult

from flasharb.config.models import SorobanConfig
from flasharb.core.errors import ContractCallError
from flasharb.monitoring import metrics

logger = structlog.get_logger()

STROOPS_PER_XLM = Decimal(10) ** 7
BASE_FEE = 100
TX_TIMEOUT_SECONDS = 30
POLL_INTERVAL_SECONDS = 1.0


_INTEGER_DECODERS = {
    SCValType.SCV_U32: scval.from_uint32,
    SCValType.SCV_I32: scval.from_int32,
    SCValType.SCV_U64: scval.from_uint64,
    SCValType.SCV_I64: scval.from_int64,
    SCValType.SCV_U128: scval.from_uint128,
    SCValType.SCV_I128: scval.from_int128,
}


def to_native(value: SCVal) -> Any:
    """
    Convert the SCVal shapes pool and executor contracts return.

    Integers become int, addresses their strkey, vectors lists.
    """
    if value.type in _INTEGER_DECODERS:
        return _INTEGER_DECODERS[value.type](value)
    if value.type == SCValType.SCV_ADDRESS:
        return scval.from_address(value).address
    if value.type == SCValType.SCV_VEC:
        return [to_native(item) for item in scval.from_vec(value)]
    if value.type == SCValType.SCV_BOOL:
        return scval.from_bool(value)
    if value.type == SCValType.SCV_VOID:
        return None
    raise ContractCallError(f"Unsupported return type {value.type.name}")


@dataclass(frozen=True)
class InvocationResult:
    """Confirmed Soroban contract invocation"""

    transaction_hash: str
    return_value: Any
    fee_charged_xlm: Decimal


def return_value_from_meta(result_meta_xdr: str) -> Any:
    """Decode a contract call's return value from transaction meta"""
    meta = TransactionMeta.from_xdr(result_meta_xdr)
    body = meta.v4 if getattr(meta, "v4", None) is not None else meta.v3
    soroban_meta = body.soroban_meta
    if soroban_meta is None or soroban_meta.return_value is None:
        return None
    return to_native(soroban_meta.return_value)


def fee_charged_xlm(result_xdr: str) -> Decimal:
    """Fee charged for a transaction, in XLM"""
    result = TransactionResult.from_xdr(result_xdr)
    return Decimal(result.fee_charged.int64) / STROOPS_PER_XLM


class SorobanClient:
    """
    Simulates and submits Soroban contract calls.

    The SDK is synchronous, so every RPC runs in a worker thread. Reads are
    simulated and never submitted; only invoke() signs and sends.
    """

    def __init__(
        self,
        config: SorobanConfig,
        secret_key: Optional[str] = None,
        server: Optional[SorobanServer] = None,
    ):
        self.config = config
        self.chain_name = config.name
        self.server = server or SorobanServer(config.rpc_url)
        self._keypair = Keypair.from_secret(secret_key) if secret_key else None
        self._logger = logger.bind(component="soroban_client", chain=config.name)

    @property
    def account_address(self) -> Optional[str]:
        return self._keypair.public_key if self._keypair else None

    async def _rpc(self, operation: str, func, *args) -> Any:
        """Run a blocking SDK call off the event loop and record latency"""
        start_time = time.time()
        try:
            result = await asyncio.to_thread(func, *args)
        except (SdkError, requests.exceptions.RequestException, ConnectionError, TimeoutError) as e:
            metrics.chain_rpc_errors.labels(chain=self.chain_name, error_type=type(e).__name__).inc()
            self._logger.warning(
                "rpc_operation_failed",
                operation=operation,
                error=str(e),
                rpc_url=self.config.rpc_url,
            )
            raise

        metrics.chain_rpc_latency.labels(
            chain=self.chain_name,
            endpoint=self.config.rpc_url,
            method=operation,
        ).observe(time.time() - start_time)
        return result

    def _build(self, source: Account, contract_id: str, function_name: str, parameters: List[SCVal]):
        return (
            TransactionBuilder(source, self.config.network_passphrase, base_fee=BASE_FEE)
            .append_invoke_contract_function_op(contract_id, function_name, parameters=parameters)
            .set_timeout(TX_TIMEOUT_SECONDS)
            .build()
        )

    async def simulate_call(
        self, contract_id: str, function_name: str, parameters: Optional[List[SCVal]] = None
    ) -> Any:
        """
        Read a contract function by simulating it.

        Args:
            contract_id: Contract strkey (C...)
            function_name: Contract function to call
            parameters: Function arguments as SCVal

        Returns:
            Return value converted to native Python types

        Raises:
            ContractCallError: If the simulation fails or returns nothing
        """
        public_key = self.account_address or Keypair.random().public_key
        tx = self._build(Account(public_key, 0), contract_id, function_name, list(parameters or []))

        response = await self._rpc(function_name, self.server.simulate_transaction, tx)
        if response.error:
            raise ContractCallError(f"{function_name} simulation failed: {response.error}")
        if not response.results:
            raise ContractCallError(f"{function_name} simulation returned no result")

        return to_native(SCVal.from_xdr(response.results[0].xdr))

    async def invoke(
        self,
        contract_id: str,
        function_name: str,
        parameters: List[SCVal],
        timeout_seconds: float = 30.0,
    ) -> InvocationResult:
        """
        Sign, submit and confirm a contract invocation.

        Submission is not retried: a retry could send the same trade twice.

        Raises:
            ValueError: If no signing key is configured
            ContractCallError: If the transaction is rejected or fails
            TimeoutError: If it does not confirm within timeout_seconds
        """
        if self._keypair is None:
            raise ValueError(f"No signing key configured for {self.chain_name}")

        source = await self._rpc("load_account", self.server.load_account, self._keypair.public_key)
        tx = self._build(source, contract_id, function_name, parameters)
        tx = await self._rpc("prepare_transaction", self.server.prepare_transaction, tx)
        tx.sign(self._keypair)

        sent = await self._rpc(f"send_{function_name}", self.server.send_transaction, tx)
        if sent.status == SendTransactionStatus.ERROR:
            raise ContractCallError(f"{function_name} rejected: {sent.error_result_xdr}")

        self._logger.info("soroban_transaction_sent", function=function_name, tx_hash=sent.hash)

        deadline = time.time() + timeout_seconds
        while True:
            status = await self._rpc("get_transaction", self.server.get_transaction, sent.hash)
            if status.status == GetTransactionStatus.SUCCESS:
                return InvocationResult(
                    transaction_hash=sent.hash,
                    return_value=return_value_from_meta(status.result_meta_xdr),
                    fee_charged_xlm=fee_charged_xlm(status.result_xdr),
                )
            if status.status == GetTransactionStatus.FAILED:
                raise ContractCallError(f"Transaction {sent.hash} failed")
            if time.time() >= deadline:
                raise TimeoutError(f"Transaction {sent.hash} not confirmed within {timeout_seconds}s")
            await asyncio.sleep(POLL_INTERVAL_SECONDS)

"""Tests for the Soroban RPC client"""

from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
import requests
from stellar_sdk import Account, Keypair, Network, StrKey, scval
from stellar_sdk.soroban_rpc import GetTransactionStatus, SendTransactionStatus

from flasharb.chains.soroban_client import SorobanClient, to_native
from flasharb.config.models import SorobanConfig
from flasharb.core.errors import ContractCallError
from flasharb.monitoring import metrics

POOL = StrKey.encode_contract(b"\x01" * 32)
TOKEN_A = StrKey.encode_contract(b"\x02" * 32)
TOKEN_B = StrKey.encode_contract(b"\x03" * 32)


@pytest.fixture
def config():
    return SorobanConfig(
        rpc_url="https://soroban.example.org",
        network_passphrase=Network.TESTNET_NETWORK_PASSPHRASE,
        native_token_usd=Decimal("0.1"),
    )


def simulation(value=None, error=None):
    """Mock simulateTransaction response returning one SCVal"""
    results = [MagicMock(xdr=value.to_xdr())] if value is not None else None
    return MagicMock(error=error, results=results)


class TestToNative:
    """Test SCVal conversion"""

    def test_integers_and_vectors(self):
        """Test i128 reserves and address vectors decode to Python values"""
        assert to_native(scval.to_int128(-5)) == -5
        assert to_native(scval.to_vec([scval.to_uint128(7), scval.to_uint128(3)])) == [7, 3]
        assert to_native(scval.to_vec([scval.to_address(TOKEN_A), scval.to_address(TOKEN_B)])) == [
            TOKEN_A,
            TOKEN_B,
        ]

    def test_unsupported_type(self):
        """Test unexpected return shapes are call errors"""
        with pytest.raises(ContractCallError, match="Unsupported return type"):
            to_native(scval.to_symbol("pair"))


class TestSimulateCall:
    """Test read-only calls"""

    @pytest.mark.asyncio
    async def test_returns_decoded_value(self, config):
        """Test the simulated return value is decoded"""
        server = MagicMock()
        server.simulate_transaction.return_value = simulation(
            scval.to_vec([scval.to_int128(100), scval.to_int128(200)])
        )
        client = SorobanClient(config, server=server)

        result = await client.simulate_call(POOL, "get_reserves")

        assert result == [100, 200]
        server.simulate_transaction.assert_called_once()
        server.send_transaction.assert_not_called()

    @pytest.mark.asyncio
    async def test_simulation_error(self, config):
        """Test a failed simulation raises a call error"""
        server = MagicMock()
        server.simulate_transaction.return_value = simulation(error="HostError: contract missing")
        client = SorobanClient(config, server=server)

        with pytest.raises(ContractCallError, match="contract missing"):
            await client.simulate_call(POOL, "token_0")

    @pytest.mark.asyncio
    async def test_transport_error_counted(self, config):
        """Test HTTP failures propagate and are counted"""
        server = MagicMock()
        server.simulate_transaction.side_effect = requests.exceptions.ConnectionError("rpc down")
        client = SorobanClient(config, server=server)
        counter = metrics.chain_rpc_errors.labels(chain="Stellar", error_type="ConnectionError")
        before = counter._value.get()

        with pytest.raises(requests.exceptions.ConnectionError):
            await client.simulate_call(POOL, "get_reserves")

        assert counter._value.get() == before + 1


class TestInvoke:
    """Test signed invocations"""

    @pytest.fixture
    def keypair(self):
        return Keypair.random()

    @pytest.fixture
    def server(self, keypair):
        server = MagicMock()
        server.load_account.return_value = Account(keypair.public_key, 100)
        server.prepare_transaction.side_effect = lambda tx: tx
        server.send_transaction.return_value = MagicMock(status=SendTransactionStatus.PENDING, hash="abc123")
        server.get_transaction.side_effect = [
            MagicMock(status=GetTransactionStatus.NOT_FOUND),
            MagicMock(status=GetTransactionStatus.SUCCESS, result_meta_xdr="meta", result_xdr="result"),
        ]
        return server

    @pytest.mark.asyncio
    async def test_confirmed_invocation(self, config, keypair, server):
        """Test the transaction is signed, sent once and polled until it succeeds"""
        client = SorobanClient(config, secret_key=keypair.secret, server=server)

        with patch("flasharb.chains.soroban_client.POLL_INTERVAL_SECONDS", 0), patch(
            "flasharb.chains.soroban_client.return_value_from_meta", return_value=4242
        ), patch("flasharb.chains.soroban_client.fee_charged_xlm", return_value=Decimal("0.01")):
            result = await client.invoke(POOL, "execute_flash_loan_arbitrage", [scval.to_uint32(1)])

        assert result.transaction_hash == "abc123"
        assert result.return_value == 4242
        assert result.fee_charged_xlm == Decimal("0.01")
        server.send_transaction.assert_called_once()
        assert server.get_transaction.call_count == 2
        sent = server.send_transaction.call_args.args[0]
        assert len(sent.signatures) == 1

    @pytest.mark.asyncio
    async def test_rejected_submission(self, config, keypair, server):
        """Test an error status from sendTransaction is a call error"""
        server.send_transaction.return_value = MagicMock(status=SendTransactionStatus.ERROR, error_result_xdr="AAAA")
        client = SorobanClient(config, secret_key=keypair.secret, server=server)

        with pytest.raises(ContractCallError, match="rejected"):
            await client.invoke(POOL, "execute_flash_loan_arbitrage", [])

        server.get_transaction.assert_not_called()

    @pytest.mark.asyncio
    async def test_failed_transaction(self, config, keypair, server):
        """Test a failed transaction is a call error"""
        server.get_transaction.side_effect = [MagicMock(status=GetTransactionStatus.FAILED)]
        client = SorobanClient(config, secret_key=keypair.secret, server=server)

        with pytest.raises(ContractCallError, match="abc123 failed"):
            await client.invoke(POOL, "execute_flash_loan_arbitrage", [])

    @pytest.mark.asyncio
    async def test_unconfirmed_transaction_times_out(self, config, keypair, server):
        """Test polling stops at the deadline"""
        server.get_transaction.side_effect = None
        server.get_transaction.return_value = MagicMock(status=GetTransactionStatus.NOT_FOUND)
        client = SorobanClient(config, secret_key=keypair.secret, server=server)

        with patch("flasharb.chains.soroban_client.POLL_INTERVAL_SECONDS", 0):
            with pytest.raises(TimeoutError, match="abc123"):
                await client.invoke(POOL, "execute_flash_loan_arbitrage", [], timeout_seconds=0)

    @pytest.mark.asyncio
    async def test_requires_signing_key(self, config, server):
        """Test read-only clients cannot invoke"""
        client = SorobanClient(config, server=server)

        with pytest.raises(ValueError, match="No signing key"):
            await client.invoke(POOL, "execute_flash_loan_arbitrage", [])

        server.load_account.assert_not_called()

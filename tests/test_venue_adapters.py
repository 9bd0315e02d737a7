"""Tests for venue adapters"""

from unittest.mock import AsyncMock, MagicMock

import pytest
import requests
from web3.exceptions import Web3Exception

from flasharb.core.errors import ContractCallError
from flasharb.venues import (
    AquariusAdapter,
    FetchFailure,
    PoolState,
    SoroswapAdapter,
    StaticReserveAdapter,
    UniswapV2Adapter,
)
from tests.factories import SOROSWAP_POOL, USDC, XLM

POOL = SOROSWAP_POOL.pool_address


def make_connector(token0, reserves=(100, 200, 0)):
    """Mock connector answering token0 and getReserves"""

    async def call_contract(address, abi, function_name, *args):
        if function_name == "token0":
            return token0
        if function_name == "getReserves":
            return reserves
        raise AssertionError(function_name)

    connector = MagicMock()
    connector.call_contract = AsyncMock(side_effect=call_contract)
    return connector


class TestUniswapV2Adapter:
    """Test pair reserve reading"""

    @pytest.mark.asyncio
    async def test_token0_is_token_a(self):
        """Test reserves are reported as-is when token0 is token_a"""
        adapter = UniswapV2Adapter(make_connector(XLM.address), "Soroswap")

        state = await adapter.fetch_pool_state(POOL, XLM, USDC)

        assert state == PoolState(pool_address=POOL, reserve_a=100, reserve_b=200)

    @pytest.mark.asyncio
    async def test_token0_is_token_b(self):
        """Test reserves are swapped when token0 is token_b"""
        adapter = UniswapV2Adapter(make_connector(USDC.address.upper()), "Soroswap")

        state = await adapter.fetch_pool_state(POOL, XLM, USDC)

        assert state == PoolState(pool_address=POOL, reserve_a=200, reserve_b=100)

    @pytest.mark.asyncio
    async def test_token0_cached(self):
        """Test token0 is read once per pool"""
        connector = make_connector(XLM.address)
        adapter = UniswapV2Adapter(connector, "Soroswap")

        await adapter.fetch_pool_state(POOL, XLM, USDC)
        await adapter.fetch_pool_state(POOL, XLM, USDC)

        called = [call.args[2] for call in connector.call_contract.await_args_list]
        assert called.count("token0") == 1
        assert called.count("getReserves") == 2

    @pytest.mark.asyncio
    async def test_token_mismatch(self):
        """Test a pair holding other tokens is reported as a failure"""
        adapter = UniswapV2Adapter(make_connector("0x3333333333333333333333333333333333333333"), "Soroswap")

        result = await adapter.fetch_pool_state(POOL, XLM, USDC)

        assert isinstance(result, FetchFailure)
        assert result.error_type == "token_mismatch"

    @pytest.mark.asyncio
    async def test_rpc_error_becomes_failure(self):
        """Test RPC errors are returned, not raised"""
        connector = MagicMock()
        connector.call_contract = AsyncMock(side_effect=Web3Exception("execution reverted"))
        adapter = UniswapV2Adapter(connector, "Soroswap")

        result = await adapter.fetch_pool_state(POOL, XLM, USDC)

        assert isinstance(result, FetchFailure)
        assert result.error_type == "Web3Exception"
        assert "execution reverted" in result.reason

    @pytest.mark.asyncio
    async def test_transport_error_becomes_failure(self):
        """Test HTTP transport errors from the provider are returned, not raised"""
        connector = MagicMock()
        connector.call_contract = AsyncMock(side_effect=requests.exceptions.ConnectionError("rpc down"))
        adapter = UniswapV2Adapter(connector, "Aerodrome")

        result = await adapter.fetch_pool_state(POOL, XLM, USDC)

        assert isinstance(result, FetchFailure)
        assert result.error_type == "ConnectionError"
        assert result.reason == "rpc down"


def make_soroban_client(answers):
    """Mock Soroban client answering simulated reads by function name"""

    async def simulate_call(contract_id, function_name, parameters=None):
        answer = answers[function_name]
        if isinstance(answer, Exception):
            raise answer
        return answer

    client = MagicMock()
    client.simulate_call = AsyncMock(side_effect=simulate_call)
    return client


class TestSoroswapAdapter:
    """Test Soroswap pair reserve reading"""

    @pytest.mark.asyncio
    async def test_token_0_is_token_b(self):
        """Test reserves are swapped when token_0 is token_b"""
        client = make_soroban_client({"token_0": USDC.address, "get_reserves": (500, 900)})

        state = await SoroswapAdapter(client, "Soroswap").fetch_pool_state(POOL, XLM, USDC)

        assert state == PoolState(pool_address=POOL, reserve_a=900, reserve_b=500)

    @pytest.mark.asyncio
    async def test_token_0_cached(self):
        """Test the pair's token order is read once"""
        client = make_soroban_client({"token_0": XLM.address, "get_reserves": (500, 900)})
        adapter = SoroswapAdapter(client, "Soroswap")

        await adapter.fetch_pool_state(POOL, XLM, USDC)
        state = await adapter.fetch_pool_state(POOL, XLM, USDC)

        called = [call.args[1] for call in client.simulate_call.await_args_list]
        assert called == ["token_0", "get_reserves", "get_reserves"]
        assert state.reserve_a == 500

    @pytest.mark.asyncio
    async def test_simulation_error_becomes_failure(self):
        """Test failed simulations are returned, not raised"""
        client = make_soroban_client(
            {"token_0": XLM.address, "get_reserves": ContractCallError("get_reserves simulation failed: HostError")}
        )

        result = await SoroswapAdapter(client, "Soroswap").fetch_pool_state(POOL, XLM, USDC)

        assert isinstance(result, FetchFailure)
        assert result.error_type == "ContractCallError"
        assert "HostError" in result.reason


class TestAquariusAdapter:
    """Test Aquarius pool reserve reading"""

    @pytest.mark.asyncio
    async def test_reserves_follow_token_order(self):
        """Test vector reserves are oriented by the pool's token list"""
        client = make_soroban_client({"get_tokens": [XLM.address, USDC.address], "get_reserves": [7, 3]})

        state = await AquariusAdapter(client, "Aquarius").fetch_pool_state(POOL, XLM, USDC)

        assert state == PoolState(pool_address=POOL, reserve_a=7, reserve_b=3)

    @pytest.mark.asyncio
    async def test_token_mismatch(self):
        """Test a pool holding other tokens is reported as a failure"""
        client = make_soroban_client({"get_tokens": ["COTHER", USDC.address], "get_reserves": [7, 3]})

        result = await AquariusAdapter(client, "Aquarius").fetch_pool_state(POOL, XLM, USDC)

        assert isinstance(result, FetchFailure)
        assert result.error_type == "token_mismatch"

    @pytest.mark.asyncio
    async def test_multi_token_pool_rejected(self):
        """Test stable pools with more than two tokens are not read"""
        client = make_soroban_client({"get_tokens": ["CA", "CB", "CC"], "get_reserves": [1, 2, 3]})

        result = await AquariusAdapter(client, "Aquarius").fetch_pool_state(POOL, XLM, USDC)

        assert isinstance(result, FetchFailure)
        assert result.error_type == "ValueError"


class TestStaticReserveAdapter:
    """Test the in-memory adapter"""

    @pytest.mark.asyncio
    async def test_any_orientation(self):
        """Test reserves are served in the requested order"""
        adapter = StaticReserveAdapter({POOL: {"XLM": 7, "USDC": 3}})

        forward = await adapter.fetch_pool_state(POOL, XLM, USDC)
        backward = await adapter.fetch_pool_state(POOL.lower(), USDC, XLM)

        assert (forward.reserve_a, forward.reserve_b) == (7, 3)
        assert (backward.reserve_a, backward.reserve_b) == (3, 7)

    @pytest.mark.asyncio
    async def test_unknown_pool(self):
        """Test unknown pools fail with not_found"""
        result = await StaticReserveAdapter().fetch_pool_state(POOL, XLM, USDC)
        assert result.error_type == "not_found"

    @pytest.mark.asyncio
    async def test_missing_symbol(self):
        """Test a pool without the requested token fails with token_mismatch"""
        adapter = StaticReserveAdapter({POOL: {"XLM": 7}})
        result = await adapter.fetch_pool_state(POOL, XLM, USDC)
        assert result.error_type == "token_mismatch"

    @pytest.mark.asyncio
    async def test_fail_and_recover(self):
        """Test forced failures clear when reserves are set again"""
        adapter = StaticReserveAdapter({POOL: {"XLM": 7, "USDC": 3}})
        adapter.fail(POOL, "maintenance")

        failed = await adapter.fetch_pool_state(POOL, XLM, USDC)
        assert failed == FetchFailure(pool_address=POOL, reason="maintenance")

        adapter.set_reserves(POOL, {"XLM": 8, "USDC": 4})
        state = await adapter.fetch_pool_state(POOL, XLM, USDC)
        assert state.reserve_a == 8

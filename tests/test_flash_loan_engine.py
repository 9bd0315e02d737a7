"""Tests for the flash-loan execution engine"""

import asyncio
import time
from dataclasses import replace
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from flasharb.config.models import ExecutionConfig
from flasharb.core.errors import (
    ConcurrencyLimitError,
    ExecutionInProgressError,
    OpportunityExpiredError,
    SettlementError,
)
from flasharb.core.models import SettlementOutcome
from flasharb.engine.flash_loan_engine import ExecutionState, FlashLoanEngine
from flasharb.engine.transaction_builder import STALE_REQUEST_ERROR
from flasharb.monitoring.execution_metrics import ExecutionMetrics

OUTCOME = SettlementOutcome(transaction_hash="0xfeed", actual_profit=10**9, gas_cost_native=Decimal("0.001"))


def make_config(**overrides):
    values = {"max_retries": 2, "retry_delay_ms": 0, "max_concurrent_executions": 3}
    values.update(overrides)
    return ExecutionConfig(**values)


@pytest.fixture
def settlement():
    """Settlement client that succeeds immediately"""
    client = MagicMock()
    client.submit = AsyncMock(return_value=OUTCOME)
    return client


@pytest.fixture
def execution_metrics():
    return ExecutionMetrics()


@pytest.fixture
def engine(settlement, execution_metrics):
    return FlashLoanEngine(make_config(), settlement, execution_metrics, native_token_usd={"Stellar": Decimal("3000")})


def blocking_settlement():
    """Settlement client that waits until released"""
    release = asyncio.Event()

    async def submit(request):
        await release.wait()
        return OUTCOME

    client = MagicMock()
    client.submit = AsyncMock(side_effect=submit)
    return client, release


class TestSuccessfulExecution:
    """Test the happy path"""

    @pytest.mark.asyncio
    async def test_execute_arbitrage(self, engine, settlement, execution_metrics, scenario_opportunity):
        """Test one attempt produces a recorded success"""
        result = await engine.execute_arbitrage(scenario_opportunity)

        assert result.success is True
        assert result.transaction_hash == "0xfeed"
        assert result.actual_profit == 10**9
        # 100 XLM at 0.092 and 0.001 ETH at $3000
        assert result.actual_profit_usd == Decimal("9.2")
        assert result.gas_cost_usd == Decimal("3")
        assert result.attempts == 1
        settlement.submit.assert_awaited_once()

        assert engine.get_execution_history() == [result]
        assert engine.get_state(scenario_opportunity.id) == ExecutionState.SUCCEEDED
        assert engine.get_active_executions_count() == 0

        snapshot = execution_metrics.snapshot()
        assert snapshot.executed == 1
        assert snapshot.successful == 1

    @pytest.mark.asyncio
    async def test_retry_recovers(self, engine, settlement, scenario_opportunity):
        """Test a failed first attempt followed by success"""
        settlement.submit.side_effect = [SettlementError("reverted"), OUTCOME]

        result = await engine.execute_with_retry(scenario_opportunity)

        assert result.success is True
        assert result.attempts == 2
        assert len(engine.get_execution_history()) == 1


class TestRetryAggregation:
    """Test failure aggregation across attempts"""

    @pytest.mark.asyncio
    async def test_single_aggregated_failure(self, engine, settlement, execution_metrics, scenario_opportunity):
        """Test exhausted retries yield one result and one metrics record"""
        settlement.submit.side_effect = SettlementError("reverted")

        result = await engine.execute_with_retry(scenario_opportunity)

        assert result.success is False
        assert result.attempts == 2
        assert result.errors == ["reverted", "reverted"]
        assert result.error == "reverted"
        assert settlement.submit.await_count == 2

        assert engine.get_execution_history() == [result]
        snapshot = execution_metrics.snapshot()
        assert snapshot.executed == 1
        assert snapshot.failed == 1
        assert snapshot.consecutive_failures == 1
        assert engine.get_state(scenario_opportunity.id) == ExecutionState.FAILED

    @pytest.mark.asyncio
    async def test_claim_released_after_failure(self, engine, settlement, scenario_opportunity):
        """Test the same opportunity may be retried after a failed sequence"""
        settlement.submit.side_effect = SettlementError("reverted")
        await engine.execute_with_retry(scenario_opportunity)

        settlement.submit.side_effect = None
        result = await engine.execute_with_retry(scenario_opportunity)

        assert result.success is True

    @pytest.mark.asyncio
    async def test_unprofitable_route(self, settlement, execution_metrics, scenario_opportunity):
        """Test a route below the USD bar fails without submitting"""
        engine = FlashLoanEngine(
            make_config(min_execution_profit_usd=Decimal("100000")), settlement, execution_metrics
        )

        result = await engine.execute_with_retry(scenario_opportunity)

        assert result.success is False
        assert result.error == "Route no longer profitable after optimization"
        settlement.submit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_settlement_timeout(self, execution_metrics, scenario_opportunity):
        """Test a slow settlement is abandoned after the timeout"""
        client, _release = blocking_settlement()
        engine = FlashLoanEngine(make_config(tx_timeout_seconds=0.05, max_retries=1), client, execution_metrics)

        result = await engine.execute_with_retry(scenario_opportunity)

        assert result.success is False
        assert "not confirmed within" in result.error
        assert engine.get_active_executions_count() == 0

    @pytest.mark.asyncio
    async def test_stale_request_not_submitted(self, settlement, execution_metrics, scenario_opportunity):
        """Test a request past its max age fails validation and is never sent"""
        engine = FlashLoanEngine(
            make_config(request_max_age_seconds=-1, max_retries=1), settlement, execution_metrics
        )

        result = await engine.execute_with_retry(scenario_opportunity)

        assert result.success is False
        assert STALE_REQUEST_ERROR in result.error
        settlement.submit.assert_not_awaited()


class TestAdmission:
    """Test claims, caps and expiry"""

    @pytest.mark.asyncio
    async def test_duplicate_requests_rejected(self, execution_metrics, scenario_opportunity):
        """Test concurrent requests for one id run once"""
        client, release = blocking_settlement()
        engine = FlashLoanEngine(make_config(), client, execution_metrics)

        first = asyncio.create_task(engine.execute_with_retry(scenario_opportunity))
        await asyncio.sleep(0)

        for _ in range(4):
            with pytest.raises(ExecutionInProgressError):
                await engine.execute_with_retry(scenario_opportunity)

        release.set()
        result = await first

        assert result.success is True
        assert client.submit.await_count == 1
        assert len(engine.get_execution_history()) == 1

    @pytest.mark.asyncio
    async def test_concurrency_cap(self, execution_metrics, scenario_opportunity):
        """Test requests over the cap are rejected immediately"""
        client, release = blocking_settlement()
        engine = FlashLoanEngine(make_config(max_concurrent_executions=1), client, execution_metrics)
        other = replace(scenario_opportunity, id="other")

        task = engine.dispatch(scenario_opportunity)
        assert engine.get_active_executions_count() == 1
        assert not engine.can_execute_more()

        with pytest.raises(ConcurrencyLimitError):
            engine.dispatch(other)

        release.set()
        await task
        assert engine.can_execute_more()

    @pytest.mark.asyncio
    async def test_expired_rejected(self, engine, settlement, scenario_opportunity):
        """Test expired opportunities never start"""
        expired = replace(scenario_opportunity, expires_at=time.time() - 1)

        with pytest.raises(OpportunityExpiredError):
            await engine.execute_with_retry(expired)

        settlement.submit.assert_not_awaited()
        assert engine.get_execution_history() == []

    @pytest.mark.asyncio
    async def test_expiry_stops_retries(self, settlement, execution_metrics, scenario_opportunity):
        """Test no further attempt is made once the opportunity expires"""
        engine = FlashLoanEngine(make_config(max_retries=3, retry_delay_ms=100), settlement, execution_metrics)
        short_lived = replace(scenario_opportunity, expires_at=time.time() + 0.05)
        settlement.submit.side_effect = SettlementError("reverted")

        result = await engine.execute_with_retry(short_lived)

        assert result.success is False
        assert result.attempts == 1
        assert result.error.endswith("expired")

    @pytest.mark.asyncio
    async def test_dispatch_returns_task(self, engine, scenario_opportunity):
        """Test dispatch claims synchronously and runs in the background"""
        task = engine.dispatch(scenario_opportunity)

        assert engine.get_state(scenario_opportunity.id) == ExecutionState.EXECUTING
        with pytest.raises(ExecutionInProgressError):
            engine.dispatch(scenario_opportunity)

        result = await task
        assert result.success is True

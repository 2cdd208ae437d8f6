"""Tests for Telegram-initiated trades."""

from __future__ import annotations

import asyncio

import pytest

from agent_executor.core.domain.entities.ledger_entities import ManualTradeEntity
from agent_executor.core.domain.entities.signal_entity import SignalEntity
from agent_executor.core.domain.enums.trade_enums import FailureReason, ManualTradeStatus, PositionSource
from agent_executor.core.usecases.execute_manual_trade_use_case import ExecuteManualTradeUseCase

from fakes import USDC, SAFE, Harness, InMemoryManualTradeRepository


@pytest.fixture
def manual(harness: Harness):
    signal = SignalEntity(
        id="sig-manual",
        agent_id="agent-1",
        token_symbol="WETH_MANUAL_1700000000",
        side="BUY",
        size_model={"type": "fixed-usdc", "value": 25},
    )
    harness.signals.items[signal.id] = signal
    trades = InMemoryManualTradeRepository([
        ManualTradeEntity(id="mt-1", deployment_id="dep-1", signal_id=signal.id),
    ])
    uc = ExecuteManualTradeUseCase(
        manual_trade_repo=trades,
        signal_repo=harness.signals,
        deployment_repo=harness.deployments,
        coordinator=harness.coordinator,
    )
    return uc, trades


class TestManualTrade:
    def test_executes_and_links_position(self, harness: Harness, manual) -> None:
        uc, trades = manual

        result = asyncio.run(uc.execute("mt-1"))

        assert result.success
        trade = trades.items["mt-1"]
        assert trade.status == ManualTradeStatus.EXECUTED
        assert trade.position_id == result.position_id
        position = harness.positions.items[result.position_id]
        assert position.source == PositionSource.TELEGRAM
        assert position.manual_trade_id == "mt-1"
        assert position.token_symbol == "WETH"

    def test_duplicate_delivery_executes_once(self, harness: Harness, manual) -> None:
        uc, _ = manual

        async def run():
            return await asyncio.gather(uc.execute("mt-1"), uc.execute("mt-1"))

        results = asyncio.run(run())

        assert sorted(r.success for r in results) == [False, True]
        assert harness.gateway.write_names().count("execute_trade") == 1

    def test_failure_is_stored_as_human_message(self, harness: Harness, manual) -> None:
        uc, trades = manual
        harness.gateway.set_balance(USDC, SAFE, 0)

        result = asyncio.run(uc.execute("mt-1"))

        assert result.reason == FailureReason.NO_COLLATERAL
        trade = trades.items["mt-1"]
        assert trade.status == ManualTradeStatus.FAILED
        assert trade.error == "Your Safe has no USDC to trade with."

    def test_failed_trade_is_not_retried(self, harness: Harness, manual) -> None:
        uc, _ = manual
        harness.gateway.set_balance(USDC, SAFE, 0)
        asyncio.run(uc.execute("mt-1"))

        harness.gateway.set_balance(USDC, SAFE, 1000 * 10 ** 6)
        again = asyncio.run(uc.execute("mt-1"))

        assert again.reason == FailureReason.ALREADY_EXECUTED
        assert harness.gateway.writes == []

    def test_missing_deployment(self, harness: Harness, manual) -> None:
        uc, trades = manual
        del harness.deployments.items["dep-1"]

        result = asyncio.run(uc.execute("mt-1"))

        assert result.reason == FailureReason.DEPLOYMENT_NOT_FOUND
        assert trades.items["mt-1"].status == ManualTradeStatus.FAILED

    def test_unknown_trade(self, manual) -> None:
        uc, _ = manual
        assert asyncio.run(uc.execute("nope")).reason == FailureReason.MANUAL_TRADE_NOT_FOUND

"""Tests for the position monitor pass."""

from __future__ import annotations

import asyncio

import pytest

from agent_executor.core.domain.entities.execution_result import ExecutionResult
from agent_executor.core.domain.enums.trade_enums import CloseReason, FailureReason
from agent_executor.core.services.exit_rules import ExitRuleEvaluator
from agent_executor.core.usecases.monitor_positions_use_case import MonitorPositionsUseCase, shard_of

from fakes import Harness


def _monitor(h: Harness, coordinator=None, **kwargs) -> MonitorPositionsUseCase:
    return MonitorPositionsUseCase(
        position_repo=h.positions,
        venues=h.venues,
        coordinator=coordinator or h.coordinator,
        evaluator=ExitRuleEvaluator(activation_pct=3.0),
        item_delay_sec=0.0,
        **kwargs,
    )


def _open(h: Harness) -> str:
    result = h.open()
    assert result.success
    return result.position_id


class TestMonitorPass:
    def test_trailing_stop_closes_with_profit_share(self, harness: Harness) -> None:
        position_id = _open(harness)
        monitor = _monitor(harness)

        harness.market.prices["WETH"] = 2600.0  # +4%, arms the stop
        first = asyncio.run(monitor.execute_once())
        assert first["updated"] == 1
        assert first["closed"] == 0
        stored = harness.positions.items[position_id]
        assert stored.trailing_params.highest_price == 2600.0
        assert stored.trailing_params.activated

        harness.market.prices["WETH"] = 2548.0  # -2% from the mark
        second = asyncio.run(monitor.execute_once())
        assert second["closed"] == 1

        closed = harness.positions.items[position_id]
        assert closed.close_reason == CloseReason.TRAILING_STOP
        assert closed.pnl == pytest.approx(0.96)
        assert len(harness.billing.items) == 1
        assert harness.billing.items[0].amount == pytest.approx(0.192)

    def test_gap_down_through_stop_closes_at_loss_without_billing(self, harness: Harness) -> None:
        position_id = _open(harness)
        monitor = _monitor(harness)

        harness.market.prices["WETH"] = 2600.0
        asyncio.run(monitor.execute_once())
        harness.market.prices["WETH"] = 2400.0
        stats = asyncio.run(monitor.execute_once())

        assert stats["closed"] == 1
        assert harness.positions.items[position_id].pnl < 0
        assert harness.billing.items == []

    def test_missing_price_skips(self, harness: Harness) -> None:
        position_id = _open(harness)
        del harness.market.prices["WETH"]

        stats = asyncio.run(_monitor(harness).execute_once())

        assert stats["skipped"] == 1
        assert harness.positions.items[position_id].is_open

    def test_no_open_positions(self, harness: Harness) -> None:
        stats = asyncio.run(_monitor(harness).execute_once())
        assert stats == {"monitored": 0, "closed": 0, "skipped": 0, "failed": 0, "updated": 0}

    def test_zero_entry_price_is_skipped(self, harness: Harness) -> None:
        position_id = _open(harness)
        stored = harness.positions.items[position_id]
        harness.positions.items[position_id] = stored.model_copy(update={"entry_price": 0.0})

        stats = asyncio.run(_monitor(harness).execute_once())

        assert stats["skipped"] == 1

    def test_failed_close_leaves_position_open(self, harness: Harness) -> None:
        position_id = _open(harness)

        class FailingCoordinator:
            async def close_position(self, position_id, reason):
                return ExecutionResult.fail(FailureReason.TRANSACTION_REVERTED, error="reverted")

        monitor = _monitor(harness, coordinator=FailingCoordinator())
        harness.market.prices["WETH"] = 2600.0
        asyncio.run(monitor.execute_once())
        harness.market.prices["WETH"] = 2500.0
        stats = asyncio.run(monitor.execute_once())

        assert stats["failed"] == 1
        assert harness.positions.items[position_id].is_open

    def test_one_bad_position_does_not_stop_the_pass(self, harness: Harness) -> None:
        _open(harness)
        other_dep = harness.add_deployment("dep-2", "0x" + "6" * 40)
        assert harness.open(deployment=other_dep).success

        calls = []
        original = harness.adapter.get_price

        async def flaky_price(symbol):
            calls.append(symbol)
            if len(calls) == 1:
                raise RuntimeError("rpc timeout")
            return await original(symbol)

        harness.adapter.get_price = flaky_price
        stats = asyncio.run(_monitor(harness).execute_once())

        assert stats["monitored"] == 2
        assert stats["failed"] == 1


class TestSharding:
    def test_shard_is_stable(self) -> None:
        assert shard_of("pos-1", 4) == shard_of("pos-1", 4)
        assert 0 <= shard_of("pos-1", 4) < 4
        assert shard_of("pos-1", 1) == 0

    def test_each_position_is_owned_by_exactly_one_shard(self, harness: Harness) -> None:
        _open(harness)
        other_dep = harness.add_deployment("dep-2", "0x" + "6" * 40)
        harness.open(deployment=other_dep)
        del harness.market.prices["WETH"]  # every owned position ends up "skipped"

        monitored = 0
        for index in range(3):
            stats = asyncio.run(_monitor(harness, shard_index=index, shard_count=3).execute_once())
            monitored += stats["monitored"]

        assert monitored == 2

"""Tests for trailing stop, take profit and stop loss evaluation."""

from __future__ import annotations

from typing import List, Optional

import pytest

from agent_executor.core.domain.entities.position_entity import PositionEntity, TrailingParams
from agent_executor.core.domain.enums.trade_enums import CloseReason, TradeSide
from agent_executor.core.services.exit_rules import (
    ExitRuleEvaluator,
    compute_unrealized_pnl,
    evaluate_trailing_stop,
    take_profit_hit,
)


def _walk(side: TradeSide, entry: float, prices: List[float], trailing_pct: float = 1.0) -> Optional[int]:
    """Feeds prices one by one; returns the index that triggered, if any."""
    params = TrailingParams(trailing_percent=trailing_pct)
    for i, price in enumerate(prices):
        params, _, triggered = evaluate_trailing_stop(side, entry, price, params, activation_pct=3.0)
        if triggered:
            return i
    return None


def _position(side: TradeSide = TradeSide.LONG, **kwargs) -> PositionEntity:
    base = dict(
        id="pos-1",
        deployment_id="dep-1",
        signal_id="sig-1",
        token_symbol="WETH",
        side=side,
        qty=1.0,
        entry_price=100.0,
        entry_tx_hash="0xabc",
    )
    base.update(kwargs)
    return PositionEntity(**base)


class TestTrailingStop:
    def test_long_triggers_after_activation_and_retrace(self) -> None:
        assert _walk(TradeSide.LONG, 100.0, [100, 104, 106, 105, 104.8]) == 4

    def test_long_never_armed_below_activation(self) -> None:
        assert _walk(TradeSide.LONG, 100.0, [100, 102.9, 101, 95]) is None

    def test_short_is_symmetric(self) -> None:
        assert _walk(TradeSide.SHORT, 100.0, [96, 94, 94.5, 95]) == 3

    def test_short_never_armed_above_activation(self) -> None:
        assert _walk(TradeSide.SHORT, 100.0, [99, 97.5, 99, 110]) is None

    def test_mark_only_moves_favorably(self) -> None:
        params = TrailingParams(highest_price=110.0)
        updated, changed, _ = evaluate_trailing_stop(TradeSide.LONG, 100.0, 108.0, params, 3.0)
        assert updated.highest_price == 110.0

        updated, changed, _ = evaluate_trailing_stop(TradeSide.LONG, 100.0, 111.0, params, 3.0)
        assert updated.highest_price == 111.0
        assert changed

    def test_activation_is_recorded(self) -> None:
        params = TrailingParams()
        updated, changed, triggered = evaluate_trailing_stop(TradeSide.LONG, 100.0, 104.0, params, 3.0)
        assert updated.activated
        assert changed
        assert not triggered
        assert not params.activated

    def test_unchanged_state_reports_no_change(self) -> None:
        params = TrailingParams()
        _, changed, _ = evaluate_trailing_stop(TradeSide.LONG, 100.0, 99.0, params, 3.0)
        assert not changed


class TestTakeProfit:
    def test_long_boundary(self) -> None:
        assert not take_profit_hit(TradeSide.LONG, 120.0, 119.999)
        assert take_profit_hit(TradeSide.LONG, 120.0, 120.0)

    def test_short_boundary(self) -> None:
        assert not take_profit_hit(TradeSide.SHORT, 80.0, 80.001)
        assert take_profit_hit(TradeSide.SHORT, 80.0, 80.0)

    def test_unset(self) -> None:
        assert not take_profit_hit(TradeSide.LONG, None, 1e9)


class TestExitRuleEvaluator:
    def test_stop_loss_disabled_by_default(self) -> None:
        decision = ExitRuleEvaluator().evaluate(_position(stop_loss=95.0), 94.0)
        assert not decision.should_close

    def test_stop_loss_when_enabled(self) -> None:
        decision = ExitRuleEvaluator(stop_loss_enabled=True).evaluate(_position(stop_loss=95.0), 94.0)
        assert decision.should_close
        assert decision.reason == CloseReason.STOP_LOSS

    def test_trailing_stop_wins_over_take_profit(self) -> None:
        position = _position(
            take_profit=120.0,
            trailing_params=TrailingParams(highest_price=130.0, activated=True),
        )
        decision = ExitRuleEvaluator().evaluate(position, 125.0)
        assert decision.reason == CloseReason.TRAILING_STOP

    def test_take_profit(self) -> None:
        decision = ExitRuleEvaluator().evaluate(_position(take_profit=102.0), 102.5)
        assert decision.should_close
        assert decision.reason == CloseReason.TAKE_PROFIT

    def test_disabled_trailing_is_skipped(self) -> None:
        position = _position(trailing_params=TrailingParams(enabled=False, highest_price=130.0))
        decision = ExitRuleEvaluator().evaluate(position, 110.0)
        assert not decision.should_close
        assert not decision.trailing_changed

    def test_reports_unrealized_pnl(self) -> None:
        decision = ExitRuleEvaluator().evaluate(_position(qty=2.0), 101.0)
        assert decision.pnl_pct == pytest.approx(1.0)
        assert decision.pnl_usd == pytest.approx(2.0)


def test_unrealized_pnl_long_and_short() -> None:
    assert compute_unrealized_pnl(TradeSide.LONG, 2500.0, 2600.0, 0.02) == pytest.approx((4.0, 2.0))
    assert compute_unrealized_pnl(TradeSide.SHORT, 100.0, 90.0, 2.0) == pytest.approx((10.0, 20.0))
    assert compute_unrealized_pnl(TradeSide.LONG, 0.0, 90.0, 2.0) == (0.0, 0.0)

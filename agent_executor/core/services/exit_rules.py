from dataclasses import dataclass
from typing import Optional, Tuple

from ..domain.entities.position_entity import PositionEntity, TrailingParams
from ..domain.enums.trade_enums import CloseReason, TradeSide


@dataclass
class ExitDecision:
    should_close: bool
    reason: Optional[CloseReason]
    trailing_params: TrailingParams
    trailing_changed: bool
    pnl_pct: float
    pnl_usd: float


def compute_unrealized_pnl(side: TradeSide, entry_price: float, current_price: float, qty: float) -> Tuple[float, float]:
    """
    Returns (pnl_pct, pnl_usd). Long gains when price rises, short when it falls.
    """
    if entry_price <= 0:
        return 0.0, 0.0
    if side == TradeSide.LONG:
        pct = (current_price - entry_price) / entry_price * 100.0
        usd = (current_price - entry_price) * qty
    else:
        pct = (entry_price - current_price) / entry_price * 100.0
        usd = (entry_price - current_price) * qty
    return pct, usd


def evaluate_trailing_stop(
    side: TradeSide,
    entry_price: float,
    current_price: float,
    params: TrailingParams,
    activation_pct: float,
) -> Tuple[TrailingParams, bool, bool]:
    """
    Trailing-stop step for one price observation.

    The mark starts at the entry price and only moves favorably (up for
    longs, down for shorts). Once the mark is `activation_pct` past entry the
    stop is armed, and a retrace of `trailing_percent` from the mark
    triggers.

    Returns (new_params, changed, triggered).
    """
    updated = params.model_copy()
    changed = False

    if side == TradeSide.LONG:
        mark = params.highest_price or entry_price
        new_mark = max(mark, current_price)
        if new_mark > mark:
            updated.highest_price = new_mark
            changed = True
        armed = new_mark >= entry_price * (1 + activation_pct / 100.0)
        stop_price = new_mark * (1 - params.trailing_percent / 100.0)
        triggered = armed and current_price <= stop_price
    else:
        mark = params.lowest_price or entry_price
        new_mark = min(mark, current_price)
        if new_mark < mark:
            updated.lowest_price = new_mark
            changed = True
        armed = new_mark <= entry_price * (1 - activation_pct / 100.0)
        stop_price = new_mark * (1 + params.trailing_percent / 100.0)
        triggered = armed and current_price >= stop_price

    if armed and not params.activated:
        updated.activated = True
        changed = True

    return updated, changed, triggered


def take_profit_hit(side: TradeSide, take_profit: Optional[float], current_price: float) -> bool:
    if take_profit is None:
        return False
    if side == TradeSide.LONG:
        return current_price >= take_profit
    return current_price <= take_profit


def stop_loss_hit(side: TradeSide, stop_loss: Optional[float], current_price: float) -> bool:
    if stop_loss is None:
        return False
    if side == TradeSide.LONG:
        return current_price <= stop_loss
    return current_price >= stop_loss


class ExitRuleEvaluator:
    """
    Runs the exit rules for a position against a live price.

    Order: trailing stop, fixed stop loss (only when enabled), take profit.
    The first rule that fires wins; later rules are not evaluated.
    """

    def __init__(self, activation_pct: float = 3.0, stop_loss_enabled: bool = False):
        self._activation_pct = activation_pct
        self._stop_loss_enabled = stop_loss_enabled

    def evaluate(self, position: PositionEntity, current_price: float) -> ExitDecision:
        pnl_pct, pnl_usd = compute_unrealized_pnl(
            position.side, position.entry_price, current_price, position.qty
        )

        params = position.trailing_params
        changed = False
        reason: Optional[CloseReason] = None

        if params.enabled:
            params, changed, triggered = evaluate_trailing_stop(
                position.side, position.entry_price, current_price, params, self._activation_pct
            )
            if triggered:
                reason = CloseReason.TRAILING_STOP

        if reason is None and self._stop_loss_enabled and stop_loss_hit(position.side, position.stop_loss, current_price):
            reason = CloseReason.STOP_LOSS

        if reason is None and take_profit_hit(position.side, position.take_profit, current_price):
            reason = CloseReason.TAKE_PROFIT

        return ExitDecision(
            should_close=reason is not None,
            reason=reason,
            trailing_params=params,
            trailing_changed=changed,
            pnl_pct=pnl_pct,
            pnl_usd=pnl_usd,
        )

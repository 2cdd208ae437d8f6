import asyncio
import logging
import zlib
from typing import Dict, Optional

from ...adapters.external.chain.exceptions import ConfigurationMissingError
from ...adapters.external.venues.registry import VenueAdapterRegistry
from ..domain.entities.position_entity import PositionEntity
from ..repositories.position_repository import PositionRepository
from ..services.exit_rules import ExitRuleEvaluator
from .trade_execution_coordinator import TradeExecutionCoordinator


def shard_of(position_id: str, shard_count: int) -> int:
    """Stable shard for a position id (crc32, process independent)."""
    return zlib.crc32(position_id.encode("utf-8")) % max(1, shard_count)


class MonitorPositionsUseCase:
    """
    One pass over all open positions:

      price -> unrealized PnL -> exit rules -> persist trailing mark -> close on trigger

    Rules:
      - Missing price: skip the position this cycle, never close on it.
      - Trailing mark changes are persisted even when nothing triggers.
      - A failed close is logged and the position stays open; the next
        cycle re-evaluates it (close itself is idempotent).
      - With shard_count > 1 only positions with shard_of(id) == shard_index
        are handled, so several monitors never evaluate the same position.
    """

    def __init__(
        self,
        position_repo: PositionRepository,
        venues: VenueAdapterRegistry,
        coordinator: TradeExecutionCoordinator,
        evaluator: ExitRuleEvaluator,
        item_delay_sec: float = 0.5,
        shard_index: int = 0,
        shard_count: int = 1,
        logger: Optional[logging.Logger] = None,
    ):
        self._positions = position_repo
        self._venues = venues
        self._coordinator = coordinator
        self._evaluator = evaluator
        self._item_delay = item_delay_sec
        self._shard_index = shard_index
        self._shard_count = max(1, shard_count)
        self._logger = logger or logging.getLogger(self.__class__.__name__)

    def _owns(self, position: PositionEntity) -> bool:
        if self._shard_count == 1:
            return True
        return shard_of(position.id, self._shard_count) == self._shard_index

    async def execute_once(self) -> Dict[str, int]:
        stats = {"monitored": 0, "closed": 0, "skipped": 0, "failed": 0, "updated": 0}

        positions = [p for p in await self._positions.list_open() if self._owns(p)]
        if not positions:
            self._logger.debug("no open positions to monitor")
            return stats

        for i, position in enumerate(positions):
            if i > 0 and self._item_delay > 0:
                await asyncio.sleep(self._item_delay)
            stats["monitored"] += 1
            try:
                outcome = await self._evaluate_position(position)
            except ConfigurationMissingError:
                raise
            except Exception as exc:
                self._logger.exception("monitor failed for position %s: %s", position.id, exc)
                stats["failed"] += 1
                continue
            if outcome in stats:
                stats[outcome] += 1

        self._logger.info(
            "monitor pass: monitored=%s closed=%s updated=%s skipped=%s failed=%s",
            stats["monitored"], stats["closed"], stats["updated"], stats["skipped"], stats["failed"],
        )
        return stats

    async def _evaluate_position(self, position: PositionEntity) -> Optional[str]:
        if position.entry_price <= 0:
            self._logger.warning("position %s has no entry price, skipping", position.id)
            return "skipped"

        price = await self._venues.get(position.venue).get_price(position.token_symbol)
        if price is None:
            self._logger.info("no price for %s (position %s), skipping", position.token_symbol, position.id)
            return "skipped"

        decision = self._evaluator.evaluate(position, price)
        self._logger.debug(
            "position %s %s %s price=%.6f pnl=%.2f%%",
            position.id, position.side.value, position.token_symbol, price, decision.pnl_pct,
        )

        updated = False
        if decision.trailing_changed:
            updated = await self._positions.update_trailing_params(position.id, decision.trailing_params)

        if not decision.should_close:
            return "updated" if updated else None

        self._logger.info("exit %s triggered for position %s at %.6f", decision.reason.value, position.id, price)
        result = await self._coordinator.close_position(position.id, decision.reason)
        if result.success:
            return "closed"
        if result.is_noop:
            return None
        self._logger.warning(
            "close of position %s failed (%s): %s",
            position.id, result.reason.value if result.reason else "unknown", result.error,
        )
        return "failed"

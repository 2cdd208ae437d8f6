import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from ...adapters.external.chain.exceptions import ConfigurationMissingError
from ..domain.entities.execution_result import ExecutionResult
from ..domain.entities.signal_entity import SignalEntity
from ..domain.enums.trade_enums import FailureReason, Venue
from ..repositories.agent_repository import AgentRepository
from ..repositories.deployment_repository import DeploymentRepository
from ..repositories.position_repository import PositionRepository
from ..repositories.signal_repository import SignalRepository
from .trade_execution_coordinator import TradeExecutionCoordinator

EXECUTABLE_VENUES = (Venue.SPOT,)


class ExecutePendingSignalsUseCase:
    """
    Drains recent signals and fans each one out to every ACTIVE deployment
    of its agent. Pairs that already have a position are skipped; the
    coordinator enforces the same rule again under its own lock.

    A signal is marked processed once no deployment is left with a
    retryable failure, so the batch window always moves on to newer
    signals.
    """

    def __init__(
        self,
        signal_repo: SignalRepository,
        deployment_repo: DeploymentRepository,
        agent_repo: AgentRepository,
        position_repo: PositionRepository,
        coordinator: TradeExecutionCoordinator,
        lookback_hours: float = 24.0,
        batch_limit: int = 20,
        item_delay_sec: float = 0.5,
        logger: Optional[logging.Logger] = None,
    ):
        self._signals = signal_repo
        self._deployments = deployment_repo
        self._agents = agent_repo
        self._positions = position_repo
        self._coordinator = coordinator
        self._lookback = timedelta(hours=lookback_hours)
        self._batch_limit = batch_limit
        self._item_delay = item_delay_sec
        self._logger = logger or logging.getLogger(self.__class__.__name__)

    async def execute_once(self) -> Dict[str, int]:
        stats = {"signals": 0, "executed": 0, "skipped": 0, "failed": 0}
        since = datetime.now(timezone.utc) - self._lookback
        signals = await self._signals.list_recent(since, limit=self._batch_limit)

        for sig in signals:
            stats["signals"] += 1
            try:
                results = await self._fan_out(sig)
            except ConfigurationMissingError:
                raise
            except Exception as exc:
                self._logger.exception("Unexpected error processing signal %s: %s", sig.id, exc)
                stats["failed"] += 1
                continue
            for res in results:
                if res.success:
                    stats["executed"] += 1
                elif res.is_noop:
                    stats["skipped"] += 1
                else:
                    stats["failed"] += 1
            if not any(res.is_retryable for res in results):
                try:
                    await self._signals.mark_processed(sig.id)
                except Exception as exc:
                    self._logger.warning("failed to mark signal %s processed: %s", sig.id, exc)
        return stats

    async def execute_signal(self, signal_id: str) -> List[ExecutionResult]:
        """
        Execute one signal across all of its agent's active deployments.
        """
        sig = await self._signals.get_by_id(signal_id)
        if sig is None:
            return [ExecutionResult.fail(FailureReason.SIGNAL_NOT_FOUND, error=f"signal {signal_id} not found")]
        return await self._fan_out(sig)

    async def _fan_out(self, sig: SignalEntity) -> List[ExecutionResult]:
        if sig.venue not in EXECUTABLE_VENUES:
            await self._signals.mark_skipped(sig.id, f"{sig.venue.value} not supported")
            return [ExecutionResult.fail(FailureReason.VENUE_NOT_SUPPORTED)]

        agent = await self._agents.get_by_id(sig.agent_id)
        deployments = await self._deployments.list_active_for_agent(sig.agent_id)
        results: List[ExecutionResult] = []

        for i, dep in enumerate(deployments):
            if await self._positions.exists_for(dep.id, sig.id):
                continue
            if i > 0 and self._item_delay > 0:
                await asyncio.sleep(self._item_delay)
            res = await self._coordinator.open_position(sig, dep, agent)
            if res.success:
                self._logger.info("signal %s executed for deployment %s tx=%s", sig.id, dep.id, res.tx_hash)
            elif not res.is_noop:
                self._logger.info(
                    "signal %s not executed for deployment %s: %s %s",
                    sig.id, dep.id, res.reason.value if res.reason else "", res.error or "",
                )
            results.append(res)
        return results

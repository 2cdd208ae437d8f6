import logging
from typing import Optional

from ..domain.entities.execution_result import ExecutionResult
from ..domain.enums.trade_enums import FailureReason, PositionSource
from ..repositories.deployment_repository import DeploymentRepository
from ..repositories.manual_trade_repository import ManualTradeRepository
from ..repositories.signal_repository import SignalRepository
from .trade_execution_coordinator import TradeExecutionCoordinator

_HUMAN_REASONS = {
    FailureReason.NO_COLLATERAL: "Your Safe has no USDC to trade with.",
    FailureReason.INSUFFICIENT_BALANCE: "Requested amount exceeds your USDC balance.",
    FailureReason.POSITION_TOO_SMALL: "Trade size is below the minimum.",
    FailureReason.TOKEN_NOT_REGISTERED: "This token is not supported yet.",
    FailureReason.VENUE_UNAVAILABLE: "This token is not tradeable on the selected venue.",
    FailureReason.MODULE_NOT_ENABLED: "The trading module is not enabled on your Safe.",
    FailureReason.DEPLOYMENT_INACTIVE: "Your agent deployment is paused or its subscription expired.",
    FailureReason.ALREADY_EXECUTED: "This trade was already executed.",
}


def human_message(result: ExecutionResult) -> str:
    if result.reason in _HUMAN_REASONS:
        return _HUMAN_REASONS[result.reason]
    if result.error:
        return f"Trade failed: {result.error}"
    return "Trade failed."


class ExecuteManualTradeUseCase:
    """
    Executes a trade requested from Telegram. The PENDING -> EXECUTING claim
    is a compare-and-set, so duplicate webhook deliveries execute once.
    Failures are stored as a human-readable message; no automatic retry.
    """

    def __init__(
        self,
        manual_trade_repo: ManualTradeRepository,
        signal_repo: SignalRepository,
        deployment_repo: DeploymentRepository,
        coordinator: TradeExecutionCoordinator,
        logger: Optional[logging.Logger] = None,
    ):
        self._trades = manual_trade_repo
        self._signals = signal_repo
        self._deployments = deployment_repo
        self._coordinator = coordinator
        self._logger = logger or logging.getLogger(self.__class__.__name__)

    async def execute(self, trade_id: str) -> ExecutionResult:
        trade = await self._trades.claim_for_execution(trade_id)
        if trade is None:
            if await self._trades.get_by_id(trade_id) is None:
                return ExecutionResult.fail(FailureReason.MANUAL_TRADE_NOT_FOUND, error=f"manual trade {trade_id} not found")
            self._logger.info("manual trade %s already claimed", trade_id)
            return ExecutionResult.fail(FailureReason.ALREADY_EXECUTED)

        signal = await self._signals.get_by_id(trade.signal_id)
        deployment = await self._deployments.get_by_id(trade.deployment_id)
        if signal is None or deployment is None:
            reason = FailureReason.SIGNAL_NOT_FOUND if signal is None else FailureReason.DEPLOYMENT_NOT_FOUND
            await self._trades.mark_failed(trade_id, "Trade could not be found.")
            return ExecutionResult.fail(reason)

        try:
            result = await self._coordinator.open_position(
                signal,
                deployment,
                source=PositionSource.TELEGRAM,
                manual_trade_id=trade_id,
            )
        except Exception as exc:
            await self._trades.mark_failed(trade_id, f"Trade failed: {exc}")
            raise

        if result.success:
            await self._trades.mark_executed(trade_id, result.position_id)
        else:
            await self._trades.mark_failed(trade_id, human_message(result))
        return result

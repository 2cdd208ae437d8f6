from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from ....core.domain.entities.execution_result import ExecutionResult
from ....core.domain.enums.trade_enums import CloseReason, FailureReason
from ....workers.execution_supervisor import ExecutionSupervisor
from .deps import get_supervisor

router = APIRouter(prefix="/admin", tags=["admin"])

_NOT_FOUND = (
    FailureReason.SIGNAL_NOT_FOUND,
    FailureReason.DEPLOYMENT_NOT_FOUND,
    FailureReason.POSITION_NOT_FOUND,
    FailureReason.MANUAL_TRADE_NOT_FOUND,
)


class ExecutionResultDTO(BaseModel):
    success: bool
    reason: Optional[str] = None
    error: Optional[str] = None
    tx_hash: Optional[str] = None
    position_id: Optional[str] = None
    summary: Dict[str, Any] = Field(default_factory=dict)


class ClosePositionDTO(BaseModel):
    reason: CloseReason = Field(CloseReason.MANUAL)


def _out(result: ExecutionResult) -> ExecutionResultDTO:
    if not result.success and result.reason in _NOT_FOUND:
        raise HTTPException(status_code=404, detail=result.error or result.reason.value)
    return ExecutionResultDTO(**result.model_dump(mode="json"))


# =========================
# Signals
# =========================

@router.post("/signals/{signal_id}/execute", response_model=List[ExecutionResultDTO])
async def execute_signal(signal_id: str, sup: ExecutionSupervisor = Depends(get_supervisor)):
    """
    Execute one signal across all active deployments of its agent.
    """
    results = await sup.signals_uc.execute_signal(signal_id)
    return [_out(r) for r in results]


@router.post(
    "/deployments/{deployment_id}/signals/{signal_id}/execute",
    response_model=ExecutionResultDTO,
)
async def execute_signal_for_deployment(
    deployment_id: str,
    signal_id: str,
    sup: ExecutionSupervisor = Depends(get_supervisor),
):
    """
    Execute one signal for one deployment (idempotent per pair).
    """
    result = await sup.coordinator.execute_signal_for_deployment(signal_id, deployment_id)
    return _out(result)


# =========================
# Positions
# =========================

@router.post("/positions/{position_id}/close", response_model=ExecutionResultDTO)
async def close_position(
    position_id: str,
    dto: Optional[ClosePositionDTO] = None,
    sup: ExecutionSupervisor = Depends(get_supervisor),
):
    """
    Close an open position now. Closing an already closed position is a no-op.
    """
    reason = dto.reason if dto else CloseReason.MANUAL
    result = await sup.coordinator.close_position(position_id, reason)
    return _out(result)


@router.post("/monitor/run-once")
async def run_monitor_once(sup: ExecutionSupervisor = Depends(get_supervisor)):
    """
    Run a single position-monitor pass and return its counters.
    """
    return await sup.monitor_uc.execute_once()


# =========================
# Deployments / manual trades
# =========================

@router.post("/deployments/sync-module-status")
async def sync_module_status(sup: ExecutionSupervisor = Depends(get_supervisor)):
    """
    Refresh cached module-enabled flags from the chain.
    """
    return await sup.sync_uc.execute_once()


@router.post("/manual-trades/{trade_id}/execute", response_model=ExecutionResultDTO)
async def execute_manual_trade(trade_id: str, sup: ExecutionSupervisor = Depends(get_supervisor)):
    """
    Execute a Telegram trade at most once.
    """
    result = await sup.manual_uc.execute(trade_id)
    return _out(result)

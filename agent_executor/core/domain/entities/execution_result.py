# agent_executor/core/domain/entities/execution_result.py

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from ..enums.trade_enums import FailureReason
from .venue_entities import TokenRegistryEntity, VenueConstraintEntity

RETRYABLE_REASONS = (
    FailureReason.SUBMISSION_FAILED,
    FailureReason.INFRA_ERROR,
    FailureReason.QUOTE_UNAVAILABLE,
    FailureReason.TOKEN_NOT_WHITELISTED,
    FailureReason.APPROVAL_FAILED,
)


class PreTradeCheck(BaseModel):
    can_execute: bool
    reason: Optional[FailureReason] = None
    size_usdc: Optional[float] = None
    constraint: Optional[VenueConstraintEntity] = None
    token: Optional[TokenRegistryEntity] = None


class ExecutionSummary(BaseModel):
    """
    Read-only affordability view returned by a venue adapter before any gas
    is committed.
    """

    can_execute: bool
    reason: Optional[str] = None
    usdc_balance: float = 0.0
    token_balance: float = 0.0


class ExecutionResult(BaseModel):
    """
    Outcome of a coordinator operation. Batch callers inspect `success` and
    `reason` and keep going; nothing on-chain escapes as an exception.
    """

    success: bool
    reason: Optional[FailureReason] = None
    error: Optional[str] = None
    tx_hash: Optional[str] = None
    position_id: Optional[str] = None
    summary: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def ok(cls, **kwargs) -> "ExecutionResult":
        return cls(success=True, **kwargs)

    @classmethod
    def fail(cls, reason: FailureReason, error: Optional[str] = None, **kwargs) -> "ExecutionResult":
        return cls(success=False, reason=reason, error=error, **kwargs)

    @property
    def is_noop(self) -> bool:
        """True for idempotency outcomes that callers should not retry."""
        return self.reason in (
            FailureReason.ALREADY_EXECUTED,
            FailureReason.ALREADY_CLOSED,
        )

    @property
    def is_retryable(self) -> bool:
        """Failures that may succeed on a later pass with the same inputs."""
        return not self.success and self.reason in RETRYABLE_REASONS

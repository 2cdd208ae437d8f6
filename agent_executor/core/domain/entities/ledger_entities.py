# agent_executor/core/domain/entities/ledger_entities.py

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from ..enums.trade_enums import BillingKind, BillingStatus, ManualTradeStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BillingEventEntity(BaseModel):
    """
    Off-chain mirror of a charge. For PROFIT_SHARE the money already moved
    on-chain inside closePosition; this row is reporting only.

    metadata for PROFIT_SHARE:
    {
      "tx_hash": "0x...",
      "distributed_on_chain": true,
      "bps": 2000,
      "recipient": "0x..."
    }
    """

    id: str
    kind: BillingKind
    amount: float
    asset: str = "USDC"
    status: BillingStatus = BillingStatus.CHARGED
    deployment_id: str
    position_id: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    occurred_at: datetime = Field(default_factory=_utcnow)


class AuditLogEntity(BaseModel):
    event_name: str
    subject_type: str
    subject_id: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    occurred_at: datetime = Field(default_factory=_utcnow)


class ManualTradeEntity(BaseModel):
    """
    A trade requested by a human through the Telegram bot. Executed at most
    once; failures are reported back as a message, not retried.
    """

    id: str
    deployment_id: str
    signal_id: str
    status: ManualTradeStatus = ManualTradeStatus.PENDING
    position_id: Optional[str] = None
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    executed_at: Optional[datetime] = None

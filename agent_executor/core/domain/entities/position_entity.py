# agent_executor/core/domain/entities/position_entity.py

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field

from ..enums.trade_enums import CloseReason, PositionSource, TradeSide, Venue


class TrailingParams(BaseModel):
    """
    Trailing-stop state of one position. The high-water mark is
    `highest_price` for longs and `lowest_price` for shorts.
    """

    enabled: bool = True
    trailing_percent: float = Field(1.0, gt=0.0)
    highest_price: Optional[float] = None
    lowest_price: Optional[float] = None
    activated: bool = False


class PositionEntity(BaseModel):
    """
    One trade. `closed_at is None` means open; once set the record is final.
    """

    id: str
    deployment_id: str
    signal_id: str
    venue: Venue = Venue.SPOT
    token_symbol: str
    side: TradeSide
    qty: float
    entry_price: float
    entry_tx_hash: str
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None
    trailing_params: TrailingParams = Field(default_factory=TrailingParams)
    source: PositionSource = PositionSource.AUTO
    manual_trade_id: Optional[str] = None

    opened_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    closed_at: Optional[datetime] = None
    exit_price: Optional[float] = None
    exit_tx_hash: Optional[str] = None
    pnl: Optional[float] = None
    close_reason: Optional[CloseReason] = None

    @property
    def is_open(self) -> bool:
        return self.closed_at is None

    @property
    def entry_value_usdc(self) -> float:
        return self.entry_price * self.qty

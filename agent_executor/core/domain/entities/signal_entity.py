# agent_executor/core/domain/entities/signal_entity.py

from datetime import datetime, timezone
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator

from ..enums.trade_enums import TradeSide, Venue

MANUAL_SUFFIX = "_MANUAL_"


class BalancePercentageSize(BaseModel):
    """Spend `value` percent of the Safe's USDC balance."""
    type: Literal["balance-percentage"] = "balance-percentage"
    value: float = Field(..., gt=0.0, le=100.0)


class FixedUsdcSize(BaseModel):
    """Spend exactly `value` USDC. Never clamped to the balance."""
    type: Literal["fixed-usdc"] = "fixed-usdc"
    value: float = Field(..., gt=0.0)


SizeModel = Annotated[
    Union[BalancePercentageSize, FixedUsdcSize],
    Field(discriminator="type"),
]


class RiskModel(BaseModel):
    stop_loss_pct: Optional[float] = Field(None, ge=0.0)
    take_profit_pct: Optional[float] = Field(None, ge=0.0)
    trailing_percent: Optional[float] = Field(None, gt=0.0)


class SignalEntity(BaseModel):
    """
    A trade instruction produced upstream by the signal pipeline.

    Immutable once stored, except for the provenance fields that the
    executor fills in after the first successful open.
    """

    id: str
    agent_id: str
    token_symbol: str
    venue: Venue = Venue.SPOT
    side: TradeSide
    size_model: SizeModel
    risk_model: Optional[RiskModel] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # provenance, written post-execution
    signal_hash: Optional[str] = None
    creator_address: Optional[str] = None
    execution_tx_hash: Optional[str] = None
    skipped_reason: Optional[str] = None
    processed_at: Optional[datetime] = None

    @field_validator("side", mode="before")
    @classmethod
    def parse_side(cls, v):
        if isinstance(v, TradeSide):
            return v
        return TradeSide.parse(str(v))

    @field_validator("token_symbol")
    @classmethod
    def upper_symbol(cls, v: str) -> str:
        return v.upper()

    @property
    def base_token_symbol(self) -> str:
        """Token symbol without the manual-trade suffix (WETH_MANUAL_123 -> WETH)."""
        return self.token_symbol.split(MANUAL_SUFFIX, 1)[0]

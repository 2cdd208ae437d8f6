# agent_executor/core/domain/entities/venue_entities.py

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ..enums.trade_enums import Venue


class VenueConstraintEntity(BaseModel):
    """
    Per (venue, token) trading constraints. Maintained outside this service.
    """

    venue: Venue
    token_symbol: str
    min_size: float = Field(0.0, ge=0.0)
    tick_size: float = Field(0.0, ge=0.0)
    slippage_limit_bps: Optional[int] = Field(None, ge=0, le=10_000)

    @field_validator("token_symbol")
    @classmethod
    def upper_symbol(cls, v: str) -> str:
        return v.upper()


class TokenRegistryEntity(BaseModel):
    """
    On-chain token address for a (chain, symbol).
    """

    chain: str
    token_symbol: str
    token_address: str
    decimals: int = 18
    preferred_router: Optional[str] = None

    @field_validator("token_symbol")
    @classmethod
    def upper_symbol(cls, v: str) -> str:
        return v.upper()

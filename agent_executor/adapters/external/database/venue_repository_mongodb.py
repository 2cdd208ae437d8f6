# agent_executor/adapters/external/database/venue_repository_mongodb.py

from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from ....core.domain.entities.venue_entities import TokenRegistryEntity, VenueConstraintEntity
from ....core.domain.enums.trade_enums import Venue
from ....core.repositories.venue_repository import VenueRepository


class VenueRepositoryMongoDB(VenueRepository):
    """
    Read-only view over `venues_status` (per venue+token constraints) and
    `token_registry` (per chain+symbol addresses).
    """

    VENUES_COLLECTION = "venues_status"
    TOKENS_COLLECTION = "token_registry"

    def __init__(self, db: AsyncIOMotorDatabase):
        self._venues = db[self.VENUES_COLLECTION]
        self._tokens = db[self.TOKENS_COLLECTION]

    async def ensure_indexes(self) -> None:
        await self._venues.create_index(
            [("venue", 1), ("token_symbol", 1)],
            unique=True,
            name="ux_venue_token",
        )
        await self._tokens.create_index(
            [("chain", 1), ("token_symbol", 1)],
            unique=True,
            name="ux_chain_token",
        )

    async def get_venue_constraint(self, venue: Venue, token_symbol: str) -> Optional[VenueConstraintEntity]:
        doc = await self._venues.find_one(
            {"venue": venue.value, "token_symbol": token_symbol.upper()},
            projection={"_id": False},
        )
        return VenueConstraintEntity.model_validate(doc) if doc else None

    async def get_token(self, chain: str, token_symbol: str) -> Optional[TokenRegistryEntity]:
        doc = await self._tokens.find_one(
            {"chain": chain, "token_symbol": token_symbol.upper()},
            projection={"_id": False},
        )
        return TokenRegistryEntity.model_validate(doc) if doc else None

from abc import ABC, abstractmethod
from typing import Optional

from ..domain.entities.venue_entities import TokenRegistryEntity, VenueConstraintEntity
from ..domain.enums.trade_enums import Venue


class VenueRepository(ABC):
    """
    Read-only access to venue constraints and the token registry.
    """

    @abstractmethod
    async def get_venue_constraint(self, venue: Venue, token_symbol: str) -> Optional[VenueConstraintEntity]:
        raise NotImplementedError

    @abstractmethod
    async def get_token(self, chain: str, token_symbol: str) -> Optional[TokenRegistryEntity]:
        raise NotImplementedError

from abc import ABC, abstractmethod
from typing import List

from ..domain.entities.ledger_entities import BillingEventEntity


class BillingRepository(ABC):

    @abstractmethod
    async def ensure_indexes(self) -> None:
        raise NotImplementedError

    @abstractmethod
    async def create(self, event: BillingEventEntity) -> None:
        raise NotImplementedError

    @abstractmethod
    async def list_for_position(self, position_id: str) -> List[BillingEventEntity]:
        raise NotImplementedError

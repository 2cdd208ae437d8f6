from abc import ABC, abstractmethod
from typing import Optional

from ..domain.entities.ledger_entities import ManualTradeEntity


class ManualTradeRepository(ABC):

    @abstractmethod
    async def ensure_indexes(self) -> None:
        raise NotImplementedError

    @abstractmethod
    async def get_by_id(self, trade_id: str) -> Optional[ManualTradeEntity]:
        raise NotImplementedError

    @abstractmethod
    async def claim_for_execution(self, trade_id: str) -> Optional[ManualTradeEntity]:
        """
        Atomic compare-and-set PENDING -> EXECUTING.
        Returns the claimed trade, or None if someone else got it first.
        """
        raise NotImplementedError

    @abstractmethod
    async def mark_executed(self, trade_id: str, position_id: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def mark_failed(self, trade_id: str, error: str) -> None:
        raise NotImplementedError

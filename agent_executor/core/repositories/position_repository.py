from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from ..domain.entities.position_entity import PositionEntity, TrailingParams
from ..domain.enums.trade_enums import CloseReason


class PositionRepository(ABC):

    @abstractmethod
    async def ensure_indexes(self) -> None:
        raise NotImplementedError

    @abstractmethod
    async def create(self, position: PositionEntity) -> PositionEntity:
        """
        Insert a new open position.
        Raises DuplicatePositionError if (deployment_id, signal_id) already exists.
        """
        raise NotImplementedError

    @abstractmethod
    async def get_by_id(self, position_id: str) -> Optional[PositionEntity]:
        raise NotImplementedError

    @abstractmethod
    async def exists_for(self, deployment_id: str, signal_id: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    async def list_open(self) -> List[PositionEntity]:
        raise NotImplementedError

    @abstractmethod
    async def update_trailing_params(self, position_id: str, params: TrailingParams) -> bool:
        """
        Persist trailing-stop state. No-op (returns False) once the position is closed.
        """
        raise NotImplementedError

    @abstractmethod
    async def mark_closed(
        self,
        position_id: str,
        *,
        closed_at: datetime,
        exit_price: float,
        exit_tx_hash: str,
        qty: float,
        pnl: float,
        reason: CloseReason,
    ) -> bool:
        """
        Terminal transition. Only applies while closed_at is null; returns
        False if the position was already closed.
        """
        raise NotImplementedError

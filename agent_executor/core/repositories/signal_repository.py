from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from ..domain.entities.signal_entity import SignalEntity


class SignalRepository(ABC):

    @abstractmethod
    async def ensure_indexes(self) -> None:
        raise NotImplementedError

    @abstractmethod
    async def get_by_id(self, signal_id: str) -> Optional[SignalEntity]:
        raise NotImplementedError

    @abstractmethod
    async def list_recent(self, since: datetime, limit: int = 20) -> List[SignalEntity]:
        """
        Signals created at or after `since` that were neither marked skipped
        nor marked processed, oldest first.
        """
        raise NotImplementedError

    @abstractmethod
    async def record_provenance(
        self,
        signal_id: str,
        signal_hash: str,
        creator_address: Optional[str],
        execution_tx_hash: str,
    ) -> None:
        """
        Attach intent hash / execution tx to a signal. Only the first
        execution is recorded; later calls leave the fields untouched.
        """
        raise NotImplementedError

    @abstractmethod
    async def mark_skipped(self, signal_id: str, reason: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def mark_processed(self, signal_id: str) -> None:
        """
        Every active deployment reached a final outcome for this signal;
        drop it from list_recent.
        """
        raise NotImplementedError

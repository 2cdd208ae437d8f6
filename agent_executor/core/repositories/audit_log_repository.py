from abc import ABC, abstractmethod

from ..domain.entities.ledger_entities import AuditLogEntity


class AuditLogRepository(ABC):

    @abstractmethod
    async def append(self, entry: AuditLogEntity) -> None:
        raise NotImplementedError

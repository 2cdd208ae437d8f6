from abc import ABC, abstractmethod
from typing import Optional

from ..domain.entities.deployment_entity import AgentEntity


class AgentRepository(ABC):

    @abstractmethod
    async def get_by_id(self, agent_id: str) -> Optional[AgentEntity]:
        raise NotImplementedError

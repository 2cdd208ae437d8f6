from abc import ABC, abstractmethod
from typing import List, Optional

from ..domain.entities.deployment_entity import DeploymentEntity


class DeploymentRepository(ABC):

    @abstractmethod
    async def ensure_indexes(self) -> None:
        raise NotImplementedError

    @abstractmethod
    async def get_by_id(self, deployment_id: str) -> Optional[DeploymentEntity]:
        raise NotImplementedError

    @abstractmethod
    async def list_active_for_agent(self, agent_id: str) -> List[DeploymentEntity]:
        """
        ACTIVE deployments with an active subscription for one agent.
        """
        raise NotImplementedError

    @abstractmethod
    async def list_with_safe(self) -> List[DeploymentEntity]:
        """
        Every deployment that has a Safe wallet and module address.
        """
        raise NotImplementedError

    @abstractmethod
    async def set_module_enabled(self, deployment_id: str, enabled: bool) -> None:
        """
        Update the cached module-enabled flag.
        """
        raise NotImplementedError

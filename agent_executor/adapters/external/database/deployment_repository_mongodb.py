# agent_executor/adapters/external/database/deployment_repository_mongodb.py

import time
from typing import Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from ....core.domain.entities.deployment_entity import AgentEntity, DeploymentEntity
from ....core.domain.enums.trade_enums import DeploymentStatus
from ....core.repositories.agent_repository import AgentRepository
from ....core.repositories.deployment_repository import DeploymentRepository


class DeploymentRepositoryMongoDB(DeploymentRepository):
    """
    Agent deployments (agent -> user Safe + module). Never hard-deleted.
    """

    COLLECTION = "agent_deployments"

    def __init__(self, db: AsyncIOMotorDatabase):
        self._col = db[self.COLLECTION]

    async def ensure_indexes(self) -> None:
        await self._col.create_index([("id", 1)], unique=True, name="ux_id")
        await self._col.create_index(
            [("agent_id", 1), ("status", 1), ("sub_active", 1)],
            name="ix_agent_status_sub",
        )
        await self._col.create_index([("safe_wallet", 1)], name="ix_safe_wallet")

    @staticmethod
    def _to_entity(doc: Optional[Dict]) -> Optional[DeploymentEntity]:
        if not doc:
            return None
        doc.pop("_id", None)
        return DeploymentEntity.model_validate(doc)

    async def get_by_id(self, deployment_id: str) -> Optional[DeploymentEntity]:
        return self._to_entity(await self._col.find_one({"id": deployment_id}))

    async def list_active_for_agent(self, agent_id: str) -> List[DeploymentEntity]:
        cursor = self._col.find({
            "agent_id": agent_id,
            "status": DeploymentStatus.ACTIVE.value,
            "sub_active": True,
        })
        docs = await cursor.to_list(length=None)
        return [self._to_entity(d) for d in docs]

    async def list_with_safe(self) -> List[DeploymentEntity]:
        cursor = self._col.find({
            "safe_wallet": {"$nin": [None, ""]},
            "module_address": {"$nin": [None, ""]},
        })
        docs = await cursor.to_list(length=None)
        return [self._to_entity(d) for d in docs]

    async def set_module_enabled(self, deployment_id: str, enabled: bool) -> None:
        await self._col.update_one(
            {"id": deployment_id},
            {"$set": {"module_enabled": bool(enabled), "updated_at": int(time.time() * 1000)}},
        )


class AgentRepositoryMongoDB(AgentRepository):

    COLLECTION = "agents"

    def __init__(self, db: AsyncIOMotorDatabase):
        self._col = db[self.COLLECTION]

    async def ensure_indexes(self) -> None:
        await self._col.create_index([("id", 1)], unique=True, name="ux_id")

    async def get_by_id(self, agent_id: str) -> Optional[AgentEntity]:
        doc = await self._col.find_one({"id": agent_id}, projection={"_id": False})
        return AgentEntity.model_validate(doc) if doc else None

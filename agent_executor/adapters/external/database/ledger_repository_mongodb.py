# agent_executor/adapters/external/database/ledger_repository_mongodb.py

from typing import List

from motor.motor_asyncio import AsyncIOMotorDatabase

from ....core.domain.entities.ledger_entities import AuditLogEntity, BillingEventEntity
from ....core.repositories.audit_log_repository import AuditLogRepository
from ....core.repositories.billing_repository import BillingRepository


class BillingRepositoryMongoDB(BillingRepository):
    """
    Billing ledger. Reporting only; on-chain transfers are the source of truth.
    """

    COLLECTION = "billing_events"

    def __init__(self, db: AsyncIOMotorDatabase):
        self._col = db[self.COLLECTION]

    async def ensure_indexes(self) -> None:
        await self._col.create_index([("id", 1)], unique=True, name="ux_id")
        await self._col.create_index(
            [("position_id", 1), ("kind", 1)],
            name="ix_position_kind",
        )
        await self._col.create_index(
            [("deployment_id", 1), ("occurred_at", -1)],
            name="ix_deployment_occurred_at",
        )

    async def create(self, event: BillingEventEntity) -> None:
        await self._col.insert_one(event.model_dump(mode="json"))

    async def list_for_position(self, position_id: str) -> List[BillingEventEntity]:
        cursor = self._col.find({"position_id": position_id}, projection={"_id": False})
        docs = await cursor.to_list(length=None)
        return [BillingEventEntity.model_validate(d) for d in docs]


class AuditLogRepositoryMongoDB(AuditLogRepository):

    COLLECTION = "audit_logs"

    def __init__(self, db: AsyncIOMotorDatabase):
        self._col = db[self.COLLECTION]

    async def ensure_indexes(self) -> None:
        await self._col.create_index(
            [("subject_type", 1), ("subject_id", 1), ("occurred_at", 1)],
            name="ix_subject_occurred_at",
        )

    async def append(self, entry: AuditLogEntity) -> None:
        await self._col.insert_one(entry.model_dump(mode="json"))

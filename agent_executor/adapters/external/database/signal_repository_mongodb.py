# agent_executor/adapters/external/database/signal_repository_mongodb.py

from datetime import datetime, timezone
from typing import Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from ....core.domain.entities.signal_entity import SignalEntity
from ....core.repositories.signal_repository import SignalRepository


def _iso(dt: datetime) -> str:
    return dt.isoformat().replace("+00:00", "Z")


class SignalRepositoryMongoDB(SignalRepository):
    """
    Mongo implementation for signals written by the upstream producer.
    Documents are keyed by `id`; only provenance and handling markers
    (skipped_reason, processed_at) are ever updated here.
    """

    COLLECTION = "signals"

    def __init__(self, db: AsyncIOMotorDatabase):
        self._col = db[self.COLLECTION]

    async def ensure_indexes(self) -> None:
        await self._col.create_index([("id", 1)], unique=True, name="ux_id")
        await self._col.create_index(
            [("agent_id", 1), ("created_at", -1)],
            name="ix_agent_created_at",
        )
        await self._col.create_index(
            [("processed_at", 1), ("skipped_reason", 1), ("created_at", 1)],
            name="ix_unhandled_created_at",
        )

    @staticmethod
    def _to_entity(doc: Optional[Dict]) -> Optional[SignalEntity]:
        if not doc:
            return None
        doc.pop("_id", None)
        return SignalEntity.model_validate(doc)

    async def get_by_id(self, signal_id: str) -> Optional[SignalEntity]:
        return self._to_entity(await self._col.find_one({"id": signal_id}))

    async def list_recent(self, since: datetime, limit: int = 20) -> List[SignalEntity]:
        cursor = self._col.find(
            {"created_at": {"$gte": _iso(since)}, "skipped_reason": None, "processed_at": None},
            sort=[("created_at", 1)],
            limit=limit,
        )
        docs = await cursor.to_list(length=limit)
        return [self._to_entity(d) for d in docs]

    async def record_provenance(
        self,
        signal_id: str,
        signal_hash: str,
        creator_address: Optional[str],
        execution_tx_hash: str,
    ) -> None:
        await self._col.update_one(
            {"id": signal_id, "execution_tx_hash": None},
            {
                "$set": {
                    "signal_hash": signal_hash,
                    "creator_address": creator_address,
                    "execution_tx_hash": execution_tx_hash,
                }
            },
        )

    async def mark_skipped(self, signal_id: str, reason: str) -> None:
        await self._col.update_one({"id": signal_id}, {"$set": {"skipped_reason": reason}})

    async def mark_processed(self, signal_id: str) -> None:
        await self._col.update_one(
            {"id": signal_id, "processed_at": None},
            {"$set": {"processed_at": _iso(datetime.now(timezone.utc))}},
        )

# agent_executor/adapters/external/database/manual_trade_repository_mongodb.py

from datetime import datetime, timezone
from typing import Dict, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from ....core.domain.entities.ledger_entities import ManualTradeEntity
from ....core.domain.enums.trade_enums import ManualTradeStatus
from ....core.repositories.manual_trade_repository import ManualTradeRepository


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class ManualTradeRepositoryMongoDB(ManualTradeRepository):
    """
    Telegram trades. Status transitions are conditional updates so a
    duplicate trigger cannot execute twice.
    """

    COLLECTION = "telegram_trades"

    def __init__(self, db: AsyncIOMotorDatabase):
        self._col = db[self.COLLECTION]

    async def ensure_indexes(self) -> None:
        await self._col.create_index([("id", 1)], unique=True, name="ux_id")
        await self._col.create_index([("status", 1), ("created_at", 1)], name="ix_status_created_at")

    @staticmethod
    def _to_entity(doc: Optional[Dict]) -> Optional[ManualTradeEntity]:
        if not doc:
            return None
        doc.pop("_id", None)
        return ManualTradeEntity.model_validate(doc)

    async def get_by_id(self, trade_id: str) -> Optional[ManualTradeEntity]:
        return self._to_entity(await self._col.find_one({"id": trade_id}))

    async def claim_for_execution(self, trade_id: str) -> Optional[ManualTradeEntity]:
        doc = await self._col.find_one_and_update(
            {"id": trade_id, "status": ManualTradeStatus.PENDING.value},
            {"$set": {"status": ManualTradeStatus.EXECUTING.value}},
            return_document=ReturnDocument.AFTER,
        )
        return self._to_entity(doc)

    async def mark_executed(self, trade_id: str, position_id: str) -> None:
        await self._col.update_one(
            {"id": trade_id, "status": ManualTradeStatus.EXECUTING.value},
            {
                "$set": {
                    "status": ManualTradeStatus.EXECUTED.value,
                    "position_id": position_id,
                    "executed_at": _now_iso(),
                    "error": None,
                }
            },
        )

    async def mark_failed(self, trade_id: str, error: str) -> None:
        await self._col.update_one(
            {"id": trade_id, "status": ManualTradeStatus.EXECUTING.value},
            {"$set": {"status": ManualTradeStatus.FAILED.value, "error": error}},
        )

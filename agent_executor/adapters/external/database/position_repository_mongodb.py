# agent_executor/adapters/external/database/position_repository_mongodb.py

from datetime import datetime
from typing import Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from ....core.domain.entities.position_entity import PositionEntity, TrailingParams
from ....core.domain.enums.trade_enums import CloseReason
from ....core.repositories.exceptions import DuplicatePositionError
from ....core.repositories.position_repository import PositionRepository


def _iso(dt: datetime) -> str:
    return dt.isoformat().replace("+00:00", "Z")


class PositionRepositoryMongoDB(PositionRepository):
    """
    Positions. Open means closed_at == null.

    - ux_deployment_signal makes (deployment_id, signal_id) unique, so two
      racing opens end with one insert and one DuplicatePositionError.
    - Every update filters on closed_at == null; a closed position is never
      touched again.
    """

    COLLECTION = "positions"

    def __init__(self, db: AsyncIOMotorDatabase):
        self._col = db[self.COLLECTION]

    async def ensure_indexes(self) -> None:
        await self._col.create_index([("id", 1)], unique=True, name="ux_id")
        await self._col.create_index(
            [("deployment_id", 1), ("signal_id", 1)],
            unique=True,
            name="ux_deployment_signal",
        )
        await self._col.create_index([("closed_at", 1), ("opened_at", 1)], name="ix_closed_opened")

    @staticmethod
    def _to_entity(doc: Optional[Dict]) -> Optional[PositionEntity]:
        if not doc:
            return None
        doc.pop("_id", None)
        return PositionEntity.model_validate(doc)

    async def create(self, position: PositionEntity) -> PositionEntity:
        try:
            await self._col.insert_one(position.model_dump(mode="json"))
        except DuplicateKeyError as exc:
            raise DuplicatePositionError(position.deployment_id, position.signal_id) from exc
        return position

    async def get_by_id(self, position_id: str) -> Optional[PositionEntity]:
        return self._to_entity(await self._col.find_one({"id": position_id}))

    async def exists_for(self, deployment_id: str, signal_id: str) -> bool:
        doc = await self._col.find_one(
            {"deployment_id": deployment_id, "signal_id": signal_id},
            projection={"_id": True},
        )
        return doc is not None

    async def list_open(self) -> List[PositionEntity]:
        cursor = self._col.find({"closed_at": None}, sort=[("opened_at", 1)])
        docs = await cursor.to_list(length=None)
        return [self._to_entity(d) for d in docs]

    async def update_trailing_params(self, position_id: str, params: TrailingParams) -> bool:
        res = await self._col.update_one(
            {"id": position_id, "closed_at": None},
            {"$set": {"trailing_params": params.model_dump(mode="json")}},
        )
        return res.modified_count == 1

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
        res = await self._col.update_one(
            {"id": position_id, "closed_at": None},
            {
                "$set": {
                    "closed_at": _iso(closed_at),
                    "exit_price": float(exit_price),
                    "exit_tx_hash": exit_tx_hash,
                    "qty": float(qty),
                    "pnl": float(pnl),
                    "close_reason": reason.value,
                }
            },
        )
        return res.modified_count == 1

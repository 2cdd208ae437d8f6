# agent_executor/core/domain/entities/deployment_entity.py

from typing import Optional

from pydantic import BaseModel

from ..enums.trade_enums import DeploymentStatus


class AgentEntity(BaseModel):
    """
    The trading agent a deployment follows. `profit_receiver_address`
    receives the on-chain profit share, `creator_wallet` signs intents.
    """

    id: str
    name: str = ""
    creator_wallet: Optional[str] = None
    profit_receiver_address: Optional[str] = None

    @property
    def profit_receiver(self) -> Optional[str]:
        return self.profit_receiver_address or self.creator_wallet


class DeploymentEntity(BaseModel):
    """
    Binds one agent to one user's Safe wallet and trading module.

    `module_enabled` is a cache of the Safe's on-chain state. It is shown to
    users but never used to gate a money-moving operation.
    """

    id: str
    agent_id: str
    user_wallet: str
    safe_wallet: Optional[str] = None
    module_address: Optional[str] = None
    module_enabled: bool = False
    status: DeploymentStatus = DeploymentStatus.ACTIVE
    sub_active: bool = True
    chain: str = "arbitrum"

    @property
    def is_tradeable(self) -> bool:
        return (
            self.status == DeploymentStatus.ACTIVE
            and self.sub_active
            and bool(self.safe_wallet)
        )

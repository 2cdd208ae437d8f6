import logging
from typing import Dict, Optional

from ...adapters.external.chain.module_gateway import TradingModuleGateway
from ..repositories.deployment_repository import DeploymentRepository


class SyncModuleStatusUseCase:
    """
    Refreshes each deployment's cached module-enabled flag from the Safe's
    isModuleEnabled(). The cache is for display; trading always re-reads
    the chain.
    """

    def __init__(
        self,
        deployment_repo: DeploymentRepository,
        gateway: TradingModuleGateway,
        logger: Optional[logging.Logger] = None,
    ):
        self._deployments = deployment_repo
        self._gateway = gateway
        self._logger = logger or logging.getLogger(self.__class__.__name__)

    async def execute_once(self) -> Dict[str, int]:
        stats = {"checked": 0, "updated": 0, "errors": 0}
        for dep in await self._deployments.list_with_safe():
            stats["checked"] += 1
            try:
                enabled = await self._gateway.is_module_enabled(dep.safe_wallet, dep.module_address)
            except Exception as exc:
                self._logger.warning("could not read module status for %s (%s): %s", dep.id, dep.safe_wallet, exc)
                stats["errors"] += 1
                continue
            if enabled != dep.module_enabled:
                await self._deployments.set_module_enabled(dep.id, enabled)
                stats["updated"] += 1
                self._logger.info("deployment %s module_enabled %s -> %s", dep.id, dep.module_enabled, enabled)
        return stats

import asyncio
import contextlib
import logging
from typing import Awaitable, Callable, List, Optional

from motor.motor_asyncio import AsyncIOMotorClient
from web3 import AsyncHTTPProvider, AsyncWeb3

from ..adapters.external.chain.exceptions import ConfigurationMissingError
from ..adapters.external.chain.module_gateway import TradingModuleGateway
from ..adapters.external.chain.tx_service import TxService
from ..adapters.external.database.deployment_repository_mongodb import (
    AgentRepositoryMongoDB,
    DeploymentRepositoryMongoDB,
)
from ..adapters.external.database.ledger_repository_mongodb import (
    AuditLogRepositoryMongoDB,
    BillingRepositoryMongoDB,
)
from ..adapters.external.database.manual_trade_repository_mongodb import ManualTradeRepositoryMongoDB
from ..adapters.external.database.position_repository_mongodb import PositionRepositoryMongoDB
from ..adapters.external.database.signal_repository_mongodb import SignalRepositoryMongoDB
from ..adapters.external.database.venue_repository_mongodb import VenueRepositoryMongoDB
from ..adapters.external.venues.registry import VenueAdapterRegistry
from ..adapters.external.venues.spot_uniswap_v3 import SpotUniswapV3Adapter
from ..config import Settings, get_settings
from ..core.services.exit_rules import ExitRuleEvaluator
from ..core.services.nonce_coordinator import NonceCoordinator
from ..core.services.pre_trade_validator import PreTradeValidator
from ..core.usecases.execute_manual_trade_use_case import ExecuteManualTradeUseCase
from ..core.usecases.execute_pending_signals_use_case import ExecutePendingSignalsUseCase
from ..core.usecases.monitor_positions_use_case import MonitorPositionsUseCase
from ..core.usecases.sync_module_status_use_case import SyncModuleStatusUseCase
from ..core.usecases.trade_execution_coordinator import TradeExecutionCoordinator


class ExecutionSupervisor:
    """
    High-level supervisor for the executor process.

    Responsibilities:
    - Connect to Mongo, ensure indexes.
    - Wire web3, nonce coordinator, gateway, venue adapters and use cases.
    - Run the signal executor loop and the position monitor loop in background.
    """

    def __init__(self, settings: Optional[Settings] = None, run_loops: bool = True):
        self._s = settings or get_settings()
        self._run_loops = run_loops
        self._logger = logging.getLogger(self.__class__.__name__)
        self._mongo_client: AsyncIOMotorClient | None = None
        self._db = None
        self._tasks: List[asyncio.Task] = []

        self.coordinator: TradeExecutionCoordinator | None = None
        self.monitor_uc: MonitorPositionsUseCase | None = None
        self.signals_uc: ExecutePendingSignalsUseCase | None = None
        self.sync_uc: SyncModuleStatusUseCase | None = None
        self.manual_uc: ExecuteManualTradeUseCase | None = None

    async def start(self):
        s = self._s

        # Mongo
        self._mongo_client = AsyncIOMotorClient(s.MONGODB_URI)
        self._db = self._mongo_client[s.MONGODB_DB_NAME]

        signal_repo = SignalRepositoryMongoDB(self._db)
        deployment_repo = DeploymentRepositoryMongoDB(self._db)
        agent_repo = AgentRepositoryMongoDB(self._db)
        position_repo = PositionRepositoryMongoDB(self._db)
        billing_repo = BillingRepositoryMongoDB(self._db)
        audit_repo = AuditLogRepositoryMongoDB(self._db)
        venue_repo = VenueRepositoryMongoDB(self._db)
        manual_repo = ManualTradeRepositoryMongoDB(self._db)

        for repo in (signal_repo, deployment_repo, agent_repo, position_repo,
                     billing_repo, audit_repo, venue_repo, manual_repo):
            await repo.ensure_indexes()

        # Chain
        w3 = AsyncWeb3(AsyncHTTPProvider(s.RPC_URL))
        nonces = NonceCoordinator(
            fetch_count=lambda addr: w3.eth.get_transaction_count(addr, "pending"),
            acquire_timeout_sec=s.NONCE_ACQUIRE_TIMEOUT_SEC,
        )
        tx = TxService(w3, s.EXECUTOR_PRIVATE_KEY, nonces, receipt_timeout_sec=s.TX_RECEIPT_TIMEOUT_SEC)
        gateway = TradingModuleGateway(
            w3,
            tx,
            s.TRADING_MODULE_ADDRESS,
            gas_limit_trade=s.GAS_LIMIT_TRADE,
            gas_limit_setup=s.GAS_LIMIT_SETUP,
            gas_limit_module_call=s.GAS_LIMIT_MODULE_CALL,
        )
        if not s.EXECUTOR_PRIVATE_KEY or not s.TRADING_MODULE_ADDRESS:
            self._logger.error("EXECUTOR_PRIVATE_KEY / TRADING_MODULE_ADDRESS not configured; trades will halt")

        venues = VenueAdapterRegistry([
            SpotUniswapV3Adapter(
                w3,
                gateway,
                venue_repo,
                router=s.UNI_V3_ROUTER,
                quoter=s.UNI_V3_QUOTER,
                usdc_address=s.USDC_ADDRESS,
                usdc_decimals=s.USDC_DECIMALS,
                fee_tiers=s.fee_tiers,
                chain=s.CHAIN_NAME,
            ),
        ])

        self.coordinator = TradeExecutionCoordinator(
            signal_repo=signal_repo,
            deployment_repo=deployment_repo,
            agent_repo=agent_repo,
            position_repo=position_repo,
            billing_repo=billing_repo,
            audit_repo=audit_repo,
            venue_repo=venue_repo,
            validator=PreTradeValidator(venue_repo, min_position_usdc=s.MIN_POSITION_USDC),
            venues=venues,
            gateway=gateway,
            settings=s,
        )
        self.monitor_uc = MonitorPositionsUseCase(
            position_repo=position_repo,
            venues=venues,
            coordinator=self.coordinator,
            evaluator=ExitRuleEvaluator(
                activation_pct=s.TRAILING_ACTIVATION_PCT,
                stop_loss_enabled=s.FIXED_STOP_LOSS_ENABLED,
            ),
            item_delay_sec=s.ITEM_DELAY_SEC,
            shard_index=s.MONITOR_SHARD_INDEX,
            shard_count=s.MONITOR_SHARD_COUNT,
        )
        self.signals_uc = ExecutePendingSignalsUseCase(
            signal_repo=signal_repo,
            deployment_repo=deployment_repo,
            agent_repo=agent_repo,
            position_repo=position_repo,
            coordinator=self.coordinator,
            batch_limit=s.SIGNAL_BATCH_LIMIT,
            item_delay_sec=s.ITEM_DELAY_SEC,
        )
        self.sync_uc = SyncModuleStatusUseCase(deployment_repo, gateway)
        self.manual_uc = ExecuteManualTradeUseCase(
            manual_trade_repo=manual_repo,
            signal_repo=signal_repo,
            deployment_repo=deployment_repo,
            coordinator=self.coordinator,
        )

        if self._run_loops:
            self._tasks.append(asyncio.create_task(
                self._loop("signal executor", self.signals_uc.execute_once, s.EXECUTOR_INTERVAL_SEC)
            ))
            self._tasks.append(asyncio.create_task(
                self._loop("position monitor", self.monitor_uc.execute_once, s.MONITOR_INTERVAL_SEC)
            ))
        self._logger.info("execution supervisor started (env=%s chain=%s)", s.ENV, s.CHAIN_NAME)

    async def _loop(self, name: str, fn: Callable[[], Awaitable], interval_sec: float):
        """
        Forever-loop for one periodic job. A configuration error halts it.
        """
        while True:
            try:
                await fn()
            except ConfigurationMissingError as exc:
                self._logger.error("%s halted: %s", name, exc)
                return
            except Exception as exc:
                self._logger.exception("%s loop error: %s", name, exc)
            await asyncio.sleep(interval_sec)

    async def stop(self):
        """
        Gracefully stop resources.
        """
        for task in self._tasks:
            task.cancel()
            with contextlib.suppress(BaseException):
                await task
        self._tasks.clear()

        if self._mongo_client:
            self._mongo_client.close()

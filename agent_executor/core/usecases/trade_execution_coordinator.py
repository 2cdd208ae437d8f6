import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, Hashable, Optional, Tuple

from ...adapters.external.chain.exceptions import (
    ConfigurationMissingError,
    QuoteUnavailableError,
    SubmissionFailedError,
    TransactionDroppedError,
    TransactionRevertedError,
)
from ...adapters.external.chain.module_gateway import TradeReceipt, TradingModuleGateway
from ...adapters.external.venues.registry import VenueAdapterRegistry
from ...config import Settings
from ..domain.entities.deployment_entity import AgentEntity, DeploymentEntity
from ..domain.entities.execution_result import ExecutionResult
from ..domain.entities.ledger_entities import AuditLogEntity, BillingEventEntity
from ..domain.entities.position_entity import PositionEntity, TrailingParams
from ..domain.entities.signal_entity import SignalEntity
from ..domain.enums.trade_enums import (
    BillingKind,
    BillingStatus,
    CloseReason,
    FailureReason,
    PositionSource,
    TradeSide,
)
from ..repositories.agent_repository import AgentRepository
from ..repositories.audit_log_repository import AuditLogRepository
from ..repositories.billing_repository import BillingRepository
from ..repositories.deployment_repository import DeploymentRepository
from ..repositories.exceptions import DuplicatePositionError
from ..repositories.position_repository import PositionRepository
from ..repositories.signal_repository import SignalRepository
from ..repositories.venue_repository import VenueRepository
from ..services.exit_rules import compute_unrealized_pnl
from ..services.intent_hash import compute_signal_hash
from ..services.keyed_lock import KeyedLock
from ..services.nonce_coordinator import NonceAcquisitionTimeout
from ..services.position_sizing import from_raw_amount, to_raw_amount
from ..services.pre_trade_validator import PreTradeValidator


@dataclass
class PendingOpen:
    """An open tx that was broadcast but whose position is not persisted yet."""
    tx_hash: Optional[str]
    size_usdc: float
    amount_in: int
    token_address: str
    token_decimals: int
    token_balance_before: int
    signal_hash: str
    creator_address: Optional[str]
    source: PositionSource = PositionSource.AUTO
    manual_trade_id: Optional[str] = None
    summary: Dict[str, Any] = field(default_factory=dict)
    nonce: Optional[int] = None
    parked_at: Optional[datetime] = None


@dataclass
class PendingClose:
    """A close tx that was broadcast but not yet recorded on the position."""
    tx_hash: Optional[str]
    exit_price: float
    qty: float
    pnl: float
    reason: CloseReason
    profit_receiver: str
    nonce: Optional[int] = None
    parked_at: Optional[datetime] = None


class TradeExecutionCoordinator:
    """
    Orchestrates one signal against one deployment (open) and one position
    back to USDC (close):

      validator -> venue adapter -> auto-setup -> gateway -> store

    Guarantees:
      - At most one position per (deployment, signal): in-process pair lock
        plus the store's unique index (duplicates become ALREADY_EXECUTED).
      - Close happens once: per-position lock and a closed_at compare-and-set.
      - Nothing on-chain escapes as an exception; every public call returns an
        ExecutionResult. ConfigurationMissingError is the only exception that
        propagates (process-level fatal).
      - A receipt timeout is reconciled by tx hash before anything else is
        sent for the same pair / position. A parked tx that was replaced, or
        that stays unconfirmed past PENDING_TX_MAX_AGE_SEC, is dropped so the
        pair / position can trade again.
    """

    def __init__(
        self,
        signal_repo: SignalRepository,
        deployment_repo: DeploymentRepository,
        agent_repo: AgentRepository,
        position_repo: PositionRepository,
        billing_repo: BillingRepository,
        audit_repo: AuditLogRepository,
        venue_repo: VenueRepository,
        validator: PreTradeValidator,
        venues: VenueAdapterRegistry,
        gateway: TradingModuleGateway,
        settings: Settings,
        logger: Optional[logging.Logger] = None,
        id_factory: Optional[Callable[[], str]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._signals = signal_repo
        self._deployments = deployment_repo
        self._agents = agent_repo
        self._positions = position_repo
        self._billing = billing_repo
        self._audit_logs = audit_repo
        self._venue_repo = venue_repo
        self._validator = validator
        self._venues = venues
        self._gateway = gateway
        self._s = settings
        self._logger = logger or logging.getLogger(self.__class__.__name__)
        self._new_id = id_factory or (lambda: uuid.uuid4().hex)
        self._now = clock or (lambda: datetime.now(timezone.utc))
        self._max_pending_age = timedelta(seconds=settings.PENDING_TX_MAX_AGE_SEC)

        self._pair_locks = KeyedLock()
        self._position_locks = KeyedLock()
        self._pending_opens: Dict[Hashable, PendingOpen] = {}
        self._pending_closes: Dict[Hashable, PendingClose] = {}

    # =========================
    # Public API
    # =========================

    async def execute_signal_for_deployment(self, signal_id: str, deployment_id: str) -> ExecutionResult:
        signal = await self._signals.get_by_id(signal_id)
        if signal is None:
            return ExecutionResult.fail(FailureReason.SIGNAL_NOT_FOUND, error=f"signal {signal_id} not found")
        deployment = await self._deployments.get_by_id(deployment_id)
        if deployment is None:
            return ExecutionResult.fail(FailureReason.DEPLOYMENT_NOT_FOUND, error=f"deployment {deployment_id} not found")
        return await self.open_position(signal, deployment)

    async def open_position(
        self,
        signal: SignalEntity,
        deployment: DeploymentEntity,
        agent: Optional[AgentEntity] = None,
        source: PositionSource = PositionSource.AUTO,
        manual_trade_id: Optional[str] = None,
    ) -> ExecutionResult:
        if not deployment.is_tradeable:
            return ExecutionResult.fail(
                FailureReason.DEPLOYMENT_INACTIVE,
                error=f"deployment {deployment.id} status={deployment.status.value} sub_active={deployment.sub_active}",
            )

        key = (deployment.id, signal.id)
        async with self._pair_locks.hold(key):
            if await self._positions.exists_for(deployment.id, signal.id):
                return ExecutionResult.fail(FailureReason.ALREADY_EXECUTED)
            return await self._guard(
                f"open signal={signal.id} deployment={deployment.id}",
                self._open_locked(key, signal, deployment, agent, source, manual_trade_id),
            )

    async def close_position(self, position_id: str, reason: CloseReason = CloseReason.MANUAL) -> ExecutionResult:
        async with self._position_locks.hold(position_id):
            position = await self._positions.get_by_id(position_id)
            if position is None:
                return ExecutionResult.fail(FailureReason.POSITION_NOT_FOUND, position_id=position_id)
            if not position.is_open:
                return ExecutionResult.fail(FailureReason.ALREADY_CLOSED, position_id=position_id)
            return await self._guard(
                f"close position={position_id}",
                self._close_locked(position, reason),
            )

    # =========================
    # Error boundary
    # =========================

    async def _guard(self, what: str, op: Awaitable[ExecutionResult]) -> ExecutionResult:
        try:
            return await op
        except ConfigurationMissingError:
            raise
        except TransactionRevertedError as exc:
            self._logger.warning("%s reverted tx=%s reason=%s", what, exc.tx_hash, exc.reason)
            return ExecutionResult.fail(FailureReason.TRANSACTION_REVERTED, error=str(exc), tx_hash=exc.tx_hash)
        except SubmissionFailedError as exc:
            self._logger.warning("%s submission failed tx=%s: %s", what, exc.tx_hash, exc.msg)
            return ExecutionResult.fail(FailureReason.SUBMISSION_FAILED, error=exc.msg, tx_hash=exc.tx_hash)
        except NonceAcquisitionTimeout as exc:
            self._logger.warning("%s: %s", what, exc)
            return ExecutionResult.fail(FailureReason.SUBMISSION_FAILED, error=str(exc))
        except Exception as exc:
            self._logger.exception("%s failed unexpectedly: %s", what, exc)
            return ExecutionResult.fail(FailureReason.INFRA_ERROR, error=str(exc))

    # =========================
    # Open
    # =========================

    async def _open_locked(
        self,
        key: Tuple[str, str],
        signal: SignalEntity,
        deployment: DeploymentEntity,
        agent: Optional[AgentEntity],
        source: PositionSource,
        manual_trade_id: Optional[str],
    ) -> ExecutionResult:
        pending = self._pending_opens.get(key)
        if pending is not None:
            return await self._resume_open(key, pending, signal, deployment)

        safe = deployment.safe_wallet

        # 1) module must be enabled on-chain; the stored flag is only a cache
        enabled = await self._gateway.is_module_enabled(safe, deployment.module_address)
        await self._reconcile_module_flag(deployment, enabled)
        if not enabled:
            return ExecutionResult.fail(FailureReason.MODULE_NOT_ENABLED, error=f"module not enabled on {safe}")

        # 2) pre-trade validation against the live balance
        usdc_raw = await self._gateway.token_balance(self._s.USDC_ADDRESS, safe)
        usdc_balance = from_raw_amount(usdc_raw, self._s.USDC_DECIMALS)
        check = await self._validator.validate(signal, deployment, usdc_balance)
        if not check.can_execute:
            return ExecutionResult.fail(
                check.reason,
                summary={"usdc_balance": usdc_balance, "size_usdc": check.size_usdc},
            )

        adapter = self._venues.get(signal.venue)
        if not adapter.supports_execution():
            return ExecutionResult.fail(FailureReason.VENUE_NOT_SUPPORTED, error=f"{signal.venue.value} not supported")

        exec_summary = await adapter.get_execution_summary(signal, safe, check.size_usdc)
        if not exec_summary.can_execute:
            return ExecutionResult.fail(
                FailureReason.INSUFFICIENT_BALANCE,
                error=exec_summary.reason,
                summary=exec_summary.model_dump(),
            )

        # 3) size -> quote -> min out
        token = check.token
        amount_in = to_raw_amount(check.size_usdc, self._s.USDC_DECIMALS)
        try:
            quote = await adapter.quote(self._s.USDC_ADDRESS, token.token_address, amount_in)
        except QuoteUnavailableError as exc:
            return ExecutionResult.fail(FailureReason.QUOTE_UNAVAILABLE, error=str(exc))
        slippage_bps = self._slippage_bps(check.constraint.slippage_limit_bps if check.constraint else None)
        min_out = adapter.compute_min_amount_out(quote.amount_out, slippage_bps)

        # 4) auto-setup
        router = adapter.router_address()
        setup_failure = await self._ensure_setup(safe, token.token_address, amount_in, router)
        if setup_failure is not None:
            return setup_failure

        # 5) submit
        agent = agent or await self._agents.get_by_id(signal.agent_id)
        receiver = self._profit_receiver(agent, deployment)
        creator = agent.creator_wallet if agent else None
        balance_before = await self._gateway.token_balance(token.token_address, safe)

        pending = PendingOpen(
            tx_hash=None,
            size_usdc=check.size_usdc,
            amount_in=amount_in,
            token_address=token.token_address,
            token_decimals=token.decimals,
            token_balance_before=balance_before,
            signal_hash=compute_signal_hash(
                signal.side.value, signal.token_symbol, creator, amount_in, int(time.time() * 1000)
            ),
            creator_address=creator,
            source=source,
            manual_trade_id=manual_trade_id,
            summary={
                "size_usdc": check.size_usdc,
                "amount_in": amount_in,
                "quoted_out": quote.amount_out,
                "min_amount_out": min_out,
                "pool_fee": quote.fee,
                "slippage_bps": slippage_bps,
            },
        )
        self._logger.info(
            "opening %s %s on %s: %.6f USDC (min_out=%s fee=%s)",
            signal.side.value, signal.base_token_symbol, safe, check.size_usdc, min_out, quote.fee,
        )
        receipt = await self._submit(
            self._pending_opens,
            key,
            pending,
            safe,
            lambda: self._gateway.execute_trade(
                safe=safe,
                token_in=self._s.USDC_ADDRESS,
                token_out=token.token_address,
                amount_in=amount_in,
                min_amount_out=min_out,
                pool_fee=quote.fee,
                profit_receiver=receiver,
            ),
        )
        return await self._persist_open(key, pending, receipt, signal, deployment)

    async def _resume_open(
        self,
        key: Tuple[str, str],
        pending: PendingOpen,
        signal: SignalEntity,
        deployment: DeploymentEntity,
    ) -> ExecutionResult:
        receipt = await self._reconcile(self._pending_opens, key, pending, deployment.safe_wallet)
        if receipt is None:
            return ExecutionResult.fail(
                FailureReason.SUBMISSION_FAILED,
                error="previous open tx is still pending",
                tx_hash=pending.tx_hash,
            )
        return await self._persist_open(key, pending, receipt, signal, deployment)

    async def _persist_open(
        self,
        key: Tuple[str, str],
        pending: PendingOpen,
        receipt: TradeReceipt,
        signal: SignalEntity,
        deployment: DeploymentEntity,
    ) -> ExecutionResult:
        amount_out = receipt.amount_out
        if amount_out is None:
            after = await self._gateway.token_balance(pending.token_address, deployment.safe_wallet)
            amount_out = max(0, after - pending.token_balance_before)

        qty = from_raw_amount(amount_out, pending.token_decimals)
        if qty > 0:
            entry_price = pending.size_usdc / qty
        else:
            self._logger.error("open tx %s mined but received amount is unknown", receipt.tx_hash)
            entry_price = 0.0

        stop_loss, take_profit, trailing = self._risk_levels(signal, entry_price)
        position = PositionEntity(
            id=self._new_id(),
            deployment_id=deployment.id,
            signal_id=signal.id,
            venue=signal.venue,
            token_symbol=signal.base_token_symbol,
            side=signal.side,
            qty=qty,
            entry_price=entry_price,
            entry_tx_hash=receipt.tx_hash,
            stop_loss=stop_loss,
            take_profit=take_profit,
            trailing_params=trailing,
            source=pending.source,
            manual_trade_id=pending.manual_trade_id,
            opened_at=self._now(),
        )

        try:
            await self._positions.create(position)
        except DuplicatePositionError:
            self._pending_opens.pop(key, None)
            self._logger.warning(
                "position for deployment=%s signal=%s already recorded elsewhere (tx=%s)",
                deployment.id, signal.id, receipt.tx_hash,
            )
            return ExecutionResult.fail(FailureReason.ALREADY_EXECUTED, tx_hash=receipt.tx_hash)
        self._pending_opens.pop(key, None)

        try:
            await self._signals.record_provenance(
                signal.id, pending.signal_hash, pending.creator_address, receipt.tx_hash
            )
        except Exception as exc:
            self._logger.warning("failed to record provenance for signal %s: %s", signal.id, exc)

        summary = {**pending.summary, "qty": qty, "entry_price": entry_price, "amount_out": amount_out}
        await self._audit("POSITION_OPENED", position.id, {"tx_hash": receipt.tx_hash, **summary})
        self._logger.info(
            "position %s opened: %s %s qty=%.8f entry=%.6f tx=%s",
            position.id, position.side.value, position.token_symbol, qty, entry_price, receipt.tx_hash,
        )
        return ExecutionResult.ok(tx_hash=receipt.tx_hash, position_id=position.id, summary=summary)

    def _risk_levels(self, signal: SignalEntity, entry_price: float):
        risk = signal.risk_model
        trailing = TrailingParams(
            enabled=True,
            trailing_percent=(risk.trailing_percent if risk and risk.trailing_percent else self._s.TRAILING_DEFAULT_PCT),
        )
        if risk is None or entry_price <= 0:
            return None, None, trailing

        sign = 1.0 if signal.side == TradeSide.LONG else -1.0
        stop_loss = None
        take_profit = None
        if risk.stop_loss_pct:
            stop_loss = entry_price * (1 - sign * risk.stop_loss_pct / 100.0)
        if risk.take_profit_pct:
            take_profit = entry_price * (1 + sign * risk.take_profit_pct / 100.0)
        return stop_loss, take_profit, trailing

    # =========================
    # Close
    # =========================

    async def _close_locked(self, position: PositionEntity, reason: CloseReason) -> ExecutionResult:
        pending = self._pending_closes.get(position.id)
        if pending is not None:
            return await self._resume_close(position, pending)

        deployment = await self._deployments.get_by_id(position.deployment_id)
        if deployment is None:
            return ExecutionResult.fail(FailureReason.DEPLOYMENT_NOT_FOUND, position_id=position.id)
        safe = deployment.safe_wallet

        adapter = self._venues.get(position.venue)
        if not adapter.supports_execution():
            return ExecutionResult.fail(FailureReason.VENUE_NOT_SUPPORTED, position_id=position.id)

        token = await self._venue_repo.get_token(deployment.chain, position.token_symbol)
        if token is None:
            return ExecutionResult.fail(FailureReason.TOKEN_NOT_REGISTERED, position_id=position.id)

        # live balance, not the stored qty
        balance_raw = await self._gateway.token_balance(token.token_address, safe)
        if balance_raw <= 0:
            return ExecutionResult.fail(
                FailureReason.NOTHING_TO_CLOSE,
                error=f"no {position.token_symbol} balance on {safe}",
                position_id=position.id,
            )
        actual_qty = from_raw_amount(balance_raw, token.decimals)

        router = adapter.router_address()
        approval_failure = await self._ensure_approval(safe, token.token_address, router, balance_raw)
        if approval_failure is not None:
            approval_failure.position_id = position.id
            return approval_failure

        price = await adapter.get_price(position.token_symbol)
        if price is None:
            return ExecutionResult.fail(FailureReason.PRICE_UNAVAILABLE, position_id=position.id)

        constraint = await self._venue_repo.get_venue_constraint(position.venue, position.token_symbol)
        slippage_bps = self._slippage_bps(constraint.slippage_limit_bps if constraint else None)
        try:
            quote = await adapter.quote(token.token_address, self._s.USDC_ADDRESS, balance_raw)
            expected_out, pool_fee = quote.amount_out, quote.fee
        except QuoteUnavailableError:
            expected_out = to_raw_amount(price * actual_qty, self._s.USDC_DECIMALS)
            pool_fee = self._s.DEFAULT_SWAP_POOL_FEE
        min_out = adapter.compute_min_amount_out(expected_out, slippage_bps)

        _, pnl = compute_unrealized_pnl(position.side, position.entry_price, price, actual_qty)
        entry_value_raw = to_raw_amount(round(position.entry_price * actual_qty, self._s.USDC_DECIMALS), self._s.USDC_DECIMALS)

        agent = await self._agents.get_by_id(deployment.agent_id)
        receiver = self._profit_receiver(agent, deployment)

        pending = PendingClose(
            tx_hash=None,
            exit_price=price,
            qty=actual_qty,
            pnl=pnl,
            reason=reason,
            profit_receiver=receiver,
        )
        self._logger.info(
            "closing position %s (%s): qty=%.8f price=%.6f pnl=%.6f",
            position.id, reason.value, actual_qty, price, pnl,
        )
        receipt = await self._submit(
            self._pending_closes,
            position.id,
            pending,
            safe,
            lambda: self._gateway.close_position(
                safe=safe,
                token_in=token.token_address,
                token_out=self._s.USDC_ADDRESS,
                amount_in=balance_raw,
                min_amount_out=min_out,
                pool_fee=pool_fee,
                profit_receiver=receiver,
                entry_value_raw=entry_value_raw,
            ),
        )
        return await self._finalize_close(position, deployment, pending, receipt)

    async def _resume_close(self, position: PositionEntity, pending: PendingClose) -> ExecutionResult:
        deployment = await self._deployments.get_by_id(position.deployment_id)
        if deployment is None:
            return ExecutionResult.fail(FailureReason.DEPLOYMENT_NOT_FOUND, position_id=position.id)
        receipt = await self._reconcile(self._pending_closes, position.id, pending, deployment.safe_wallet)
        if receipt is None:
            return ExecutionResult.fail(
                FailureReason.SUBMISSION_FAILED,
                error="previous close tx is still pending",
                tx_hash=pending.tx_hash,
                position_id=position.id,
            )
        return await self._finalize_close(position, deployment, pending, receipt)

    async def _finalize_close(
        self,
        position: PositionEntity,
        deployment: DeploymentEntity,
        pending: PendingClose,
        receipt: TradeReceipt,
    ) -> ExecutionResult:
        closed = await self._positions.mark_closed(
            position.id,
            closed_at=self._now(),
            exit_price=pending.exit_price,
            exit_tx_hash=receipt.tx_hash,
            qty=pending.qty,
            pnl=pending.pnl,
            reason=pending.reason,
        )
        self._pending_closes.pop(position.id, None)
        if not closed:
            self._logger.error("position %s was closed concurrently; close tx %s not recorded", position.id, receipt.tx_hash)
            return ExecutionResult.fail(FailureReason.ALREADY_CLOSED, tx_hash=receipt.tx_hash, position_id=position.id)

        if pending.pnl > 0:
            await self._record_profit_share(position, deployment, pending, receipt.tx_hash)

        summary = {
            "exit_price": pending.exit_price,
            "qty": pending.qty,
            "pnl": pending.pnl,
            "reason": pending.reason.value,
            "amount_out": receipt.amount_out,
        }
        await self._audit("POSITION_CLOSED", position.id, {"tx_hash": receipt.tx_hash, **summary})
        self._logger.info("position %s closed (%s) pnl=%.6f tx=%s", position.id, pending.reason.value, pending.pnl, receipt.tx_hash)
        return ExecutionResult.ok(tx_hash=receipt.tx_hash, position_id=position.id, summary=summary)

    async def _record_profit_share(
        self,
        position: PositionEntity,
        deployment: DeploymentEntity,
        pending: PendingClose,
        tx_hash: str,
    ) -> None:
        """
        Off-chain mirror of the profit share the module already paid out.
        """
        bps = self._s.PROFIT_SHARE_BPS
        event = BillingEventEntity(
            id=self._new_id(),
            kind=BillingKind.PROFIT_SHARE,
            amount=pending.pnl * bps / 10_000,
            asset="USDC",
            status=BillingStatus.CHARGED,
            deployment_id=deployment.id,
            position_id=position.id,
            metadata={
                "tx_hash": tx_hash,
                "distributed_on_chain": True,
                "bps": bps,
                "recipient": pending.profit_receiver,
            },
            occurred_at=self._now(),
        )
        try:
            await self._billing.create(event)
        except Exception as exc:
            self._logger.warning("failed to record profit share for position %s: %s", position.id, exc)

    # =========================
    # Auto-setup
    # =========================

    async def _ensure_setup(self, safe: str, token: str, usdc_amount: int, router: str) -> Optional[ExecutionResult]:
        """
        Capital init, token whitelist and USDC approval. Each step checks
        before acting and re-checks after a failure.
        """
        try:
            await self._gateway.initialize_capital(safe)
        except ConfigurationMissingError:
            raise
        except Exception as exc:
            self._logger.warning("capital init failed for %s, continuing: %s", safe, exc)

        if not await self._gateway.is_token_whitelisted(safe, token):
            try:
                await self._gateway.set_token_whitelist(safe, token, True)
            except ConfigurationMissingError:
                raise
            except Exception as exc:
                if not await self._gateway.is_token_whitelisted(safe, token):
                    return ExecutionResult.fail(FailureReason.TOKEN_NOT_WHITELISTED, error=str(exc))
                self._logger.info("whitelist tx failed but %s is whitelisted on %s", token, safe)

        return await self._ensure_approval(safe, self._s.USDC_ADDRESS, router, usdc_amount)

    async def _ensure_approval(self, safe: str, token: str, spender: str, amount: int) -> Optional[ExecutionResult]:
        if await self._gateway.token_allowance(token, safe, spender) >= amount:
            return None
        try:
            await self._gateway.approve_token_for_dex(safe, token, spender)
        except ConfigurationMissingError:
            raise
        except Exception as exc:
            if await self._gateway.token_allowance(token, safe, spender) >= amount:
                self._logger.info("approval tx failed but %s allowance already covers %s", token, amount)
                return None
            return ExecutionResult.fail(FailureReason.APPROVAL_FAILED, error=str(exc))
        return None

    # =========================
    # Submission / reconciliation
    # =========================

    async def _submit(
        self,
        pending_map: Dict[Hashable, Any],
        key: Hashable,
        pending,
        safe: str,
        send: Callable[[], Awaitable[TradeReceipt]],
    ) -> TradeReceipt:
        """
        Sends the trade and parks it in pending_map until the caller has
        persisted the outcome. A receipt timeout is reconciled once right
        away; if still unknown the SubmissionFailedError propagates and the
        next call for the same key reconciles instead of resending.
        """
        try:
            receipt = await send()
        except SubmissionFailedError as exc:
            if not exc.tx_hash:
                raise
            pending.tx_hash = exc.tx_hash
            pending.nonce = exc.nonce
            pending.parked_at = self._now()
            pending_map[key] = pending
            await self._audit("TX_UNCONFIRMED", str(key), {"tx_hash": exc.tx_hash, "nonce": exc.nonce, "error": exc.msg})
            receipt = await self._reconcile(pending_map, key, pending, safe)
            if receipt is None:
                raise
            return receipt
        pending.tx_hash = receipt.tx_hash
        pending_map[key] = pending
        return receipt

    async def _reconcile(self, pending_map: Dict[Hashable, Any], key: Hashable, pending, safe: str) -> Optional[TradeReceipt]:
        try:
            receipt = await self._gateway.reconcile(pending.tx_hash, safe, nonce=pending.nonce)
        except TransactionRevertedError:
            pending_map.pop(key, None)
            raise
        except TransactionDroppedError as exc:
            pending_map.pop(key, None)
            await self._audit("TX_DROPPED", str(key), {"tx_hash": pending.tx_hash, "nonce": pending.nonce, "error": exc.msg})
            raise
        if receipt is not None or pending.parked_at is None:
            return receipt

        age = self._now() - pending.parked_at
        if age <= self._max_pending_age:
            return None
        pending_map.pop(key, None)
        self._gateway.reset_nonces()
        await self._audit(
            "TX_ABANDONED",
            str(key),
            {"tx_hash": pending.tx_hash, "nonce": pending.nonce, "age_sec": age.total_seconds()},
        )
        self._logger.error("giving up on tx %s for %s after %.0fs unconfirmed", pending.tx_hash, key, age.total_seconds())
        raise TransactionDroppedError(
            f"tx {pending.tx_hash} unconfirmed after {age.total_seconds():.0f}s",
            tx_hash=pending.tx_hash,
            nonce=pending.nonce,
        )

    # =========================
    # Helpers
    # =========================

    def _slippage_bps(self, constraint_bps: Optional[int]) -> int:
        if constraint_bps is not None:
            return int(constraint_bps)
        return int(self._s.MAX_SLIPPAGE_BPS)

    def _profit_receiver(self, agent: Optional[AgentEntity], deployment: DeploymentEntity) -> str:
        receiver = agent.profit_receiver if agent else None
        if not receiver:
            self._logger.warning("no profit receiver for agent of deployment %s, using user wallet", deployment.id)
            receiver = deployment.user_wallet
        return receiver

    async def _reconcile_module_flag(self, deployment: DeploymentEntity, enabled: bool) -> None:
        if deployment.module_enabled == enabled:
            return
        try:
            await self._deployments.set_module_enabled(deployment.id, enabled)
        except Exception as exc:
            self._logger.warning("failed to refresh module flag for %s: %s", deployment.id, exc)

    async def _audit(self, event_name: str, subject_id: str, payload: Dict[str, Any]) -> None:
        try:
            await self._audit_logs.append(
                AuditLogEntity(
                    event_name=event_name,
                    subject_type="position",
                    subject_id=subject_id,
                    payload=payload,
                    occurred_at=self._now(),
                )
            )
        except Exception as log_exc:
            self._logger.warning("Failed to append audit log %s for %s: %s", event_name, subject_id, log_exc)

# agent_executor/core/domain/enums/trade_enums.py

from enum import Enum


class Venue(str, Enum):
    """
    Where a signal is meant to be executed. Only SPOT is wired to a real router.
    """
    SPOT = "SPOT"
    GMX = "GMX"
    HYPERLIQUID = "HYPERLIQUID"


class TradeSide(str, Enum):
    """
    Direction of the position. Signals may carry BUY/SELL, which map to LONG/SHORT.
    """
    LONG = "LONG"
    SHORT = "SHORT"

    @classmethod
    def parse(cls, raw: str) -> "TradeSide":
        v = (raw or "").strip().upper()
        if v in ("LONG", "BUY"):
            return cls.LONG
        if v in ("SHORT", "SELL"):
            return cls.SHORT
        raise ValueError(f"unknown trade side: {raw!r}")


class DeploymentStatus(str, Enum):
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"


class PositionSource(str, Enum):
    AUTO = "auto"
    TELEGRAM = "telegram"


class CloseReason(str, Enum):
    TRAILING_STOP = "TRAILING_STOP"
    TAKE_PROFIT = "TAKE_PROFIT"
    STOP_LOSS = "STOP_LOSS"
    MANUAL = "MANUAL"


class FailureReason(str, Enum):
    """
    Reason codes carried by ExecutionResult. Validation reasons are expected
    outcomes, the rest describe infrastructure or on-chain failures.
    """
    # pre-trade validation
    VENUE_UNAVAILABLE = "VENUE_UNAVAILABLE"
    NO_COLLATERAL = "NO_COLLATERAL"
    POSITION_TOO_SMALL = "POSITION_TOO_SMALL"
    TOKEN_NOT_REGISTERED = "TOKEN_NOT_REGISTERED"
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"

    # deployment readiness
    DEPLOYMENT_NOT_FOUND = "DEPLOYMENT_NOT_FOUND"
    DEPLOYMENT_INACTIVE = "DEPLOYMENT_INACTIVE"
    MODULE_NOT_ENABLED = "MODULE_NOT_ENABLED"
    SIGNAL_NOT_FOUND = "SIGNAL_NOT_FOUND"
    MANUAL_TRADE_NOT_FOUND = "MANUAL_TRADE_NOT_FOUND"

    # venue / routing
    VENUE_NOT_SUPPORTED = "VENUE_NOT_SUPPORTED"
    QUOTE_UNAVAILABLE = "QUOTE_UNAVAILABLE"
    PRICE_UNAVAILABLE = "PRICE_UNAVAILABLE"

    # auto-setup
    TOKEN_NOT_WHITELISTED = "TOKEN_NOT_WHITELISTED"
    APPROVAL_FAILED = "APPROVAL_FAILED"

    # idempotency outcomes
    ALREADY_EXECUTED = "ALREADY_EXECUTED"
    ALREADY_CLOSED = "ALREADY_CLOSED"
    NOTHING_TO_CLOSE = "NOTHING_TO_CLOSE"
    POSITION_NOT_FOUND = "POSITION_NOT_FOUND"

    # on-chain
    TRANSACTION_REVERTED = "TRANSACTION_REVERTED"
    SUBMISSION_FAILED = "SUBMISSION_FAILED"
    INFRA_ERROR = "INFRA_ERROR"


class BillingKind(str, Enum):
    SUBSCRIPTION = "SUBSCRIPTION"
    INFRA_FEE = "INFRA_FEE"
    PROFIT_SHARE = "PROFIT_SHARE"


class BillingStatus(str, Enum):
    CHARGED = "CHARGED"
    FAILED = "FAILED"


class ManualTradeStatus(str, Enum):
    """
    Lifecycle of a trade requested by a human (Telegram bot).
    PENDING -> EXECUTING is a compare-and-set so duplicate triggers run once.
    """
    PENDING = "PENDING"
    EXECUTING = "EXECUTING"
    EXECUTED = "EXECUTED"
    FAILED = "FAILED"
